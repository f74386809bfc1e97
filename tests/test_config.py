"""Test configuration loading and validation."""

import pytest
import yaml

from cpu_check.config import ConfigManager, build_check_config
from cpu_check.core.errors import ConfigInvalid
from cpu_check.models import METRICS, MetricName, ThresholdPair


def test_defaults():
    config = build_check_config({})

    assert config.metrics == METRICS
    assert config.ignored == ()
    assert config.sleep == 1
    assert config.overall == ThresholdPair(warn=80, crit=90)
    assert config.thresholds == {}
    assert config.handler is None


def test_metric_lists_accept_comma_strings():
    config = build_check_config(
        {"metrics": "user,system,idle", "ignore_metrics": ["system"]}
    )

    assert config.metrics == (MetricName.USER, MetricName.SYSTEM, MetricName.IDLE)
    assert config.requested == (MetricName.USER, MetricName.IDLE)


def test_requested_keeps_canonical_order():
    config = build_check_config({"metrics": ["steal", "user", "idle"]})

    assert config.requested == (MetricName.USER, MetricName.IDLE, MetricName.STEAL)


def test_per_metric_thresholds():
    config = build_check_config(
        {"thresholds": {"iowait": {"warn": "20", "crit": 40}, "steal": None}}
    )

    assert config.thresholds == {MetricName.IOWAIT: ThresholdPair(warn=20, crit=40)}


@pytest.mark.parametrize(
    "settings, message",
    [
        ({"thresholds": {"user": {"warn": 90, "crit": 80}}}, "lower than the critical"),
        ({"thresholds": {"user": {"warn": 80, "crit": 80}}}, "lower than the critical"),
        ({"thresholds": {"user": {"warn": 80}}}, "Must specify both"),
        ({"thresholds": {"user": {"crit": 80}}}, "Must specify both"),
        ({"thresholds": {"cpu": {"warn": 1, "crit": 2}}}, "Unknown CPU metric"),
        ({"warn": 90, "crit": 80}, "Warning CPU usage threshold"),
        ({"metrics": ["user", "bogus"]}, "Unknown CPU metric 'bogus'"),
        ({"ignore_metrics": "nope"}, "Unknown CPU metric 'nope'"),
        ({"sleep": -1}, "must not be negative"),
        ({"warn": "high"}, "must be an integer"),
        ({"sleep": True}, "must be an integer"),
        ({"handler": 5}, "handler must be a string"),
    ],
)
def test_invalid_settings(settings, message):
    with pytest.raises(ConfigInvalid, match=message):
        build_check_config(settings)


def test_config_invalid_is_value_error():
    with pytest.raises(ValueError):
        build_check_config({"warn": 95})


def test_load_file_merges_defaults(temp_config_file):
    config_manager = ConfigManager(temp_config_file)

    settings = config_manager.get_config()
    assert settings["check"]["sleep"] == 0
    assert settings["check"]["ignore_metrics"] == []
    assert settings["events"]["port"] == 3030

    check_config = config_manager.get_check_config()
    assert check_config.overall == ThresholdPair(warn=70, crit=95)
    assert check_config.handler == "mailer"
    assert check_config.thresholds[MetricName.IOWAIT] == ThresholdPair(20, 40)


def test_overrides_take_precedence(temp_config_file):
    config_manager = ConfigManager(temp_config_file)

    check_config = config_manager.get_check_config(
        {
            "warn": 50,
            "crit": None,
            "ignore_metrics": ["nice"],
            "thresholds": {"steal": {"warn": "5", "crit": "15"}},
        }
    )

    assert check_config.overall == ThresholdPair(warn=50, crit=95)
    assert check_config.ignored == (MetricName.NICE,)
    assert check_config.thresholds == {
        MetricName.IOWAIT: ThresholdPair(20, 40),
        MetricName.STEAL: ThresholdPair(5, 15),
    }


def test_config_path_from_environment(temp_config_file, monkeypatch):
    monkeypatch.setenv("CPU_CHECK_CONFIG", temp_config_file)

    assert ConfigManager().get_check_config().handler == "mailer"


def test_unreadable_file_is_invalid(tmp_path):
    with pytest.raises(ConfigInvalid, match="Failed to load configuration"):
        ConfigManager(str(tmp_path / "missing.yaml"))


def test_non_mapping_file_is_invalid(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigInvalid, match="must be a mapping"):
        ConfigManager(str(path))


def test_validate_config(temp_config_file):
    config_manager = ConfigManager(temp_config_file)
    assert config_manager.validate_config()

    config_manager.get_config()["check"]["warn"] = 99
    assert not config_manager.validate_config()

    config_manager.get_config()["check"]["warn"] = 70
    config_manager.get_config()["events"]["port"] = "3030"
    assert not config_manager.validate_config()


def test_save_config(temp_config_file, tmp_path):
    config_manager = ConfigManager(temp_config_file)
    destination = tmp_path / "saved" / "config.yaml"

    assert config_manager.save_config(str(destination))

    with open(destination, encoding="utf-8") as f:
        saved = yaml.safe_load(f)
    assert saved["check"]["handler"] == "mailer"
