"""Configuration management for the CPU usage check."""

import copy
import logging
import os
from typing import Any, Optional

import structlog
import yaml

from cpu_check.core.errors import ConfigInvalid
from cpu_check.models import METRICS, CheckConfig, MetricName, ThresholdPair

# Configure initial logging with WARNING level
logging.basicConfig(level=logging.WARNING)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

CONFIG_ENV_VAR = "CPU_CHECK_CONFIG"

DEFAULT_CONFIG = {
    "check": {
        "metrics": [metric.value for metric in METRICS],
        "ignore_metrics": [],
        "sleep": 1,  # Seconds between the two samples
        "warn": 80,  # Overall usage warning level
        "crit": 90,  # Overall usage critical level
        "handler": None,  # Event handler name passed to the client socket
        "thresholds": {},  # Per-metric levels, e.g. iowait: {warn: 20, crit: 40}
    },
    "events": {
        "enabled": True,
        "host": "127.0.0.1",
        "port": 3030,
    },
    "source": {
        "type": "auto",  # auto, proc or psutil
        "stat_path": None,  # Defaults to /proc/stat
    },
    "notifications": [],  # Empty by default, user must configure
    "logging": {
        "level": "warning",
        "file": "stderr",  # stdout carries the check result
    },
}

DEFAULT_CONFIG_LOCATIONS = [
    "/etc/cpu-check/config.yaml",
    "~/.config/cpu-check/config.yaml",
    "./cpu-check.yaml",
]


def _parse_metrics(value: Any, field: str) -> tuple[MetricName, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [name for name in value.split(",") if name.strip()]
    if not isinstance(value, (list, tuple)):
        raise ConfigInvalid(f"{field} must be a list of CPU metrics")

    metrics = []
    for name in value:
        try:
            metric = MetricName(str(name).strip())
        except ValueError:
            raise ConfigInvalid(
                f"Unknown CPU metric '{name}' in {field} "
                f"(expected one of: {', '.join(m.value for m in METRICS)})"
            ) from None
        if metric not in metrics:
            metrics.append(metric)
    return tuple(metrics)


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ConfigInvalid(f"{field} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigInvalid(f"{field} must be an integer, got {value!r}") from None


def _parse_thresholds(value: Any) -> dict[MetricName, ThresholdPair]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigInvalid("thresholds must map CPU metrics to warn/crit levels")

    thresholds = {}
    for name, levels in value.items():
        (metric,) = _parse_metrics([name], "thresholds")
        levels = levels or {}
        if not isinstance(levels, dict):
            raise ConfigInvalid(f"Thresholds for CPU {metric} must be a mapping")

        warn, crit = levels.get("warn"), levels.get("crit")
        if warn is None and crit is None:
            continue
        if warn is None or crit is None:
            raise ConfigInvalid(
                f"Must specify both warning and critical thresholds for CPU {metric}"
            )

        warn = _parse_int(warn, f"warn threshold for CPU {metric}")
        crit = _parse_int(crit, f"crit threshold for CPU {metric}")
        if warn >= crit:
            raise ConfigInvalid(
                f"Warning CPU {metric} threshold must be lower than the critical threshold"
            )
        thresholds[metric] = ThresholdPair(warn=warn, crit=crit)
    return thresholds


def build_check_config(settings: dict[str, Any]) -> CheckConfig:
    """Validate the ``check`` section and build a CheckConfig.

    Args:
        settings: The ``check`` section of the configuration

    Returns:
        The validated check configuration

    Raises:
        ConfigInvalid: If any setting is invalid
    """
    metrics = settings.get("metrics")
    metrics = METRICS if metrics is None else _parse_metrics(metrics, "metrics")
    ignored = _parse_metrics(settings.get("ignore_metrics"), "ignore_metrics")

    sleep = _parse_int(settings.get("sleep", 1), "sleep")
    if sleep < 0:
        raise ConfigInvalid(f"sleep must not be negative, got {sleep}")

    warn = _parse_int(settings.get("warn", 80), "warn")
    crit = _parse_int(settings.get("crit", 90), "crit")
    if warn >= crit:
        raise ConfigInvalid(
            "Warning CPU usage threshold must be lower than the critical threshold"
        )

    handler = settings.get("handler")
    if handler is not None and not isinstance(handler, str):
        raise ConfigInvalid(f"handler must be a string, got {handler!r}")

    return CheckConfig(
        metrics=metrics,
        ignored=ignored,
        sleep=sleep,
        thresholds=_parse_thresholds(settings.get("thresholds")),
        overall=ThresholdPair(warn=warn, crit=crit),
        handler=handler,
    )


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path or os.environ.get(CONFIG_ENV_VAR)
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        # Try to load config from default locations if not specified
        if not self.config_path:
            for path in DEFAULT_CONFIG_LOCATIONS:
                expanded_path = os.path.expanduser(path)
                if os.path.exists(expanded_path):
                    self.config_path = expanded_path
                    break

        if self.config_path:
            self.load_config()

    def load_config(self) -> dict:
        """Load configuration from file.

        Raises:
            ConfigInvalid: If the file cannot be read or is not a YAML mapping
        """
        if not self.config_path:
            return self.config

        try:
            with open(os.path.expanduser(self.config_path), "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigInvalid(
                f"Failed to load configuration from {self.config_path}: {e}"
            ) from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigInvalid(
                    f"Configuration in {self.config_path} must be a mapping"
                )
            self._merge_config(self.config, file_config)

        log_config = self.config.get("logging") or {}
        log_level = str(log_config.get("level", "warning")).upper()
        logging.getLogger().setLevel(getattr(logging, log_level, logging.WARNING))

        logger.debug("Configuration loaded", path=self.config_path, config=self.config)
        return self.config

    def _merge_config(self, base: dict, override: dict) -> None:
        """Recursively merge override config into base config.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get_check_config(
        self, overrides: Optional[dict[str, Any]] = None
    ) -> CheckConfig:
        """Build the validated check configuration.

        Args:
            overrides: Values taking precedence over the ``check`` section;
                None values are ignored

        Returns:
            The validated check configuration

        Raises:
            ConfigInvalid: If any setting is invalid
        """
        settings = dict(self.config.get("check") or {})
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key == "thresholds":
                merged = dict(settings.get("thresholds") or {})
                merged.update(value)
                value = merged
            settings[key] = value
        return build_check_config(settings)

    def validate_config(self) -> bool:
        """Validate the current configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        try:
            self.get_check_config()
        except ConfigInvalid as e:
            logger.error("Invalid check configuration", error=str(e))
            return False

        events = self.config.get("events") or {}
        if not isinstance(events, dict):
            logger.error("Events configuration must be a dictionary")
            return False
        if not isinstance(events.get("port"), int) or isinstance(
            events.get("port"), bool
        ):
            logger.error("Event port must be an integer", port=events.get("port"))
            return False

        source = self.config.get("source") or {}
        if not isinstance(source, dict):
            logger.error("Source configuration must be a dictionary")
            return False
        if source.get("type", "auto") not in ("auto", "proc", "psutil"):
            logger.error("Invalid source type", type=source.get("type"))
            return False

        notifications = self.config.get("notifications") or []
        if not isinstance(notifications, list):
            logger.error("Notifications must be a list")
            return False

        log_config = self.config.get("logging") or {}
        if not isinstance(log_config, dict):
            logger.error("Logging configuration must be a dictionary")
            return False

        return True

    def get_config(self) -> dict:
        """Get the current configuration.

        Returns:
            The current configuration dictionary
        """
        return self.config

    def save_config(self, path: Optional[str] = None) -> bool:
        """Save the current configuration to file.

        Args:
            path: Destination, defaults to the loaded file's path

        Returns:
            True if save was successful, False otherwise
        """
        path = os.path.expanduser(path or self.config_path or "./cpu-check.yaml")
        try:
            directory = os.path.dirname(os.path.abspath(path))
            os.makedirs(directory, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.dump(self.config, f, default_flow_style=False, sort_keys=False)
            logger.info("Configuration saved successfully", path=path)
            return True
        except OSError as e:
            logger.error("Failed to save configuration", path=path, error=str(e))
            return False
