"""CPU usage check for Sensu-style monitoring."""
