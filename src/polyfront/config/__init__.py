"""Configuration loading and logging setup."""

from polyfront.config.settings import Settings, configure_logging, get_settings, validate_settings

__all__ = ["Settings", "configure_logging", "get_settings", "validate_settings"]
