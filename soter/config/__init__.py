"""Configuration module for soter."""

from soter.config.settings import LoggingConfig, MachineConfig, load_config

__all__ = ["LoggingConfig", "MachineConfig", "load_config"]
