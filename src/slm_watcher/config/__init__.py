"""
Configuration package.

This package contains configuration loading and validation.
"""

from slm_watcher.config.config import Settings
from slm_watcher.config.config_validator import ConfigValidator, validate_and_log

__all__ = [
    "Settings",
    "ConfigValidator",
    "validate_and_log",
]
