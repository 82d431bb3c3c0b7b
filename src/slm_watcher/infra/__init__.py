"""
Infrastructure package: logging configuration.
"""

from slm_watcher.infra.logging_cfg import build_logger, log_event

__all__ = [
    "build_logger",
    "log_event",
]
