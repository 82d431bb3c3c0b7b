"""
Job queue package: in-process scheduler that drives watcher jobs.
"""

from slm_watcher.jobqueue.watch_queue import (
    QueueFullError,
    TickResult,
    WatchJob,
    WatchQueue,
    WatchQueueConfig,
)

__all__ = [
    "QueueFullError",
    "TickResult",
    "WatchJob",
    "WatchQueue",
    "WatchQueueConfig",
]
