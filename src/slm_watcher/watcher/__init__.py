"""
Watcher components for stop-loss-market orders.

- classify_history: Order History Classifier and Cancellation Cause Filter
- plan_compensation: Compensation Planner
- ExitDispatcher: places the compensating market order
- RequeueController: re-enrols the new order for watching
- SlmWatcher: per-invocation orchestrator returning a WatchOutcome
"""

from slm_watcher.watcher.classifier import (
    Classification,
    ClassificationKind,
    classify_history,
    is_qualifying_cancellation,
)
from slm_watcher.watcher.dispatcher import DispatchResult, ExitDispatcher
from slm_watcher.watcher.outcome import OutcomeReason, WatchAction, WatchOutcome, WatchSignal
from slm_watcher.watcher.planner import find_open_position, plan_compensation
from slm_watcher.watcher.requeue import RequeueController, RequeueResult, build_successor_payload
from slm_watcher.watcher.slm_watcher import SlmWatcher, WatcherConfig

__all__ = [
    "Classification",
    "ClassificationKind",
    "classify_history",
    "is_qualifying_cancellation",
    "DispatchResult",
    "ExitDispatcher",
    "OutcomeReason",
    "WatchAction",
    "WatchOutcome",
    "WatchSignal",
    "find_open_position",
    "plan_compensation",
    "RequeueController",
    "RequeueResult",
    "build_successor_payload",
    "SlmWatcher",
    "WatcherConfig",
]
