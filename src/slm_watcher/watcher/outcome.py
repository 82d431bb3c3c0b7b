"""
WatchOutcome: the only thing a watcher invocation hands back to the scheduler.

The scheduler looks at ``signal`` alone (RETRY reschedules, DONE stops).
``reason`` and ``is_error`` form a separate channel for operators: failures
swallowed for safety still resolve to DONE, but are distinguishable from a
genuine completion.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class WatchSignal(Enum):
    RETRY = auto()
    DONE = auto()


class WatchAction(Enum):
    NONE = auto()
    COMPENSATED = auto()


class OutcomeReason(Enum):
    """Why an invocation ended the way it did."""
    STILL_PENDING = auto()             # Keep watching
    COMPLETED = auto()                 # Order executed, nothing to do
    CANCELLED_NON_QUALIFYING = auto()  # Cancelled deliberately, position left as-is
    NOTHING_CANCELLED = auto()         # Qualifying cancellation with zero quantity
    NO_POSITION = auto()               # Nothing open to square off
    COMPENSATED = auto()               # Exit order placed
    DISPATCH_FAILED = auto()           # Exit order submission failed
    UNEXPECTED_ERROR = auto()          # Swallowed to protect against double compensation


ERROR_REASONS = frozenset({OutcomeReason.DISPATCH_FAILED, OutcomeReason.UNEXPECTED_ERROR})


@dataclass(frozen=True)
class WatchOutcome:
    signal: WatchSignal
    reason: OutcomeReason
    action: WatchAction = WatchAction.NONE
    new_order_id: Optional[str] = None
    requeued: bool = False
    error: Optional[str] = None

    @property
    def is_retry(self) -> bool:
        return self.signal is WatchSignal.RETRY

    @property
    def is_done(self) -> bool:
        return self.signal is WatchSignal.DONE

    @property
    def is_error(self) -> bool:
        return self.reason in ERROR_REASONS

    @classmethod
    def retry(cls) -> "WatchOutcome":
        return cls(signal=WatchSignal.RETRY, reason=OutcomeReason.STILL_PENDING)

    @classmethod
    def done(cls, reason: OutcomeReason) -> "WatchOutcome":
        return cls(signal=WatchSignal.DONE, reason=reason)

    @classmethod
    def compensated(cls, new_order_id: str, requeued: bool) -> "WatchOutcome":
        return cls(
            signal=WatchSignal.DONE,
            reason=OutcomeReason.COMPENSATED,
            action=WatchAction.COMPENSATED,
            new_order_id=new_order_id,
            requeued=requeued,
        )

    @classmethod
    def failed(cls, reason: OutcomeReason, error: str) -> "WatchOutcome":
        return cls(signal=WatchSignal.DONE, reason=reason, error=error)

    def to_dict(self) -> dict:
        return {
            "signal": self.signal.name,
            "reason": self.reason.name,
            "action": self.action.name,
            "new_order_id": self.new_order_id,
            "requeued": self.requeued,
            "error": self.error,
        }
