"""
Order History Classifier.

Turns the exchange-reported history of one order into exactly one of four
classes:

    PENDING ──┬──> COMPLETED
              ├──> CANCELLED_NON_QUALIFYING
              └──> CANCELLED_QUALIFYING

Rules, applied to the history searched from most recent to oldest:
- Any COMPLETE event wins, even if cancellation events are also present.
  An order that started executing is assumed to complete eventually.
- Otherwise the most recent event whose status contains the broker's
  CANCELLED value is selected. With several partial-cancel events the newest
  one decides ``cancelled_quantity`` and ``status_message_raw``.
- Otherwise (including an empty history) the order is still PENDING.

The function is pure: same history and flags, same classification.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Sequence

from slm_watcher.broker.models import BrokerConstants, OrderEvent


class ClassificationKind(Enum):
    """Classification of a watched order's history."""
    PENDING = auto()
    COMPLETED = auto()
    CANCELLED_QUALIFYING = auto()
    CANCELLED_NON_QUALIFYING = auto()

    @property
    def is_terminal(self) -> bool:
        return self is not ClassificationKind.PENDING


@dataclass(frozen=True)
class Classification:
    kind: ClassificationKind
    event: Optional[OrderEvent] = None

    @property
    def is_cancelled(self) -> bool:
        return self.kind in (
            ClassificationKind.CANCELLED_QUALIFYING,
            ClassificationKind.CANCELLED_NON_QUALIFYING,
        )


def is_qualifying_cancellation(
    event: OrderEvent,
    constants: BrokerConstants,
    watch_manual_cancellations: bool = False,
) -> bool:
    """
    Cancellation Cause Filter.

    Only the exchange's execution-range rejection qualifies for compensation.
    ``watch_manual_cancellations`` makes every cancellation qualify, including
    ones made by a person or another process; it exists for testing and must
    stay off on live accounts.
    """
    if watch_manual_cancellations:
        return True
    return event.status_message_raw == constants.out_of_range_message


def classify_history(
    history: Sequence[OrderEvent],
    constants: BrokerConstants,
    watch_manual_cancellations: bool = False,
) -> Classification:
    """
    Classify an oldest-first order history.

    Args:
        history: Order events as reported by the exchange (oldest first)
        constants: Broker status constants
        watch_manual_cancellations: Treat every cancellation as qualifying

    Returns:
        Classification with the deciding event (None when pending)
    """
    newest_first = list(reversed(history))

    for event in newest_first:
        if event.status == constants.status_complete:
            return Classification(ClassificationKind.COMPLETED, event)

    cancelled = next(
        (e for e in newest_first if constants.status_cancelled in e.status),
        None,
    )
    if cancelled is None:
        return Classification(ClassificationKind.PENDING)

    if is_qualifying_cancellation(cancelled, constants, watch_manual_cancellations):
        return Classification(ClassificationKind.CANCELLED_QUALIFYING, cancelled)
    return Classification(ClassificationKind.CANCELLED_NON_QUALIFYING, cancelled)
