"""
SlmWatcher: watches a stop-loss-market order until it reaches a terminal state.

The exchange cancels SL-M orders that trigger outside the permitted execution
range. The order may be partially filled before that, or cancelled in full.

Per invocation:
    1. Fetch the order history (fresh every time, nothing cached)
    2. Classify it
       - PENDING                  → RETRY
       - COMPLETED                → DONE
       - CANCELLED_NON_QUALIFYING → DONE (position left as the operator chose)
       - CANCELLED_QUALIFYING     → continue
    3. Fetch open positions and plan a market exit for the cancelled quantity
    4. Place the exit order (single attempt)
    5. Requeue the new order for the same watcher treatment (best effort)
    6. DONE

Safety:
    Every exception resolves to DONE with reason UNEXPECTED_ERROR rather than
    an error signal. A scheduler-level retry of this job after a partially
    completed invocation could place a second exit order for the same
    cancellation; leaving one order unwatched is the accepted alternative.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional, TYPE_CHECKING

from slm_watcher.broker.models import WatcherJobInput
from slm_watcher.watcher.classifier import ClassificationKind, classify_history
from slm_watcher.watcher.dispatcher import ExitDispatcher
from slm_watcher.watcher.outcome import OutcomeReason, WatchOutcome
from slm_watcher.watcher.planner import plan_compensation
from slm_watcher.watcher.requeue import JobQueue, RequeueController

if TYPE_CHECKING:
    from slm_watcher.broker.kite_client import BrokerClient
    from slm_watcher.monitoring.alerting import AlertManager
    from slm_watcher.monitoring.metrics import WatcherMetrics

log = logging.getLogger("slm_watcher")


@dataclass(frozen=True)
class WatcherConfig:
    """Configuration for SlmWatcher."""
    # Test-only. Every cancellation, including manual ones, triggers a market exit.
    watch_manual_cancelled_orders: bool = False

    log_event_callback: Optional[Callable[..., None]] = None


class SlmWatcher:
    """
    Watcher job orchestrator.

    Usage:
        watcher = SlmWatcher(broker=kite, queue=watch_queue, config=WatcherConfig())
        outcome = await watcher.run(WatcherJobInput("230101000000001", initial_job_data={"orderTag": "x"}))
        if outcome.is_retry:
            ...  # scheduler re-invokes on the next tick
    """

    LEVELS = {
        "slm_watcher_error": logging.ERROR,
        "slm_exit_dispatch_error": logging.ERROR,
        "slm_requeue_error": logging.ERROR,
        "slm_no_open_position": logging.WARNING,
        "slm_watch_pending": logging.DEBUG,
    }

    def __init__(
        self,
        broker: "BrokerClient",
        queue: JobQueue,
        config: Optional[WatcherConfig] = None,
        alert_manager: Optional["AlertManager"] = None,
        metrics: Optional["WatcherMetrics"] = None,
    ) -> None:
        self.broker = broker
        self.config = config or WatcherConfig()
        self.alert_manager = alert_manager
        self.metrics = metrics

        self._log_event = self.config.log_event_callback or self._default_log
        self.dispatcher = ExitDispatcher(broker, log_event_callback=self._log_event)
        self.requeue_controller = RequeueController(
            queue,
            log_event_callback=self._log_event,
            on_failure=self._on_requeue_failure,
        )

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = self.LEVELS.get(event, logging.INFO)
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    async def __call__(self, job: WatcherJobInput) -> WatchOutcome:
        return await self.run(job)

    async def run(self, job: WatcherJobInput) -> WatchOutcome:
        """Run one invocation for ``job``. Never raises except on task cancellation."""
        start = time.time()
        try:
            if self.metrics is not None:
                self.metrics.invocations.inc()
            outcome = await self._watch(job)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._safe_log(
                "slm_watcher_error",
                order_id=job.watched_order_id,
                error=str(exc),
                error_class=type(exc).__name__,
                traceback=traceback.format_exc(),
            )
            await self._alert("alert_watcher_error", job.watched_order_id, str(exc))
            outcome = WatchOutcome.failed(OutcomeReason.UNEXPECTED_ERROR, str(exc))

        # The outcome is final here; bookkeeping failures must not change it
        try:
            self._record(job, outcome, start)
        except Exception:
            log.exception(f"Failed to record outcome for {job.watched_order_id}")
        return outcome

    def _safe_log(self, event: str, **kwargs: Any) -> None:
        try:
            self._log_event(event, **kwargs)
        except Exception:
            log.exception(f"log_event_callback failed for {event}")

    async def _watch(self, job: WatcherJobInput) -> WatchOutcome:
        constants = self.broker.constants
        order_id = job.watched_order_id

        history = await self.broker.fetch_order_history(order_id)
        classification = classify_history(
            history,
            constants,
            watch_manual_cancellations=self.config.watch_manual_cancelled_orders,
        )

        if classification.kind is ClassificationKind.PENDING:
            self._log_event("slm_watch_pending", order_id=order_id, events=len(history))
            return WatchOutcome.retry()

        if classification.kind is ClassificationKind.COMPLETED:
            self._log_event("slm_order_completed", order_id=order_id)
            return WatchOutcome.done(OutcomeReason.COMPLETED)

        cancelled = classification.event
        if classification.kind is ClassificationKind.CANCELLED_NON_QUALIFYING:
            self._log_event(
                "slm_cancelled_by_user",
                order_id=order_id,
                status_message_raw=cancelled.status_message_raw,
            )
            return WatchOutcome.done(OutcomeReason.CANCELLED_NON_QUALIFYING)

        self._log_event(
            "slm_cancelled_out_of_range",
            order_id=order_id,
            cancelled_quantity=cancelled.cancelled_quantity,
            status_message_raw=cancelled.status_message_raw,
            manual_override=self.config.watch_manual_cancelled_orders,
        )

        if cancelled.cancelled_quantity <= 0:
            self._log_event("slm_nothing_cancelled", order_id=order_id)
            return WatchOutcome.done(OutcomeReason.NOTHING_CANCELLED)

        snapshot = await self.broker.fetch_open_positions()
        request = plan_compensation(cancelled, snapshot, constants, order_tag=job.order_tag)
        if request is None:
            self._log_event(
                "slm_no_open_position",
                order_id=order_id,
                tradingsymbol=cancelled.tradingsymbol,
                exchange=cancelled.exchange,
                product=cancelled.product,
                cancelled_quantity=cancelled.cancelled_quantity,
            )
            await self._alert(
                "alert_no_position",
                order_id,
                tradingsymbol=cancelled.tradingsymbol,
                cancelled_quantity=cancelled.cancelled_quantity,
            )
            return WatchOutcome.done(OutcomeReason.NO_POSITION)

        result = await self.dispatcher.dispatch(request)
        if not result.success:
            if self.metrics is not None:
                self.metrics.exit_orders.labels(result="failed").inc()
            await self._alert(
                "alert_dispatch_failed",
                order_id,
                result.error or "unknown error",
                tradingsymbol=request.tradingsymbol,
                quantity=request.quantity,
            )
            return WatchOutcome.failed(OutcomeReason.DISPATCH_FAILED, result.error or "unknown error")

        if self.metrics is not None:
            self.metrics.exit_orders.labels(result="placed").inc()

        requeued = await self.requeue_controller.requeue(
            job.initial_job_data,
            result.order_id,
            raw_order_response=result.raw,
            account=job.account,
        )
        if self.metrics is not None:
            self.metrics.requeues.labels(result="ok" if requeued.success else "failed").inc()

        return WatchOutcome.compensated(result.order_id, requeued=requeued.success)

    async def _on_requeue_failure(self, order_id: str, error: str) -> None:
        await self._alert("alert_requeue_failed", order_id, error)

    async def _alert(self, method: str, *args: Any, **kwargs: Any) -> None:
        if self.alert_manager is None:
            return
        try:
            await getattr(self.alert_manager, method)(*args, **kwargs)
        except Exception as exc:
            self._safe_log("slm_alert_error", alert=method, error=str(exc))

    def _record(self, job: WatcherJobInput, outcome: WatchOutcome, start: float) -> None:
        duration_ms = (time.time() - start) * 1000
        if self.metrics is not None:
            self.metrics.outcomes.labels(reason=outcome.reason.name).inc()
            self.metrics.duration_ms.observe(duration_ms)
        if outcome.is_done:
            self._log_event(
                "slm_watch_done",
                order_id=job.watched_order_id,
                duration_ms=round(duration_ms, 1),
                **outcome.to_dict(),
            )
