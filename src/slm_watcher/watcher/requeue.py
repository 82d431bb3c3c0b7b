"""
RequeueController: enrols a freshly placed exit order for watching.

Best effort only. The exit order is already live when this runs, so a queue
failure is logged and reported but never rolls back or repeats the order,
and never changes the current job's DONE outcome. The accepted cost is that
the new order may go unwatched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

log = logging.getLogger("slm_watcher")


class JobQueue(Protocol):
    async def enqueue(self, initial_job_data: Dict[str, Any], successor_payload: Dict[str, Any]) -> Any:
        ...


@dataclass
class RequeueResult:
    success: bool
    order_id: str
    error: Optional[str] = None


def build_successor_payload(
    order_id: str,
    raw_order_response: Optional[Dict[str, Any]],
    account: Any = None,
) -> Dict[str, Any]:
    """Payload that carries the new order's identity into the watcher queue."""
    return {
        "orderId": order_id,
        "rawOrderResponse": dict(raw_order_response or {"order_id": order_id}),
        "account": account,
    }


class RequeueController:
    def __init__(
        self,
        queue: JobQueue,
        log_event_callback: Optional[Callable[..., None]] = None,
        on_failure: Optional[Callable[[str, str], Awaitable[Any]]] = None,
    ) -> None:
        """
        Args:
            queue: Job queue exposing ``enqueue(initial_job_data, successor_payload)``
            log_event_callback: Optional structured log sink
            on_failure: Optional async hook called with (order_id, error) on failure
        """
        self.queue = queue
        self._log_event = log_event_callback or self._default_log
        self._on_failure = on_failure

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = logging.ERROR if event.endswith("_error") else logging.INFO
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    async def requeue(
        self,
        initial_job_data: Dict[str, Any],
        order_id: str,
        raw_order_response: Optional[Dict[str, Any]] = None,
        account: Any = None,
    ) -> RequeueResult:
        payload = build_successor_payload(order_id, raw_order_response, account)
        try:
            await self.queue.enqueue(initial_job_data, payload)
        except Exception as exc:
            self._log_event(
                "slm_requeue_error",
                order_id=order_id,
                order_tag=initial_job_data.get("orderTag"),
                error=str(exc),
                error_class=type(exc).__name__,
            )
            if self._on_failure is not None:
                try:
                    await self._on_failure(order_id, str(exc))
                except Exception as hook_exc:
                    self._log_event("slm_requeue_hook_error", order_id=order_id, error=str(hook_exc))
            return RequeueResult(success=False, order_id=order_id, error=str(exc))

        self._log_event(
            "slm_requeued",
            order_id=order_id,
            order_tag=initial_job_data.get("orderTag"),
        )
        return RequeueResult(success=True, order_id=order_id)
