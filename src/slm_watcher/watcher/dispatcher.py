"""
ExitDispatcher: submits the compensating market order.

One attempt per call. A failed submission is reported in the result and
never retried here; retrying a POST whose outcome is unknown risks a second
exit order for the same quantity.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from slm_watcher.broker.models import ExitOrderRequest

if TYPE_CHECKING:
    from slm_watcher.broker.kite_client import BrokerClient

log = logging.getLogger("slm_watcher")


@dataclass
class DispatchResult:
    """Result of an exit order submission."""
    success: bool
    order_id: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: float = 0.0


class ExitDispatcher:
    def __init__(
        self,
        broker: "BrokerClient",
        log_event_callback: Optional[Callable[..., None]] = None,
    ) -> None:
        self.broker = broker
        self._log_event = log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        level = logging.ERROR if event.endswith("_error") else logging.INFO
        log.log(level, json.dumps({"event": event, **kwargs}, default=str))

    async def dispatch(self, request: ExitOrderRequest) -> DispatchResult:
        """
        Place ``request`` with the broker.

        Returns:
            DispatchResult with the new order id on success
        """
        self._log_event("slm_exit_order_submit", **request.to_params())
        start = time.time()
        try:
            placed = await self.broker.place_market_order(request)
        except Exception as exc:
            duration_ms = (time.time() - start) * 1000
            self._log_event(
                "slm_exit_dispatch_error",
                tradingsymbol=request.tradingsymbol,
                quantity=request.quantity,
                error=str(exc),
                error_class=type(exc).__name__,
            )
            return DispatchResult(success=False, error=str(exc), duration_ms=duration_ms)

        duration_ms = (time.time() - start) * 1000
        self._log_event(
            "slm_exit_order_placed",
            order_id=placed.order_id,
            tradingsymbol=request.tradingsymbol,
            quantity=request.quantity,
            transaction_type=request.transaction_type,
            duration_ms=round(duration_ms, 1),
        )
        return DispatchResult(
            success=True,
            order_id=placed.order_id,
            raw=placed.raw,
            duration_ms=duration_ms,
        )
