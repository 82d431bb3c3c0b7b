"""
Deterministic in-memory broker.

Used when ``MOCK_ORDERS`` is enabled and by the test suite. Responses are
primed explicitly; nothing is sampled at random.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from slm_watcher.broker.errors import BrokerError
from slm_watcher.broker.models import (
    BrokerConstants,
    ExitOrderRequest,
    OrderEvent,
    PlacedOrder,
    Position,
    PositionSnapshot,
)


class FakeBroker:
    def __init__(
        self,
        constants: Optional[BrokerConstants] = None,
        complete_new_orders: bool = True,
    ) -> None:
        self.constants = constants or BrokerConstants()
        self.complete_new_orders = complete_new_orders
        self.histories: Dict[str, List[OrderEvent]] = {}
        self.positions: List[Position] = []
        self.placed: List[ExitOrderRequest] = []

        # Injected failures
        self.fail_history: Optional[Exception] = None
        self.fail_positions: Optional[Exception] = None
        self.fail_place: Optional[Exception] = None

        self.history_calls: List[str] = []
        self.position_calls = 0
        self._next_id = 1
        self.closed = False

    def set_history(self, order_id: str, events: List[OrderEvent]) -> None:
        self.histories[order_id] = list(events)

    def set_positions(self, positions: List[Position]) -> None:
        self.positions = list(positions)

    async def fetch_order_history(self, order_id: str) -> List[OrderEvent]:
        self.history_calls.append(order_id)
        if self.fail_history is not None:
            raise self.fail_history
        return list(self.histories.get(order_id, []))

    async def fetch_open_positions(self) -> PositionSnapshot:
        self.position_calls += 1
        if self.fail_positions is not None:
            raise self.fail_positions
        return PositionSnapshot.from_rows(self.positions)

    async def place_market_order(self, request: ExitOrderRequest) -> PlacedOrder:
        if self.fail_place is not None:
            raise self.fail_place
        if request.order_type != self.constants.order_type_market:
            raise BrokerError(f"Unsupported order type {request.order_type}", error_type="InputException")
        order_id = f"FAKE{self._next_id:06d}"
        self._next_id += 1
        self.placed.append(request)
        # Market orders fill immediately unless configured to stay open
        self.histories.setdefault(order_id, [
            OrderEvent(
                order_id=order_id,
                status=self.constants.status_complete if self.complete_new_orders else "OPEN",
                transaction_type=request.transaction_type,
                tradingsymbol=request.tradingsymbol,
                exchange=request.exchange,
                product=request.product,
            )
        ])
        return PlacedOrder(order_id=order_id, raw={"order_id": order_id})

    async def close(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    # Canned scenarios
    # ------------------------------------------------------------------

    def prime_out_of_range(
        self,
        order_id: str,
        tradingsymbol: str = "SBIN",
        exchange: str = "NSE",
        product: str = "MIS",
        transaction_type: str = "SELL",
        cancelled_quantity: int = 20,
        position_quantity: int = 40,
    ) -> None:
        """SL-M order cancelled by the exchange for trading outside the execution range."""
        common = dict(
            order_id=order_id,
            transaction_type=transaction_type,
            tradingsymbol=tradingsymbol,
            exchange=exchange,
            product=product,
        )
        self.set_history(order_id, [
            OrderEvent(status="PUT ORDER REQ RECEIVED", **common),
            OrderEvent(status="TRIGGER PENDING", **common),
            OrderEvent(
                status=self.constants.status_cancelled,
                cancelled_quantity=cancelled_quantity,
                status_message_raw=self.constants.out_of_range_message,
                **common,
            ),
        ])
        signed = -position_quantity if transaction_type == "BUY" else position_quantity
        self.positions.append(Position(
            tradingsymbol=tradingsymbol,
            exchange=exchange,
            product=product,
            quantity=signed,
        ))

    def prime_completed(self, order_id: str, tradingsymbol: str = "SBIN") -> None:
        common = dict(
            order_id=order_id,
            transaction_type="SELL",
            tradingsymbol=tradingsymbol,
            exchange="NSE",
            product="MIS",
        )
        self.set_history(order_id, [
            OrderEvent(status="TRIGGER PENDING", **common),
            OrderEvent(status=self.constants.status_complete, **common),
        ])
