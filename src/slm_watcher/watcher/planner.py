"""
Compensation Planner.

Given a qualifying cancellation and a fresh position snapshot, decide whether
an exit order is needed and build it.

The exit reuses the cancelled order's transaction type: the watched SL-M
order was itself an exit, so reissuing it at market re-attempts the same
exit intent for the quantity the exchange failed to execute.
"""

from __future__ import annotations

from typing import Optional

from slm_watcher.broker.models import (
    BrokerConstants,
    ExitOrderRequest,
    OrderEvent,
    Position,
    PositionSnapshot,
)


def find_open_position(
    snapshot: PositionSnapshot,
    tradingsymbol: str,
    exchange: str,
    product: str,
    min_quantity: int,
) -> Optional[Position]:
    """First net position on the instrument whose absolute size covers ``min_quantity``."""
    for position in snapshot:
        if (
            position.tradingsymbol == tradingsymbol
            and position.exchange == exchange
            and position.product == product
            and abs(position.quantity) >= min_quantity
        ):
            return position
    return None


def plan_compensation(
    cancellation: OrderEvent,
    snapshot: PositionSnapshot,
    constants: BrokerConstants,
    order_tag: Optional[str] = None,
) -> Optional[ExitOrderRequest]:
    """
    Build the compensating market order, or None when there is nothing to square off.

    None is returned when nothing was cancelled or when no open position on
    the same symbol/exchange/product is at least as large as the cancelled
    quantity (e.g. it was already closed by another path).
    """
    qty = cancellation.cancelled_quantity
    if qty <= 0:
        return None

    position = find_open_position(
        snapshot,
        tradingsymbol=cancellation.tradingsymbol,
        exchange=cancellation.exchange,
        product=cancellation.product,
        min_quantity=qty,
    )
    if position is None:
        return None

    return ExitOrderRequest(
        tradingsymbol=cancellation.tradingsymbol,
        exchange=cancellation.exchange,
        product=cancellation.product,
        quantity=qty,
        transaction_type=cancellation.transaction_type,
        order_type=constants.order_type_market,
        tag=order_tag,
    )
