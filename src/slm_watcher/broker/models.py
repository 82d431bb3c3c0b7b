"""
Broker data model: order history events, positions and exit order requests.

All records are immutable once parsed. Field names on the wire follow the
Kite Connect payloads (``tradingsymbol``, ``cancelled_quantity``,
``status_message_raw`` ...); the Python attributes use snake_case.

Broker-defined strings (order statuses, the execution-range rejection
message, the market order type) live in ``BrokerConstants`` so that watcher
logic never compares against hardcoded literals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from slm_watcher.broker.errors import BrokerResponseError

# Kite Connect values
KITE_STATUS_COMPLETE = "COMPLETE"
KITE_STATUS_CANCELLED = "CANCELLED"
KITE_OUT_OF_RANGE_MESSAGE = "17070 : The Price is out of the current execution range"
KITE_ORDER_TYPE_MARKET = "MARKET"
KITE_VARIETY_REGULAR = "regular"


@dataclass(frozen=True)
class BrokerConstants:
    """Broker-defined status and order constants."""
    status_complete: str = KITE_STATUS_COMPLETE
    status_cancelled: str = KITE_STATUS_CANCELLED
    out_of_range_message: str = KITE_OUT_OF_RANGE_MESSAGE
    order_type_market: str = KITE_ORDER_TYPE_MARKET
    variety_regular: str = KITE_VARIETY_REGULAR


def _to_int(value: Any, field_name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise BrokerResponseError(f"Invalid integer for {field_name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise BrokerResponseError(f"Invalid integer for {field_name}: {value!r}") from exc
    # "20" and 20.0 are accepted; fractional quantities are malformed
    if not number.is_integer():
        raise BrokerResponseError(f"Non-integral {field_name}: {value!r}")
    return int(number)


@dataclass(frozen=True)
class OrderEvent:
    """One historical state snapshot of an order as reported by the exchange."""
    order_id: str
    status: str
    cancelled_quantity: int = 0
    status_message_raw: Optional[str] = None
    transaction_type: str = ""
    tradingsymbol: str = ""
    exchange: str = ""
    product: str = ""

    def __post_init__(self) -> None:
        if self.cancelled_quantity < 0:
            raise ValueError(
                f"cancelled_quantity must be >= 0, got {self.cancelled_quantity}"
            )

    @property
    def instrument(self) -> Tuple[str, str, str]:
        return (self.tradingsymbol, self.exchange, self.product)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "OrderEvent":
        if not isinstance(payload, dict):
            raise BrokerResponseError(f"Order event must be a mapping, got {type(payload).__name__}")
        return cls(
            order_id=str(payload.get("order_id") or ""),
            status=str(payload.get("status") or ""),
            cancelled_quantity=_to_int(payload.get("cancelled_quantity"), "cancelled_quantity"),
            status_message_raw=payload.get("status_message_raw"),
            transaction_type=str(payload.get("transaction_type") or ""),
            tradingsymbol=str(payload.get("tradingsymbol") or ""),
            exchange=str(payload.get("exchange") or ""),
            product=str(payload.get("product") or ""),
        )


@dataclass(frozen=True)
class Position:
    """One open net position row."""
    tradingsymbol: str
    exchange: str
    product: str
    quantity: int

    @property
    def instrument(self) -> Tuple[str, str, str]:
        return (self.tradingsymbol, self.exchange, self.product)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Position":
        if not isinstance(payload, dict):
            raise BrokerResponseError(f"Position must be a mapping, got {type(payload).__name__}")
        return cls(
            tradingsymbol=str(payload.get("tradingsymbol") or ""),
            exchange=str(payload.get("exchange") or ""),
            product=str(payload.get("product") or ""),
            quantity=_to_int(payload.get("quantity"), "quantity"),
        )


@dataclass(frozen=True)
class PositionSnapshot:
    """Net positions fetched for a single watcher invocation."""
    positions: Tuple[Position, ...] = ()

    def __iter__(self):
        return iter(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    @classmethod
    def from_rows(cls, rows: Iterable[Position]) -> "PositionSnapshot":
        return cls(positions=tuple(rows))

    @classmethod
    def from_payload(cls, payload: Any) -> "PositionSnapshot":
        """Parse ``{"net": [...], "day": [...]}``; only net rows are kept."""
        if isinstance(payload, dict):
            rows = payload.get("net") or []
        elif isinstance(payload, list):
            rows = payload
        else:
            raise BrokerResponseError(f"Unexpected positions payload: {type(payload).__name__}")
        return cls(positions=tuple(Position.from_payload(r) for r in rows))


@dataclass(frozen=True)
class ExitOrderRequest:
    """Market order that squares off the quantity left by a cancellation."""
    tradingsymbol: str
    exchange: str
    product: str
    quantity: int
    transaction_type: str
    order_type: str
    tag: Optional[str] = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Exit order quantity must be positive, got {self.quantity}")

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "tradingsymbol": self.tradingsymbol,
            "exchange": self.exchange,
            "product": self.product,
            "quantity": self.quantity,
            "transaction_type": self.transaction_type,
            "order_type": self.order_type,
        }
        if self.tag is not None:
            params["tag"] = self.tag
        return params


@dataclass(frozen=True)
class PlacedOrder:
    """Broker confirmation for a newly placed order."""
    order_id: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WatcherJobInput:
    """
    Input for one watcher job.

    ``initial_job_data`` is carried through every link of a compensation chain
    untouched; only ``orderTag`` is read from it.
    """
    watched_order_id: str
    account: Any = None
    initial_job_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def order_tag(self) -> Optional[str]:
        return self.initial_job_data.get("orderTag")

    @classmethod
    def from_queue_payload(
        cls,
        initial_job_data: Dict[str, Any],
        successor_payload: Dict[str, Any],
        account: Any = None,
    ) -> "WatcherJobInput":
        raw = successor_payload.get("rawOrderResponse") or {}
        order_id = successor_payload.get("orderId") or raw.get("order_id")
        if not order_id:
            raise ValueError("Successor payload carries no order id")
        return cls(
            watched_order_id=str(order_id),
            account=successor_payload.get("account", account),
            initial_job_data=initial_job_data,
        )


def parse_order_history(payload: Any) -> List[OrderEvent]:
    """Parse an order history list (oldest-first on the wire)."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise BrokerResponseError(f"Order history must be a list, got {type(payload).__name__}")
    return [OrderEvent.from_payload(p) for p in payload]
