"""
Broker package.

This package contains the broker data model, the Kite Connect REST client
and a deterministic fake broker for mock mode and tests.
"""

from slm_watcher.broker.errors import BrokerError, BrokerResponseError
from slm_watcher.broker.fake_broker import FakeBroker
from slm_watcher.broker.kite_client import BrokerClient, KiteClient
from slm_watcher.broker.models import (
    BrokerConstants,
    ExitOrderRequest,
    OrderEvent,
    PlacedOrder,
    Position,
    PositionSnapshot,
    WatcherJobInput,
)

__all__ = [
    "BrokerError",
    "BrokerResponseError",
    "FakeBroker",
    "BrokerClient",
    "KiteClient",
    "BrokerConstants",
    "ExitOrderRequest",
    "OrderEvent",
    "PlacedOrder",
    "Position",
    "PositionSnapshot",
    "WatcherJobInput",
]
