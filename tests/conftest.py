"""
Pytest configuration and fixtures.
Adds src/ to Python path so tests can import slm_watcher without installing.
"""

import sys
from pathlib import Path

import pytest

# Add the repo root's src/ directory to sys.path
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from slm_watcher.broker.models import BrokerConstants, OrderEvent, Position  # noqa: E402


@pytest.fixture
def constants():
    return BrokerConstants()


@pytest.fixture
def make_event():
    """Build an OrderEvent with sensible defaults for the ABC/NSE/MIS instrument."""
    def _make(status, **kwargs):
        fields = dict(
            order_id="SLM1",
            status=status,
            transaction_type="SELL",
            tradingsymbol="ABC",
            exchange="NSE",
            product="MIS",
        )
        fields.update(kwargs)
        return OrderEvent(**fields)
    return _make


@pytest.fixture
def make_position():
    def _make(quantity, tradingsymbol="ABC", exchange="NSE", product="MIS"):
        return Position(
            tradingsymbol=tradingsymbol,
            exchange=exchange,
            product=product,
            quantity=quantity,
        )
    return _make
