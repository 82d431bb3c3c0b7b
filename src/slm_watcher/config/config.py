"""
Environment-driven configuration.

WATCH_MANUAL_CANCELLED_ORDERS is for testing only. Do NOT enable it on a live
account: with it on, any cancellation of a watched order, including one made
by a person or by another strategy replacing its own SL-M order, squares the
position off at market.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from slm_watcher.broker.models import (
    KITE_OUT_OF_RANGE_MESSAGE,
    KITE_STATUS_CANCELLED,
    KITE_STATUS_COMPLETE,
    BrokerConstants,
)

load_dotenv()


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None or val == "":
        return default
    return val.strip().lower() in {"1", "true", "yes", "y"}


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return int(raw)


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return float(raw)


def _list_env(key: str) -> List[str]:
    raw = os.getenv(key) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    # Broker
    api_key: str | None = None
    access_token: str | None = None
    base_url: str = "https://api.kite.trade"
    http_timeout: float = 10.0
    status_complete: str = KITE_STATUS_COMPLETE
    status_cancelled: str = KITE_STATUS_CANCELLED
    out_of_range_message: str = KITE_OUT_OF_RANGE_MESSAGE
    # Behaviour switches (both off unless explicitly enabled)
    mock_orders: bool = False
    watch_manual_cancelled_orders: bool = False
    # Scheduling
    poll_interval_sec: float = 5.0
    max_jobs: int = 500
    watch_order_ids: List[str] = field(default_factory=list)
    order_tag: str | None = None
    account: str = "default"
    # Logging
    log_level: str = "INFO"
    log_file: str | None = "slm_watcher.log"
    # Alerting
    alert_enabled: bool = False
    alert_webhook_url: str | None = None
    alert_webhook_type: str = "generic"  # generic, slack, discord
    # Metrics (0 disables the HTTP endpoint)
    metrics_port: int = 0

    def dump(self) -> dict:
        """Return a dict of settings for logging, with secrets masked."""
        data = self.__dict__.copy()
        for key in ("api_key", "access_token"):
            if data.get(key):
                data[key] = "***"
        return data

    def broker_constants(self) -> BrokerConstants:
        return BrokerConstants(
            status_complete=self.status_complete,
            status_cancelled=self.status_cancelled,
            out_of_range_message=self.out_of_range_message,
        )

    @classmethod
    def load(cls) -> "Settings":
        return cls(
            api_key=os.getenv("KITE_API_KEY") or None,
            access_token=os.getenv("KITE_ACCESS_TOKEN") or None,
            base_url=os.getenv("KITE_BASE_URL", "https://api.kite.trade"),
            http_timeout=_float_env("KITE_HTTP_TIMEOUT", 10.0),
            status_complete=os.getenv("BROKER_STATUS_COMPLETE") or KITE_STATUS_COMPLETE,
            status_cancelled=os.getenv("BROKER_STATUS_CANCELLED") or KITE_STATUS_CANCELLED,
            out_of_range_message=os.getenv("BROKER_OUT_OF_RANGE_MESSAGE") or KITE_OUT_OF_RANGE_MESSAGE,
            mock_orders=env_bool("MOCK_ORDERS", False),
            watch_manual_cancelled_orders=env_bool("WATCH_MANUAL_CANCELLED_ORDERS", False),
            poll_interval_sec=_float_env("WATCHER_POLL_INTERVAL_SEC", 5.0),
            max_jobs=_int_env("WATCHER_MAX_JOBS", 500),
            watch_order_ids=_list_env("WATCHER_ORDER_IDS"),
            order_tag=os.getenv("WATCHER_ORDER_TAG") or None,
            account=os.getenv("WATCHER_ACCOUNT", "default"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE", "slm_watcher.log") or None,
            alert_enabled=env_bool("ALERT_ENABLED", False),
            alert_webhook_url=os.getenv("ALERT_WEBHOOK_URL") or None,
            alert_webhook_type=os.getenv("ALERT_WEBHOOK_TYPE", "generic"),
            metrics_port=_int_env("METRICS_PORT", 0),
        )
