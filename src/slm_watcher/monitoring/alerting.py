"""
Webhook alerts for conditions an operator has to act on.

Alerted conditions:
- compensating exit order could not be placed (exposure may still be open)
- exit order placed but not enrolled for watching
- watcher invocation terminated by an unexpected error
- out-of-range cancellation with no matching open position
- hazardous configuration at startup

Alerts are rate limited per (type, order) and delivered in small batches by
a background task. Delivery failures are logged and never raised: a webhook
outage must not change what the watcher does.

Usage:
    alerts = configure_alerts(webhook_url="https://hooks.slack.com/...", webhook_type="slack")
    await alerts.alert_dispatch_failed("230101000000001", "Insufficient margin", quantity=20)
    await alerts.flush()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

WEBHOOK_TYPES = ("generic", "slack", "discord")


class AlertSeverity(Enum):
    CRITICAL = auto()
    WARNING = auto()
    INFO = auto()


# severity -> (emoji, RGB color)
SEVERITY_STYLE: Dict[AlertSeverity, Tuple[str, int]] = {
    AlertSeverity.CRITICAL: ("🚨", 0xFF0000),
    AlertSeverity.WARNING: ("⚠️", 0xFFA500),
    AlertSeverity.INFO: ("ℹ️", 0x0000FF),
}


class AlertType(Enum):
    EXIT_DISPATCH_FAILED = auto()
    REQUEUE_FAILED = auto()
    WATCHER_ERROR = auto()
    NO_OPEN_POSITION = auto()
    HAZARD_CONFIG = auto()
    STARTUP = auto()
    SHUTDOWN = auto()


@dataclass
class Alert:
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    details: Dict[str, Any] = field(default_factory=dict)
    order_id: Optional[str] = None

    @property
    def rate_limit_key(self) -> str:
        return f"{self.alert_type.name}:{self.order_id or 'global'}"

    @property
    def timestamp_iso(self) -> str:
        return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.timestamp_ms / 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.alert_type.name,
            "severity": self.severity.name,
            "title": self.title,
            "message": self.message,
            "order_id": self.order_id,
            "details": self.details,
            "timestamp_ms": self.timestamp_ms,
            "timestamp_iso": self.timestamp_iso,
        }


@dataclass
class AlertConfig:
    webhook_url: Optional[str] = None
    webhook_type: str = "generic"  # one of WEBHOOK_TYPES
    min_severity: AlertSeverity = AlertSeverity.WARNING
    rate_limit_seconds: int = 60
    batch_window_ms: int = 2000
    enabled: bool = True
    include_details: bool = True
    bot_name: str = "SLMWatcher"
    http_timeout: float = 10.0


class WebhookFormatter:
    """Per-service payload shapes. Each returns the body for a single alert."""

    MAX_DETAIL_FIELDS = 5

    @classmethod
    def _fields(cls, alert: Alert, config: AlertConfig) -> List[Tuple[str, str]]:
        fields = []
        if alert.order_id:
            fields.append(("Order", alert.order_id))
        fields.append(("Type", alert.alert_type.name))
        if config.include_details:
            details = list(alert.details.items())[:cls.MAX_DETAIL_FIELDS]
            fields.extend((key, str(value)) for key, value in details)
        return fields

    @staticmethod
    def format_generic(alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        return alert.to_dict()

    @classmethod
    def format_slack(cls, alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        emoji, color = SEVERITY_STYLE.get(alert.severity, ("📢", 0x808080))
        return {
            "username": config.bot_name,
            "icon_emoji": ":robot_face:",
            "attachments": [{
                "color": f"#{color:06X}",
                "title": f"{emoji} {alert.title}",
                "text": alert.message,
                "fields": [
                    {"title": name, "value": value, "short": True}
                    for name, value in cls._fields(alert, config)
                ],
                "footer": f"{config.bot_name} | {alert.severity.name}",
                "ts": alert.timestamp_ms // 1000,
            }],
        }

    @classmethod
    def format_discord(cls, alert: Alert, config: AlertConfig) -> Dict[str, Any]:
        _, color = SEVERITY_STYLE.get(alert.severity, ("", 0x808080))
        return {
            "username": config.bot_name,
            "embeds": [{
                "title": alert.title,
                "description": alert.message,
                "color": color,
                "fields": [
                    {"name": name, "value": value, "inline": True}
                    for name, value in cls._fields(alert, config)
                ],
                "footer": {"text": f"{config.bot_name} | {alert.severity.name}"},
                "timestamp": alert.timestamp_iso,
            }],
        }


FORMATTERS = {
    "generic": WebhookFormatter.format_generic,
    "slack": WebhookFormatter.format_slack,
    "discord": WebhookFormatter.format_discord,
}


class AlertManager:
    """
    Rate-limited, batched webhook delivery.

    ``client`` may be a shared ``httpx.AsyncClient``; without one a client is
    opened per delivery.
    """

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or AlertConfig()
        self._client = client
        self._last_sent_ms: Dict[str, int] = {}
        self._pending: List[Alert] = []
        self._batch_task: Optional[asyncio.Task] = None

    def _should_send(self, alert: Alert) -> bool:
        if not self.config.enabled:
            return False
        if not self.config.webhook_url:
            logger.debug(f"No webhook configured, dropping alert: {alert.title}")
            return False
        # Enum order: CRITICAL < WARNING < INFO
        if alert.severity.value > self.config.min_severity.value:
            return False

        last = self._last_sent_ms.get(alert.rate_limit_key)
        if last is not None and alert.timestamp_ms - last < self.config.rate_limit_seconds * 1000:
            logger.debug(f"Alert rate limited: {alert.rate_limit_key}")
            return False
        return True

    async def send_alert(self, alert: Alert) -> bool:
        """Queue ``alert`` for delivery. False when disabled, filtered or rate limited."""
        if not self._should_send(alert):
            return False

        self._last_sent_ms[alert.rate_limit_key] = alert.timestamp_ms
        self._pending.append(alert)
        if self._batch_task is None or self._batch_task.done():
            self._batch_task = asyncio.create_task(self._deliver_pending())
        return True

    async def flush(self) -> None:
        """Deliver everything queued so far, waiting for the in-flight batch first."""
        while True:
            if self._batch_task is not None and not self._batch_task.done():
                await asyncio.gather(self._batch_task, return_exceptions=True)
            elif self._pending:
                self._batch_task = asyncio.create_task(self._deliver_pending(delay_ms=0))
            else:
                return

    async def _deliver_pending(self, delay_ms: Optional[int] = None) -> None:
        window = self.config.batch_window_ms if delay_ms is None else delay_ms
        await asyncio.sleep(window / 1000)
        # Alerts queued while a POST is in flight have no task of their own
        while self._pending:
            batch, self._pending = self._pending, []
            await self._http_post(self._format_batch(batch))

    def _format_batch(self, alerts: List[Alert]) -> Dict[str, Any]:
        formatter = FORMATTERS.get(self.config.webhook_type, WebhookFormatter.format_generic)
        if len(alerts) == 1:
            return formatter(alerts[0], self.config)

        if self.config.webhook_type in ("slack", "discord"):
            key = "attachments" if self.config.webhook_type == "slack" else "embeds"
            payload = formatter(alerts[0], self.config)
            for alert in alerts[1:]:
                payload[key].extend(formatter(alert, self.config)[key])
            return payload
        return {"alerts": [alert.to_dict() for alert in alerts]}

    async def _http_post(self, payload: Dict[str, Any], retries: int = 2) -> bool:
        if not self.config.webhook_url:
            return False

        client = self._client or httpx.AsyncClient(timeout=self.config.http_timeout)
        try:
            for attempt in range(1, retries + 2):
                try:
                    resp = await client.post(self.config.webhook_url, json=payload)
                except httpx.HTTPError as exc:
                    logger.warning(f"Alert delivery error (attempt {attempt}): {exc}")
                else:
                    if resp.is_success:
                        return True
                    logger.warning(f"Alert delivery failed (attempt {attempt}): HTTP {resp.status_code}")
                if attempt <= retries:
                    await asyncio.sleep(attempt)
            return False
        finally:
            if self._client is None:
                await client.aclose()

    # Watcher alerts

    async def alert_dispatch_failed(self, order_id: str, error: str, **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.EXIT_DISPATCH_FAILED,
            severity=AlertSeverity.CRITICAL,
            title="Exit Order Failed",
            message=f"Market exit for cancelled SL-M {order_id} was not placed: {error}. Position may still be open.",
            order_id=order_id,
            details=details,
        ))

    async def alert_requeue_failed(self, order_id: str, error: str, **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.REQUEUE_FAILED,
            severity=AlertSeverity.WARNING,
            title="Exit Order Unwatched",
            message=f"Exit order {order_id} was placed but is not being watched: {error}",
            order_id=order_id,
            details=details,
        ))

    async def alert_watcher_error(self, order_id: str, error: str, **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.WATCHER_ERROR,
            severity=AlertSeverity.CRITICAL,
            title="Watcher Stopped",
            message=f"Watch on {order_id} ended after an unexpected error: {error}",
            order_id=order_id,
            details=details,
        ))

    async def alert_no_position(self, order_id: str, **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.NO_OPEN_POSITION,
            severity=AlertSeverity.WARNING,
            title="No Position To Square Off",
            message=f"SL-M {order_id} was cancelled out of range but no matching open position was found",
            order_id=order_id,
            details=details,
        ))

    async def alert_hazard_config(self, setting: str, message: str) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.HAZARD_CONFIG,
            severity=AlertSeverity.WARNING,
            title=f"{setting} Enabled",
            message=message,
            details={"setting": setting},
        ))

    async def alert_startup(self, order_ids: List[str], **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.STARTUP,
            severity=AlertSeverity.INFO,
            title="Watcher Started",
            message=f"{self.config.bot_name} watching {len(order_ids)} order(s)",
            details={"order_ids": order_ids, **details},
        ))

    async def alert_shutdown(self, reason: str = "normal", **details) -> bool:
        return await self.send_alert(Alert(
            alert_type=AlertType.SHUTDOWN,
            severity=AlertSeverity.INFO if reason == "normal" else AlertSeverity.WARNING,
            title="Watcher Stopped",
            message=f"{self.config.bot_name} shutting down: {reason}",
            details=details,
        ))


def configure_alerts(
    webhook_url: Optional[str] = None,
    webhook_type: str = "generic",
    min_severity: AlertSeverity = AlertSeverity.WARNING,
    enabled: bool = True,
    bot_name: str = "SLMWatcher",
) -> AlertManager:
    return AlertManager(AlertConfig(
        webhook_url=webhook_url,
        webhook_type=webhook_type,
        min_severity=min_severity,
        enabled=enabled,
        bot_name=bot_name,
    ))
