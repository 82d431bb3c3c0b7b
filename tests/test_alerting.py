"""
Tests for AlertManager rate limiting, formatting and delivery.
"""

import asyncio
import json

import httpx
import pytest

from slm_watcher.monitoring.alerting import (
    Alert,
    AlertConfig,
    AlertManager,
    AlertSeverity,
    AlertType,
    WebhookFormatter,
)


def _alert(order_id="SLM1", severity=AlertSeverity.CRITICAL):
    return Alert(
        alert_type=AlertType.EXIT_DISPATCH_FAILED,
        severity=severity,
        title="Exit Order Failed",
        message="boom",
        order_id=order_id,
        details={"quantity": 20},
    )


class TestSendAlert:
    @pytest.mark.asyncio
    async def test_disabled(self):
        manager = AlertManager(AlertConfig(webhook_url="http://hook", enabled=False))
        assert await manager.send_alert(_alert()) is False

    @pytest.mark.asyncio
    async def test_no_webhook(self):
        manager = AlertManager(AlertConfig())
        assert await manager.send_alert(_alert()) is False

    @pytest.mark.asyncio
    async def test_below_min_severity(self):
        manager = AlertManager(AlertConfig(webhook_url="http://hook", batch_window_ms=0))
        assert await manager.send_alert(_alert(severity=AlertSeverity.INFO)) is False

    @pytest.mark.asyncio
    async def test_rate_limited_per_order(self):
        posted = []

        def handler(request):
            posted.append(json.loads(request.content))
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = AlertManager(
            AlertConfig(webhook_url="http://hook", batch_window_ms=0),
            client=client,
        )

        assert await manager.send_alert(_alert("A")) is True
        assert await manager.send_alert(_alert("A")) is False
        assert await manager.send_alert(_alert("B")) is True
        await manager.flush()
        await client.aclose()

        assert len(posted) == 1
        assert [a["order_id"] for a in posted[0]["alerts"]] == ["A", "B"]


class TestDelivery:
    @pytest.mark.asyncio
    async def test_single_alert_posted_as_generic_payload(self):
        posted = []

        def handler(request):
            posted.append((str(request.url), json.loads(request.content)))
            return httpx.Response(204)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = AlertManager(
            AlertConfig(webhook_url="http://hook/alerts", batch_window_ms=0),
            client=client,
        )

        await manager.alert_dispatch_failed("SLM1", "Insufficient margin", quantity=20)
        await manager.flush()
        await client.aclose()

        url, payload = posted[0]
        assert url == "http://hook/alerts"
        assert payload["type"] == "EXIT_DISPATCH_FAILED"
        assert payload["severity"] == "CRITICAL"
        assert payload["order_id"] == "SLM1"
        assert payload["details"] == {"quantity": 20}

    @pytest.mark.asyncio
    async def test_transport_error_is_not_raised(self, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("refused")

        async def no_sleep(_):
            return None

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = AlertManager(AlertConfig(webhook_url="http://hook"), client=client)
        monkeypatch.setattr("slm_watcher.monitoring.alerting.asyncio.sleep", no_sleep)

        assert await manager._http_post({"x": 1}) is False
        await client.aclose()


class TestFormatters:
    def test_slack(self):
        config = AlertConfig(bot_name="Bot")
        payload = WebhookFormatter.format_slack(_alert(), config)
        attachment = payload["attachments"][0]
        assert payload["username"] == "Bot"
        assert attachment["text"] == "boom"
        assert {"title": "Order", "value": "SLM1", "short": True} in attachment["fields"]

    def test_discord(self):
        payload = WebhookFormatter.format_discord(_alert(), AlertConfig())
        embed = payload["embeds"][0]
        assert embed["color"] == 0xFF0000
        assert embed["description"] == "boom"

    def test_rate_limit_key(self):
        assert _alert("X").rate_limit_key == "EXIT_DISPATCH_FAILED:X"
        assert Alert(AlertType.STARTUP, AlertSeverity.INFO, "t", "m").rate_limit_key == "STARTUP:global"


class TestDeliveryDrain:
    @pytest.mark.asyncio
    async def test_alert_sent_during_inflight_post_is_delivered(self):
        gate = asyncio.Event()
        started = asyncio.Event()
        posted = []

        async def handler(request):
            started.set()
            await gate.wait()
            posted.append(json.loads(request.content)["order_id"])
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = AlertManager(
            AlertConfig(webhook_url="http://hook", batch_window_ms=0),
            client=client,
        )

        assert await manager.send_alert(_alert("A")) is True
        await asyncio.wait_for(started.wait(), timeout=1.0)
        assert await manager.send_alert(_alert("B")) is True
        gate.set()
        await asyncio.wait_for(manager.flush(), timeout=1.0)
        await client.aclose()

        assert posted == ["A", "B"]

    @pytest.mark.asyncio
    async def test_flush_delivers_alerts_without_a_task(self):
        posted = []

        def handler(request):
            posted.append(json.loads(request.content)["order_id"])
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        manager = AlertManager(AlertConfig(webhook_url="http://hook"), client=client)
        manager._pending.append(_alert("C"))

        await asyncio.wait_for(manager.flush(), timeout=1.0)
        await client.aclose()

        assert posted == ["C"]
        assert manager._pending == []
