"""
Tests for structured logging helpers.
"""

import json
import logging

from slm_watcher.infra.logging_cfg import JsonFormatter, ThrottledFilter, log_event


def _record(msg):
    return logging.LogRecord("slm_watcher", logging.INFO, __file__, 1, msg, None, None)


class TestThrottledFilter:
    def test_pending_repeats_suppressed_per_order(self):
        f = ThrottledFilter(cooldown_sec=60)
        pending_a = json.dumps({"event": "slm_watch_pending", "order_id": "A"})
        pending_b = json.dumps({"event": "slm_watch_pending", "order_id": "B"})

        assert f.filter(_record(pending_a)) is True
        assert f.filter(_record(pending_a)) is False
        assert f.filter(_record(pending_b)) is True

    def test_other_events_pass(self):
        f = ThrottledFilter(cooldown_sec=60)
        msg = json.dumps({"event": "slm_exit_order_placed", "order_id": "A"})
        assert f.filter(_record(msg)) is True
        assert f.filter(_record(msg)) is True
        assert f.filter(_record("plain text")) is True


def test_json_formatter():
    line = JsonFormatter().format(_record("hello"))
    data = json.loads(line)
    assert data["level"] == "INFO"
    assert data["msg"] == "hello"
    assert data["name"] == "slm_watcher"


def test_log_event_serializes_payload(caplog):
    logger = logging.getLogger("slm_watcher.test_events")
    with caplog.at_level(logging.INFO, logger="slm_watcher.test_events"):
        log_event(logger, "slm_requeued", order_id="NEW1", attempts=1)
    assert json.loads(caplog.records[-1].getMessage()) == {
        "event": "slm_requeued", "order_id": "NEW1", "attempts": 1,
    }


def test_json_formatter_lifts_event_fields():
    msg = json.dumps({"event": "slm_exit_order_placed", "order_id": "NEW1", "quantity": 20})
    data = json.loads(JsonFormatter().format(_record(msg)))
    assert data["event"] == "slm_exit_order_placed"
    assert data["quantity"] == 20
    assert "msg" not in data
