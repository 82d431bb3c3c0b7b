"""
Tests for Settings loading and config validation.
"""

import pytest

from slm_watcher.broker.models import KITE_STATUS_COMPLETE
from slm_watcher.config.config import Settings
from slm_watcher.config.config_validator import (
    MANUAL_CANCEL_HAZARD,
    ValidationSeverity,
    validate_and_log,
    validate_config,
)

ENV_KEYS = [
    "KITE_API_KEY", "KITE_ACCESS_TOKEN", "KITE_BASE_URL", "KITE_HTTP_TIMEOUT",
    "BROKER_STATUS_COMPLETE", "BROKER_STATUS_CANCELLED", "BROKER_OUT_OF_RANGE_MESSAGE",
    "MOCK_ORDERS", "WATCH_MANUAL_CANCELLED_ORDERS", "WATCHER_POLL_INTERVAL_SEC",
    "WATCHER_MAX_JOBS", "WATCHER_ORDER_IDS", "WATCHER_ORDER_TAG", "WATCHER_ACCOUNT",
    "LOG_LEVEL", "LOG_FILE", "ALERT_ENABLED", "ALERT_WEBHOOK_URL", "ALERT_WEBHOOK_TYPE",
    "METRICS_PORT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestSettingsLoad:
    def test_switches_default_off(self, clean_env):
        cfg = Settings.load()
        assert cfg.mock_orders is False
        assert cfg.watch_manual_cancelled_orders is False
        assert cfg.status_complete == KITE_STATUS_COMPLETE
        assert cfg.watch_order_ids == []

    def test_reads_environment(self, clean_env):
        clean_env.setenv("KITE_API_KEY", "key")
        clean_env.setenv("KITE_ACCESS_TOKEN", "secret")
        clean_env.setenv("WATCH_MANUAL_CANCELLED_ORDERS", "true")
        clean_env.setenv("WATCHER_ORDER_IDS", "111, 222,,")
        clean_env.setenv("WATCHER_POLL_INTERVAL_SEC", "2.5")
        clean_env.setenv("LOG_LEVEL", "debug")

        cfg = Settings.load()

        assert cfg.watch_manual_cancelled_orders is True
        assert cfg.watch_order_ids == ["111", "222"]
        assert cfg.poll_interval_sec == 2.5
        assert cfg.log_level == "DEBUG"

    def test_dump_masks_secrets(self):
        dumped = Settings(api_key="key", access_token="secret").dump()
        assert dumped["api_key"] == "***"
        assert dumped["access_token"] == "***"

    def test_broker_constants_follow_settings(self):
        constants = Settings(status_complete="FILLED").broker_constants()
        assert constants.status_complete == "FILLED"


class TestValidation:
    def test_live_mode_requires_credentials(self):
        result = validate_config(Settings())
        assert not result.valid
        assert {i.field for i in result.get_errors()} == {"api_key", "access_token"}

    def test_mock_mode_without_credentials_is_valid(self):
        result = validate_config(Settings(mock_orders=True))
        assert result.valid
        assert result.has_warnings()

    def test_manual_cancel_override_warns(self):
        result = validate_config(Settings(
            api_key="k", access_token="t", watch_manual_cancelled_orders=True,
        ))
        assert result.valid
        warnings = result.get_warnings()
        assert [w.message for w in warnings] == [MANUAL_CANCEL_HAZARD]

    @pytest.mark.parametrize("field,value", [
        ("poll_interval_sec", 0.1),
        ("http_timeout", 500.0),
        ("max_jobs", 0),
        ("metrics_port", 70000),
    ])
    def test_range_errors(self, field, value):
        cfg = Settings(api_key="k", access_token="t", **{field: value})
        result = validate_config(cfg)
        assert [i.field for i in result.get_errors()] == [field]

    def test_alerting_without_url_is_error(self):
        result = validate_config(Settings(mock_orders=True, alert_enabled=True))
        assert [i.field for i in result.get_errors()] == ["alert_webhook_url"]

    def test_unknown_webhook_type(self):
        result = validate_config(Settings(mock_orders=True, alert_webhook_type="teams"))
        errors = result.get_errors()
        assert errors[0].severity is ValidationSeverity.ERROR
        assert errors[0].field == "alert_webhook_type"

    def test_validate_and_log(self, caplog):
        assert validate_and_log(Settings()) is False
        assert "CONFIG ERROR" in caplog.text
