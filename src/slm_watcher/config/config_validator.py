"""
Startup validation of Settings.

Errors block startup; warnings are logged loudly and startup continues.
The manual-cancel override always produces a warning because it can square
off positions that an operator closed on purpose.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, Tuple

from slm_watcher.monitoring.alerting import WEBHOOK_TYPES

logger = logging.getLogger(__name__)

MANUAL_CANCEL_HAZARD = (
    "WATCH_MANUAL_CANCELLED_ORDERS is enabled: ANY cancellation of a watched "
    "SL-M order, including manual ones, will place an automatic MARKET exit. "
    "This switch is for testing only and must not be used on a live account."
)


class ValidationSeverity(Enum):
    ERROR = auto()
    WARNING = auto()


@dataclass
class ValidationIssue:
    field: str
    message: str
    severity: ValidationSeverity
    value: Any = None
    suggestion: Optional[str] = None

    def describe(self) -> str:
        text = f"CONFIG {self.severity.name}: {self.message}"
        if self.suggestion:
            text += f" (suggestion: {self.suggestion})"
        return text


def _error(name: str, message: str, value: Any = None, suggestion: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(name, message, ValidationSeverity.ERROR, value, suggestion)


def _warning(name: str, message: str, value: Any = None, suggestion: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(name, message, ValidationSeverity.WARNING, value, suggestion)


@dataclass
class ValidationResult:
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.has_errors()

    def _of(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is severity]

    def has_errors(self) -> bool:
        return bool(self.get_errors())

    def has_warnings(self) -> bool:
        return bool(self.get_warnings())

    def get_errors(self) -> List[ValidationIssue]:
        return self._of(ValidationSeverity.ERROR)

    def get_warnings(self) -> List[ValidationIssue]:
        return self._of(ValidationSeverity.WARNING)


class ConfigValidator:
    """Checks a Settings instance; each ``_check_*`` method yields issues."""

    # field -> (min, max), inclusive
    NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
        "poll_interval_sec": (1.0, 300.0),
        "http_timeout": (1.0, 120.0),
        "max_jobs": (1, 10000),
        "metrics_port": (0, 65535),
    }

    REQUIRED_STRINGS = ("base_url", "status_complete", "status_cancelled", "out_of_range_message")

    CREDENTIALS = (("api_key", "KITE_API_KEY"), ("access_token", "KITE_ACCESS_TOKEN"))

    def validate(self, cfg) -> ValidationResult:
        checks = (
            self._check_required,
            self._check_ranges,
            self._check_credentials,
            self._check_alerting,
            self._check_hazards,
        )
        return ValidationResult([issue for check in checks for issue in check(cfg)])

    def _check_required(self, cfg) -> Iterator[ValidationIssue]:
        for name in self.REQUIRED_STRINGS:
            if not str(getattr(cfg, name, "") or "").strip():
                yield _error(name, f"'{name}' must not be empty")

    def _check_ranges(self, cfg) -> Iterator[ValidationIssue]:
        for name, (low, high) in self.NUMERIC_RANGES.items():
            value = getattr(cfg, name, None)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                yield _error(name, f"'{name}' must be numeric", value)
            elif not low <= value <= high:
                yield _error(name, f"'{name}' = {value} is outside [{low}, {high}]", value)

    def _check_credentials(self, cfg) -> Iterator[ValidationIssue]:
        if getattr(cfg, "mock_orders", False):
            return
        for name, env in self.CREDENTIALS:
            if not getattr(cfg, name, None):
                yield _error(
                    name,
                    f"'{name}' is required for live broker access",
                    suggestion=f"Set {env} or enable MOCK_ORDERS for a dry run",
                )

    def _check_alerting(self, cfg) -> Iterator[ValidationIssue]:
        webhook_type = getattr(cfg, "alert_webhook_type", "generic")
        if webhook_type not in WEBHOOK_TYPES:
            yield _error(
                "alert_webhook_type",
                f"Unknown webhook type '{webhook_type}'",
                webhook_type,
                suggestion=f"Use one of: {', '.join(WEBHOOK_TYPES)}",
            )
        if getattr(cfg, "alert_enabled", False) and not getattr(cfg, "alert_webhook_url", None):
            yield _error(
                "alert_webhook_url",
                "Alerting is enabled but no webhook URL is set",
                suggestion="Set ALERT_WEBHOOK_URL or disable ALERT_ENABLED",
            )

    def _check_hazards(self, cfg) -> Iterator[ValidationIssue]:
        if getattr(cfg, "watch_manual_cancelled_orders", False):
            yield _warning(
                "watch_manual_cancelled_orders",
                MANUAL_CANCEL_HAZARD,
                True,
                suggestion="Unset WATCH_MANUAL_CANCELLED_ORDERS outside of test accounts",
            )
        if getattr(cfg, "mock_orders", False):
            yield _warning("mock_orders", "MOCK_ORDERS is enabled: no request reaches the broker", True)


def validate_config(cfg) -> ValidationResult:
    return ConfigValidator().validate(cfg)


def validate_and_log(cfg, logger_instance: Optional[logging.Logger] = None) -> bool:
    """Validate ``cfg``, log every error and warning, and return True when startup may proceed."""
    log = logger_instance or logger
    result = validate_config(cfg)

    for issue in result.get_errors():
        log.error(issue.describe())
    for issue in result.get_warnings():
        log.warning(issue.describe())

    if result.valid:
        log.info("Configuration validation passed")
    else:
        log.error(f"Configuration validation failed with {len(result.get_errors())} error(s)")
    return result.valid
