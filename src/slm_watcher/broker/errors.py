"""
Broker error types.
"""

from __future__ import annotations

from typing import Optional


class BrokerError(Exception):
    """Raised when the broker rejects a request or returns an error envelope."""

    def __init__(
        self,
        message: str,
        error_type: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_type:
            parts.append(f"type={self.error_type}")
        if self.status_code is not None:
            parts.append(f"http={self.status_code}")
        return " | ".join(parts)


class BrokerResponseError(BrokerError):
    """Raised when a broker response cannot be parsed into the expected shape."""
    pass
