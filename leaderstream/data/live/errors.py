"""
Exceptions raised by the live leaderboard feed.

    LiveFeedError
    ├── ConnectionError       websocket could not be (re)established
    ├── MessageParseError     frame is not JSON or not a known frame shape
    ├── EntryValidationError  entry does not match its topic's schema
    └── ConfigurationError    invalid configuration value

Bad frames and entries are caught at the gateway and turned into GatewayError
signals; only connection and configuration errors reach the caller.
"""

from __future__ import annotations

from typing import Any, Optional

# raw frames can be large; keep a prefix for diagnostics
_RAW_PREVIEW = 200


def _with(details: Optional[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    merged = dict(details or {})
    merged.update({k: v for k, v in extra.items() if v is not None})
    return merged


class LiveFeedError(Exception):
    """Base exception for the live feed; ``component`` names the raising part."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.component = component
        self.details = details or {}

    def __str__(self) -> str:
        text = super().__str__()
        if self.component:
            text += f" [component={self.component}]"
        if self.details:
            text += f" [details={self.details}]"
        return text


class ConnectionError(LiveFeedError):
    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        reconnect_attempt: int = 0,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        self.reconnect_attempt = reconnect_attempt
        super().__init__(
            message,
            component=component,
            details=_with(details, url=url, reconnect_attempt=reconnect_attempt),
        )


class MessageParseError(LiveFeedError):
    def __init__(
        self,
        message: str,
        *,
        raw_data: Optional[str] = None,
        expected_type: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.raw_data = raw_data[:_RAW_PREVIEW] if raw_data is not None else None
        self.expected_type = expected_type
        # raw_data stays off the details so log lines remain short
        super().__init__(
            message, component=component, details=_with(details, expected_type=expected_type)
        )


class EntryValidationError(LiveFeedError):
    """``fields`` lists the dotted locations that failed validation."""

    def __init__(
        self,
        message: str,
        *,
        topic: Optional[str] = None,
        fields: Optional[list[str]] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.topic = topic
        self.fields = list(fields or [])
        super().__init__(
            message,
            component=component,
            details=_with(details, topic=topic, fields=self.fields or None),
        )


class ConfigurationError(LiveFeedError):
    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(
            message,
            component=component,
            details=_with(details, field=field or None, value=None if value is None else str(value)),
        )
