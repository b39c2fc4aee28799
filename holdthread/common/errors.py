"""Error taxonomy shared by stores, services and routes."""
from __future__ import annotations

from typing import Any, Dict, Optional


class HoldThreadError(Exception):
    """Base error; carries the envelope code and HTTP status it maps to."""

    code = "holdthread.error"
    http_status = 500

    def __init__(
        self,
        message: str,
        resource_kind: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.resource_kind = resource_kind
        self.details = details or {}


class InvalidInput(HoldThreadError):
    code = "invalid_input"
    http_status = 400


class NotFound(HoldThreadError):
    http_status = 404

    def __init__(self, resource_kind: str, resource_id: Any) -> None:
        super().__init__(
            f"{resource_kind.capitalize()} {resource_id} not found",
            resource_kind=resource_kind,
            details={"id": str(resource_id)},
        )
        self.code = f"{resource_kind}.not_found"
        self.resource_id = resource_id


class InvalidState(HoldThreadError):
    code = "invalid_state"
    http_status = 409


class UpstreamFailure(HoldThreadError):
    code = "upstream_failure"
    http_status = 502


class ConfigurationError(HoldThreadError):
    code = "configuration_error"
    http_status = 500


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidInput(f"{field} cannot be empty", details={"field": field})
    return value
