"""Structured logging helpers (PII-safe: identifiers only, never names or payloads)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: str | UUID | None = None,
    baby_id: str | UUID | None = None,
    session_id: str | UUID | None = None,
    detection_id: str | UUID | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict suitable for ``logger.info(..., extra=...)``."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if baby_id:
        context["baby_id"] = str(baby_id)
    if session_id:
        context["session_id"] = str(session_id)
    if detection_id:
        context["detection_id"] = str(detection_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
