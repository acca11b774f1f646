"""Helpers for onboarding log lines and structured log context."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from shared.logs import log_lifecycle

__all__ = [
    "channel_path",
    "conversation_extra",
    "format_actor",
    "format_actor_handle",
    "lifecycle",
]

log = logging.getLogger("kcd.onboarding.lifecycle")

_LOG_RECORD_RESERVED_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
    }
)


def _sanitize_log_extra(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` that is safe for ``logging`` extras."""

    sanitized: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _LOG_RECORD_RESERVED_ATTRS:
            sanitized[f"context_{key}"] = value
        else:
            sanitized[key] = value
    return sanitized


def channel_path(channel: Any) -> str:
    """Return a ``#category › channel`` style label without numeric IDs."""

    if channel is None:
        return "#unknown"
    channel_name = (getattr(channel, "name", None) or "channel").strip() or "channel"
    category = getattr(channel, "category", None)
    if category is not None:
        category_name = (getattr(category, "name", None) or "category").strip() or "category"
        return f"#{category_name} › {channel_name}"
    return f"#{channel_name}"


def format_actor(actor: Any) -> str:
    """Return a stable representation for actors in onboarding logs."""

    if actor is None:
        return "<unknown>"
    actor_id = getattr(actor, "id", None)
    if actor_id is None:
        return "<unknown>"
    return f"<{actor_id}>"


def format_actor_handle(actor: Any) -> str | None:
    if actor is None:
        return None
    display = (
        getattr(actor, "display_name", None)
        or getattr(actor, "global_name", None)
        or getattr(actor, "name", None)
        or None
    )
    if not display:
        return None
    return f"@{display}".replace(" ", "_")


def conversation_extra(channel: Any, member: Any = None, **fields: Any) -> dict[str, Any]:
    """Build ``extra=`` fields for a conversation log record."""

    payload: dict[str, Any] = {
        "channel_id": getattr(channel, "id", None),
        "channel": channel_path(channel),
        "member": format_actor(member) if member is not None else None,
    }
    payload.update(fields)
    return _sanitize_log_extra(payload)


def lifecycle(event: str, channel: Any, member: Any = None, **fields: Any) -> str | None:
    """Emit a human-readable ``📘 Onboarding — event=...`` line for ``channel``."""

    return log_lifecycle(
        log,
        "onboarding",
        event,
        channel=channel_path(channel),
        actor=format_actor_handle(member),
        **fields,
    )
