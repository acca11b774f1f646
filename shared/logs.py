"""Shared logging helpers for lifecycle events."""

from __future__ import annotations

from time import monotonic
from typing import Any

__all__ = ["log_lifecycle", "reset_lifecycle_dedupe"]


_lifecycle_dedupe: dict[tuple[str, str, str], float] = {}

_SCOPE_LABELS = {
    "onboarding": "Onboarding",
    "edit": "Onboarding edit",
    "mailing": "Mailing list",
}


def _fmt_kvs(kvs: dict[str, Any]) -> str:
    parts: list[str] = []
    for key, value in kvs.items():
        if value is None or value is False:
            continue
        if isinstance(value, (str, dict, list, tuple)) and value in ("", "-", {}, [], ()):
            continue
        parts.append(f"{key}={value}")
    return " • ".join(parts)


def reset_lifecycle_dedupe() -> None:
    _lifecycle_dedupe.clear()


def log_lifecycle(
    logger: Any,
    scope: str = "onboarding",
    event: str = "event",
    *,
    scope_label: str | None = None,
    emoji: str = "📘",
    dedupe: bool = False,
    **fields: Any,
) -> str | None:
    """Log a human-readable lifecycle line with optional dedupe and blank-field filtering.

    Parameters
    ----------
    logger:
        Logger-like object exposing ``info``.
    scope:
        High-level component scope (e.g. ``"onboarding"``).
    event:
        Lifecycle event name (e.g. ``"member_admitted"``).
    **fields:
        Additional key/value pairs rendered into the log line. Blank or falsey
        values (``None``, empty strings, ``-``, ``False``, empty containers) are
        omitted automatically; ``0`` is kept because question indexes start there.

    With ``dedupe=True`` the helper enforces a 5-second window per
    ``(scope, event, channel)`` triple to avoid noisy repeats from gateway retries.
    """

    now = monotonic()
    resolved_scope = (scope or "onboarding").strip().lower() or "onboarding"
    key = (resolved_scope, event, str(fields.get("channel", "")))
    last = _lifecycle_dedupe.get(key, 0.0)
    if dedupe and last and now - last < 5.0:
        return None
    _lifecycle_dedupe[key] = now

    prefix = emoji or "📘"
    title = scope_label or _SCOPE_LABELS.get(resolved_scope, resolved_scope.title())
    kv_text = _fmt_kvs(fields)
    line = f"{prefix} {title} — event={event}" + (f" • {kv_text}" if kv_text else "")
    try:
        logger.info(line)
    except Exception:
        # Logging should never raise upstream.
        pass

    return line
