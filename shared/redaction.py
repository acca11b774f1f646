"""Secret redaction helpers for config snapshots and collaborator logs."""

from __future__ import annotations

import hashlib
import re
from typing import Any

__all__ = [
    "mask_secret",
    "sanitize_text",
    "sanitize_url",
]


_SECRET_FRAGMENT_RE = re.compile(
    r"(?<![A-Za-z0-9_-])"
    r"(?P<secret>(?=[A-Za-z0-9_-]*[A-Za-z])(?=[A-Za-z0-9_-]*\d)[A-Za-z0-9_-]{32,})"
    r"(?![A-Za-z0-9_-])"
)
_DISCORD_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{24}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,}")
_WEBHOOK_RE = re.compile(r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/\S+", re.I)
_SECRET_FIELD_RE = re.compile(
    r"(?P<prefix>(token|secret|api_key|key)\s*[=:]\s*)(?P<secret>[^\s,;&]+)",
    re.IGNORECASE,
)
_QUERY_SECRET_RE = re.compile(r"(?P<prefix>[?&](?:api_secret|api_key)=)(?P<secret>[^&#\s]+)", re.IGNORECASE)


def _stable_suffix(text: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()
    return digest[:4]


def mask_secret(text: str) -> str:
    suffix = _stable_suffix(text)
    return f"***{suffix}"


def _replace(pattern: re.Pattern[str], text: str, replacer) -> str:
    return pattern.sub(lambda match: replacer(match.group(0), match), text)


def sanitize_url(url: str) -> str:
    """Mask ``api_secret``/``api_key`` query parameters in ``url``."""

    return _replace(
        _QUERY_SECRET_RE,
        str(url),
        lambda _seg, match: f"{match.group('prefix')}{mask_secret(match.group('secret'))}",
    )


def sanitize_text(value: Any) -> Any:
    if value is None:
        return value
    text = str(value)
    if not text:
        return text

    def generic(mask_target: str, _match: re.Match[str]) -> str:
        return mask_secret(mask_target)

    sanitized = sanitize_url(text)
    sanitized = _replace(_WEBHOOK_RE, sanitized, generic)
    sanitized = _replace(_DISCORD_TOKEN_RE, sanitized, generic)
    sanitized = _replace(_SECRET_FIELD_RE, sanitized, lambda _seg, match: f"{match.group('prefix')}{mask_secret(match.group('secret'))}")
    sanitized = _replace(_SECRET_FRAGMENT_RE, sanitized, generic)

    return sanitized
