from __future__ import annotations

# config/runtime.py
import os
from typing import List, Optional


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "kcd-onboarding") -> str:
    return os.getenv("BOT_NAME", default)


def get_log_level(default: str = "INFO") -> str:
    """Root log level name; unknown names fall back to ``default``."""

    value = (os.getenv("LOG_LEVEL") or "").strip().upper()
    if value in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return value
    return default


def get_guild_ids() -> List[int]:
    """
    GUILD_IDS can be:
      - "123,456"
      - " [ 123  ,  456 ] "
      - "123"
    Non-ints are ignored.
    """
    raw = os.getenv("GUILD_IDS", "")
    # replace common separators with commas, then split
    for ch in ["[", "]", " ", ";", "|"]:
        raw = raw.replace(ch, ",")
    parts = [p for p in raw.split(",") if p.strip()]
    ids: List[int] = []
    for p in parts:
        try:
            ids.append(int(p))
        except ValueError:
            pass
    return ids


def _coerce_float(value: Optional[str], fallback: float) -> float:
    try:
        if value is None:
            raise TypeError
        return float(value)
    except (TypeError, ValueError):
        return fallback


def get_http_timeout_sec(default: float = 8.0) -> float:
    """
    Total timeout (seconds) for outbound HTTP calls (mailing list, avatars).

    Values are clamped to the 1–30s window; the onboarding flow never waits
    longer than that on a collaborator.
    """

    value = _coerce_float(os.getenv("HTTP_TIMEOUT_SEC"), default)
    return max(1.0, min(30.0, value))
