"""Runtime configuration helpers for the onboarding bot."""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, Optional, Set

from config import runtime as _runtime
from shared.redaction import mask_secret, sanitize_text

__all__ = [
    "reload_config",
    "get_env_name",
    "get_bot_name",
    "get_log_level",
    "get_discord_token",
    "get_allowed_guild_ids",
    "is_guild_allowed",
    "get_http_timeout_sec",
    "get_convertkit_api_key",
    "get_convertkit_api_secret",
    "get_convertkit_form_id",
    "get_convertkit_tag_id",
    "get_convertkit_base_url",
    "get_gravatar_base_url",
    "get_community_name",
    "get_support_email",
    "get_conduct_url",
    "get_conduct_email",
    "get_welcome_gif_url",
    "get_office_hours_url",
    "get_member_role",
    "get_unconfirmed_role",
    "get_live_stream_role",
    "get_office_hours_role",
    "get_welcome_category",
    "get_welcome_channel_prefix",
    "get_introductions_channel",
    "get_live_stream_channel",
    "get_office_hours_channel",
    "redact_value",
]

log = logging.getLogger("kcd.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = ("DISCORD_TOKEN",)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


for _name in _REQUIRED_ENV:
    _require_env(_name)

_MISSING_VALUE = "—"
_INT_RE = re.compile(r"\d+")

_CONFIG: Dict[str, object] = {}

_SECRET_KEYS = {
    "DISCORD_TOKEN",
    "CONVERTKIT_API_KEY",
    "CONVERTKIT_API_SECRET",
}

_DEFAULTS: Dict[str, str] = {
    "CONVERTKIT_BASE_URL": "https://api.convertkit.com/v3",
    "GRAVATAR_BASE_URL": "https://www.gravatar.com/avatar",
    "COMMUNITY_NAME": "KCD Community on Discord",
    "SUPPORT_EMAIL": "team@kentcdodds.com",
    "CONDUCT_URL": "https://kentcdodds.com/conduct",
    "CONDUCT_EMAIL": "team@kentcdodds.com",
    "WELCOME_GIF_URL": "https://media.giphy.com/media/MDxjbPCg6DGf8JclbR/giphy.gif",
    "OFFICE_HOURS_URL": "https://kcd.im/office-hours",
    "MEMBER_ROLE": "Member",
    "UNCONFIRMED_ROLE": "Unconfirmed Member",
    "LIVE_STREAM_ROLE": "Notify: Kent Live",
    "OFFICE_HOURS_ROLE": "Notify: Office Hours",
    "WELCOME_CATEGORY": "Welcome!",
    "WELCOME_CHANNEL_PREFIX": "👋-welcome-",
    "INTRODUCTIONS_CHANNEL": "👶-introductions",
    "LIVE_STREAM_CHANNEL": "💻-kent-live",
    "OFFICE_HOURS_CHANNEL": "🏫-office-hours",
}


def _redact_value(key: str, value: object) -> str:
    """Best-effort redaction for import-time logging."""

    key_upper = str(key).upper()

    if (
        key_upper in _SECRET_KEYS
        or "TOKEN" in key_upper
        or "SECRET" in key_upper
        or key_upper.endswith("_API_KEY")
    ):
        if value in (None, "", [], (), {}):
            return _MISSING_VALUE
        text = str(value).strip()
        if not text:
            return _MISSING_VALUE
        return mask_secret(text)

    if value in (None, "", [], (), {}):
        return _MISSING_VALUE

    redacted = sanitize_text(value)
    return str(redacted)


def _env_text(name: str) -> str:
    raw = os.getenv(name)
    text = (raw or "").strip()
    if text:
        return text
    return _DEFAULTS.get(name, "")


def _first_int(raw: str | None) -> Optional[int]:
    if not raw:
        return None
    for match in _INT_RE.finditer(raw):
        try:
            return int(match.group(0))
        except (TypeError, ValueError):
            continue
    return None


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: _redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": redacted})


def _load_config() -> Dict[str, object]:
    config: Dict[str, object] = {
        "BOT_NAME": _runtime.get_bot_name(),
        "ENV_NAME": _runtime.get_env_name(),
        "LOG_LEVEL": _runtime.get_log_level(),
        "DISCORD_TOKEN": os.getenv("DISCORD_TOKEN", ""),
        "GUILD_IDS": set(_runtime.get_guild_ids()),
        "HTTP_TIMEOUT_SEC": _runtime.get_http_timeout_sec(),
        "CONVERTKIT_API_KEY": (os.getenv("CONVERTKIT_API_KEY") or "").strip(),
        "CONVERTKIT_API_SECRET": (os.getenv("CONVERTKIT_API_SECRET") or "").strip(),
        "CONVERTKIT_FORM_ID": _first_int(os.getenv("CONVERTKIT_FORM_ID")),
        "CONVERTKIT_TAG_ID": _first_int(os.getenv("CONVERTKIT_TAG_ID")),
    }
    for key in _DEFAULTS:
        config[key] = _env_text(key)

    if not config["CONVERTKIT_API_SECRET"]:
        log.warning(
            "Mailing list checks disabled; set CONVERTKIT_API_SECRET to enable subscriber lookups."
        )

    return config


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    for _name in _REQUIRED_ENV:
        _require_env(_name)

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    return dict(_CONFIG)


reload_config()


def _text(key: str) -> str:
    value = _CONFIG.get(key)
    if isinstance(value, str) and value:
        return value
    return _DEFAULTS.get(key, "")


def get_env_name(default: str = "dev") -> str:
    value = _CONFIG.get("ENV_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_name(default: str = "kcd-onboarding") -> str:
    value = _CONFIG.get("BOT_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_log_level(default: str = "INFO") -> str:
    value = _CONFIG.get("LOG_LEVEL")
    return str(value) if isinstance(value, str) and value else default


def get_discord_token() -> str:
    return str(_CONFIG.get("DISCORD_TOKEN") or "")


def get_allowed_guild_ids() -> Set[int]:
    value = _CONFIG.get("GUILD_IDS")
    if isinstance(value, set):
        return set(value)
    return set()


def is_guild_allowed(guild_id: int) -> bool:
    """Return ``True`` when ``guild_id`` passes the allow-list (empty = allow all)."""

    allowed = get_allowed_guild_ids()
    if not allowed:
        return True
    try:
        return int(guild_id) in allowed
    except (TypeError, ValueError):
        return False


def get_http_timeout_sec() -> float:
    try:
        return float(_CONFIG.get("HTTP_TIMEOUT_SEC", _runtime.get_http_timeout_sec()))
    except (TypeError, ValueError):
        return _runtime.get_http_timeout_sec()


def get_convertkit_api_key() -> str:
    return str(_CONFIG.get("CONVERTKIT_API_KEY") or "")


def get_convertkit_api_secret() -> str:
    return str(_CONFIG.get("CONVERTKIT_API_SECRET") or "")


def get_convertkit_form_id() -> Optional[int]:
    value = _CONFIG.get("CONVERTKIT_FORM_ID")
    return value if isinstance(value, int) else None


def get_convertkit_tag_id() -> Optional[int]:
    value = _CONFIG.get("CONVERTKIT_TAG_ID")
    return value if isinstance(value, int) else None


def get_convertkit_base_url() -> str:
    return _text("CONVERTKIT_BASE_URL").rstrip("/")


def get_gravatar_base_url() -> str:
    return _text("GRAVATAR_BASE_URL").rstrip("/")


def get_community_name() -> str:
    return _text("COMMUNITY_NAME")


def get_support_email() -> str:
    return _text("SUPPORT_EMAIL")


def get_conduct_url() -> str:
    return _text("CONDUCT_URL")


def get_conduct_email() -> str:
    return _text("CONDUCT_EMAIL")


def get_welcome_gif_url() -> str:
    return _text("WELCOME_GIF_URL")


def get_office_hours_url() -> str:
    return _text("OFFICE_HOURS_URL")


def get_member_role() -> str:
    return _text("MEMBER_ROLE")


def get_unconfirmed_role() -> str:
    return _text("UNCONFIRMED_ROLE")


def get_live_stream_role() -> str:
    return _text("LIVE_STREAM_ROLE")


def get_office_hours_role() -> str:
    return _text("OFFICE_HOURS_ROLE")


def get_welcome_category() -> str:
    return _text("WELCOME_CATEGORY")


def get_welcome_channel_prefix() -> str:
    return _text("WELCOME_CHANNEL_PREFIX")


def get_introductions_channel() -> str:
    return _text("INTRODUCTIONS_CHANNEL")


def get_live_stream_channel() -> str:
    return _text("LIVE_STREAM_CHANNEL")


def get_office_hours_channel() -> str:
    return _text("OFFICE_HOURS_CHANNEL")


def redact_value(key: str, value: object) -> str:
    """Public wrapper around the import-time redaction helper."""

    return _redact_value(key, value)
