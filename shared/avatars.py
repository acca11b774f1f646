"""Gravatar image lookup."""

from __future__ import annotations

import asyncio
import hashlib
import logging

import aiohttp

from shared import config as shared_config
from shared.errors import AvatarLookupError

__all__ = ["GravatarClient", "email_hash", "gravatar_url"]

log = logging.getLogger("kcd.avatars")

DEFAULT_BASE_URL = "https://www.gravatar.com/avatar"


def email_hash(email: str) -> str:
    return hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()


def gravatar_url(email: str, *, base_url: str = DEFAULT_BASE_URL, size: int = 128) -> str:
    """Image URL for ``email``; ``d=404`` makes unknown addresses return 404."""

    return f"{base_url.rstrip('/')}/{email_hash(email)}?s={size}&d=404"


class GravatarClient:
    def __init__(self, *, base_url: str = DEFAULT_BASE_URL, timeout: float = 8.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "GravatarClient":
        return cls(
            base_url=shared_config.get_gravatar_base_url() or DEFAULT_BASE_URL,
            timeout=shared_config.get_http_timeout_sec(),
        )

    async def image_url_for(self, email: str) -> str | None:
        """Return the image URL when Gravatar knows ``email``, else ``None``."""

        url = gravatar_url(email, base_url=self.base_url)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as resp:
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AvatarLookupError(f"gravatar lookup failed: {exc!r}") from exc
        if status == 404:
            return None
        if 200 <= status < 300:
            return url
        log.warning("gravatar lookup returned unexpected status", extra={"status": status})
        raise AvatarLookupError(f"gravatar lookup -> {status}", status=status)
