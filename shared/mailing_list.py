"""ConvertKit mailing-list client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from shared import config as shared_config
from shared.errors import MailingListError
from shared.logs import log_lifecycle
from shared.redaction import sanitize_url

__all__ = ["ConvertKitClient"]

log = logging.getLogger("kcd.mailing_list")


class ConvertKitClient:
    """Subscriber lookup and form/tag subscription against the ConvertKit v3 API.

    A fresh ``aiohttp.ClientSession`` is opened per call; transport failures,
    timeouts and non-2xx responses surface as :class:`MailingListError`.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        api_secret: str = "",
        form_id: int | None = None,
        tag_id: int | None = None,
        base_url: str = "https://api.convertkit.com/v3",
        timeout: float = 8.0,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.form_id = form_id
        self.tag_id = tag_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> "ConvertKitClient | None":
        """Build a client from the runtime config; ``None`` when unconfigured."""

        api_key = shared_config.get_convertkit_api_key()
        api_secret = shared_config.get_convertkit_api_secret()
        if not api_key and not api_secret:
            return None
        return cls(
            api_key=api_key,
            api_secret=api_secret,
            form_id=shared_config.get_convertkit_form_id(),
            tag_id=shared_config.get_convertkit_tag_id(),
            base_url=shared_config.get_convertkit_base_url(),
            timeout=shared_config.get_http_timeout_sec(),
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, params=params, json=payload) as resp:
                    status = resp.status
                    if not 200 <= status < 300:
                        log.warning(
                            "convertkit request failed",
                            extra={"method": method, "url": sanitize_url(str(resp.url)), "status": status},
                        )
                        raise MailingListError(f"convertkit {method} {path} -> {status}", status=status)
                    data = await resp.json(content_type=None)
        except MailingListError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise MailingListError(f"convertkit {method} {path} failed: {exc!r}") from exc
        return data if isinstance(data, dict) else {}

    async def is_subscribed(self, email: str) -> bool:
        """Return ``True`` when ``email`` is an active subscriber."""

        if not self.api_secret:
            raise MailingListError("CONVERTKIT_API_SECRET is not configured")
        data = await self._request(
            "GET",
            "/subscribers",
            params={"api_secret": self.api_secret, "email_address": email},
        )
        subscribers = data.get("subscribers") or []
        for subscriber in subscribers:
            if not isinstance(subscriber, Mapping):
                continue
            same = str(subscriber.get("email_address") or "").lower() == email.lower()
            if same and subscriber.get("state") == "active":
                return True
        return False

    async def subscribe(
        self,
        email: str,
        *,
        first_name: str | None = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Subscribe ``email`` to the configured form, then tag it when a tag is set."""

        if not self.api_key or self.form_id is None:
            raise MailingListError("ConvertKit form subscription is not configured")
        payload: Dict[str, Any] = {"api_key": self.api_key, "email": email}
        if first_name:
            payload["first_name"] = first_name
        if fields:
            payload["fields"] = dict(fields)
        data = await self._request("POST", f"/forms/{self.form_id}/subscribe", payload=payload)
        log_lifecycle(log, "mailing", "subscribed", form=self.form_id)
        if self.tag_id is not None:
            await self.tag(email, self.tag_id, first_name=first_name)
        return data.get("subscription") or {}

    async def tag(self, email: str, tag_id: int, *, first_name: str | None = None) -> Dict[str, Any]:
        if not self.api_key:
            raise MailingListError("CONVERTKIT_API_KEY is not configured")
        payload: Dict[str, Any] = {"api_key": self.api_key, "email": email}
        if first_name:
            payload["first_name"] = first_name
        data = await self._request("POST", f"/tags/{tag_id}/subscribe", payload=payload)
        log_lifecycle(log, "mailing", "tagged", tag=tag_id)
        return data.get("subscription") or {}
