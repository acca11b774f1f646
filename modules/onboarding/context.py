"""Per-channel conversation context and its in-memory store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import discord

from modules.onboarding.logs import conversation_extra
from modules.onboarding.message_log import MessageLog
from modules.onboarding.settings import OnboardingSettings
from shared.errors import AvatarLookupError, MailingListError

__all__ = [
    "AvatarLookup",
    "ContextStore",
    "ConversationContext",
    "MailingList",
]

log = logging.getLogger("kcd.onboarding.context")


class MailingList(Protocol):
    async def is_subscribed(self, email: str) -> bool: ...

    async def subscribe(
        self,
        email: str,
        *,
        first_name: str | None = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Any: ...


class AvatarLookup(Protocol):
    async def image_url_for(self, email: str) -> str | None: ...


@dataclass
class ConversationContext:
    """Everything a handler needs to talk to one onboarding channel.

    The context carries no conversation progress; that is always derived from
    the channel history.
    """

    channel: Any
    member: Any
    settings: OnboardingSettings = field(default_factory=OnboardingSettings)
    mailing_list: MailingList | None = None
    avatars: AvatarLookup | None = None

    @property
    def guild(self) -> Any:
        return getattr(self.channel, "guild", None) or getattr(self.member, "guild", None)

    @property
    def bot_id(self) -> int | None:
        me = getattr(self.guild, "me", None)
        return getattr(me, "id", None)

    @property
    def member_id(self) -> int | None:
        return getattr(self.member, "id", None)

    async def read_log(self) -> MessageLog:
        return await MessageLog.fetch(self.channel, bot_id=self.bot_id, member_id=self.member_id)

    async def send(self, content: str) -> Any:
        return await self.channel.send(content)

    def find_role(self, name: str) -> Any:
        return discord.utils.get(getattr(self.guild, "roles", ()) or (), name=name)

    def has_role(self, name: str) -> bool:
        return any(getattr(role, "name", None) == name for role in getattr(self.member, "roles", ()) or ())

    async def add_role(self, name: str, *, reason: str | None = None) -> bool:
        """Grant ``name`` unless the member already holds it; returns ``True`` on a grant."""

        if self.has_role(name):
            return False
        role = self.find_role(name)
        if role is None:
            log.warning("role not found", extra=conversation_extra(self.channel, self.member, role=name))
            return False
        try:
            await self.member.add_roles(role, reason=reason or "Onboarding")
        except discord.HTTPException:
            log.warning(
                "failed to add role",
                exc_info=True,
                extra=conversation_extra(self.channel, self.member, role=name),
            )
            return False
        return True

    async def remove_role(self, name: str, *, reason: str | None = None) -> bool:
        if not self.has_role(name):
            return False
        role = self.find_role(name)
        if role is None:
            return False
        try:
            await self.member.remove_roles(role, reason=reason or "Onboarding")
        except discord.HTTPException:
            log.warning(
                "failed to remove role",
                exc_info=True,
                extra=conversation_extra(self.channel, self.member, role=name),
            )
            return False
        return True

    def channel_mention(self, name: str) -> str:
        channel = discord.utils.get(getattr(self.guild, "text_channels", ()) or (), name=name)
        mention = getattr(channel, "mention", None)
        return mention or f"#{name}"

    async def is_subscribed(self, email: str | None) -> bool:
        """Ask the mailing list; any failure reads as "not subscribed"."""

        if not email or self.mailing_list is None:
            return False
        try:
            return bool(await self.mailing_list.is_subscribed(email))
        except MailingListError:
            log.warning(
                "mailing list lookup failed",
                exc_info=True,
                extra=conversation_extra(self.channel, self.member),
            )
            return False

    async def avatar_url(self, email: str | None) -> str | None:
        if not email or self.avatars is None:
            return None
        try:
            return await self.avatars.image_url_for(email)
        except AvatarLookupError:
            log.warning(
                "avatar lookup failed",
                exc_info=True,
                extra=conversation_extra(self.channel, self.member),
            )
            return None


class ContextStore:
    """In-memory store of conversation contexts keyed by channel id."""

    def __init__(self) -> None:
        self._contexts: Dict[int, ConversationContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._contexts

    def get(self, channel_id: int) -> ConversationContext | None:
        """Return the context for ``channel_id`` if it exists."""

        return self._contexts.get(channel_id)

    def put(self, context: ConversationContext) -> ConversationContext:
        self._contexts[int(context.channel.id)] = context
        return context

    def ensure(
        self,
        channel: Any,
        member: Any,
        *,
        settings: OnboardingSettings,
        mailing_list: MailingList | None = None,
        avatars: AvatarLookup | None = None,
    ) -> ConversationContext:
        """Return the stored context or rebuild one for ``member`` (e.g. after a restart)."""

        context = self._contexts.get(int(channel.id))
        if context is None:
            context = ConversationContext(
                channel=channel,
                member=member,
                settings=settings,
                mailing_list=mailing_list,
                avatars=avatars,
            )
            self._contexts[int(channel.id)] = context
            log.debug("rebuilt conversation context", extra=conversation_extra(channel, member))
        return context

    def end(self, channel_id: int) -> ConversationContext | None:
        """Forget the context for ``channel_id``."""

        return self._contexts.pop(channel_id, None)
