"""Discord listeners feeding onboarding events to the orchestrator."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import discord
from discord.ext import commands

from modules.onboarding.logs import conversation_extra
from modules.onboarding.orchestrator import OnboardingOrchestrator
from modules.onboarding.settings import load_settings
from shared import config as shared_config
from shared.avatars import GravatarClient
from shared.logging import bind_conversation, set_trace_id
from shared.mailing_list import ConvertKitClient

__all__ = ["OnboardingWatcher", "build_orchestrator", "setup"]

log = logging.getLogger("kcd.onboarding.watcher")


def build_orchestrator() -> OnboardingOrchestrator:
    """Wire the orchestrator to the configured collaborators."""

    return OnboardingOrchestrator(
        settings=load_settings(),
        mailing_list=ConvertKitClient.from_config(),
        avatars=GravatarClient.from_config(),
    )


class OnboardingWatcher(commands.Cog):
    """Serialises member, message, edit and delete events per onboarding channel."""

    def __init__(self, bot: commands.Bot, orchestrator: OnboardingOrchestrator | None = None) -> None:
        self.bot = bot
        self.orchestrator = orchestrator or build_orchestrator()
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, channel_id: int) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[channel_id] = lock
        return lock

    def _guild_allowed(self, guild: Any) -> bool:
        guild_id = getattr(guild, "id", None)
        if guild_id is None:
            return False
        return shared_config.is_guild_allowed(int(guild_id))

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if getattr(member, "bot", False) or not self._guild_allowed(member.guild):
            return
        set_trace_id()
        bind_conversation(None)
        try:
            ctx = await self.orchestrator.handle_new_member(member)
        except Exception:
            log.exception("onboarding start failed", extra={"member_id": getattr(member, "id", None)})
            return
        bind_conversation(ctx.channel.id)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if getattr(message.author, "bot", False) or not self._guild_allowed(message.guild):
            return
        if not self.orchestrator.is_onboarding_channel(message.channel):
            return
        channel_id = message.channel.id
        set_trace_id()
        bind_conversation(channel_id)
        async with self._lock_for(channel_id):
            try:
                await self.orchestrator.handle_new_message(message)
            except Exception:
                log.exception(
                    "onboarding message handling failed",
                    extra=conversation_extra(message.channel, message.author, message_id=message.id),
                )

    @commands.Cog.listener()
    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        if getattr(after.author, "bot", False) or not self._guild_allowed(after.guild):
            return
        if before.content == after.content:
            return
        if not self.orchestrator.is_onboarding_channel(after.channel):
            return
        channel_id = after.channel.id
        set_trace_id()
        bind_conversation(channel_id)
        async with self._lock_for(channel_id):
            try:
                await self.orchestrator.handle_updated_message(before, after)
            except Exception:
                log.exception(
                    "onboarding edit handling failed",
                    extra=conversation_extra(after.channel, after.author, message_id=after.id),
                )

    @commands.Cog.listener()
    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        guild_id = payload.guild_id
        if guild_id is None or not shared_config.is_guild_allowed(int(guild_id)):
            return
        cached = payload.cached_message
        author = getattr(cached, "author", None)
        if getattr(author, "bot", False):
            return
        channel = self.bot.get_channel(payload.channel_id)
        if channel is None or not self.orchestrator.is_onboarding_channel(channel):
            return
        set_trace_id()
        bind_conversation(channel.id)
        async with self._lock_for(channel.id):
            try:
                await self.orchestrator.handle_deleted_message(channel, author)
            except Exception:
                log.exception(
                    "onboarding delete handling failed",
                    extra=conversation_extra(channel, author, message_id=payload.message_id),
                )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if not self.orchestrator.is_onboarding_channel(channel):
            return
        self.orchestrator.forget(channel)
        self._locks.pop(channel.id, None)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(OnboardingWatcher(bot))
