"""Onboarding conversation for new community members."""

from __future__ import annotations

from discord.ext import commands

__all__ = ["setup"]


async def setup(bot: commands.Bot) -> None:
    """Register the onboarding watcher cog."""

    from modules.onboarding.watcher import setup as setup_watcher

    await setup_watcher(bot)
