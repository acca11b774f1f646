from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands

from shared.config import (
    get_allowed_guild_ids,
    get_bot_name,
    get_discord_token,
    get_env_name,
    get_log_level,
    is_guild_allowed,
)
from shared.logging import setup_logging

setup_logging(
    level=get_log_level(),
    static_fields={"service": get_bot_name(), "env": get_env_name()},
)
log = logging.getLogger("kcd.app")

INTENTS = discord.Intents.default()
INTENTS.message_content = True
INTENTS.members = True

EXTENSIONS = ("modules.onboarding",)


class OnboardingBot(commands.Bot):
    async def setup_hook(self) -> None:
        for ext in EXTENSIONS:
            await self.load_extension(ext)
            log.info("extension loaded", extra={"extension": ext})


bot = OnboardingBot(
    command_prefix=commands.when_mentioned,
    intents=INTENTS,
)
bot.remove_command("help")

BOT_VERSION = os.getenv("BOT_VERSION", "dev")


@bot.event
async def on_ready():
    log.info(
        "Bot ready as %s | env=%s | version=%s",
        bot.user,
        get_env_name(),
        BOT_VERSION,
    )
    allowed = sorted(get_allowed_guild_ids())
    if not allowed:
        log.warning("Guild allow-list empty; onboarding runs in every guild")
        return
    unauthorized = [guild for guild in bot.guilds if not is_guild_allowed(guild.id)]
    if unauthorized:
        log.error(
            "Guild allow-list violation: %s. allowed=%s",
            ", ".join(f"{guild.name} ({guild.id})" for guild in unauthorized),
            allowed,
        )


async def main() -> None:
    token = get_discord_token()
    if not token:
        raise RuntimeError("DISCORD_TOKEN not set")
    async with bot:
        await bot.start(token)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
