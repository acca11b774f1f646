from __future__ import annotations

import itertools
from types import SimpleNamespace
from typing import Any

import pytest

from modules.onboarding.context import ConversationContext
from modules.onboarding.orchestrator import OnboardingOrchestrator
from modules.onboarding.settings import OnboardingSettings
from shared.avatars import gravatar_url
from shared.errors import AvatarLookupError, MailingListError

_ids = itertools.count(1000)


def next_id() -> int:
    return next(_ids)


class FakeRole:
    def __init__(self, name: str) -> None:
        self.id = next_id()
        self.name = name

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<FakeRole {self.name}>"


class FakeUser:
    def __init__(
        self,
        name: str,
        *,
        display_name: str | None = None,
        discriminator: str = "0",
        bot: bool = False,
        guild: "FakeGuild | None" = None,
        nick: str | None = None,
        avatar: str | None = None,
    ) -> None:
        self.id = next_id()
        self.name = name
        self.discriminator = discriminator
        self.bot = bot
        self.guild = guild
        self.nick = nick
        self.avatar = avatar
        self._display_name = display_name
        self.roles: list[FakeRole] = []
        self.nick_changes: list[str] = []

    @property
    def display_name(self) -> str:
        return self._display_name or self.nick or self.name

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    async def add_roles(self, *roles: FakeRole, reason: str | None = None) -> None:
        for role in roles:
            if role not in self.roles:
                self.roles.append(role)

    async def remove_roles(self, *roles: FakeRole, reason: str | None = None) -> None:
        self.roles = [role for role in self.roles if role not in roles]

    async def edit(self, *, nick: str | None = None, reason: str | None = None) -> None:
        self.nick = nick
        self.nick_changes.append(nick)
        return None

    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]


class FakeMessage:
    def __init__(self, channel: "FakeChannel", author: FakeUser, content: str) -> None:
        self.id = next_id()
        self.channel = channel
        self.guild = channel.guild
        self.author = author
        self.content = content

    async def edit(self, *, content: str) -> "FakeMessage":
        self.content = content
        return self

    async def delete(self) -> None:
        self.channel.messages.remove(self)


class FakeChannel:
    def __init__(self, guild: "FakeGuild", name: str, *, category: Any = None, topic: str | None = None) -> None:
        self.id = next_id()
        self.guild = guild
        self.name = name
        self.category = category
        self.topic = topic
        self.messages: list[FakeMessage] = []  # oldest first
        self.deleted = False
        self.overwrites: dict = {}

    @property
    def mention(self) -> str:
        return f"<#{self.name}>"

    async def send(self, content: str) -> FakeMessage:
        assert content, "Trying to send a message with no content"
        message = FakeMessage(self, self.guild.me, content)
        self.messages.append(message)
        return message

    def post(self, author: FakeUser, content: str) -> FakeMessage:
        message = FakeMessage(self, author, content)
        self.messages.append(message)
        return message

    async def history(self, limit: int | None = None):
        newest_first = list(reversed(self.messages))
        if limit is not None:
            newest_first = newest_first[:limit]
        for message in newest_first:
            yield message

    async def delete(self, *, reason: str | None = None) -> None:
        self.deleted = True


class FakeGuild:
    def __init__(self, settings: OnboardingSettings) -> None:
        self.id = next_id()
        self.me = FakeUser("BOT", bot=True, guild=self)
        self.default_role = FakeRole("@everyone")
        self.roles = [
            self.default_role,
            FakeRole(settings.member_role),
            FakeRole(settings.unconfirmed_role),
            FakeRole(settings.live_stream_role),
            FakeRole(settings.office_hours_role),
        ]
        self.categories = [SimpleNamespace(id=next_id(), name=settings.welcome_category)]
        self.text_channels = [
            FakeChannel(self, settings.introductions_channel),
            FakeChannel(self, settings.live_stream_channel),
            FakeChannel(self, settings.office_hours_channel),
        ]
        self.created: list[FakeChannel] = []
        self.members: list[FakeUser] = []

    def get_member(self, member_id: int) -> FakeUser | None:
        return next((member for member in self.members if member.id == member_id), None)

    async def create_text_channel(self, name: str, **kwargs: Any) -> FakeChannel:
        channel = FakeChannel(self, name, category=kwargs.get("category"), topic=kwargs.get("topic"))
        channel.overwrites = dict(kwargs.get("overwrites") or {})
        self.created.append(channel)
        self.text_channels.append(channel)
        return channel


class FakeMailingList:
    def __init__(self, *, subscribed: set[str] | None = None, fail: bool = False) -> None:
        self.subscribed = set(subscribed or ())
        self.fail = fail
        self.lookups: list[str] = []
        self.subscriptions: list[tuple[str, str | None]] = []

    async def is_subscribed(self, email: str) -> bool:
        self.lookups.append(email)
        if self.fail:
            raise MailingListError("convertkit unavailable", status=503)
        return email in self.subscribed

    async def subscribe(self, email: str, *, first_name: str | None = None, fields=None):
        if self.fail:
            raise MailingListError("convertkit unavailable", status=503)
        self.subscriptions.append((email, first_name))
        return {"state": "inactive"}


class FakeAvatars:
    def __init__(self, *, known: bool = True, fail: bool = False) -> None:
        self.known = known
        self.fail = fail

    async def image_url_for(self, email: str) -> str | None:
        if self.fail:
            raise AvatarLookupError("gravatar unavailable")
        return gravatar_url(email) if self.known else None


class Harness:
    """Drives an orchestrator the way the Discord gateway would."""

    def __init__(self, orchestrator: OnboardingOrchestrator, guild: FakeGuild, member: FakeUser) -> None:
        self.orchestrator = orchestrator
        self.guild = guild
        self.member = member
        self.channel: FakeChannel | None = None

    async def join(self) -> FakeChannel:
        ctx = await self.orchestrator.handle_new_member(self.member)
        self.channel = ctx.channel
        return self.channel

    async def send(self, content: str) -> FakeMessage:
        message = self.channel.post(self.member, content)
        await self.orchestrator.handle_new_message(message)
        return message

    async def update(self, message: FakeMessage, content: str):
        before = SimpleNamespace(id=message.id, content=message.content, author=message.author)
        message.content = content
        return await self.orchestrator.handle_updated_message(before, message)

    async def delete(self, message: FakeMessage):
        await message.delete()
        return await self.orchestrator.handle_deleted_message(self.channel, message.author)

    def thread(self) -> str:
        return "\n".join(f"{m.author.display_name}: {m.content}" for m in self.channel.messages)

    def bot_responses(self) -> list[str]:
        replies: list[str] = []
        for message in reversed(self.channel.messages):
            if message.author is not self.guild.me:
                break
            replies.append(message.content)
        return list(reversed(replies))


@pytest.fixture
def settings() -> OnboardingSettings:
    return OnboardingSettings()


@pytest.fixture
def mailing_list() -> FakeMailingList:
    return FakeMailingList()


@pytest.fixture
def avatars() -> FakeAvatars:
    return FakeAvatars()


@pytest.fixture
def guild(settings) -> FakeGuild:
    return FakeGuild(settings)


@pytest.fixture
def member(guild) -> FakeUser:
    user = FakeUser("fredjoe", display_name="Fred Joe", discriminator="1234", guild=guild, nick="fred")
    guild.members.append(user)
    return user


@pytest.fixture
def orchestrator(settings, mailing_list, avatars) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(settings=settings, mailing_list=mailing_list, avatars=avatars)


@pytest.fixture
def harness(orchestrator, guild, member) -> Harness:
    return Harness(orchestrator, guild, member)


@pytest.fixture
def make_context(guild, settings):
    """Factory for a context bound to a fresh member and welcome channel."""

    def _make(**kwargs: Any) -> ConversationContext:
        member = FakeUser("fredjoe", guild=guild, nick="fred")
        channel = FakeChannel(guild, f"{settings.channel_prefix}fredjoe")
        return ConversationContext(channel=channel, member=member, settings=settings, **kwargs)

    return _make
