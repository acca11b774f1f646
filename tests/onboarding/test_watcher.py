import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

from modules.onboarding import watcher as watcher_module
from modules.onboarding.watcher import OnboardingWatcher

PREFIX = "👋-welcome-"


def _orchestrator(**overrides):
    orchestrator = SimpleNamespace(
        is_onboarding_channel=lambda channel: channel.name.startswith(PREFIX),
        handle_new_member=AsyncMock(return_value=SimpleNamespace(channel=SimpleNamespace(id=5))),
        handle_new_message=AsyncMock(),
        handle_updated_message=AsyncMock(),
        forget=Mock(),
    )
    for key, value in overrides.items():
        setattr(orchestrator, key, value)
    return orchestrator


def _message(content="hi", *, bot=False, channel_name=f"{PREFIX}fred", channel_id=5, message_id=1):
    guild = SimpleNamespace(id=42)
    return SimpleNamespace(
        id=message_id,
        content=content,
        guild=guild,
        author=SimpleNamespace(id=7, bot=bot),
        channel=SimpleNamespace(id=channel_id, name=channel_name, guild=guild),
    )


def test_messages_from_bots_and_other_channels_are_ignored():
    orchestrator = _orchestrator()
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)

    asyncio.run(cog.on_message(_message(bot=True)))
    asyncio.run(cog.on_message(_message(channel_name="general")))

    orchestrator.handle_new_message.assert_not_awaited()

    asyncio.run(cog.on_message(_message()))
    orchestrator.handle_new_message.assert_awaited_once()


def test_disallowed_guilds_are_ignored(monkeypatch):
    monkeypatch.setattr(watcher_module.shared_config, "is_guild_allowed", lambda guild_id: False)
    orchestrator = _orchestrator()
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)
    member = SimpleNamespace(id=7, bot=False, guild=SimpleNamespace(id=42))

    asyncio.run(cog.on_member_join(member))
    asyncio.run(cog.on_message(_message()))

    orchestrator.handle_new_member.assert_not_awaited()
    orchestrator.handle_new_message.assert_not_awaited()


def test_unchanged_edits_are_ignored():
    orchestrator = _orchestrator()
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)
    before = _message("same")
    after = _message("same")

    asyncio.run(cog.on_message_edit(before, after))
    orchestrator.handle_updated_message.assert_not_awaited()

    after.content = "changed"
    asyncio.run(cog.on_message_edit(before, after))
    orchestrator.handle_updated_message.assert_awaited_once_with(before, after)


def test_events_for_one_channel_are_serialised():
    events = []

    async def _handle(message):
        events.append(("start", message.id))
        await asyncio.sleep(0.01)
        events.append(("end", message.id))

    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=_orchestrator(handle_new_message=_handle))

    async def scenario():
        await asyncio.gather(
            cog.on_message(_message(message_id=1)),
            cog.on_message(_message(message_id=2)),
            cog.on_message(_message(message_id=3, channel_id=6)),
        )

    asyncio.run(scenario())

    same_channel = [event for event in events if event[1] in (1, 2)]
    assert same_channel == [("start", 1), ("end", 1), ("start", 2), ("end", 2)]
    assert events.index(("start", 3)) < events.index(("end", 1))


def test_handler_failures_are_logged_not_raised(caplog):
    orchestrator = _orchestrator(handle_new_message=AsyncMock(side_effect=RuntimeError("boom")))
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)

    with caplog.at_level("ERROR"):
        asyncio.run(cog.on_message(_message()))

    assert "onboarding message handling failed" in caplog.text


def test_member_join_starts_onboarding():
    orchestrator = _orchestrator()
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)
    member = SimpleNamespace(id=7, bot=False, guild=SimpleNamespace(id=42))

    asyncio.run(cog.on_member_join(member))
    asyncio.run(cog.on_member_join(SimpleNamespace(id=8, bot=True, guild=member.guild)))

    orchestrator.handle_new_member.assert_awaited_once_with(member)


def test_channel_delete_forgets_conversation():
    orchestrator = _orchestrator()
    cog = OnboardingWatcher(SimpleNamespace(), orchestrator=orchestrator)
    channel = SimpleNamespace(id=5, name=f"{PREFIX}fred")
    asyncio.run(cog.on_message(_message()))
    assert 5 in cog._locks

    asyncio.run(cog.on_guild_channel_delete(channel))
    asyncio.run(cog.on_guild_channel_delete(SimpleNamespace(id=9, name="general")))

    orchestrator.forget.assert_called_once_with(channel)
    assert 5 not in cog._locks


def test_deleted_member_messages_are_handed_to_orchestrator():
    orchestrator = _orchestrator(handle_deleted_message=AsyncMock())
    channel = SimpleNamespace(id=5, name=f"{PREFIX}fred")
    cog = OnboardingWatcher(SimpleNamespace(get_channel=lambda channel_id: channel), orchestrator=orchestrator)
    author = SimpleNamespace(id=7, bot=False)

    def _payload(cached=None):
        return SimpleNamespace(guild_id=42, channel_id=5, message_id=1, cached_message=cached)

    asyncio.run(cog.on_raw_message_delete(_payload(SimpleNamespace(author=SimpleNamespace(id=8, bot=True)))))
    orchestrator.handle_deleted_message.assert_not_awaited()

    asyncio.run(cog.on_raw_message_delete(_payload(SimpleNamespace(author=author))))
    asyncio.run(cog.on_raw_message_delete(_payload()))

    assert orchestrator.handle_deleted_message.await_args_list[0].args == (channel, author)
    assert orchestrator.handle_deleted_message.await_args_list[1].args == (channel, None)


def test_deletes_outside_onboarding_channels_are_ignored():
    orchestrator = _orchestrator(handle_deleted_message=AsyncMock())
    general = SimpleNamespace(id=9, name="general")
    cog = OnboardingWatcher(SimpleNamespace(get_channel=lambda channel_id: general), orchestrator=orchestrator)

    asyncio.run(cog.on_raw_message_delete(SimpleNamespace(guild_id=42, channel_id=9, message_id=1, cached_message=None)))
    asyncio.run(cog.on_raw_message_delete(SimpleNamespace(guild_id=None, channel_id=9, message_id=2, cached_message=None)))

    orchestrator.handle_deleted_message.assert_not_awaited()
