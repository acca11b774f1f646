import asyncio
from types import SimpleNamespace

from modules.onboarding import texts
from modules.onboarding.answers import FINISHED, AnswerResolver
from modules.onboarding.message_log import BOT, MEMBER, OTHER, MessageLog
from modules.onboarding.questions import QUESTIONS
from modules.onboarding.state import build_state

BOT_ID = 1
MEMBER_ID = 2
MOD_ID = 3

EMAIL_PROMPT = "What's your email address? (This will add you to Kent's mailing list. You will receive a confirmation email.)"
COC_PROMPT = "Our community is commited to certain standards of behavior and we enforce that behavior ..."


def _log(*rows):
    """Build a log from ``(author_id, content)`` rows given oldest first."""

    messages = [
        SimpleNamespace(id=100 + index, author=SimpleNamespace(id=author), content=content)
        for index, (author, content) in enumerate(rows)
    ]
    return MessageLog.from_messages(list(reversed(messages)), bot_id=BOT_ID, member_id=MEMBER_ID)


def test_message_log_orders_newest_first_and_tags_roles():
    log = _log((BOT_ID, "hello"), (MEMBER_ID, "Fred"), (MOD_ID, "hi"))

    assert [entry.content for entry in log.all()] == ["hi", "Fred", "hello"]
    assert [entry.content for entry in log.chronological()] == ["hello", "Fred", "hi"]
    assert [entry.role for entry in log.chronological()] == [BOT, MEMBER, OTHER]
    assert log.newest().content == "hi"
    assert [entry.content for entry in log.latest(2)] == ["hi", "Fred"]
    assert [entry.content for entry in log.by_author(MEMBER)] == ["Fred"]
    assert log.position_of(101) == 1
    assert log.position_of(SimpleNamespace(id=102)) == 2
    assert log.position_of(999) is None
    assert [entry.content for entry in log.after(log.get(100))] == ["Fred", "hi"]


def test_message_log_fetch_reads_channel_history():
    messages = [
        SimpleNamespace(id=11, author=SimpleNamespace(id=MEMBER_ID), content="second"),
        SimpleNamespace(id=10, author=SimpleNamespace(id=BOT_ID), content="first"),
    ]

    class _Channel:
        async def history(self, limit=None):
            for message in messages:
                yield message

    log = asyncio.run(MessageLog.fetch(_Channel(), bot_id=BOT_ID, member_id=MEMBER_ID))

    assert [entry.content for entry in log.chronological()] == ["first", "second"]
    assert log.get(11).source is messages[0]


def test_live_answer_is_newest_member_message_in_window():
    log = _log(
        (BOT_ID, "What's your first name?"),
        (MEMBER_ID, "Fred"),
        (BOT_ID, "Great, hi Fred 👋"),
        (BOT_ID, EMAIL_PROMPT),
        (MEMBER_ID, "nope"),
        (BOT_ID, "That doesn't look like an email address. Please provide a proper email address."),
        (MEMBER_ID, "fred@example.com"),
    )
    resolver = AnswerResolver()

    email = resolver.resolve(QUESTIONS[1], log)

    assert email.message.content == "fred@example.com"
    assert email.valid is True
    assert email.passed is False
    name = resolver.resolve(QUESTIONS[0], log)
    assert name.value == "Fred"
    assert name.passed is True


def test_unanswered_and_unprompted_questions():
    log = _log((BOT_ID, "What's your first name?"))
    resolver = AnswerResolver()

    name = resolver.resolve(QUESTIONS[0], log)
    email = resolver.resolve(QUESTIONS[1], log)

    assert name.prompted and not name.present and not name.passed
    assert not email.prompted


def test_finished_message_is_a_boundary():
    log = _log(
        (BOT_ID, "Would you like to be notified when Kent starts https://kcd.im/office-hours in #office?"),
        (MEMBER_ID, "yes"),
        (BOT_ID, texts.finished("#intro")),
    )
    resolver = AnswerResolver()

    kinds = [kind for _, kind in resolver.boundaries(log)]

    assert kinds == ["office_hours", FINISHED]
    assert resolver.resolve(QUESTIONS[-1], log).passed is True


def test_longest_marker_wins_for_opt_in_prompts():
    log = _log((BOT_ID, "Would you like to be notified when Kent starts live streaming in #live?"))

    assert AnswerResolver().classify(log.newest()) == "live_stream"


def _answered_through_confirm_prompt(email="fred@example.com"):
    return (
        (BOT_ID, "What's your first name?"),
        (MEMBER_ID, "Fred"),
        (BOT_ID, "Great, hi Fred 👋"),
        (BOT_ID, EMAIL_PROMPT),
        (MEMBER_ID, email),
        (BOT_ID, "Awesome"),
        (BOT_ID, COC_PROMPT),
        (MEMBER_ID, "yes"),
        (BOT_ID, "Great, thanks"),
        (BOT_ID, "**Based on what you read in the Code of Conduct**, what's the email address ..."),
        (MEMBER_ID, "team@kentcdodds.com"),
        (BOT_ID, "That's right!"),
        (BOT_ID, "Here are your answers:\n  First Name: Fred"),
    )


def test_state_tracks_current_and_next_question():
    state = build_state(_log(*_answered_through_confirm_prompt()))

    assert state.current.key == "confirm"
    assert state.next_index == 4
    assert state.has_edit_errors is False
    assert state.complete is False
    assert state.answers == {
        "name": "Fred",
        "email": "fred@example.com",
        "coc": "yes",
        "coc_contact": "team@kentcdodds.com",
    }


def test_state_flags_passed_invalid_answer_as_edit_error():
    state = build_state(_log(*_answered_through_confirm_prompt(email="not an email")))

    assert [entry.key for entry in state.edit_errors] == ["email"]
    assert state.next_index == 1
    assert state.current.key == "confirm"


def test_state_marks_deleted_answer_missing_not_broken():
    rows = tuple(row for row in _answered_through_confirm_prompt() if row != (MEMBER_ID, "fred@example.com"))

    state = build_state(_log(*rows))

    assert [entry.key for entry in state.missing] == ["email"]
    assert state.has_edit_errors is False
    assert state.next_index == 1
    assert "email" not in state.answers


def test_state_complete_and_admitted_after_confirmation():
    rows = _answered_through_confirm_prompt() + (
        (MEMBER_ID, "yes"),
        (BOT_ID, "Awesome, welcome"),
        (BOT_ID, texts.completion("fred@example.com", already_subscribed=False)),
    )

    state = build_state(_log(*rows))

    assert state.complete is True
    assert state.admitted is True
    assert state.finished is False
    assert state.next_index is None


def test_state_is_idempotent_for_unchanged_log():
    log = _log(*_answered_through_confirm_prompt(email="not an email"))

    first = build_state(log)
    second = build_state(log)

    assert first == second
    assert build_state(_log(*_answered_through_confirm_prompt(email="not an email"))) == first


def test_entry_for_message_only_matches_live_answers():
    rows = (
        (BOT_ID, EMAIL_PROMPT),
        (MEMBER_ID, "nope"),
        (BOT_ID, "That doesn't look like an email address."),
        (MEMBER_ID, "fred@example.com"),
    )
    state = build_state(_log(*rows))

    assert state.entry_for_message(101) is None
    assert state.entry_for_message(103).key == "email"
