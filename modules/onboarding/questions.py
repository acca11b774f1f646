"""Ordered registry of onboarding questions.

Each question is a plain record of callables; the conversation engine walks the
tuple uniformly and never branches on a question's identity.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

import discord

from modules.onboarding import texts
from modules.onboarding.logs import conversation_extra, lifecycle
from modules.onboarding.settings import OnboardingSettings
from shared.errors import MailingListError

__all__ = [
    "QUESTIONS",
    "Question",
    "find_question",
    "question_index",
    "render_summary",
]

log = logging.getLogger("kcd.onboarding.questions")

Answers = Mapping[str, Any]
Renderer = Callable[[Any, Answers], Awaitable[str]]
Feedback = Callable[[Any, Any, Answers], Awaitable[Optional[str]]]
Hook = Callable[..., Awaitable[None]]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_WHITESPACE_RE = re.compile(r"\s+")

AVATAR_HELP_URL = "https://support.discord.com/hc/en-us/articles/204156688-How-do-I-change-my-avatar-"


def _text(raw: str) -> str:
    return _WHITESPACE_RE.sub(" ", (raw or "").strip())


def _token(raw: str) -> str:
    return _text(raw).lower()


def _never_skip(ctx: Any) -> bool:
    return False


def _shown(value: Any) -> str:
    return str(value)


@dataclass(frozen=True, slots=True)
class Question:
    key: str
    marker: str
    render: Renderer
    extract: Callable[[str], Any]
    validate: Callable[[Any, OnboardingSettings, Answers], Optional[str]]
    feedback: Feedback | None = None
    on_accept: Hook | None = None
    label: str | None = None
    display: Callable[[Any], str] = _shown
    depends_on: tuple[str, ...] = ()
    optional: bool = False
    gates_completion: bool = False
    skip: Callable[[Any], bool] = _never_skip

    def is_prompt(self, content: str) -> bool:
        return content.startswith(self.marker)

    def check(self, raw: str, settings: OnboardingSettings, answers: Answers) -> tuple[Any, Optional[str]]:
        """Extract and validate ``raw``; returns ``(value, error)``."""

        value = self.extract(raw)
        return value, self.validate(value, settings, answers)


# --- name -------------------------------------------------------------------


async def _render_name(ctx: Any, answers: Answers) -> str:
    return "What's your first name?"


def _validate_name(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if not value:
        return "Please tell me your first name."
    return None


async def _name_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    return f"Great, hi {value} 👋"


async def _set_nickname(ctx: Any, value: Any, answers: Answers, *, edit: bool) -> None:
    member = ctx.member
    if getattr(member, "nick", None) == value:
        return
    previous = getattr(member, "nick", None) or getattr(member, "display_name", None) or getattr(member, "name", "")
    try:
        updated = await member.edit(nick=value, reason="Onboarding: first name")
    except discord.HTTPException:
        log.warning(
            "failed to set nickname",
            exc_info=True,
            extra=conversation_extra(ctx.channel, member, edit=edit),
        )
        return
    if updated is not None:
        ctx.member = updated
    await ctx.send(texts.nickname_notice(value, previous))
    lifecycle("nickname_set", ctx.channel, member, edit=edit)


# --- email ------------------------------------------------------------------


async def _render_email(ctx: Any, answers: Answers) -> str:
    return (
        "What's your email address? (This will add you to Kent's mailing list. "
        "You will receive a confirmation email.)"
    )


def _validate_email(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if not value or not _EMAIL_RE.match(value):
        return "That doesn't look like an email address. Please provide a proper email address."
    return None


async def _email_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    if await ctx.is_subscribed(value):
        return (
            f"Oh, nice, {value} is already a part of Kent's mailing list (you rock 🤘), "
            "so you won't be getting a confirmation email after all."
        )
    return f"Awesome, when we're done here, you'll receive a confirmation email to: {value}."


# --- code of conduct --------------------------------------------------------


async def _render_coc(ctx: Any, answers: Answers) -> str:
    return (
        "Our community is commited to certain standards of behavior and we enforce that behavior "
        "to ensure it's a nice place to spend time.\n\n"
        f"Please read about our code of conduct here: {ctx.settings.conduct_url}\n\n"
        'Do you agree to abide by and uphold the code of conduct? **The only correct answer is "yes"**'
    )


def _validate_coc(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if value != "yes":
        return (
            "You must agree to the code of conduct to join this community. "
            'Do you agree to abide by and uphold the code of conduct? (The answer must be "yes")'
        )
    return None


async def _coc_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    return "Great, thanks for helping us keep this an awesome place to be."


async def _render_coc_contact(ctx: Any, answers: Answers) -> str:
    return (
        "**Based on what you read in the Code of Conduct**, what's the email address you send "
        "Code of Conduct concerns and violations to? (If you're not sure, open the code of "
        "conduct to find out)."
    )


def _validate_coc_contact(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if value != settings.conduct_email.strip().lower():
        return (
            f"That's not quite right. Please open the code of conduct ({settings.conduct_url}) "
            "and find the email address listed there."
        )
    return None


async def _coc_contact_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    return "That's right!"


# --- final confirmation -----------------------------------------------------


def render_summary(answers: Answers, questions: Sequence[Question] | None = None) -> str:
    """Render the answer summary that opens the final confirmation prompt."""

    lines = ["Here are your answers:"]
    for question in questions if questions is not None else QUESTIONS:
        if question.label is None:
            continue
        value = answers.get(question.key)
        shown = question.display(value) if value is not None else ""
        lines.append(f"  {question.label}: {shown}")
    return "\n".join(lines)


async def _render_confirm(ctx: Any, answers: Answers) -> str:
    return (
        f"{render_summary(answers)}\n\n"
        "If you'd like to change any, then edit your responses above.\n\n"
        '**If everything\'s correct, simply reply "yes"**.'
    )


def _validate_confirm(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if value != "yes":
        return (
            'Please reply "yes" if everything\'s correct. '
            "If you'd like to change any of your answers, then edit your responses above."
        )
    return None


async def _confirm_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    return f"Awesome, welcome to the {ctx.settings.community_name}!"


async def _admit_member(ctx: Any, value: Any, answers: Answers, *, edit: bool) -> None:
    """Grant access once the member confirms their answers."""

    if edit:
        return
    settings = ctx.settings
    await ctx.add_role(settings.member_role, reason="Onboarding complete")
    await ctx.remove_role(settings.unconfirmed_role, reason="Onboarding complete")

    email = answers.get("email")
    subscribed = await ctx.is_subscribed(email)
    if email and not subscribed and ctx.mailing_list is not None:
        try:
            await ctx.mailing_list.subscribe(email, first_name=answers.get("name"))
        except MailingListError:
            log.warning(
                "mailing list subscribe failed",
                exc_info=True,
                extra=conversation_extra(ctx.channel, ctx.member),
            )

    await ctx.send(texts.completion(email, already_subscribed=subscribed))
    if settings.welcome_gif_url:
        await ctx.send(settings.welcome_gif_url)
    await ctx.send(texts.OPTIONAL_INTRO)
    lifecycle("member_admitted", ctx.channel, ctx.member, subscribed=subscribed)


# --- optional steps ---------------------------------------------------------


def _has_avatar(ctx: Any) -> bool:
    member = ctx.member
    user = getattr(member, "user", None) or member
    return bool(getattr(user, "avatar", None))


async def _render_avatar(ctx: Any, answers: Answers) -> str:
    parts = ["It's more fun here when folks have an avatar. You can go ahead and set yours now 😄"]
    url = await ctx.avatar_url(answers.get("email"))
    if url:
        parts.append(
            "I got this image using your email address with gravatar.com. "
            "You can use it for your avatar if you like."
        )
        parts.append(url)
    parts.append(f"Here's how you set your avatar: {AVATAR_HELP_URL}")
    parts.append('**When you\'re finished (or if you\'d like to just move on), just say "done"**')
    return "\n\n".join(parts)


def _validate_avatar(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if value != texts.DONE_COMMAND:
        return 'When you\'re finished (or if you\'d like to just move on), just say "done".'
    return None


async def _avatar_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    return "Ok, please do set your avatar later though. It helps keep everything human."


def _validate_opt_in(value: Any, settings: OnboardingSettings, answers: Answers) -> Optional[str]:
    if value not in ("yes", "no", texts.DONE_COMMAND):
        return 'Please answer "yes" or "no".'
    return None


def _opt_in_hook(role_attr: str) -> Hook:
    async def _apply(ctx: Any, value: Any, answers: Answers, *, edit: bool) -> None:
        role = getattr(ctx.settings, role_attr)
        if value == "yes":
            await ctx.add_role(role, reason="Onboarding notification opt-in")
        elif value == "no" and edit:
            await ctx.remove_role(role, reason="Onboarding notification opt-out")

    return _apply


async def _render_live_stream(ctx: Any, answers: Answers) -> str:
    channel = ctx.channel_mention(ctx.settings.live_stream_channel)
    return f"Would you like to be notified when Kent starts live streaming in {channel}?"


async def _live_stream_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    if value == "yes":
        return "Cool, when Kent starts live streaming, you'll get notified."
    if value == "no":
        return "No worries, you won't be notified when Kent starts live streaming."
    return None


async def _render_office_hours(ctx: Any, answers: Answers) -> str:
    channel = ctx.channel_mention(ctx.settings.office_hours_channel)
    return f"Would you like to be notified when Kent starts {ctx.settings.office_hours_url} in {channel}?"


async def _office_hours_feedback(ctx: Any, value: Any, answers: Answers) -> Optional[str]:
    if value == "yes":
        return "Great, you'll be notified when Kent's Office Hours start."
    if value == "no":
        return "No worries, you won't be notified when Kent's Office Hours start."
    return None


QUESTIONS: tuple[Question, ...] = (
    Question(
        key="name",
        marker="What's your first name?",
        render=_render_name,
        extract=_text,
        validate=_validate_name,
        feedback=_name_feedback,
        on_accept=_set_nickname,
        label="First Name",
    ),
    Question(
        key="email",
        marker="What's your email address?",
        render=_render_email,
        extract=_text,
        validate=_validate_email,
        feedback=_email_feedback,
        label="Email",
    ),
    Question(
        key="coc",
        marker="Our community is commited to certain standards of behavior",
        render=_render_coc,
        extract=_token,
        validate=_validate_coc,
        feedback=_coc_feedback,
        label="Accepted Code of Conduct",
        display=lambda value: "Yes" if value == "yes" else "No",
    ),
    Question(
        key="coc_contact",
        marker="**Based on what you read in the Code of Conduct**",
        render=_render_coc_contact,
        extract=_token,
        validate=_validate_coc_contact,
        feedback=_coc_contact_feedback,
    ),
    Question(
        key="confirm",
        marker="Here are your answers:",
        render=_render_confirm,
        extract=_token,
        validate=_validate_confirm,
        feedback=_confirm_feedback,
        on_accept=_admit_member,
        depends_on=("name", "email", "coc"),
        gates_completion=True,
    ),
    Question(
        key="avatar",
        marker="It's more fun here when folks have an avatar.",
        render=_render_avatar,
        extract=_token,
        validate=_validate_avatar,
        feedback=_avatar_feedback,
        depends_on=("email",),
        optional=True,
        skip=_has_avatar,
    ),
    Question(
        key="live_stream",
        marker="Would you like to be notified when Kent starts live streaming",
        render=_render_live_stream,
        extract=_token,
        validate=_validate_opt_in,
        feedback=_live_stream_feedback,
        on_accept=_opt_in_hook("live_stream_role"),
        optional=True,
    ),
    Question(
        key="office_hours",
        marker="Would you like to be notified when Kent starts ",
        render=_render_office_hours,
        extract=_token,
        validate=_validate_opt_in,
        feedback=_office_hours_feedback,
        on_accept=_opt_in_hook("office_hours_role"),
        optional=True,
    ),
)


def find_question(content: str, questions: Sequence[Question] = QUESTIONS) -> Question | None:
    """Return the question whose prompt ``content`` is; the longest marker wins."""

    best: Question | None = None
    for question in questions:
        if question.is_prompt(content) and (best is None or len(question.marker) > len(best.marker)):
            best = question
    return best


def question_index(key: str, questions: Sequence[Question] = QUESTIONS) -> int:
    for index, question in enumerate(questions):
        if question.key == key:
            return index
    raise KeyError(key)
