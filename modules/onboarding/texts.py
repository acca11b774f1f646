"""Fixed bot copy for the onboarding conversation."""

from __future__ import annotations

from typing import Any

from modules.onboarding.settings import OnboardingSettings

EDIT_ERROR_PREFIX = "There's a problem with an edit that was just made. Please edit the answer again to fix it."
EDIT_FIXED = "Thanks for fixing things up, now we can continue."
EXISTING_ERRORS = (
    "There are existing errors with your previous answers, please edit your answer above before continuing."
)
ANSWER_DELETED = "Looks like one of your answers was deleted. Please answer this one again."
SEPARATOR = "━━━━━━━━━━━━━━━━━━━━"
OPTIONAL_INTRO = (
    f"{SEPARATOR}\n\n"
    "**If you wanna hang out here for a bit longer, I have a few questions that will help you get set up in this server a bit more.**"
)
FINISHED_MARKER = "Looks like we're all done! Go explore!"
ALL_DONE_REMINDER = (
    "We're all done. This channel will get deleted automatically eventually, "
    'but if you want to delete it yourself, then say "delete".'
)
COMPLETION_MARKER = "🎉 You should be good to go now."

DELETE_COMMAND = "delete"
DONE_COMMAND = "done"


def edit_error(error: str) -> str:
    return f"{EDIT_ERROR_PREFIX} {error}"


def is_edit_error(content: str) -> bool:
    return content.startswith(EDIT_ERROR_PREFIX)


def user_handle(member: Any) -> str:
    user = getattr(member, "user", None) or member
    name = getattr(user, "name", None) or "member"
    discriminator = str(getattr(user, "discriminator", "") or "")
    if discriminator and discriminator != "0":
        return f"{name}#{discriminator}"
    return name


def channel_name_for(member: Any, settings: OnboardingSettings) -> str:
    user = getattr(member, "user", None) or member
    name = getattr(user, "name", None) or "member"
    discriminator = str(getattr(user, "discriminator", "") or "")
    suffix = f"{name}_{discriminator}" if discriminator and discriminator != "0" else name
    return f"{settings.channel_prefix}{suffix}"


def welcome(member: Any, settings: OnboardingSettings) -> str:
    mention = getattr(member, "mention", None) or f"<@{getattr(member, 'id', '')}>"
    return (
        f"Hello {mention} 👋\n\n"
        f"I'm a bot and I'm here to welcome you to the {settings.community_name}! "
        "Before you can join in the fun, I need to ask you a few questions. "
        f"If you have any trouble, please email {settings.support_email} with your discord username "
        f"(`{user_handle(member)}`) and we'll get things fixed up for you.\n\n"
        "(Note, if you make a mistake, you can edit your responses).\n\n"
        "In less than 5 minutes, you'll have full access to this server. "
        "So, let's get started! Here's the first question:"
    )


def completion(email: str | None, *, already_subscribed: bool) -> str:
    reminder = ""
    if email and not already_subscribed:
        reminder = f"Don't forget to check {email} for a confirmation email. 📬"
    return (
        f"{COMPLETION_MARKER} {reminder}\n\n"
        "🎊 You now have access to the whole server. Welcome!"
    )


def finished(introductions: str) -> str:
    return (
        f"{FINISHED_MARKER}\n\n"
        f"We'd love to get to know you a bit. Tell us about you in {introductions}. "
        "Here's a template you can use:\n\n"
        "🌐 I'm from:\n"
        "🏢 I work at:\n"
        "💻 I work with this tech:\n"
        "🍎 I snack on:\n"
        "🤪 I'm unique because:\n\n"
        "Enjoy the community!"
    )


def nickname_notice(name: str, previous: str) -> str:
    return (
        f"_I've changed your nickname on this server to {name}. "
        f"If you'd like to change it back then type: `/nick {previous}`_"
    )
