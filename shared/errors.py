"""Errors raised by collaborator clients.

Answer validation failures are not exceptions: validators return the error text
that is posted verbatim as the bot's reply. Only collaborator failures raise.
"""

from __future__ import annotations

__all__ = [
    "AvatarLookupError",
    "CollaboratorError",
    "MailingListError",
    "OnboardingError",
]


class OnboardingError(RuntimeError):
    """Base class for onboarding failures."""


class CollaboratorError(OnboardingError):
    """A call to an external collaborator failed.

    Callers log the failure and continue with the fallback wording; the
    conversation is never ended because of it.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MailingListError(CollaboratorError):
    """The mailing-list API could not be reached or rejected the request."""


class AvatarLookupError(CollaboratorError):
    """The avatar lookup service failed (other than a plain not-found)."""
