"""Locate each question's live answer in a channel log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from modules.onboarding import texts
from modules.onboarding.message_log import LoggedMessage, MessageLog
from modules.onboarding.questions import QUESTIONS, Question, find_question
from modules.onboarding.settings import OnboardingSettings

__all__ = ["FINISHED", "Answer", "AnswerResolver", "Window"]

# Boundary kind for the terminal "all done" message.
FINISHED = "__finished__"


@dataclass(frozen=True, slots=True)
class Window:
    """Messages under one prompt, up to the next boundary."""

    prompt: LoggedMessage
    messages: tuple[LoggedMessage, ...]
    boundary: LoggedMessage | None

    @property
    def closed(self) -> bool:
        return self.boundary is not None

    def live_answer(self) -> LoggedMessage | None:
        for message in reversed(self.messages):
            if message.is_member:
                return message
        return None


@dataclass(frozen=True, slots=True)
class Answer:
    key: str
    prompt: LoggedMessage | None = None
    message: LoggedMessage | None = None
    value: Any = None
    error: Optional[str] = None
    passed: bool = False

    @property
    def prompted(self) -> bool:
        return self.prompt is not None

    @property
    def present(self) -> bool:
        return self.message is not None

    @property
    def valid(self) -> bool:
        return self.message is not None and self.error is None


class AnswerResolver:
    """Classify bot messages as prompts and resolve answers under them.

    A question's window is everything after its latest prompt up to the next
    prompt of any question or the closing "all done" message. The newest member
    message in the window is the live answer; older ones are superseded.
    """

    def __init__(
        self,
        settings: OnboardingSettings | None = None,
        questions: Sequence[Question] = QUESTIONS,
    ) -> None:
        self.settings = settings or OnboardingSettings()
        self.questions = tuple(questions)

    def classify(self, message: LoggedMessage) -> str | None:
        """Return the question key (or ``FINISHED``) a bot message opens, if any."""

        if not message.is_bot:
            return None
        if message.content.startswith(texts.FINISHED_MARKER):
            return FINISHED
        question = find_question(message.content, self.questions)
        return question.key if question is not None else None

    def boundaries(self, log: MessageLog) -> list[tuple[LoggedMessage, str]]:
        """All boundary messages, oldest first."""

        found = []
        for message in log.chronological():
            kind = self.classify(message)
            if kind is not None:
                found.append((message, kind))
        return found

    def latest_prompts(self, log: MessageLog) -> dict[str, LoggedMessage]:
        prompts: dict[str, LoggedMessage] = {}
        for message, kind in self.boundaries(log):
            if kind != FINISHED:
                prompts[kind] = message
        return prompts

    def window(self, log: MessageLog, prompt: LoggedMessage) -> Window:
        collected: list[LoggedMessage] = []
        boundary: LoggedMessage | None = None
        for message in log.after(prompt):
            if self.classify(message) is not None:
                boundary = message
                break
            collected.append(message)
        return Window(prompt=prompt, messages=tuple(collected), boundary=boundary)

    def resolve(
        self,
        question: Question,
        log: MessageLog,
        answers: Mapping[str, Any] | None = None,
        *,
        prompt: LoggedMessage | None = None,
    ) -> Answer:
        """Return ``question``'s live answer, validated against ``answers``."""

        if prompt is None:
            prompt = self.latest_prompts(log).get(question.key)
        if prompt is None:
            return Answer(key=question.key)
        window = self.window(log, prompt)
        message = window.live_answer()
        if message is None:
            return Answer(key=question.key, prompt=prompt, passed=window.closed)
        value, error = question.check(message.content, self.settings, answers or {})
        return Answer(
            key=question.key,
            prompt=prompt,
            message=message,
            value=value,
            error=error,
            passed=window.closed,
        )
