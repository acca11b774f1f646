"""Conversation state derived from a channel log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from modules.onboarding import texts
from modules.onboarding.answers import Answer, AnswerResolver
from modules.onboarding.message_log import BOT, MessageLog
from modules.onboarding.questions import QUESTIONS, Question
from modules.onboarding.settings import OnboardingSettings

__all__ = ["ConversationState", "Entry", "build_state"]


@dataclass(frozen=True, slots=True)
class Entry:
    index: int
    question: Question
    answer: Answer

    @property
    def key(self) -> str:
        return self.question.key

    @property
    def edit_error(self) -> bool:
        """A passed question whose answer is no longer valid."""

        return self.answer.passed and self.answer.present and not self.answer.valid

    @property
    def missing(self) -> bool:
        """A passed question whose answer was deleted."""

        return self.answer.passed and not self.answer.present


@dataclass(frozen=True, slots=True)
class ConversationState:
    entries: tuple[Entry, ...]
    current_index: Optional[int]
    next_index: Optional[int]
    admitted: bool
    finished: bool

    @property
    def current(self) -> Entry | None:
        if self.current_index is None:
            return None
        return self.entries[self.current_index]

    @property
    def edit_errors(self) -> tuple[Entry, ...]:
        return tuple(entry for entry in self.entries if entry.edit_error)

    @property
    def has_edit_errors(self) -> bool:
        return any(entry.edit_error for entry in self.entries)

    @property
    def missing(self) -> tuple[Entry, ...]:
        return tuple(entry for entry in self.entries if entry.missing)

    @property
    def complete(self) -> bool:
        """Every required question, confirmation included, holds a valid answer."""

        return all(entry.answer.valid for entry in self.entries if not entry.question.optional)

    @property
    def answers(self) -> dict[str, Any]:
        return {entry.key: entry.answer.value for entry in self.entries if entry.answer.valid}

    def entry(self, key: str) -> Entry | None:
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None

    def entry_for_message(self, message_id: int | None) -> Entry | None:
        """Return the entry whose live answer is ``message_id``."""

        if message_id is None:
            return None
        for entry in self.entries:
            message = entry.answer.message
            if message is not None and message.id == int(message_id):
                return entry
        return None


def build_state(
    log: MessageLog,
    settings: OnboardingSettings | None = None,
    questions: Sequence[Question] = QUESTIONS,
) -> ConversationState:
    """Fold ``log`` into a :class:`ConversationState`.

    The result depends on nothing but the log contents and ``settings``, so
    rebuilding from an unchanged log yields an equal state.
    """

    resolver = AnswerResolver(settings, questions)
    prompts = resolver.latest_prompts(log)

    entries: list[Entry] = []
    accepted: dict[str, Any] = {}
    for index, question in enumerate(questions):
        answer = resolver.resolve(question, log, accepted, prompt=prompts.get(question.key))
        if answer.valid:
            accepted[question.key] = answer.value
        entries.append(Entry(index=index, question=question, answer=answer))

    current_index: Optional[int] = None
    newest_position = -1
    for entry in entries:
        prompt = entry.answer.prompt
        if prompt is not None and prompt.position > newest_position:
            newest_position = prompt.position
            current_index = entry.index

    next_index: Optional[int] = None
    for entry in entries:
        if entry.question.optional and not entry.answer.prompted:
            continue
        if not entry.answer.valid:
            next_index = entry.index
            break

    admitted = False
    finished = False
    for message in log.by_author(BOT):
        if message.content.startswith(texts.COMPLETION_MARKER):
            admitted = True
        elif message.content.startswith(texts.FINISHED_MARKER):
            finished = True

    return ConversationState(
        entries=tuple(entries),
        current_index=current_index,
        next_index=next_index,
        admitted=admitted,
        finished=finished,
    )
