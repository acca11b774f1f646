"""Reconcile edits to answers that were already given."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

import discord

from modules.onboarding import texts
from modules.onboarding.answers import AnswerResolver
from modules.onboarding.logs import channel_path
from modules.onboarding.message_log import LoggedMessage, MessageLog
from modules.onboarding.questions import QUESTIONS, Question
from modules.onboarding.state import ConversationState, Entry, build_state
from shared.logs import log_lifecycle

__all__ = ["EditOutcome", "EditResult", "EditReconciler", "ReconcileState", "reconcile_state"]

log = logging.getLogger("kcd.onboarding.edits")


class ReconcileState(str, Enum):
    CLEAN = "clean"
    HAS_EDIT_ERRORS = "has_edit_errors"


class EditOutcome(str, Enum):
    IGNORED = "ignored"  # not a live answer
    PENDING = "pending"  # answer to the open question; handle as a new message
    BROKEN = "broken"
    FIXED = "fixed"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class EditResult:
    outcome: EditOutcome
    state: ReconcileState
    key: str | None = None


def reconcile_state(state: ConversationState) -> ReconcileState:
    return ReconcileState.HAS_EDIT_ERRORS if state.has_edit_errors else ReconcileState.CLEAN


class EditReconciler:
    """Apply an edited answer to the conversation.

    Notices are matched by their exact text, so a later edit can retract the
    notice an earlier one produced without any bookkeeping outside the channel.
    """

    def __init__(self, questions: Sequence[Question] = QUESTIONS) -> None:
        self.questions = tuple(questions)

    async def reconcile(self, ctx: Any, before_content: str | None, message: Any) -> EditResult:
        history = await ctx.read_log()
        state = build_state(history, ctx.settings, self.questions)
        entry = state.entry_for_message(getattr(message, "id", None))
        if entry is None:
            return EditResult(EditOutcome.IGNORED, reconcile_state(state))
        if not entry.answer.passed:
            return EditResult(EditOutcome.PENDING, reconcile_state(state), entry.key)

        question = entry.question
        answer_message = entry.answer.message
        settings = ctx.settings
        answers = state.answers
        prior = {key: value for key, value in answers.items() if key != entry.key}

        old_value, old_error = (None, None)
        if before_content is not None:
            old_value, old_error = question.check(before_content, settings, prior)
        had_errors = state.has_edit_errors or bool(old_error)
        if old_error:
            await self._retract_notices(history, answer_message, texts.edit_error(old_error))

        new_value, new_error = question.check(message.content, settings, prior)
        if new_error:
            await ctx.send(texts.edit_error(new_error))
            self._lifecycle("answer_broken", ctx, entry)
            return EditResult(EditOutcome.BROKEN, ReconcileState.HAS_EDIT_ERRORS, entry.key)

        answers = {**prior, entry.key: new_value}
        await self._refresh_feedback(ctx, history, entry, new_value, answers)
        # Hooks are idempotent.
        if question.on_accept is not None and (new_value != old_value or old_error):
            await question.on_accept(ctx, new_value, answers, edit=True)
        await self._refresh_dependents(ctx, state, entry, answers)

        history = await ctx.read_log()
        state = build_state(history, settings, self.questions)
        current = state.current
        if not state.has_edit_errors:
            prompt = current.answer.prompt if current is not None else None
            stale = (
                not state.finished
                and prompt is not None
                and getattr(history.newest(), "id", None) != prompt.id
            )
            if had_errors or stale:
                await ctx.send(texts.EDIT_FIXED)
                if stale:
                    await ctx.send(await current.question.render(ctx, state.answers))
                self._lifecycle("edits_fixed", ctx, entry)
                return EditResult(EditOutcome.FIXED, ReconcileState.CLEAN, entry.key)

        self._lifecycle("answer_updated", ctx, entry)
        return EditResult(EditOutcome.UPDATED, reconcile_state(state), entry.key)

    async def _retract_notices(
        self, history: MessageLog, answer: LoggedMessage | None, notice: str
    ) -> None:
        if answer is None:
            return
        for message in history.after(answer):
            if message.is_bot and message.content == notice:
                await _delete(message)

    async def _refresh_feedback(
        self,
        ctx: Any,
        history: MessageLog,
        entry: Entry,
        value: Any,
        answers: dict[str, Any],
    ) -> None:
        question = entry.question
        if question.feedback is None or entry.answer.message is None:
            return
        resolver = AnswerResolver(ctx.settings, self.questions)
        feedback = next((m for m in history.after(entry.answer.message) if m.is_bot), None)
        if feedback is None or resolver.classify(feedback) is not None or texts.is_edit_error(feedback.content):
            return
        text = await question.feedback(ctx, value, answers)
        if text and text != feedback.content:
            await _edit(feedback, text)

    async def _refresh_dependents(
        self,
        ctx: Any,
        state: ConversationState,
        edited: Entry,
        answers: dict[str, Any],
    ) -> None:
        merged = {**state.answers, **answers}
        for entry in state.entries[edited.index + 1 :]:
            prompt = entry.answer.prompt
            depends_on = entry.question.depends_on
            if prompt is None or edited.key not in depends_on:
                continue
            # Re-rendered once every input is valid again.
            if any(key not in merged for key in depends_on):
                continue
            text = await entry.question.render(ctx, merged)
            if text != prompt.content:
                await _edit(prompt, text)

    def _lifecycle(self, event: str, ctx: Any, entry: Entry) -> None:
        log_lifecycle(log, "edit", event, channel=channel_path(ctx.channel), question=entry.key)


async def _edit(message: LoggedMessage, content: str) -> None:
    source = message.source
    if source is None:
        return
    try:
        await source.edit(content=content)
    except discord.HTTPException:
        log.warning("failed to edit bot message", exc_info=True, extra={"message_id": message.id})


async def _delete(message: LoggedMessage) -> None:
    source = message.source
    if source is None:
        return
    try:
        await source.delete()
    except discord.HTTPException:
        log.warning("failed to delete bot message", exc_info=True, extra={"message_id": message.id})
