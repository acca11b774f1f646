"""Entry points that drive the onboarding conversation."""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

import discord

from modules.onboarding import texts
from modules.onboarding.context import (
    AvatarLookup,
    ContextStore,
    ConversationContext,
    MailingList,
)
from modules.onboarding.edits import EditOutcome, EditReconciler, EditResult
from modules.onboarding.logs import conversation_extra, lifecycle
from modules.onboarding.questions import QUESTIONS, Question
from modules.onboarding.settings import OnboardingSettings
from modules.onboarding.state import ConversationState, Entry, build_state

__all__ = ["OnboardingOrchestrator"]

log = logging.getLogger("kcd.onboarding.orchestrator")

_TOPIC_MEMBER_ID = re.compile(r'Member ID: "(\d+)"')


class OnboardingOrchestrator:
    """Recompute the conversation from the channel history on every event.

    Nothing about progress is cached between calls; the context only holds the
    handles (channel, member, collaborators) needed to act.
    """

    def __init__(
        self,
        *,
        settings: OnboardingSettings | None = None,
        mailing_list: MailingList | None = None,
        avatars: AvatarLookup | None = None,
        store: ContextStore | None = None,
        questions: Sequence[Question] = QUESTIONS,
    ) -> None:
        self.settings = settings or OnboardingSettings()
        self.mailing_list = mailing_list
        self.avatars = avatars
        self.store = store or ContextStore()
        self.questions = tuple(questions)
        self.reconciler = EditReconciler(self.questions)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def is_onboarding_channel(self, channel: Any) -> bool:
        name = getattr(channel, "name", None) or ""
        return name.startswith(self.settings.channel_prefix)

    def member_for(self, channel: Any, author: Any) -> Any | None:
        """Return the member a welcome channel belongs to, read from its topic."""

        match = _TOPIC_MEMBER_ID.search(getattr(channel, "topic", None) or "")
        if match is None:
            return author
        member_id = int(match.group(1))
        if getattr(author, "id", None) == member_id:
            return author
        get_member = getattr(getattr(channel, "guild", None), "get_member", None)
        return get_member(member_id) if get_member is not None else None

    def context_for(self, channel: Any, author: Any) -> ConversationContext | None:
        existing = self.store.get(int(channel.id))
        if existing is not None:
            return existing
        member = self.member_for(channel, author)
        if member is None:
            return None
        return self.store.ensure(
            channel,
            member,
            settings=self.settings,
            mailing_list=self.mailing_list,
            avatars=self.avatars,
        )

    def _first_question(self, ctx: ConversationContext) -> Question | None:
        return next((question for question in self.questions if not question.skip(ctx)), None)

    def _following(self, ctx: ConversationContext, state: ConversationState, answered: Entry) -> Question | None:
        """First question, in order, still waiting for an answer.

        Gaps left by deleted answers come before later questions. Broken answers
        are fixed by editing and are not asked again. Confirmation stays pending
        until the member is admitted.
        """

        for entry in state.entries:
            if entry.index == answered.index or entry.edit_error:
                continue
            pending = not entry.answer.valid or (entry.question.gates_completion and not state.admitted)
            if not pending or entry.question.skip(ctx):
                continue
            return entry.question
        return None

    async def _state(self, ctx: ConversationContext) -> ConversationState:
        return build_state(await ctx.read_log(), ctx.settings, self.questions)

    # ------------------------------------------------------------------
    # new member
    # ------------------------------------------------------------------
    async def handle_new_member(self, member: Any) -> ConversationContext:
        """Create the member's welcome channel and ask the first question."""

        guild = member.guild
        settings = self.settings
        pending = discord.utils.get(guild.roles, name=settings.unconfirmed_role)
        if pending is not None:
            try:
                await member.add_roles(pending, reason="Onboarding started")
            except discord.HTTPException:
                log.warning("failed to add pending role", exc_info=True, extra={"member": member.id})

        category = discord.utils.get(guild.categories, name=settings.welcome_category)
        overwrites = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            member: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
            ),
            guild.me: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                manage_messages=True,
                read_message_history=True,
            ),
        }
        channel = await guild.create_text_channel(
            texts.channel_name_for(member, settings),
            category=category,
            overwrites=overwrites,
            topic=f"Membership application for {texts.user_handle(member)} (Member ID: \"{member.id}\")",
            reason=f"Created on guildMemberAdd for {texts.user_handle(member)}",
        )

        ctx = self.store.put(
            ConversationContext(
                channel=channel,
                member=member,
                settings=settings,
                mailing_list=self.mailing_list,
                avatars=self.avatars,
            )
        )
        await ctx.send(texts.welcome(member, settings))
        first = self._first_question(ctx)
        if first is not None:
            await ctx.send(await first.render(ctx, {}))
        lifecycle("channel_created", channel, member)
        return ctx

    # ------------------------------------------------------------------
    # new message
    # ------------------------------------------------------------------
    async def handle_new_message(self, message: Any) -> None:
        author = getattr(message, "author", None)
        if author is None or getattr(author, "bot", False):
            return
        channel = message.channel
        if not self.is_onboarding_channel(channel):
            return
        ctx = self.context_for(channel, author)
        if ctx is None or getattr(author, "id", None) != ctx.member_id:
            return
        await self._advance(ctx, message.content or "")

    async def _advance(self, ctx: ConversationContext, content: str) -> None:
        state = await self._state(ctx)
        command = content.strip().lower()

        if state.finished:
            if command == texts.DELETE_COMMAND:
                await self.delete_channel(ctx)
            else:
                await ctx.send(texts.ALL_DONE_REMINDER)
            return
        if state.admitted and command == texts.DELETE_COMMAND:
            await self.delete_channel(ctx)
            return

        entry = state.current
        if entry is None:
            return
        question = entry.question
        answers = {key: value for key, value in state.answers.items() if key != question.key}
        value, error = question.check(content, ctx.settings, answers)
        if error:
            await ctx.send(error)
            lifecycle("answer_rejected", ctx.channel, ctx.member, question=question.key)
            return
        if question.gates_completion and state.has_edit_errors:
            await ctx.send(texts.EXISTING_ERRORS)
            lifecycle(
                "completion_blocked",
                ctx.channel,
                ctx.member,
                errors=",".join(item.key for item in state.edit_errors),
            )
            return
        if question.gates_completion and not state.complete and state.next_index is not None:
            gap = state.entries[state.next_index]
            await ctx.send(await gap.question.render(ctx, answers))
            lifecycle("completion_blocked", ctx.channel, ctx.member, missing=gap.key)
            return

        answers[question.key] = value
        if question.feedback is not None:
            reply = await question.feedback(ctx, value, answers)
            if reply:
                await ctx.send(reply)
        if question.on_accept is not None:
            await question.on_accept(ctx, value, answers, edit=False)
        log.info(
            "answer accepted",
            extra=conversation_extra(ctx.channel, ctx.member, question=question.key),
        )

        following = self._following(ctx, state, entry)
        if following is None:
            await ctx.send(texts.finished(ctx.channel_mention(ctx.settings.introductions_channel)))
            lifecycle("conversation_finished", ctx.channel, ctx.member)
            return
        await ctx.send(await following.render(ctx, answers))

    # ------------------------------------------------------------------
    # edits
    # ------------------------------------------------------------------
    async def handle_updated_message(self, before: Any, after: Any) -> EditResult | None:
        author = getattr(after, "author", None)
        if author is None or getattr(author, "bot", False):
            return None
        channel = after.channel
        if not self.is_onboarding_channel(channel):
            return None
        ctx = self.context_for(channel, author)
        if ctx is None or getattr(author, "id", None) != ctx.member_id:
            return None

        result = await self.reconciler.reconcile(ctx, getattr(before, "content", None), after)
        if result.outcome is EditOutcome.PENDING:
            await self._advance(ctx, after.content or "")
        return result

    # ------------------------------------------------------------------
    # deletes
    # ------------------------------------------------------------------
    async def handle_deleted_message(self, channel: Any, author: Any = None) -> Entry | None:
        """Ask again for an earlier answer the member deleted.

        ``author`` is ``None`` when the deleted message was not cached; the log
        then tells whether an answer went missing.
        """

        if author is not None and getattr(author, "bot", False):
            return None
        if not self.is_onboarding_channel(channel):
            return None
        ctx = self.context_for(channel, author)
        if ctx is None:
            return None
        if author is not None and getattr(author, "id", None) != ctx.member_id:
            return None

        state = await self._state(ctx)
        current = state.current
        if state.finished or current is None:
            return None
        gaps = [entry for entry in state.missing if entry.index < current.index]
        if not gaps:
            return None
        gap = gaps[0]
        await ctx.send(texts.ANSWER_DELETED)
        await ctx.send(await gap.question.render(ctx, state.answers))
        lifecycle("answer_deleted", ctx.channel, ctx.member, question=gap.key)
        return gap

    # ------------------------------------------------------------------
    # teardown
    # ------------------------------------------------------------------
    async def delete_channel(self, ctx: ConversationContext) -> None:
        try:
            await ctx.channel.delete(reason="Onboarding channel deleted by member")
        except discord.HTTPException:
            log.warning("failed to delete channel", exc_info=True, extra=conversation_extra(ctx.channel))
            return
        self.forget(ctx.channel)
        lifecycle("channel_deleted", ctx.channel, ctx.member)

    def forget(self, channel: Any) -> None:
        self.store.end(int(getattr(channel, "id", 0) or 0))
