"""Read-only view over the messages of one onboarding channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Sequence

__all__ = ["BOT", "MEMBER", "OTHER", "LoggedMessage", "MessageLog"]

BOT = "bot"
MEMBER = "member"
OTHER = "other"


@dataclass(frozen=True, slots=True)
class LoggedMessage:
    """Snapshot of a channel message taken when the log was read.

    ``position`` counts from the oldest message (0). ``source`` keeps the
    platform message so callers can edit or delete it; it takes no part in
    equality.
    """

    id: int
    author_id: int | None
    role: str
    content: str
    position: int
    source: Any = field(default=None, compare=False, repr=False, hash=False)

    @property
    def is_bot(self) -> bool:
        return self.role == BOT

    @property
    def is_member(self) -> bool:
        return self.role == MEMBER


def _author_role(author_id: int | None, *, bot_id: int | None, member_id: int | None) -> str:
    if author_id is not None and author_id == bot_id:
        return BOT
    if member_id is None or author_id == member_id:
        return MEMBER
    return OTHER


class MessageLog:
    """Newest-first message log of a channel; contains no validation logic."""

    __slots__ = ("_entries", "_by_id")

    def __init__(self, entries: Iterable[LoggedMessage] = ()) -> None:
        ordered = sorted(entries, key=lambda entry: entry.position, reverse=True)
        self._entries: tuple[LoggedMessage, ...] = tuple(ordered)
        self._by_id = {entry.id: entry for entry in self._entries}

    @classmethod
    def from_messages(
        cls,
        messages: Sequence[Any],
        *,
        bot_id: int | None,
        member_id: int | None = None,
    ) -> "MessageLog":
        """Snapshot ``messages`` (newest first, as the platform returns them)."""

        total = len(messages)
        entries = []
        for index, message in enumerate(messages):
            author = getattr(message, "author", None)
            author_id = getattr(author, "id", None)
            entries.append(
                LoggedMessage(
                    id=int(getattr(message, "id")),
                    author_id=author_id,
                    role=_author_role(author_id, bot_id=bot_id, member_id=member_id),
                    content=str(getattr(message, "content", "") or ""),
                    position=total - 1 - index,
                    source=message,
                )
            )
        return cls(entries)

    @classmethod
    async def fetch(
        cls,
        channel: Any,
        *,
        bot_id: int | None,
        member_id: int | None = None,
        limit: int | None = None,
    ) -> "MessageLog":
        """Read the full channel history; ``channel.history`` yields newest first."""

        messages = [message async for message in channel.history(limit=limit)]
        return cls.from_messages(messages, bot_id=bot_id, member_id=member_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LoggedMessage]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MessageLog):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def all(self) -> list[LoggedMessage]:
        return list(self._entries)

    def latest(self, n: int = 1) -> list[LoggedMessage]:
        return list(self._entries[: max(0, n)])

    def newest(self) -> LoggedMessage | None:
        return self._entries[0] if self._entries else None

    def chronological(self) -> list[LoggedMessage]:
        """Oldest-first copy of the log."""

        return list(reversed(self._entries))

    def by_author(self, role: str) -> list[LoggedMessage]:
        return [entry for entry in self._entries if entry.role == role]

    def get(self, message_id: int | None) -> LoggedMessage | None:
        if message_id is None:
            return None
        return self._by_id.get(int(message_id))

    def position_of(self, message: Any) -> int | None:
        """Return the log position of ``message`` (an entry, platform message or id)."""

        identifier = message if isinstance(message, int) else getattr(message, "id", None)
        entry = self.get(identifier)
        return entry.position if entry is not None else None

    def after(self, entry: LoggedMessage) -> list[LoggedMessage]:
        """Messages newer than ``entry``, oldest first."""

        return [item for item in reversed(self._entries) if item.position > entry.position]
