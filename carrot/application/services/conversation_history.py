"""Bounded, role-aware conversation memory."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict
from typing import Any

from carrot.domain.entities import Message

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 100


class ConversationHistory:
    """Order-preserving message store with a hard size cap.

    When the cap is exceeded, the oldest non-system messages are evicted
    first. System messages survive count pressure unless they alone
    exceed the cap, in which case only the most recent ones are kept.

    Not synchronized: one history must not be appended to by two
    concurrently running agent loops.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._max_messages = max_messages
        self._messages: list[Message] = []

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def append(self, message: Message) -> None:
        self._messages.append(message)
        if len(self._messages) > self._max_messages:
            self._prune()

    def extend(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.append(message)

    def list(self) -> list[Message]:
        """Return a copy of the full ordered sequence."""
        return list(self._messages)

    def clear(self) -> None:
        self._messages = []

    def to_json(self) -> list[dict[str, Any]]:
        """JSON-ready representation of the stored messages."""
        return [asdict(m) for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def _prune(self) -> None:
        system = [m for m in self._messages if m.role == "system"]
        other = [m for m in self._messages if m.role != "system"]

        keep = self._max_messages - len(system)
        if keep > 0:
            self._messages = system + other[-keep:]
        else:
            self._messages = system[-self._max_messages:]

        logger.debug(
            "History pruned to %d messages (%d system)",
            len(self._messages),
            min(len(system), self._max_messages),
        )
