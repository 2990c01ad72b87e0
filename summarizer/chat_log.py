"""Message log adapter for the host chat."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass
from typing import Iterator

from summarizer.exceptions import PersistenceError


@dataclass
class Message:
    """One chat message as the summarizer sees it."""
    text: str
    is_user: bool = False
    is_system: bool = False
    name: str = ""
    hidden: bool = False

    @classmethod
    def from_dict(cls, raw: dict) -> "Message":
        return cls(
            text=str(raw.get("text", raw.get("mes", "")) or ""),
            is_user=bool(raw.get("is_user", False)),
            is_system=bool(raw.get("is_system", False)),
            name=str(raw.get("name", "") or ""),
            hidden=bool(raw.get("hidden", raw.get("is_hidden", False))),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ChatLog:
    """Append-only list of messages with optional JSON persistence.

    Without a path the log lives only in memory and ``save`` is a no-op.
    """

    def __init__(self, messages: list[Message] | None = None, path: str | None = None):
        self.messages: list[Message] = list(messages or [])
        self.path = path
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: str) -> "ChatLog":
        """Load a chat log from disk, starting empty if the file does not exist."""
        if not os.path.exists(path):
            return cls(path=path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise PersistenceError(f"Failed to read chat log {path}: {e}") from e
        return cls([Message.from_dict(m) for m in raw.get("messages", [])], path=path)

    def append(self, message: Message) -> int:
        """Append a message and return its index."""
        with self._lock:
            self.messages.append(message)
            return len(self.messages) - 1

    def save(self) -> None:
        if not self.path:
            return
        with self._lock:
            self._write()

    def _write(self) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(
                    {"messages": [m.to_dict() for m in self.messages]},
                    f,
                    ensure_ascii=False,
                    indent=2,
                )
        except OSError as e:
            raise PersistenceError(f"Failed to save chat log {self.path}: {e}") from e

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __getitem__(self, index: int) -> Message:
        return self.messages[index]
