"""Hides older messages from the visible transcript."""

from __future__ import annotations

from dataclasses import dataclass

from summarizer.chat_log import ChatLog
from summarizer.exceptions import PersistenceError
from summarizer.log import build_file_logger


@dataclass
class HideStatus:
    """Visible/hidden counts over non-system messages."""
    visible: int
    hidden: int
    total: int

    def describe(self) -> str:
        return f"visible: {self.visible} | hidden: {self.hidden} | total: {self.total}"


class HideController:
    """Monotonic hiding below a keep-visible watermark.

    Nothing here un-hides a message except ``unhide_all``.
    """

    def __init__(self, chat: ChatLog, log_dir: str | None = None):
        self.chat = chat
        self.last_error: str | None = None
        self._logger = build_file_logger("summarizer.hide_controller", log_dir, "summarizer.log")

    def hide_range(self, start: int, end: int) -> int:
        """Hide non-system messages in ``[start, end)``; returns how many changed."""
        count = 0
        for message in self.chat.messages[max(start, 0):max(end, 0)]:
            if message.is_system or message.hidden:
                continue
            message.hidden = True
            count += 1
        if count:
            self._persist("hide")
        return count

    def hide_below_watermark(self, keep_visible: int) -> int:
        """Hide everything except the newest ``keep_visible`` messages."""
        hide_until = len(self.chat) - max(keep_visible, 0)
        if hide_until <= 0:
            return 0
        return self.hide_range(0, hide_until)

    def unhide_all(self) -> int:
        count = 0
        for message in self.chat.messages:
            if message.hidden:
                message.hidden = False
                count += 1
        if count:
            self._persist("unhide")
        return count

    def status(self) -> HideStatus:
        visible = hidden = 0
        for message in self.chat.messages:
            if message.is_system:
                continue
            if message.hidden:
                hidden += 1
            else:
                visible += 1
        return HideStatus(visible=visible, hidden=hidden, total=visible + hidden)

    def _persist(self, action: str) -> None:
        try:
            self.chat.save()
            self.last_error = None
        except PersistenceError as e:
            self.last_error = str(e)
            self._logger.warning("Chat save after %s failed: %s", action, e)
