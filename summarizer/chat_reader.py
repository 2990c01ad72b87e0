"""Turns a window of the chat log into a prompt-ready transcript."""

from __future__ import annotations

from typing import Sequence

from extraction.engine import ExtractionEngine
from extraction.rules import Blacklist, RuleSet
from summarizer.chat_log import Message
from summarizer.config import DEFAULT_USER_DISPLAY_NAME


class ChatWindowReader:
    """Concatenate extracted, non-system messages of an index range."""

    def __init__(
        self,
        engine: ExtractionEngine,
        rules: RuleSet,
        blacklist: Blacklist,
        extraction_enabled: bool = True,
        user_display_name: str = DEFAULT_USER_DISPLAY_NAME,
    ):
        self.engine = engine
        self.rules = rules
        self.blacklist = blacklist
        self.extraction_enabled = extraction_enabled
        self.user_display_name = user_display_name

    def collect(self, messages: Sequence[Message], start: int, end: int) -> str | None:
        """Return the transcript for ``[start, end)``.

        None means there is no history to read at all; an empty string means
        every message in the window was a system note or was filtered out.
        """
        if not messages:
            return None
        lo = max(start, 0)
        hi = min(end, len(messages))
        if lo >= hi:
            return None

        parts = []
        for message in messages[lo:hi]:
            if message.is_system:
                continue
            content = self.extract(message.text)
            if not content.strip():
                continue
            parts.append(f"{self.display_name(message)}: {content}\n\n")
        return "".join(parts)

    def extract(self, text: str) -> str:
        rules = self.rules if self.extraction_enabled else RuleSet()
        return self.engine.process(text or "", rules, self.blacklist)

    def display_name(self, message: Message) -> str:
        return self.user_display_name if message.is_user else message.name
