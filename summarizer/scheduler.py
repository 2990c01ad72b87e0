"""Manual and interval-triggered summarization over the chat log."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import datetime
from typing import Protocol

from memory.world_info import MemorySink, entry_name
from summarizer.chat_log import ChatLog
from summarizer.chat_reader import ChatWindowReader
from summarizer.config import SummarizerConfig
from summarizer.exceptions import EmptyContentError, PersistenceError, SummarizerError
from summarizer.hide_controller import HideController
from summarizer.log import build_file_logger
from summarizer.records import (
    STATUS_BUSY,
    STATUS_ERROR,
    STATUS_NO_CONTENT,
    STATUS_NO_HISTORY,
    STATUS_NOT_DUE,
    STATUS_SUCCESS,
    SummaryOutcome,
    SummaryRecord,
)
from summarizer.summary_store import SummaryStore


class CompletionService(Protocol):
    async def complete(self, prompt: str) -> str:
        ...


class SummarizationScheduler:
    """
    Owns ``last_summarized_index`` and decides what to summarize.

    Manual runs cover the newest ``max_messages`` messages and rebase the
    pointer to the current length. Automatic runs cover everything since the
    pointer once ``trigger_interval`` messages have accumulated. The pointer
    moves only after a summary was produced and stored, and only one run
    (manual or automatic) may be in flight at a time.
    """

    def __init__(
        self,
        config: SummarizerConfig,
        chat: ChatLog,
        reader: ChatWindowReader,
        client: CompletionService,
        store: SummaryStore,
        hide_controller: HideController | None = None,
        memory_sink: MemorySink | None = None,
        guard: threading.Lock | None = None,
    ):
        self.config = config
        self.chat = chat
        self.reader = reader
        self.client = client
        self.store = store
        self.hide_controller = hide_controller
        self.memory_sink = memory_sink
        self._guard = guard or threading.Lock()
        self._logger = build_file_logger("summarizer.scheduler", config.log_dir, "summarizer.log")

    @property
    def busy(self) -> bool:
        return self._guard.locked()

    @property
    def last_summarized_index(self) -> int:
        return min(self.store.get_last_summarized_index(), len(self.chat))

    def is_due(self, length: int | None = None) -> bool:
        """True once ``trigger_interval`` messages arrived since the pointer."""
        if length is None:
            length = len(self.chat)
        pointer = min(self.store.get_last_summarized_index(), length)
        return length - pointer >= self.config.trigger_interval

    async def summarize_manual(self) -> SummaryOutcome:
        if not self._guard.acquire(blocking=False):
            return self._busy_outcome()
        try:
            length = len(self.chat)
            start = max(0, length - self.config.max_messages)
            return await self._summarize(start, length, auto=False)
        finally:
            self._guard.release()

    async def check_auto(self) -> SummaryOutcome:
        if not self._guard.acquire(blocking=False):
            return self._busy_outcome()
        try:
            length = len(self.chat)
            if not self.is_due(length):
                return SummaryOutcome(STATUS_NOT_DUE, "Not enough new messages yet")
            start = self.last_summarized_index
            return await self._summarize(start, length, auto=True)
        finally:
            self._guard.release()

    async def _summarize(self, start: int, end: int, auto: bool) -> SummaryOutcome:
        label = "auto" if auto else "manual"
        try:
            transcript = self._transcript(start, end)
        except EmptyContentError as e:
            self._logger.info("%s summary of %d-%d skipped: %s", label, start + 1, end, e)
            return SummaryOutcome(STATUS_NO_CONTENT, str(e))
        if transcript is None:
            return SummaryOutcome(STATUS_NO_HISTORY, "No chat history")

        prompt = f"{transcript}\n---\n{self.config.summary_prompt}"
        timeout = self.config.api.request_timeout
        try:
            summary = await asyncio.wait_for(self.client.complete(prompt), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning("%s summary of %d-%d timed out after %.1fs", label, start + 1, end, timeout)
            return SummaryOutcome(STATUS_ERROR, f"Summary request timed out after {timeout:g}s")
        except SummarizerError as e:
            self._logger.warning("%s summary of %d-%d failed: %s", label, start + 1, end, e)
            return SummaryOutcome(STATUS_ERROR, f"Summary failed: {e}")

        record = SummaryRecord(
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            start=start,
            end=end,
            content=summary,
            auto=auto,
        )
        try:
            self.store.append_and_advance(record)
        except sqlite3.Error as e:
            self._logger.error("Could not store %s summary of %s: %s", label, record.range_label, e)
            return SummaryOutcome(STATUS_ERROR, f"Summary generated but not saved: {e}\n\n{summary}")
        self._logger.info("%s summary stored for messages %s", label, record.range_label)

        notes = self._after_success(record)
        await self._write_memory(record, notes)

        header = "[Auto summary complete]\n" if auto else ""
        note_block = "".join(f"[{note}]\n" for note in notes)
        if note_block:
            note_block += "\n"
        return SummaryOutcome(STATUS_SUCCESS, f"{header}{note_block}{summary}", record)

    def _transcript(self, start: int, end: int) -> str | None:
        transcript = self.reader.collect(self.chat.messages, start, end)
        if transcript is not None and not transcript.strip():
            raise EmptyContentError("No usable content (check extraction rules)")
        return transcript

    def _after_success(self, record: SummaryRecord) -> list[str]:
        notes: list[str] = []
        if not (self.config.auto_hide and self.hide_controller):
            return notes
        # Relative to the summarized end, not the current length.
        hide_until = record.end - self.config.keep_visible
        if hide_until > 0:
            self.hide_controller.hide_range(0, hide_until)
            notes.append(f"Hidden messages 1-{hide_until}")
        if self.hide_controller.last_error:
            notes.append(f"Hide not saved: {self.hide_controller.last_error}")
        return notes

    async def _write_memory(self, record: SummaryRecord, notes: list[str]) -> None:
        if self.memory_sink is None:
            return
        key = entry_name(self._speaker(record))
        try:
            await asyncio.wait_for(
                self.memory_sink.append(key, record.content),
                timeout=self.config.api.request_timeout,
            )
            notes.append(f"Saved to world info: {key}")
        except (PersistenceError, asyncio.TimeoutError) as e:
            self._logger.warning("World info write for %s failed: %s", record.range_label, e)
            notes.append(f"World info write failed: {str(e) or 'timed out'}")

    def _speaker(self, record: SummaryRecord) -> str:
        for message in reversed(self.chat.messages[record.start:record.end]):
            if not message.is_user and not message.is_system and message.name:
                return message.name
        return "Summary"

    @staticmethod
    def _busy_outcome() -> SummaryOutcome:
        return SummaryOutcome(STATUS_BUSY, "A summary is already being generated")
