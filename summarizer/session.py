"""Per-chat composition of the extraction engine, scheduler and stores."""

from __future__ import annotations

import asyncio
import sqlite3
import threading

from extensions.extension_manager import ExtensionManager
from extraction.engine import ExtractionEngine
from extraction.rules import Blacklist, ExtractionRule, RuleKind, RuleSet
from memory.world_info import MemorySink, WorldInfoSink, WorldInfoStore
from summarizer.chat_log import ChatLog
from summarizer.chat_reader import ChatWindowReader
from summarizer.config import SettingsStore, SummarizerConfig
from summarizer.exceptions import SummarizerError
from summarizer.hide_controller import HideController, HideStatus
from summarizer.models import CompletionClient
from summarizer.records import STATUS_BUSY, STATUS_NOT_DUE, SummaryOutcome
from summarizer.scheduler import CompletionService, SummarizationScheduler
from summarizer.summary_store import SummaryStore

PREVIEW_CHARS = 500
HISTORY_SEPARATOR = "\n\n---\n\n"


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


class ExtractionSettings:
    """
    The rule list and blacklist shared by every chat.

    Every change is written back into ``config.extraction`` and, when a
    settings store is attached, saved to disk.
    """

    def __init__(self, config: SummarizerConfig, settings_store: SettingsStore | None = None):
        self.config = config
        self.settings_store = settings_store
        self.rules = RuleSet.from_config(config.extraction.rules)
        self.blacklist = Blacklist(config.extraction.blacklist)

    @property
    def enabled(self) -> bool:
        return self.config.extraction.enabled

    def set_enabled(self, enabled: bool) -> None:
        self.config.extraction.enabled = enabled
        self._save()

    def add_rule(self, kind: RuleKind | str, value: str) -> ExtractionRule:
        if not isinstance(kind, RuleKind):
            kind = RuleKind.parse(kind)
        rule = self.rules.add(kind, value)
        self._save()
        return rule

    def remove_rule(self, index: int) -> ExtractionRule:
        rule = self.rules.remove(index)
        self._save()
        return rule

    def clear_rules(self) -> None:
        self.rules.clear()
        self._save()

    def add_preset(self, key: str) -> list[ExtractionRule]:
        added = self.rules.add_preset(key)
        if added:
            self._save()
        return added

    def add_blacklist(self, entry: str) -> bool:
        added = self.blacklist.add(entry)
        if added:
            self._save()
        return added

    def remove_blacklist(self, entry: str) -> bool:
        removed = self.blacklist.remove(entry)
        if removed:
            self._save()
        return removed

    def clear_blacklist(self) -> None:
        self.blacklist.clear()
        self._save()

    def _save(self) -> None:
        self.config.extraction.rules = self.rules.to_config()
        self.config.extraction.blacklist = self.blacklist.to_config()
        if self.settings_store is not None:
            self.settings_store.save(self.config)


class SummarizerSession:
    """
    Everything needed to summarize one chat.

    Operations never raise into the caller for expected failures; the outcome
    is reported through ``status`` (and the returned value where there is one).
    """

    def __init__(
        self,
        config: SummarizerConfig,
        chat: ChatLog,
        chat_id: str = "default",
        client: CompletionService | None = None,
        store: SummaryStore | None = None,
        memory_sink: MemorySink | None = None,
        extension_manager: ExtensionManager | None = None,
        extraction: ExtractionSettings | None = None,
        guard: threading.Lock | None = None,
    ):
        self.config = config
        self.chat = chat
        self.chat_id = chat_id
        self.client = client or CompletionClient(config.api)
        self.store = store or SummaryStore(config.store_path, chat_id=chat_id)
        self.extraction = extraction or ExtractionSettings(config)
        self.engine = ExtractionEngine(log_dir=config.log_dir)
        self.reader = ChatWindowReader(
            self.engine,
            self.extraction.rules,
            self.extraction.blacklist,
            extraction_enabled=config.extraction.enabled,
            user_display_name=config.user_display_name,
        )
        self.hide_controller = HideController(chat, log_dir=config.log_dir)

        if memory_sink is None and config.world_info.enabled:
            memory_sink = WorldInfoSink(
                WorldInfoStore(config.world_info.directory),
                config.world_info.book_name,
                chat_id,
            )
        self.scheduler = SummarizationScheduler(
            config,
            chat,
            self.reader,
            self.client,
            self.store,
            hide_controller=self.hide_controller,
            memory_sink=memory_sink,
            guard=guard,
        )

        if extension_manager is None:
            extension_manager = ExtensionManager(config)
            extension_manager.discover_extensions()
        self.extension_manager = extension_manager

        self.status = "Ready"

    @property
    def busy(self) -> bool:
        return self.scheduler.busy

    async def summarize_now(self) -> SummaryOutcome:
        """Manual trigger over the newest ``max_messages`` messages."""
        self._sync_reader()
        self.status = "Summarizing..."
        outcome = await self.scheduler.summarize_manual()
        return await self._finish(outcome)

    async def check_auto(self) -> SummaryOutcome:
        """Automatic trigger; silent unless a summary was attempted."""
        self._sync_reader()
        outcome = await self.scheduler.check_auto()
        if outcome.status in (STATUS_NOT_DUE, STATUS_BUSY):
            return outcome
        return await self._finish(outcome)

    async def handle_message_event(self, event_type: str) -> None:
        """React to a host message event once the host has settled."""
        if self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)
        await self.extension_manager.dispatch("message_event", session=self, event_type=event_type)

    def apply_auto_hide(self) -> int:
        """Continuous hide pass: everything below the keep-visible watermark."""
        count = self.hide_controller.hide_below_watermark(self.config.keep_visible)
        if self.hide_controller.last_error:
            self.status = f"Hide not saved: {self.hide_controller.last_error}"
        return count

    def history_text(self) -> str:
        try:
            records = self.store.list_recent()
        except sqlite3.Error as e:
            self.status = f"Could not read summary history: {e}"
            return self.status
        if not records:
            return "No summary history"
        return HISTORY_SEPARATOR.join(
            f"【{r.timestamp}】{r.range_label}{' (auto)' if r.auto else ''}\n{r.content}"
            for r in records
        )

    def clear_history(self) -> int:
        """Drop every stored summary and reset the pointer."""
        try:
            count = self.store.clear()
        except sqlite3.Error as e:
            self.status = f"Could not clear summary history: {e}"
            return 0
        self.status = f"Cleared {count} summaries"
        return count

    def unhide_all(self) -> int:
        count = self.hide_controller.unhide_all()
        if self.hide_controller.last_error:
            self.status = f"Unhide not saved: {self.hide_controller.last_error}"
        else:
            self.status = f"Unhid {count} messages"
        return count

    def hide_status(self) -> HideStatus:
        return self.hide_controller.status()

    def test_extraction(self) -> dict | None:
        """Preview the newest message before and after extraction."""
        if not len(self.chat):
            self.status = "No chat history"
            return None
        self._sync_reader()
        original = self.chat[-1].text or ""
        extracted = self.reader.extract(original)
        self.status = (
            f"=== Original ({len(original)} chars) ===\n{_preview(original)}\n\n"
            f"=== Extracted ({len(extracted)} chars) ===\n{_preview(extracted)}"
        )
        return {
            "original": _preview(original),
            "original_length": len(original),
            "extracted": _preview(extracted),
            "extracted_length": len(extracted),
        }

    async def list_models(self) -> list[str]:
        try:
            models = await self.client.list_models()
        except SummarizerError as e:
            self.status = f"Failed to list models: {e}"
            return []
        self.status = f"Found {len(models)} models"
        return models

    async def test_connection(self) -> bool:
        try:
            await self.client.test_connection()
        except SummarizerError as e:
            self.status = f"Connection failed: {e}"
            return False
        self.status = "Connection OK"
        return True

    async def _finish(self, outcome: SummaryOutcome) -> SummaryOutcome:
        self.status = outcome.message
        if outcome.ok:
            await self.extension_manager.dispatch("summary_created", session=self, record=outcome.record)
        return outcome

    def _sync_reader(self) -> None:
        self.reader.extraction_enabled = self.extraction.enabled
