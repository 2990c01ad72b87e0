"""World-info books: long-term memory the host injects into future prompts."""

from __future__ import annotations

import json
import os
import re
from datetime import datetime
from typing import Protocol

from summarizer.exceptions import PersistenceError

_UNSAFE_CHARS = re.compile(r"[^\w\-. ]+", re.UNICODE)


class MemorySink(Protocol):
    """Append-only target for generated summaries."""

    async def append(self, entry_key: str, text: str) -> None:
        ...


def entry_name(speaker: str, when: datetime | None = None) -> str:
    """``"{speaker} - {timestamp}"`` with a filesystem-friendly timestamp."""
    when = when or datetime.now()
    return f"{speaker} - {when.strftime('%Y-%m-%dT%H-%M-%S')}"


class WorldInfoStore:
    """JSON-file world-info books, one file per book.

    A book is ``{"name", "entries": [{"uid", "key", "content"}]}``; chat
    bindings live in ``bindings.json`` next to the books.
    """

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def ensure_book(self, name: str) -> dict:
        """Return the book, creating an empty one if absent."""
        book = self.get_book(name)
        if book is None:
            book = {"name": name, "entries": []}
            self._write(self._book_path(name), book)
        return book

    def get_book(self, name: str) -> dict | None:
        path = self._book_path(name)
        if not os.path.exists(path):
            return None
        book = self._read(path)
        entries = book.get("entries")
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise PersistenceError(f"World info book {path} has no valid entries list")
        return book

    def find_or_create_entry(self, book_name: str, key: str) -> dict:
        book = self.ensure_book(book_name)
        entry = self._find_entry(book, key)
        if entry is None:
            entry = self._new_entry(book, key)
            self._write(self._book_path(book_name), book)
        return entry

    def append_content(self, book_name: str, key: str, text: str) -> dict:
        """Read-modify-append: prior content of the entry is always kept."""
        book = self.ensure_book(book_name)
        entry = self._find_entry(book, key) or self._new_entry(book, key)
        existing = entry.get("content", "")
        entry["content"] = f"{existing}\n\n{text}" if existing else text
        self._write(self._book_path(book_name), book)
        return entry

    def bind_book(self, chat_id: str, book_name: str) -> None:
        bindings = self._bindings()
        if bindings.get(chat_id) == book_name:
            return
        bindings[chat_id] = book_name
        self._write(self._bindings_path(), bindings)

    def bound_book(self, chat_id: str) -> str | None:
        return self._bindings().get(chat_id)

    @staticmethod
    def _find_entry(book: dict, key: str) -> dict | None:
        for entry in book["entries"]:
            if entry.get("key") == key:
                return entry
        return None

    @staticmethod
    def _new_entry(book: dict, key: str) -> dict:
        uid = max((e.get("uid", -1) for e in book["entries"]), default=-1) + 1
        entry = {"uid": uid, "key": key, "content": ""}
        book["entries"].append(entry)
        return entry

    def _bindings(self) -> dict:
        path = self._bindings_path()
        if not os.path.exists(path):
            return {}
        return self._read(path)

    def _book_path(self, name: str) -> str:
        safe = _UNSAFE_CHARS.sub("_", name).strip() or "book"
        return os.path.join(self.directory, f"{safe}.json")

    def _bindings_path(self) -> str:
        return os.path.join(self.directory, "bindings.json")

    @staticmethod
    def _read(path: str) -> dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{path} must contain a JSON object")
        return data

    @staticmethod
    def _write(path: str, payload: dict) -> None:
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e


class WorldInfoSink:
    """MemorySink writing summaries into the book bound to one chat."""

    def __init__(self, store: WorldInfoStore, book_name: str, chat_id: str):
        self.store = store
        self.book_name = book_name
        self.chat_id = chat_id

    async def append(self, entry_key: str, text: str) -> None:
        book_name = self.store.bound_book(self.chat_id) or self.book_name
        self.store.ensure_book(book_name)
        self.store.bind_book(self.chat_id, book_name)
        self.store.find_or_create_entry(book_name, entry_key)
        self.store.append_content(book_name, entry_key, text)
