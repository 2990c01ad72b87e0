"""Extraction rules, the blacklist, and preset rule bundles."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator

from summarizer.exceptions import ConfigurationError, PatternError


class RuleKind(str, Enum):
    """What an extraction rule does with the text it matches."""

    INCLUDE = "include"
    EXCLUDE = "exclude"
    REGEX_INCLUDE = "regex-include"
    REGEX_EXCLUDE = "regex-exclude"

    @classmethod
    def parse(cls, raw: str) -> "RuleKind":
        """Accept both dash and underscore spellings of the persisted kind."""
        normalized = raw.strip().lower().replace("_", "-")
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise ConfigurationError(f"Unknown extraction rule type: {raw!r}")

    @property
    def is_regex(self) -> bool:
        return self in (RuleKind.REGEX_INCLUDE, RuleKind.REGEX_EXCLUDE)

    @property
    def is_include(self) -> bool:
        return self in (RuleKind.INCLUDE, RuleKind.REGEX_INCLUDE)


@dataclass(frozen=True)
class ExtractionRule:
    """A single include/exclude instruction."""

    kind: RuleKind
    value: str

    def to_dict(self) -> dict:
        return {"type": self.kind.value, "value": self.value}


@dataclass(frozen=True)
class Preset:
    """A named bundle of rules offered as a one-click starting point."""

    key: str
    name: str
    rules: tuple[ExtractionRule, ...]


PRESETS: dict[str, Preset] = {
    preset.key: preset
    for preset in (
        Preset(
            key="game-loadall",
            name="game.loadAll block",
            rules=(ExtractionRule(RuleKind.REGEX_INCLUDE, r"`\)\s*game\.loadAll\(`([\s\S]*?)`\)"),),
        ),
        Preset(
            key="html-comment",
            name="HTML comments (inline reasoning)",
            rules=(ExtractionRule(RuleKind.REGEX_EXCLUDE, r"<!--[\s\S]*?-->"),),
        ),
        Preset(
            key="details-summary",
            name="details summary block",
            rules=(
                ExtractionRule(
                    RuleKind.REGEX_INCLUDE,
                    r"<details><summary>摘要</summary>([\s\S]*?)</details>",
                ),
            ),
        ),
        Preset(
            key="content-tag",
            name="content tag",
            rules=(ExtractionRule(RuleKind.INCLUDE, "content"),),
        ),
    )
}


def compile_user_pattern(pattern: str) -> re.Pattern:
    """Compile a user-supplied regex the way every regex rule is applied."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise PatternError(f"Invalid regular expression {pattern!r}: {e}") from e


class RuleSet:
    """Ordered, validated list of extraction rules."""

    def __init__(self, rules: Iterable[ExtractionRule] | None = None):
        self._rules: list[ExtractionRule] = []
        for rule in rules or []:
            self.add(rule.kind, rule.value)

    @classmethod
    def from_config(cls, raw_rules: Iterable[dict]) -> "RuleSet":
        """Build from persisted ``{"type", "value"}`` mappings."""
        ruleset = cls()
        for raw in raw_rules:
            ruleset.add(RuleKind.parse(raw["type"]), raw["value"])
        return ruleset

    def add(self, kind: RuleKind, value: str) -> ExtractionRule:
        """Append a rule; regex rules must compile. Tag names are trimmed, patterns kept verbatim."""
        if not kind.is_regex:
            value = value.strip()
        if not value.strip():
            raise PatternError("Rule value must not be empty")
        if kind.is_regex:
            compile_user_pattern(value)
        rule = ExtractionRule(kind=kind, value=value)
        self._rules.append(rule)
        return rule

    def add_preset(self, key: str) -> list[ExtractionRule]:
        """Add a preset's rules, skipping ones already present. Returns the rules added."""
        preset = PRESETS.get(key)
        if preset is None:
            raise KeyError(key)
        added = []
        for rule in preset.rules:
            if rule in self._rules:
                continue
            added.append(self.add(rule.kind, rule.value))
        return added

    def remove(self, index: int) -> ExtractionRule:
        if index < 0 or index >= len(self._rules):
            raise IndexError(f"No rule at index {index}")
        return self._rules.pop(index)

    def clear(self) -> None:
        self._rules.clear()

    def excludes(self) -> list[ExtractionRule]:
        return [r for r in self._rules if not r.kind.is_include]

    def includes(self) -> list[ExtractionRule]:
        return [r for r in self._rules if r.kind.is_include]

    def to_config(self) -> list[dict]:
        return [rule.to_dict() for rule in self._rules]

    def __iter__(self) -> Iterator[ExtractionRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, index: int) -> ExtractionRule:
        return self._rules[index]


class Blacklist:
    """Literal strings scrubbed from extracted text."""

    def __init__(self, entries: Iterable[str] | None = None):
        self._entries: list[str] = []
        for entry in entries or []:
            if entry.strip():
                self.add(entry)

    def add(self, entry: str) -> bool:
        """Add an entry. Returns False when it was already present, ignoring case."""
        if not entry.strip():
            raise ValueError("Blacklist entry must not be empty")
        if entry.lower() in (e.lower() for e in self._entries):
            return False
        self._entries.append(entry)
        return True

    def remove(self, entry: str) -> bool:
        for i, existing in enumerate(self._entries):
            if existing.lower() == entry.lower():
                del self._entries[i]
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()

    def to_config(self) -> list[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
