"""Rule-based text extraction applied to messages before summarization."""

from __future__ import annotations

import re
from typing import Iterable

from extraction.rules import Blacklist, ExtractionRule, RuleKind, RuleSet, compile_user_pattern
from summarizer.exceptions import PatternError
from summarizer.log import build_file_logger

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
FRAGMENT_SEPARATOR = "\n\n"


def tag_pattern(tag: str) -> re.Pattern:
    """Pattern for ``<tag ...>body</tag>`` with the tag name taken literally."""
    name = re.escape(tag.strip())
    return re.compile(
        rf"<{name}(?:\s[^>]*)?>(.*?)</{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def apply_blacklist(text: str, blacklist: Iterable[str]) -> str:
    """Remove every occurrence of every entry, ignoring case."""
    for entry in blacklist:
        if not entry:
            continue
        text = re.sub(re.escape(entry), "", text, flags=re.IGNORECASE)
    return text


class ExtractionEngine:
    """Apply exclusion, inclusion and blacklist passes in a fixed order.

    1. every exclude rule, in rule order, removes its matches
    2. with no include rules the surviving text passes through
    3. otherwise include rules collect fragments, joined by a blank line
    4. blacklist entries are scrubbed
    5. runs of blank lines collapse and the result is trimmed
    """

    def __init__(self, log_dir: str | None = None):
        self._logger = build_file_logger("extraction.engine", log_dir, "extraction.log")

    def process(self, raw_text: str, rules: RuleSet, blacklist: Blacklist | Iterable[str] = ()) -> str:
        if not raw_text:
            return ""
        if len(rules) == 0:
            return apply_blacklist(raw_text, blacklist)

        text = raw_text
        for rule in rules.excludes():
            text = self._exclude(text, rule)

        includes = rules.includes()
        if includes:
            fragments: list[str] = []
            for rule in includes:
                fragments.extend(self._include(text, rule))
            text = FRAGMENT_SEPARATOR.join(fragments)

        text = apply_blacklist(text, blacklist)
        text = _EXCESS_NEWLINES.sub("\n\n", text)
        return text.strip()

    def _exclude(self, text: str, rule: ExtractionRule) -> str:
        pattern = self._pattern_for(rule)
        if pattern is None:
            return text
        return pattern.sub("", text)

    def _include(self, text: str, rule: ExtractionRule) -> list[str]:
        pattern = self._pattern_for(rule)
        if pattern is None:
            return []

        fragments = []
        for match in pattern.finditer(text):
            if rule.kind is RuleKind.INCLUDE:
                fragments.append(match.group(1).strip())
            elif pattern.groups >= 1 and match.group(1):
                fragments.append(match.group(1).strip())
            else:
                fragments.append(match.group(0).strip())
        return fragments

    def _pattern_for(self, rule: ExtractionRule) -> re.Pattern | None:
        if not rule.kind.is_regex:
            return tag_pattern(rule.value)
        try:
            return compile_user_pattern(rule.value)
        except PatternError as e:
            self._logger.warning("Skipping %s rule: %s", rule.kind.value, e)
            return None
