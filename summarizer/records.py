"""SummaryRecord and SummaryOutcome dataclasses."""

from dataclasses import dataclass

STATUS_SUCCESS = "success"
STATUS_NOT_DUE = "not_due"
STATUS_BUSY = "busy"
STATUS_NO_HISTORY = "no_history"
STATUS_NO_CONTENT = "no_content"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class SummaryRecord:
    """A generated summary covering messages ``[start, end)``."""
    timestamp: str
    start: int
    end: int
    content: str
    auto: bool = False

    @property
    def range(self) -> tuple[int, int]:
        return (self.start, self.end)

    @property
    def range_label(self) -> str:
        """1-based inclusive label, e.g. ``1-20``."""
        return f"{self.start + 1}-{self.end}"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "range": self.range_label,
            "start": self.start,
            "end": self.end,
            "content": self.content,
            "auto": self.auto,
        }


@dataclass
class SummaryOutcome:
    """Result of one manual or automatic summarization attempt."""
    status: str
    message: str
    record: SummaryRecord | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS
