"""Fixed-width card image records.

Every record is exactly ``RECORD_WIDTH`` characters (one 80-column punch card).
Shorter text is padded with blanks and longer text is truncated, so field
arithmetic never fails: reads past the end return a short or empty slice and
writes past the end are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass

RECORD_WIDTH = 80
BLANK = " "


def _fit(text: str, width: int = RECORD_WIDTH) -> str:
    return text.ljust(width, BLANK)[:width]


@dataclass
class Record:
    text: str = ""

    def __post_init__(self) -> None:
        self.text = _fit(self.text)

    @classmethod
    def from_str(cls, text: str) -> Record:
        return cls(text)

    @classmethod
    def blank(cls) -> Record:
        return cls()

    def as_str(self) -> str:
        """Full card image, trailing blanks included."""
        return self.text

    def trimmed(self) -> str:
        return self.text.rstrip(BLANK)

    def __str__(self) -> str:
        return self.trimmed()

    def copy(self) -> Record:
        return Record(self.text)

    def field(self, pos: int, length: int) -> str:
        """Return columns ``pos``..``pos+length`` (zero-based), clipped to the card."""
        if pos >= RECORD_WIDTH or length <= 0:
            return ""
        return self.text[pos : min(pos + length, RECORD_WIDTH)]

    def set_field(self, pos: int, length: int, value: str) -> None:
        """Overwrite a field with ``value`` padded/truncated to ``length``."""
        if pos >= RECORD_WIDTH or length <= 0:
            return
        end = min(pos + length, RECORD_WIDTH)
        chunk = value.ljust(length, BLANK)[: end - pos]
        self.text = self.text[:pos] + chunk + self.text[end:]

    def field_eq(self, pos: int, length: int, value: str) -> bool:
        # Fields that start past the last column never match.
        if pos >= RECORD_WIDTH:
            return False
        return self.field(pos, length).rstrip(BLANK) == value.rstrip(BLANK)

    def field_contains(self, pos: int, length: int, pattern: str) -> bool:
        if pos >= RECORD_WIDTH:
            return False
        return pattern in self.field(pos, length)
