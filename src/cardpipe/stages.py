"""Record-at-a-time stages.

A stage takes one record at a time and answers with zero or more records,
which covers filters (none), transforms (one) and expanders such as DUPLICATE
or LITERAL (several). Stages that hold output back until end of stream
(COUNT, a LITERAL that never saw a record) release it from ``flush``.

Stages carry per-run state and are single-use: build a fresh set with
``command_to_stage`` for every execution.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import ClassVar

from cardpipe import commands as cmd
from cardpipe.record import Record

logger = logging.getLogger(__name__)


class Stage(ABC):
    name: ClassVar[str] = ""

    @abstractmethod
    def process(self, record: Record) -> list[Record]:
        """Consume one record and return whatever the stage emits for it."""

    def flush(self) -> list[Record]:
        """Emit deferred output once the input stream is exhausted."""
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class ConsoleStage(Stage):
    name = "CONSOLE"

    def process(self, record: Record) -> list[Record]:
        return [record]


class FilterEqStage(Stage):
    name = "FILTER"

    def __init__(self, pos: int, length: int, value: str) -> None:
        self.pos = pos
        self.length = length
        self.value = value

    def process(self, record: Record) -> list[Record]:
        if record.field_eq(self.pos, self.length, self.value):
            return [record]
        return []


class FilterNeStage(FilterEqStage):
    def process(self, record: Record) -> list[Record]:
        if record.field_eq(self.pos, self.length, self.value):
            return []
        return [record]


class SelectStage(Stage):
    """Build a new card from (source, length, destination) column moves."""

    name = "SELECT"

    def __init__(self, fields: tuple[cmd.SelectSpec, ...]) -> None:
        self.fields = fields

    def process(self, record: Record) -> list[Record]:
        output = Record.blank()
        for src, length, dest in self.fields:
            output.set_field(dest, length, record.field(src, length))
        return [output]


class TakeStage(Stage):
    name = "TAKE"

    def __init__(self, n: int) -> None:
        self.n = n
        self.seen = 0

    def process(self, record: Record) -> list[Record]:
        if self.seen < self.n:
            self.seen += 1
            return [record]
        return []


class SkipStage(Stage):
    name = "SKIP"

    def __init__(self, n: int) -> None:
        self.n = n
        self.seen = 0

    def process(self, record: Record) -> list[Record]:
        if self.seen < self.n:
            self.seen += 1
            return []
        return [record]


class LocateStage(Stage):
    name = "LOCATE"

    def __init__(self, pattern: str, field: cmd.FieldSpec | None = None) -> None:
        self.pattern = pattern
        self.field = field

    def matches(self, record: Record) -> bool:
        if self.field is None:
            return self.pattern in record.as_str()
        pos, length = self.field
        return record.field_contains(pos, length, self.pattern)

    def process(self, record: Record) -> list[Record]:
        return [record] if self.matches(record) else []


class NlocateStage(LocateStage):
    name = "NLOCATE"

    def process(self, record: Record) -> list[Record]:
        return [] if self.matches(record) else [record]


class CountStage(Stage):
    name = "COUNT"

    def __init__(self) -> None:
        self.count = 0

    def process(self, record: Record) -> list[Record]:
        self.count += 1
        return []

    def flush(self) -> list[Record]:
        logger.debug("COUNT flushing total %d", self.count)
        return [Record.from_str(str(self.count))]


class ChangeStage(Stage):
    name = "CHANGE"

    def __init__(self, old: str, new: str) -> None:
        self.old = old
        self.new = new

    def process(self, record: Record) -> list[Record]:
        return [Record.from_str(record.as_str().replace(self.old, self.new))]


class LiteralStage(Stage):
    """Prefix the stream with a literal card.

    The literal goes out ahead of the first record; if no record ever arrives
    it is emitted alone on flush.
    """

    name = "LITERAL"

    def __init__(self, text: str) -> None:
        self.text = text
        self.emitted = False

    def process(self, record: Record) -> list[Record]:
        if self.emitted:
            return [record]
        self.emitted = True
        return [Record.from_str(self.text), record]

    def flush(self) -> list[Record]:
        if self.emitted:
            return []
        self.emitted = True
        return [Record.from_str(self.text)]


class UpperStage(Stage):
    name = "UPPER"

    def process(self, record: Record) -> list[Record]:
        return [Record.from_str(record.as_str().upper())]


class LowerStage(Stage):
    name = "LOWER"

    def process(self, record: Record) -> list[Record]:
        return [Record.from_str(record.as_str().lower())]


class ReverseStage(Stage):
    name = "REVERSE"

    def process(self, record: Record) -> list[Record]:
        # trailing blanks are padding, not content
        return [Record.from_str(record.trimmed()[::-1])]


class DuplicateStage(Stage):
    name = "DUPLICATE"

    def __init__(self, n: int) -> None:
        self.n = n

    def process(self, record: Record) -> list[Record]:
        return [record.copy() for _ in range(self.n)]


class HoleStage(Stage):
    name = "HOLE"

    def process(self, record: Record) -> list[Record]:
        return []


def command_to_stage(command: cmd.Command) -> Stage:
    """Build a freshly initialised stage for a parsed command."""
    if isinstance(command, cmd.Console):
        stage: Stage = ConsoleStage()
    elif isinstance(command, cmd.FilterEq):
        stage = FilterEqStage(command.pos, command.length, command.value)
    elif isinstance(command, cmd.FilterNe):
        stage = FilterNeStage(command.pos, command.length, command.value)
    elif isinstance(command, cmd.Select):
        stage = SelectStage(command.fields)
    elif isinstance(command, cmd.Take):
        stage = TakeStage(command.n)
    elif isinstance(command, cmd.Skip):
        stage = SkipStage(command.n)
    elif isinstance(command, cmd.Nlocate):
        stage = NlocateStage(command.pattern, command.field)
    elif isinstance(command, cmd.Locate):
        stage = LocateStage(command.pattern, command.field)
    elif isinstance(command, cmd.Count):
        stage = CountStage()
    elif isinstance(command, cmd.Change):
        stage = ChangeStage(command.old, command.new)
    elif isinstance(command, cmd.Literal):
        stage = LiteralStage(command.text)
    elif isinstance(command, cmd.Upper):
        stage = UpperStage()
    elif isinstance(command, cmd.Lower):
        stage = LowerStage()
    elif isinstance(command, cmd.Reverse):
        stage = ReverseStage()
    elif isinstance(command, cmd.Duplicate):
        stage = DuplicateStage(command.n)
    elif isinstance(command, cmd.Hole):
        stage = HoleStage()
    else:
        raise TypeError(f"No stage for command {command!r}")
    logger.debug("built %r from %s", stage, command.name)
    return stage


def build_stages(commands: list[cmd.Command]) -> list[Stage]:
    return [command_to_stage(c) for c in commands]
