"""Parsed pipeline commands.

One frozen dataclass per DSL keyword. Operands are already validated by the
parser (non-negative integers, DUPLICATE count >= 1); nothing here re-checks
them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

FieldSpec = tuple[int, int]
SelectSpec = tuple[int, int, int]


@dataclass(frozen=True)
class Command:
    keyword: ClassVar[str] = ""
    source: ClassVar[bool] = False

    @property
    def name(self) -> str:
        return self.keyword

    def can_be_first(self) -> bool:
        """Sources produce records without upstream input."""
        return self.source

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"command": self.keyword, "kind": type(self).__name__}
        payload.update(self.__dict__)
        return payload


@dataclass(frozen=True)
class Console(Command):
    keyword: ClassVar[str] = "CONSOLE"
    source: ClassVar[bool] = True


@dataclass(frozen=True)
class FilterEq(Command):
    keyword: ClassVar[str] = "FILTER"
    pos: int
    length: int
    value: str


@dataclass(frozen=True)
class FilterNe(Command):
    keyword: ClassVar[str] = "FILTER"
    pos: int
    length: int
    value: str


@dataclass(frozen=True)
class Select(Command):
    keyword: ClassVar[str] = "SELECT"
    fields: tuple[SelectSpec, ...]


@dataclass(frozen=True)
class Take(Command):
    keyword: ClassVar[str] = "TAKE"
    n: int


@dataclass(frozen=True)
class Skip(Command):
    keyword: ClassVar[str] = "SKIP"
    n: int


@dataclass(frozen=True)
class Locate(Command):
    keyword: ClassVar[str] = "LOCATE"
    pattern: str
    field: FieldSpec | None = None


@dataclass(frozen=True)
class Nlocate(Command):
    keyword: ClassVar[str] = "NLOCATE"
    pattern: str
    field: FieldSpec | None = None


@dataclass(frozen=True)
class Count(Command):
    keyword: ClassVar[str] = "COUNT"


@dataclass(frozen=True)
class Change(Command):
    keyword: ClassVar[str] = "CHANGE"
    old: str
    new: str


@dataclass(frozen=True)
class Literal(Command):
    keyword: ClassVar[str] = "LITERAL"
    source: ClassVar[bool] = True
    text: str


@dataclass(frozen=True)
class Upper(Command):
    keyword: ClassVar[str] = "UPPER"


@dataclass(frozen=True)
class Lower(Command):
    keyword: ClassVar[str] = "LOWER"


@dataclass(frozen=True)
class Reverse(Command):
    keyword: ClassVar[str] = "REVERSE"


@dataclass(frozen=True)
class Duplicate(Command):
    keyword: ClassVar[str] = "DUPLICATE"
    n: int


@dataclass(frozen=True)
class Hole(Command):
    keyword: ClassVar[str] = "HOLE"
    source: ClassVar[bool] = True
