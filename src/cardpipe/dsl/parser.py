"""Line-oriented parser for pipeline text.

CMS Pipelines style::

    PIPE CONSOLE
    | FILTER 18,10 = "SALES"
    | SELECT 0,8,0; 28,8,8
    | CONSOLE
    ?

- ``#`` starts a comment line; blank lines are ignored.
- ``PIPE`` opens the pipeline, ``|`` continues it, ``?`` ends it.
- Keywords are case-insensitive.
- Quoted operands use the CMS delimited-string rule: the first non-blank
  character is the delimiter and the string runs to its next occurrence, so
  ``"SALES"``, ``/SALES/`` and ``.SALES.`` are equivalent.
- LITERAL takes the rest of the line verbatim (no delimiters).
"""

from __future__ import annotations

import re
from collections.abc import Callable

from cardpipe import commands as cmd
from cardpipe.errors import PipelineError

KEYWORD_RE = re.compile(r"^([A-Za-z]+)(?:\s+(.*))?$", re.DOTALL)
FIELD_RE = re.compile(r"^\s*(\d+)\s*,\s*(\d+)\s*")
NUMBER_RE = re.compile(r"^\d+$")


def parse_delimited(text: str) -> tuple[str, str]:
    """Split off one delimited string, returning ``(value, rest)``."""
    text = text.lstrip()
    if not text:
        raise ValueError("Expected delimited string")
    delim = text[0]
    end = text.find(delim, 1)
    if end < 0:
        raise ValueError(f"Unclosed delimiter '{delim}'")
    return text[1:end], text[end + 1 :]


def _number(text: str, what: str) -> int:
    text = text.strip()
    if not NUMBER_RE.match(text):
        raise ValueError(f"{what} requires a number")
    return int(text)


def _field_spec(text: str, keyword: str) -> tuple[cmd.FieldSpec, str]:
    match = FIELD_RE.match(text)
    if not match:
        raise ValueError(f"{keyword} requires pos,len")
    return (int(match.group(1)), int(match.group(2))), text[match.end() :]


def _parse_filter(rest: str) -> cmd.Command:
    if "!=" in rest:
        field_part, value_part = rest.split("!=", 1)
        negate = True
    elif "=" in rest:
        field_part, value_part = rest.split("=", 1)
        negate = False
    else:
        raise ValueError("FILTER requires = or != operator")
    (pos, length), leftover = _field_spec(field_part, "FILTER")
    if leftover.strip():
        raise ValueError("FILTER requires pos,len before operator")
    value, _ = parse_delimited(value_part)
    if negate:
        return cmd.FilterNe(pos=pos, length=length, value=value)
    return cmd.FilterEq(pos=pos, length=length, value=value)


def _parse_select(rest: str) -> cmd.Command:
    fields: list[cmd.SelectSpec] = []
    for spec in rest.split(";"):
        spec = spec.strip()
        if not spec:
            continue
        parts = [p.strip() for p in spec.split(",")]
        if len(parts) != 3 or not all(NUMBER_RE.match(p) for p in parts):
            raise ValueError(f"SELECT field '{spec}' requires src_pos,len,dest_pos")
        src, length, dest = (int(p) for p in parts)
        fields.append((src, length, dest))
    if not fields:
        raise ValueError("SELECT requires at least one field specification")
    return cmd.Select(fields=tuple(fields))


def _parse_locate(rest: str, keyword: str) -> tuple[str, cmd.FieldSpec | None]:
    if not rest.strip():
        raise ValueError(f"{keyword} requires a pattern")
    field: cmd.FieldSpec | None = None
    if rest.lstrip()[0].isdigit():
        field, rest = _field_spec(rest, keyword)
    pattern, _ = parse_delimited(rest)
    return pattern, field


def _parse_change(rest: str) -> cmd.Command:
    if not rest.strip():
        raise ValueError("CHANGE requires two delimited strings")
    old, after = parse_delimited(rest)
    new, _ = parse_delimited(after)
    return cmd.Change(old=old, new=new)


def _parse_literal(rest: str) -> cmd.Command:
    text = rest.rstrip()
    if not text:
        raise ValueError("LITERAL requires text")
    return cmd.Literal(text=text)


def _parse_duplicate(rest: str) -> cmd.Command:
    n = _number(rest, "DUPLICATE")
    if n == 0:
        raise ValueError("DUPLICATE count must be at least 1")
    return cmd.Duplicate(n=n)


def _locate(rest: str) -> cmd.Command:
    pattern, field = _parse_locate(rest, "LOCATE")
    return cmd.Locate(pattern=pattern, field=field)


def _nlocate(rest: str) -> cmd.Command:
    pattern, field = _parse_locate(rest, "NLOCATE")
    return cmd.Nlocate(pattern=pattern, field=field)


NO_OPERANDS: dict[str, type[cmd.Command]] = {
    "CONSOLE": cmd.Console,
    "COUNT": cmd.Count,
    "UPPER": cmd.Upper,
    "LOWER": cmd.Lower,
    "REVERSE": cmd.Reverse,
    "HOLE": cmd.Hole,
}

WITH_OPERANDS: dict[str, Callable[[str], cmd.Command]] = {
    "FILTER": _parse_filter,
    "SELECT": _parse_select,
    "TAKE": lambda rest: cmd.Take(n=_number(rest, "TAKE")),
    "SKIP": lambda rest: cmd.Skip(n=_number(rest, "SKIP")),
    "LOCATE": _locate,
    "NLOCATE": _nlocate,
    "CHANGE": _parse_change,
    "LITERAL": _parse_literal,
    "DUPLICATE": _parse_duplicate,
}


def parse_command(line: str) -> cmd.Command:
    """Parse one stage (without PIPE / ``|`` decoration). Raises ValueError."""
    match = KEYWORD_RE.match(line.strip())
    if not match:
        raise ValueError(f"Unknown command: {line.split()[0] if line.split() else line}")
    keyword = match.group(1).upper()
    rest = match.group(2) or ""
    if keyword in NO_OPERANDS:
        # operands after a bare keyword (e.g. "CONSOLE foo") are ignored
        return NO_OPERANDS[keyword]()
    if keyword in WITH_OPERANDS:
        return WITH_OPERANDS[keyword](rest)
    raise ValueError(f"Unknown command: {match.group(1)}")


def _strip_decoration(line: str) -> str:
    if line.upper().startswith("PIPE ") or line.upper() == "PIPE":
        line = line[4:].strip()
    if line.startswith("|"):
        line = line[1:].strip()
    line = line.rstrip("|").strip()
    return line.rstrip("?").strip()


def parse_commands(text: str) -> list[cmd.Command]:
    """Parse pipeline text into commands, reporting failures by line number."""
    commands: list[cmd.Command] = []
    for line_num, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        line = _strip_decoration(line)
        if not line:
            continue
        try:
            commands.append(parse_command(line))
        except ValueError as exc:
            raise PipelineError(str(exc), line=line_num) from exc
    return commands
