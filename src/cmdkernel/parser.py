"""Tokenize command lines and parse them into structured commands.

Supports:
- Long flags: ``--version``, ``--flag=value``, ``--flag value``
- Short flags: ``-i 0``, multi-letter single-dash flags such as ``-pl``
- Bundled boolean short flags (``-lc``) when a schema declares each letter
- Quoting with ``'`` and ``"`` plus ``\\"``, ``\\'``, ``\\\\`` and ``\\|`` escapes
- ``--`` to stop flag parsing
- A trailing ``| ...`` segment kept verbatim and never interpreted
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto

from .models import PRESENT, FlagValue, ParsedCommand, ValueFlag

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"^-?\d+$")
_ESCAPABLE = {'"', "'", "\\", "|"}


@dataclass(frozen=True)
class FlagSpec:
    """Parser view of one flag spelling."""

    canonical: str
    takes_value: bool


@dataclass(frozen=True)
class ParseSchema:
    """Flags and nested subcommands known for one level of a tool.

    ``flags`` maps every dash-stripped spelling valid at this level (global
    flags merged with the subcommand path) to its spec. ``vocabulary`` is the
    tool's full flag vocabulary, consulted when a flag is not declared at the
    current level.
    """

    flags: Mapping[str, FlagSpec] = field(default_factory=dict)
    subcommands: Mapping[str, ParseSchema] = field(default_factory=dict)
    vocabulary: Mapping[str, FlagSpec] = field(default_factory=dict)


class _State(Enum):
    NORMAL = auto()
    SINGLE_QUOTE = auto()
    DOUBLE_QUOTE = auto()
    ESCAPE = auto()


def tokenize(line: str) -> tuple[list[str], str | None]:
    """Split a line into tokens; return the verbatim text after an unquoted pipe."""
    tokens: list[str] = []
    current = ""
    state = _State.NORMAL
    resume = _State.NORMAL
    pipe_segment: str | None = None

    for index, char in enumerate(line):
        following = line[index + 1] if index + 1 < len(line) else ""
        if state is _State.NORMAL:
            if char == "\\" and following in _ESCAPABLE:
                state, resume = _State.ESCAPE, _State.NORMAL
            elif char == '"':
                state = _State.DOUBLE_QUOTE
            elif char == "'":
                state = _State.SINGLE_QUOTE
            elif char == "|":
                pipe_segment = line[index + 1 :].strip()
                break
            elif char in (" ", "\t"):
                if current:
                    tokens.append(current)
                    current = ""
            else:
                current += char
        elif state is _State.ESCAPE:
            current += char
            state = resume
        elif state is _State.SINGLE_QUOTE:
            if char == "'":
                state = _State.NORMAL
            else:
                current += char
        elif state is _State.DOUBLE_QUOTE:
            if char == "\\" and following == '"':
                state, resume = _State.ESCAPE, _State.DOUBLE_QUOTE
            elif char == '"':
                state = _State.NORMAL
            else:
                current += char

    # Unterminated quotes keep whatever was collected.
    if current:
        tokens.append(current)
    return tokens, pipe_segment


def is_flag(token: str) -> bool:
    """Return True for tokens that look like flags (``-x``, ``--long``) but not ``--``."""
    return token.startswith("-") and len(token) > 1 and token != "--"


def base_command(line: str) -> str:
    """Return the first token of a line, or an empty string."""
    tokens, _ = tokenize(line.strip())
    return tokens[0] if tokens else ""


def parse(line: str, schema: ParseSchema | None = None) -> ParsedCommand:
    """Parse a raw command line; never raises.

    When ``schema`` is given, declared flags decide whether the next token is
    consumed as a value and short/long spellings collapse to one canonical key.
    Flags missing from the schema fall back to the heuristic: consume the next
    token unless it looks like a flag.
    """
    tokens, pipe_segment = tokenize(line.strip())
    pipe_tail: tuple[str, ...] = ()
    if pipe_segment is not None:
        pipe_tail = ("|", pipe_segment) if pipe_segment else ("|",)

    if not tokens:
        return ParsedCommand(base_command="", raw_args=pipe_tail, raw=line, pipe_segment=pipe_segment)

    command = tokens[0]
    args = tokens[1:]
    flags: dict[str, FlagValue] = {}
    subcommands: list[str] = []
    positionals: list[str] = []
    node = schema
    stop_flags = False
    collecting = True

    def lookup(name: str) -> FlagSpec | None:
        if schema is None or node is None:
            return None
        return node.flags.get(name) or schema.vocabulary.get(name)

    index = 0
    while index < len(args):
        token = args[index]
        following = args[index + 1] if index + 1 < len(args) else None

        if token == "--" and not stop_flags:
            stop_flags = True
            collecting = False
            index += 1
            continue

        if stop_flags or not is_flag(token):
            if collecting:
                accepted, node, collecting = _accept_subcommand(token, schema, node)
                if accepted:
                    subcommands.append(token)
                    index += 1
                    continue
            collecting = False
            positionals.append(token)
            index += 1
            continue

        collecting = False
        parsed_flags, consumed = _parse_flag(token, following, lookup)
        for name, value in parsed_flags:
            flags[name] = value
        index += 1 + consumed

    parsed = ParsedCommand(
        base_command=command,
        subcommands=tuple(subcommands),
        positional_args=tuple(positionals),
        flags=flags,
        raw_args=tuple(args) + pipe_tail,
        raw=line,
        pipe_segment=pipe_segment,
    )
    logger.debug(f"Parsed {line!r}: subcommands={parsed.subcommands} flags={dict(parsed.flags)}")
    return parsed


def _accept_subcommand(
    token: str,
    schema: ParseSchema | None,
    node: ParseSchema | None,
) -> tuple[bool, ParseSchema | None, bool]:
    """Decide whether token extends the subcommand path.

    Returns ``(accepted, next_node, keep_collecting)``.
    """
    looks_like_word = "=" not in token and not _NUMBER.match(token)
    if schema is None or node is None:
        return looks_like_word, node, looks_like_word

    child = node.subcommands.get(token)
    if child is not None:
        return True, child, True
    if node.subcommands and looks_like_word:
        # Unknown subcommand at a level with children: keep it so validation can suggest a fix.
        return True, node, False
    return False, node, False


def _parse_flag(
    token: str,
    following: str | None,
    lookup,
) -> tuple[list[tuple[str, FlagValue]], int]:
    """Parse one flag token; return the flags found and how many extra tokens were consumed."""
    if token.startswith("--"):
        body = token[2:]
        if "=" in body:
            name, value = body.split("=", 1)
            spec = lookup(name)
            return [(spec.canonical if spec else name, ValueFlag(value))], 0
        return _resolve_flag(body, following, lookup)

    body = token[1:]
    if len(body) > 1 and lookup(body) is None:
        letters = [lookup(char) for char in body]
        if all(spec is not None and not spec.takes_value for spec in letters):
            return [(spec.canonical, PRESENT) for spec in letters if spec is not None], 0
    return _resolve_flag(body, following, lookup)


def _resolve_flag(name: str, following: str | None, lookup) -> tuple[list[tuple[str, FlagValue]], int]:
    spec = lookup(name)
    if spec is not None:
        if spec.takes_value and _usable_value(following, numeric_ok=True):
            return [(spec.canonical, ValueFlag(following or ""))], 1
        return [(spec.canonical, PRESENT)], 0
    if _usable_value(following, numeric_ok=False):
        return [(name, ValueFlag(following or ""))], 1
    return [(name, PRESENT)], 0


def _usable_value(token: str | None, *, numeric_ok: bool) -> bool:
    if token is None or token == "--":
        return False
    if not is_flag(token):
        return True
    return numeric_ok and bool(_NUMBER.match(token))
