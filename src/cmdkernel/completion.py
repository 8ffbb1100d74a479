"""Tab completion over tool names, declared subcommands and flag spellings."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass

from .parser import is_flag, tokenize
from .registry import CommandRegistry

DISPLAY_WIDTH = 80


@dataclass(frozen=True)
class CompletionResult:
    """Candidates for the word under the cursor."""

    candidates: tuple[str, ...]
    prefix: str
    common_prefix: str
    kind: str = "command"

    @property
    def partial(self) -> bool:
        return len(self.candidates) > 1


def _filter(candidates: Iterable[str], prefix: str) -> list[str]:
    lowered = prefix.lower()
    return sorted({item for item in candidates if item.lower().startswith(lowered)})


def _result(candidates: Iterable[str], prefix: str, kind: str) -> CompletionResult:
    matches = _filter(candidates, prefix)
    return CompletionResult(
        candidates=tuple(matches),
        prefix=prefix,
        common_prefix=os.path.commonprefix(matches) if matches else "",
        kind=kind,
    )


def _flag_spellings(registry: CommandRegistry, tool: str, path: list[str]) -> list[str]:
    return [registry.dashed_spelling(tool, name) for name in registry.get_flag_schema(tool, path)]


def complete(line: str, registry: CommandRegistry, tool_names: Iterable[str]) -> CompletionResult:
    """Complete the last word of line.

    The first word completes to tool names. Later words complete to flags
    when they start with ``-``, otherwise to subcommands at the nesting level
    reached by the preceding words.
    """
    tokens, pipe_segment = tokenize(line)
    if pipe_segment is not None:
        return CompletionResult(candidates=(), prefix="", common_prefix="")

    at_word_end = bool(line) and not line[-1].isspace()
    current = tokens[-1] if at_word_end and tokens else ""
    previous = tokens[:-1] if at_word_end and tokens else tokens

    if not previous:
        return _result(tool_names, current, "command")

    tool = previous[0]
    path: list[str] = []
    for token in previous[1:]:
        if is_flag(token):
            break
        level = registry.subcommand_level(tool, path)
        if not level or token not in {sub.name for sub in level}:
            break
        path.append(token)

    if current.startswith("-"):
        return _result(_flag_spellings(registry, tool, path), current, "flag")

    saw_flag = any(is_flag(token) for token in previous[1:])
    level = registry.subcommand_level(tool, path) or ()
    if saw_flag or len(previous) - 1 > len(path):
        return CompletionResult(candidates=(), prefix=current, common_prefix="", kind="subcommand")
    return _result((sub.name for sub in level), current, "subcommand")


def format_columns(candidates: Iterable[str], width: int = DISPLAY_WIDTH) -> str:
    """Lay candidates out in fixed-width columns."""
    items = list(candidates)
    if not items:
        return ""
    column = max(len(item) for item in items) + 2
    per_row = max(1, width // column)
    rows = [
        "".join(f"{item:<{column}}" for item in items[start : start + per_row]).rstrip()
        for start in range(0, len(items), per_row)
    ]
    return "\n".join(rows)
