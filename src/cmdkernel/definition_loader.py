"""Load declarative command definitions from bundled JSON resources."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import replace
from importlib import resources
from pathlib import Path
from typing import Any

from .models import (
    CommandDefinition,
    ErrorMessage,
    ExitCode,
    FlagDefinition,
    PrerequisiteRule,
    SubcommandDefinition,
    UsagePattern,
)

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = "cmdkernel.content.definitions"


def _strip(name: object) -> str:
    return str(name or "").strip().lstrip("-").rstrip("=")


def _flag_from_dict(tool: str, raw: dict[str, Any]) -> FlagDefinition:
    """Build a flag from raw JSON content."""
    long = _strip(raw.get("long"))
    short = _strip(raw.get("short")) or None
    if not long and not short:
        raise ValueError(f"Tool '{tool}' has a flag with neither a short nor a long name.")
    arguments = raw.get("arguments")
    takes_value = bool(raw.get("takes_value", arguments is not None))
    default = raw.get("default")
    return FlagDefinition(
        long=long,
        short=short,
        takes_value=takes_value,
        description=str(raw.get("description", "")),
        default=None if default is None else str(default),
        arguments=None if arguments is None else str(arguments),
        argument_type=raw.get("argument_type"),
        example=raw.get("example"),
    )


def _flags_from_list(tool: str, scope: str, raw: list[dict[str, Any]]) -> tuple[FlagDefinition, ...]:
    flags = tuple(_flag_from_dict(tool, item) for item in raw)
    seen: set[str] = set()
    for flag in flags:
        for spelling in flag.spellings:
            if spelling in seen:
                raise ValueError(f"Duplicate flag '{spelling}' in {scope}.")
            seen.add(spelling)
    return flags


def _subcommand_from_dict(tool: str, parent: str, raw: dict[str, Any]) -> SubcommandDefinition:
    """Build a subcommand (and its nested family) from raw JSON content."""
    name = str(raw["name"]).strip()
    scope = f"{parent} {name}"
    children = tuple(_subcommand_from_dict(tool, scope, item) for item in raw.get("subcommands", []))
    _validate_unique_names(scope, [child.name for child in children])
    return SubcommandDefinition(
        name=name,
        description=str(raw.get("description", "")),
        synopsis=str(raw.get("synopsis", "")),
        flags=_flags_from_list(tool, scope, raw.get("options", [])),
        subcommands=children,
    )


def _rule_from_dict(tool: str, raw: dict[str, Any]) -> PrerequisiteRule:
    pattern = str(raw.get("command", tool)).strip() or tool
    required = raw.get("requires_flags")
    return PrerequisiteRule(
        command_pattern=pattern,
        required_flags=None if required is None else frozenset(_strip(flag) for flag in required),
        requires_root=bool(raw.get("requires_root", True)),
    )


def _definition_from_dict(raw: dict[str, Any]) -> CommandDefinition:
    """Build a command definition from raw JSON content."""
    tool = str(raw["command"]).strip()
    if not tool:
        raise ValueError("Command definition has an empty 'command' name.")
    subcommands = tuple(_subcommand_from_dict(tool, tool, item) for item in raw.get("subcommands", []))
    _validate_unique_names(tool, [sub.name for sub in subcommands])
    definition = CommandDefinition(
        tool_name=tool,
        description=str(raw.get("description", "")),
        synopsis=str(raw.get("synopsis", tool)),
        version=str(raw.get("version", "")),
        category=str(raw.get("category", "general")),
        global_flags=_flags_from_list(tool, tool, raw.get("global_options", [])),
        subcommands=subcommands,
        prerequisite_rules=tuple(_rule_from_dict(tool, item) for item in raw.get("prerequisites", [])),
        exit_codes=tuple(
            ExitCode(code=int(item["code"]), meaning=str(item.get("meaning", "")))
            for item in raw.get("exit_codes", [])
        ),
        usage_patterns=tuple(
            UsagePattern(
                command=str(item["command"]),
                description=str(item.get("description", "")),
                requires_root=bool(item.get("requires_root", False)),
            )
            for item in raw.get("common_usage_patterns", [])
        ),
        error_messages=tuple(
            ErrorMessage(
                message=str(item["message"]),
                meaning=str(item.get("meaning", "")),
                resolution=str(item.get("resolution", "")),
            )
            for item in raw.get("error_messages", [])
        ),
        related_commands=tuple(str(item) for item in raw.get("related_commands", [])),
    )
    return _canonicalize_rules(definition)


def _canonicalize_rules(definition: CommandDefinition) -> CommandDefinition:
    """Map rule flag spellings onto canonical flag keys; reject undeclared flags."""
    spellings: dict[str, str] = {}
    for flag in definition.all_flags():
        for spelling in flag.spellings:
            spellings.setdefault(spelling, flag.canonical)

    rules: list[PrerequisiteRule] = []
    for rule in definition.prerequisite_rules:
        if rule.required_flags is None:
            rules.append(rule)
            continue
        canonical: set[str] = set()
        for flag in rule.required_flags:
            if flag not in spellings:
                raise ValueError(
                    f"Prerequisite rule for '{rule.command_pattern}' references unknown flag '{flag}'."
                )
            canonical.add(spellings[flag])
        rules.append(
            PrerequisiteRule(
                command_pattern=rule.command_pattern,
                required_flags=frozenset(canonical),
                requires_root=rule.requires_root,
            )
        )
    return replace(definition, prerequisite_rules=tuple(rules))


def _validate_unique_names(scope: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"Duplicate subcommand '{name}' in {scope}.")
        seen.add(name)


def _add_definition(definitions: dict[str, CommandDefinition], raw: object, source: str) -> None:
    if not isinstance(raw, dict) or "command" not in raw:
        logger.debug(f"Skipping {source}: not a command definition")
        return
    definition = _definition_from_dict(raw)
    if definition.tool_name in definitions:
        raise ValueError(f"Duplicate command definition: {definition.tool_name}")
    definitions[definition.tool_name] = definition


def load_definitions() -> dict[str, CommandDefinition]:
    """Load bundled command definitions."""
    definitions: dict[str, CommandDefinition] = {}
    entries = sorted(resources.files(CONTENT_PACKAGE).iterdir(), key=lambda entry: entry.name)
    for entry in entries:
        if entry.name.endswith(".json"):
            raw = json.loads(entry.read_text(encoding="utf-8-sig"))
            _add_definition(definitions, raw, entry.name)
    logger.debug(f"Loaded {len(definitions)} bundled command definitions")
    return definitions


def load_definitions_from_dir(path: Path) -> dict[str, CommandDefinition]:
    """Load definitions from directory for tests/tools."""
    definitions: dict[str, CommandDefinition] = {}
    for file_path in sorted(path.glob("*.json")):
        raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
        _add_definition(definitions, raw, file_path.name)
    logger.debug(f"Loaded {len(definitions)} command definitions from {path}")
    return definitions


def definitions_from_dicts(raw_items: list[dict[str, Any]]) -> dict[str, CommandDefinition]:
    """Build definitions from in-memory dictionaries."""
    definitions: dict[str, CommandDefinition] = {}
    for index, raw in enumerate(raw_items):
        _add_definition(definitions, raw, f"item {index}")
    return definitions


class DefinitionSource:
    """Memoized asynchronous access to a definition catalogue.

    Concurrent first callers share one in-flight load. A failed load is not
    cached, so a later call retries.
    """

    def __init__(self, loader: Callable[[], dict[str, CommandDefinition]] = load_definitions) -> None:
        self._loader = loader
        self._definitions: dict[str, CommandDefinition] | None = None
        self._pending: asyncio.Task[dict[str, CommandDefinition]] | None = None
        self.load_count = 0

    @classmethod
    def from_dir(cls, path: Path) -> DefinitionSource:
        return cls(lambda: load_definitions_from_dir(path))

    @property
    def loaded(self) -> bool:
        return self._definitions is not None

    async def load(self) -> dict[str, CommandDefinition]:
        """Return the catalogue, loading it on first use."""
        if self._definitions is not None:
            return self._definitions
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
        pending = self._pending
        try:
            return await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise

    async def _load(self) -> dict[str, CommandDefinition]:
        self.load_count += 1
        try:
            definitions = await asyncio.to_thread(self._loader)
        except Exception as exc:
            logger.warning(f"Loading command definitions failed: {exc}")
            raise
        self._definitions = definitions
        return definitions
