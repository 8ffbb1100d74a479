"""Indexed, read-only view over loaded command definitions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .definition_loader import DefinitionSource
from .formatters import (
    display_flag,
    format_command_help,
    format_flag_help,
    format_subcommand_help,
    format_validation_error,
    red,
)
from .models import (
    CommandDefinition,
    FlagDefinition,
    PrerequisiteRule,
    SubcommandDefinition,
    UsagePattern,
    ValidationResult,
)
from .parser import FlagSpec, ParseSchema
from .prerequisites import rule_requires_root
from .suggestions import SUGGESTION_LIMIT, suggest

logger = logging.getLogger(__name__)

ERROR_MATCH_PREFIX = 30


def _specs(flags: Iterable[FlagDefinition]) -> dict[str, FlagSpec]:
    specs: dict[str, FlagSpec] = {}
    for flag in flags:
        spec = FlagSpec(canonical=flag.canonical, takes_value=flag.takes_value)
        for spelling in flag.spellings:
            specs.setdefault(spelling, spec)
    return specs


def _node_schema(
    inherited: Mapping[str, FlagSpec],
    subcommands: tuple[SubcommandDefinition, ...],
    vocabulary: Mapping[str, FlagSpec],
) -> dict[str, ParseSchema]:
    children: dict[str, ParseSchema] = {}
    for sub in subcommands:
        # Subcommand flags shadow global ones with the same spelling.
        flags = {**inherited, **_specs(sub.flags)}
        children[sub.name] = ParseSchema(
            flags=flags,
            subcommands=_node_schema(flags, sub.subcommands, vocabulary),
            vocabulary=vocabulary,
        )
    return children


def build_parse_schema(definition: CommandDefinition) -> ParseSchema:
    """Build the nested parser schema for one tool."""
    vocabulary = _specs(definition.all_flags())
    root_flags = _specs(definition.global_flags)
    return ParseSchema(
        flags=root_flags,
        subcommands=_node_schema(root_flags, definition.subcommands, vocabulary),
        vocabulary=vocabulary,
    )


class CommandRegistry:
    """Schema queries, validation and help text over a definition catalogue.

    Tools without a definition are treated fail-open: every validation call
    reports them as valid so ad hoc tools keep working.
    """

    def __init__(self, definitions: Mapping[str, CommandDefinition]) -> None:
        self._definitions = dict(definitions)
        self._schemas = {name: build_parse_schema(item) for name, item in self._definitions.items()}
        self._flags: dict[str, dict[str, FlagDefinition]] = {}
        for name, definition in self._definitions.items():
            by_spelling: dict[str, FlagDefinition] = {}
            for flag in definition.all_flags():
                for spelling in flag.spellings:
                    by_spelling.setdefault(spelling, flag)
            self._flags[name] = by_spelling
        logger.debug(f"Registry indexed {len(self._definitions)} tools")

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, tool: object) -> bool:
        return tool in self._definitions

    def has(self, tool: str) -> bool:
        return tool in self._definitions

    def tool_names(self) -> list[str]:
        return sorted(self._definitions)

    def definitions(self) -> list[CommandDefinition]:
        return [self._definitions[name] for name in self.tool_names()]

    def get_definition(self, tool: str) -> CommandDefinition | None:
        return self._definitions.get(tool)

    def by_category(self, category: str) -> list[CommandDefinition]:
        return [item for item in self.definitions() if item.category == category]

    def categories(self) -> list[str]:
        return sorted({item.category for item in self._definitions.values()})

    def get_parse_schema(self, tool: str) -> ParseSchema | None:
        """Return the parser schema for tool, or None when it has no definition."""
        return self._schemas.get(tool)

    def get_flag_schema(self, tool: str, subcommands: Iterable[str] = ()) -> dict[str, bool]:
        """Map every flag spelling valid at the resolved level to whether it takes a value."""
        node = self._schemas.get(tool)
        if node is None:
            return {}
        for name in subcommands:
            child = node.subcommands.get(name)
            if child is None:
                break
            node = child
        return {spelling: spec.takes_value for spelling, spec in node.flags.items()}

    def flag_vocabulary(self, tool: str) -> list[str]:
        """Every dash-stripped spelling across the tool's global and subcommand flags."""
        return list(self._flags.get(tool, {}))

    def canonical_flag(self, tool: str, flag: str) -> str | None:
        found = self._flags.get(tool, {}).get(flag.lstrip("-"))
        return found.canonical if found is not None else None

    def find_flag(self, tool: str, flag: str) -> FlagDefinition | None:
        return self._flags.get(tool, {}).get(flag.lstrip("-"))

    def dashed_spelling(self, tool: str, flag: str) -> str:
        """Spelling as a user types it: ``-pl`` for a declared short name, ``--query`` for a long one."""
        name = flag.lstrip("-")
        found = self._flags.get(tool, {}).get(name)
        return found.dashed(name) if found is not None else display_flag(name)

    def validate_flag(self, tool: str, flag: str) -> ValidationResult:
        """Exact match over the tool's own flags, else suggestions from that vocabulary only.

        Suggestions are dashed spellings, at most one per declared flag: the
        spelling closest to what was typed.
        """
        if tool not in self._definitions:
            return ValidationResult(valid=True)
        name = flag.lstrip("-")
        by_spelling = self._flags[tool]
        if name in by_spelling:
            return ValidationResult(valid=True, exact_match=True)
        picked: dict[FlagDefinition, str] = {}
        for spelling in suggest(name, by_spelling, limit=len(by_spelling)):
            found = by_spelling[spelling]
            picked.setdefault(found, found.dashed(spelling))
            if len(picked) == SUGGESTION_LIMIT:
                break
        return ValidationResult(valid=False, suggestions=tuple(picked.values()))

    def subcommand_level(self, tool: str, parents: Iterable[str] = ()) -> tuple[SubcommandDefinition, ...] | None:
        """Subcommands declared under parents, or None when the path does not resolve."""
        definition = self._definitions.get(tool)
        if definition is None:
            return None
        parents = tuple(parents)
        if not parents:
            return definition.subcommands
        parent = definition.subcommand(parents)
        return parent.subcommands if parent is not None else None

    def validate_subcommand(self, tool: str, subcommand: str, parents: Iterable[str] = ()) -> ValidationResult:
        """Validate subcommand against the names declared at its nesting level."""
        if tool not in self._definitions:
            return ValidationResult(valid=True)
        level = self.subcommand_level(tool, parents)
        if level is None:
            return ValidationResult(valid=False)
        if not level:
            return ValidationResult(valid=True)
        names = [sub.name for sub in level]
        if subcommand in names:
            return ValidationResult(valid=True, exact_match=True)
        return ValidationResult(valid=False, suggestions=tuple(suggest(subcommand, names)))

    def prerequisite_rules(self, tool: str) -> tuple[PrerequisiteRule, ...]:
        definition = self._definitions.get(tool)
        return definition.prerequisite_rules if definition is not None else ()

    def requires_root(self, tool: str, flag: str) -> bool:
        """Return True when any rule of tool gates flag behind root."""
        canonical = self.canonical_flag(tool, flag) or flag.lstrip("-")
        return rule_requires_root(tool, canonical, self.prerequisite_rules(tool))

    def get_command_help(self, tool: str, verbose: bool = False) -> str:
        definition = self._definitions.get(tool)
        if definition is None:
            return red(f"Unknown command: {tool}")
        return format_command_help(definition, verbose=verbose)

    def get_subcommand_help(self, tool: str, path: Iterable[str]) -> str:
        definition = self._definitions.get(tool)
        if definition is None:
            return red(f"Unknown command: {tool}")
        return format_subcommand_help(definition, tuple(path))

    def get_flag_help(self, tool: str, flag: str) -> str:
        if tool not in self._definitions:
            return red(f"Unknown command: {tool}")
        found = self.find_flag(tool, flag)
        if found is None:
            result = self.validate_flag(tool, flag)
            return format_validation_error(tool, flag, result.suggestions)
        return format_flag_help(tool, found, requires_root=self.requires_root(tool, flag))

    def get_usage_examples(self, tool: str) -> tuple[UsagePattern, ...]:
        definition = self._definitions.get(tool)
        return definition.usage_patterns if definition is not None else ()

    def get_exit_code_meaning(self, tool: str, code: int) -> str:
        definition = self._definitions.get(tool)
        if definition is not None:
            for exit_code in definition.exit_codes:
                if exit_code.code == code:
                    return exit_code.meaning
        return f"Unknown exit code: {code}"

    def get_error_resolution(self, tool: str, message: str) -> str | None:
        """Resolution of the first known error whose opening text appears in message."""
        definition = self._definitions.get(tool)
        if definition is None:
            return None
        lowered = message.lower()
        for known in definition.error_messages:
            if known.message.lower()[:ERROR_MATCH_PREFIX] in lowered:
                return known.resolution or None
        return None


async def open_registry(source: DefinitionSource) -> CommandRegistry:
    """Await the memoized definition load and index it."""
    return CommandRegistry(await source.load())
