"""Core domain models for command interpretation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class BoolFlag:
    """Flag present without a value."""

    def __str__(self) -> str:
        return "true"


@dataclass(frozen=True)
class ValueFlag:
    """Flag carrying a string value."""

    value: str

    def __str__(self) -> str:
        return self.value


FlagValue = BoolFlag | ValueFlag

PRESENT = BoolFlag()


def _frozen_flags(flags: Mapping[str, FlagValue] | None) -> Mapping[str, FlagValue]:
    return MappingProxyType(dict(flags or {}))


@dataclass(frozen=True)
class ParsedCommand:
    """Structured result of tokenizing one input line."""

    base_command: str
    subcommands: tuple[str, ...] = ()
    positional_args: tuple[str, ...] = ()
    flags: Mapping[str, FlagValue] = field(default_factory=lambda: _frozen_flags(None))
    raw_args: tuple[str, ...] = ()
    raw: str = ""
    pipe_segment: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.flags, MappingProxyType):
            object.__setattr__(self, "flags", _frozen_flags(self.flags))

    def has_flag(self, *names: str) -> bool:
        """Return True when any of the given flag names is present."""
        return any(name.lstrip("-") in self.flags for name in names)

    def flag_value(self, *names: str) -> FlagValue | None:
        """Return the first present flag value among names."""
        for name in names:
            value = self.flags.get(name.lstrip("-"))
            if value is not None:
                return value
        return None

    @property
    def command_path(self) -> str:
        """Tool name followed by the subcommand path."""
        return " ".join((self.base_command, *self.subcommands)).strip()

    def to_args(self) -> list[str]:
        """Rebuild an argument list: subcommands, then flags, then positionals."""
        args = list(self.subcommands)
        for name, value in self.flags.items():
            args.append(f"-{name}" if len(name) == 1 else f"--{name}")
            if isinstance(value, ValueFlag):
                args.append(value.value)
        if self.positional_args:
            args.append("--")
            args.extend(self.positional_args)
        return args

    def describe(self) -> str:
        """Render a readable summary for debugging."""
        parts = [f"Base command: {self.base_command}"]
        if self.subcommands:
            parts.append(f"Subcommands: {' -> '.join(self.subcommands)}")
        if self.flags:
            rendered = [
                f"--{name}" if isinstance(value, BoolFlag) else f"--{name}={value.value}"
                for name, value in self.flags.items()
            ]
            parts.append(f"Flags: {', '.join(rendered)}")
        if self.positional_args:
            parts.append(f"Positional args: {', '.join(self.positional_args)}")
        if self.pipe_segment is not None:
            parts.append(f"Pipe: {self.pipe_segment}")
        return "\n".join(parts)


@dataclass(frozen=True)
class FlagDefinition:
    """One declared flag of a tool or subcommand."""

    long: str
    short: str | None = None
    takes_value: bool = False
    description: str = ""
    default: str | None = None
    arguments: str | None = None
    argument_type: str | None = None
    example: str | None = None

    @property
    def canonical(self) -> str:
        """Key used for this flag in parsed commands."""
        return self.long or (self.short or "")

    @property
    def spellings(self) -> tuple[str, ...]:
        """Every dash-stripped spelling accepted for this flag."""
        names = [name for name in (self.short, self.long) if name]
        return tuple(dict.fromkeys(names))

    def dashed(self, spelling: str) -> str:
        # Multi-letter short names such as nvidia-smi's -pl keep one dash.
        single_dash = len(spelling) == 1 or spelling == self.short
        return f"-{spelling}" if single_dash else f"--{spelling}"


@dataclass(frozen=True)
class SubcommandDefinition:
    """Subcommand with its own flags and optional nested family."""

    name: str
    description: str = ""
    synopsis: str = ""
    flags: tuple[FlagDefinition, ...] = ()
    subcommands: tuple[SubcommandDefinition, ...] = ()

    def child(self, name: str) -> SubcommandDefinition | None:
        for sub in self.subcommands:
            if sub.name == name:
                return sub
        return None


@dataclass(frozen=True)
class PrerequisiteRule:
    """Declarative privilege gate for a command pattern."""

    command_pattern: str
    required_flags: frozenset[str] | None = None
    requires_root: bool = True

    @property
    def unconditional(self) -> bool:
        return self.required_flags is None


@dataclass(frozen=True)
class ExitCode:
    code: int
    meaning: str


@dataclass(frozen=True)
class UsagePattern:
    command: str
    description: str
    requires_root: bool = False


@dataclass(frozen=True)
class ErrorMessage:
    message: str
    meaning: str
    resolution: str = ""


@dataclass(frozen=True)
class CommandDefinition:
    """Declarative schema for one simulated tool."""

    tool_name: str
    description: str = ""
    synopsis: str = ""
    version: str = ""
    category: str = "general"
    global_flags: tuple[FlagDefinition, ...] = ()
    subcommands: tuple[SubcommandDefinition, ...] = ()
    prerequisite_rules: tuple[PrerequisiteRule, ...] = ()
    exit_codes: tuple[ExitCode, ...] = ()
    usage_patterns: tuple[UsagePattern, ...] = ()
    error_messages: tuple[ErrorMessage, ...] = ()
    related_commands: tuple[str, ...] = ()

    @property
    def subcommand_names(self) -> frozenset[str]:
        return frozenset(sub.name for sub in self.subcommands)

    @property
    def per_subcommand_flags(self) -> dict[str, tuple[FlagDefinition, ...]]:
        """Flags keyed by space-joined subcommand path, nested levels included."""
        result: dict[str, tuple[FlagDefinition, ...]] = {}

        def visit(prefix: tuple[str, ...], subs: tuple[SubcommandDefinition, ...]) -> None:
            for sub in subs:
                path = prefix + (sub.name,)
                result[" ".join(path)] = sub.flags
                visit(path, sub.subcommands)

        visit((), self.subcommands)
        return result

    def all_flags(self) -> list[FlagDefinition]:
        """Global flags followed by every subcommand's flags."""
        flags = list(self.global_flags)
        for sub_flags in self.per_subcommand_flags.values():
            flags.extend(sub_flags)
        return flags

    def subcommand(self, path: tuple[str, ...] | list[str]) -> SubcommandDefinition | None:
        """Resolve a nested subcommand path."""
        level = self.subcommands
        found: SubcommandDefinition | None = None
        for name in path:
            found = next((sub for sub in level if sub.name == name), None)
            if found is None:
                return None
            level = found.subcommands
        return found


@dataclass(frozen=True)
class CommandMetadata:
    """Help-only description of one tool command."""

    name: str
    description: str = ""
    usage: str | None = None
    flags: tuple[FlagDefinition, ...] = ()
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolMetadata:
    """Help-only description of a tool."""

    name: str
    version: str = "1.0.0"
    description: str = ""
    commands: tuple[CommandMetadata, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one flag or subcommand."""

    valid: bool
    exact_match: bool = False
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandResult:
    """Result envelope returned for every submitted line."""

    output: str
    exit_code: int = 0


@dataclass(frozen=True)
class ExecutionContext:
    """Caller context passed through to tool handlers."""

    is_root: bool = False
    command_name: str | None = None
    state: object = None
