"""Flag and subcommand validation strategies selected per tool."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .models import ValidationResult
from .registry import CommandRegistry
from .suggestions import suggest


class FlagValidator(Protocol):
    def validate_flag(self, flag: str) -> ValidationResult: ...

    def validate_subcommand(self, subcommand: str, parents: tuple[str, ...] = ()) -> ValidationResult: ...


class RegistryFlagValidator:
    """Validation backed by a tool's declarative definition."""

    def __init__(self, registry: CommandRegistry, tool: str) -> None:
        self.registry = registry
        self.tool = tool

    def validate_flag(self, flag: str) -> ValidationResult:
        return self.registry.validate_flag(self.tool, flag)

    def validate_subcommand(self, subcommand: str, parents: tuple[str, ...] = ()) -> ValidationResult:
        return self.registry.validate_subcommand(self.tool, subcommand, parents)


class StaticFlagValidator:
    """Validation against ad hoc flag and subcommand lists.

    An empty list accepts everything for that kind of token. Nested
    subcommands are not described by static lists and are always accepted.
    """

    def __init__(self, flags: Iterable[str] = (), subcommands: Iterable[str] = ()) -> None:
        self.flags = tuple(dict.fromkeys(flag.lstrip("-") for flag in flags))
        self.subcommands = tuple(dict.fromkeys(subcommands))

    def validate_flag(self, flag: str) -> ValidationResult:
        name = flag.lstrip("-")
        if not self.flags:
            return ValidationResult(valid=True)
        if name in self.flags:
            return ValidationResult(valid=True, exact_match=True)
        return ValidationResult(valid=False, suggestions=tuple(suggest(name, self.flags)))

    def validate_subcommand(self, subcommand: str, parents: tuple[str, ...] = ()) -> ValidationResult:
        if not self.subcommands or parents:
            return ValidationResult(valid=True)
        if subcommand in self.subcommands:
            return ValidationResult(valid=True, exact_match=True)
        return ValidationResult(valid=False, suggestions=tuple(suggest(subcommand, self.subcommands)))


def select_validator(
    registry: CommandRegistry,
    tool: str,
    static_flags: Iterable[str] = (),
    static_subcommands: Iterable[str] = (),
) -> FlagValidator:
    """Registry-backed when the tool has a definition or no static lists, else static."""
    static_flags = tuple(static_flags)
    static_subcommands = tuple(static_subcommands)
    if registry.has(tool) or not (static_flags or static_subcommands):
        return RegistryFlagValidator(registry, tool)
    return StaticFlagValidator(static_flags, static_subcommands)
