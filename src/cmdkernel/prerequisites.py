"""Privilege prerequisites evaluated before a command reaches its handler."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from fnmatch import fnmatchcase

from .models import PrerequisiteRule


@dataclass(frozen=True)
class PrerequisiteDenial:
    """Why a command was refused."""

    command: str
    rule: PrerequisiteRule
    flags: tuple[str, ...] = ()

    @property
    def operation(self) -> str:
        if len(self.flags) == 1:
            return f"option '{self.flags[0]}'"
        if self.flags:
            return "options " + ", ".join(f"'{flag}'" for flag in self.flags)
        return "this operation"


def rule_matches(rule: PrerequisiteRule, command: str) -> bool:
    """Match exact name, space-delimited prefix (tool covers its subcommands) or glob."""
    pattern = rule.command_pattern
    return command == pattern or command.startswith(pattern + " ") or fnmatchcase(command, pattern)


def check_prerequisites(
    command: str,
    flags: Iterable[str],
    is_root: bool,
    rules: Iterable[PrerequisiteRule],
) -> PrerequisiteDenial | None:
    """Return the first denial for command, or None when it may run."""
    if is_root:
        return None
    present = {flag.lstrip("-") for flag in flags}
    for rule in rules:
        if not rule.requires_root or not rule_matches(rule, command):
            continue
        if rule.required_flags is None:
            return PrerequisiteDenial(command=command, rule=rule)
        triggered = present & rule.required_flags
        if triggered:
            return PrerequisiteDenial(command=command, rule=rule, flags=tuple(sorted(triggered)))
    return None


def rule_requires_root(command: str, flag: str, rules: Iterable[PrerequisiteRule]) -> bool:
    """Return True when passing flag to command needs root."""
    name = flag.lstrip("-")
    for rule in rules:
        if not rule.requires_root or not rule_matches(rule, command):
            continue
        if rule.required_flags is None or name in rule.required_flags:
            return True
    return False
