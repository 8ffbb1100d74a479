"""Result envelopes and flag helpers shared by every tool handler."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import (
    EXIT_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PERMISSION_DENIED,
    EXIT_SUCCESS,
)
from .formatters import display_flag, format_suggestions, red
from .models import BoolFlag, CommandResult, FlagValue, ParsedCommand, ValueFlag


def success(output: str = "") -> CommandResult:
    return CommandResult(output=output, exit_code=EXIT_SUCCESS)


def error(message: str, exit_code: int = EXIT_FAILURE) -> CommandResult:
    """Error envelope with the message styled red."""
    return CommandResult(output=red(message), exit_code=exit_code)


def permission_error(command: str, operation: str = "this operation") -> CommandResult:
    return error(f"{command}: Permission denied: {operation} requires root privileges", EXIT_PERMISSION_DENIED)


def device_not_found_error(command: str, device: str) -> CommandResult:
    return error(f"{command}: Error: Device not found: {device}", EXIT_INVALID_USAGE)


def invalid_flag_error(command: str, flag: str) -> CommandResult:
    output = red(f"{command}: invalid option -- '{flag.lstrip('-')}'")
    output += f"\nTry '{command} --help' for more information."
    return CommandResult(output=output, exit_code=EXIT_INVALID_USAGE)


def missing_argument_error(command: str, argument: str) -> CommandResult:
    output = red(f"{command}: missing required argument: {argument}")
    output += f"\nTry '{command} --help' for more information."
    return CommandResult(output=output, exit_code=EXIT_FAILURE)


def flag_suggestion_error(command: str, flag: str, suggestions: Sequence[str] = ()) -> CommandResult:
    """Unrecognized option with an optional "Did you mean" clause."""
    output = red(f"{command}: unrecognized option '{display_flag(flag)}'") + "\n"
    hint = format_suggestions(suggestions, as_flags=True)
    if hint:
        output += hint + "\n"
    output += f"Try '{command} --help' for more information."
    return CommandResult(output=output, exit_code=EXIT_INVALID_USAGE)


def subcommand_suggestion_error(command: str, subcommand: str, suggestions: Sequence[str] = ()) -> CommandResult:
    """Unknown subcommand with a suggestion line when any are close."""
    output = red(f"{command}: '{subcommand}' is not a {command} command.") + "\n"
    if len(suggestions) == 1:
        output += f"Did you mean '{suggestions[0]}'?\n"
    elif suggestions:
        output += f"Similar commands: {', '.join(suggestions)}\n"
    output += f"See '{command} --help'."
    return CommandResult(output=output, exit_code=EXIT_FAILURE)


def internal_error(cause: BaseException | str) -> CommandResult:
    return error(f"Internal error: {cause}")


def require_flags(parsed: ParsedCommand, *groups: str | Sequence[str]) -> CommandResult | None:
    """Return an error for the first missing group; any spelling in a group satisfies it.

    ``require_flags(parsed, ("i", "id"))`` accepts either ``-i`` or ``--id``.
    """
    for group in groups:
        spellings = (group,) if isinstance(group, str) else tuple(group)
        if not parsed.has_flag(*spellings):
            rendered = "/".join(display_flag(name) for name in spellings)
            return error(f"Missing required flag: {rendered}")
    return None


def get_flag(parsed: ParsedCommand, names: str | Iterable[str], default: FlagValue | None = None) -> FlagValue | None:
    """Return the first present value among alternative spellings."""
    spellings = (names,) if isinstance(names, str) else tuple(names)
    value = parsed.flag_value(*spellings)
    return default if value is None else value


def get_flag_string(parsed: ParsedCommand, names: str | Iterable[str], default: str = "") -> str:
    value = get_flag(parsed, names)
    return value.value if isinstance(value, ValueFlag) else default


def get_flag_number(parsed: ParsedCommand, names: str | Iterable[str], default: float = 0) -> float:
    """Numeric flag value; booleans and unparsable text fall back to default."""
    value = get_flag(parsed, names)
    if not isinstance(value, ValueFlag):
        return default
    try:
        number = float(value.value)
    except ValueError:
        return default
    return int(number) if number.is_integer() else number


def get_flag_bool(parsed: ParsedCommand, names: str | Iterable[str], default: bool = False) -> bool:
    """Boolean view of a flag: bare presence is True, values parse as yes/no words."""
    value = get_flag(parsed, names)
    if value is None:
        return default
    if isinstance(value, BoolFlag):
        return True
    lowered = value.value.strip().lower()
    if lowered in {"1", "true", "yes", "on", "enabled"}:
        return True
    if lowered in {"0", "false", "no", "off", "disabled"}:
        return False
    return default


@dataclass(frozen=True)
class FieldCheck:
    """Outcome of validating one user-supplied value."""

    valid: bool
    error: str = ""
    value: int | None = None


def validate_positive_int(value: str, name: str) -> FieldCheck:
    try:
        number = int(value)
    except ValueError:
        return FieldCheck(valid=False, error=f"Invalid number: '{value}'")
    if number <= 0:
        return FieldCheck(valid=False, error=f"{name} must be positive: {number}")
    return FieldCheck(valid=True, value=number)


def validate_in_set(value: str, valid_values: Sequence[str], name: str) -> FieldCheck:
    if value not in valid_values:
        return FieldCheck(
            valid=False,
            error=f"Invalid {name}: '{value}'. Valid options: {', '.join(valid_values)}",
        )
    return FieldCheck(valid=True)


def format_table(headers: Sequence[str], rows: Iterable[Sequence[str]], widths: Sequence[int] | None = None) -> str:
    """Render an ASCII table with ``+---+`` borders."""
    rows = [list(row) for row in rows]
    if widths is None:
        widths = [
            max([len(header)] + [len(row[index]) if index < len(row) else 0 for row in rows])
            for index, header in enumerate(headers)
        ]

    def render(cells: Sequence[str]) -> str:
        padded = [f"{(cells[index] if index < len(cells) else ''):<{width}}" for index, width in enumerate(widths)]
        return "| " + " | ".join(padded) + " |"

    separator = "+" + "+".join("-" * (width + 2) for width in widths) + "+"
    return "\n".join([separator, render(headers), separator, *(render(row) for row in rows), separator])
