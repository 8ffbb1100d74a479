"""Terminal text for help pages and validation diagnostics."""

from __future__ import annotations

from collections.abc import Iterable

from .models import (
    CommandDefinition,
    CommandMetadata,
    ErrorMessage,
    ExitCode,
    FlagDefinition,
    SubcommandDefinition,
    ToolMetadata,
)


class ANSI:
    """Escape codes used in terminal output."""

    RESET = "\x1b[0m"
    BOLD = "\x1b[1m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[33m"
    CYAN = "\x1b[36m"
    GRAY = "\x1b[90m"
    BOLD_CYAN = "\x1b[1;36m"


MAX_OPTIONS = 10
MAX_SUBCOMMANDS = 8
MAX_EXAMPLES = 5


def red(text: str) -> str:
    return f"{ANSI.RED}{text}{ANSI.RESET}"


def display_flag(name: str) -> str:
    """Render a dash-stripped flag name the way users type it.

    Names that already carry their dashes, such as ``-pl``, are left alone.
    """
    if name.startswith("-"):
        return name
    return f"-{name}" if len(name) == 1 else f"--{name}"


def flag_label(flag: FlagDefinition) -> str:
    """Return ``-s, --long`` for a flag definition."""
    parts = []
    if flag.short:
        parts.append(f"-{flag.short}")
    if flag.long:
        parts.append(f"--{flag.long}")
    return ", ".join(parts)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def _heading(title: str) -> str:
    return f"{ANSI.BOLD_CYAN}━━━ {title} ━━━{ANSI.RESET}\n\n"


def _section(title: str) -> str:
    return f"{ANSI.BOLD}{title}:{ANSI.RESET}\n"


def _flag_rows(flags: Iterable[FlagDefinition], limit: int | None = None) -> str:
    flags = list(flags)
    shown = flags if limit is None else flags[:limit]
    output = ""
    for flag in shown:
        label = flag_label(flag)
        if flag.takes_value:
            label += f" {flag.arguments or 'VALUE'}"
        output += f"  {ANSI.CYAN}{label:<25}{ANSI.RESET} {_truncate(flag.description, 60)}\n"
    if limit is not None and len(flags) > limit:
        output += f"  ... and {len(flags) - limit} more options\n"
    return output


def _subcommand_rows(subcommands: Iterable[SubcommandDefinition], limit: int | None = None) -> str:
    subcommands = list(subcommands)
    shown = subcommands if limit is None else subcommands[:limit]
    output = ""
    for sub in shown:
        output += f"  {ANSI.CYAN}{sub.name:<15}{ANSI.RESET} {_truncate(sub.description, 50)}\n"
    if limit is not None and len(subcommands) > limit:
        output += f"  ... and {len(subcommands) - limit} more\n"
    return output


def format_exit_code(exit_code: ExitCode) -> str:
    return f"  {ANSI.CYAN}{exit_code.code:<5}{ANSI.RESET} {exit_code.meaning}\n"


def format_error_message(error: ErrorMessage) -> str:
    """Format one known error message with its resolution."""
    output = f"{red(error.message)}\n"
    output += f"  Meaning: {error.meaning}\n"
    if error.resolution:
        output += f"  {ANSI.GREEN}Fix: {error.resolution}{ANSI.RESET}\n"
    return output


def format_command_help(definition: CommandDefinition, verbose: bool = False) -> str:
    """Format a complete help page from a command definition."""
    options_limit = None if verbose else MAX_OPTIONS
    output = _heading(definition.tool_name)
    output += _section("Description") + f"  {definition.description}\n\n"
    output += _section("Usage") + f"  {definition.synopsis or definition.tool_name}\n\n"

    if definition.global_flags:
        output += _section("Options") + _flag_rows(definition.global_flags, options_limit) + "\n"

    if definition.subcommands:
        limit = None if verbose else MAX_SUBCOMMANDS
        output += _section("Subcommands") + _subcommand_rows(definition.subcommands, limit) + "\n"

    if definition.usage_patterns:
        output += _section("Examples")
        for pattern in definition.usage_patterns[:MAX_EXAMPLES]:
            output += f"\n  {ANSI.CYAN}{pattern.command}{ANSI.RESET}\n"
            output += f"    {pattern.description}\n"
            if pattern.requires_root:
                output += f"    {ANSI.YELLOW}⚠ Requires root privileges{ANSI.RESET}\n"
        output += "\n"

    if definition.exit_codes:
        output += _section("Exit Codes")
        for exit_code in definition.exit_codes:
            output += format_exit_code(exit_code)
        output += "\n"

    if verbose and definition.error_messages:
        output += _section("Common Errors")
        for error in definition.error_messages:
            output += format_error_message(error)
        output += "\n"

    if definition.related_commands:
        output += f"{ANSI.BOLD}Related Commands:{ANSI.RESET} {', '.join(definition.related_commands)}\n"

    return output


def format_subcommand_help(definition: CommandDefinition, path: tuple[str, ...]) -> str:
    """Format the help page of a (possibly nested) subcommand."""
    sub = definition.subcommand(path)
    title = " ".join((definition.tool_name, *path))
    if sub is None:
        return red(f"Subcommand '{' '.join(path)}' not found for {definition.tool_name}.") + "\n"

    output = _heading(title)
    output += _section("Description") + f"  {sub.description}\n\n"
    if sub.synopsis:
        output += _section("Usage") + f"  {sub.synopsis}\n\n"
    if sub.flags:
        output += _section("Options") + _flag_rows(sub.flags) + "\n"
    if sub.subcommands:
        output += _section("Subcommands") + _subcommand_rows(sub.subcommands) + "\n"
    return output


def format_flag_help(tool: str, flag: FlagDefinition, requires_root: bool = False) -> str:
    """Format the help entry of one flag."""
    output = _heading(f"{tool} {flag_label(flag).split(', ')[-1]}")
    output += f"{ANSI.BOLD}Flag:{ANSI.RESET} {flag_label(flag)}\n\n"
    output += _section("Description") + f"  {flag.description}\n\n"
    if flag.takes_value:
        output += f"{ANSI.BOLD}Arguments:{ANSI.RESET} {flag.arguments or 'VALUE'}"
        if flag.argument_type:
            output += f" ({flag.argument_type})"
        output += "\n\n"
    if flag.default is not None:
        output += f"{ANSI.BOLD}Default:{ANSI.RESET} {flag.default}\n\n"
    if flag.example:
        output += _section("Example") + f"  {ANSI.CYAN}{flag.example}{ANSI.RESET}\n\n"
    if requires_root:
        output += f"{ANSI.YELLOW}⚠ This option requires root privileges{ANSI.RESET}\n"
    return output


def format_suggestions(suggestions: Iterable[str], *, as_flags: bool) -> str:
    """Return the "Did you mean" line, or an empty string without suggestions."""
    rendered = [f"'{display_flag(item)}'" if as_flags else f"'{item}'" for item in suggestions]
    if not rendered:
        return ""
    if len(rendered) == 1:
        return f"Did you mean {rendered[0]}?"
    return f"Did you mean one of: {', '.join(rendered)}?"


def format_validation_error(tool: str, flag: str, suggestions: Iterable[str]) -> str:
    """Format an unknown-flag diagnostic for help lookups."""
    output = red(f"Flag '{flag}' not found for {tool}.") + "\n"
    hint = format_suggestions(suggestions, as_flags=True)
    if hint:
        output += hint + "\n"
    output += f"Run '{tool} --help' to see available options."
    return output


def format_command_list(definitions: Iterable[CommandDefinition]) -> str:
    """List tools grouped by category."""
    by_category: dict[str, list[CommandDefinition]] = {}
    for definition in definitions:
        by_category.setdefault(definition.category, []).append(definition)
    if not by_category:
        return "No commands available."

    width = max(len(item.tool_name) for items in by_category.values() for item in items)
    lines: list[str] = []
    for category in sorted(by_category):
        lines.append(f"{ANSI.BOLD}{category}{ANSI.RESET}")
        for definition in sorted(by_category[category], key=lambda item: item.tool_name):
            lines.append(f"  {definition.tool_name:<{width}}  {definition.description}")
    return "\n".join(lines)


def format_tool_help(metadata: ToolMetadata) -> str:
    """General help generated from handler metadata."""
    output = f"{metadata.name} - {metadata.description}\n\n"
    output += f"Usage: {metadata.name} [OPTIONS] COMMAND [ARGS...]\n\n"
    output += "Options:\n"
    output += "  --help, -h       Show this help message\n"
    output += "  --version, -v    Show version information\n"
    if metadata.commands:
        width = max(len(command.name) for command in metadata.commands)
        output += "\nCommands:\n"
        for command in metadata.commands:
            output += f"  {command.name:<{width}}  {command.description}\n"
        output += f"\nRun '{metadata.name} COMMAND --help' for more information on a command.\n"
    return output


def format_tool_command_help(metadata: ToolMetadata, command: CommandMetadata) -> str:
    """Help for one command generated from handler metadata."""
    output = f"{metadata.name} {command.name} - {command.description}\n\n"
    if command.usage:
        output += f"Usage: {command.usage}\n\n"
    if command.flags:
        output += "Options:\n"
        for flag in command.flags:
            short = f"-{flag.short}, " if flag.short else "    "
            value = " VALUE" if flag.takes_value else ""
            default = f" (default: {flag.default})" if flag.default is not None else ""
            output += f"  {short}--{flag.long}{value}\n"
            output += f"      {flag.description}{default}\n"
        output += "\n"
    if command.examples:
        output += "Examples:\n"
        for example in command.examples:
            output += f"  {example}\n"
    return output


def format_available_commands(commands: Iterable[CommandMetadata]) -> str:
    """Indented ``name  description`` rows."""
    return "\n".join(f"  {command.name:<12} {command.description}" for command in commands)
