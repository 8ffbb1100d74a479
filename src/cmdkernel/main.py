"""CLI entrypoint: an interactive shell over the demo tools plus one-shot commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from .completion import complete, format_columns
from .definition_loader import DefinitionSource
from .demo_tools import DemoCluster, build_demo_tools
from .formatters import format_command_list
from .kernel import Kernel, open_kernel
from .models import ExecutionContext
from .parser import base_command, parse

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
EXIT_COMMANDS = {"exit", "quit", ":q"}
COMPLETE_COMMAND = ":complete"
SUDO_PREFIX = "sudo "
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _kernel(definitions_dir: Path | None) -> Kernel:
    """Load the definition catalogue and bind it to the demo tools."""
    source = DefinitionSource.from_dir(definitions_dir) if definitions_dir is not None else DefinitionSource()
    return asyncio.run(open_kernel(source, build_demo_tools()))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cmdkernel", description="Simulated cluster administration shell")
    parser.add_argument("--definitions", type=Path, default=None, help="Directory of command definition JSON files")
    parser.add_argument("--root", action="store_true", help="Run commands as root")
    parser.add_argument("--log-level", default="WARNING", choices=LOG_LEVELS)
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("shell", help="Interactive shell (default)")
    parse_cmd = commands.add_parser("parse", help="Show how a command line is parsed")
    parse_cmd.add_argument("line", nargs=argparse.REMAINDER)
    run_cmd = commands.add_parser("run", help="Dispatch one command line")
    run_cmd.add_argument("line", nargs=argparse.REMAINDER)
    commands.add_parser("tools", help="List tools with command definitions")
    help_cmd = commands.add_parser("help", help="Show help for a tool, subcommand or flag")
    help_cmd.add_argument("tool")
    help_cmd.add_argument("topic", nargs=argparse.REMAINDER)
    complete_cmd = commands.add_parser("complete", help="Show tab completions for a partial line")
    complete_cmd.add_argument("line", nargs=argparse.REMAINDER)
    return parser


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        kernel = _kernel(args.definitions)
    except Exception as exc:
        print(f"Loading definitions failed: {exc}")
        return 1

    command = args.command or "shell"
    if command == "shell":
        return play_shell(kernel, is_root=args.root)
    if command == "parse":
        return parse_command(kernel, " ".join(args.line))
    if command == "run":
        return run_command(kernel, " ".join(args.line), is_root=args.root)
    if command == "tools":
        return tools_command(kernel)
    if command == "help":
        return help_command(kernel, args.tool, args.topic)
    return complete_command(kernel, " ".join(args.line))


def play_shell(
    kernel: Kernel,
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    *,
    is_root: bool = False,
    cluster: DemoCluster | None = None,
) -> int:
    """Run the read-dispatch-print loop until the user exits."""
    cluster = cluster or DemoCluster()
    user = "root" if is_root else "admin"
    print_fn("=== Cluster Shell ===")
    print_fn(f"Tools: {', '.join(kernel.tool_names())}")
    print_fn("Prefix a command with 'sudo' to run it as root. Type 'exit' to leave.")

    while True:
        marker = "#" if is_root else "$"
        try:
            line = input_fn(f"{user}@{cluster.hostname}:~{marker} ")
        except EOFError:
            print_fn("")
            return 0

        stripped = line.strip()
        if stripped in EXIT_COMMANDS:
            return 0
        if not stripped:
            continue
        if stripped.startswith(COMPLETE_COMMAND):
            complete_command(kernel, stripped[len(COMPLETE_COMMAND) :].lstrip(), print_fn)
            continue

        as_root = is_root
        if stripped.startswith(SUDO_PREFIX):
            as_root = True
            stripped = stripped[len(SUDO_PREFIX) :].strip()

        result = kernel.dispatch(stripped, ExecutionContext(is_root=as_root, state=cluster))
        if result.output:
            print_fn(result.output)
        if result.exit_code != 0:
            print_fn(f"[exit {result.exit_code}]")


def parse_command(kernel: Kernel, line: str, print_fn: PrintFn = print) -> int:
    """Print the structured view of line using its tool's schema."""
    if not line.strip():
        print_fn("A command line is required.")
        return 1
    parsed = parse(line, kernel.registry.get_parse_schema(base_command(line)))
    print_fn(parsed.describe())
    return 0


def run_command(kernel: Kernel, line: str, print_fn: PrintFn = print, *, is_root: bool = False) -> int:
    result = kernel.dispatch(line, ExecutionContext(is_root=is_root, state=DemoCluster()))
    if result.output:
        print_fn(result.output)
    return result.exit_code


def tools_command(kernel: Kernel, print_fn: PrintFn = print) -> int:
    print_fn(format_command_list(kernel.registry.definitions()))
    extra = [name for name in kernel.tool_names() if not kernel.registry.has(name)]
    if extra:
        print_fn(f"\nWithout definitions: {', '.join(extra)}")
    return 0


def help_command(kernel: Kernel, tool: str, topic: list[str], print_fn: PrintFn = print) -> int:
    """Print registry help for a tool, one of its subcommands, or a flag."""
    registry = kernel.registry
    if not registry.has(tool):
        print_fn(f"No command definition for '{tool}'.")
        return 1
    if not topic:
        print_fn(registry.get_command_help(tool, verbose=True))
    elif topic[0].startswith("-"):
        print_fn(registry.get_flag_help(tool, topic[0]))
        return 0 if registry.find_flag(tool, topic[0]) is not None else 1
    else:
        print_fn(registry.get_subcommand_help(tool, topic))
        return 0 if registry.subcommand_level(tool, topic) is not None else 1
    return 0


def complete_command(kernel: Kernel, line: str, print_fn: PrintFn = print) -> int:
    result = complete(line, kernel.registry, kernel.tool_names())
    if result.candidates:
        print_fn(format_columns(result.candidates))
    return 0


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
