"""Dispatch core: runs every submitted line through a fixed validation pipeline.

Stages, in order, each short-circuiting to an error result:

1. help/version interception
2. flag validation (exit 2)
3. subcommand validation (exit 1)
4. privilege prerequisites (exit 13)
5. handler lookup and invocation (faults become ``Internal error``, exit 1)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from . import results
from .definition_loader import DefinitionSource
from .errors import (
    FlagValidationError,
    HandlerFault,
    KernelError,
    PermissionDenied,
    SubcommandValidationError,
    UnknownCommandError,
    UnknownToolError,
)
from .formatters import (
    display_flag,
    format_available_commands,
    format_suggestions,
    format_tool_command_help,
    format_tool_help,
    red,
)
from .models import CommandMetadata, CommandResult, ExecutionContext, ParsedCommand, ToolMetadata
from .parser import ParseSchema, base_command, is_flag, parse
from .prerequisites import check_prerequisites
from .registry import CommandRegistry, open_registry
from .suggestions import suggest
from .validators import FlagValidator, select_validator

logger = logging.getLogger(__name__)

Handler = Callable[[ParsedCommand, ExecutionContext], CommandResult | Awaitable[CommandResult]]


class DispatchStage(Enum):
    IDLE = "idle"
    TOKENIZED = "tokenized"
    FLAGS_VALID = "flags_valid"
    SUBCOMMAND_VALID = "subcommand_valid"
    PREREQUISITE_CHECKED = "prerequisite_checked"
    DISPATCHED = "dispatched"
    RESULT = "result"
    ERROR = "error"


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one line plus the stages it passed through."""

    result: CommandResult
    stages: tuple[DispatchStage, ...]
    parsed: ParsedCommand | None = None

    @property
    def stage(self) -> DispatchStage:
        return self.stages[-1]

    @property
    def failed_after(self) -> DispatchStage | None:
        """Last stage reached before an error, or None on success."""
        if self.stage is not DispatchStage.ERROR:
            return None
        return self.stages[-2]


class Tool:
    """One simulated program: a default handler plus named subcommand handlers."""

    def __init__(
        self,
        name: str,
        handler: Handler | None = None,
        *,
        version: str = "1.0.0",
        description: str = "",
        flags: Iterable[str] = (),
        subcommands: Iterable[str] = (),
    ) -> None:
        self.name = name
        self.default_handler = handler
        self.version = version
        self.description = description
        self.static_flags = tuple(flags)
        self.static_subcommands = tuple(subcommands)
        self.handlers: dict[str, Handler] = {}
        self.commands: dict[str, CommandMetadata] = {}

    def command(self, path: str, handler: Handler, metadata: CommandMetadata | None = None) -> None:
        """Register handler for a space-separated subcommand path such as ``job logs``."""
        key = " ".join(path.split())
        if not key:
            raise ValueError(f"Tool '{self.name}' cannot register an empty command path.")
        self.handlers[key] = handler
        self.commands[key] = metadata or CommandMetadata(name=key)

    def resolve(self, subcommands: tuple[str, ...]) -> Handler | None:
        """Longest registered subcommand path first, then the default handler."""
        for length in range(len(subcommands), 0, -1):
            handler = self.handlers.get(" ".join(subcommands[:length]))
            if handler is not None:
                return handler
        return self.default_handler

    @property
    def metadata(self) -> ToolMetadata:
        return ToolMetadata(
            name=self.name,
            version=self.version,
            description=self.description,
            commands=tuple(self.commands.values()),
        )


class _Run:
    """Stage history of one line."""

    def __init__(self, line: str) -> None:
        self.line = line
        self.stages = [DispatchStage.IDLE]
        self.parsed: ParsedCommand | None = None

    def advance(self, stage: DispatchStage) -> None:
        self.stages.append(stage)
        logger.debug(f"{self.line!r}: {stage.value}")

    def finish(self, result: CommandResult, stage: DispatchStage) -> DispatchOutcome:
        self.advance(stage)
        return DispatchOutcome(result=result, stages=tuple(self.stages), parsed=self.parsed)


@dataclass(frozen=True)
class _Prepared:
    handler: Handler
    tool: Tool
    parsed: ParsedCommand
    context: ExecutionContext


class Kernel:
    """Per-tool handler table bound to one registry."""

    def __init__(self, registry: CommandRegistry, tools: Iterable[Tool]) -> None:
        self.registry = registry
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool: {tool.name}")
            self._tools[tool.name] = tool
        self._validators: dict[str, FlagValidator] = {
            name: select_validator(registry, name, tool.static_flags, tool.static_subcommands)
            for name, tool in self._tools.items()
        }

    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def validator_for(self, name: str) -> FlagValidator:
        validator = self._validators.get(name)
        if validator is None:
            validator = select_validator(self.registry, name)
        return validator

    def dispatch(self, line: str, context: ExecutionContext | None = None) -> CommandResult:
        """Run one line to completion and return its result envelope."""
        return self.trace(line, context).result

    async def dispatch_async(self, line: str, context: ExecutionContext | None = None) -> CommandResult:
        """Like dispatch, awaiting deferred handler results on the running loop."""
        return (await self.trace_async(line, context)).result

    def trace(self, line: str, context: ExecutionContext | None = None) -> DispatchOutcome:
        run = _Run(line)
        try:
            prepared = self._prepare(line, context or ExecutionContext(), run)
            if isinstance(prepared, CommandResult):
                return run.finish(prepared, DispatchStage.RESULT)
            run.advance(DispatchStage.DISPATCHED)
            result = self._invoke(prepared)
        except KernelError as exc:
            return run.finish(self._render_error(exc), DispatchStage.ERROR)
        return run.finish(result, DispatchStage.RESULT)

    async def trace_async(self, line: str, context: ExecutionContext | None = None) -> DispatchOutcome:
        run = _Run(line)
        try:
            prepared = self._prepare(line, context or ExecutionContext(), run)
            if isinstance(prepared, CommandResult):
                return run.finish(prepared, DispatchStage.RESULT)
            run.advance(DispatchStage.DISPATCHED)
            result = await self._invoke_async(prepared)
        except KernelError as exc:
            return run.finish(self._render_error(exc), DispatchStage.ERROR)
        return run.finish(result, DispatchStage.RESULT)

    def _prepare(self, line: str, context: ExecutionContext, run: _Run) -> _Prepared | CommandResult:
        """Run every stage before handler invocation."""
        first = base_command(line)
        if not first:
            return results.success("")

        tool = self._tools.get(first) or self._tools.get(context.command_name or "")
        if tool is None:
            raise UnknownToolError(first, tuple(suggest(first, self.tool_names())))
        name = context.command_name or tool.name

        schema = self.registry.get_parse_schema(name)
        parsed = parse(line, schema)
        run.parsed = parsed
        run.advance(DispatchStage.TOKENIZED)

        intercepted = self._intercept(tool, name, parsed, schema)
        if intercepted is not None:
            return intercepted

        validator = self.validator_for(name)
        for flag in parsed.flags:
            verdict = validator.validate_flag(flag)
            if not verdict.valid:
                raise FlagValidationError(name, _typed_flag(parsed, flag), verdict.suggestions)
        run.advance(DispatchStage.FLAGS_VALID)

        for depth, subcommand in enumerate(parsed.subcommands):
            verdict = validator.validate_subcommand(subcommand, parsed.subcommands[:depth])
            if not verdict.valid:
                raise SubcommandValidationError(name, subcommand, verdict.suggestions)
        run.advance(DispatchStage.SUBCOMMAND_VALID)

        command = " ".join((name, *parsed.subcommands))
        denial = check_prerequisites(command, parsed.flags, context.is_root, self.registry.prerequisite_rules(name))
        if denial is not None:
            logger.debug(f"Denied {command!r} for non-root caller: {denial.operation}")
            raise PermissionDenied(name, name, denial.operation)
        run.advance(DispatchStage.PREREQUISITE_CHECKED)

        handler = tool.resolve(parsed.subcommands)
        if handler is None:
            raise UnknownCommandError(name, parsed.subcommands[0] if parsed.subcommands else None)
        return _Prepared(handler=handler, tool=tool, parsed=parsed, context=context)

    def _intercept(
        self,
        tool: Tool,
        name: str,
        parsed: ParsedCommand,
        schema: ParseSchema | None,
    ) -> CommandResult | None:
        """Answer ``--help`` and ``--version`` before any handler runs."""
        if _requested(parsed, schema, "help", "h"):
            return self._help(tool, name, parsed.subcommands)
        if _requested(parsed, schema, "version", "v"):
            definition = self.registry.get_definition(name)
            version = definition.version if definition is not None and definition.version else tool.version
            return results.success(f"{name} version {version}")
        return None

    def _help(self, tool: Tool, name: str, subcommands: tuple[str, ...]) -> CommandResult:
        definition = self.registry.get_definition(name)
        if definition is not None:
            if subcommands and definition.subcommand(subcommands) is not None:
                return results.success(self.registry.get_subcommand_help(name, subcommands))
            return results.success(self.registry.get_command_help(name))

        metadata = tool.metadata
        if not subcommands:
            return results.success(format_tool_help(metadata))
        command = tool.commands.get(" ".join(subcommands)) or tool.commands.get(subcommands[0])
        if command is None:
            return CommandResult(
                output=f"Unknown command: {subcommands[0]}\n\nRun '{name} --help' to see available commands.",
                exit_code=results.EXIT_FAILURE,
            )
        return results.success(format_tool_command_help(metadata, command))

    def _invoke(self, prepared: _Prepared) -> CommandResult:
        outcome = self._call(prepared)
        if not inspect.isawaitable(outcome):
            return outcome
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self._settle(prepared, outcome))
        if inspect.iscoroutine(outcome):
            outcome.close()
        raise HandlerFault(
            prepared.tool.name,
            RuntimeError("deferred handler result inside a running event loop; use dispatch_async"),
        )

    async def _invoke_async(self, prepared: _Prepared) -> CommandResult:
        outcome = self._call(prepared)
        if inspect.isawaitable(outcome):
            return await self._settle(prepared, outcome)
        return outcome

    def _call(self, prepared: _Prepared) -> CommandResult | Awaitable[CommandResult]:
        try:
            return prepared.handler(prepared.parsed, prepared.context)
        except (Exception, SystemExit) as exc:
            logger.warning(f"Handler for {prepared.parsed.command_path!r} failed: {exc!r}", exc_info=True)
            raise HandlerFault(prepared.tool.name, _fault_cause(exc)) from exc

    async def _settle(self, prepared: _Prepared, outcome: Awaitable[CommandResult]) -> CommandResult:
        try:
            return await outcome
        except (Exception, SystemExit) as exc:
            logger.warning(f"Deferred handler for {prepared.parsed.command_path!r} failed: {exc!r}", exc_info=True)
            raise HandlerFault(prepared.tool.name, _fault_cause(exc)) from exc

    def _render_error(self, exc: KernelError) -> CommandResult:
        """Convert the single error of a line into its result envelope."""
        if isinstance(exc, FlagValidationError):
            return results.flag_suggestion_error(exc.tool, exc.flag, exc.suggestions)
        if isinstance(exc, SubcommandValidationError):
            return results.subcommand_suggestion_error(exc.tool, exc.subcommand, exc.suggestions)
        if isinstance(exc, PermissionDenied):
            return results.permission_error(exc.command, exc.operation)
        if isinstance(exc, HandlerFault):
            return results.internal_error(exc.cause)
        if isinstance(exc, UnknownToolError):
            return self._unknown_tool(exc)
        if isinstance(exc, UnknownCommandError):
            return self._unknown_command(exc)
        return results.error(str(exc), exc.exit_code)

    def _unknown_tool(self, exc: UnknownToolError) -> CommandResult:
        output = red(str(exc))
        hint = format_suggestions(exc.suggestions, as_flags=False)
        if hint:
            output += f"\n{hint}"
        if self._tools:
            listing = [CommandMetadata(name=tool.name, description=tool.description) for tool in self._tools.values()]
            output += "\n\nAvailable commands:\n" + format_available_commands(sorted(listing, key=lambda c: c.name))
        return CommandResult(output=output, exit_code=exc.exit_code)

    def _unknown_command(self, exc: UnknownCommandError) -> CommandResult:
        output = red(str(exc))
        tool = self._tools.get(exc.tool)
        commands: list[CommandMetadata] = list(tool.commands.values()) if tool is not None else []
        if not commands:
            definition = self.registry.get_definition(exc.tool)
            if definition is not None:
                commands = [CommandMetadata(name=sub.name, description=sub.description) for sub in definition.subcommands]
        if commands:
            output += "\n\nAvailable commands:\n" + format_available_commands(commands)
        return CommandResult(output=output, exit_code=exc.exit_code)


def _requested(parsed: ParsedCommand, schema: ParseSchema | None, long: str, short: str) -> bool:
    """True when the long flag, or an undeclared short alias, is present."""
    if long in parsed.flags:
        return True
    return short in parsed.flags and (schema is None or short not in schema.vocabulary)


def _typed_flag(parsed: ParsedCommand, flag: str) -> str:
    """The flag as it appeared on the line, without any ``=value``."""
    for token in parsed.raw_args:
        if token in ("--", "|"):
            break
        if is_flag(token):
            spelled = token.split("=", 1)[0]
            if spelled.lstrip("-") == flag:
                return spelled
    return display_flag(flag)


def _fault_cause(exc: BaseException) -> BaseException:
    if isinstance(exc, SystemExit):
        return RuntimeError(f"handler exited with status {exc.code}")
    return exc


async def open_kernel(source: DefinitionSource, tools: Iterable[Tool]) -> Kernel:
    """Load the registry once, then return a kernel ready for synchronous dispatch."""
    registry = await open_registry(source)
    return Kernel(registry, tools)
