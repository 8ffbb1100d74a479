"""Exceptions raised by kernel stages and converted to result envelopes."""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INVALID_USAGE = 2
EXIT_PERMISSION_DENIED = 13


class KernelError(Exception):
    """Base class for failures that end one line's pipeline."""

    exit_code = EXIT_FAILURE

    def __init__(self, tool: str, message: str = "") -> None:
        super().__init__(message or tool)
        self.tool = tool


class FlagValidationError(KernelError):
    """Unrecognized flag, with ranked suggestions."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, tool: str, flag: str, suggestions: tuple[str, ...] = ()) -> None:
        super().__init__(tool, f"{tool}: unrecognized option '{flag}'")
        self.flag = flag
        self.suggestions = suggestions


class SubcommandValidationError(KernelError):
    """Unrecognized subcommand, with ranked suggestions."""

    def __init__(self, tool: str, subcommand: str, suggestions: tuple[str, ...] = ()) -> None:
        super().__init__(tool, f"{tool}: '{subcommand}' is not a {tool} command.")
        self.subcommand = subcommand
        self.suggestions = suggestions


class PermissionDenied(KernelError):
    """Operation requires root and the caller is not root."""

    exit_code = EXIT_PERMISSION_DENIED

    def __init__(self, tool: str, command: str, operation: str = "this operation") -> None:
        super().__init__(tool, f"{command}: Permission denied: {operation} requires root privileges")
        self.command = command
        self.operation = operation


class HandlerFault(KernelError):
    """A tool handler raised or its deferred result was rejected."""

    def __init__(self, tool: str, cause: BaseException) -> None:
        super().__init__(tool, f"Internal error: {cause}")
        self.cause = cause


class UnknownToolError(KernelError):
    """No tool is registered under the requested name."""

    def __init__(self, tool: str, suggestions: tuple[str, ...] = ()) -> None:
        super().__init__(tool, f"{tool}: command not found")
        self.suggestions = suggestions


class UnknownCommandError(KernelError):
    """The tool has no handler for the resolved subcommand."""

    def __init__(self, tool: str, command: str | None) -> None:
        if command:
            message = f"Unknown command: {command}"
        else:
            message = f"No command specified. Run '{tool} --help' for usage."
        super().__init__(tool, message)
        self.command = command
