"""cmdkernel: command interpretation for simulated cluster administration tools."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .definition_loader import DefinitionSource, load_definitions
from .kernel import DispatchOutcome, DispatchStage, Kernel, Tool, open_kernel
from .models import BoolFlag, CommandResult, ExecutionContext, ParsedCommand, ValueFlag
from .parser import parse
from .registry import CommandRegistry, open_registry

__all__ = [
    "BoolFlag",
    "CommandRegistry",
    "CommandResult",
    "DefinitionSource",
    "DispatchOutcome",
    "DispatchStage",
    "ExecutionContext",
    "Kernel",
    "ParsedCommand",
    "Tool",
    "ValueFlag",
    "__version__",
    "load_definitions",
    "open_kernel",
    "open_registry",
    "parse",
]

_VERSION_LINE = re.compile(r'^version\s*=\s*"([^"]+)"\s*$')


def _version_from_pyproject() -> str | None:
    """Read [project].version from a pyproject.toml above this file, for source runs."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        section = None
        for line in pyproject.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                section = stripped
                continue
            match = _VERSION_LINE.match(stripped) if section == "[project]" else None
            if match:
                return match.group(1)
    return None


def _resolve_version() -> str:
    found = _version_from_pyproject()
    if found is not None:
        return found
    try:
        return version("cmdkernel")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
