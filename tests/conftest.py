from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

WriteDefinitions = Callable[[dict[str, object]], Path]


@pytest.fixture
def definitions_dir(tmp_path: Path) -> WriteDefinitions:
    """Write ``{file name: JSON payload}`` into an empty catalogue directory and return it."""
    root = tmp_path / "definitions"
    root.mkdir()

    def write(files: dict[str, object]) -> Path:
        for name, payload in files.items():
            (root / name).write_text(json.dumps(payload), encoding="utf-8")
        return root

    return write
