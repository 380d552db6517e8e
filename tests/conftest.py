"""Pytest bootstrap and shared fixtures.

The ``pytest`` console script can run with a sys.path that excludes the
repository root. Ensure ``import clipster`` resolves to the local module.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

import clipster  # noqa: E402


class RecordingPlatform(clipster.Platform):
    """Platform double that keeps everything it is handed."""

    def __init__(
        self,
        config: Optional[clipster.ClipsterConfig] = None,
        workspace_root: Optional[Path] = None,
        clipboard: str = "",
        fail_writes: bool = False,
    ):
        super().__init__(config, workspace_root)
        self.clipboard = clipboard
        self.fail_writes = fail_writes
        self.written: List[str] = []
        self.messages: List[Tuple[str, str]] = []

    def write_text(self, text: str) -> bool:
        if self.fail_writes:
            self.report("error", "Sink unavailable", "test")
            return False
        self.written.append(text)
        return True

    def read_text(self) -> str:
        return self.clipboard

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def of_level(self, level: str) -> List[str]:
        return [message for lvl, message in self.messages if lvl == level]


def make_tree(root: Path, spec: dict) -> None:
    """Build files and folders from ``{"name": "content" | {...}}``."""
    for name, value in spec.items():
        path = root / name
        if isinstance(value, dict):
            path.mkdir(parents=True, exist_ok=True)
            make_tree(path, value)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")


@pytest.fixture
def build_tree():
    return make_tree


@pytest.fixture
def platform_factory():
    def factory(**kwargs) -> RecordingPlatform:
        return RecordingPlatform(**kwargs)

    return factory
