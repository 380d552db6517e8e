#!/usr/bin/env python3
"""
Clipster - Folder Snapshots and Path Scaffolding for the Clipboard

Renders a directory subtree as an indented tree, optionally followed by the
contents of every non-ignored file under a hard file/byte budget, and
creates new files and folders from a block of pasted paths without letting
any of them escape the workspace.

Architecture:
    CLI Args → Configuration → Platform → Ignore Filter →
    Traversal / Bounded Aggregation → Formatting → Output Sink

    Pasted Text → Line Validation → Path Resolution → Confinement → Creation
"""

from __future__ import annotations

import argparse
import logging
import os
import re
import shutil
import stat
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import pathspec
import pyperclip

PathLike = Union[str, "os.PathLike[str]"]


# =============================================================================
# VERSION MANAGEMENT
# =============================================================================

__version__ = "1.0.0"


def get_version() -> str:
    """Get version from package metadata or fall back to the hardcoded one."""
    try:
        return version("clipster")
    except PackageNotFoundError:
        return __version__


# =============================================================================
# CONSTANTS
# =============================================================================

class Defaults:
    """Default configuration values."""
    MAX_FILES = 10
    MAX_SIZE_KB = 500
    MAX_COPY_SIZE_KB = 500
    IGNORE_FILE = ".gitignore"


# Tree display glyphs
GLYPH_CHILD = "┣ "
GLYPH_LAST = "┗ "
GLYPH_PIPE = "┃ "
GLYPH_SPACE = "  "

if sys.platform == "win32":
    INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
else:
    INVALID_NAME_CHARS = re.compile(r"[/\x00]")

SEPARATOR_RUN = re.compile(r"[/\\]+")


# =============================================================================
# ERRORS
# =============================================================================

class ClipsterError(Exception):
    """Base class for clipster errors."""


class PathError(ClipsterError):
    """A pasted line could not be turned into a safe target path."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class InvalidPathError(PathError):
    """The line names something the host filesystem cannot hold."""


class ConfinementError(PathError):
    """The line resolves outside the allowed root."""


class NoRootError(PathError):
    """There is no root to resolve a relative line against."""


# =============================================================================
# ENUMS AND DATA MODELS
# =============================================================================

class EntryKind(Enum):
    """What a resolved path should be created as."""
    FILE = auto()
    DIRECTORY = auto()


@dataclass(frozen=True)
class ClipsterConfig:
    """Immutable per-operation configuration."""
    max_files: int = Defaults.MAX_FILES
    max_size_kb: int = Defaults.MAX_SIZE_KB
    max_copy_size_kb: int = Defaults.MAX_COPY_SIZE_KB
    extra_ignore_patterns: Tuple[str, ...] = ()

    @property
    def max_bytes(self) -> int:
        return self.max_size_kb * 1024

    @property
    def max_copy_bytes(self) -> int:
        return self.max_copy_size_kb * 1024


@dataclass(frozen=True)
class TraversalEntry:
    """One visible child of a directory being walked."""
    name: str
    path: Path
    is_dir: bool
    is_symlink: bool = False

    @property
    def descend(self) -> bool:
        """Directories are walked into unless they are reached through a link."""
        return self.is_dir and not self.is_symlink


@dataclass
class RenderBudget:
    """File-count and byte budget shared by one aggregation walk.

    ``limit_reached`` is a one-shot latch: :meth:`trip` returns True only the
    first time the budget runs out, so exactly one notice is emitted no matter
    how deep the walk was when it happened.
    """
    max_bytes: int
    max_files: Optional[int] = None
    bytes_consumed: int = 0
    files_consumed: int = 0
    limit_reached: bool = False

    def would_exceed(self, size: int) -> bool:
        """Check whether including a file of ``size`` bytes breaks the budget."""
        if self.max_files is not None and self.files_consumed >= self.max_files:
            return True
        return self.bytes_consumed + size > self.max_bytes

    def consume(self, size: int) -> None:
        self.bytes_consumed += size
        self.files_consumed += 1

    def trip(self) -> bool:
        """Set the latch. Returns True only on the transition."""
        if self.limit_reached:
            return False
        self.limit_reached = True
        return True

    def describe(self) -> str:
        """Human-readable truncation notice."""
        limits = f"{self.max_bytes / 1024:g} KB"
        if self.max_files is not None:
            limits = f"{self.max_files} files / {limits}"
        return (
            f"Reached limit ({limits}): included {self.files_consumed} file(s), "
            f"{self.bytes_consumed / 1024:.1f} KB"
        )


@dataclass(frozen=True)
class ResolvedPath:
    """A creation target that already passed confinement validation."""
    path: Path
    kind: EntryKind
    root: Path


@dataclass
class CreationSummary:
    """Outcome of one multi-line creation batch."""
    files_created: int = 0
    folders_created: int = 0
    errors: int = 0
    created: List[Path] = field(default_factory=list)

    def message(self) -> str:
        text = f"Created {self.files_created} file(s) and {self.folders_created} folder(s)."
        if self.errors > 0:
            text += f" {self.errors} item(s) could not be created due to errors."
        return text


# =============================================================================
# OBSERVABILITY
# =============================================================================

class EventLog:
    """Structured log calls ``info/warn/error(message, module, path)``.

    Records go through :mod:`logging` under the ``clipster`` logger, formatted
    as ``[module] message [File: path]``. Paths inside the workspace root are
    shown relative to it.
    """

    def __init__(
        self,
        workspace_root: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.workspace_root = workspace_root
        self._logger = logger or logging.getLogger("clipster")

    def info(self, message: str, module: str = "General", path: Optional[PathLike] = None) -> None:
        self._emit(logging.INFO, message, module, path)

    def warn(self, message: str, module: str = "General", path: Optional[PathLike] = None) -> None:
        self._emit(logging.WARNING, message, module, path)

    def error(self, message: str, module: str = "General", path: Optional[PathLike] = None) -> None:
        self._emit(logging.ERROR, message, module, path)

    def _emit(self, level: int, message: str, module: str, path: Optional[PathLike]) -> None:
        suffix = f" [File: {self._display(path)}]" if path else ""
        self._logger.log(level, f"[{module}] {message}{suffix}")

    def _display(self, path: PathLike) -> str:
        if self.workspace_root is None:
            return str(path)
        try:
            return Path(path).relative_to(self.workspace_root).as_posix()
        except ValueError:
            return str(path)


# =============================================================================
# PLATFORM (output sink, notices, config, workspace root)
# =============================================================================

class Platform(ABC):
    """Host capabilities the core is handed once at start-up."""

    def __init__(
        self,
        config: Optional[ClipsterConfig] = None,
        workspace_root: Optional[PathLike] = None,
    ):
        self.config = config or ClipsterConfig()
        self.workspace_root = _absolute(workspace_root) if workspace_root else None
        self.log = EventLog(self.workspace_root)

    @abstractmethod
    def write_text(self, text: str) -> bool:
        """Hand ``text`` to the output medium. Returns success."""

    @abstractmethod
    def read_text(self) -> str:
        """Return the text currently offered by the input medium."""

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    @abstractmethod
    def warn(self, message: str) -> None:
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        pass

    def get_config(self) -> ClipsterConfig:
        return self.config

    def get_workspace_root(self) -> Optional[Path]:
        return self.workspace_root

    def report(
        self,
        level: str,
        message: str,
        module: str,
        path: Optional[PathLike] = None,
    ) -> None:
        """Show ``message`` to the user and record it in the event log."""
        notify: Dict[str, Callable[[str], None]] = {
            "info": self.info,
            "warn": self.warn,
            "error": self.error,
        }
        notify[level](message)
        getattr(self.log, level)(message, module, path)


class ClipboardPlatform(Platform):
    """Copies output to the system clipboard via pyperclip."""

    def write_text(self, text: str) -> bool:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            self.report("error", f"Clipboard copy failed: {e}", "clipboard")
            return False
        preview = f"{text[:50]}..." if len(text) > 50 else text
        self.log.info(f"Copied {len(text):,} chars: {preview!r}", "clipboard")
        return True

    def read_text(self) -> str:
        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as e:
            self.report("error", f"Clipboard read failed: {e}", "clipboard")
            return ""

    def info(self, message: str) -> None:
        print(f"✅ {message}", file=sys.stderr)

    def warn(self, message: str) -> None:
        print(f"⚠️ {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"❌ {message}", file=sys.stderr)


class StdoutPlatform(Platform):
    """Writes output to stdout and reads input from stdin.

    Notices go to stderr so the snapshot can be piped to another tool.
    """

    def write_text(self, text: str) -> bool:
        try:
            sys.stdout.write(text if text.endswith("\n") else f"{text}\n")
            sys.stdout.flush()
        except OSError as e:
            self.report("error", f"Error writing to stdout: {e}", "stdout")
            return False
        return True

    def read_text(self) -> str:
        return sys.stdin.read()

    def info(self, message: str) -> None:
        print(f"[info]  {message}", file=sys.stderr)

    def warn(self, message: str) -> None:
        print(f"[warn]  {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"[error] {message}", file=sys.stderr)


def _report(
    platform: Optional[Platform],
    level: str,
    message: str,
    module: str,
    path: Optional[PathLike] = None,
) -> None:
    """Route through ``platform`` when there is one, else only to the log."""
    if platform is not None:
        platform.report(level, message, module, path)
    else:
        getattr(EventLog(), level)(message, module, path)


def deliver(platform: Platform, text: str, success_message: str) -> bool:
    """Write ``text`` to the platform's sink and announce the outcome."""
    if not platform.write_text(text):
        return False
    platform.report("info", success_message, "output")
    return True


# =============================================================================
# PATH HELPERS
# =============================================================================

def _absolute(path: PathLike) -> Path:
    return Path(os.path.abspath(os.fspath(path)))


def is_within(path: Path, root: Path) -> bool:
    """Return whether ``path`` is ``root`` or lies under it (lexically)."""
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def ignore_root_for(directory: Path, workspace_root: Optional[Path]) -> Path:
    """Ignore rules come from the workspace root when ``directory`` is inside it."""
    if workspace_root is not None and is_within(directory, workspace_root):
        return workspace_root
    return directory


def _display_name(directory: Path, workspace_root: Optional[Path]) -> str:
    named = workspace_root or directory
    return named.name or str(named)


# =============================================================================
# IGNORE FILTER
# =============================================================================

@dataclass(frozen=True)
class IgnoreMatcher:
    """Compiled ignore rules for one traversal root.

    Paths are matched relative to ``root`` with ``/`` separators. Directory
    paths must carry a trailing ``/`` or directory-only patterns such as
    ``build/`` will not match them.
    """
    root: Path
    patterns: Tuple[str, ...]
    spec: pathspec.PathSpec = field(repr=False, compare=False)

    def matches(self, relative_path: str) -> bool:
        return self.spec.match_file(relative_path)

    def relative_path(self, path: PathLike, is_dir: bool) -> Optional[str]:
        """Root-relative posix form of ``path``, or None if it is not below the root."""
        try:
            relative = _absolute(path).relative_to(self.root).as_posix()
        except ValueError:
            return None
        if relative == ".":
            return None
        return f"{relative}/" if is_dir else relative

    def is_ignored(self, path: PathLike, is_dir: bool) -> bool:
        relative = self.relative_path(path, is_dir)
        return relative is not None and self.matches(relative)


def _clean_patterns(lines: Iterable[str]) -> List[str]:
    """Drop blank lines and comments."""
    cleaned = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            cleaned.append(line)
    return cleaned


def read_ignore_file(root: Path, platform: Optional[Platform] = None) -> List[str]:
    """Return the usable patterns of ``root/.gitignore``.

    A missing file yields no patterns. An unreadable one is reported and
    treated the same way; filtering goes on with whatever else is available.
    """
    ignore_path = root / Defaults.IGNORE_FILE
    if not ignore_path.exists():
        return []
    try:
        content = ignore_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _report(platform, "error", f"Failed to read {Defaults.IGNORE_FILE}: {e}", "ignore", ignore_path)
        return []
    return _clean_patterns(content.splitlines())


def build_ignore_matcher(
    root: PathLike,
    extra_patterns: Iterable[str] = (),
    platform: Optional[Platform] = None,
) -> IgnoreMatcher:
    """Compile the root ignore file plus ``extra_patterns`` into one matcher.

    File patterns come first, so a later extra pattern (including a ``!``
    negation) wins over an earlier file pattern, as it would in git.
    """
    root = _absolute(root)
    patterns = tuple(read_ignore_file(root, platform) + _clean_patterns(extra_patterns))
    spec = pathspec.GitIgnoreSpec.from_lines(patterns)
    return IgnoreMatcher(root=root, patterns=patterns, spec=spec)


# =============================================================================
# FORMATTER
# =============================================================================

def format_entry(name: str, indent: str, is_last: bool) -> str:
    """Render one tree line."""
    connector = GLYPH_LAST if is_last else GLYPH_CHILD
    return f"{indent}{connector}{name}\n"


def format_header(display_name: str, absolute_path: str) -> str:
    return f"{display_name}\nPath: {absolute_path}\n"


def format_file_header(path: str) -> str:
    return f"File: {path}\n"


def number_lines(content: str) -> str:
    """Prefix each line with its right-aligned 1-based number."""
    lines = content.splitlines()
    width = len(str(len(lines))) if lines else 1
    return "\n".join(f"{number:>{width}} | {line}" for number, line in enumerate(lines, 1))


# =============================================================================
# DIRECTORY TRAVERSAL
# =============================================================================

def list_entries(
    directory: Path,
    matcher: IgnoreMatcher,
    platform: Optional[Platform] = None,
) -> Optional[List[TraversalEntry]]:
    """List the visible children of ``directory``: directories, then files.

    Each group is sorted by name, so the result does not depend on the order
    the OS returns entries in. Symlinked directories are listed but flagged so
    callers do not walk into them. Returns None when ``directory`` itself
    cannot be listed.
    """
    try:
        with os.scandir(directory) as it:
            raw_entries = list(it)
    except OSError as e:
        _report(platform, "error", f"Failed to read directory: {e}", "traversal", directory)
        return None

    dirs: List[TraversalEntry] = []
    files: List[TraversalEntry] = []
    for entry in raw_entries:
        path = directory / entry.name
        try:
            is_symlink = entry.is_symlink()
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError as e:
            _report(platform, "warn", f"Skipping inaccessible entry: {e}", "traversal", path)
            continue
        if not (is_dir or is_file):
            continue
        if matcher.is_ignored(path, is_dir):
            continue
        (dirs if is_dir else files).append(TraversalEntry(entry.name, path, is_dir, is_symlink))

    dirs.sort(key=lambda e: e.name)
    files.sort(key=lambda e: e.name)
    return dirs + files


def traverse_directory(
    directory: PathLike,
    root: PathLike,
    extra_patterns: Iterable[str] = (),
    indent: str = "",
    matcher: Optional[IgnoreMatcher] = None,
    platform: Optional[Platform] = None,
) -> str:
    """Render the subtree below ``directory`` as tree lines.

    The matcher is built here only on the top-level call and then handed to
    every recursive call. A directory whose listing fails, or whose children
    are all ignored, contributes no lines of its own.
    """
    if matcher is None:
        matcher = build_ignore_matcher(root, extra_patterns, platform)

    entries = list_entries(_absolute(directory), matcher, platform)
    if not entries:
        return ""

    lines: List[str] = []
    for index, entry in enumerate(entries):
        is_last = index == len(entries) - 1
        lines.append(format_entry(entry.name, indent, is_last))
        if entry.descend:
            child_indent = indent + (GLYPH_SPACE if is_last else GLYPH_PIPE)
            lines.append(
                traverse_directory(entry.path, root, extra_patterns, child_indent, matcher, platform)
            )
    return "".join(lines)


def render_structure(
    directory: Path,
    matcher: IgnoreMatcher,
    platform: Optional[Platform] = None,
    display_name: Optional[str] = None,
) -> str:
    """Header, ``<name>/`` line and tree for ``directory``."""
    text = format_header(display_name or directory.name, str(directory))
    text += f"{directory.name}/\n"
    text += traverse_directory(directory, matcher.root, matcher=matcher, platform=platform)
    return text


def iter_files(
    directory: Path,
    matcher: IgnoreMatcher,
    platform: Optional[Platform] = None,
) -> Iterator[Path]:
    """Yield every visible file below ``directory`` in tree order."""
    for entry in list_entries(directory, matcher, platform) or ():
        if entry.descend:
            yield from iter_files(entry.path, matcher, platform)
        elif not entry.is_dir:
            yield entry.path


def get_folder_structure(
    directory: PathLike,
    platform: Platform,
    extra_patterns: Optional[Iterable[str]] = None,
) -> str:
    """Tree snapshot of ``directory`` with the workspace header."""
    directory = _absolute(directory)
    workspace_root = platform.get_workspace_root()
    if extra_patterns is None:
        extra_patterns = platform.get_config().extra_ignore_patterns
    matcher = build_ignore_matcher(ignore_root_for(directory, workspace_root), extra_patterns, platform)
    return render_structure(directory, matcher, platform, _display_name(directory, workspace_root))


def get_root_folder_structure(platform: Platform) -> Optional[str]:
    root = platform.get_workspace_root()
    if root is None:
        platform.report("error", "No workspace root found.", "structure")
        return None
    return get_folder_structure(root, platform)


def copy_root_folder_path(platform: Platform) -> Optional[str]:
    root = platform.get_workspace_root()
    if root is None:
        platform.report("error", "No workspace folder open.", "structure")
        return None
    return f"Root Path: {root}"


# =============================================================================
# BOUNDED CONTENT AGGREGATION
# =============================================================================

@dataclass
class AggregationContext:
    """State threaded by reference through one aggregation walk."""
    matcher: IgnoreMatcher
    budget: RenderBudget
    platform: Optional[Platform] = None
    parts: List[str] = field(default_factory=list)


def read_file_content(path: PathLike, platform: Optional[Platform] = None) -> Optional[str]:
    """Read a file as UTF-8 text; None (after reporting) if it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        _report(platform, "error", f"Failed to read file: {e}", "files", path)
        return None


def _append_file_contents(directory: Path, ctx: AggregationContext) -> bool:
    """Append file blocks below ``directory``. Returns False once the walk must stop."""
    for entry in list_entries(directory, ctx.matcher, ctx.platform) or ():
        if entry.is_dir:
            if entry.descend and not _append_file_contents(entry.path, ctx):
                return False
            continue

        try:
            size = entry.path.stat().st_size
        except OSError as e:
            _report(ctx.platform, "error", f"Failed to stat: {e}", "aggregate", entry.path)
            continue

        if ctx.budget.would_exceed(size):
            if ctx.budget.trip():
                _report(ctx.platform, "warn", ctx.budget.describe(), "aggregate")
            return False

        content = read_file_content(entry.path, ctx.platform)
        if content is None:
            continue
        ctx.parts.append(f"\n\n{format_file_header(str(entry.path))}{content}")
        ctx.budget.consume(size)
    return True


def aggregate(
    root: PathLike,
    extra_patterns: Iterable[str] = (),
    max_files: Optional[int] = Defaults.MAX_FILES,
    max_bytes: int = Defaults.MAX_SIZE_KB * 1024,
    platform: Optional[Platform] = None,
    start: Optional[PathLike] = None,
    display_name: Optional[str] = None,
) -> str:
    """Tree snapshot of ``start`` (default ``root``) followed by file contents.

    Files are visited in tree order. The first file that would push the
    budget past ``max_files`` or ``max_bytes`` triggers a single notice and
    ends the walk; everything appended before it is kept.
    """
    root = _absolute(root)
    start = _absolute(start) if start is not None else root
    matcher = build_ignore_matcher(root, extra_patterns, platform)
    ctx = AggregationContext(
        matcher=matcher,
        budget=RenderBudget(max_bytes=max_bytes, max_files=max_files),
        platform=platform,
    )
    ctx.parts.append(render_structure(start, matcher, platform, display_name))
    _append_file_contents(start, ctx)
    log = platform.log if platform is not None else EventLog()
    log.info(
        f"Aggregated {ctx.budget.files_consumed} file(s), {ctx.budget.bytes_consumed:,} bytes",
        "aggregate",
        start,
    )
    return "".join(ctx.parts)


def get_root_folder_structure_and_content(platform: Platform) -> Optional[str]:
    """Root snapshot bounded by the root file-count and size limits."""
    root = platform.get_workspace_root()
    if root is None:
        platform.report("error", "No workspace root found.", "aggregate")
        return None
    config = platform.get_config()
    return aggregate(
        root,
        config.extra_ignore_patterns,
        max_files=config.max_files,
        max_bytes=config.max_bytes,
        platform=platform,
        display_name=_display_name(root, root),
    )


def get_folder_structure_and_content(directory: PathLike, platform: Platform) -> str:
    """Snapshot of any folder, bounded only by the ad hoc copy ceiling."""
    directory = _absolute(directory)
    workspace_root = platform.get_workspace_root()
    config = platform.get_config()
    return aggregate(
        ignore_root_for(directory, workspace_root),
        config.extra_ignore_patterns,
        max_files=None,
        max_bytes=config.max_copy_bytes,
        platform=platform,
        start=directory,
        display_name=_display_name(directory, workspace_root),
    )


# =============================================================================
# MULTI-FILE COPY
# =============================================================================

def copy_files(
    paths: Iterable[PathLike],
    platform: Platform,
    line_numbers: bool = False,
    budget: Optional[RenderBudget] = None,
) -> str:
    """Concatenate ``File: <path>`` blocks for ``paths`` under the copy ceiling.

    Pass ``budget`` to find out afterwards how many files made it in.
    """
    if budget is None:
        budget = RenderBudget(max_bytes=platform.get_config().max_copy_bytes)
    blocks: List[str] = []
    for path in paths:
        path = _absolute(path)
        try:
            st = path.stat()
        except OSError as e:
            platform.report("error", f"Failed to stat: {e}", "files", path)
            continue
        if not stat.S_ISREG(st.st_mode):
            platform.report("error", f"Not a file: {path.name}", "files", path)
            continue

        if budget.would_exceed(st.st_size):
            if budget.trip():
                platform.report("warn", budget.describe(), "files")
            break

        content = read_file_content(path, platform)
        if content is None:
            continue
        if line_numbers:
            content = number_lines(content)
        blocks.append(f"{format_file_header(str(path))}{content}")
        budget.consume(st.st_size)
    return "\n\n".join(blocks)


def collect_folder_files(directory: PathLike, platform: Platform) -> List[Path]:
    """Every non-ignored file below ``directory``, in tree order."""
    directory = _absolute(directory)
    root = ignore_root_for(directory, platform.get_workspace_root())
    matcher = build_ignore_matcher(root, platform.get_config().extra_ignore_patterns, platform)
    return list(iter_files(directory, matcher, platform))


# =============================================================================
# PATH RESOLUTION AND CONFINEMENT
# =============================================================================

def normalize_clipboard_content(content: str) -> str:
    """Collapse every run of ``/`` or ``\\`` into the host separator."""
    return SEPARATOR_RUN.sub(lambda _match: os.sep, content)


def validate_line(line: str) -> str:
    """Reject a line before any resolution happens; return its normalized form.

    The final segment must not contain characters the host filesystem
    refuses, and no segment may be ``..``.
    """
    normalized = normalize_clipboard_content(line.strip())
    segments = [segment for segment in normalized.split(os.sep) if segment]
    if not segments or INVALID_NAME_CHARS.search(segments[-1]):
        raise InvalidPathError(f"Invalid path: '{line}'", line)
    if ".." in segments:
        raise ConfinementError(f"Path traversal is not allowed: '{line}'", line)
    return normalized


def get_base_directory(path: PathLike, platform: Optional[Platform] = None) -> Optional[Path]:
    """The folder a user pointed at: a file's parent, or the folder itself."""
    path = _absolute(path)
    try:
        st = path.stat()
    except OSError as e:
        _report(
            platform,
            "error",
            f"Failed to determine the type of the selected item: {e}",
            "paths",
            path,
        )
        return None
    return path.parent if stat.S_ISREG(st.st_mode) else path


class PathResolver:
    """Turns pasted lines into target paths that cannot leave the allowed root.

    The allowed root is the workspace root when one is known, otherwise the
    base directory passed to :meth:`resolve`. Resolution order:

    1. absolute lines are normalized as they are;
    2. lines containing a separator resolve against the allowed root;
    3. bare names resolve against the base directory.

    Whatever rule fired, the result's parent is canonicalized (symlinks
    resolved) and must sit at or below the canonical allowed root.
    """

    def __init__(self, workspace_root: Optional[PathLike] = None):
        self.workspace_root = _absolute(workspace_root) if workspace_root else None

    def allowed_root(self, base_dir: Optional[PathLike]) -> Optional[Path]:
        if self.workspace_root is not None:
            return self.workspace_root
        return _absolute(base_dir) if base_dir is not None else None

    def resolve(self, line: str, base_dir: Optional[PathLike]) -> ResolvedPath:
        normalized = validate_line(line)
        kind = EntryKind.DIRECTORY if normalized.endswith(os.sep) else EntryKind.FILE
        name = normalized.rstrip(os.sep)
        root = self.allowed_root(base_dir)
        if root is None:
            raise NoRootError("No workspace found. Unable to determine relative path.", line)

        if os.path.isabs(name):
            target = Path(os.path.normpath(name))
        elif os.sep in name:
            target = Path(os.path.normpath(os.path.join(root, name)))
        else:
            base = _absolute(base_dir) if base_dir is not None else root
            target = Path(os.path.normpath(os.path.join(base, name)))

        return ResolvedPath(path=self.confine(target, root, line), kind=kind, root=root)

    @staticmethod
    def confine(target: Path, root: Path, line: str = "") -> Path:
        """Return ``target`` if its canonical form stays within ``root``."""
        canonical_root = Path(os.path.realpath(root))
        candidate = Path(os.path.realpath(target.parent)) / target.name
        if not is_within(candidate, canonical_root):
            raise ConfinementError(
                f"Path is outside the allowed root: '{line or target}'",
                line,
            )
        return target


def resolve_target_path(
    line: str,
    base_dir: Optional[PathLike],
    platform: Platform,
) -> Optional[ResolvedPath]:
    """Resolve ``line`` or report why it was rejected and return None."""
    try:
        return PathResolver(platform.get_workspace_root()).resolve(line, base_dir)
    except PathError as e:
        platform.report("error", str(e), "paths")
        return None


def create_target(resolved: ResolvedPath) -> None:
    """Create the file or folder named by an already-confined path.

    Files are created exclusively; an existing file raises FileExistsError
    rather than being truncated.
    """
    if resolved.kind is EntryKind.DIRECTORY:
        resolved.path.mkdir(parents=True, exist_ok=True)
        return
    resolved.path.parent.mkdir(parents=True, exist_ok=True)
    with resolved.path.open("x", encoding="utf-8"):
        pass


def create_from_text(text: str, target: PathLike, platform: Platform) -> CreationSummary:
    """Create one file or folder per non-blank line of ``text``.

    Lines are handled independently: a rejected or failed line is counted
    and the batch moves on.
    """
    module = "create"
    summary = CreationSummary()
    lines = [line.strip() for line in re.split(r"\r?\n", text or "") if line.strip()]
    if not lines:
        platform.report("error", "Clipboard is empty or contains only whitespace.", module)
        return summary

    base_dir = get_base_directory(target, platform)
    if base_dir is None:
        summary.errors = len(lines)
        return summary

    resolver = PathResolver(platform.get_workspace_root())
    for line in lines:
        try:
            resolved = resolver.resolve(line, base_dir)
        except PathError as e:
            platform.report("error", str(e), module)
            summary.errors += 1
            continue

        try:
            create_target(resolved)
        except OSError as e:
            platform.report("error", f"Failed to create: {line} - {e}", module, resolved.path)
            summary.errors += 1
            continue

        if resolved.kind is EntryKind.DIRECTORY:
            summary.folders_created += 1
            platform.log.info("Created folder", module, resolved.path)
        else:
            summary.files_created += 1
            platform.log.info("Created file", module, resolved.path)
        summary.created.append(resolved.path)

    platform.report("info", summary.message(), module)
    return summary


def paste_file(source: str, target: PathLike, platform: Platform) -> Optional[Path]:
    """Copy the file named by ``source`` into the folder at ``target``.

    The destination goes through the same confinement check as created
    paths, and an existing file is never overwritten.
    """
    module = "paste"
    source = source.strip()
    source_path = _absolute(source) if source else None
    if source_path is None or not source_path.is_file():
        platform.report("error", "Clipboard does not contain a valid file path.", module)
        return None

    base_dir = get_base_directory(target, platform)
    if base_dir is None:
        return None

    resolved = resolve_target_path(source_path.name, base_dir, platform)
    if resolved is None:
        return None
    if resolved.path.exists():
        platform.report("warn", f"File already exists: {resolved.path.name}", module, resolved.path)
        return None

    try:
        shutil.copyfile(source_path, resolved.path)
    except OSError as e:
        platform.report("error", f"Failed to paste file: {e}", module, resolved.path)
        return None
    platform.report("info", f"File pasted: {resolved.path.name}", module, resolved.path)
    return resolved.path


# =============================================================================
# CONFIGURATION BUILDER
# =============================================================================

class ConfigBuilder:
    """Builds ClipsterConfig from CLI arguments."""

    @staticmethod
    def from_args(args: argparse.Namespace) -> ClipsterConfig:
        return ClipsterConfig(
            max_files=args.max_files,
            max_size_kb=args.max_size_kb,
            max_copy_size_kb=args.max_copy_size_kb,
            extra_ignore_patterns=tuple(args.ignore or ()),
        )

    @staticmethod
    def build_platform(args: argparse.Namespace, config: ClipsterConfig) -> Platform:
        root = args.root if args.root is not None else Path.cwd()
        if args.stdout:
            return StdoutPlatform(config, root)
        return ClipboardPlatform(config, root)


def positive_int(value: str) -> int:
    """argparse type for strictly positive integers."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero: {value}")
    return number


# =============================================================================
# COMMANDS
# =============================================================================

def _folder_argument(path: Path, platform: Platform) -> Optional[Path]:
    """Commands given a file act on its folder."""
    return get_base_directory(path, platform)


def run_structure(args: argparse.Namespace, platform: Platform) -> bool:
    folder = _folder_argument(args.directory, platform)
    if folder is None:
        return False
    return deliver(platform, get_folder_structure(folder, platform), "Folder structure copied.")


def run_content(args: argparse.Namespace, platform: Platform) -> bool:
    folder = _folder_argument(args.directory, platform)
    if folder is None:
        return False
    text = get_folder_structure_and_content(folder, platform)
    return deliver(platform, text, "Folder structure and content copied.")


def run_root_structure(args: argparse.Namespace, platform: Platform) -> bool:
    text = get_root_folder_structure(platform)
    return text is not None and deliver(platform, text, "Root folder structure copied.")


def run_root_content(args: argparse.Namespace, platform: Platform) -> bool:
    text = get_root_folder_structure_and_content(platform)
    return text is not None and deliver(platform, text, "Root folder structure and content copied.")


def run_root_path(args: argparse.Namespace, platform: Platform) -> bool:
    text = copy_root_folder_path(platform)
    return text is not None and deliver(platform, text, "Root path copied.")


def _deliver_files(files: Sequence[Path], args: argparse.Namespace, platform: Platform) -> bool:
    if not files:
        platform.report("warn", "No files matched the filters.", "files")
        return True
    budget = RenderBudget(max_bytes=platform.get_config().max_copy_bytes)
    text = copy_files(files, platform, line_numbers=args.line_numbers, budget=budget)
    if budget.files_consumed == 0:
        platform.report("error", "No files could be copied.", "files")
        return False
    suffix = " with line numbers" if args.line_numbers else " with paths"
    return deliver(platform, text, f"{budget.files_consumed} file(s) copied{suffix}.")


def run_file(args: argparse.Namespace, platform: Platform) -> bool:
    return _deliver_files(args.files, args, platform)


def run_folder(args: argparse.Namespace, platform: Platform) -> bool:
    folder = _folder_argument(args.directory, platform)
    if folder is None:
        return False
    return _deliver_files(collect_folder_files(folder, platform), args, platform)


def run_copy_path(args: argparse.Namespace, platform: Platform) -> bool:
    path = _absolute(args.path)
    if not path.exists():
        platform.report("error", f"File not found: {args.path}", "files", path)
        return False
    return deliver(platform, str(path), f"File copied: {path.name}")


def run_paste(args: argparse.Namespace, platform: Platform) -> bool:
    return paste_file(platform.read_text(), args.target, platform) is not None


def run_create(args: argparse.Namespace, platform: Platform) -> bool:
    summary = create_from_text(platform.read_text(), args.target, platform)
    return summary.errors == 0


COMMANDS: Dict[str, Callable[[argparse.Namespace, Platform], bool]] = {
    "structure": run_structure,
    "content": run_content,
    "root-structure": run_root_structure,
    "root-content": run_root_content,
    "root-path": run_root_path,
    "file": run_file,
    "folder": run_folder,
    "copy-path": run_copy_path,
    "paste": run_paste,
    "create": run_create,
}


# =============================================================================
# CLI PARSER
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="clipster",
        description="Copy folder structures and file contents, or scaffold files from pasted paths",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipster structure src/              # Copy the tree of src/ to the clipboard
  clipster --stdout content src/       # Print tree + file contents
  clipster root-content                # Workspace snapshot, within limits
  clipster file --line-numbers a.py    # Copy a file with line numbers
  clipster --stdout create src/ < paths.txt
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")

    out = parser.add_argument_group("Output Options")
    out.add_argument("--stdout", action="store_true", help="Use stdout/stdin instead of the clipboard")
    out.add_argument("-v", "--verbose", action="store_true", help="Log debug details")
    out.add_argument("--log-file", metavar="FILE", help="Write log records to FILE")

    ws = parser.add_argument_group("Workspace")
    ws.add_argument("--root", type=Path, metavar="DIR", help="Workspace root (default: current directory)")
    ws.add_argument("--ignore", action="append", metavar="PATTERN", help="Extra gitignore-style pattern")

    limits = parser.add_argument_group("Limits")
    limits.add_argument(
        "--max-files", type=positive_int, default=Defaults.MAX_FILES,
        help=f"Max files in root content snapshots (default: {Defaults.MAX_FILES})",
    )
    limits.add_argument(
        "--max-size-kb", type=positive_int, default=Defaults.MAX_SIZE_KB,
        help=f"Max KB in root content snapshots (default: {Defaults.MAX_SIZE_KB})",
    )
    limits.add_argument(
        "--max-copy-size-kb", type=positive_int, default=Defaults.MAX_COPY_SIZE_KB,
        help=f"Max KB for folder and multi-file copies (default: {Defaults.MAX_COPY_SIZE_KB})",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("structure", help="Copy a folder's tree")
    p.add_argument("directory", nargs="?", type=Path, default=Path("."))

    p = sub.add_parser("content", help="Copy a folder's tree and file contents")
    p.add_argument("directory", nargs="?", type=Path, default=Path("."))

    sub.add_parser("root-structure", help="Copy the workspace root's tree")
    sub.add_parser("root-content", help="Copy the workspace root's tree and file contents")
    sub.add_parser("root-path", help="Copy the workspace root path")

    p = sub.add_parser("file", help="Copy file(s) with a path header")
    p.add_argument("--line-numbers", action="store_true", help="Number each line")
    p.add_argument("files", nargs="+", type=Path)

    p = sub.add_parser("folder", help="Copy every file in a folder with path headers")
    p.add_argument("--line-numbers", action="store_true", help="Number each line")
    p.add_argument("directory", nargs="?", type=Path, default=Path("."))

    p = sub.add_parser("copy-path", help="Copy a file's absolute path")
    p.add_argument("path", type=Path)

    p = sub.add_parser("paste", help="Copy the file named in the clipboard into a folder")
    p.add_argument("target", nargs="?", type=Path, default=Path("."))

    p = sub.add_parser("create", help="Create files/folders from pasted lines (trailing / = folder)")
    p.add_argument("target", nargs="?", type=Path, default=Path("."))

    return parser


def configure_logging(verbose: bool, log_file: Optional[str] = None) -> None:
    destination = {"filename": log_file} if log_file else {"stream": sys.stderr}
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        **destination,
    )


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    if args.root is not None and not args.root.is_dir():
        print(f"❌ Directory not found: {args.root}", file=sys.stderr)
        return 1

    try:
        config = ConfigBuilder.from_args(args)
        platform = ConfigBuilder.build_platform(args, config)
        return 0 if COMMANDS[args.command](args, platform) else 1
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted", file=sys.stderr)
        return 130
    except Exception as e:
        logging.exception("Critical error")
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
