"""Reconcile the output directory with the files written by the current run.

After generation, any script file the run did not write is an extra file
(for example the script of a dropped table) and any directory left with
nothing in it is an empty directory. A decision policy chooses to keep,
delete or ignore each one. Ignored paths are remembered in IgnoreFiles.txt
and skipped on later runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from rsscripter.core.files import IGNORE_FILE, FileTracker, normalize_path
from rsscripter.core.messages import MessageSink

SCRIPT_EXTENSIONS = frozenset({".sql"})

# Build output folders of SQL Server Data Tools projects.
ALWAYS_IGNORED = ("bin", "obj")


class Decision(str, Enum):
    """What to do with a file or directory that the run did not produce."""

    KEEP = "keep"
    DELETE = "delete"
    IGNORE = "ignore"


class DriftKind(str, Enum):
    EXTRA_FILE = "extra-file"
    EMPTY_DIRECTORY = "empty-directory"


@dataclass(frozen=True)
class DriftItem:
    """A path found during reconciliation, relative to the output directory."""

    path: str
    kind: DriftKind


@dataclass(frozen=True)
class Resolution:
    """
    A policy's answer for one item.

    Attributes:
        decision: What to do with the item.
        apply_to_all: Reuse the decision for every remaining item of the
                      same kind without asking again.
    """

    decision: Decision
    apply_to_all: bool = False


@dataclass(frozen=True)
class DriftResult:
    """Outcome of resolving a single item."""

    path: str
    kind: DriftKind
    decision: Decision
    ok: bool = True
    error: str | None = None


class DecisionPolicy(Protocol):
    """Chooses what happens to an extra file or empty directory."""

    def decide(self, item: DriftItem) -> Resolution:
        ...


@dataclass(frozen=True)
class ForcedPolicy:
    """Unattended policy that gives the same answer for every item."""

    decision: Decision

    def decide(self, item: DriftItem) -> Resolution:
        return Resolution(self.decision, apply_to_all=True)


class IgnoreList:
    """
    Patterns of paths to leave alone, persisted one per line in IgnoreFiles.txt.

    Patterns are relative to the output directory and compared
    case-insensitively. A `*` in the last path component matches files in
    that directory.
    """

    def __init__(self, patterns: list[str] | None = None) -> None:
        self._patterns: dict[str, str] = {}
        self.modified = False
        for pattern in patterns or []:
            self._patterns.setdefault(pattern.casefold(), pattern)

    @classmethod
    def load(cls, root: Path) -> IgnoreList:
        path = Path(root) / IGNORE_FILE
        if not path.exists():
            return cls()
        lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
        return cls([line for line in lines if line])

    @property
    def patterns(self) -> list[str]:
        return sorted(self._patterns.values(), key=str.casefold)

    def add(self, path: str) -> None:
        """Remember a path; marks the list as modified when it is new."""
        key = path.casefold()
        if key not in self._patterns:
            self._patterns[key] = path
            self.modified = True

    def expand(self, root: Path) -> list[str]:
        """Return the literal paths the patterns currently match under `root`."""
        root = Path(root)
        paths: list[str] = []
        for pattern in self.patterns:
            if "*" not in pattern:
                paths.append(normalize_path(pattern))
                continue
            parts = normalize_path(pattern).split("/")
            directory = root.joinpath(*parts[:-1])
            if not directory.is_dir():
                continue
            for match in sorted(directory.glob(parts[-1])):
                if match.is_file():
                    paths.append(match.relative_to(root).as_posix())
        return paths

    def save(self, root: Path) -> bool:
        """Write the list back to disk when it was modified; return whether it was written."""
        if not self.modified:
            return False
        text = "".join(f"{pattern}\n" for pattern in self.patterns)
        (Path(root) / IGNORE_FILE).write_text(text, encoding="utf-8")
        self.modified = False
        return True


class Reconciler:
    """
    Walks the output directory and resolves extra files and empty directories.

    Paths recorded by the tracker and paths matched by the ignore list are
    left alone. Hidden directories are skipped.
    """

    def __init__(
        self,
        tracker: FileTracker,
        policy: DecisionPolicy,
        sink: MessageSink,
        *,
        ignore_list: IgnoreList | None = None,
    ) -> None:
        self.tracker = tracker
        self.root = tracker.root
        self.policy = policy
        self.sink = sink
        self.ignore_list = ignore_list if ignore_list is not None else IgnoreList.load(self.root)
        self._sticky: dict[DriftKind, Decision] = {}
        self._results: list[DriftResult] = []

    def run(self) -> list[DriftResult]:
        """Resolve every drift item, then persist the ignore list if it changed."""
        self._results = []
        self.tracker.track(IGNORE_FILE, run=False)
        for path in self.ignore_list.expand(self.root):
            self.tracker.track(path, run=False)
        for name in ALWAYS_IGNORED:
            self.tracker.track(name, run=False)

        if self.root.is_dir():
            self._walk(self.root, "")
        self.ignore_list.save(self.root)
        return list(self._results)

    def _walk(self, directory: Path, relative: str) -> None:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
        for entry in entries:
            if not entry.is_file() or entry.suffix.lower() not in SCRIPT_EXTENSIONS:
                continue
            rel = f"{relative}/{entry.name}" if relative else entry.name
            if not self.tracker.is_tracked(rel):
                self._resolve(DriftItem(rel, DriftKind.EXTRA_FILE), entry)

        for entry in entries:
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            rel = f"{relative}/{entry.name}" if relative else entry.name
            if self.tracker.is_tracked(rel):
                continue
            if any(entry.iterdir()):
                self._walk(entry, rel)
            if not any(entry.iterdir()):
                self._resolve(DriftItem(rel, DriftKind.EMPTY_DIRECTORY), entry)

    def _decide(self, item: DriftItem) -> Decision:
        sticky = self._sticky.get(item.kind)
        if sticky is not None:
            return sticky
        resolution = self.policy.decide(item)
        if resolution.apply_to_all:
            self._sticky[item.kind] = resolution.decision
        return resolution.decision

    def _resolve(self, item: DriftItem, target: Path) -> None:
        is_file = item.kind == DriftKind.EXTRA_FILE
        noun = "file" if is_file else "directory"
        self.sink.output(f"{'Extra file' if is_file else 'Empty directory'}: {item.path}")
        decision = self._decide(item)

        if decision == Decision.DELETE:
            try:
                if is_file:
                    target.unlink()
                else:
                    target.rmdir()
            except OSError as exc:
                error = f"{type(exc).__name__}: {exc}"
                self.sink.error(f"Delete failed. {error}")
                self._results.append(DriftResult(item.path, item.kind, decision, ok=False, error=error))
                return
            self.sink.output(f"Deleted {noun}.")
        elif decision == Decision.IGNORE:
            self.ignore_list.add(item.path)

        self._results.append(DriftResult(item.path, item.kind, decision))
