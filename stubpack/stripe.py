"""Payload entries and the stripe that orders them."""

import collections
import enum
import os
import pathlib
from collections.abc import Iterable
from dataclasses import dataclass

SNAPSHOT_ROOT: str = "/snapshot"

_IGNORE_DIRS: frozenset[str] = frozenset(
    {
        "__pycache__",
        ".git",
        ".hg",
        ".svn",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".venv",
        "venv",
        ".tox",
    }
)


class StorageKind(str, enum.Enum):
    """How an entry's bytes are stored in the payload."""

    CODE = "CODE"
    CONTENT = "CONTENT"


@dataclass(frozen=True, slots=True)
class Entry:
    """One unit destined for the payload.

    Exactly one of ``source_file`` / ``source_buffer`` should be set; this is
    checked when the entry is resolved, not here.

    :ivar snapshot_id: Logical grouping key (usually a virtual path).
    :ivar storage_kind: Storage kind of the bytes.
    :ivar source_file: File to stream verbatim (CONTENT only).
    :ivar source_buffer: In-memory bytes (compiled first when CODE).
    """

    snapshot_id: str
    storage_kind: StorageKind
    source_file: pathlib.Path | None = None
    source_buffer: bytes | None = None


class Stripe:
    """Owned FIFO of entries, drained one at a time by the sequencer."""

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._queue: collections.deque[Entry] = collections.deque(entries)

    def __len__(self) -> int:
        return len(self._queue)

    def take(self) -> Entry | None:
        """Remove and return the next entry, or ``None`` when drained."""
        if len(self._queue) == 0:
            return None
        return self._queue.popleft()

    def has_code(self) -> bool:
        """Whether any remaining entry needs compiling."""
        return any(e.storage_kind is StorageKind.CODE for e in self._queue)

    def snapshot_ids(self) -> list[str]:
        """Distinct snapshot ids of the remaining entries, in first-seen order."""
        seen: dict[str, None] = {}
        for e in self._queue:
            seen.setdefault(e.snapshot_id, None)
        return list(seen)


def snapshot_path(relpath: pathlib.PurePath) -> str:
    """Map a relative path to its virtual snapshot id.

    :param relpath: Path relative to the packaged root.
    :returns: ``/snapshot/<posix path>``.
    """

    return f"{SNAPSHOT_ROOT}/{pathlib.PurePosixPath(relpath.as_posix())}"


def collect_stripe(inputs: Iterable[pathlib.Path], *, bytecode: bool = True) -> Stripe:
    """Build a stripe from files and directories.

    Directory inputs are walked recursively, skipping VCS/cache/venv
    directories and ``.pyc`` files. Snapshot ids are relative to the input
    directory (or to the parent, for a file input).

    :param inputs: Files and/or directories to package.
    :param bytecode: Package ``.py`` files as CODE entries to be compiled.
    :returns: Stripe in deterministic (sorted) order.
    :raises FileNotFoundError: If an input does not exist.
    """

    entries: list[Entry] = []
    for input_path in inputs:
        if input_path.is_file() is True:
            entries.append(_entry_for(input_path, pathlib.PurePath(input_path.name), bytecode=bytecode))
            continue
        if input_path.is_dir() is False:
            raise FileNotFoundError(f"Input path does not exist: {input_path}")

        found: list[pathlib.Path] = []
        for root_str, dirs, files in os.walk(input_path, topdown=True):
            dirs[:] = sorted(d for d in dirs if d not in _IGNORE_DIRS)
            root: pathlib.Path = pathlib.Path(root_str)
            for name in files:
                if name == ".DS_Store" or name.endswith((".pyc", ".pyo")):
                    continue
                found.append(root / name)

        for path in sorted(found):
            entries.append(_entry_for(path, path.relative_to(input_path), bytecode=bytecode))

    return Stripe(entries)


def _entry_for(path: pathlib.Path, relpath: pathlib.PurePath, *, bytecode: bool) -> Entry:
    """Build the entry for one collected file.

    :param path: File on disk.
    :param relpath: Path relative to the packaged root.
    :param bytecode: Whether ``.py`` files become CODE entries.
    :returns: The entry.
    """

    snapshot_id: str = snapshot_path(relpath)
    if bytecode is True and path.suffix == ".py":
        return Entry(
            snapshot_id=snapshot_id,
            storage_kind=StorageKind.CODE,
            source_buffer=path.read_bytes(),
        )
    return Entry(snapshot_id=snapshot_id, storage_kind=StorageKind.CONTENT, source_file=path)
