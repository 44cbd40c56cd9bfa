"""Entry resolution: turn one stripe entry into a stream of payload bytes."""

from collections.abc import Iterator
import pathlib

from stubpack.compiler import Compiler
from stubpack.errors import CompileError, CompileFailure, InvariantViolation, IOFailure, MalformedEntry
from stubpack.stripe import Entry, StorageKind
from stubpack.target import Target

DEFAULT_CHUNK_SIZE: int = 1024 * 1024


def iter_file(path: pathlib.Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Stream a file in chunks.

    The file is opened lazily, on the first pull.

    :param path: File to read.
    :param chunk_size: Maximum chunk size.
    :returns: Iterator over non-empty chunks.
    :raises IOFailure: If the file cannot be opened or read.
    """

    try:
        with open(path, "rb") as f:
            while True:
                chunk: bytes = f.read(chunk_size)
                if len(chunk) == 0:
                    break
                yield chunk
    except OSError as e:
        raise IOFailure(f"Failed to read {path}: {e}") from e


def iter_buffer(buffer: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Stream an in-memory buffer in chunks.

    :param buffer: Bytes to stream.
    :param chunk_size: Maximum chunk size.
    :returns: Iterator over non-empty chunks.
    """

    view: memoryview = memoryview(buffer)
    for i in range(0, len(view), chunk_size):
        yield bytes(view[i : i + chunk_size])


def resolve_entry(
    entry: Entry,
    *,
    options: list[str],
    target: Target,
    compiler: Compiler,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Resolve an entry into its byte source.

    CODE buffers are compiled eagerly, so a compile error surfaces here rather
    than while the sink drains the source.

    :param entry: Entry to resolve.
    :param options: Option strings, passed through to the compiler.
    :param target: Build target, passed through to the compiler.
    :param compiler: Compile collaborator for CODE entries.
    :param chunk_size: Maximum chunk size.
    :returns: Iterator over the entry's final bytes.
    :raises InvariantViolation: If a file-backed entry is not CONTENT.
    :raises CompileFailure: If the compiler rejects a CODE entry.
    :raises MalformedEntry: If the entry has neither a file nor a buffer.
    """

    if entry.source_file is not None:
        if entry.storage_kind is not StorageKind.CONTENT:
            raise InvariantViolation(
                f"File-backed entry {entry.snapshot_id!r} must be CONTENT, "
                f"got {entry.storage_kind.value}."
            )
        return iter_file(entry.source_file, chunk_size)

    if entry.source_buffer is not None:
        if entry.storage_kind is StorageKind.CODE:
            try:
                compiled: bytes = compiler(options, target, entry.source_buffer)
            except CompileError as e:
                raise CompileFailure(
                    f"Failed to compile {entry.snapshot_id!r}: {e}",
                    entry=entry,
                ) from e
            return iter_buffer(compiled, chunk_size)
        return iter_buffer(entry.source_buffer, chunk_size)

    raise MalformedEntry(f"Entry {entry.snapshot_id!r} has neither a source file nor a buffer.")
