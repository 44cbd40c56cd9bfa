"""Segment sequencer.

The sequencer is a pull-based generator over the segments of the artifact::

    [stub][pad][options box][pad][payload header box][entry]*[pad][prelude box]

A segment's byte count is only known once its consumer has drained it, and the
next segment is derived from that count (padding, VFS offsets). The generator
therefore refuses to advance past a segment that has not been fully drained.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
import enum
import logging

from stubpack.boxes import encode_options_box, encode_payload_header_box, encode_prelude_box, padding
from stubpack.compiler import Compiler
from stubpack.errors import AssemblyError
from stubpack.resolver import DEFAULT_CHUNK_SIZE, iter_buffer, iter_file, resolve_entry
from stubpack.stripe import Entry, Stripe
from stubpack.target import Target
from stubpack.vfs import VirtualFilesystem


class SegmentState(enum.Enum):
    """Sequencer states, in emission order."""

    STUB = "stub"
    PAD1 = "pad1"
    OPTIONS_BOX = "options_box"
    PAD2 = "pad2"
    PAYLOAD_HEADER = "payload_header"
    ENTRY = "entry"
    PAD3 = "pad3"
    PRELUDE_BOX = "prelude_box"
    DONE = "done"
    FAILED = "failed"


class Segment:
    """One ordered piece of the artifact, metered as it is drained.

    :ivar state: State that produced the segment.
    :ivar entry: Stripe entry, for ``ENTRY`` segments.
    :ivar byte_count: Bytes drained so far.
    :ivar drained: Whether the source has been exhausted.
    """

    def __init__(
        self,
        state: SegmentState,
        chunks: Iterator[bytes],
        entry: Entry | None = None,
        on_failure: Callable[[], None] | None = None,
    ) -> None:
        self.state: SegmentState = state
        self.entry: Entry | None = entry
        self.byte_count: int = 0
        self.drained: bool = False
        self._chunks: Iterator[bytes] = chunks
        self._on_failure: Callable[[], None] | None = on_failure

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                self.byte_count += len(chunk)
                yield chunk
        except AssemblyError:
            if self._on_failure is not None:
                self._on_failure()
            raise
        self.drained = True

    def read_all(self) -> bytes:
        """Drain the segment into memory."""
        return b"".join(self)


@dataclass
class AssemblyState:
    """Running counters for one assembly run.

    :ivar payload_position: Next free offset in the payload region.
    :ivar payload_length: Unpadded bytes since the payload region began
        (payload header box included).
    :ivar bytes_written: Bytes emitted so far across all segments.
    :ivar vfs: Virtual filesystem index.
    """

    payload_position: int = 0
    payload_length: int = 0
    bytes_written: int = 0
    vfs: VirtualFilesystem = field(default_factory=VirtualFilesystem)


class Sequencer:
    """Drives segment production for one assembly run."""

    def __init__(
        self,
        *,
        stripe: Stripe,
        prelude_template: str,
        options: list[str],
        target: Target,
        compiler: Compiler,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._stripe: Stripe = stripe
        self._prelude_template: str = prelude_template
        self._options: list[str] = list(options)
        self._target: Target = target
        self._compiler: Compiler = compiler
        self._chunk_size: int = chunk_size
        self._logger: logging.Logger = logger or logging.getLogger("stubpack")
        self.state: SegmentState = SegmentState.STUB
        self.assembly: AssemblyState = AssemblyState(vfs=VirtualFilesystem(stripe.snapshot_ids()))
        self._current: Segment | None = None
        self._started: bool = False

    def segments(self) -> Iterator[Segment]:
        """Yield the artifact's segments in order.

        Can only be iterated once.

        :returns: Segment iterator.
        :raises AssemblyError: On the first failure; the state becomes ``FAILED``.
        """

        if self._started is True:
            raise AssemblyError("Sequencer segments can only be iterated once.")
        self._started = True

        try:
            yield from self._run()
        except AssemblyError:
            self._fail()
            raise
        except GeneratorExit:
            if self.state is not SegmentState.DONE:
                self._fail()
            raise

    def _run(self) -> Iterator[Segment]:
        stub: Segment = self._emit(SegmentState.STUB, iter_file(self._target.binary_path, self._chunk_size))
        yield stub
        self._settle()

        yield self._emit(SegmentState.PAD1, _single(padding(stub.byte_count)))
        self._settle()

        options_box: Segment = self._emit(SegmentState.OPTIONS_BOX, _single(encode_options_box(self._options)))
        yield options_box
        self._settle()

        yield self._emit(SegmentState.PAD2, _single(padding(options_box.byte_count)))
        self._settle()

        header: Segment = self._emit(SegmentState.PAYLOAD_HEADER, _single(encode_payload_header_box()))
        yield header
        self._settle()
        self.assembly.payload_length += header.byte_count

        recent: Segment | None = None
        while True:
            if recent is not None:
                self._finish_entry(recent)

            entry: Entry | None = self._stripe.take()
            if entry is None:
                break

            self.state = SegmentState.ENTRY
            chunks: Iterator[bytes] = resolve_entry(
                entry,
                options=self._options,
                target=self._target,
                compiler=self._compiler,
                chunk_size=self._chunk_size,
            )
            recent = self._emit(SegmentState.ENTRY, chunks, entry=entry)
            yield recent
            self._settle()

        yield self._emit(SegmentState.PAD3, _single(padding(self.assembly.payload_length)))
        self._settle()

        yield self._emit(
            SegmentState.PRELUDE_BOX,
            _single(encode_prelude_box(self._prelude_template, self.assembly.vfs.as_dict())),
        )
        self._settle()
        self.state = SegmentState.DONE

    def _fail(self) -> None:
        self.state = SegmentState.FAILED

    def _emit(self, state: SegmentState, chunks: Iterator[bytes], entry: Entry | None = None) -> Segment:
        self.state = state
        segment: Segment = Segment(state, chunks, entry=entry, on_failure=self._fail)
        self._current = segment
        return segment

    def _settle(self) -> None:
        """Account for the segment just yielded, which must be fully drained."""

        segment: Segment | None = self._current
        if segment is None:
            return
        if segment.drained is False:
            raise AssemblyError(f"Segment {segment.state.value} was not drained before advancing.")
        self.assembly.bytes_written += segment.byte_count
        self._current = None
        if self._logger.isEnabledFor(logging.DEBUG) is True:
            label: str = segment.state.value
            if segment.entry is not None:
                label = f"{label} {segment.entry.snapshot_id} ({segment.entry.storage_kind.value})"
            self._logger.debug(f"stubpack: segment {label}: {segment.byte_count} bytes")

    def _finish_entry(self, segment: Segment) -> None:
        if segment.entry is None:
            raise AssertionError(f"Internal error: {segment.state.value} segment has no entry.")
        self.assembly.vfs.record(segment.entry, segment.byte_count, self.assembly.payload_position)
        self.assembly.payload_position += segment.byte_count
        self.assembly.payload_length += segment.byte_count


def _single(data: bytes) -> Iterator[bytes]:
    """A source yielding ``data`` as one chunk (nothing when empty)."""
    return iter_buffer(data, max(len(data), 1))
