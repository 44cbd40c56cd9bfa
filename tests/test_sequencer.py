"""Tests for the segment sequencer state machine."""

import pytest

from stubpack.compiler import compile_bytecode
from stubpack.errors import AssemblyError, CompileError, CompileFailure, IOFailure
from stubpack.sequencer import Sequencer, SegmentState
from stubpack.stripe import Entry, StorageKind, Stripe

from conftest import PRELUDE_TEMPLATE, STUB_BYTES


def _sequencer(target, entries, compiler=compile_bytecode, **kwargs):
    return Sequencer(
        stripe=Stripe(entries),
        prelude_template=PRELUDE_TEMPLATE,
        options=["x"],
        target=target,
        compiler=compiler,
        **kwargs,
    )


def _drain(sequencer):
    out = []
    for segment in sequencer.segments():
        out.append((segment.state, segment.read_all()))
    return out


class TestOrdering:
    def test_state_order(self, target):
        entries = [
            Entry("/a", StorageKind.CONTENT, source_buffer=b"aaa"),
            Entry("/b", StorageKind.CONTENT, source_buffer=b"bb"),
        ]
        seq = _sequencer(target, entries)
        states = [state for state, _ in _drain(seq)]
        assert states == [
            SegmentState.STUB,
            SegmentState.PAD1,
            SegmentState.OPTIONS_BOX,
            SegmentState.PAD2,
            SegmentState.PAYLOAD_HEADER,
            SegmentState.ENTRY,
            SegmentState.ENTRY,
            SegmentState.PAD3,
            SegmentState.PRELUDE_BOX,
        ]
        assert seq.state is SegmentState.DONE

    def test_segment_bytes(self, target):
        seq = _sequencer(target, [Entry("/a", StorageKind.CONTENT, source_buffer=b"aaa")])
        segments = dict(_drain(seq)[:5])
        assert segments[SegmentState.STUB] == STUB_BYTES
        assert len(segments[SegmentState.PAD1]) == 4086
        assert len(segments[SegmentState.PAD2]) == 4096 - 19

    def test_counters(self, target):
        entries = [
            Entry("/a", StorageKind.CONTENT, source_buffer=b"a" * 100),
            Entry("/b", StorageKind.CONTENT, source_buffer=b"b" * 50),
        ]
        seq = _sequencer(target, entries)
        drained = _drain(seq)
        prelude = drained[-1][1]
        assert seq.assembly.payload_position == 150
        assert seq.assembly.payload_length == 16 + 150
        assert seq.assembly.bytes_written == 3 * 4096 + len(prelude)
        assert seq.assembly.vfs.as_dict() == {"/a": {"CONTENT": [0, 100]}, "/b": {"CONTENT": [100, 50]}}

    def test_small_chunks_counted(self, target, content_file):
        seq = _sequencer(
            target,
            [Entry("/data", StorageKind.CONTENT, source_file=content_file)],
            chunk_size=7,
        )
        _drain(seq)
        assert seq.assembly.vfs.as_dict() == {"/data": {"CONTENT": [0, 5000]}}


class TestDrainDiscipline:
    def test_advancing_before_drain_fails(self, target):
        seq = _sequencer(target, [])
        segments = seq.segments()
        next(segments)
        with pytest.raises(AssemblyError, match="not drained"):
            next(segments)
        assert seq.state is SegmentState.FAILED

    def test_single_use(self, target):
        seq = _sequencer(target, [])
        _drain(seq)
        with pytest.raises(AssemblyError):
            next(seq.segments())

    def test_closed_early_is_failed(self, target):
        seq = _sequencer(target, [Entry("/a", StorageKind.CONTENT, source_buffer=b"a")])
        segments = seq.segments()
        next(segments).read_all()
        segments.close()
        assert seq.state is SegmentState.FAILED

    def test_closed_after_completion_stays_done(self, target):
        seq = _sequencer(target, [])
        segments = seq.segments()
        for segment in segments:
            segment.read_all()
        segments.close()
        assert seq.state is SegmentState.DONE


class TestFailures:
    def test_compile_failure(self, target):
        def failing(options, target, buffer):
            raise CompileError("nope")

        seq = _sequencer(
            target,
            [
                Entry("/ok", StorageKind.CONTENT, source_buffer=b"ok"),
                Entry("/bad.py", StorageKind.CODE, source_buffer=b"x"),
                Entry("/never", StorageKind.CONTENT, source_buffer=b"never"),
            ],
            compiler=failing,
        )
        with pytest.raises(CompileFailure):
            _drain(seq)
        assert seq.state is SegmentState.FAILED

    def test_read_failure_while_draining(self, target, tmp_path):
        seq = _sequencer(target, [Entry("/gone", StorageKind.CONTENT, source_file=tmp_path / "gone")])
        with pytest.raises(IOFailure):
            _drain(seq)
        assert seq.state is SegmentState.FAILED

    def test_missing_stub(self, target, tmp_path):
        target.binary_path.unlink()
        seq = _sequencer(target, [])
        with pytest.raises(IOFailure):
            _drain(seq)
        assert seq.state is SegmentState.FAILED
