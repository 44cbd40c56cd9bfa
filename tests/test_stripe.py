"""Tests for stripe entries and the stripe collector."""

import pathlib

import pytest

from stubpack.stripe import Entry, StorageKind, Stripe, collect_stripe, snapshot_path


def _entry(snap: str, kind: StorageKind = StorageKind.CONTENT) -> Entry:
    return Entry(snapshot_id=snap, storage_kind=kind, source_buffer=b"x")


class TestStripe:
    def test_take_is_fifo(self):
        stripe = Stripe([_entry("a"), _entry("b"), _entry("c")])
        assert [stripe.take().snapshot_id for _ in range(3)] == ["a", "b", "c"]
        assert stripe.take() is None
        assert len(stripe) == 0

    def test_owns_a_copy_of_the_input(self):
        source = [_entry("a")]
        stripe = Stripe(source)
        stripe.take()
        assert len(source) == 1

    def test_has_code(self):
        assert Stripe([_entry("a")]).has_code() is False
        assert Stripe([_entry("a"), _entry("b", StorageKind.CODE)]).has_code() is True

    def test_snapshot_ids_first_seen_order(self):
        stripe = Stripe([_entry("b"), _entry("a", StorageKind.CODE), _entry("b", StorageKind.CODE)])
        assert stripe.snapshot_ids() == ["b", "a"]


class TestStorageKind:
    def test_values_are_vfs_keys(self):
        assert StorageKind.CODE.value == "CODE"
        assert StorageKind.CONTENT == "CONTENT"


class TestCollectStripe:
    @pytest.fixture
    def app_dir(self, tmp_path: pathlib.Path) -> pathlib.Path:
        root = tmp_path / "app"
        (root / "pkg").mkdir(parents=True)
        (root / "__pycache__").mkdir()
        (root / ".git").mkdir()
        (root / "main.py").write_text("print('hi')\n", encoding="utf-8")
        (root / "pkg" / "__init__.py").write_text("", encoding="utf-8")
        (root / "pkg" / "data.json").write_text("{}", encoding="utf-8")
        (root / "pkg" / "stale.pyc").write_bytes(b"\x00")
        (root / "__pycache__" / "main.cpython-312.pyc").write_bytes(b"\x00")
        (root / ".git" / "HEAD").write_text("ref", encoding="utf-8")
        return root

    def test_directory_walk(self, app_dir):
        stripe = collect_stripe([app_dir])
        entries = [stripe.take() for _ in range(len(stripe))]
        assert [(e.snapshot_id, e.storage_kind) for e in entries] == [
            ("/snapshot/main.py", StorageKind.CODE),
            ("/snapshot/pkg/__init__.py", StorageKind.CODE),
            ("/snapshot/pkg/data.json", StorageKind.CONTENT),
        ]
        assert entries[0].source_buffer == b"print('hi')\n"
        assert entries[0].source_file is None
        assert entries[2].source_file == app_dir / "pkg" / "data.json"

    def test_no_bytecode_keeps_sources_as_content(self, app_dir):
        stripe = collect_stripe([app_dir], bytecode=False)
        assert stripe.has_code() is False
        first = stripe.take()
        assert first.snapshot_id == "/snapshot/main.py"
        assert first.source_file == app_dir / "main.py"

    def test_file_input(self, app_dir):
        stripe = collect_stripe([app_dir / "pkg" / "data.json"])
        entry = stripe.take()
        assert entry.snapshot_id == "/snapshot/data.json"
        assert entry.storage_kind is StorageKind.CONTENT

    def test_missing_input(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            collect_stripe([tmp_path / "nope"])


def test_snapshot_path_uses_posix_separators():
    assert snapshot_path(pathlib.PurePath("a") / "b" / "c.txt") == "/snapshot/a/b/c.txt"
