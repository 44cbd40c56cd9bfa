"""Tests for the default bytecode compile collaborator."""

import importlib.util
import marshal

import pytest

from stubpack.compiler import compile_bytecode, host_supports, optimize_level
from stubpack.errors import CompileError


def _load(blob: bytes):
    assert blob[:4] == importlib.util.MAGIC_NUMBER
    assert blob[4:16] == bytes(12)
    return marshal.loads(blob[16:])


class TestOptimizeLevel:
    def test_levels(self):
        assert optimize_level([]) == 0
        assert optimize_level(["--foo"]) == 0
        assert optimize_level(["-O"]) == 1
        assert optimize_level(["-OO"]) == 2

    def test_last_wins(self):
        assert optimize_level(["-OO", "-O"]) == 1


class TestCompileBytecode:
    def test_pyc_layout_and_executes(self, target):
        blob = compile_bytecode([], target, b"answer = 6 * 7\n")
        ns: dict = {}
        exec(_load(blob), ns)
        assert ns["answer"] == 42

    def test_optimize_strips_asserts_and_docstrings(self, target):
        source = b'"""doc"""\nassert False\n'
        ns: dict = {}
        exec(_load(compile_bytecode(["-OO"], target, source)), ns)
        assert ns.get("__doc__") is None

    def test_syntax_error(self, target):
        with pytest.raises(CompileError, match="Compilation failed"):
            compile_bytecode([], target, b"def broken(:\n")

    def test_null_bytes(self, target):
        with pytest.raises(CompileError):
            compile_bytecode([], target, b"x = 1\x00\n")

    def test_deeply_nested_source(self, target):
        with pytest.raises(CompileError, match="Compilation failed"):
            compile_bytecode([], target, b"-" * 200000 + b"1\n")

    def test_foreign_target(self, foreign_target):
        assert host_supports(foreign_target) is False
        with pytest.raises(CompileError, match="Cannot compile"):
            compile_bytecode([], foreign_target, b"x = 1\n")

    def test_host_target_supported(self, target):
        assert host_supports(target) is True
