"""Shared fixtures for the stubpack test suite.

A stub is any file; tests use short fake stubs so offsets are easy to compute
by hand. Targets always match the host interpreter so the default bytecode
compiler is usable.
"""

import pathlib

import pytest

from stubpack.target import Target, resolve_target

STUB_BYTES: bytes = b"\x7fELFstub!!"  # 10 bytes

PRELUDE_TEMPLATE: str = "run(%VIRTUAL_FILESYSTEM%)"


@pytest.fixture
def stub_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """A 10-byte executable stub."""
    path = tmp_path / "stub.bin"
    path.write_bytes(STUB_BYTES)
    path.chmod(0o755)
    return path


@pytest.fixture
def output_path(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "out" / "app.bin"


@pytest.fixture
def target(stub_path: pathlib.Path, output_path: pathlib.Path) -> Target:
    """A host-compatible target writing to ``output_path``."""
    return resolve_target(binary_path=stub_path, output=output_path)


@pytest.fixture
def content_file(tmp_path: pathlib.Path) -> pathlib.Path:
    """A 5000-byte content file with a recognizable pattern."""
    path = tmp_path / "data.bin"
    path.write_bytes(bytes(i % 251 for i in range(5000)))
    return path


@pytest.fixture
def foreign_target(target: Target) -> Target:
    """A target the host interpreter cannot compile for."""
    return Target(
        binary_path=target.binary_path,
        output=target.output,
        python_version="2.7",
        implementation=target.implementation,
        platform_tag=target.platform_tag,
    )
