"""Default compile collaborator: Python source to ``.pyc``-layout bytecode.

A compile collaborator is any callable ``compile(options, target, buffer)``
returning the compiled bytes, raising :class:`~stubpack.errors.CompileError`
on failure.
"""

import importlib.util
import marshal
from typing import Protocol

from stubpack.errors import CompileError
from stubpack.target import Target, host_implementation, host_python_version

# flags=0 (timestamp-based), mtime=0, source size=0.
_PYC_FIELDS: bytes = bytes(12)

_CODE_FILENAME: str = "<stubpack>"


class Compiler(Protocol):
    """Signature of a compile collaborator."""

    def __call__(self, options: list[str], target: Target, buffer: bytes) -> bytes: ...


def optimize_level(options: list[str]) -> int:
    """Derive the bytecode optimization level from interpreter options.

    :param options: Option strings baked into the artifact.
    :returns: ``2`` for ``-OO``, ``1`` for ``-O``, else ``0``. The last one wins.
    """

    level: int = 0
    for option in options:
        if option == "-OO":
            level = 2
        elif option == "-O":
            level = 1
    return level


def host_supports(target: Target) -> bool:
    """Whether the running interpreter can produce bytecode for ``target``.

    :param target: Build target.
    :returns: ``True`` when interpreter version and implementation match.
    """

    return (
        target.python_version == host_python_version()
        and target.implementation == host_implementation()
    )


def compile_bytecode(options: list[str], target: Target, buffer: bytes) -> bytes:
    """Compile Python source into a ``.pyc``-layout blob.

    :param options: Option strings (``-O`` / ``-OO`` select optimization).
    :param target: Build target; must match the host interpreter.
    :param buffer: Python source bytes.
    :returns: Magic number + 12 header bytes + marshalled code object.
    :raises CompileError: If the target is foreign or the source is invalid.
    """

    if host_supports(target) is False:
        raise CompileError(
            f"Cannot compile for {target.implementation}{target.python_version} "
            f"on {host_implementation()}{host_python_version()}."
        )

    try:
        code = compile(
            buffer,
            _CODE_FILENAME,
            "exec",
            dont_inherit=True,
            optimize=optimize_level(options),
        )
    except (SyntaxError, ValueError) as e:
        raise CompileError(f"Compilation failed: {e}") from e
    except (MemoryError, RecursionError) as e:
        # Deeply nested sources exhaust the parser rather than failing to parse.
        raise CompileError(f"Compilation failed: source too deeply nested ({type(e).__name__})") from e

    return importlib.util.MAGIC_NUMBER + _PYC_FIELDS + marshal.dumps(code)
