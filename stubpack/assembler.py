"""Artifact assembler.

This module runs one assembly end to end:

- It checks the host can serve the target before any work begins.
- It streams the stub, the boxes, the padding and every stripe entry through
  the sequencer into the output file, in a single pass.
- It copies the stub's permission bits onto the result so it stays executable.
"""

from collections.abc import Iterable
from dataclasses import dataclass
import logging
import pathlib
import time

from stubpack.compiler import Compiler, compile_bytecode, host_supports
from stubpack.errors import EnvironmentUnsupported
from stubpack.resolver import DEFAULT_CHUNK_SIZE
from stubpack.sequencer import Sequencer
from stubpack.sink import FileSink
from stubpack.stripe import Entry, Stripe
from stubpack.target import Target, host_implementation, host_python_version


@dataclass(frozen=True, slots=True)
class AssemblyResult:
    """Outcome of a successful assembly.

    :ivar output_path: Written artifact.
    :ivar bytes_written: Total artifact size.
    :ivar payload_length: Payload header box plus entry bytes, before padding.
    :ivar vfs: Virtual filesystem index embedded in the prelude.
    """

    output_path: pathlib.Path
    bytes_written: int
    payload_length: int
    vfs: dict[str, dict[str, list[int]]]


def assemble(
    *,
    stripe: Stripe | Iterable[Entry],
    prelude_template: str,
    options: list[str],
    target: Target,
    compiler: Compiler | None = None,
    logger: logging.Logger | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AssemblyResult:
    """Assemble ``target.binary_path`` + payload into ``target.output``.

    :param stripe: Entries to package, consumed front to back. A plain
        iterable is copied into a fresh :class:`~stubpack.stripe.Stripe`.
    :param prelude_template: Prelude source containing ``%VIRTUAL_FILESYSTEM%``.
    :param options: Option strings for the options box.
    :param target: Build target (stub, output, interpreter).
    :param compiler: Compile collaborator for CODE entries. Defaults to
        :func:`~stubpack.compiler.compile_bytecode`.
    :param logger: Optional logger for progress output.
    :param chunk_size: Streaming read size.
    :returns: Assembly result.
    :raises AssemblyError: If any segment fails; the run is aborted.
    """

    if logger is None:
        logger = logging.getLogger("stubpack")

    owned: Stripe = stripe if isinstance(stripe, Stripe) else Stripe(stripe)

    if compiler is None:
        compiler = compile_bytecode
        if owned.has_code() is True and host_supports(target) is False:
            raise EnvironmentUnsupported(
                f"Host interpreter {host_implementation()}{host_python_version()} cannot compile "
                f"bytecode for target {target.implementation}{target.python_version}; "
                "run stubpack with the target interpreter or disable bytecode."
            )

    t_total0: float = time.perf_counter()
    logger.info(f"stubpack: stub={target.binary_path}")
    logger.info(f"stubpack: output={target.output}")
    logger.info(
        f"stubpack: target={target.platform_tag} py={target.python_version} impl={target.implementation}"
    )
    logger.info(f"stubpack: {len(owned)} entries, {len(options)} options")
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"stubpack: options={options!r}")

    sequencer: Sequencer = Sequencer(
        stripe=owned,
        prelude_template=prelude_template,
        options=options,
        target=target,
        compiler=compiler,
        chunk_size=chunk_size,
        logger=logger,
    )

    target.output.parent.mkdir(parents=True, exist_ok=True)
    sink: FileSink = FileSink(target.output)
    bytes_written: int = sink.write_all(sequencer.segments())
    sink.copy_mode_from(target.binary_path)

    t_total1: float = time.perf_counter()
    payload_length: int = sequencer.assembly.payload_length
    logger.info(
        f"stubpack: payload {payload_length / (1024 * 1024):.1f} MiB "
        f"across {len(sequencer.assembly.vfs.records)} entries"
    )
    logger.info(
        f"stubpack: wrote {target.output} ({bytes_written / (1024 * 1024):.1f} MiB) "
        f"in {t_total1 - t_total0:.2f}s"
    )

    return AssemblyResult(
        output_path=target.output,
        bytes_written=bytes_written,
        payload_length=payload_length,
        vfs=sequencer.assembly.vfs.as_dict(),
    )
