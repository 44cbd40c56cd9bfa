"""Command line interface for stubpack."""

import argparse
import json
import logging
import pathlib
import sys

from stubpack.artifact import ArtifactFormatError, inspect_artifact
from stubpack.assembler import AssemblyResult, assemble
from stubpack.errors import AssemblyError
from stubpack.stripe import Stripe, collect_stripe
from stubpack.target import Target, TargetResolutionError, resolve_target


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the stubpack logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("stubpack")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="stubpack",
        description="Append an application payload to an executable stub, producing one file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser("build", help="Assemble an artifact.")
    p_build.add_argument("stub", type=pathlib.Path, help="Base executable stub.")
    p_build.add_argument(
        "inputs",
        type=pathlib.Path,
        nargs="*",
        help="Files or directories to package into the payload.",
    )
    p_build.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        required=True,
        help="Output path for the assembled artifact.",
    )
    p_build.add_argument(
        "--prelude",
        type=pathlib.Path,
        required=True,
        help="Prelude template file containing %%VIRTUAL_FILESYSTEM%%.",
    )
    p_build.add_argument(
        "--option",
        dest="options",
        action="append",
        default=[],
        help="Option string for the options box (use --option=-O for dash values). Repeatable.",
    )
    p_build.add_argument(
        "--no-bytecode",
        action="store_true",
        help="Package .py files as plain content instead of compiled bytecode.",
    )
    p_build.add_argument(
        "--python-version",
        type=str,
        default=None,
        help="Target Python version as 'MAJOR.MINOR' (defaults to current).",
    )
    p_build.add_argument(
        "--implementation",
        type=str,
        default=None,
        help="Target implementation tag (e.g. cp, pp). Defaults to current.",
    )
    p_build.add_argument(
        "--platform-tag",
        type=str,
        default=None,
        help="Platform tag of the stub (informational). Defaults to the host.",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    p_inspect = subparsers.add_parser("inspect", help="Print the box layout of an artifact as JSON.")
    p_inspect.add_argument("artifact", type=pathlib.Path, help="Assembled artifact.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the stubpack CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    ns = _build_parser().parse_args(argv)

    if ns.command == "build":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
        try:
            target: Target = resolve_target(
                binary_path=ns.stub,
                output=ns.output,
                python_version_override=ns.python_version,
                implementation_override=ns.implementation,
                platform_tag_override=ns.platform_tag,
            )
        except TargetResolutionError as e:
            logger.error(f"stubpack: {e}")
            return 2

        try:
            stripe: Stripe = collect_stripe(ns.inputs, bytecode=not ns.no_bytecode)
            prelude_template: str = ns.prelude.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"stubpack: {e}")
            return 1

        try:
            result: AssemblyResult = assemble(
                stripe=stripe,
                prelude_template=prelude_template,
                options=ns.options,
                target=target,
                logger=logger,
            )
        except AssemblyError as e:
            logger.error(f"stubpack: build failed: {e}")
            return 1

        logger.info(f"stubpack: done ({result.bytes_written} bytes)")
        return 0

    if ns.command == "inspect":
        try:
            layout = inspect_artifact(ns.artifact)
        except (OSError, ArtifactFormatError) as e:
            sys.stderr.write(f"stubpack: {e}\n")
            return 1
        sys.stdout.write(json.dumps(layout.as_dict(), indent=2) + "\n")
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
