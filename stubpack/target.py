"""Target descriptor resolution.

The target is passed through the assembler to the compile collaborator
unchanged. The default collaborator only uses the interpreter fields; the
platform tag is recorded for the build log.
"""

from dataclasses import dataclass
import pathlib
import re
import sys
import sysconfig


class TargetResolutionError(ValueError):
    """Raised when target arguments cannot be resolved."""


@dataclass(frozen=True, slots=True)
class Target:
    """Build target descriptor.

    :ivar binary_path: Base executable stub the payload is appended to.
    :ivar output: Destination artifact path.
    :ivar python_version: Target Python version as ``MAJOR.MINOR``.
    :ivar implementation: Implementation tag (e.g. ``cp``).
    :ivar platform_tag: Platform tag of the stub (e.g. ``linux_x86_64``).
    """

    binary_path: pathlib.Path
    output: pathlib.Path
    python_version: str
    implementation: str
    platform_tag: str


_PYVER_RE: re.Pattern[str] = re.compile(r"^(?P<maj>\d+)\.(?P<min>\d+)$")


def host_python_version() -> str:
    """The running interpreter's version as ``MAJOR.MINOR``."""
    return f"{sys.version_info.major}.{sys.version_info.minor}"


def host_implementation() -> str:
    """The running interpreter's implementation tag."""
    impl_name: str = sys.implementation.name
    if impl_name == "cpython":
        return "cp"
    if impl_name == "pypy":
        return "pp"
    return impl_name[0:2]


def resolve_target(
    *,
    binary_path: pathlib.Path,
    output: pathlib.Path,
    python_version_override: str | None = None,
    implementation_override: str | None = None,
    platform_tag_override: str | None = None,
) -> Target:
    """Resolve user-supplied target arguments into a :class:`~Target`.

    :param binary_path: Base executable stub.
    :param output: Destination artifact path.
    :param python_version_override: Optional explicit Python version.
    :param implementation_override: Optional explicit implementation tag.
    :param platform_tag_override: Optional explicit platform tag.
    :returns: Resolved target.
    :raises TargetResolutionError: If an override is invalid.
    """

    python_version: str
    if python_version_override is None:
        python_version = host_python_version()
    else:
        m = _PYVER_RE.match(python_version_override)
        if m is None:
            raise TargetResolutionError(
                f"Invalid --python-version {python_version_override!r}; expected 'MAJOR.MINOR'."
            )
        python_version = f"{int(m.group('maj'))}.{int(m.group('min'))}"

    implementation: str = implementation_override or host_implementation()
    if re.fullmatch(r"[a-z]{2}", implementation) is None:
        raise TargetResolutionError(
            f"Invalid --implementation {implementation!r}; expected a two-letter tag like 'cp'."
        )

    platform_tag: str
    if platform_tag_override is not None:
        platform_tag = normalize_platform_tag(platform_tag_override)
    else:
        platform_tag = normalize_platform_tag(sysconfig.get_platform())

    return Target(
        binary_path=binary_path,
        output=output,
        python_version=python_version,
        implementation=implementation,
        platform_tag=platform_tag,
    )


def normalize_platform_tag(platform_tag: str) -> str:
    """Normalize common platform-tag spellings into underscore form.

    :param platform_tag: Platform string (pip-style or sysconfig-style).
    :returns: Normalized platform tag.
    """

    # sysconfig uses e.g. "macosx-26.0-arm64"; tags use "macosx_26_0_arm64".
    return platform_tag.replace("-", "_").replace(".", "_")
