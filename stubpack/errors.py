"""Error taxonomy for an assembly run.

Every failure is terminal: the run aborts on the first error and nothing is
retried. A partially written output file may be left on disk.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stubpack.stripe import Entry


class AssemblyError(RuntimeError):
    """Raised when assembling an artifact fails."""


class EnvironmentUnsupported(AssemblyError):
    """Raised before any work begins when the host cannot serve the target."""


class MalformedEntry(AssemblyError):
    """Raised when an entry is neither file- nor buffer-backed."""


class InvariantViolation(MalformedEntry):
    """Raised when a file-backed entry has a storage kind other than CONTENT."""


class CompileFailure(AssemblyError):
    """Raised when the compile collaborator rejects a code entry.

    :ivar entry: The entry that failed to compile.
    """

    def __init__(self, message: str, *, entry: "Entry") -> None:
        super().__init__(message)
        self.entry: "Entry" = entry


class IOFailure(AssemblyError):
    """Raised when reading a source or writing the destination fails."""


class CompileError(RuntimeError):
    """Raised by a compile collaborator when it cannot compile a buffer."""
