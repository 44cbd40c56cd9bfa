"""Output sink: writes ordered segments to the destination file."""

from collections.abc import Iterable, Iterator
import pathlib
import shutil

from stubpack.errors import IOFailure
from stubpack.sequencer import Segment


class FileSink:
    """Writes segments to ``output_path`` in order.

    :attr:`completed` only becomes ``True`` once every segment has been written
    and the file is closed. On failure the partial file is left in place.
    """

    def __init__(self, output_path: pathlib.Path) -> None:
        self.output_path: pathlib.Path = output_path
        self.completed: bool = False
        self.bytes_written: int = 0

    def write_all(self, segments: Iterable[Segment]) -> int:
        """Drain and write every segment.

        :param segments: Ordered segments; each is drained before the next is pulled.
        :returns: Total bytes written.
        :raises IOFailure: If the destination cannot be opened or written.
        :raises AssemblyError: Any error raised while producing a segment.
        """

        iterator: Iterator[Segment] = iter(segments)
        try:
            try:
                f = open(self.output_path, "wb")
            except OSError as e:
                raise IOFailure(f"Failed to open {self.output_path} for writing: {e}") from e

            try:
                with f:
                    for segment in iterator:
                        for chunk in segment:
                            f.write(chunk)
                            self.bytes_written += len(chunk)
            except OSError as e:
                raise IOFailure(f"Failed to write {self.output_path}: {e}") from e
        finally:
            # Closing a segment generator marks its producer as failed when it stopped early.
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

        self.completed = True
        return self.bytes_written

    def copy_mode_from(self, reference: pathlib.Path) -> None:
        """Copy permission bits from ``reference`` (e.g. keep the stub executable).

        :param reference: File whose mode is copied.
        :raises IOFailure: If the mode cannot be copied.
        """

        try:
            shutil.copymode(reference, self.output_path)
        except OSError as e:
            raise IOFailure(f"Failed to copy file mode onto {self.output_path}: {e}") from e
