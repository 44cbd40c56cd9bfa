"""Read the box layout back out of an assembled artifact.

Boxes are found the way a runtime loader finds them: by probing every
4096-byte boundary for a box sentinel. The prelude box is the one that ends
exactly at end of file; the options box is the one immediately followed (on
the next boundary) by the payload header box.
"""

from dataclasses import dataclass
import pathlib

from stubpack.boxes import BOUNDARY, HEADER_SIZE, BoxKind, padding, read_box_header


class ArtifactFormatError(ValueError):
    """Raised when an artifact does not have the expected box layout."""


@dataclass(frozen=True, slots=True)
class ArtifactLayout:
    """Box layout of an artifact.

    :ivar size: Artifact size in bytes.
    :ivar options_offset: Offset of the options box.
    :ivar options_length: Declared body length of the options box.
    :ivar options: Decoded option strings.
    :ivar payload_header_offset: Offset of the payload header box.
    :ivar payload_header_length: Declared body length of the payload header box (always 0).
    :ivar payload_offset: Offset of the first payload byte (after the header box).
    :ivar prelude_offset: Offset of the prelude box.
    :ivar prelude_length: Declared body length of the prelude box.
    :ivar prelude: Decoded prelude source (wrapper included).
    """

    size: int
    options_offset: int
    options_length: int
    options: list[str]
    payload_header_offset: int
    payload_header_length: int
    payload_offset: int
    prelude_offset: int
    prelude_length: int
    prelude: str

    def as_dict(self) -> dict[str, object]:
        return {
            "size": self.size,
            "options_offset": self.options_offset,
            "options_length": self.options_length,
            "options": list(self.options),
            "payload_header_offset": self.payload_header_offset,
            "payload_header_length": self.payload_header_length,
            "payload_offset": self.payload_offset,
            "prelude_offset": self.prelude_offset,
            "prelude_length": self.prelude_length,
            "prelude": self.prelude,
        }


def decode_options(body: bytes) -> list[str]:
    """Decode an options box body.

    :param body: NUL-terminated strings followed by a final NUL.
    :returns: Option strings.
    :raises ArtifactFormatError: If the terminator is missing.
    """

    if body.endswith(b"\x00") is False:
        raise ArtifactFormatError("Options box body is not NUL-terminated.")
    inner: bytes = body[:-1]
    if len(inner) == 0:
        return []
    if inner.endswith(b"\x00") is False:
        raise ArtifactFormatError("Options box body is missing its final terminator.")
    return [part.decode("utf-8") for part in inner[:-1].split(b"\x00")]


def inspect_artifact(path: pathlib.Path) -> ArtifactLayout:
    """Locate and decode the boxes of an assembled artifact.

    :param path: Artifact file.
    :returns: Decoded layout.
    :raises ArtifactFormatError: If the boxes cannot be located.
    """

    size: int = path.stat().st_size
    with open(path, "rb") as f:
        boxes: list[tuple[int, BoxKind, int]] = []
        for offset in range(0, size - HEADER_SIZE + 1, BOUNDARY):
            f.seek(offset)
            head: bytes = f.read(HEADER_SIZE)
            try:
                kind, length = read_box_header(head)
            except ValueError:
                continue
            boxes.append((offset, kind, length))

        prelude_box: tuple[int, int] | None = None
        for offset, kind, length in reversed(boxes):
            if kind is BoxKind.PRELUDE and offset + HEADER_SIZE + length == size:
                prelude_box = (offset, length)
                break
        if prelude_box is None:
            raise ArtifactFormatError(f"No prelude box ends at end of file: {path}")

        headers: dict[int, int] = {o: n for o, k, n in boxes if k is BoxKind.PAYLOAD_HEADER}
        options_box: tuple[int, int] | None = None
        for offset, kind, length in boxes:
            if kind is not BoxKind.OPTIONS:
                continue
            end: int = offset + HEADER_SIZE + length
            if end + len(padding(end)) in headers:
                options_box = (offset, length)
                break
        if options_box is None:
            raise ArtifactFormatError(f"No options box followed by a payload header: {path}")

        options_offset, options_length = options_box
        f.seek(options_offset + HEADER_SIZE)
        options: list[str] = decode_options(f.read(options_length))

        options_end: int = options_offset + HEADER_SIZE + options_length
        payload_header_offset: int = options_end + len(padding(options_end))
        payload_offset: int = payload_header_offset + HEADER_SIZE

        prelude_offset, prelude_length = prelude_box
        f.seek(prelude_offset + HEADER_SIZE)
        prelude: str = f.read(prelude_length).decode("utf-8")

    return ArtifactLayout(
        size=size,
        options_offset=options_offset,
        options_length=options_length,
        options=options,
        payload_header_offset=payload_header_offset,
        payload_header_length=headers[payload_header_offset],
        payload_offset=payload_offset,
        prelude_offset=prelude_offset,
        prelude_length=prelude_length,
        prelude=prelude,
    )
