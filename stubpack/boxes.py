"""Binary boxes and alignment padding.

A box is a self-describing record appended to the stub:

- 16-byte header: three little-endian ``uint32`` magic words identifying the
  box kind, followed by a little-endian ``uint32`` body length.
- The body.

The runtime loader finds the boxes by scanning for the magic words, so the
constants below are part of the on-disk format and must never change.
"""

import enum
import json
import struct
from typing import Any

BOUNDARY: int = 4096

HEADER_SIZE: int = 16

VFS_PLACEHOLDER: str = "%VIRTUAL_FILESYSTEM%"

# The newline in the suffix keeps a trailing comment in the template from
# swallowing the closing parenthesis.
PRELUDE_PREFIX: str = "(lambda sys, stub_fd, payload_position, payload_size: "
PRELUDE_SUFFIX: str = "\n)"

_HEADER: struct.Struct = struct.Struct("<IIII")


class BoxKind(enum.Enum):
    """Box kinds and their fixed magic words."""

    OPTIONS = (0x4818C4DF, 0x7AC30670, 0x56558A76)
    PAYLOAD_HEADER = (0x75148EBA, 0x6FBDA9B4, 0x2E20C08D)
    PRELUDE = (0x26E0C928, 0x41F32B66, 0x3EA13CCF)

    @property
    def magic(self) -> tuple[int, int, int]:
        """The three magic words, in on-disk order."""
        return self.value

    @property
    def sentinel(self) -> bytes:
        """The 12 magic bytes that open a box of this kind."""
        return struct.pack("<III", *self.value)

    def header(self, body_length: int) -> bytes:
        """Encode a box header.

        :param body_length: Declared body length.
        :returns: 16 header bytes.
        """

        return _HEADER.pack(*self.value, body_length)

    def encode(self, body: bytes) -> bytes:
        """Encode a full box (header + body).

        :param body: Box body.
        :returns: Encoded box.
        """

        return self.header(len(body)) + body


def padding(size: int, boundary: int = BOUNDARY) -> bytes:
    """Zero bytes that round ``size`` up to the next multiple of ``boundary``.

    :param size: Running byte count.
    :param boundary: Alignment boundary.
    :returns: Between ``0`` and ``boundary - 1`` zero bytes.
    """

    remainder: int = size % boundary
    if remainder == 0:
        return b""
    return bytes(boundary - remainder)


def encode_options_box(options: list[str]) -> bytes:
    """Encode the options box.

    :param options: Ordered option strings.
    :returns: Encoded box; body is each option NUL-terminated, then one more NUL.
    """

    parts: list[bytes] = []
    for option in options:
        parts.append(option.encode("utf-8"))
        parts.append(b"\x00")
    parts.append(b"\x00")
    return BoxKind.OPTIONS.encode(b"".join(parts))


def encode_payload_header_box() -> bytes:
    """Encode the payload header box.

    The declared length is always 0; loaders locate the payload through the
    prelude rather than this field.

    :returns: 16 header bytes.
    """

    return BoxKind.PAYLOAD_HEADER.header(0)


def render_prelude(template: str, vfs: dict[str, Any]) -> str:
    """Substitute the VFS index into a prelude template and wrap it.

    Every occurrence of ``%VIRTUAL_FILESYSTEM%`` is replaced; a template
    without the token is wrapped unchanged.

    :param template: Prelude template source.
    :param vfs: Virtual filesystem mapping.
    :returns: Wrapped prelude source.
    """

    text: str = template.replace(VFS_PLACEHOLDER, json.dumps(vfs))
    return PRELUDE_PREFIX + text + PRELUDE_SUFFIX


def encode_prelude_box(template: str, vfs: dict[str, Any]) -> bytes:
    """Encode the prelude box.

    :param template: Prelude template source.
    :param vfs: Virtual filesystem mapping.
    :returns: Encoded box.
    """

    return BoxKind.PRELUDE.encode(render_prelude(template, vfs).encode("utf-8"))


def read_box_header(data: bytes) -> tuple[BoxKind, int]:
    """Decode a box header.

    :param data: At least 16 bytes starting at a box.
    :returns: ``(kind, declared_body_length)``.
    :raises ValueError: If the input is short or the magic is unknown.
    """

    if len(data) < HEADER_SIZE:
        raise ValueError(f"Box header needs {HEADER_SIZE} bytes, got {len(data)}.")
    w0, w1, w2, length = _HEADER.unpack_from(data, 0)
    try:
        kind: BoxKind = BoxKind((w0, w1, w2))
    except ValueError as e:
        raise ValueError(f"Unknown box magic: {w0:#010x} {w1:#010x} {w2:#010x}") from e
    return kind, length
