"""Bounds-checked little-endian reader and writer over in-memory buffers.

Every format codec reads through ``ByteReader`` and writes through
``ByteWriter``. A failed read raises ``TruncatedDataError`` naming what was
being read and where, and leaves the position where it was.
"""

from __future__ import annotations

import struct

from kotorformats.core.constants import TEXT_ENCODING
from kotorformats.core.errors import TruncatedDataError

_STRUCTS: dict[str, struct.Struct] = {}


def _codec(fmt: str) -> struct.Struct:
    """Cached little-endian struct for a format string like ``"I"`` or ``"3f"``."""
    codec = _STRUCTS.get(fmt)
    if codec is None:
        codec = struct.Struct("<" + fmt)
        _STRUCTS[fmt] = codec
    return codec


def decode_text(raw: bytes) -> str:
    """Decode on-disk text, replacing invalid sequences instead of failing."""
    return raw.decode(TEXT_ENCODING, errors="replace")


class ByteReader:
    """Read cursor over an immutable byte buffer.

    The reader never copies the underlying buffer; ``window`` hands out
    sub-readers over a region so block-relative offsets can be used directly.
    Positions are always relative to the start of the reader's region.
    """

    __slots__ = ("_data", "_base", "_size", "_pos")

    def __init__(self, data: bytes | bytearray, base: int = 0, size: int | None = None) -> None:
        if isinstance(data, memoryview):
            data = data.tobytes()
        self._data = data
        self._base = base
        self._size = len(data) - base if size is None else size
        self._pos = 0

    def __len__(self) -> int:
        return self._size

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return self._size - self._pos

    def _check(self, size: int, what: str) -> None:
        if size < 0 or self._pos + size > self._size:
            raise TruncatedDataError(f"couldn't read {what} at offset {self._pos}")

    def seek(self, offset: int, what: str = "data") -> None:
        """Move to an absolute offset. Seeking exactly to the end is allowed."""
        if offset < 0 or offset > self._size:
            raise TruncatedDataError(
                f"couldn't seek to {what} at offset {offset} (buffer is {self._size} bytes)"
            )
        self._pos = offset

    def skip(self, size: int, what: str = "data") -> None:
        self._check(size, what)
        self._pos += size

    def window(self, offset: int, size: int, what: str = "block") -> ByteReader:
        """Return a reader over ``size`` bytes at ``offset``, without moving this one."""
        if offset < 0 or size < 0 or offset + size > self._size:
            raise TruncatedDataError(f"couldn't read {what} of {size} bytes at offset {offset}")
        return ByteReader(self._data, self._base + offset, size)

    def take(self, fmt: str, what: str = "value") -> tuple:
        """Unpack a little-endian struct format at the cursor."""
        codec = _codec(fmt)
        self._check(codec.size, what)
        values = codec.unpack_from(self._data, self._base + self._pos)
        self._pos += codec.size
        return values

    def take_one(self, fmt: str, what: str = "value"):
        return self.take(fmt, what)[0]

    def u8(self, what: str = "byte") -> int:
        return self.take_one("B", what)

    def u16(self, what: str = "word") -> int:
        return self.take_one("H", what)

    def u32(self, what: str = "dword") -> int:
        return self.take_one("I", what)

    def i32(self, what: str = "int") -> int:
        return self.take_one("i", what)

    def take_array(self, code: str, count: int, what: str = "array") -> tuple:
        """Read ``count`` values of a single struct code, e.g. ``take_array("I", 4)``."""
        if count == 0:
            return ()
        return self.take(f"{count}{code}", what)

    def take_bytes(self, size: int, what: str = "bytes") -> bytes:
        self._check(size, what)
        start = self._base + self._pos
        self._pos += size
        return bytes(self._data[start : start + size])

    def take_string(self, size: int, what: str = "string") -> str:
        return decode_text(self.take_bytes(size, what))

    def take_sized_bytes(self, prefix: str = "I", what: str = "sized data") -> bytes:
        """Read a length prefix (struct code ``prefix``) and that many bytes."""
        start = self._pos
        size = self.take_one(prefix, f"{what} length")
        try:
            return self.take_bytes(size, what)
        except TruncatedDataError:
            self._pos = start
            raise

    def take_sized_string(self, prefix: str = "I", what: str = "sized string") -> str:
        return decode_text(self.take_sized_bytes(prefix, what))

    def take_string_until(self, terminator: bytes, what: str = "string") -> str:
        """Read up to (and consume) ``terminator``; fail if it never appears."""
        start = self._base + self._pos
        end = self._data.find(terminator, start, self._base + self._size)
        if end == -1:
            raise TruncatedDataError(
                f"couldn't read {what} at offset {self._pos}: terminator {terminator!r} not found"
            )
        text = decode_text(bytes(self._data[start:end]))
        self._pos += end - start + len(terminator)
        return text

    def take_string_trimmed(self, size: int, what: str = "string") -> str:
        """Read a fixed-width field of ``size`` bytes, keeping text before the first NUL."""
        raw = self.take_bytes(size, what)
        return decode_text(raw.split(b"\x00", 1)[0])


class ByteWriter:
    """Growable little-endian output buffer with a rewindable position."""

    __slots__ = ("_buf", "_pos")

    def __init__(self) -> None:
        self._buf = bytearray()
        self._pos = 0

    def __len__(self) -> int:
        return len(self._buf)

    @property
    def position(self) -> int:
        return self._pos

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > len(self._buf):
            raise ValueError(f"Cannot seek to {offset} in a {len(self._buf)}-byte buffer")
        self._pos = offset

    def write_bytes(self, data: bytes | bytearray) -> int:
        """Write raw bytes at the position (overwriting, then extending). Returns the start offset."""
        start = self._pos
        end = start + len(data)
        self._buf[start:end] = data
        self._pos = end
        return start

    def write(self, fmt: str, *values) -> int:
        return self.write_bytes(_codec(fmt).pack(*values))

    def write_array(self, code: str, values: list[int] | tuple) -> int:
        if not values:
            return self._pos
        return self.write(f"{len(values)}{code}", *values)

    def write_zeros(self, size: int) -> int:
        return self.write_bytes(bytes(size))

    def write_sized_bytes(self, data: bytes, prefix: str = "I") -> int:
        """Write ``data`` preceded by its length packed as struct code ``prefix``."""
        start = self.write(prefix, len(data))
        self.write_bytes(data)
        return start

    def write_padded(self, data: bytes, size: int, what: str = "string") -> int:
        """Write ``data`` NUL-padded to exactly ``size`` bytes."""
        if len(data) > size:
            raise ValueError(f"{what} {data!r} is longer than {size} bytes")
        return self.write_bytes(data.ljust(size, b"\x00"))

    def getvalue(self) -> bytes:
        return bytes(self._buf)
