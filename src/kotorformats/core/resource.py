"""Resource type codes, resource keys and the file head shared by all formats."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from kotorformats.core.constants import FILE_HEAD_SIZE
from kotorformats.core.cursor import ByteReader, ByteWriter
from kotorformats.core.errors import HeaderError


class ResourceType(IntEnum):
    """Content type codes as stored in KEY and ERF key tables.

    Only the types the codecs and the save layer care about are listed;
    archives reference many more, and those entries are skipped on read.
    """
    RES = 0
    TXT = 10
    ARE = 2012
    IFO = 2014
    TWODA = 2017
    GIT = 2023
    UTI = 2025
    UTC = 2027
    FAC = 2038
    SAV = 2057
    TPC = 3007

    @property
    def extension(self) -> str:
        if self == ResourceType.TWODA:
            return "2da"
        return self.name.lower()

    @classmethod
    def from_extension(cls, ext: str) -> ResourceType:
        ext = ext.lower().lstrip(".")
        for tp in cls:
            if tp.extension == ext:
                return tp
        raise ValueError(f"Unknown resource extension: {ext!r}")

    @classmethod
    def try_from_code(cls, code: int) -> ResourceType | None:
        try:
            return cls(code)
        except ValueError:
            return None


@dataclass(frozen=True, eq=False)
class ResourceKey:
    """(name, type) address of a resource. Names compare case-insensitively."""

    name: str
    type: ResourceType

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceKey):
            return NotImplemented
        return self.type == other.type and self.name.lower() == other.name.lower()

    def __hash__(self) -> int:
        return hash((self.name.lower(), int(self.type)))

    def __str__(self) -> str:
        return f"{self.name}.{self.type.extension}"

    @classmethod
    def from_filename(cls, filename: str) -> ResourceKey:
        """Build a key from ``name.ext``, e.g. ``"pc.utc"``."""
        name, _, ext = filename.rpartition(".")
        if not name:
            raise ValueError(f"Resource file name needs an extension: {filename!r}")
        return cls(name, ResourceType.from_extension(ext))


@dataclass
class FileHead:
    """4-byte type tag plus 4-byte version tag, e.g. ``("GFF ", "V3.2")``."""

    tp: str
    version: str

    def __post_init__(self) -> None:
        if len(self.tp) > 4 or len(self.version) > 4:
            raise ValueError(f"File head tags are 4 characters: {self.tp!r} {self.version!r}")
        self.tp = self.tp.ljust(4)
        self.version = self.version.ljust(4)

    @classmethod
    def read(cls, reader: ByteReader) -> FileHead:
        raw = reader.take_bytes(FILE_HEAD_SIZE, "file type and version")
        return cls(raw[:4].decode("latin-1"), raw[4:].decode("latin-1"))

    def write(self, writer: ByteWriter) -> None:
        writer.write_bytes(self.to_bytes())

    def to_bytes(self) -> bytes:
        return (self.tp + self.version).encode("latin-1")

    def expect(self, tp: str, version: str | None = None) -> None:
        """Raise ``HeaderError`` unless this head carries the given tags."""
        if self.tp != tp or (version is not None and self.version != version):
            raise HeaderError(f"invalid file type or version {self.tp!r} {self.version!r}")


@dataclass
class LocString:
    """A (language id, text) pair as used by ERF descriptions and GFF CExoLocStrings."""

    id: int
    content: str
