"""Selective reader for BIF archives.

BIF format (all little-endian):
  Header:         "BIFF" "V1  " [variable_count, fixed_count, table_offset]: u32 x 3
  Resource table: [id: u32] [offset: u32] [size: u32] [type: u32] x variable_count

BIFs are large and callers only ever want a handful of members, so the reader
is given the exact indices it needs and never walks the whole table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from kotorformats.core.constants import BIF_RESOURCE_ENTRY_SIZE, BIF_TYPE, BIF_VERSION, DWORD_SIZE
from kotorformats.core.cursor import ByteReader
from kotorformats.core.errors import FormatError, InvalidReferenceError
from kotorformats.core.resource import FileHead

logger = logging.getLogger(__name__)


@dataclass
class BifHeader:
    file_head: FileHead
    variable_count: int
    fixed_count: int
    table_offset: int


@dataclass
class Bif:
    """Payloads for the requested indices, in request order."""

    indices: list[int] = field(default_factory=list)
    resources: list[bytes] = field(default_factory=list)
    by_index: dict[int, bytes] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.by_index = dict(zip(self.indices, self.resources))

    def add(self, resource_idx: int, content: bytes) -> None:
        self.indices.append(resource_idx)
        self.resources.append(content)
        self.by_index[resource_idx] = content

    def get(self, resource_idx: int) -> bytes | None:
        return self.by_index.get(resource_idx)


def read_bif_header(reader: ByteReader) -> BifHeader:
    file_head = FileHead.read(reader)
    file_head.expect(BIF_TYPE, BIF_VERSION)
    return BifHeader(file_head, *reader.take("3I", "BIF header contents"))


def parse_bif(data: bytes, required_indices: list[int]) -> Bif:
    """Read the members at ``required_indices`` out of a BIF.

    Duplicates are read again; the result keeps the caller's order.
    """
    try:
        return _parse_bif(ByteReader(data), required_indices)
    except FormatError as e:
        raise type(e)(f"BIF: {e}") from e


def _parse_bif(r: ByteReader, required_indices: list[int]) -> Bif:
    h = read_bif_header(r)
    variable_count = h.variable_count

    bif = Bif()
    for idx in required_indices:
        if idx >= variable_count:
            raise InvalidReferenceError(
                f"BIF contains {variable_count} resources but index {idx} is requested"
            )
        r.seek(h.table_offset + idx * BIF_RESOURCE_ENTRY_SIZE, f"resource {idx} entry")
        # the id repeats the KEY entry, the index is all we need
        r.skip(DWORD_SIZE, f"resource {idx} id")
        offset, size = r.take("2I", f"resource {idx} offset")
        r.seek(offset, f"resource {idx} content")
        bif.add(idx, r.take_bytes(size, f"resource {idx} content at offset {offset}"))

    logger.debug("BIF: read %d of %d resources", len(required_indices), variable_count)
    return bif
