"""Selective reader for TLK talk tables.

TLK format (all little-endian):
  Header:     "TLK " "V3.0" [language, string_count, string_data_offset]: u32 x 3
  Entries:    40 bytes each, starting right after the header:
                [flags: u32] [sound resref: 16 bytes] [volume variance: u32]
                [pitch variance: u32] [offset: u32] [size: u32] [sound length: f32]
  String data: text addressed by ``string_data_offset + offset``

dialog.tlk holds tens of thousands of strings and callers need a few hundred,
so entries are only read for the string refs asked for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from kotorformats.core.constants import (
    DWORD_SIZE,
    NO_STRING_REF,
    TLK_ENTRY_SIZE,
    TLK_FLAG_TEXT_PRESENT,
    TLK_HEADER_SIZE,
    TLK_TYPE,
    TLK_VERSION,
)
from kotorformats.core.cursor import ByteReader
from kotorformats.core.errors import FormatError, InvalidReferenceError
from kotorformats.core.resource import FileHead

logger = logging.getLogger(__name__)


@dataclass
class TlkHeader:
    file_head: FileHead
    language: int
    string_count: int
    string_data_offset: int


@dataclass
class Tlk:
    language: int
    strings: list[str] = field(default_factory=list)  # in the order they were requested


def read_tlk_header(reader: ByteReader) -> TlkHeader:
    file_head = FileHead.read(reader)
    file_head.expect(TLK_TYPE, TLK_VERSION)
    return TlkHeader(file_head, *reader.take("3I", "header contents"))


def parse_tlk(data: bytes, required_indices: list[int]) -> Tlk:
    """Resolve ``required_indices`` (string refs) against a TLK.

    ``NO_STRING_REF`` and entries without text resolve to ``""``; any other
    index at or beyond the string count is an error.
    """
    try:
        return _parse_tlk(ByteReader(data), required_indices)
    except FormatError as e:
        raise type(e)(f"TLK: {e}") from e


def _parse_tlk(r: ByteReader, required_indices: list[int]) -> Tlk:
    h = read_tlk_header(r)
    count, data_offset = h.string_count, h.string_data_offset

    strings = []
    for idx in required_indices:
        if idx == NO_STRING_REF:
            strings.append("")
            continue
        if idx >= count:
            raise InvalidReferenceError(f"TLK contains {count} strings but index {idx} is requested")

        r.seek(TLK_HEADER_SIZE + idx * TLK_ENTRY_SIZE, f"string {idx} entry")
        flags = r.u32(f"string {idx} flags")
        if not flags & TLK_FLAG_TEXT_PRESENT:
            strings.append("")
            continue
        # sound resref and the two variance fields
        r.skip(6 * DWORD_SIZE, f"string {idx} sound data")
        str_offset, size = r.take("2I", f"string {idx} offset and size")
        r.seek(data_offset + str_offset, f"string {idx} content")
        strings.append(r.take_string(size, f"string {idx} content at offset {data_offset + str_offset}"))

    logger.debug("TLK: resolved %d of %d strings", len(strings), count)
    return Tlk(language=h.language, strings=strings)
