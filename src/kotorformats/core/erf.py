"""Parse and serialize ERF archives (.erf, .mod, .sav, .hak).

ERF format (all little-endian):
  Header:     type(4) version(4)
              [loc_string_count, loc_string_bytes, entry_count,
               loc_string_offset, keys_offset, resources_offset,
               build_year, build_day, description_str_ref]: u32 x 9
              reserved: 116 bytes
  LocStrings: [language_id: u32] [length: u32] [text] x loc_string_count
  Keys:       [name: 16 bytes NUL-padded] [id: u32] [type: u16] [unused: u16] x entry_count
  Resources:  [offset: u32] [size: u32] x entry_count   (offsets from file start)
  Data:       raw resource bytes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from kotorformats.core.constants import (
    ERF_HEADER_PADDING,
    ERF_HEADER_SIZE,
    ERF_KEY_NAME_SIZE,
    ERF_KEY_SIZE,
    ERF_RESOURCE_SIZE,
    TEXT_ENCODING,
)
from kotorformats.core.cursor import ByteReader, ByteWriter
from kotorformats.core.errors import FormatError, HeaderError
from kotorformats.core.resource import FileHead, LocString, ResourceKey, ResourceType

logger = logging.getLogger(__name__)

ERF_TYPES = ("ERF ", "MOD ", "SAV ", "HAK ")
ERF_VERSION = "V1.0"


@dataclass
class Resource:
    """One archive member. ``id`` fixes its position on disk, not the key."""

    id: int
    content: bytes

    def __repr__(self) -> str:
        # content is usually large
        return f"Resource(id={self.id}, size={len(self.content)})"


@dataclass
class ErfHeader:
    file_head: FileHead
    loc_string_count: int
    loc_string_bytes: int
    entry_count: int
    loc_string_offset: int
    keys_offset: int
    resources_offset: int
    build_year: int
    build_day: int
    description_str_ref: int


@dataclass
class Erf:
    file_head: FileHead
    resources: dict[ResourceKey, Resource] = field(default_factory=dict)
    loc_strings: list[LocString] = field(default_factory=list)
    description_str_ref: int = 0

    def get(self, name: str, tp: ResourceType) -> Resource | None:
        return self.resources.get(ResourceKey(name, tp))

    def insert(self, name: str, tp: ResourceType, content: bytes, res_id: int | None = None) -> Resource:
        """Add or replace a member. New members get the next free id."""
        key = ResourceKey(name, tp)
        existing = self.resources.get(key)
        if res_id is None:
            if existing is not None:
                res_id = existing.id
            else:
                res_id = max((r.id for r in self.resources.values()), default=-1) + 1
        res = Resource(id=res_id, content=bytes(content))
        # drop any differently-cased key so the new name is the one kept
        self.resources.pop(key, None)
        self.resources[key] = res
        return res


def read_erf_header(reader: ByteReader) -> ErfHeader:
    file_head = FileHead.read(reader)
    if file_head.tp not in ERF_TYPES or file_head.version != ERF_VERSION:
        raise HeaderError(f"invalid file type or version {file_head.tp!r} {file_head.version!r}")
    dwords = reader.take_array("I", 9, "ERF header data")
    return ErfHeader(file_head, *dwords)


def parse_erf(data: bytes) -> Erf:
    """Parse a complete ERF archive, loading every member it can type.

    Keys whose resource type isn't a known ``ResourceType`` are skipped.

    Raises:
        FormatError: (a ``ValueError``) on a bad header or truncated tables.
    """
    try:
        return _parse_erf(ByteReader(data))
    except FormatError as e:
        raise type(e)(f"ERF: {e}") from e


def _parse_erf(r: ByteReader) -> Erf:
    h = read_erf_header(r)

    r.seek(h.loc_string_offset, "localized strings")
    loc_strings: list[LocString] = []
    for idx in range(h.loc_string_count):
        lang_id = r.u32(f"LocStr head {idx}")
        loc_strings.append(LocString(lang_id, r.take_sized_string("I", f"LocStr {idx}")))

    key_table = r.window(h.keys_offset, h.entry_count * ERF_KEY_SIZE, "key list")
    keys: list[tuple[str, int, int]] = []
    for idx in range(h.entry_count):
        name = key_table.take_string_trimmed(ERF_KEY_NAME_SIZE, f"key {idx} name")
        res_id, res_type, _unused = key_table.take("IHH", f"key {idx}")
        keys.append((name, res_id, res_type))

    r.seek(h.resources_offset, "resource list")
    entries = r.take_array("I", h.entry_count * 2, "resource list")

    resources: dict[ResourceKey, Resource] = {}
    for idx, (name, res_id, res_type) in enumerate(keys):
        tp = ResourceType.try_from_code(res_type)
        if tp is None:
            logger.debug("Skipping ERF entry %s with unknown resource type %d", name, res_type)
            continue
        offset, size = entries[idx * 2], entries[idx * 2 + 1]
        r.seek(offset, f"resource {idx} content")
        content = r.take_bytes(size, f"resource {idx} content at {offset}")
        key = ResourceKey(name, tp)
        if key in resources:
            logger.warning("Duplicate ERF entry %s, keeping the later one", key)
        resources[key] = Resource(id=res_id, content=content)

    return Erf(
        file_head=h.file_head,
        resources=resources,
        loc_strings=loc_strings,
        description_str_ref=h.description_str_ref,
    )


def erf_build_date(today: date | None = None) -> tuple[int, int]:
    """(years since 1900, days since January 1st) as stored in the ERF header."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today.year - 1900, today.timetuple().tm_yday - 1


def serialize_erf(erf: Erf, build_date: date | None = None) -> bytes:
    """Serialize an Erf. Members are written in ascending ``id`` order."""
    ordered = sorted(erf.resources.items(), key=lambda item: item[1].id)
    entry_count = len(ordered)

    out = ByteWriter()
    out.write_zeros(ERF_HEADER_SIZE + ERF_HEADER_PADDING)

    loc_string_offset = out.position
    for s in erf.loc_strings:
        out.write("I", s.id)
        out.write_sized_bytes(s.content.encode(TEXT_ENCODING), "I")
    loc_string_bytes = out.position - loc_string_offset

    keys_offset = out.position
    for key, res in ordered:
        out.write_padded(key.name.encode(TEXT_ENCODING), ERF_KEY_NAME_SIZE, "ERF key name")
        out.write("IHH", res.id, int(key.type), 0)

    resources_offset = out.position
    data_offset = resources_offset + entry_count * ERF_RESOURCE_SIZE
    for _, res in ordered:
        out.write("2I", data_offset, len(res.content))
        data_offset += len(res.content)

    for _, res in ordered:
        out.write_bytes(res.content)

    build_year, build_day = erf_build_date(build_date)
    logger.debug(
        "ERF %s%s: %d resources, %d loc strings",
        erf.file_head.tp, erf.file_head.version, entry_count, len(erf.loc_strings),
    )

    out.seek(0)
    erf.file_head.write(out)
    out.write(
        "9I",
        len(erf.loc_strings),
        loc_string_bytes,
        entry_count,
        loc_string_offset,
        keys_offset,
        resources_offset,
        build_year,
        build_day,
        erf.description_str_ref,
    )
    return out.getvalue()
