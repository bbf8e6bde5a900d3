"""Parse KEY files: the master index mapping resource keys to BIF archive members.

KEY format (all little-endian):
  Header:     "KEY " "V1  " [file_count, key_count, file_offset, key_offset]: u32 x 4
  File table: [size: u32] [name_offset: u32] [name_size: u16] [drive: u16] x file_count
  Key table:  [name: 16 bytes NUL-padded] [type: u16] [id: u32] x key_count

A key's ``id`` packs the BIF it lives in (top 12 bits) and its index inside
that BIF (low 20 bits).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from kotorformats.core.constants import (
    KEY_ENTRY_SIZE,
    KEY_FILE_ENTRY_SIZE,
    KEY_FILE_IDX_SHIFT,
    KEY_RESREF_SIZE,
    KEY_TYPE,
    KEY_VERSION,
)
from kotorformats.core.cursor import ByteReader
from kotorformats.core.errors import FormatError, InvalidReferenceError
from kotorformats.core.resource import FileHead, ResourceKey, ResourceType

logger = logging.getLogger(__name__)


@dataclass
class KeyResRef:
    file_idx: int      # index into Key.file_names
    resource_idx: int  # index into that BIF's resource table


@dataclass
class Key:
    file_names: list[str] = field(default_factory=list)
    resources: dict[ResourceKey, KeyResRef] = field(default_factory=dict)

    def get(self, name: str, tp: ResourceType) -> KeyResRef | None:
        return self.resources.get(ResourceKey(name, tp))

    def get_file_path(self, file_idx: int) -> Path:
        """Relative path of a BIF; KEY files store them with backslashes."""
        if file_idx >= len(self.file_names):
            raise InvalidReferenceError(f"file index {file_idx} out of range")
        return Path(*self.file_names[file_idx].split("\\"))


def split_resource_id(res_id: int) -> tuple[int, int]:
    """Split a packed key id into (file_idx, resource_idx)."""
    file_idx = res_id >> KEY_FILE_IDX_SHIFT
    return file_idx, res_id - (file_idx << KEY_FILE_IDX_SHIFT)


def parse_key(data: bytes) -> Key:
    """Parse a KEY file.

    Entries with resource types outside ``ResourceType`` are dropped; an entry
    pointing at a file index beyond the file table is an error.
    """
    try:
        return _parse_key(ByteReader(data))
    except FormatError as e:
        raise type(e)(f"KEY: {e}") from e


def _parse_key(r: ByteReader) -> Key:
    FileHead.read(r).expect(KEY_TYPE, KEY_VERSION)
    file_count, key_count, file_offset, key_offset = r.take("4I", "KEY header contents")

    file_table = r.window(file_offset, file_count * KEY_FILE_ENTRY_SIZE, "file table")
    name_locations = []
    for idx in range(file_count):
        # file size and drive aren't needed
        _size, name_offset, name_size, _drive = file_table.take("IIHH", f"file entry {idx}")
        name_locations.append((name_offset, name_size))

    file_names = []
    for name_offset, name_size in name_locations:
        r.seek(name_offset, "file name")
        file_names.append(
            r.take_string_trimmed(name_size, f"file name of size {name_size} at {name_offset}")
        )

    key_table = r.window(key_offset, key_count * KEY_ENTRY_SIZE, "key table")
    resources: dict[ResourceKey, KeyResRef] = {}
    skipped = 0
    for idx in range(key_count):
        name = key_table.take_string_trimmed(KEY_RESREF_SIZE, f"key {idx} name")
        res_type, res_id = key_table.take("HI", f"key {idx}")
        tp = ResourceType.try_from_code(res_type)
        if tp is None:
            skipped += 1
            continue
        file_idx, resource_idx = split_resource_id(res_id)
        if file_idx >= len(file_names):
            raise InvalidReferenceError(
                f"resource {name} references invalid file index {file_idx}"
            )
        key = ResourceKey(name, tp)
        if key in resources:
            logger.debug("Duplicate KEY entry %s, keeping the later one", key)
        resources[key] = KeyResRef(file_idx, resource_idx)

    logger.debug(
        "KEY: %d files, %d resources kept, %d of unmodelled types skipped",
        len(file_names), len(resources), skipped,
    )
    return Key(file_names=file_names, resources=resources)
