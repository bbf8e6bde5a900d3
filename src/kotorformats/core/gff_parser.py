"""Binary reader: bytes -> Gff struct tree.

GFF layout (all little-endian, offsets from file start):
  Header:        type(4) version(4) + 6 x (offset, count-or-bytes) dwords
  Structs:       [type_id, data_or_offset, field_count] x struct_count
  Fields:        [type, label_index, value] x field_count
  Labels:        16-byte NUL-padded names
  Field data:    variable-width payloads addressed by byte offset
  Field indices: flat u32 array, consumed in runs by multi-field structs
  List indices:  [count, count x struct_index] runs addressed by byte offset
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from kotorformats.core.constants import (
    DWORD_SIZE,
    GFF_LABEL_SIZE,
    FieldType,
)
from kotorformats.core.cursor import ByteReader
from kotorformats.core.errors import (
    FormatError,
    InvalidReferenceError,
    TruncatedDataError,
    UnknownFieldTypeError,
)
from kotorformats.core.gff_records import (
    Field,
    Gff,
    LocalizedString,
    Orientation,
    Struct,
    Vector,
)
from kotorformats.core.resource import FileHead, LocString

logger = logging.getLogger(__name__)


@dataclass
class GffHeader:
    file_head: FileHead
    struct_offset: int
    struct_count: int
    field_offset: int
    field_count: int
    label_offset: int
    label_count: int
    field_data_offset: int
    field_data_bytes: int
    field_indices_offset: int
    field_indices_bytes: int
    list_indices_offset: int
    list_indices_bytes: int


@dataclass
class _RawField:
    """A decoded field record whose struct/list references are not yet resolved."""
    label: str
    type: FieldType
    value: object  # decoded value, struct index, or list of struct indices


@dataclass
class _RawStruct:
    type_id: int
    field_indices: list[int] = field(default_factory=list)


def parse_gff(data: bytes) -> Gff:
    """Parse a complete GFF file.

    Raises:
        FormatError: (a ``ValueError``) if the data is truncated or malformed.
    """
    try:
        return _GffReader(ByteReader(data)).read()
    except FormatError as e:
        raise type(e)(f"GFF: {e}") from e


def read_gff_header(reader: ByteReader) -> GffHeader:
    file_head = FileHead.read(reader)
    dwords = reader.take_array("I", 12, "GFF header data")
    return GffHeader(file_head, *dwords)


class _GffReader:
    def __init__(self, reader: ByteReader) -> None:
        self.r = reader
        self.h = read_gff_header(reader)
        self.list_indices: dict[int, list[int]] = {}
        self.field_indices: tuple[int, ...] = ()
        self.field_data: ByteReader | None = None
        self.labels: list[str] = []
        self.fields: list[_RawField] = []
        self.structs: list[_RawStruct] = []

    def read(self) -> Gff:
        self._read_list_indices()
        self._read_field_indices()
        self._read_field_data()
        self._read_labels()
        self._read_fields()
        self._read_structs()
        if not self.structs:
            raise InvalidReferenceError("file has no root struct")
        logger.debug(
            "GFF %s%s: %d structs, %d fields, %d labels",
            self.h.file_head.tp, self.h.file_head.version,
            len(self.structs), len(self.fields), len(self.labels),
        )

        root = self._build_tree()
        return Gff(file_head=self.h.file_head, root=root)

    def _read_list_indices(self) -> None:
        """Decode every list run, keyed by its byte offset inside the block."""
        block = self.r.window(self.h.list_indices_offset, self.h.list_indices_bytes, "list indices")
        while block.remaining > 0:
            offset = block.position
            count = block.u32(f"list indices size at {offset}")
            indices = block.take_array("I", count, f"{count} list indices at {offset}")
            self.list_indices[offset] = list(indices)

    def _read_field_indices(self) -> None:
        offset = self.h.field_indices_offset
        self.r.seek(offset, "field indices")
        self.field_indices = self.r.take_array(
            "I",
            self.h.field_indices_bytes // DWORD_SIZE,
            f"field indices, starting offset {offset}",
        )

    def _read_field_data(self) -> None:
        self.field_data = self.r.window(
            self.h.field_data_offset, self.h.field_data_bytes, "field data"
        )

    def _read_labels(self) -> None:
        self.r.seek(self.h.label_offset, "labels")
        for idx in range(self.h.label_count):
            self.labels.append(self.r.take_string_trimmed(GFF_LABEL_SIZE, f"label {idx}"))

    def _read_fields(self) -> None:
        self.r.seek(self.h.field_offset, "fields")
        records = self.r.take_array("I", self.h.field_count * 3, "field records")

        for idx in range(self.h.field_count):
            tag, label_idx, value = records[idx * 3 : idx * 3 + 3]
            if label_idx >= len(self.labels):
                raise InvalidReferenceError(f"missing label {label_idx} in field {idx}")
            label = self.labels[label_idx]

            try:
                tp = FieldType(tag)
            except ValueError:
                raise UnknownFieldTypeError(
                    f"invalid field type {tag} in field {idx}: {label}"
                ) from None

            if tp == FieldType.STRUCT:
                decoded: object = value
            elif tp == FieldType.LIST:
                decoded = self.list_indices.get(value)
                if decoded is None:
                    raise InvalidReferenceError(
                        f"couldn't find list indices at {value} in field {idx}: {label}"
                    )
            else:
                decoded = self._decode_value(tp, value, idx, label)

            self.fields.append(_RawField(label, tp, decoded))

    def _decode_value(self, tp: FieldType, value: int, idx: int, label: str) -> object:
        """Decode a simple field, either from the record word or from field data."""
        if tp == FieldType.BYTE:
            return value & 0xFF
        if tp == FieldType.CHAR:
            return _signed(value & 0xFF, 8)
        if tp == FieldType.WORD:
            return value & 0xFFFF
        if tp == FieldType.SHORT:
            return _signed(value & 0xFFFF, 16)
        if tp == FieldType.DWORD:
            return value
        if tp == FieldType.INT:
            return _signed(value, 32)
        if tp == FieldType.FLOAT:
            return ByteReader(value.to_bytes(4, "little")).take_one("f")

        data = self.field_data
        what = f"Field::{tp.name.capitalize()} in field {idx}: {label}"
        if value > len(data):
            raise InvalidReferenceError(f"invalid field data offset {value} in field {idx}: {label}")
        data.seek(value, what)
        try:
            return _read_payload(data, tp)
        except TruncatedDataError as e:
            raise TruncatedDataError(f"couldn't read {what}") from e

    def _read_structs(self) -> None:
        offset = self.h.struct_offset
        self.r.seek(offset, "structs")
        for i in range(self.h.struct_count):
            type_id, data, field_count = self.r.take(
                "3I", f"struct {i}, starting offset {offset}"
            )
            if field_count == 0:
                indices: list[int] = []
            elif field_count == 1:
                # single-field structs point straight at the field
                indices = [data]
            else:
                start = data // DWORD_SIZE
                end = start + field_count
                if end > len(self.field_indices):
                    raise InvalidReferenceError(f"couldn't read struct's {i} field indices")
                indices = list(self.field_indices[start:end])
            self.structs.append(_RawStruct(type_id, indices))

    def _build_tree(self) -> Struct:
        """Materialise the struct tree rooted at struct 0.

        Walks with an explicit stack, then builds structs leaves first so
        every child exists before the field that holds it.
        """
        order: list[int] = []
        seen: set[int] = set()
        stack = [0]
        while stack:
            struct_idx = stack.pop()
            if struct_idx >= len(self.structs):
                raise InvalidReferenceError(f"struct index {struct_idx} out of range")
            if struct_idx in seen:
                raise InvalidReferenceError(f"struct {struct_idx} is referenced more than once")
            seen.add(struct_idx)
            order.append(struct_idx)

            children: list[int] = []
            for field_idx in self.structs[struct_idx].field_indices:
                if field_idx >= len(self.fields):
                    raise InvalidReferenceError(
                        f"struct {struct_idx} references missing field {field_idx}"
                    )
                f = self.fields[field_idx]
                if f.type == FieldType.STRUCT:
                    children.append(f.value)
                elif f.type == FieldType.LIST:
                    children.extend(f.value)
            # reversed so children are visited in file order
            stack.extend(reversed(children))

        built: dict[int, Struct] = {}
        for struct_idx in reversed(order):
            raw = self.structs[struct_idx]
            fields: dict[str, Field] = {}
            for field_idx in raw.field_indices:
                f = self.fields[field_idx]
                if f.type == FieldType.STRUCT:
                    value: object = built[f.value]
                elif f.type == FieldType.LIST:
                    value = [built[i] for i in f.value]
                else:
                    value = f.value
                fields[f.label] = Field(f.type, value)
            built[struct_idx] = Struct(type_id=raw.type_id, fields=fields)
        return built[0]


def _signed(value: int, bits: int) -> int:
    if value >= 1 << (bits - 1):
        return value - (1 << bits)
    return value


def _read_payload(data: ByteReader, tp: FieldType) -> object:
    """Decode a variable-width field payload at the reader's position."""
    if tp == FieldType.DWORD64:
        return data.take_one("Q")
    if tp == FieldType.INT64:
        return data.take_one("q")
    if tp == FieldType.DOUBLE:
        return data.take_one("d")
    if tp == FieldType.STRING:
        return data.take_sized_string("I")
    if tp == FieldType.RESREF:
        return data.take_sized_string("B")
    if tp == FieldType.LOCSTRING:
        # total size, not needed since the substrings are self-describing
        data.skip(DWORD_SIZE, "localized string size")
        str_ref, count = data.take("2I", "localized string head")
        strings = []
        for _ in range(count):
            lang_id = data.u32("localized substring id")
            strings.append(LocString(lang_id, data.take_sized_string("I")))
        return LocalizedString(str_ref, strings)
    if tp == FieldType.VOID:
        return data.take_sized_bytes("I")
    if tp == FieldType.ORIENTATION:
        return Orientation(*data.take("4f"))
    if tp == FieldType.VECTOR:
        return Vector(*data.take("3f"))
    raise UnknownFieldTypeError(f"no payload layout for {tp.name}")
