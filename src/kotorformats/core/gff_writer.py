"""Binary writer: Gff struct tree -> bytes.

Structs are numbered in pre-order (the root is always struct 0), labels are
interned file-wide, and variable-width payloads and list runs are appended to
growing buffers whose current length is the offset stored in the field record.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass, field

from kotorformats.core.constants import (
    DWORD_SIZE,
    GFF_HEADER_SIZE,
    GFF_LABEL_SIZE,
    RESREF_MAX_LEN,
    TEXT_ENCODING,
    FieldType,
)
from kotorformats.core.cursor import ByteWriter
from kotorformats.core.gff_records import Field, Gff, Struct

logger = logging.getLogger(__name__)


@dataclass
class _FieldRecord:
    type: int
    label_index: int
    value: int


@dataclass
class _StructRecord:
    type_id: int
    group_idx: int  # pre-order index, also the struct's final index
    field_count: int


@dataclass
class _Frame:
    """A struct whose fields are still being collected."""
    node: Struct
    idx: int
    fields: Iterator[tuple[str, Field]]
    # STRUCT or LIST field waiting for its children
    pending: Field | None = None
    label_idx: int = 0
    children: Iterator[Struct] = field(default_factory=lambda: iter(()))
    child_indices: list[int] = field(default_factory=list)


@dataclass
class _GffWriter:
    labels: list[bytes] = field(default_factory=list)
    label_map: dict[str, int] = field(default_factory=dict)
    structs: list[_StructRecord] = field(default_factory=list)
    # one group of field records per struct, indexed by group_idx
    field_groups: list[list[_FieldRecord]] = field(default_factory=list)
    field_data: ByteWriter = field(default_factory=ByteWriter)
    list_indices: list[int] = field(default_factory=list)

    def save_label(self, label: str) -> int:
        idx = self.label_map.get(label)
        if idx is not None:
            return idx
        encoded = label.encode(TEXT_ENCODING)
        if len(encoded) > GFF_LABEL_SIZE:
            raise ValueError(f"GFF label {label!r} is longer than {GFF_LABEL_SIZE} bytes")
        idx = len(self.labels)
        self.label_map[label] = idx
        self.labels.append(encoded)
        return idx

    def save_list(self, indices: list[int]) -> int:
        """Append a list run and return its byte offset in the list-indices block."""
        offset = len(self.list_indices) * DWORD_SIZE
        self.list_indices.append(len(indices))
        self.list_indices.extend(indices)
        return offset

    def save_payload(self, value: Field) -> int:
        """Append a variable-width payload to field data and return its offset."""
        data = self.field_data
        offset = len(data)
        tp = value.type
        v = value.value
        if tp == FieldType.DWORD64:
            data.write("Q", v)
        elif tp == FieldType.INT64:
            data.write("q", v)
        elif tp == FieldType.DOUBLE:
            data.write("d", v)
        elif tp == FieldType.STRING:
            data.write_sized_bytes(v.encode(TEXT_ENCODING), "I")
        elif tp == FieldType.RESREF:
            encoded = v.encode(TEXT_ENCODING)
            if len(encoded) > RESREF_MAX_LEN:
                raise ValueError(f"ResRef {v!r} is longer than {RESREF_MAX_LEN} bytes")
            data.write_sized_bytes(encoded, "B")
        elif tp == FieldType.LOCSTRING:
            inner = ByteWriter()
            inner.write("2I", v.str_ref, len(v.strings))
            for s in v.strings:
                inner.write("I", s.id)
                inner.write_sized_bytes(s.content.encode(TEXT_ENCODING), "I")
            data.write_sized_bytes(inner.getvalue(), "I")
        elif tp == FieldType.VOID:
            data.write_sized_bytes(v, "I")
        elif tp == FieldType.ORIENTATION:
            data.write("4f", v.w, v.x, v.y, v.z)
        elif tp == FieldType.VECTOR:
            data.write("3f", v.x, v.y, v.z)
        else:
            raise ValueError(f"{value.type_name} fields are not stored in field data")
        return offset

    def _enter(self, s: Struct) -> _Frame:
        """Give ``s`` the next struct index and open a frame for its fields."""
        frame = _Frame(s, len(self.field_groups), iter(s.fields.items()))
        self.field_groups.append([])
        return frame

    def _close_pending(self, frame: _Frame) -> None:
        pending = frame.pending
        if pending.type == FieldType.STRUCT:
            content = frame.child_indices[0]
        else:
            content = self.save_list(frame.child_indices)
        self.field_groups[frame.idx].append(_FieldRecord(int(pending.type), frame.label_idx, content))
        frame.pending = None

    def collect(self, root: Struct) -> None:
        """Walk the tree depth-first, numbering structs in pre-order.

        Uses an explicit stack instead of recursion. Children are finished
        before their parent's STRUCT or LIST record is written.
        """
        stack = [self._enter(root)]
        while stack:
            frame = stack[-1]
            if frame.pending is not None:
                child = next(frame.children, None)
                if child is not None:
                    stack.append(self._enter(child))
                    continue
                self._close_pending(frame)

            item = next(frame.fields, None)
            if item is None:
                s = frame.node
                self.structs.append(_StructRecord(s.type_id, frame.idx, len(s.fields)))
                stack.pop()
                if stack:
                    stack[-1].child_indices.append(frame.idx)
                continue

            label, value = item
            value.validate()
            label_idx = self.save_label(label)
            if value.type in (FieldType.STRUCT, FieldType.LIST):
                frame.pending = value
                frame.label_idx = label_idx
                frame.children = iter([value.value] if value.type == FieldType.STRUCT else value.value)
                frame.child_indices = []
                continue
            content = _inline_word(value) if value.is_inline else self.save_payload(value)
            self.field_groups[frame.idx].append(_FieldRecord(int(value.type), label_idx, content))

    def to_bytes(self, gff: Gff) -> bytes:
        # structs were appended post-order; disk order is pre-order index order
        self.structs.sort(key=lambda rec: rec.group_idx)

        # flatten field groups, remembering where each group starts
        group_starts: list[int] = []
        flat_fields: list[_FieldRecord] = []
        for group in self.field_groups:
            group_starts.append(len(flat_fields))
            flat_fields.extend(group)

        out = ByteWriter()
        out.write_zeros(GFF_HEADER_SIZE)

        struct_offset = out.position
        field_indices: list[int] = []
        for rec in self.structs:
            first = group_starts[rec.group_idx]
            if rec.field_count == 1:
                data_or_offset = first
            else:
                data_or_offset = len(field_indices) * DWORD_SIZE
                field_indices.extend(range(first, first + rec.field_count))
            out.write("3I", rec.type_id, data_or_offset, rec.field_count)

        field_offset = out.position
        for f in flat_fields:
            out.write("3I", f.type, f.label_index, f.value)

        label_offset = out.position
        for label in self.labels:
            out.write_padded(label, GFF_LABEL_SIZE, "label")

        field_data_offset = out.position
        out.write_bytes(self.field_data.getvalue())

        field_indices_offset = out.position
        out.write_array("I", field_indices)

        list_indices_offset = out.position
        out.write_array("I", self.list_indices)

        header = [
            struct_offset, len(self.structs),
            field_offset, len(flat_fields),
            label_offset, len(self.labels),
            field_data_offset, len(self.field_data),
            field_indices_offset, len(field_indices) * DWORD_SIZE,
            list_indices_offset, len(self.list_indices) * DWORD_SIZE,
        ]
        logger.debug(
            "GFF %s%s: structs at %d (%d), fields at %d (%d), labels at %d (%d), "
            "field data at %d (%dB), field indices at %d (%dB), list indices at %d (%dB)",
            gff.file_head.tp, gff.file_head.version, *header,
        )

        out.seek(0)
        gff.file_head.write(out)
        out.write_array("I", header)
        return out.getvalue()


_INLINE_MASKS = {
    FieldType.CHAR: 0xFF,
    FieldType.SHORT: 0xFFFF,
    FieldType.INT: 0xFFFFFFFF,
}


def _inline_word(value: Field) -> int:
    """Pack a small scalar into the field record's 4-byte value word."""
    if value.type == FieldType.FLOAT:
        return struct.unpack("<I", struct.pack("<f", value.value))[0]
    # signed kinds are stored as their two's complement bit pattern
    mask = _INLINE_MASKS.get(value.type)
    return value.value & mask if mask is not None else value.value


def write_gff(gff: Gff) -> bytes:
    """Serialize a Gff to bytes."""
    writer = _GffWriter()
    writer.collect(gff.root)
    return writer.to_bytes(gff)
