"""Shared test fixtures and binary builders for kotorformats tests."""

from __future__ import annotations

import struct

import pytest

from kotorformats.core.constants import FieldType
from kotorformats.core.gff_records import Field, Gff, Struct
from kotorformats.core.resource import FileHead, LocString


def build_gff(
    structs: list[tuple[int, int, int]],
    fields: list[tuple[int, int, int]],
    labels: list[str],
    field_data: bytes = b"",
    field_indices: list[int] | None = None,
    list_indices: list[int] | None = None,
    tp: str = "UTC ",
) -> bytes:
    """Assemble a raw GFF from its tables, laying the blocks out back to back."""
    field_indices = field_indices or []
    list_indices = list_indices or []

    struct_block = b"".join(struct.pack("<3I", *s) for s in structs)
    field_block = b"".join(struct.pack("<3I", *f) for f in fields)
    label_block = b"".join(label.encode("ascii").ljust(16, b"\x00") for label in labels)
    fi_block = struct.pack(f"<{len(field_indices)}I", *field_indices)
    li_block = struct.pack(f"<{len(list_indices)}I", *list_indices)

    struct_offset = 56
    field_offset = struct_offset + len(struct_block)
    label_offset = field_offset + len(field_block)
    field_data_offset = label_offset + len(label_block)
    fi_offset = field_data_offset + len(field_data)
    li_offset = fi_offset + len(fi_block)

    header = (tp + "V3.2").encode("ascii") + struct.pack(
        "<12I",
        struct_offset, len(structs),
        field_offset, len(fields),
        label_offset, len(labels),
        field_data_offset, len(field_data),
        fi_offset, len(fi_block),
        li_offset, len(li_block),
    )
    return header + struct_block + field_block + label_block + field_data + fi_block + li_block


def build_erf(
    entries: list[tuple[str, int, int, bytes]],
    tp: str = "ERF ",
    version: str = "V1.0",
) -> bytes:
    """Assemble an ERF from (name, type code, id, content) entries, no loc strings."""
    keys_offset = 160
    resources_offset = keys_offset + 24 * len(entries)
    data_offset = resources_offset + 8 * len(entries)

    keys = b""
    table = b""
    data = b""
    for name, type_code, res_id, content in entries:
        keys += name.encode("ascii").ljust(16, b"\x00") + struct.pack("<IHH", res_id, type_code, 0)
        table += struct.pack("<2I", data_offset + len(data), len(content))
        data += content

    header = (tp + version).encode("ascii") + struct.pack(
        "<9I", 0, 0, len(entries), keys_offset, keys_offset, resources_offset, 124, 0, 0
    )
    return header + b"\x00" * 116 + keys + table + data


def build_key(
    file_names: list[str],
    entries: list[tuple[str, int, int, int]],
) -> bytes:
    """Assemble a KEY from BIF names and (name, type code, file_idx, resource_idx) entries."""
    file_offset = 24
    names_offset = file_offset + 12 * len(file_names)

    file_table = b""
    names = b""
    for name in file_names:
        encoded = name.encode("ascii") + b"\x00"
        file_table += struct.pack("<IIHH", 0, names_offset + len(names), len(encoded), 0)
        names += encoded

    key_offset = names_offset + len(names)
    key_table = b""
    for name, type_code, file_idx, resource_idx in entries:
        res_id = (file_idx << 20) | resource_idx
        key_table += name.encode("ascii").ljust(16, b"\x00") + struct.pack("<HI", type_code, res_id)

    header = b"KEY V1  " + struct.pack(
        "<4I", len(file_names), len(entries), file_offset, key_offset
    )
    return header + file_table + names + key_table


def build_bif(contents: list[bytes], unreadable: set[int] | None = None) -> bytes:
    """Assemble a BIF. Entries in ``unreadable`` point far past the end of the file."""
    unreadable = unreadable or set()
    table_offset = 20
    data_offset = table_offset + 16 * len(contents)

    table = b""
    data = b""
    for idx, content in enumerate(contents):
        offset = 0xFFFFFF00 if idx in unreadable else data_offset + len(data)
        table += struct.pack("<4I", idx, offset, len(content), 0)
        data += content

    header = b"BIFFV1  " + struct.pack("<3I", len(contents), 0, table_offset)
    return header + table + data


def build_tlk(strings: list[str | None], language: int = 0, version: str = "V3.0") -> bytes:
    """Assemble a TLK; ``None`` entries have the text-present flag cleared."""
    data_offset = 20 + 40 * len(strings)
    entries = b""
    data = b""
    for s in strings:
        if s is None:
            entries += b"\x00" * 40
            continue
        encoded = s.encode("utf-8")
        entries += struct.pack("<I16sIIIIf", 0x7, b"", 0, 0, len(data), len(encoded), 0.0)
        data += encoded

    header = ("TLK " + version).encode("ascii") + struct.pack(
        "<3I", language, len(strings), data_offset
    )
    return header + entries + data


def build_twoda(
    columns: list[str],
    rows: list[list[str]],
    row_labels: list[str] | None = None,
    version: str = "V2.b",
) -> bytes:
    """Assemble a binary 2DA; identical cell texts share one data entry like the game files."""
    if row_labels is None:
        row_labels = [str(i) for i in range(len(rows))]

    out = b"2DA " + version.encode("ascii") + b"\n"
    out += "".join(c + "\t" for c in columns).encode("ascii") + b"\x00"
    out += struct.pack("<I", len(rows))
    out += "".join(label + "\t" for label in row_labels).encode("utf-8")

    data = b""
    seen: dict[str, int] = {}
    offsets = []
    for row in rows:
        for cell in row:
            if cell not in seen:
                seen[cell] = len(data)
                data += cell.encode("utf-8") + b"\x00"
            offsets.append(seen[cell])
    offsets.append(len(data))

    out += struct.pack(f"<{len(offsets)}H", *offsets)
    return out + data


def make_gff(fields: dict[str, Field], tp: str = "UTC ") -> Gff:
    return Gff(file_head=FileHead(tp, "V3.2"), root=Struct.new(fields, type_id=0xFFFFFFFF))


@pytest.fixture
def simple_gff() -> Gff:
    """A GFF whose root holds a single Word field."""
    return make_gff({"HP": Field(FieldType.WORD, 50)})


@pytest.fixture
def character_gff() -> Gff:
    """A creature-like GFF exercising every field kind and nesting."""
    item = Struct.new({
        "Tag": Field(FieldType.STRING, "g_w_lghtsbr01"),
        "StackSize": Field(FieldType.WORD, 1),
    }, type_id=4)
    feat = Struct.new({"Feat": Field(FieldType.WORD, 12)}, type_id=1)
    return make_gff({
        "Gender": Field(FieldType.BYTE, 1),
        "GoodEvil": Field(FieldType.CHAR, -5),
        "CurrentHitPoints": Field(FieldType.SHORT, -300),
        "Experience": Field(FieldType.DWORD, 0xFFFFFFFF),
        "Gold": Field(FieldType.INT, -70000),
        "Seed": Field(FieldType.DWORD64, 0xFFFFFFFFFFFFFFFF),
        "Offset": Field(FieldType.INT64, -1),
        "ChallengeRating": Field(FieldType.FLOAT, 0.1),
        "Weight": Field(FieldType.DOUBLE, 1.5),
        "Tag": Field(FieldType.STRING, "bastila"),
        "Conversation": Field(FieldType.RESREF, "p_bastila"),
        "FirstName": Field.locstring(31360, [LocString(0, "Bastila")]),
        "Blob": Field(FieldType.VOID, b"\x00\x01\x02"),
        "Equip_ItemList": Field(FieldType.LIST, [item]),
        "FeatList": Field(FieldType.LIST, [feat, Struct.new({"Feat": Field(FieldType.WORD, 7)}, type_id=1)]),
        "Empty": Field(FieldType.LIST, []),
        "Appearance": Field(FieldType.STRUCT, Struct.new({}, type_id=9)),
        "Orientation": Field.orientation(1.0, 0.0, 0.5, 0.25),
        "Position": Field.vector(10.5, -2.25, 0.1),
    })
