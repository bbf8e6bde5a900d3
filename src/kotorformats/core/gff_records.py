"""Data classes representing a decoded GFF object tree.

A GFF file is a tree of structs. Every struct owns a label -> field mapping,
and a field is a single tagged value: the tag is the on-disk ``FieldType`` and
the Python type of ``value`` follows from it:

    BYTE..INT64       int
    FLOAT, DOUBLE     float
    STRING, RESREF    str
    LOCSTRING         LocalizedString
    VOID              bytes
    STRUCT            Struct
    LIST              list[Struct]
    ORIENTATION       Orientation
    VECTOR            Vector

Nested structs are owned by exactly one parent field, so the tree never shares
or cycles.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

from kotorformats.core.constants import FieldType
from kotorformats.core.errors import MissingDataError
from kotorformats.core.resource import FileHead, LocString

# (min, max) for the integer kinds
_INT_RANGES: dict[FieldType, tuple[int, int]] = {
    FieldType.BYTE: (0, 0xFF),
    FieldType.CHAR: (-0x80, 0x7F),
    FieldType.WORD: (0, 0xFFFF),
    FieldType.SHORT: (-0x8000, 0x7FFF),
    FieldType.DWORD: (0, 0xFFFFFFFF),
    FieldType.INT: (-0x80000000, 0x7FFFFFFF),
    FieldType.DWORD64: (0, 0xFFFFFFFFFFFFFFFF),
    FieldType.INT64: (-0x8000000000000000, 0x7FFFFFFFFFFFFFFF),
}

# Kinds whose value fits in the 4-byte field record itself
INLINE_TYPES = frozenset({
    FieldType.BYTE,
    FieldType.CHAR,
    FieldType.WORD,
    FieldType.SHORT,
    FieldType.DWORD,
    FieldType.INT,
    FieldType.FLOAT,
})


def to_float32(value: float) -> float:
    """Round a Python float to the nearest single-precision value."""
    return struct.unpack("<f", struct.pack("<f", value))[0]


@dataclass
class Orientation:
    w: float
    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        self.w, self.x, self.y, self.z = (to_float32(v) for v in (self.w, self.x, self.y, self.z))


@dataclass
class Vector:
    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        self.x, self.y, self.z = (to_float32(v) for v in (self.x, self.y, self.z))


@dataclass
class LocalizedString:
    """CExoLocString: a TLK string ref plus inline per-language overrides."""

    str_ref: int
    strings: list[LocString] = field(default_factory=list)


_VALUE_TYPES: dict[FieldType, type | tuple[type, ...]] = {
    FieldType.FLOAT: (int, float),
    FieldType.DOUBLE: (int, float),
    FieldType.STRING: str,
    FieldType.RESREF: str,
    FieldType.LOCSTRING: LocalizedString,
    FieldType.VOID: (bytes, bytearray),
    FieldType.LIST: list,
    FieldType.ORIENTATION: Orientation,
    FieldType.VECTOR: Vector,
}


def _checked_value(tp: FieldType, value: Any) -> Any:
    """Validate ``value`` for a ``tp`` field and return its stored form.

    Raises:
        TypeError: if the Python type doesn't match the field kind.
        ValueError: if an integer is out of range for its declared width.
    """
    type_name = tp.name.capitalize()
    if tp in _INT_RANGES:
        lo, hi = _INT_RANGES[tp]
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{type_name} field needs an int, got {value!r}")
        if not lo <= value <= hi:
            raise ValueError(f"{value} is out of range for a {type_name} field")
        return value
    expected = Struct if tp == FieldType.STRUCT else _VALUE_TYPES[tp]
    if not isinstance(value, expected):
        raise TypeError(f"{type_name} field can't hold {value!r}")
    if tp == FieldType.FLOAT:
        return to_float32(value)
    if tp == FieldType.DOUBLE:
        return float(value)
    if tp == FieldType.VOID:
        return bytes(value)
    if tp == FieldType.LIST:
        for item in value:
            if not isinstance(item, Struct):
                raise TypeError(f"List field can only hold structs, got {item!r}")
    return value


@dataclass
class Field:
    """One GFF field value tagged with its on-disk type.

    ``type`` and ``value`` are checked on every assignment, not only on
    construction, so a field can't be edited into a value its kind can't store.
    """

    type: FieldType
    value: Any

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "type":
            value = FieldType(value)
            if "value" in self.__dict__:
                object.__setattr__(self, "value", _checked_value(value, self.value))
        elif name == "value":
            value = _checked_value(self.type, value)
        object.__setattr__(self, name, value)

    def validate(self) -> None:
        """Re-check a value that was mutated in place (e.g. a list appended to)."""
        object.__setattr__(self, "value", _checked_value(self.type, self.value))

    @property
    def type_name(self) -> str:
        return self.type.name.capitalize()

    @property
    def is_inline(self) -> bool:
        return self.type in INLINE_TYPES

    @classmethod
    def locstring(cls, str_ref: int, strings: list[LocString] | None = None) -> Field:
        return cls(FieldType.LOCSTRING, LocalizedString(str_ref, list(strings or [])))

    @classmethod
    def orientation(cls, w: float, x: float, y: float, z: float) -> Field:
        return cls(FieldType.ORIENTATION, Orientation(w, x, y, z))

    @classmethod
    def vector(cls, x: float, y: float, z: float) -> Field:
        return cls(FieldType.VECTOR, Vector(x, y, z))


@dataclass
class Struct:
    """A GFF struct: a numeric type id and a label -> Field mapping.

    Field order is not significant; equality is mapping equality.
    """

    type_id: int = 0
    fields: dict[str, Field] = field(default_factory=dict)

    @classmethod
    def new(cls, fields: dict[str, Field] | list[tuple[str, Field]], type_id: int = 0) -> Struct:
        return cls(type_id=type_id, fields=dict(fields))

    def __contains__(self, label: str) -> bool:
        return label in self.fields

    def __getitem__(self, label: str) -> Field:
        return self.fields[label]

    def __len__(self) -> int:
        return len(self.fields)

    def _lookup(self, label: str, kind: FieldType | None) -> Field:
        found = self.fields.get(label)
        if found is None:
            raise MissingDataError(f"missing field {label}")
        if kind is not None and found.type != kind:
            raise MissingDataError(
                f"invalid field {label}: expected {kind.name.capitalize()}, got {found.type_name}"
            )
        return found

    def get(self, label: str, kind: FieldType | None = None) -> Any:
        """Return the value of field ``label``, optionally checking its kind."""
        return self._lookup(label, kind).value

    def take(self, label: str, kind: FieldType | None = None) -> Any:
        """Remove field ``label`` and return its value."""
        value = self._lookup(label, kind).value
        del self.fields[label]
        return value

    def insert(self, label: str, value: Field) -> None:
        self.fields[label] = value


@dataclass
class Gff:
    """A whole GFF file: file head plus the root struct.

    Readers conventionally ignore the root struct's type id.
    """

    file_head: FileHead
    root: Struct = field(default_factory=Struct)

    def __contains__(self, label: str) -> bool:
        return label in self.root

    def __getitem__(self, label: str) -> Field:
        return self.root[label]

    def get(self, label: str, kind: FieldType | None = None) -> Any:
        return self.root.get(label, kind)

    def take(self, label: str, kind: FieldType | None = None) -> Any:
        return self.root.take(label, kind)

    def insert(self, label: str, value: Field) -> None:
        self.root.insert(label, value)
