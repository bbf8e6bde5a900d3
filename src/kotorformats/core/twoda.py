"""Selective reader for binary 2DA tables (version V2.b).

2DA V2.b layout:
  Header:      "2DA " "V2.b" "\\n"
  Columns:     tab-separated names, a trailing tab, then NUL
  Row count:   u32
  Row labels:  row_count tab-terminated decimal strings
  Cell table:  (columns * rows + 1) u16 offsets, the last one is the data size
  Cell data:   NUL-terminated strings addressed by ``data_start + offset``

Only the columns a caller asks for are decoded. Every row also gets an
``_idx`` entry holding its position.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from kotorformats.core.constants import TWODA_INDEX_COLUMN, TWODA_VERSION
from kotorformats.core.cursor import ByteReader
from kotorformats.core.errors import FormatError, HeaderError, InvalidReferenceError, MissingDataError
from kotorformats.core.resource import FileHead

logger = logging.getLogger(__name__)

TwoDAValue = str | int
TwoDARow = dict[str, TwoDAValue | None]

_INT32_MIN = -0x80000000
_INT32_MAX = 0x7FFFFFFF

# plain ASCII integers, no underscores or padding
_DEC_RE = re.compile(r"[+-]?[0-9]+")
_HEX_RE = re.compile(r"[+-]?[0-9a-fA-F]+")
_ROW_INDEX_RE = re.compile(r"\+?[0-9]+")


class TwoDAType(Enum):
    """How the cells of a requested column are parsed."""
    STRING = "string"
    INT = "int"


@dataclass
class TwoDA:
    rows: list[TwoDARow] = field(default_factory=list)
    # every column name in the file, requested or not
    columns: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __getitem__(self, row_idx: int) -> TwoDARow:
        return self.rows[row_idx]

    def column(self, name: str) -> list[TwoDAValue | None]:
        """Every row's value for ``name``; the column must have been requested."""
        if self.rows and name not in self.rows[0]:
            raise MissingDataError(f"column {name} wasn't read")
        return [row[name] for row in self.rows]


def parse_twoda(
    data: bytes,
    columns: Mapping[str, TwoDAType] | Iterable[tuple[str, TwoDAType]],
) -> TwoDA:
    """Decode every row of the requested ``columns`` (name -> cell type).

    Empty cells are ``None`` whatever the column type. Fails if a requested
    column is missing from the file.
    """
    try:
        return _TwoDAReader(ByteReader(data), dict(columns)).read()
    except FormatError as e:
        raise type(e)(f"2DA: {e}") from e


@dataclass
class _TargetColumn:
    name: str
    idx: int
    type: TwoDAType


class _TwoDAReader:
    def __init__(self, reader: ByteReader, required: dict[str, TwoDAType]) -> None:
        self.r = reader
        self.required = required

    def read(self) -> TwoDA:
        self._read_header()
        names, targets = self._read_columns()
        total_columns = len(names)
        row_count = self.r.u32("row count")
        self._read_row_indices(row_count)
        offsets = self._read_cell_offsets(total_columns, row_count)
        cells = self.r.window(self.r.position, self.r.remaining, "cell data")

        rows = [
            self._read_row(cells, row_idx, total_columns, targets, offsets)
            for row_idx in range(row_count)
        ]
        logger.debug(
            "2DA: %d rows, %d of %d columns decoded", row_count, len(targets), total_columns
        )
        return TwoDA(rows, names)

    def _read_header(self) -> None:
        head = FileHead.read(self.r)
        if head.version != TWODA_VERSION:
            raise HeaderError(f"invalid 2da version: {head.version!r}")
        # newline after the version tag
        self.r.skip(1, "header newline")

    def _read_columns(self) -> tuple[list[str], list[_TargetColumn]]:
        line = self.r.take_string_until(b"\x00", "column list")
        if line.endswith("\t"):
            line = line[:-1]
        names = line.split("\t")

        positions: dict[str, int] = {}
        for idx, name in enumerate(names):
            # duplicated names resolve to the first column
            positions.setdefault(name, idx)

        missing = [name for name in self.required if name not in positions]
        if missing:
            raise MissingDataError(
                f"found {len(self.required) - len(missing)} columns, required "
                f"{len(self.required)}; missing: {', '.join(missing)}"
            )
        targets = [_TargetColumn(name, positions[name], tp) for name, tp in self.required.items()]
        return names, targets

    def _read_row_indices(self, row_count: int) -> None:
        for position in range(row_count):
            text = self.r.take_string_until(b"\t", f"row index {position}")
            if not _ROW_INDEX_RE.fullmatch(text):
                raise FormatError(f"invalid row index {text!r}")
            declared = int(text)
            if declared != position:
                raise InvalidReferenceError(
                    f"row index {declared} doesn't match actual position {position}"
                )

    def _read_cell_offsets(self, total_columns: int, row_count: int) -> tuple[int, ...]:
        # the extra entry is the cell data size
        offsets = self.r.take_array("H", total_columns * row_count + 1, "cell offsets")
        return offsets[:-1]

    def _read_row(
        self,
        cells: ByteReader,
        row_idx: int,
        total_columns: int,
        targets: list[_TargetColumn],
        offsets: tuple[int, ...],
    ) -> TwoDARow:
        row: TwoDARow = {TWODA_INDEX_COLUMN: row_idx}
        for col in targets:
            what = f"column {col.name} in row {row_idx}"
            cells.seek(offsets[row_idx * total_columns + col.idx], what)
            text = cells.take_string_until(b"\x00", what)
            if not text:
                row[col.name] = None
            elif col.type == TwoDAType.INT:
                row[col.name] = _parse_int(text, col.name, row_idx)
            else:
                row[col.name] = text
        return row


def _parse_int(text: str, column: str, row_idx: int) -> int:
    digits, base, pattern = (
        (text[2:], 16, _HEX_RE) if text.startswith("0x") else (text, 10, _DEC_RE)
    )
    value = int(digits, base) if pattern.fullmatch(digits) else None
    if value is None or not _INT32_MIN <= value <= _INT32_MAX:
        raise MissingDataError(
            f"couldn't parse int column {column} in row {row_idx}, value: {text}"
        )
    return value
