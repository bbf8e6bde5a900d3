"""Facade for loading and saving resource files."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from pathlib import Path

from kotorformats.core.erf import Erf, parse_erf, serialize_erf
from kotorformats.core.gff_parser import parse_gff
from kotorformats.core.gff_records import Gff
from kotorformats.core.gff_writer import write_gff
from kotorformats.core.key import Key, parse_key
from kotorformats.core.tlk import Tlk, parse_tlk
from kotorformats.core.twoda import TwoDA, TwoDAType, parse_twoda


def load_gff(path: str | Path) -> Gff:
    """Load and parse a GFF file (.utc, .ifo, .git, ...) from disk."""
    return parse_gff(Path(path).read_bytes())


def save_gff(gff: Gff, path: str | Path) -> None:
    Path(path).write_bytes(write_gff(gff))


def gff_to_bytes(gff: Gff) -> bytes:
    """Serialize a Gff to bytes in memory."""
    return write_gff(gff)


def gff_from_bytes(data: bytes) -> Gff:
    """Parse a Gff from raw bytes."""
    return parse_gff(data)


def load_erf(path: str | Path) -> Erf:
    """Load and parse an ERF/MOD/SAV/HAK archive from disk."""
    return parse_erf(Path(path).read_bytes())


def save_erf(erf: Erf, path: str | Path, build_date: date | None = None) -> None:
    Path(path).write_bytes(serialize_erf(erf, build_date))


def erf_to_bytes(erf: Erf, build_date: date | None = None) -> bytes:
    """Serialize an Erf to bytes in memory."""
    return serialize_erf(erf, build_date)


def erf_from_bytes(data: bytes) -> Erf:
    """Parse an Erf from raw bytes."""
    return parse_erf(data)


def load_key(path: str | Path) -> Key:
    """Load the KEY index, usually ``chitin.key`` in the game directory."""
    return parse_key(Path(path).read_bytes())


def load_tlk(path: str | Path, required_indices: list[int]) -> Tlk:
    return parse_tlk(Path(path).read_bytes(), required_indices)


def load_twoda(
    path: str | Path,
    columns: Mapping[str, TwoDAType] | Iterable[tuple[str, TwoDAType]],
) -> TwoDA:
    return parse_twoda(Path(path).read_bytes(), columns)
