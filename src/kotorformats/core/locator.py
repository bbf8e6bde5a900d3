"""Find resources in override directories or the KEY/BIF archives and load their bytes.

Lookup order for a (name, type) pair: each override directory in the given
order (the first one holding ``name.ext`` wins), then the KEY index.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from kotorformats.core.bif import parse_bif
from kotorformats.core.errors import ResourceNotFoundError
from kotorformats.core.key import Key
from kotorformats.core.resource import ResourceType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSource:
    """A loose file, usually in an override directory."""

    path: Path


@dataclass(frozen=True)
class BifSource:
    """A member of a BIF archive; ``file`` is relative to the game directory."""

    file: Path
    res_idx: int


ResourceSource = FileSource | BifSource


def find_source(
    overrides: Iterable[str | Path],
    key: Key,
    name: str,
    tp: ResourceType,
) -> ResourceSource | None:
    """Locate ``name`` of type ``tp``, or return None if nothing has it."""
    filename = f"{name}.{tp.extension}"
    for over in overrides:
        path = Path(over) / filename
        if path.exists():
            logger.debug("%s found in override %s", filename, over)
            return FileSource(path)

    res_ref = key.get(name, tp)
    if res_ref is None:
        return None
    file = key.get_file_path(res_ref.file_idx)
    logger.debug("%s found in %s at index %d", filename, file, res_ref.resource_idx)
    return BifSource(file, res_ref.resource_idx)


def find_sources_by_name(
    overrides: Iterable[str | Path],
    key: Key,
    names: Iterable[str],
    tp: ResourceType,
) -> list[ResourceSource]:
    """Locate every name, failing on the first one that can't be found."""
    overrides = list(overrides)
    sources = []
    for name in names:
        source = find_source(overrides, key, name, tp)
        if source is None:
            raise ResourceNotFoundError(f"couldn't find resource {name}.{tp.extension}")
        sources.append(source)
    return sources


def find_sources_by_type(
    overrides: Iterable[str | Path],
    key: Key,
    tp: ResourceType,
) -> list[ResourceSource]:
    """Every KEY entry of type ``tp`` followed by every loose override file with its extension.

    Missing override directories are skipped.
    """
    sources: list[ResourceSource] = [
        BifSource(key.get_file_path(ref.file_idx), ref.resource_idx)
        for res_key, ref in key.resources.items()
        if res_key.type == tp
    ]

    suffix = f".{tp.extension}"
    for over in overrides:
        over = Path(over)
        if not over.is_dir():
            continue
        for path in sorted(over.iterdir()):
            if path.is_file() and path.name.lower().endswith(suffix):
                sources.append(FileSource(path))
    return sources


def read_resources(game_dir: str | Path, sources: list[ResourceSource]) -> list[bytes]:
    """Load the bytes behind each source, returned in the same order.

    Members of the same BIF are gathered so every archive is read and decoded once.
    """
    game_dir = Path(game_dir)
    results: list[bytes | None] = [None] * len(sources)
    # archive -> [(position in sources, resource index)]
    by_bif: dict[Path, list[tuple[int, int]]] = {}

    for pos, source in enumerate(sources):
        if isinstance(source, FileSource):
            results[pos] = source.path.read_bytes()
        else:
            by_bif.setdefault(source.file, []).append((pos, source.res_idx))

    for file, members in by_bif.items():
        positions = [pos for pos, _ in members]
        bif = parse_bif((game_dir / file).read_bytes(), [idx for _, idx in members])
        logger.debug("Read %d resources from %s", len(members), file)
        for pos, content in zip(positions, bif.resources):
            results[pos] = content

    return results


def read_resource(game_dir: str | Path, source: ResourceSource) -> bytes:
    return read_resources(game_dir, [source])[0]
