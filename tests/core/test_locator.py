"""Tests for resource lookup across override directories and KEY/BIF archives."""

from pathlib import Path

import pytest

from kotorformats.core import locator
from kotorformats.core.errors import ResourceNotFoundError
from kotorformats.core.key import Key, KeyResRef
from kotorformats.core.locator import (
    BifSource,
    FileSource,
    find_source,
    find_sources_by_name,
    find_sources_by_type,
    read_resource,
    read_resources,
)
from kotorformats.core.resource import ResourceKey, ResourceType
from tests.conftest import build_bif

TEMPLATES = Path("data", "templates.bif")
TWODA = Path("data", "2da.bif")


@pytest.fixture
def key() -> Key:
    return Key(
        file_names=["data\\templates.bif", "data\\2da.bif"],
        resources={
            ResourceKey("p_bastila", ResourceType.UTC): KeyResRef(0, 1),
            ResourceKey("p_carth", ResourceType.UTC): KeyResRef(0, 0),
            ResourceKey("appearance", ResourceType.TWODA): KeyResRef(1, 0),
        },
    )


@pytest.fixture
def game_dir(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir()
    (tmp_path / TEMPLATES).write_bytes(build_bif([b"carth", b"bastila", b"extra"]))
    (tmp_path / TWODA).write_bytes(build_bif([b"appearance"]))
    return tmp_path


class TestFindSource:
    def test_key_fallback(self, key):
        source = find_source([], key, "p_bastila", ResourceType.UTC)
        assert source == BifSource(TEMPLATES, 1)

    def test_override_wins(self, key, tmp_path):
        (tmp_path / "p_bastila.utc").write_bytes(b"loose")
        source = find_source([tmp_path], key, "p_bastila", ResourceType.UTC)
        assert source == FileSource(tmp_path / "p_bastila.utc")

    def test_first_override_wins(self, key, tmp_path):
        first, second = tmp_path / "first", tmp_path / "second"
        for d in (first, second):
            d.mkdir()
            (d / "appearance.2da").write_bytes(d.name.encode())
        source = find_source([second, first], key, "appearance", ResourceType.TWODA)
        assert source == FileSource(second / "appearance.2da")

    def test_missing_override_dir_ignored(self, key, tmp_path):
        source = find_source([tmp_path / "nope"], key, "p_carth", ResourceType.UTC)
        assert source == BifSource(TEMPLATES, 0)

    def test_not_found(self, key):
        assert find_source([], key, "p_hk47", ResourceType.UTC) is None


class TestFindSources:
    def test_by_name(self, key):
        sources = find_sources_by_name([], key, ["p_carth", "p_bastila"], ResourceType.UTC)
        assert sources == [BifSource(TEMPLATES, 0), BifSource(TEMPLATES, 1)]

    def test_by_name_missing(self, key):
        with pytest.raises(ResourceNotFoundError, match="p_hk47.utc"):
            find_sources_by_name([], key, ["p_carth", "p_hk47"], ResourceType.UTC)

    def test_by_name_accepts_generator(self, key, tmp_path):
        (tmp_path / "p_carth.utc").write_bytes(b"loose")
        overrides = (p for p in [tmp_path])
        sources = find_sources_by_name(overrides, key, ["p_carth", "p_bastila"], ResourceType.UTC)
        assert sources == [FileSource(tmp_path / "p_carth.utc"), BifSource(TEMPLATES, 1)]

    def test_by_type(self, key, tmp_path):
        (tmp_path / "n_hk47.utc").write_bytes(b"")
        (tmp_path / "feat.2da").write_bytes(b"")
        sources = find_sources_by_type([tmp_path, tmp_path / "nope"], key, ResourceType.UTC)
        assert sources == [
            BifSource(TEMPLATES, 1),
            BifSource(TEMPLATES, 0),
            FileSource(tmp_path / "n_hk47.utc"),
        ]


class TestReadResources:
    def test_input_order(self, game_dir, tmp_path):
        loose = tmp_path / "p_hk47.utc"
        loose.write_bytes(b"hk47")
        sources = [
            BifSource(TEMPLATES, 2),
            FileSource(loose),
            BifSource(TWODA, 0),
            BifSource(TEMPLATES, 0),
        ]
        assert read_resources(game_dir, sources) == [b"extra", b"hk47", b"appearance", b"carth"]

    def test_each_bif_parsed_once(self, game_dir, monkeypatch):
        calls = []
        real_parse = locator.parse_bif

        def counting_parse(data, indices):
            calls.append(list(indices))
            return real_parse(data, indices)

        monkeypatch.setattr(locator, "parse_bif", counting_parse)
        read_resources(game_dir, [BifSource(TEMPLATES, 1), BifSource(TWODA, 0), BifSource(TEMPLATES, 0)])
        assert sorted(calls) == [[0], [1, 0]]

    def test_single(self, game_dir):
        assert read_resource(game_dir, BifSource(TEMPLATES, 1)) == b"bastila"

    def test_missing_bif(self, tmp_path):
        with pytest.raises(OSError):
            read_resource(tmp_path, BifSource(TEMPLATES, 0))
