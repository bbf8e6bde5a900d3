"""Tests for the KEY index reader."""

from pathlib import Path

import pytest

from kotorformats.core.errors import HeaderError, InvalidReferenceError
from kotorformats.core.key import KeyResRef, parse_key, split_resource_id
from kotorformats.core.resource import ResourceType
from tests.conftest import build_key

FILES = ["data\\templates.bif", "data\\2da.bif"]


class TestParseKey:
    def test_file_names(self):
        key = parse_key(build_key(FILES, []))
        assert key.file_names == FILES

    def test_entries(self):
        key = parse_key(build_key(FILES, [
            ("appearance", ResourceType.TWODA, 1, 5),
            ("p_bastila", ResourceType.UTC, 0, 3),
        ]))
        assert key.get("appearance", ResourceType.TWODA) == KeyResRef(file_idx=1, resource_idx=5)
        assert key.get("P_BASTILA", ResourceType.UTC) == KeyResRef(file_idx=0, resource_idx=3)

    def test_unknown_types_dropped(self):
        key = parse_key(build_key(FILES, [
            ("c_bantha", 2002, 0, 0),
            ("feat", ResourceType.TWODA, 1, 0),
        ]))
        assert len(key.resources) == 1

    def test_duplicate_entry_keeps_later(self, caplog):
        data = build_key(FILES, [
            ("feat", ResourceType.TWODA, 1, 0),
            ("FEAT", ResourceType.TWODA, 1, 4),
        ])
        with caplog.at_level("DEBUG"):
            key = parse_key(data)
        assert key.get("feat", ResourceType.TWODA) == KeyResRef(1, 4)
        assert "Duplicate KEY entry" in caplog.text

    def test_large_resource_index(self):
        key = parse_key(build_key(FILES, [("big", ResourceType.TPC, 1, 0xFFFFF)]))
        assert key.get("big", ResourceType.TPC) == KeyResRef(1, 0xFFFFF)

    def test_file_index_out_of_range(self):
        data = build_key(FILES, [("broken", ResourceType.UTC, 2, 0)])
        with pytest.raises(InvalidReferenceError, match="^KEY: resource broken references invalid file index 2"):
            parse_key(data)

    def test_bad_header(self):
        data = bytearray(build_key(FILES, []))
        data[4:8] = b"V1.1"
        with pytest.raises(HeaderError):
            parse_key(bytes(data))

    def test_truncated(self):
        data = build_key(FILES, [("p_bastila", ResourceType.UTC, 0, 3)])
        with pytest.raises(ValueError):
            parse_key(data[:-4])


class TestKeyHelpers:
    def test_split_resource_id(self):
        assert split_resource_id((3 << 20) | 17) == (3, 17)
        assert split_resource_id(17) == (0, 17)

    def test_get_file_path(self):
        key = parse_key(build_key(FILES, []))
        assert key.get_file_path(1) == Path("data", "2da.bif")

    def test_get_file_path_out_of_range(self):
        key = parse_key(build_key(FILES, []))
        with pytest.raises(InvalidReferenceError):
            key.get_file_path(2)
