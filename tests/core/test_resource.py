"""Tests for resource types, keys and file heads."""

import pytest

from kotorformats.core.cursor import ByteReader, ByteWriter
from kotorformats.core.errors import HeaderError
from kotorformats.core.resource import FileHead, ResourceKey, ResourceType


class TestResourceType:
    def test_codes(self):
        assert ResourceType.TWODA == 2017
        assert ResourceType.UTC == 2027
        assert ResourceType.TPC == 3007

    def test_extension(self):
        assert ResourceType.TWODA.extension == "2da"
        assert ResourceType.UTC.extension == "utc"

    def test_from_extension(self):
        assert ResourceType.from_extension("2DA") is ResourceType.TWODA
        assert ResourceType.from_extension(".ifo") is ResourceType.IFO

    def test_from_unknown_extension(self):
        with pytest.raises(ValueError):
            ResourceType.from_extension("mdl")

    def test_try_from_code(self):
        assert ResourceType.try_from_code(2014) is ResourceType.IFO
        assert ResourceType.try_from_code(9999) is None


class TestResourceKey:
    def test_case_insensitive(self):
        a = ResourceKey("P_Bastila", ResourceType.UTC)
        b = ResourceKey("p_bastila", ResourceType.UTC)
        assert a == b
        assert hash(a) == hash(b)
        assert {a: 1}[b] == 1

    def test_type_matters(self):
        assert ResourceKey("x", ResourceType.UTC) != ResourceKey("x", ResourceType.UTI)

    def test_str(self):
        assert str(ResourceKey("appearance", ResourceType.TWODA)) == "appearance.2da"

    def test_from_filename(self):
        key = ResourceKey.from_filename("module.ifo")
        assert key.name == "module"
        assert key.type is ResourceType.IFO

    def test_from_filename_needs_extension(self):
        with pytest.raises(ValueError):
            ResourceKey.from_filename("module")


class TestFileHead:
    def test_short_tags_padded(self):
        head = FileHead("MOD", "V1.0")
        assert head.tp == "MOD "
        assert head.to_bytes() == b"MOD V1.0"

    def test_long_tag_rejected(self):
        with pytest.raises(ValueError):
            FileHead("TOOLONG", "V1.0")

    def test_read_write(self):
        w = ByteWriter()
        FileHead("UTC ", "V3.2").write(w)
        assert FileHead.read(ByteReader(w.getvalue())) == FileHead("UTC ", "V3.2")

    def test_expect(self):
        FileHead("TLK ", "V3.0").expect("TLK ", "V3.0")
        with pytest.raises(HeaderError, match="invalid file type or version"):
            FileHead("TLK ", "V4.0").expect("TLK ", "V3.0")
