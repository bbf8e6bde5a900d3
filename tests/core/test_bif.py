"""Tests for the selective BIF reader."""

import pytest

from kotorformats.core.bif import Bif, parse_bif
from kotorformats.core.errors import HeaderError, InvalidReferenceError, TruncatedDataError
from tests.conftest import build_bif

CONTENTS = [b"zero", b"one", b"two", b"three", b"four", b"five"]


class TestParseBif:
    def test_requested_order_kept(self):
        bif = parse_bif(build_bif(CONTENTS), [5, 2])
        assert bif.resources == [b"five", b"two"]
        assert bif.indices == [5, 2]

    def test_only_requested_entries_read(self):
        data = build_bif(CONTENTS, unreadable={0, 1, 3, 4, 5})
        assert parse_bif(data, [2]).resources == [b"two"]

    def test_bad_entry_fails_once_requested(self):
        data = build_bif(CONTENTS, unreadable={3})
        with pytest.raises(TruncatedDataError, match="resource 3 content"):
            parse_bif(data, [2, 3])

    def test_duplicates_read_again(self):
        assert parse_bif(build_bif(CONTENTS), [1, 1]).resources == [b"one", b"one"]

    def test_nothing_requested(self):
        assert parse_bif(build_bif(CONTENTS), []).resources == []

    def test_get(self):
        bif = parse_bif(build_bif(CONTENTS), [4, 0])
        assert bif.get(0) == b"zero"
        assert bif.get(1) is None

    def test_get_on_constructed_bif(self):
        bif = Bif([3, 7], [b"three", b"seven"])
        assert bif.get(7) == b"seven"
        bif.add(9, b"nine")
        assert bif.get(9) == b"nine"
        assert bif.indices == [3, 7, 9]

    def test_index_out_of_range(self):
        with pytest.raises(InvalidReferenceError, match="^BIF: BIF contains 6 resources but index 6"):
            parse_bif(build_bif(CONTENTS), [6])

    def test_bad_header(self):
        data = b"BIFFV2  " + build_bif(CONTENTS)[8:]
        with pytest.raises(HeaderError):
            parse_bif(data, [0])
