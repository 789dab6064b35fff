"""Tests for content id ordering."""

from unittest.mock import MagicMock

import pytest

from cafewatch.monitor.ids import (
    ContentIdComparator,
    IdOrder,
    compare_content_ids,
    content_id_sort_key,
    parse_numeric_id,
)


class TestParseNumericId:
    """Tests for parse_numeric_id."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("100", 100),
            (" 42 ", 42),
            ("0007", 7),
            ("-3", -3),
        ],
    )
    def test_well_formed(self, value, expected):
        assert parse_numeric_id(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "12a", "1.5", "공지"])
    def test_malformed(self, value):
        assert parse_numeric_id(value) is None


class TestContentIdComparator:
    """Tests for ContentIdComparator."""

    def test_numeric_not_lexicographic(self):
        """'120' is newer than '15' even though it sorts lower as a string."""
        comparator = ContentIdComparator()
        assert comparator.compare("120", "15") is IdOrder.GREATER
        assert comparator.compare("15", "120") is IdOrder.LESS

    def test_equal(self):
        comparator = ContentIdComparator()
        assert comparator.compare("500", "500") is IdOrder.EQUAL
        assert comparator.compare(" 500", "500") is IdOrder.EQUAL

    def test_string_fallback(self):
        """Mixed or malformed ids use plain string order."""
        comparator = ContentIdComparator()
        assert comparator.compare("abc", "abd") is IdOrder.LESS
        assert comparator.compare("abc", "100") is IdOrder.GREATER

    def test_fallback_never_raises_on_none(self):
        comparator = ContentIdComparator()
        assert comparator.compare(None, "1") is IdOrder.LESS

    def test_antisymmetric(self):
        comparator = ContentIdComparator()
        for a, b in [("9", "10"), ("x", "10"), ("abc", "ab")]:
            assert comparator.compare(a, b).value == -comparator.compare(b, a).value

    def test_fallback_callback_invoked(self):
        """Each string fallback feeds the malformed-id callback."""
        callback = MagicMock()
        comparator = ContentIdComparator(on_fallback=callback)

        comparator.compare("abc", "100")
        comparator.compare("abc", "101")
        comparator.compare("100", "101")

        assert callback.call_count == 2

    def test_failing_callback_does_not_break_comparison(self):
        comparator = ContentIdComparator(on_fallback=MagicMock(side_effect=RuntimeError("boom")))
        assert comparator.compare("x", "1") is IdOrder.GREATER



class TestSortKey:
    """Tests for content_id_sort_key."""

    def test_numeric_by_value(self):
        ordered = sorted(["15", "120", "9"], key=content_id_sort_key, reverse=True)
        assert ordered == ["120", "15", "9"]

    def test_malformed_after_numeric(self):
        assert sorted(["b", "7", "a", "10"], key=content_id_sort_key) == ["7", "10", "a", "b"]
