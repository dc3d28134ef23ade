"""Tests for resource quantity parsing."""

from decimal import Decimal

import pytest

from neo_quota.core.value_objects import (
    GIB,
    format_quantity,
    is_valid_quantity,
    parse_quantity,
    quantities_equal,
)


class TestParseQuantity:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("4", Decimal(4)),
            ("500m", Decimal("0.5")),
            ("8Gi", 8 * GIB),
            ("512Mi", Decimal(512) * Decimal(2) ** 20),
            ("1k", Decimal(1000)),
            ("1e3", Decimal(1000)),
            ("2.5", Decimal("2.5")),
            (3, Decimal(3)),
        ],
    )
    def test_parses_valid_quantities(self, value, expected):
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "4 cores", "1Zi", None, True])
    def test_rejects_malformed_quantities(self, value):
        with pytest.raises(ValueError):
            parse_quantity(value)
        assert not is_valid_quantity(value)


class TestQuantityComparison:
    def test_equal_by_value(self):
        assert quantities_equal("1", "1000m")
        assert quantities_equal("1Gi", "1024Mi")
        assert not quantities_equal("1G", "1Gi")

    def test_format_quantity(self):
        assert format_quantity(Decimal(2)) == "2"
        assert format_quantity(Decimal("0.25")) == "250m"
