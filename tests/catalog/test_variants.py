"""Tests for variant grouping."""

from shopcatalog.catalog.variants import axis_keys, group_variants, is_identifier

COLOR = "a" * 24
SIZE = "b" * 24
RED = "c" * 24
BLUE = "d" * 24
SMALL = "e" * 24
LARGE = "f" * 24


class TestIdentifiers:
    """Tests for identifier-shaped keys."""

    def test_identifier_shape(self) -> None:
        """Only 24 hexadecimal characters form an identifier."""
        assert is_identifier("5f1e2d3c4b5a69788796a5b4")
        assert is_identifier("ABCDEF0123456789abcdef01")
        assert not is_identifier("price")
        assert not is_identifier("g" * 24)
        assert not is_identifier("a" * 23)
        assert not is_identifier(None)

    def test_axis_keys_first_seen_order(self) -> None:
        """Axis keys keep the order they first appear in."""
        fragments = [{SIZE: SMALL, "price": 1}, {COLOR: RED, SIZE: LARGE}]
        assert axis_keys(fragments) == [SIZE, COLOR]


class TestGroupVariants:
    """Tests for group_variants."""

    def test_groups_per_axis(self) -> None:
        """Each axis lists its options with co-occurring options."""
        fragments = [
            {COLOR: RED, SIZE: SMALL, "price": "10"},
            {COLOR: RED, SIZE: LARGE, "price": "12"},
            {COLOR: BLUE, SIZE: SMALL, "price": "11"},
        ]

        grouped = group_variants(fragments)

        assert list(grouped) == [COLOR, SIZE]
        assert grouped[COLOR] == [
            {COLOR: RED, SIZE: [SMALL, LARGE], "price": "12"},
            {COLOR: BLUE, SIZE: [SMALL], "price": "11"},
        ]
        assert grouped[SIZE] == [
            {SIZE: SMALL, COLOR: [RED, BLUE], "price": "11"},
            {SIZE: LARGE, COLOR: [RED], "price": "12"},
        ]

    def test_scalar_fields_last_write_wins(self) -> None:
        """Ordinary fields take the value of the last fragment sharing the option."""
        fragments = [
            {COLOR: RED, "quantity": 3, "image": "first.png"},
            {COLOR: RED, "quantity": 5},
        ]
        assert group_variants(fragments)[COLOR] == [
            {COLOR: RED, "quantity": 5, "image": "first.png"}
        ]

    def test_co_occurring_options_deduplicated(self) -> None:
        """Repeated co-occurring options are listed once."""
        fragments = [{COLOR: RED, SIZE: SMALL}, {COLOR: RED, SIZE: SMALL}]
        assert group_variants(fragments)[COLOR] == [{COLOR: RED, SIZE: [SMALL]}]

    def test_none_values_skipped(self) -> None:
        """None values are not merged."""
        fragments = [{COLOR: RED, "price": "10"}, {COLOR: RED, "price": None, SIZE: None}]
        assert group_variants(fragments)[COLOR] == [{COLOR: RED, "price": "10"}]

    def test_falsy_options_skipped(self) -> None:
        """Fragments without a selection on an axis are left out of that axis."""
        fragments = [{COLOR: RED}, {SIZE: SMALL}, {COLOR: "", "price": "9"}]
        grouped = group_variants(fragments)
        assert grouped[COLOR] == [{COLOR: RED}]
        assert grouped[SIZE] == [{SIZE: SMALL}]

    def test_no_identifier_keys(self) -> None:
        """Fragments without identifier keys group to nothing."""
        assert group_variants([{"price": "10"}, {"quantity": 2}]) == {}

    def test_empty_input(self) -> None:
        """No fragments group to nothing."""
        assert group_variants([]) == {}
        assert group_variants(None) == {}

    def test_regrouping_flattened_grouping_is_stable(self) -> None:
        """Flattening a grouping back into fragments preserves membership."""
        fragments = [
            {COLOR: RED, SIZE: SMALL},
            {COLOR: RED, SIZE: LARGE},
            {COLOR: BLUE, SIZE: LARGE},
        ]
        grouped = group_variants(fragments)

        flattened = [
            {COLOR: record[COLOR], SIZE: size}
            for record in grouped[COLOR]
            for size in record[SIZE]
        ]
        regrouped = group_variants(flattened)

        def membership(grouping: dict) -> set:
            return {
                (axis, record[axis], other, option)
                for axis, records in grouping.items()
                for record in records
                for other, options in record.items()
                if other != axis
                for option in options
            }

        assert membership(regrouped) == membership(grouped)
