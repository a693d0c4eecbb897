"""
tests/test_fieldset.py
Unit tests for accessgen.runtime.fieldset.FieldSet.
"""

from __future__ import annotations

import pytest

from accessgen.runtime.fieldset import FieldSet


class TestFieldSetConstruction:
    def test_empty_by_default(self) -> None:
        fs = FieldSet(5)
        assert fs.size == 5
        assert fs.count_set_bits() == 0
        assert fs.indices() == []

    def test_filled(self) -> None:
        fs = FieldSet.filled(4)
        assert fs.indices() == [0, 1, 2, 3]

    def test_of(self) -> None:
        assert FieldSet.of(6, 4, 1).indices() == [1, 4]

    def test_zero_width(self) -> None:
        assert FieldSet.filled(0).count_set_bits() == 0

    @pytest.mark.parametrize("size, bits", [(-1, 0), (3, 8), (2, -1)])
    def test_rejects_bad_arguments(self, size: int, bits: int) -> None:
        with pytest.raises(ValueError):
            FieldSet(size, bits)


class TestFieldSetDerivation:
    def test_set_returns_new_value(self) -> None:
        base = FieldSet(3)
        changed = base.set(2)
        assert base.indices() == []
        assert changed.indices() == [2]

    def test_set_off(self) -> None:
        assert FieldSet.filled(3).set(1, on=False).indices() == [0, 2]

    def test_out_of_range_index(self) -> None:
        with pytest.raises(IndexError):
            FieldSet(3).set(3)
        with pytest.raises(IndexError):
            FieldSet(3).test(-1)

    def test_union_and_intersection(self) -> None:
        a = FieldSet.of(4, 0, 1)
        b = FieldSet.of(4, 1, 3)
        assert (a | b).indices() == [0, 1, 3]
        assert (a & b).indices() == [1]

    def test_combining_different_widths_fails(self) -> None:
        with pytest.raises(ValueError):
            FieldSet(3) | FieldSet(4)

    def test_equality_and_hash(self) -> None:
        assert FieldSet.of(3, 1) == FieldSet(3).set(1)
        assert FieldSet.of(3, 1) != FieldSet.of(4, 1)
        assert len({FieldSet.of(3, 1), FieldSet(3).set(1)}) == 1

    def test_iterates_in_ascending_order(self) -> None:
        assert list(FieldSet.of(8, 7, 0, 3)) == [0, 3, 7]
