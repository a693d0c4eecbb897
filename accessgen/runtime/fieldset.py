# File: accessgen/runtime/fieldset.py
"""
FieldSet: the field mask handed to update and upsert operations.

A ``FieldSet`` is an immutable bitset over a fixed universe of column indices.
Bit ``i`` stands for the ``i``-th column in the table's generation-time column
order, so generated code can declare ``ORDER_TOTAL_FIELD_INDEX`` style
constants and callers combine them::

    mask = FieldSet.of(ORDER_FIELD_COUNT, ORDER_ID_FIELD_INDEX, ORDER_TOTAL_FIELD_INDEX)
    client.update_order(order, mask)

Operations that "change" a set return a new one.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List


class FieldSet:
    """Fixed-width set of column indices."""

    __slots__ = ("_size", "_bits")

    def __init__(self, size: int, bits: int = 0) -> None:
        if size < 0:
            raise ValueError(f"FieldSet size must be non-negative, got {size}.")
        if bits < 0 or bits >> size:
            raise ValueError(f"bits {bits:#x} do not fit in a FieldSet of size {size}.")
        self._size: int = size
        self._bits: int = bits

    # -- Constructors ---------------------------------------------------------

    @classmethod
    def filled(cls, size: int) -> "FieldSet":
        """A set with every one of *size* bits on."""
        return cls(size, (1 << size) - 1)

    @classmethod
    def of(cls, size: int, *indices: int) -> "FieldSet":
        """A set of width *size* with exactly *indices* on."""
        return cls(size).with_indices(indices)

    # -- Queries --------------------------------------------------------------

    @property
    def size(self) -> int:
        return self._size

    def test(self, index: int) -> bool:
        self._check_index(index)
        return bool(self._bits >> index & 1)

    def count_set_bits(self) -> int:
        return bin(self._bits).count("1")

    def indices(self) -> List[int]:
        """Set bit positions in ascending order."""
        return [i for i in range(self._size) if self._bits >> i & 1]

    # -- Derivation -----------------------------------------------------------

    def set(self, index: int, on: bool = True) -> "FieldSet":
        self._check_index(index)
        if on:
            return FieldSet(self._size, self._bits | (1 << index))
        return FieldSet(self._size, self._bits & ~(1 << index))

    def with_indices(self, indices: Iterable[int]) -> "FieldSet":
        bits: int = self._bits
        for index in indices:
            self._check_index(index)
            bits |= 1 << index
        return FieldSet(self._size, bits)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._size:
            raise IndexError(
                f"field index {index} out of range for FieldSet of size {self._size}"
            )

    # -- Dunder ---------------------------------------------------------------

    def __or__(self, other: "FieldSet") -> "FieldSet":
        if not isinstance(other, FieldSet):
            return NotImplemented
        if other._size != self._size:
            raise ValueError("cannot combine FieldSets of different sizes")
        return FieldSet(self._size, self._bits | other._bits)

    def __and__(self, other: "FieldSet") -> "FieldSet":
        if not isinstance(other, FieldSet):
            return NotImplemented
        if other._size != self._size:
            raise ValueError("cannot combine FieldSets of different sizes")
        return FieldSet(self._size, self._bits & other._bits)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldSet):
            return NotImplemented
        return self._size == other._size and self._bits == other._bits

    def __hash__(self) -> int:
        return hash((self._size, self._bits))

    def __repr__(self) -> str:
        return f"FieldSet(size={self._size}, indices={self.indices()})"
