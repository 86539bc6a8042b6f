from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Fixed-capacity FIFO over a preallocated slot list.

    ``_head`` is the physical index of the oldest item; appending to a full
    buffer overwrites that slot and advances the head.
    """

    __slots__ = ("_capacity", "_slots", "_head", "_size")

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._slots: list[Optional[T]] = [None] * self._capacity
        self._head = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._size == self._capacity

    def append(self, item: T) -> Optional[T]:
        """Store *item* and return the evicted oldest item, if any."""
        evicted: Optional[T] = None
        if self._size == self._capacity:
            evicted = self._slots[self._head]
            self._slots[self._head] = item
            self._head = (self._head + 1) % self._capacity
        else:
            self._slots[(self._head + self._size) % self._capacity] = item
            self._size += 1
        return evicted

    def clear(self) -> None:
        for i in range(self._capacity):
            self._slots[i] = None
        self._head = 0
        self._size = 0

    def peek_last(self) -> Optional[T]:
        if self._size == 0:
            return None
        return self._slots[(self._head + self._size - 1) % self._capacity]

    def to_tuple(self) -> tuple[T, ...]:
        """Copy the logical contents, oldest first."""
        end = self._head + self._size
        if end <= self._capacity:
            return tuple(self._slots[self._head:end])  # type: ignore[arg-type]
        wrapped = end - self._capacity
        return tuple(self._slots[self._head:] + self._slots[:wrapped])  # type: ignore[operator]

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index: int) -> T:
        size = self._size
        if index < 0:
            index += size
        if index < 0 or index >= size:
            raise IndexError("RingBuffer index out of range")
        item = self._slots[(self._head + index) % self._capacity]
        assert item is not None
        return item

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_tuple())
