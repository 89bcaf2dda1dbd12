"""Simulated kernel heap allocators: a buddy system and a first-fit free list.

Addresses are byte offsets from the start of the managed region.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Optional

MIN_ALLOC_LOG2 = 6
MAX_LEVELS = 30 - MIN_ALLOC_LOG2
BUDDY_HEADER_SIZE = 24
FREE_LIST_BLOCK_SIZE = 16


@dataclass
class _BuddyHeader:
    level: int
    is_free: bool


def _floor_log2(n: int) -> int:
    return n.bit_length() - 1


def _level_for(nbytes: int) -> int:
    exponent = _floor_log2(nbytes)
    if exponent < MIN_ALLOC_LOG2:
        return 0
    exponent -= MIN_ALLOC_LOG2
    is_power_of_two = nbytes & (nbytes - 1) == 0
    return exponent if is_power_of_two else exponent + 1


class BuddyAllocator:
    """Binary buddy allocator with 64-byte minimum blocks."""

    def __init__(self, size: int):
        if size < 1 << MIN_ALLOC_LOG2:
            raise ValueError(f"Memory size must be at least {1 << MIN_ALLOC_LOG2} bytes")
        self.size = size
        self.levels = min(_floor_log2(size) - MIN_ALLOC_LOG2 + 1, MAX_LEVELS)
        self._headers: dict[int, _BuddyHeader] = {}
        self._free_lists: list[list[int]] = [[] for _ in range(self.levels)]
        self._add_to_level(0, self.levels - 1)

    def _add_to_level(self, node: int, level: int) -> None:
        self._headers[node] = _BuddyHeader(level, True)
        self._free_lists[level].append(node)

    def _buddy_of(self, node: int) -> int:
        return node ^ (1 << (MIN_ALLOC_LOG2 + self._headers[node].level))

    def malloc(self, nbytes: int) -> int:
        """Allocate nbytes and return the address of the usable memory."""
        if nbytes <= 0:
            raise ValueError("Invalid amount of memory")
        needed = nbytes + 2 * BUDDY_HEADER_SIZE
        if needed > self.size:
            raise MemoryError("NO MEMORY!")
        min_level = _level_for(needed)
        level = next(
            (lvl for lvl in range(min_level, self.levels) if self._free_lists[lvl]),
            None,
        )
        if level is None:
            raise MemoryError("NO MEMORY!")

        node = self._free_lists[level].pop()
        header = self._headers[node]
        while level > min_level:
            header.level -= 1
            self._add_to_level(self._buddy_of(node), level - 1)
            level -= 1
        header.is_free = False
        return node + BUDDY_HEADER_SIZE

    def free(self, address: Optional[int]) -> None:
        """Release a block, merging it with free buddies."""
        if address is None:
            return
        node = address - BUDDY_HEADER_SIZE
        header = self._headers.get(node)
        if header is None or header.is_free:
            raise ValueError(f"Address {address:#x} is not an allocated block")

        header.is_free = True
        buddy_node = self._buddy_of(node)
        buddy = self._headers.get(buddy_node)
        while (
            header.level != self.levels - 1
            and buddy is not None
            and buddy.level == header.level
            and buddy.is_free
        ):
            self._free_lists[buddy.level].remove(buddy_node)
            node &= ~(1 << (MIN_ALLOC_LOG2 + header.level))
            header = self._headers[node]
            header.level += 1
            buddy_node = self._buddy_of(node)
            buddy = self._headers.get(buddy_node)
        self._free_lists[header.level].append(node)

    def available(self) -> int:
        """Total bytes held in free blocks."""
        return sum(
            len(blocks) << (level + MIN_ALLOC_LOG2)
            for level, blocks in enumerate(self._free_lists)
        )

    def dump(self) -> str:
        parts = ["Buddy MM dump\n"]
        for level in reversed(range(self.levels)):
            blocks = self._free_lists[level]
            if not blocks:
                continue
            parts.append(f"    Free blocks of size: 2^{level + MIN_ALLOC_LOG2}\n")
            for number, node in enumerate(blocks):
                header = self._headers[node]
                parts.append(f"        Block number: {number}\n")
                parts.append(f"            level: {header.level}\n")
                parts.append("            state: free" if header.is_free else "            state: used")
            parts.append("\n\n")
        parts.append(f"Available Space: {self.available()}\n")
        return "".join(parts)


@dataclass
class _Span:
    start: int
    size: int


class FreeListAllocator:
    """First-fit allocator over an address-ordered list of free spans.

    Memory is counted in 16-byte blocks; each allocation carries one header block.
    """

    def __init__(self, size: int):
        total = size // FREE_LIST_BLOCK_SIZE
        if total < 1:
            raise ValueError(f"Memory size must be at least {FREE_LIST_BLOCK_SIZE} bytes")
        self.size = size
        self._free: list[_Span] = [_Span(0, total)]
        self._allocated: dict[int, int] = {}

    def malloc(self, nbytes: int) -> int:
        """Allocate nbytes and return the address of the usable memory."""
        if nbytes <= 0:
            raise ValueError("Invalid amount of memory")
        nblocks = -(-nbytes // FREE_LIST_BLOCK_SIZE) + 1
        for position, span in enumerate(self._free):
            if span.size < nblocks:
                continue
            if span.size == nblocks:
                del self._free[position]
                start = span.start
            else:
                span.size -= nblocks
                start = span.start + span.size
            self._allocated[start] = nblocks
            return (start + 1) * FREE_LIST_BLOCK_SIZE
        raise MemoryError("NO MEMORY!")

    def free(self, address: Optional[int]) -> None:
        """Release a block, joining it with adjacent free spans."""
        if address is None:
            return
        if address % FREE_LIST_BLOCK_SIZE:
            raise ValueError(f"Address {address:#x} is not an allocated block")
        start = address // FREE_LIST_BLOCK_SIZE - 1
        size = self._allocated.pop(start, None)
        if size is None:
            raise ValueError(f"Address {address:#x} is not an allocated block")

        span = _Span(start, size)
        position = bisect.bisect_left(self._free, start, key=lambda s: s.start)
        if position < len(self._free) and start + size == self._free[position].start:
            span.size += self._free[position].size
            del self._free[position]
        if position > 0:
            previous = self._free[position - 1]
            if previous.start + previous.size == start:
                previous.size += span.size
                return
        self._free.insert(position, span)

    def available(self) -> int:
        """Total bytes held in free spans."""
        return sum(span.size for span in self._free) * FREE_LIST_BLOCK_SIZE

    def dump(self) -> str:
        parts = ["Free List MM dump\n", f"    Available memory: {self.available()}\n"]
        if not self._free:
            parts.append("    List is empty\n")
        for number, span in enumerate(self._free):
            parts.append(f"    Block number {number}\n")
            parts.append(f"        Base: {span.start * FREE_LIST_BLOCK_SIZE:x}\n")
            parts.append(f"        Free blocks: {span.size}\n")
        return "".join(parts)