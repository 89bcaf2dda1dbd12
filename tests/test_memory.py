import pytest

from bmkernel.memory import (
    BUDDY_HEADER_SIZE,
    FREE_LIST_BLOCK_SIZE,
    BuddyAllocator,
    FreeListAllocator,
)

SIZE = 4096


def test_buddy_initially_all_free():
    allocator = BuddyAllocator(SIZE)
    assert allocator.available() == SIZE
    assert allocator.dump().endswith(f"Available Space: {SIZE}\n")


def test_buddy_malloc_and_free_round_trip():
    allocator = BuddyAllocator(SIZE)
    address = allocator.malloc(1)
    assert BUDDY_HEADER_SIZE <= address < SIZE
    assert allocator.available() < SIZE
    allocator.free(address)
    assert allocator.available() == SIZE


def test_buddy_smallest_block_is_64_bytes():
    allocator = BuddyAllocator(SIZE)
    allocator.malloc(1)
    assert allocator.available() == SIZE - 64


def test_buddy_allocations_are_disjoint_and_merge_back():
    allocator = BuddyAllocator(SIZE)
    addresses = [allocator.malloc(n) for n in (10, 100, 200, 30, 500)]
    assert len(set(addresses)) == len(addresses)
    for address in reversed(addresses):
        allocator.free(address)
    assert allocator.available() == SIZE
    assert "2^12" in allocator.dump()


def test_buddy_exhaustion():
    allocator = BuddyAllocator(SIZE)
    addresses = []
    with pytest.raises(MemoryError):
        while True:
            addresses.append(allocator.malloc(1))
    assert len(addresses) * 64 == SIZE
    assert allocator.available() == 0
    for address in addresses:
        allocator.free(address)
    assert allocator.available() == SIZE


def test_buddy_rejects_bad_requests():
    allocator = BuddyAllocator(SIZE)
    with pytest.raises(ValueError):
        allocator.malloc(0)
    with pytest.raises(MemoryError):
        allocator.malloc(SIZE)
    address = allocator.malloc(8)
    allocator.free(address)
    with pytest.raises(ValueError):
        allocator.free(address)


def test_buddy_free_none_is_noop():
    allocator = BuddyAllocator(SIZE)
    allocator.free(None)
    assert allocator.available() == SIZE


def test_free_list_initial_state():
    allocator = FreeListAllocator(SIZE)
    assert allocator.available() == SIZE
    dump = allocator.dump()
    assert dump.startswith("Free List MM dump\n")
    assert dump.count("Block number") == 1


def test_free_list_carves_from_tail():
    allocator = FreeListAllocator(SIZE)
    first = allocator.malloc(1)
    second = allocator.malloc(1)
    assert first == SIZE - FREE_LIST_BLOCK_SIZE
    assert second < first
    assert allocator.available() == SIZE - 4 * FREE_LIST_BLOCK_SIZE


def test_free_list_coalesces_in_any_order():
    allocator = FreeListAllocator(SIZE)
    addresses = [allocator.malloc(n) for n in (20, 40, 60)]
    for address in (addresses[1], addresses[0], addresses[2]):
        allocator.free(address)
    assert allocator.available() == SIZE
    assert allocator.dump().count("Block number") == 1


def test_free_list_exact_fit_empties_list():
    allocator = FreeListAllocator(SIZE)
    address = allocator.malloc(SIZE - FREE_LIST_BLOCK_SIZE)
    assert allocator.available() == 0
    assert "List is empty" in allocator.dump()
    with pytest.raises(MemoryError):
        allocator.malloc(1)
    allocator.free(address)
    assert allocator.available() == SIZE


def test_free_list_rejects_bad_requests():
    allocator = FreeListAllocator(SIZE)
    with pytest.raises(ValueError):
        allocator.malloc(0)
    with pytest.raises(MemoryError):
        allocator.malloc(SIZE)
    address = allocator.malloc(32)
    with pytest.raises(ValueError):
        allocator.free(address + 1)
    allocator.free(address)
    with pytest.raises(ValueError):
        allocator.free(address)
    assert allocator.available() == SIZE