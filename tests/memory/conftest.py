"""
Shared pytest configuration and fixtures for heap history tests.
"""

import random
import pytest
from typing import List, Tuple

from heapscope.memory.events import EventLog
from heapscope.memory.history import HeapHistory
from heapscope.memory.window import HeapWindow


@pytest.fixture
def empty_log():
    """Create an empty EventLog"""
    return EventLog()


@pytest.fixture
def history():
    """Create an empty HeapHistory"""
    return HeapHistory()


@pytest.fixture
def malloc_free_history():
    """One block allocated at tick 0 and freed at tick 1"""
    history = HeapHistory()
    history.record_malloc(0x1000, 16, 0)
    history.record_free(0x1000, 0)
    return history


@pytest.fixture
def layered_history():
    """
    A small history with a freed block, a live block, a double allocation
    and a free of an unknown address.

    tick 0: malloc 0x1000 +0x100
    tick 1: malloc 0x2000 +0x80
    tick 2: free   0x1000
    tick 3: malloc 0x3000 +0x40
    tick 4: malloc 0x3000 +0x40   (double alloc)
    tick 5: free of 0x9000 is a conflict and does not advance the tick
    tick 5: free   0x3000         (closes the second block)
    """
    history = HeapHistory()
    history.record_malloc(0x1000, 0x100)
    history.record_malloc(0x2000, 0x80)
    history.record_free(0x1000)
    history.record_malloc(0x3000, 0x40)
    history.record_malloc(0x3000, 0x40)
    history.record_free(0x9000)
    history.record_free(0x3000)
    return history


def random_event_history(
    seed: int, operations: int = 300, slots: int = 24, heaps: int = 2
) -> HeapHistory:
    """
    Build a history from a seeded random mix of malloc, free and realloc.

    Addresses are drawn from a small set of overlapping slots so that double
    allocations, unknown frees and overlapping blocks all show up.
    """
    rng = random.Random(seed)
    history = HeapHistory()
    with history.batch():
        for _ in range(operations):
            address = 0x1000 + rng.randrange(slots) * 0x20
            heap_id = rng.randrange(heaps)
            choice = rng.random()
            if choice < 0.5:
                history.record_malloc(address, rng.choice([8, 16, 32, 64, 200]), heap_id)
            elif choice < 0.85:
                history.record_free(address, heap_id)
            else:
                new_address = 0x1000 + rng.randrange(slots) * 0x20
                history.record_realloc(address, new_address, rng.choice([16, 48]), heap_id)
    return history


def random_windows(seed: int, count: int, area: HeapWindow) -> List[HeapWindow]:
    rng = random.Random(seed)
    windows = []
    for _ in range(count):
        low_address = rng.randint(area.minimum_address, area.maximum_address)
        high_address = rng.randint(low_address, area.maximum_address)
        low_tick = rng.randint(area.minimum_tick, area.maximum_tick)
        high_tick = rng.randint(low_tick, area.maximum_tick)
        windows.append(HeapWindow(low_address, high_address, low_tick, high_tick))
    return windows


def random_points(seed: int, count: int, area: HeapWindow) -> List[Tuple[int, int]]:
    rng = random.Random(seed)
    return [
        (
            rng.randint(area.minimum_address, area.maximum_address),
            rng.randint(area.minimum_tick, area.maximum_tick + 1),
        )
        for _ in range(count)
    ]


@pytest.fixture
def make_random_history():
    return random_event_history


@pytest.fixture
def make_random_windows():
    return random_windows


@pytest.fixture
def make_random_points():
    return random_points
