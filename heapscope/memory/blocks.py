from __future__ import annotations
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from heapscope.memory.window import HeapWindow

HEAP_ID_MAX = 255


class ConflictKind(Enum):
    """Which half of the allocator protocol was violated"""

    ALLOC = "alloc"
    FREE = "free"


@dataclass(slots=True)
class HeapBlock:
    """Represents the lifetime of one allocation"""

    address: int
    size: int
    heap_id: int = field(default=0)
    alloc_tick: int = field(default=0)
    free_tick: Optional[int] = field(default=None)  # None while the block is live

    @property
    def end_address(self) -> int:
        """Get the end address of the block"""
        return self.address + self.size

    def is_live(self) -> bool:
        return self.free_tick is None

    def contains_address(self, address: int) -> bool:
        return self.address <= address < self.end_address

    def is_alive_at(self, tick: int) -> bool:
        """Check whether ``tick`` falls in ``[alloc_tick, free_tick)``"""
        if tick < self.alloc_tick:
            return False
        return self.free_tick is None or tick < self.free_tick

    def intersects(self, window: HeapWindow) -> bool:
        """Check whether the block's address range and lifetime both meet the window"""
        if self.end_address <= window.minimum_address:
            return False
        if self.address > window.maximum_address:
            return False
        if self.alloc_tick > window.maximum_tick:
            return False
        return self.free_tick is None or self.free_tick > window.minimum_tick

    def to_dict(self) -> Dict[str, Any]:
        """Export block data in dictionary form"""
        return {
            "address": self.address,
            "address_hex": hex(self.address),
            "end_address": self.end_address,
            "end_address_hex": hex(self.end_address),
            "size": self.size,
            "heap_id": self.heap_id,
            "alloc_tick": self.alloc_tick,
            "free_tick": self.free_tick,
            "is_live": self.is_live(),
        }


@dataclass(frozen=True, slots=True)
class HeapConflict:
    """An observed violation of the allocator protocol"""

    tick: int
    address: int
    kind: ConflictKind
    heap_id: int = 0

    @property
    def is_alloc(self) -> bool:
        return self.kind is ConflictKind.ALLOC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "address": self.address,
            "address_hex": hex(self.address),
            "heap_id": self.heap_id,
            "kind": self.kind.value,
        }


class ConflictTracker:
    """
    Append-only log of allocator protocol violations in the order they were seen.

    The tracker is for diagnostics and highlighting only; nothing here feeds
    back into how events are applied.
    """

    def __init__(self):
        self._conflicts: List[HeapConflict] = []

    def record(
        self, tick: int, address: int, kind: ConflictKind, heap_id: int = 0
    ) -> HeapConflict:
        conflict = HeapConflict(tick=tick, address=address, kind=kind, heap_id=heap_id)
        self._conflicts.append(conflict)
        return conflict

    def by_kind(self, kind: ConflictKind) -> List[HeapConflict]:
        return [conflict for conflict in self._conflicts if conflict.kind is kind]

    def in_window(self, window: HeapWindow) -> List[HeapConflict]:
        """Get conflicts whose (address, tick) point lies inside the window"""
        return [
            conflict
            for conflict in self._conflicts
            if window.contains_point(conflict.address, conflict.tick)
        ]

    def __getitem__(self, index: int) -> HeapConflict:
        return self._conflicts[index]

    def __iter__(self) -> Iterator[HeapConflict]:
        return iter(self._conflicts)

    def __len__(self) -> int:
        return len(self._conflicts)
