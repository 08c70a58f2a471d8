from __future__ import annotations
import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from heapscope.memory.blocks import (
    HEAP_ID_MAX,
    ConflictKind,
    ConflictTracker,
    HeapBlock,
)
from heapscope.memory.window import (
    ADDRESS_MAX,
    TICK_MAX,
    HeapWindow,
    Saturation,
    saturating_addition,
)

logger = logging.getLogger(__name__)

LiveKey = Tuple[int, int]


class EventLog:
    """
    Event-sourced record of heap blocks.

    Blocks live in an append-only arena and are referred to by their position
    in it. ``live`` maps ``(address, heap_id)`` to the position of the block
    that is currently open for that pair. The tick counter and the global area
    belong to the instance, so independent histories can coexist.
    """

    def __init__(self):
        self._blocks: List[HeapBlock] = []
        self._live: Dict[LiveKey, int] = {}
        self._conflicts = ConflictTracker()
        self._current_tick: int = 0
        self._global_area: Optional[HeapWindow] = None
        self._version: int = 0

    @property
    def blocks(self) -> Sequence[HeapBlock]:
        return tuple(self._blocks)

    def iter_blocks(self) -> Iterator[HeapBlock]:
        """Iterate the arena in position order without copying it"""
        return iter(self._blocks)

    def block(self, position: int) -> HeapBlock:
        return self._blocks[position]

    @property
    def conflicts(self) -> ConflictTracker:
        return self._conflicts

    @property
    def current_tick(self) -> int:
        return self._current_tick

    @property
    def version(self) -> int:
        """Bumped on every mutation; lets readers detect stale derived state"""
        return self._version

    @property
    def global_area(self) -> HeapWindow:
        """Bounding window of every recorded event; the zero window while empty"""
        if self._global_area is None:
            return HeapWindow()
        return self._global_area.copy()

    def live_positions(self) -> Dict[LiveKey, int]:
        return dict(self._live)

    def is_live(self, address: int, heap_id: int = 0) -> bool:
        return (address, heap_id) in self._live

    def __len__(self) -> int:
        return len(self._blocks)

    @staticmethod
    def _validate(address: int, heap_id: int, size: int = 0):
        if not 0 <= address <= ADDRESS_MAX:
            raise ValueError(f"Address {address} is outside the 64-bit address space")
        if not 0 <= heap_id <= HEAP_ID_MAX:
            raise ValueError(f"Heap id {heap_id} must be in [0, {HEAP_ID_MAX}]")
        if size < 0:
            raise ValueError(f"Cannot record a block of negative size {size}")

    def _advance_tick(self) -> int:
        tick = self._current_tick
        if tick >= TICK_MAX:
            raise OverflowError(f"Tick counter exhausted at {tick}")
        self._current_tick += 1
        return tick

    def _extend_global_area(
        self, address_low: int, address_high: int, tick_low: int, tick_high: int
    ):
        if self._global_area is None:
            self._global_area = HeapWindow(address_low, address_high, tick_low, tick_high)
        else:
            self._global_area.extend(address_low, address_high, tick_low, tick_high)

    def record_malloc(self, address: int, size: int, heap_id: int = 0) -> int:
        """
        Open a new block at ``address``.

        A malloc on a key that is still live is a double-alloc conflict: it is
        logged and the live entry moves to the new block, leaving the old one
        in history without a free tick.

        Args:
            address (int): Start address of the allocation.
            size (int): Size in bytes. Zero-size allocations are recorded as one byte.
            heap_id (int): Heap the allocation belongs to. Defaults to 0.

        Returns:
            int: Position of the new block in the arena.
        """
        self._validate(address, heap_id, size)
        if size == 0:
            logger.debug(f"Recording zero-size allocation at {hex(address)} as one byte")
            size = 1

        key = (address, heap_id)
        tick = self._advance_tick()
        if key in self._live:
            self._conflicts.record(tick, address, ConflictKind.ALLOC, heap_id)
            logger.warning(
                f"Double allocation at {hex(address)} (heap {heap_id}) on tick {tick}"
            )

        position = len(self._blocks)
        self._blocks.append(
            HeapBlock(address=address, size=size, heap_id=heap_id, alloc_tick=tick)
        )
        self._live[key] = position

        end_address, state = saturating_addition(address, size, ADDRESS_MAX)
        if state is Saturation.OVERFLOW:
            logger.debug(f"Block at {hex(address)} runs past the top of the address space")
        self._extend_global_area(address, end_address, tick, tick)
        self._version += 1
        return position

    def record_free(self, address: int, heap_id: int = 0) -> Optional[int]:
        """
        Close the live block at ``address``.

        Freeing an address with no live block is logged as a conflict and
        otherwise ignored; the tick counter does not move.

        Returns:
            Optional[int]: Position of the closed block, or None on a conflict.
        """
        self._validate(address, heap_id)
        key = (address, heap_id)
        position = self._live.pop(key, None)
        if position is None:
            tick = self._current_tick
            self._conflicts.record(tick, address, ConflictKind.FREE, heap_id)
            logger.warning(
                f"Free of unknown address {hex(address)} (heap {heap_id}) on tick {tick}"
            )
            self._version += 1
            return None

        tick = self._advance_tick()
        block = self._blocks[position]
        block.free_tick = tick
        self._extend_global_area(block.address, block.address, tick, tick)
        self._version += 1
        return position

    def record_realloc(
        self, old_address: int, new_address: int, size: int, heap_id: int = 0
    ) -> int:
        """
        Free ``old_address`` then malloc ``new_address``, one tick each.

        Both halves are checked before either is applied, so a realloc that
        would run out of ticks raises OverflowError and leaves the log untouched.
        """
        self._validate(old_address, heap_id)
        self._validate(new_address, heap_id, size)
        needed = 2 if (old_address, heap_id) in self._live else 1
        if self._current_tick + needed > TICK_MAX:
            raise OverflowError(
                f"Tick counter cannot fit a realloc of {hex(old_address)} at tick {self._current_tick}"
            )
        self.record_free(old_address, heap_id)
        return self.record_malloc(new_address, size, heap_id)
