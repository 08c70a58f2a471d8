from __future__ import annotations
import logging
from typing import List, Optional, Tuple
from sortedcontainers import SortedKeyList

from heapscope.memory.blocks import HeapBlock
from heapscope.memory.events import EventLog
from heapscope.memory.window import HeapWindow
from heapscope.tools.decorator import require_current

logger = logging.getLogger(__name__)

BlockHit = Tuple[int, HeapBlock]


class SpatialIndex:
    """
    Address-ordered view over an EventLog's blocks.

    The index holds arena positions sorted by ``(address, alloc_tick)``. It is
    rebuilt from scratch after the log changes; querying it in between raises
    StaleIndexError.
    """

    def __init__(self, log: EventLog):
        self._log = log
        self._sorted = SortedKeyList(key=self._sort_key)
        self._max_block_size = 0
        self._version: Optional[int] = None

    def _sort_key(self, position: int) -> Tuple[int, int]:
        block = self._log.block(position)
        return block.address, block.alloc_tick

    @property
    def is_stale(self) -> bool:
        return self._version != self._log.version

    @property
    def version(self) -> Optional[int]:
        return self._version

    def rebuild(self):
        """Re-sort every block position and refresh the size bound used for bisecting"""
        self._sorted = SortedKeyList(range(len(self._log)), key=self._sort_key)
        self._max_block_size = max(
            (self._log.block(position).size for position in self._sorted), default=0
        )
        self._version = self._log.version
        logger.debug(
            f"Rebuilt spatial index over {len(self._sorted)} blocks at version {self._version}"
        )

    @require_current("_log")
    def __len__(self) -> int:
        return len(self._sorted)

    @require_current("_log")
    def positions(self) -> List[int]:
        """Block positions in address order"""
        return list(self._sorted)

    def _candidates(self, low_address: int, high_address: int):
        # Anything starting more than one maximal block size below low_address cannot reach it.
        return self._sorted.irange_key(
            min_key=(low_address - self._max_block_size + 1,),
            max_key=(high_address, float("inf")),
        )

    @staticmethod
    def _matches(block: HeapBlock, address: int, tick: int) -> bool:
        return block.contains_address(address) and block.is_alive_at(tick)

    @require_current("_log")
    def block_at_slow(self, address: int, tick: int) -> Optional[BlockHit]:
        """
        Find the block covering ``(address, tick)`` by scanning every block.

        This is the reference implementation. When several blocks match, which
        can happen after a double allocation, the one allocated last wins.
        """
        best: Optional[BlockHit] = None
        for position, block in enumerate(self._log.iter_blocks()):
            if not self._matches(block, address, tick):
                continue
            if best is None or block.alloc_tick > best[1].alloc_tick:
                best = (position, block)
        return best

    @require_current("_log")
    def block_at(self, address: int, tick: int) -> Optional[BlockHit]:
        """Find the block covering ``(address, tick)`` using the address ordering"""
        best: Optional[BlockHit] = None
        for position in self._candidates(address, address):
            block = self._log.block(position)
            if not self._matches(block, address, tick):
                continue
            if best is None or block.alloc_tick > best[1].alloc_tick:
                best = (position, block)
        return best

    @require_current("_log")
    def active_blocks(self, window: HeapWindow) -> List[int]:
        """Positions of blocks intersecting the window on both axes, in address order"""
        return [
            position
            for position in self._candidates(
                window.minimum_address, window.maximum_address
            )
            if self._log.block(position).intersects(window)
        ]
