from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from heapscope.memory.blocks import ConflictKind, ConflictTracker, HeapBlock
from heapscope.memory.conf import HistoryConfig
from heapscope.memory.events import EventLog
from heapscope.memory.geometry import GeometryEmitter, HeapVertex
from heapscope.memory.spatial import BlockHit, SpatialIndex
from heapscope.memory.window import (
    ADDRESS_MAX,
    TICK_MAX,
    ContinuousHeapWindow,
    HeapWindow,
    Saturation,
)


def _grid_spacing(span: int, number_of_lines: int) -> int:
    """Smallest power of two that splits ``span`` into at most ``number_of_lines`` cells"""
    target = max(1, -(-span // number_of_lines))
    return 1 << (target - 1).bit_length()


def _align(low: int, high: int, spacing: int, limit: int) -> Tuple[int, int]:
    aligned_low = (low // spacing) * spacing
    aligned_high = -(-high // spacing) * spacing
    return aligned_low, min(aligned_high, limit)


class HeapHistory:
    """
    Query surface over a heap event history.

    Ties an EventLog to the SpatialIndex built over it, the current view
    window and the geometry emitter. Every record_* call mutates the log and
    rebuilds the index as one step, so queries always see a consistent index.
    Use ``batch()`` to apply many events with a single rebuild at the end.
    """

    def __init__(self, config: Optional[HistoryConfig] = None):
        self.config = config or HistoryConfig()
        self.logger = logging.getLogger(__name__)
        self._log = EventLog()
        self._index = SpatialIndex(self._log)
        self._emitter = GeometryEmitter(self._log, self._index)
        self._current_window = ContinuousHeapWindow()
        self._grid_window = ContinuousHeapWindow()
        self._batch_depth = 0
        self._index.rebuild()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _after_mutation(self):
        if self._batch_depth == 0:
            self._index.rebuild()

    @contextmanager
    def batch(self) -> Iterator[HeapHistory]:
        """Defer the index rebuild until the outermost batch exits"""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._index.rebuild()
                self.logger.debug(
                    f"Batch finished with {len(self._log)} blocks at tick {self._log.current_tick}"
                )

    def record_malloc(self, address: int, size: int, heap_id: int = 0) -> int:
        position = self._log.record_malloc(address, size, heap_id)
        self._after_mutation()
        return position

    def record_free(self, address: int, heap_id: int = 0) -> Optional[int]:
        position = self._log.record_free(address, heap_id)
        self._after_mutation()
        return position

    def record_realloc(
        self, old_address: int, new_address: int, size: int, heap_id: int = 0
    ) -> int:
        position = self._log.record_realloc(old_address, new_address, size, heap_id)
        self._after_mutation()
        return position

    # ------------------------------------------------------------------
    # History accessors
    # ------------------------------------------------------------------

    @property
    def event_log(self) -> EventLog:
        return self._log

    @property
    def blocks(self) -> Sequence[HeapBlock]:
        return self._log.blocks

    @property
    def conflicts(self) -> ConflictTracker:
        return self._log.conflicts

    @property
    def current_tick(self) -> int:
        return self._log.current_tick

    @property
    def global_area(self) -> HeapWindow:
        return self._log.global_area

    def get_minimum_address(self) -> int:
        return self._log.global_area.minimum_address

    def get_maximum_address(self) -> int:
        return self._log.global_area.maximum_address

    def get_minimum_tick(self) -> int:
        return self._log.global_area.minimum_tick

    def get_maximum_tick(self) -> int:
        return self._log.global_area.maximum_tick

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_block_at(self, address: int, tick: int) -> Optional[BlockHit]:
        return self._index.block_at(address, tick)

    def get_block_at_slow(self, address: int, tick: int) -> Optional[BlockHit]:
        return self._index.block_at_slow(address, tick)

    def get_active_blocks(self) -> List[int]:
        """Positions of the blocks visible in the current window"""
        return self._index.active_blocks(self._current_window.to_window())

    def dump_vertices_for_active_window(self, vertices: List[HeapVertex]) -> int:
        """Append triangles for the current window to ``vertices``; return how many"""
        return self._emitter.dump_vertices(
            self._current_window.to_window(),
            vertices,
            include_conflicts=self.config.emit_conflict_markers,
        )

    def conflict_positions(self) -> List[Tuple[float, float]]:
        return self._emitter.conflict_positions(self._current_window.to_window())

    # ------------------------------------------------------------------
    # Window handling
    # ------------------------------------------------------------------

    @property
    def current_window(self) -> ContinuousHeapWindow:
        return self._current_window

    def set_current_window(self, window: HeapWindow):
        self._current_window.reset(window)

    def set_current_window_to_global(self):
        self.logger.debug(f"Resetting current window to global area {self._log.global_area}")
        self._current_window.reset(self._log.global_area)

    def pan_current_window(self, dx: float, dy: float) -> Tuple[Saturation, Saturation]:
        return self._current_window.pan(dx, dy)

    def zoom_to_point(
        self, dx: float, dy: float, how_much_x: float, how_much_y: float
    ) -> Tuple[Saturation, Saturation]:
        return self._current_window.zoom_to_point(dx, dy, how_much_x, how_much_y)

    def get_grid_window(self, number_of_lines: Optional[int] = None) -> ContinuousHeapWindow:
        """
        Get the current window widened to whole grid cells.

        The spacing on each axis is the smallest power of two that divides the
        window's span into at most ``number_of_lines`` cells.

        Args:
            number_of_lines (int): Grid lines per axis. Defaults to ``config.grid_lines``.

        Returns:
            ContinuousHeapWindow: The grid window, owned by this history.
        """
        lines = number_of_lines if number_of_lines is not None else self.config.grid_lines
        if lines < 1:
            raise ValueError(f"Number of grid lines must be at least 1, got {lines}")

        window = self._current_window
        address_spacing = _grid_spacing(
            window.maximum_address - window.minimum_address, lines
        )
        tick_spacing = _grid_spacing(window.maximum_tick - window.minimum_tick, lines)
        low_address, high_address = _align(
            window.minimum_address, window.maximum_address, address_spacing, ADDRESS_MAX
        )
        low_tick, high_tick = _align(
            window.minimum_tick, window.maximum_tick, tick_spacing, TICK_MAX
        )
        self._grid_window.reset(HeapWindow(low_address, high_address, low_tick, high_tick))
        return self._grid_window

    def summary(self) -> Dict[str, Any]:
        """Get overall counts and bounds of the history"""
        conflicts = self._log.conflicts
        return {
            "blocks": len(self._log),
            "live_blocks": len(self._log.live_positions()),
            "current_tick": self._log.current_tick,
            "alloc_conflicts": len(conflicts.by_kind(ConflictKind.ALLOC)),
            "free_conflicts": len(conflicts.by_kind(ConflictKind.FREE)),
            "global_area": self._log.global_area.to_dict(),
            "current_window": self._current_window.to_window().to_dict(),
        }
