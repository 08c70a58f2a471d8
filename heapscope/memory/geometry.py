from __future__ import annotations
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple
import numpy as np

from heapscope.memory.blocks import HeapBlock
from heapscope.memory.events import EventLog
from heapscope.memory.spatial import SpatialIndex
from heapscope.memory.window import HeapWindow

logger = logging.getLogger(__name__)

BLOCK_LAYER = 0.0
CONFLICT_LAYER = 1.0


class VertexKind(Enum):
    BLOCK = 0
    CONFLICT = 1


@dataclass(slots=True)
class HeapVertex:
    """One vertex in window-local space: x is ticks, y is addresses, z is the layer"""

    x: float
    y: float
    z: float = field(default=BLOCK_LAYER)
    kind: VertexKind = field(default=VertexKind.BLOCK)
    heap_id: int = field(default=0)

    @property
    def position(self) -> Tuple[float, float, float]:
        return self.x, self.y, self.z


class GeometryEmitter:
    """Turns the blocks visible in a window into triangles for a renderer"""

    def __init__(self, log: EventLog, index: SpatialIndex):
        self._log = log
        self._index = index

    @staticmethod
    def block_to_vertices(
        block: HeapBlock, window: HeapWindow, vertices: List[HeapVertex]
    ) -> int:
        """
        Append two triangles covering the block's address range and lifetime.

        A block that is still live is drawn up to the window's maximum tick.

        Args:
            block (HeapBlock): The block to draw.
            window (HeapWindow): The window whose minimum is the local origin.
            vertices (List[HeapVertex]): Output buffer.

        Returns:
            int: Number of vertices appended, always 6.
        """
        end_tick = block.free_tick if block.free_tick is not None else window.maximum_tick
        left = float(block.alloc_tick - window.minimum_tick)
        right = float(end_tick - window.minimum_tick)
        bottom = float(block.address - window.minimum_address)
        top = float(block.end_address - window.minimum_address)

        corners = [
            (left, bottom),
            (right, bottom),
            (left, top),
            (right, bottom),
            (right, top),
            (left, top),
        ]
        for x, y in corners:
            vertices.append(
                HeapVertex(x, y, BLOCK_LAYER, VertexKind.BLOCK, block.heap_id)
            )
        return len(corners)

    def conflict_positions(self, window: HeapWindow) -> List[Tuple[float, float]]:
        """Window-local (tick, address) points of the conflicts inside the window"""
        return [
            (
                float(conflict.tick - window.minimum_tick),
                float(conflict.address - window.minimum_address),
            )
            for conflict in self._log.conflicts.in_window(window)
        ]

    def dump_vertices(
        self,
        window: HeapWindow,
        vertices: List[HeapVertex],
        include_conflicts: bool = True,
    ) -> int:
        """Append geometry for every active block, then conflict markers; return the count"""
        emitted = 0
        for position in self._index.active_blocks(window):
            emitted += self.block_to_vertices(self._log.block(position), window, vertices)

        if include_conflicts:
            for conflict in self._log.conflicts.in_window(window):
                vertices.append(
                    HeapVertex(
                        float(conflict.tick - window.minimum_tick),
                        float(conflict.address - window.minimum_address),
                        CONFLICT_LAYER,
                        VertexKind.CONFLICT,
                        conflict.heap_id,
                    )
                )
                emitted += 1

        logger.debug(f"Emitted {emitted} vertices for window {window}")
        return emitted


def vertices_to_array(vertices: Sequence[HeapVertex]) -> np.ndarray:
    """Pack vertex positions into an (n, 3) float64 array"""
    if not vertices:
        return np.empty((0, 3), dtype=np.float64)
    return np.array([vertex.position for vertex in vertices], dtype=np.float64)


def vertex_kinds(vertices: Sequence[HeapVertex]) -> np.ndarray:
    return np.array([vertex.kind.value for vertex in vertices], dtype=np.uint8)
