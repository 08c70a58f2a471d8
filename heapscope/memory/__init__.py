from .window import (
    ADDRESS_MAX,
    TICK_MAX,
    Saturation,
    saturating_addition,
    HeapWindow,
    ContinuousHeapWindow,
)
from .blocks import HEAP_ID_MAX, ConflictKind, HeapBlock, HeapConflict, ConflictTracker
from .events import EventLog
from .spatial import SpatialIndex
from .geometry import (
    VertexKind,
    HeapVertex,
    GeometryEmitter,
    vertices_to_array,
    vertex_kinds,
)
from .conf import HistoryConfig, PreviewConfig
from .history import HeapHistory

__all__ = [
    "ADDRESS_MAX",
    "TICK_MAX",
    "HEAP_ID_MAX",
    "Saturation",
    "saturating_addition",
    "HeapWindow",
    "ContinuousHeapWindow",
    "ConflictKind",
    "HeapBlock",
    "HeapConflict",
    "ConflictTracker",
    "EventLog",
    "SpatialIndex",
    "VertexKind",
    "HeapVertex",
    "GeometryEmitter",
    "vertices_to_array",
    "vertex_kinds",
    "HistoryConfig",
    "PreviewConfig",
    "HeapHistory",
]
