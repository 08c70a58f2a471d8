import logging
from pathlib import Path
from typing import List, Optional, Union
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection

from heapscope.memory.conf import PreviewConfig
from heapscope.memory.geometry import HeapVertex, VertexKind, vertex_kinds, vertices_to_array
from heapscope.memory.history import HeapHistory

logger = logging.getLogger(__name__)


def draw_vertices(ax, vertices: List[HeapVertex], config: PreviewConfig):
    """Draw block triangles and conflict markers from a vertex buffer onto ``ax``"""
    positions = vertices_to_array(vertices)
    kinds = vertex_kinds(vertices)

    triangles = positions[kinds == VertexKind.BLOCK.value][:, :2].reshape(-1, 3, 2)
    if len(triangles):
        ax.add_collection(
            PolyCollection(
                triangles,
                facecolors=config.block_color,
                edgecolors="none",
                alpha=config.alpha,
            )
        )

    markers = positions[kinds == VertexKind.CONFLICT.value]
    if len(markers):
        ax.scatter(
            markers[:, 0],
            markers[:, 1],
            marker="x",
            color=config.conflict_color,
            zorder=3,
            label="conflict",
        )
    return len(triangles), len(markers)


def render_preview(
    history: HeapHistory,
    output_path: Union[str, Path],
    config: Optional[PreviewConfig] = None,
) -> Path:
    """
    Render the current window of a history to an image file.

    This consumes exactly the geometry a GPU renderer would receive: the
    window-local vertex buffer from ``dump_vertices_for_active_window``.

    Args:
        history (HeapHistory): The history to draw.
        output_path (str | Path): Destination image; the format follows the suffix.
        config (PreviewConfig): Rendering options.

    Returns:
        Path: The written file.
    """
    config = config or PreviewConfig()
    output_path = Path(output_path)

    vertices: List[HeapVertex] = []
    history.dump_vertices_for_active_window(vertices)
    window = history.current_window

    fig, ax = plt.subplots(figsize=config.figure_size, dpi=config.dpi)
    try:
        triangle_count, marker_count = draw_vertices(ax, vertices, config)
        ax.set_xlim(0, max(window.width, 1.0))
        ax.set_ylim(0, max(window.height, 1.0))
        ax.set_xlabel(f"tick - {window.minimum_tick}")
        ax.set_ylabel(f"address - {hex(window.minimum_address)}")
        ax.set_title(config.title)
        ax.grid(True, alpha=0.3)
        if marker_count:
            ax.legend(loc="upper right")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=config.dpi, bbox_inches="tight")
    finally:
        plt.close(fig)

    logger.info(
        f"Wrote preview with {triangle_count} triangles and {marker_count} conflicts to {output_path}"
    )
    return output_path

