from typing import Tuple
from pydantic import BaseModel, Field


class HistoryConfig(BaseModel):
    """
    HistoryConfig holds the viewing defaults of a HeapHistory.

    Attributes:
        grid_lines (int): Number of grid lines requested per axis when none is given.
        emit_conflict_markers (bool): Whether vertex dumps include conflict markers.
        fit_window_after_load (bool): Whether loading an event stream resets the current window to the global area.

    Example:
        >>> config = HistoryConfig()
        >>> config.grid_lines
        10
    """

    grid_lines: int = Field(
        default=10,
        ge=1,
        title="Grid Lines",
        description="Number of grid lines per axis used by get_grid_window()",
    )
    emit_conflict_markers: bool = Field(
        default=True,
        title="Emit Conflict Markers",
        description="Append a CONFLICT vertex for every conflict inside the window",
    )
    fit_window_after_load: bool = Field(
        default=True,
        title="Fit Window After Load",
        description="Reset the current window to the global area once a stream is loaded",
    )


class PreviewConfig(BaseModel):
    """
    PreviewConfig defines how the matplotlib preview renders emitted geometry.

    Example:
        >>> config = PreviewConfig()
        >>> config.dpi
        100
    """

    figure_size: Tuple[float, float] = Field(
        default=(12.0, 6.0), title="Figure Size", description="Figure size in inches"
    )
    dpi: int = Field(default=100, gt=0, title="DPI", description="Output resolution")
    block_color: str = Field(
        default="#1f77b4", title="Block Color", description="Fill color of block triangles"
    )
    conflict_color: str = Field(
        default="#d62728", title="Conflict Color", description="Marker color of conflicts"
    )
    alpha: float = Field(
        default=0.6, ge=0.0, le=1.0, title="Alpha", description="Fill transparency"
    )
    title: str = Field(default="Heap history", title="Title", description="Plot title")
