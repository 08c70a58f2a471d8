import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest

from heapscope.memory.conf import PreviewConfig
from heapscope.memory.geometry import HeapVertex, VertexKind
from heapscope.memory.history import HeapHistory
from heapscope.memory.window import HeapWindow
from heapscope.plot.preview import draw_vertices, render_preview


@pytest.fixture
def small_history():
    history = HeapHistory()
    history.record_malloc(0x1000, 0x100)
    history.record_malloc(0x2000, 0x80)
    history.record_free(0x1000)
    history.record_free(0x7000)
    history.set_current_window_to_global()
    return history


class TestDrawVertices:
    """Test cases for drawing a vertex buffer on an axis"""

    def test_counts_triangles_and_markers(self, small_history):
        vertices = []
        small_history.dump_vertices_for_active_window(vertices)
        fig, ax = plt.subplots()
        try:
            triangles, markers = draw_vertices(ax, vertices, PreviewConfig())
        finally:
            plt.close(fig)
        # Two blocks, two triangles each. The unknown free lies above the global area.
        assert triangles == 4
        assert markers == 0

    def test_conflict_markers_drawn(self):
        vertices = [HeapVertex(1.0, 2.0, 1.0, VertexKind.CONFLICT)]
        fig, ax = plt.subplots()
        try:
            assert draw_vertices(ax, vertices, PreviewConfig()) == (0, 1)
            assert len(ax.collections) == 1
        finally:
            plt.close(fig)

    def test_empty_buffer(self):
        fig, ax = plt.subplots()
        try:
            assert draw_vertices(ax, [], PreviewConfig()) == (0, 0)
            assert len(ax.collections) == 0
        finally:
            plt.close(fig)


class TestRenderPreview:
    """Test cases for writing preview images"""

    def test_writes_png(self, small_history, tmp_path):
        output = render_preview(small_history, tmp_path / "preview.png")
        assert output == tmp_path / "preview.png"
        assert output.exists()
        assert output.stat().st_size > 0

    def test_creates_parent_directories(self, small_history, tmp_path):
        output = render_preview(
            small_history,
            str(tmp_path / "nested" / "dir" / "preview.png"),
            PreviewConfig(dpi=50, figure_size=(4, 3), title="nested"),
        )
        assert output.exists()

    def test_empty_history(self, tmp_path):
        output = render_preview(HeapHistory(), tmp_path / "empty.png")
        assert output.exists()

    def test_conflicts_in_view(self, small_history, tmp_path):
        small_history.set_current_window(HeapWindow(0, 0x8000, 0, 10))
        output = render_preview(small_history, tmp_path / "conflicts.svg")
        assert output.read_text(encoding="utf-8").startswith("<?xml")

    def test_figures_are_closed(self, small_history, tmp_path):
        before = len(plt.get_fignums())
        render_preview(small_history, tmp_path / "closed.png")
        assert len(plt.get_fignums()) == before
