from .preview import draw_vertices, render_preview

__all__ = ["draw_vertices", "render_preview"]
