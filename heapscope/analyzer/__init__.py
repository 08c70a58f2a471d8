from .summary import blocks_frame, conflicts_frame, heap_summary

__all__ = ["blocks_frame", "conflicts_frame", "heap_summary"]
