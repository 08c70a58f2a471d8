"""
Tabular views of a heap history built on polars.

Blocks and conflicts are exported one row each so that lifetimes, leaks and
per-heap usage can be analysed with ordinary DataFrame operations.
"""

import polars as pl
from typing import Dict, List, Any

from heapscope.memory.events import EventLog
from heapscope.memory.window import ADDRESS_MAX

BLOCK_SCHEMA = {
    "position": pl.UInt32,
    "address": pl.UInt64,
    "end_address": pl.UInt64,
    "size": pl.UInt64,
    "heap_id": pl.UInt8,
    "alloc_tick": pl.UInt32,
    "free_tick": pl.UInt32,
}

CONFLICT_SCHEMA = {
    "tick": pl.UInt32,
    "address": pl.UInt64,
    "heap_id": pl.UInt8,
    "kind": pl.Utf8,
}


def blocks_frame(log: EventLog) -> pl.DataFrame:
    """
    One row per recorded block.

    ``lifetime`` is null for blocks that are still open, ``leaked`` marks
    blocks that were orphaned by a double allocation on the same key.
    """
    live = set(log.live_positions().values())
    rows: List[Dict[str, Any]] = []
    for position, block in enumerate(log.iter_blocks()):
        rows.append(
            {
                "position": position,
                "address": block.address,
                "end_address": min(block.end_address, ADDRESS_MAX),
                "size": min(block.size, ADDRESS_MAX),
                "heap_id": block.heap_id,
                "alloc_tick": block.alloc_tick,
                "free_tick": block.free_tick,
            }
        )
    frame = pl.DataFrame(rows, schema=BLOCK_SCHEMA)
    return frame.with_columns(
        (pl.col("free_tick").cast(pl.Int64) - pl.col("alloc_tick").cast(pl.Int64)).alias(
            "lifetime"
        ),
        (
            pl.col("free_tick").is_null()
            & ~pl.col("position").is_in(pl.Series(sorted(live), dtype=pl.UInt32))
        ).alias("leaked"),
    )


def conflicts_frame(log: EventLog) -> pl.DataFrame:
    """One row per conflict, in the order the conflicts were detected"""
    return pl.DataFrame(
        [
            {
                "tick": conflict.tick,
                "address": conflict.address,
                "heap_id": conflict.heap_id,
                "kind": conflict.kind.value,
            }
            for conflict in log.conflicts
        ],
        schema=CONFLICT_SCHEMA,
    )


def heap_summary(log: EventLog) -> pl.DataFrame:
    """Per heap id: block count, live count, bytes allocated and mean lifetime of closed blocks"""
    frame = blocks_frame(log)
    return (
        frame.group_by("heap_id")
        .agg(
            pl.len().alias("blocks"),
            pl.col("free_tick").is_null().sum().alias("open_blocks"),
            pl.col("leaked").sum().alias("leaked_blocks"),
            pl.col("size").sum().alias("total_bytes"),
            pl.col("lifetime").mean().alias("mean_lifetime"),
        )
        .sort("heap_id")
    )
