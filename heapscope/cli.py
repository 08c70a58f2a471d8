#!/usr/bin/env python3
"""
Heap history command line interface.
Loads a JSON event stream and either summarises it or renders a preview image.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from heapscope.analyzer.summary import heap_summary
from heapscope.ingest.json_stream import EventStreamError, load_json_file
from heapscope.memory.conf import PreviewConfig
from heapscope.memory.history import HeapHistory
from heapscope.plot.preview import render_preview


class HeapScopeCLI:
    """Command-line entry point for inspecting heap event streams."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def setup_logging(self, level: str = "INFO"):
        """Setup logging configuration."""
        log_level = getattr(logging, level.upper(), logging.INFO)
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    def load(self, path: str) -> Optional[HeapHistory]:
        try:
            return load_json_file(path)
        except (OSError, EventStreamError) as e:
            self.logger.error(f"Failed to load {path}: {e}")
            print(f"❌ Failed to load {path}: {e}", file=sys.stderr)
            return None

    def cmd_summary(self, args) -> int:
        """Print counts, bounds and per-heap usage of a trace."""
        history = self.load(args.trace)
        if history is None:
            return 1

        summary = history.summary()
        if args.json:
            print(json.dumps(summary, indent=2))
            return 0

        area = summary["global_area"]
        print(f"📊 Heap history: {args.trace}")
        print("=" * 60)
        print(f"Blocks: {summary['blocks']} ({summary['live_blocks']} live)")
        print(f"Ticks: {summary['current_tick']}")
        print(
            f"Conflicts: {summary['alloc_conflicts']} double alloc, "
            f"{summary['free_conflicts']} unknown free"
        )
        print(
            f"Address range: {area['minimum_address_hex']} - {area['maximum_address_hex']}"
        )
        print(f"Tick range: {area['minimum_tick']} - {area['maximum_tick']}")
        print()
        print(heap_summary(history.event_log))
        return 0

    def cmd_render(self, args) -> int:
        """Render the global area, optionally zoomed on its centre and snapped to the grid."""
        history = self.load(args.trace)
        if history is None:
            return 1

        history.set_current_window_to_global()
        if args.zoom != 1.0:
            history.zoom_to_point(0.5, 0.5, args.zoom, args.zoom)
        grid = history.get_grid_window(args.grid_lines)
        self.logger.debug(f"Grid window: {grid}")
        history.set_current_window(grid.to_window())

        config = PreviewConfig(dpi=args.dpi, title=args.title or args.trace)
        output = render_preview(history, args.output, config)
        print(f"✅ Preview written to {output}")
        return 0

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="heapscope", description="Inspect heap allocation event streams"
        )
        parser.add_argument(
            "--log-level",
            default="WARNING",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            help="Logging verbosity",
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        summary = subparsers.add_parser("summary", help="Summarise a trace")
        summary.add_argument("trace", help="JSON-lines event stream")
        summary.add_argument("--json", action="store_true", help="Emit JSON")
        summary.set_defaults(handler=self.cmd_summary)

        render = subparsers.add_parser("render", help="Render a preview image")
        render.add_argument("trace", help="JSON-lines event stream")
        render.add_argument("output", help="Output image path (png, svg, pdf)")
        render.add_argument("--zoom", type=float, default=1.0, help="Zoom factor around the centre")
        render.add_argument("--grid-lines", type=int, default=10, help="Grid lines per axis")
        render.add_argument("--dpi", type=int, default=100, help="Output resolution")
        render.add_argument("--title", default=None, help="Plot title")
        render.set_defaults(handler=self.cmd_render)
        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        args = self.build_parser().parse_args(argv)
        self.setup_logging(args.log_level)
        try:
            return args.handler(args)
        except ValueError as e:
            self.logger.error(f"{args.command} failed: {e}")
            print(f"❌ {e}", file=sys.stderr)
            return 2


def main(argv: Optional[List[str]] = None) -> int:
    return HeapScopeCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
