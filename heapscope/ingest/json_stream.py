"""
JSON event stream adapter.

Reads one JSON object per line and replays it into a HeapHistory, e.g.::

    {"type": "alloc", "address": "0x1000", "size": 16, "heap": 0}
    {"type": "free", "address": "0x1000"}
    {"type": "realloc", "old_address": "0x1000", "new_address": "0x2000", "size": 32}
"""

import json
import logging
from enum import Enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, TextIO, Union

from heapscope.memory.history import HeapHistory

logger = logging.getLogger(__name__)


class EventStreamError(ValueError):
    """Raised when an event stream cannot be decoded"""


class EventKind(Enum):
    MALLOC = "malloc"
    FREE = "free"
    REALLOC = "realloc"


_KIND_ALIASES = {
    "malloc": EventKind.MALLOC,
    "alloc": EventKind.MALLOC,
    "free": EventKind.FREE,
    "realloc": EventKind.REALLOC,
}


@dataclass(slots=True)
class HeapEvent:
    """A decoded heap event, ready to be applied to a history"""

    kind: EventKind
    address: int
    size: int = field(default=0)
    heap_id: int = field(default=0)
    old_address: Optional[int] = field(default=None)  # realloc only

    def apply(self, history: HeapHistory):
        if self.kind is EventKind.MALLOC:
            history.record_malloc(self.address, self.size, self.heap_id)
        elif self.kind is EventKind.FREE:
            history.record_free(self.address, self.heap_id)
        else:
            history.record_realloc(self.old_address, self.address, self.size, self.heap_id)


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise EventStreamError(f"'{name}' must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            pass
    raise EventStreamError(f"'{name}' must be an integer or numeric string, got {value!r}")


def _require(obj: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in obj:
            return obj[name]
    raise EventStreamError(f"Missing field '{names[0]}' in event {obj}")


def parse_event(obj: Dict[str, Any]) -> HeapEvent:
    """
    Decode one JSON object into a HeapEvent.

    Args:
        obj (Dict[str, Any]): The decoded JSON object.

    Returns:
        HeapEvent: The event.

    Example:
        >>> parse_event({"type": "alloc", "address": "0x10", "size": 4}).address
        16
    """
    if not isinstance(obj, dict):
        raise EventStreamError(f"Expected a JSON object, got {type(obj).__name__}")
    kind_name = str(_require(obj, "type")).strip().lower()
    kind = _KIND_ALIASES.get(kind_name)
    if kind is None:
        raise EventStreamError(f"Unknown event type '{kind_name}'")

    heap_id = _parse_int(obj.get("heap", 0), "heap")
    if kind is EventKind.FREE:
        return HeapEvent(kind, _parse_int(_require(obj, "address"), "address"), heap_id=heap_id)

    size = _parse_int(_require(obj, "size"), "size")
    if kind is EventKind.MALLOC:
        return HeapEvent(kind, _parse_int(_require(obj, "address"), "address"), size, heap_id)
    return HeapEvent(
        kind,
        _parse_int(_require(obj, "new_address", "newaddress"), "new_address"),
        size,
        heap_id,
        old_address=_parse_int(_require(obj, "old_address", "oldaddress"), "old_address"),
    )


def iter_events(lines: Iterable[str]) -> Iterator[HeapEvent]:
    """Decode a line-oriented stream, skipping blank lines"""
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield parse_event(json.loads(line))
        except json.JSONDecodeError as e:
            raise EventStreamError(f"Line {line_number}: invalid JSON: {e}") from e
        except EventStreamError as e:
            raise EventStreamError(f"Line {line_number}: {e}") from e


class JSONEventStreamLoader:
    """Replays a JSON event stream into a HeapHistory"""

    def __init__(self, history: Optional[HeapHistory] = None):
        self.history = history if history is not None else HeapHistory()
        self.logger = logging.getLogger(__name__)

    def load(self, stream: TextIO) -> HeapHistory:
        count = 0
        with self.history.batch():
            for event in iter_events(stream):
                try:
                    event.apply(self.history)
                except ValueError as e:
                    raise EventStreamError(f"Event {count + 1} rejected: {e}") from e
                count += 1

        if self.history.config.fit_window_after_load:
            self.history.set_current_window_to_global()
        self.logger.info(
            f"Loaded {count} events: {len(self.history.event_log)} blocks, "
            f"{len(self.history.conflicts)} conflicts"
        )
        return self.history


def load_json_stream(stream: TextIO, history: Optional[HeapHistory] = None) -> HeapHistory:
    return JSONEventStreamLoader(history).load(stream)


def load_json_file(
    path: Union[str, Path], history: Optional[HeapHistory] = None
) -> HeapHistory:
    path = Path(path)
    logger.debug(f"Reading heap events from {path}")
    with path.open("r", encoding="utf-8") as stream:
        return load_json_stream(stream, history)
