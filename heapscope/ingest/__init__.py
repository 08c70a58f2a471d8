from .json_stream import (
    EventStreamError,
    EventKind,
    HeapEvent,
    JSONEventStreamLoader,
    parse_event,
    iter_events,
    load_json_stream,
    load_json_file,
)

__all__ = [
    "EventStreamError",
    "EventKind",
    "HeapEvent",
    "JSONEventStreamLoader",
    "parse_event",
    "iter_events",
    "load_json_stream",
    "load_json_file",
]
