"""Observer-style event channel for non-fatal clone notifications."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Literal, Optional

EventType = Literal["info", "warn"]


@dataclass(frozen=True)
class Event:
    """A single notification emitted while cloning.

    Attributes:
        type: Either "info" or "warn"
        code: Stable identifier for the condition (e.g. "USING_CACHE")
        message: Human-readable description
        reference: Canonical specifier the event relates to, if any
        dest: Destination directory, if relevant
    """

    type: EventType
    code: str
    message: str
    reference: Optional[str] = None
    dest: Optional[str] = None


Handler = Callable[[Event], None]


class EventEmitter:
    """Dispatches events to handlers registered per event type."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, event_type: EventType, handler: Handler) -> None:
        """Register ``handler`` for events of ``event_type``."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: EventType, handler: Handler) -> None:
        """Remove a previously registered handler (no-op if absent)."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: Event) -> None:
        for handler in list(self._handlers.get(event.type, [])):
            handler(event)

    def info(self, code: str, message: str, **kwargs) -> None:
        self.emit(Event("info", code, message, **kwargs))

    def warn(self, code: str, message: str, **kwargs) -> None:
        self.emit(Event("warn", code, message, **kwargs))

    def verbose_info(self, code: str, message: str, **kwargs) -> None:
        """Emit an info event only when the emitter is verbose."""
        if self.verbose:
            self.info(code, message, **kwargs)

    def forward(self, other: "EventEmitter") -> None:
        """Re-emit every event from ``other`` through this emitter."""
        other.on("info", self.emit)
        other.on("warn", self.emit)
