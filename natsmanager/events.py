"""Recording of Kubernetes-style events for API objects."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


@dataclass(frozen=True)
class Event:
    """A single recorded event."""

    obj: Any
    type: str
    reason: str
    message: str


@dataclass
class EventRecorder:
    """Keeps the events recorded for API objects, in order."""

    events: list[Event] = field(default_factory=list)

    def eventf(self, obj: Any, event_type: str, reason: str, msg_fmt: str, *args: Any) -> Event:
        """Record an event whose message is ``msg_fmt`` formatted with ``args``."""
        message = msg_fmt % args if args else msg_fmt
        event = Event(obj=obj, type=event_type, reason=reason, message=message)
        self.events.append(event)
        return event


def _reason_text(reason: Any) -> str:
    if isinstance(reason, enum.Enum):
        return str(reason.value)
    return str(reason)


def normal(recorder: EventRecorder, obj: Any, reason: Any, msg_fmt: str, *args: Any) -> Event:
    """Record a normal event for ``obj``."""
    return recorder.eventf(obj, EVENT_TYPE_NORMAL, _reason_text(reason), msg_fmt, *args)


def warn(recorder: EventRecorder, obj: Any, reason: Any, msg_fmt: str, *args: Any) -> Event:
    """Record a warning event for ``obj``."""
    return recorder.eventf(obj, EVENT_TYPE_WARNING, _reason_text(reason), msg_fmt, *args)