from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Union

logger = logging.getLogger(__name__)

WILDCARD = "*"


class EventType(str, Enum):
    """Closed taxonomy of events published by a running task."""
    TASK_SETUP = "task:setup"
    TASK_START = "task:start"
    AGENT_STEP = "agent:step"
    AI_GENERATION = "ai:generation"
    AI_GENERATION_ERROR = "ai:generation:error"
    ACTION_EXECUTION = "agent:action:execution"
    ACTION_RESULT = "agent:action:result"
    PAGE_NAVIGATION = "browser:navigation"
    TASK_VALIDATION = "task:validation"
    VALIDATION_ERROR = "task:validation:error"
    STATUS_MESSAGE = "agent:status"
    WAITING = "agent:waiting"
    NETWORK_WAITING = "browser:network:waiting"
    NETWORK_TIMEOUT = "browser:network:timeout"
    BROWSER_SCREENSHOT_CAPTURED_IMAGE = "browser:screenshot:image"
    TASK_METRICS = "task:metrics"
    TASK_METRICS_INCREMENTAL = "task:metrics:incremental"
    TASK_COMPLETED = "task:completed"
    TASK_ABORTED = "task:aborted"


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class Event:
    """A single emitted event. Payloads are frozen on construction."""
    type: EventType
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, "data", _freeze(dict(self.data)))

    def to_dict(self) -> dict[str, Any]:
        """Plain, JSON-friendly copy of the event."""
        return {"type": self.type.value, "timestamp": self.timestamp, "data": _thaw(self.data)}


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


EventHandler = Callable[[Event], None]


class EventEmitter:
    """
    Synchronous in-process publish/subscribe.

    Subscriptions are kept as one ordered list of (channel, handler) pairs, where
    the channel is an EventType or the wildcard. ``emit`` delivers to the handlers
    registered at the moment of the call, in subscription order, before returning.
    A failing handler is logged and does not stop delivery to the others.
    """

    def __init__(self):
        self._subscriptions: list[tuple[Union[EventType, str], EventHandler]] = []

    @staticmethod
    def _channel(event_type: Union[EventType, str]) -> Union[EventType, str]:
        return WILDCARD if event_type == WILDCARD else EventType(event_type)

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self._subscriptions.append((self._channel(event_type), handler))

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        # Remove a single registration, mirroring on()
        entry = (self._channel(event_type), handler)
        if entry in self._subscriptions:
            self._subscriptions.remove(entry)

    def emit(self, event_type: Union[EventType, Event], data: Optional[Mapping[str, Any]] = None) -> Event:
        if isinstance(event_type, Event):
            event = event_type
        else:
            event = Event(type=EventType(event_type), data=data or {})

        # Snapshot so that handlers subscribing during delivery do not see this event
        targets = [h for channel, h in self._subscriptions if channel == WILDCARD or channel is event.type]
        for handler in targets:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler {handler!r} failed for {event.type.value}")
        return event

    def listener_count(self, event_type: Union[EventType, str, None] = None) -> int:
        if event_type is None:
            return len(self._subscriptions)
        channel = self._channel(event_type)
        return sum(1 for c, _ in self._subscriptions if c == channel)

    def remove_all_listeners(self) -> None:
        self._subscriptions.clear()
