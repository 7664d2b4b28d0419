import logging
from typing import Any, Callable, Mapping, Optional

from browser_pilot.agent.events import WILDCARD, Event, EventEmitter, EventType
from browser_pilot.loggers.base import Logger

logger = logging.getLogger(__name__)

Transform = Callable[[EventType, Mapping[str, Any]], Mapping[str, Any]]


class FilterLogger:
	"""
	Transforms every event before the inner logger sees it.

	On ``initialize`` a private emitter is created and handed to the inner logger.
	The filter subscribes to the outer emitter's wildcard channel, applies
	``transform`` to each payload and re-emits the result on the private emitter.
	The outer payload itself is never modified.
	"""

	def __init__(self, inner: Logger, transform: Transform):
		self.inner = inner
		self.transform = transform
		self.emitter: Optional[EventEmitter] = None
		self.filtered_emitter: Optional[EventEmitter] = None

	@property
	def active(self) -> bool:
		return self.emitter is not None

	def initialize(self, emitter: EventEmitter) -> None:
		if self.emitter is not None:
			self.dispose()
		self.emitter = emitter
		self.filtered_emitter = EventEmitter()
		emitter.on(WILDCARD, self._handle_event)
		self.inner.initialize(self.filtered_emitter)

	def dispose(self) -> None:
		if self.emitter is None:
			return
		self.emitter.off(WILDCARD, self._handle_event)
		self.inner.dispose()
		self.emitter = None
		self.filtered_emitter = None

	def _handle_event(self, event: Event) -> None:
		if self.filtered_emitter is None:
			return
		data = self.transform(event.type, event.data)
		self.filtered_emitter.emit(Event(type=event.type, data=data, timestamp=event.timestamp))
