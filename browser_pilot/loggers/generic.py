from typing import Any, Callable, Optional

from browser_pilot.agent.events import WILDCARD, Event, EventEmitter

EventCallback = Callable[[str, dict[str, Any]], None]


class GenericLogger:
	"""Forwards every event to ``callback(event_type, data)``, e.g. for streaming to another service."""

	def __init__(self, callback: EventCallback):
		self.callback = callback
		self.emitter: Optional[EventEmitter] = None

	def initialize(self, emitter: EventEmitter) -> None:
		if self.emitter is not None:
			self.dispose()
		self.emitter = emitter
		emitter.on(WILDCARD, self._handle_event)

	def dispose(self) -> None:
		if self.emitter is not None:
			self.emitter.off(WILDCARD, self._handle_event)
			self.emitter = None

	def _handle_event(self, event: Event) -> None:
		payload = event.to_dict()
		self.callback(payload['type'], payload['data'])
