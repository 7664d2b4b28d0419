import logging
from typing import Optional, Union

from browser_pilot.agent.events import EventEmitter, EventHandler, EventType
from browser_pilot.loggers.base import Logger

logger = logging.getLogger(__name__)


class WrapperLogger:
	"""Decorates an inner logger: forwards initialize/dispose and attaches its own listeners.

	``listeners`` are (channel, handler) pairs subscribed on the same emitter the
	inner logger sees, before the inner logger is initialized.
	"""

	def __init__(
		self,
		inner: Optional[Logger] = None,
		listeners: Optional[list[tuple[Union[EventType, str], EventHandler]]] = None,
	):
		self.inner = inner
		self.listeners = list(listeners or [])
		self.emitter: Optional[EventEmitter] = None

	@property
	def active(self) -> bool:
		return self.emitter is not None

	def initialize(self, emitter: EventEmitter) -> None:
		if self.emitter is not None:
			self.dispose()
		self.emitter = emitter
		for channel, handler in self.listeners:
			emitter.on(channel, handler)
		if self.inner is not None:
			self.inner.initialize(emitter)

	def dispose(self) -> None:
		if self.emitter is None:
			return
		emitter, self.emitter = self.emitter, None
		for channel, handler in self.listeners:
			emitter.off(channel, handler)
		if self.inner is not None:
			self.inner.dispose()
