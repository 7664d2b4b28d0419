from typing import Protocol, runtime_checkable

from browser_pilot.agent.events import EventEmitter


@runtime_checkable
class Logger(Protocol):
	"""Something that observes a task's event stream.

	``initialize`` subscribes to the emitter; initializing again first disposes the
	previous subscription. ``dispose`` removes every subscription before returning
	and is safe to call more than once.
	"""

	def initialize(self, emitter: EventEmitter) -> None: ...

	def dispose(self) -> None: ...
