import json
import logging
import sys
from pathlib import Path
from typing import IO, Optional, Union

from browser_pilot.agent.events import WILDCARD, Event, EventEmitter

logger = logging.getLogger(__name__)


class JSONLogger:
	"""Writes one JSON object per event (type, timestamp, data) to a text stream or file.

	A file given by path is opened on ``initialize`` (append mode) and closed on ``dispose``.
	"""

	def __init__(self, target: Union[str, Path, IO[str], None] = None):
		self.target = target
		self.emitter: Optional[EventEmitter] = None
		self._stream: Optional[IO[str]] = None
		self._owns_stream = False

	def initialize(self, emitter: EventEmitter) -> None:
		if self.emitter is not None:
			self.dispose()
		if isinstance(self.target, (str, Path)):
			path = Path(self.target)
			path.parent.mkdir(parents=True, exist_ok=True)
			self._stream = path.open('a', encoding='utf-8')
			self._owns_stream = True
		else:
			self._stream = self.target or sys.stdout
			self._owns_stream = False
		self.emitter = emitter
		emitter.on(WILDCARD, self._handle_event)

	def dispose(self) -> None:
		if self.emitter is None:
			return
		self.emitter.off(WILDCARD, self._handle_event)
		self.emitter = None
		if self._owns_stream and self._stream is not None:
			self._stream.close()
		self._stream = None

	def _handle_event(self, event: Event) -> None:
		if self._stream is None:
			return
		self._stream.write(json.dumps(event.to_dict(), ensure_ascii=False, default=str) + '\n')
		self._stream.flush()
