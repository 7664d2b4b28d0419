from typing import Any, Mapping, Optional

from browser_pilot.agent.events import EventEmitter, EventType
from browser_pilot.loggers.base import Logger
from browser_pilot.loggers.filter import FilterLogger

REDACTED = '(redacted)'

# Payload fields that may carry credentials, per event type
SECRET_FIELDS_BY_EVENT_TYPE: dict[EventType, tuple[str, ...]] = {
	EventType.TASK_SETUP: ('pwEndpoint', 'pwCdpEndpoint', 'pwCdpEndpoints'),
}


def redact_secrets(
	event_type: EventType,
	data: Mapping[str, Any],
	fields: Mapping[EventType, tuple[str, ...]] = SECRET_FIELDS_BY_EVENT_TYPE,
) -> Mapping[str, Any]:
	"""Return a shallow copy of ``data`` with secret fields masked.

	Non-empty strings become "(redacted)"; non-empty sequences collapse to a single
	"(redacted)" element so neither the values nor their count leak.
	"""
	secret_fields = fields.get(event_type)
	if not secret_fields:
		return data
	redacted = dict(data)
	for name in secret_fields:
		if name not in redacted:
			continue
		value = redacted[name]
		if isinstance(value, str) and value:
			redacted[name] = REDACTED
		elif isinstance(value, (list, tuple)) and value:
			redacted[name] = [REDACTED]
	return redacted


class SecretsRedactor:
	"""Logger decorator that hides endpoint credentials from the inner logger."""

	def __init__(self, inner: Logger, fields: Optional[Mapping[EventType, tuple[str, ...]]] = None):
		self.fields = dict(fields if fields is not None else SECRET_FIELDS_BY_EVENT_TYPE)
		self._filter = FilterLogger(inner, lambda event_type, data: redact_secrets(event_type, data, self.fields))

	@property
	def inner(self) -> Logger:
		return self._filter.inner

	@property
	def active(self) -> bool:
		return self._filter.active

	def initialize(self, emitter: EventEmitter) -> None:
		self._filter.initialize(emitter)

	def dispose(self) -> None:
		self._filter.dispose()
