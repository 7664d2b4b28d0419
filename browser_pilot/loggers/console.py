import logging
from typing import Any, Callable, Mapping, Optional

from browser_pilot.agent.events import WILDCARD, Event, EventEmitter, EventType
from browser_pilot.logging_config import RESULT_LEVEL

logger = logging.getLogger('browser_pilot.events')


def _setup(data: Mapping[str, Any]) -> str:
	parts = [f"🚀 Task: {data.get('task')}", f"browser={data.get('browserName')}"]
	if data.get('url'):
		parts.append(f"url={data['url']}")
	if data.get('pwEndpoint'):
		parts.append(f"endpoint={data['pwEndpoint']}")
	if data.get('proxy'):
		parts.append(f"proxy={data['proxy']}")
	if data.get('vision'):
		parts.append('vision=on')
	return ' '.join(parts)


def _start(data: Mapping[str, Any]) -> str:
	items = data.get('actionItems') or ()
	lines = [f"🎯 Plan for: {data.get('task')}", str(data.get('plan') or '')]
	lines += [f'  {i}. {item}' for i, item in enumerate(items, 1)]
	return '\n'.join(lines)


def _action(data: Mapping[str, Any]) -> str:
	target = f" [{data['ref']}]" if data.get('ref') else ''
	value = f" {data['value']!r}" if data.get('value') is not None else ''
	return f"🛠️ {data.get('action')}{target}{value}"


def _result(data: Mapping[str, Any]) -> str:
	if data.get('success'):
		return f"✅ {data.get('action')} succeeded"
	return f"❌ {data.get('action')} failed: {data.get('error')}"


def _completed(data: Mapping[str, Any]) -> str:
	if data.get('success'):
		return f"📄 Completed ({data.get('quality')}): {data.get('finalAnswer')}"
	return f"💥 Failed: {data.get('reason')}"


_FORMATTERS: dict[EventType, tuple[int, Callable[[Mapping[str, Any]], str]]] = {
	EventType.TASK_SETUP: (logging.INFO, _setup),
	EventType.TASK_START: (logging.INFO, _start),
	EventType.AGENT_STEP: (logging.INFO, lambda d: f"📍 Step {d.get('iteration')}/{d.get('maxIterations')}"),
	EventType.ACTION_EXECUTION: (logging.INFO, _action),
	EventType.ACTION_RESULT: (logging.INFO, _result),
	EventType.PAGE_NAVIGATION: (logging.INFO, lambda d: f"🔗 {d.get('title') or ''} {d.get('url')}".strip()),
	EventType.STATUS_MESSAGE: (logging.DEBUG, lambda d: f"ℹ️ {d.get('message')}"),
	EventType.WAITING: (logging.INFO, lambda d: f"⏳ Waiting {d.get('seconds')}s"),
	EventType.NETWORK_WAITING: (logging.DEBUG, lambda d: '🌐 Waiting for network to settle'),
	EventType.NETWORK_TIMEOUT: (logging.DEBUG, lambda d: f"🌐 Network still busy after {d.get('timeout')}s"),
	EventType.AI_GENERATION: (
		logging.DEBUG,
		lambda d: f"🧠 {d.get('purpose')}: {(d.get('usage') or {}).get('inputTokens')} in / {(d.get('usage') or {}).get('outputTokens')} out",
	),
	EventType.AI_GENERATION_ERROR: (logging.WARNING, lambda d: f"⚠️ Model call failed ({d.get('purpose')}): {d.get('error')}"),
	EventType.TASK_VALIDATION: (logging.INFO, lambda d: f"🔍 Validation: {d.get('quality')} {d.get('assessment') or ''}".rstrip()),
	EventType.VALIDATION_ERROR: (logging.WARNING, lambda d: f"⚠️ Validation: {d.get('feedback') or d.get('error')}"),
	EventType.TASK_METRICS: (
		logging.INFO,
		lambda d: f"📊 {d.get('stepCount')} steps, {d.get('totalInputTokens')} in / {d.get('totalOutputTokens')} out tokens",
	),
	EventType.TASK_COMPLETED: (RESULT_LEVEL, _completed),
	EventType.TASK_ABORTED: (RESULT_LEVEL, lambda d: f"🛑 Aborted: {d.get('reason')}"),
}


class ConsoleLogger:
	"""Renders events as readable lines on the ``browser_pilot.events`` logger."""

	def __init__(self, target: Optional[logging.Logger] = None):
		self.target = target or logger
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
		entry = _FORMATTERS.get(event.type)
		if entry is None:
			return
		level, render = entry
		self.target.log(level, render(event.data))
