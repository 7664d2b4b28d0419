import logging
import time
from collections import Counter
from typing import Any, Optional

from browser_pilot.agent.events import WILDCARD, Event, EventEmitter, EventType
from browser_pilot.loggers.base import Logger
from browser_pilot.loggers.wrapper import WrapperLogger

logger = logging.getLogger(__name__)


class MetricsCollector:
	"""
	Counts events and token usage while forwarding to an (optional) inner logger.

	Emits TASK_METRICS_INCREMENTAL on the observed emitter after every AGENT_STEP,
	and TASK_METRICS once the task completes or aborts.
	"""

	def __init__(self, inner: Optional[Logger] = None):
		self.event_counts: Counter[str] = Counter()
		self.step_count = 0
		self.ai_generation_count = 0
		self.ai_generation_error_count = 0
		self.total_input_tokens = 0
		self.total_output_tokens = 0
		self._wrapper = WrapperLogger(
			inner,
			listeners=[
				(WILDCARD, self._count_event),
				(EventType.AGENT_STEP, self._on_agent_step),
				(EventType.AI_GENERATION, self._on_ai_generation),
				(EventType.AI_GENERATION_ERROR, self._on_ai_generation_error),
				(EventType.TASK_COMPLETED, self._on_task_finished),
				(EventType.TASK_ABORTED, self._on_task_finished),
			],
		)

	@property
	def inner(self) -> Optional[Logger]:
		return self._wrapper.inner

	@property
	def active(self) -> bool:
		return self._wrapper.active

	def initialize(self, emitter: EventEmitter) -> None:
		self._wrapper.dispose()
		self.reset()
		self._wrapper.initialize(emitter)

	def dispose(self) -> None:
		self._wrapper.dispose()

	def reset(self) -> None:
		self.event_counts.clear()
		self.step_count = 0
		self.ai_generation_count = 0
		self.ai_generation_error_count = 0
		self.total_input_tokens = 0
		self.total_output_tokens = 0

	def snapshot(self) -> dict[str, Any]:
		return {
			'timestamp': time.time(),
			'eventCounts': dict(self.event_counts),
			'stepCount': self.step_count,
			'aiGenerationCount': self.ai_generation_count,
			'aiGenerationErrorCount': self.ai_generation_error_count,
			'totalInputTokens': self.total_input_tokens,
			'totalOutputTokens': self.total_output_tokens,
		}

	def emit_task_metrics(self, incremental: bool = False, **extra: Any) -> None:
		emitter = self._wrapper.emitter
		if emitter is None:
			return
		event_type = EventType.TASK_METRICS_INCREMENTAL if incremental else EventType.TASK_METRICS
		emitter.emit(event_type, {**self.snapshot(), **extra})

	def _count_event(self, event: Event) -> None:
		self.event_counts[event.type.value] += 1

	def _on_agent_step(self, event: Event) -> None:
		self.step_count += 1
		self.emit_task_metrics(incremental=True, iteration=event.data.get('iteration'))

	def _on_ai_generation(self, event: Event) -> None:
		usage = event.data.get('usage') or {}
		self.ai_generation_count += 1
		self.total_input_tokens += usage.get('inputTokens') or 0
		self.total_output_tokens += usage.get('outputTokens') or 0

	def _on_ai_generation_error(self, event: Event) -> None:
		self.ai_generation_error_count += 1

	def _on_task_finished(self, event: Event) -> None:
		self.emit_task_metrics(iteration=event.data.get('iterations'))
		logger.debug(f'Task metrics: {self.step_count} steps, {self.ai_generation_count} generations')
