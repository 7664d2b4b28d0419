from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from browser_pilot.agent.views import TaskStats, ValidationResult
from browser_pilot.agent.message_manager.service import MessageManager

logger = logging.getLogger(__name__)


def agent_log(level: int, task_id: str, iteration: int, message: str, **kwargs):
    log_extras = {"task_id": task_id, "iteration": iteration}
    logger.log(level, message, extra=log_extras, **kwargs)


class TaskStatus(str, Enum):
    SETUP = "setup"
    PLANNING = "planning"
    STEPPING = "stepping"
    VALIDATING = "validating"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TaskStatus.COMPLETED, TaskStatus.ABORTED, TaskStatus.FAILED})

# Legal transitions; anything else is a programming error
TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.SETUP: frozenset({TaskStatus.PLANNING, TaskStatus.ABORTED, TaskStatus.FAILED}),
    TaskStatus.PLANNING: frozenset({TaskStatus.STEPPING, TaskStatus.ABORTED, TaskStatus.FAILED}),
    TaskStatus.STEPPING: frozenset({TaskStatus.VALIDATING, TaskStatus.ABORTED, TaskStatus.FAILED}),
    TaskStatus.VALIDATING: frozenset({TaskStatus.STEPPING, TaskStatus.COMPLETED, TaskStatus.ABORTED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ABORTED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


@dataclass
class TaskState:
    """Mutable state of one task. Owned and mutated by the orchestrator only."""
    task: str
    starting_url: Optional[str] = None
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: TaskStatus = TaskStatus.SETUP
    history: list[TaskStatus] = field(default_factory=lambda: [TaskStatus.SETUP])
    conversation: MessageManager = field(default_factory=MessageManager)

    iteration: int = 0
    consecutive_errors: int = 0
    total_errors: int = 0
    actions_executed: int = 0
    validation_attempts: int = 0

    plan: Optional[str] = None
    success_criteria: Optional[str] = None
    action_items: list[str] = field(default_factory=list)
    final_answer: Optional[str] = None
    reason: Optional[str] = None
    last_validation: Optional[ValidationResult] = None
    last_feedback: Optional[str] = None

    input_tokens: int = 0
    output_tokens: int = 0
    recent_signatures: deque = field(default_factory=lambda: deque(maxlen=16))

    def transition(self, new_status: TaskStatus) -> TaskStatus:
        if new_status not in TRANSITIONS[self.status]:
            raise RuntimeError(f"Illegal transition {self.status.value} -> {new_status.value}")
        previous = self.status
        self.status = new_status
        self.history.append(new_status)
        return previous

    def record_action_outcome(self, success: bool) -> None:
        self.actions_executed += 1
        if success:
            self.consecutive_errors = 0
        else:
            self.consecutive_errors += 1
            self.total_errors += 1

    def record_error(self) -> None:
        self.consecutive_errors += 1
        self.total_errors += 1

    def repeat_count(self, signature: str) -> int:
        """How many times ``signature`` occurs consecutively at the end of the action log."""
        count = 0
        for previous in reversed(self.recent_signatures):
            if previous != signature:
                break
            count += 1
        return count

    def stats(self, duration_ms: int = 0) -> TaskStats:
        return TaskStats(
            iterations=self.iteration,
            actions=self.actions_executed,
            errors=self.total_errors,
            validation_attempts=self.validation_attempts,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            duration_ms=duration_ms,
        )
