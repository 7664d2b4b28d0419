from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActionKind(str, Enum):
    CLICK = "click"
    HOVER = "hover"
    FILL = "fill"
    FOCUS = "focus"
    CHECK = "check"
    UNCHECK = "uncheck"
    SELECT = "select"
    ENTER = "enter"
    WAIT = "wait"
    GOTO = "goto"
    BACK = "back"
    FORWARD = "forward"
    EXTRACT = "extract"
    DONE = "done"
    ABORT = "abort"

    @property
    def needs_ref(self) -> bool:
        return self in _REF_ACTIONS

    @property
    def is_terminal(self) -> bool:
        return self in (ActionKind.DONE, ActionKind.ABORT)

    @property
    def navigates(self) -> bool:
        return self in (ActionKind.CLICK, ActionKind.ENTER, ActionKind.GOTO, ActionKind.BACK, ActionKind.FORWARD, ActionKind.SELECT)


_REF_ACTIONS = frozenset({
    ActionKind.CLICK, ActionKind.HOVER, ActionKind.FILL, ActionKind.FOCUS,
    ActionKind.CHECK, ActionKind.UNCHECK, ActionKind.SELECT, ActionKind.ENTER,
})


class ActionRequest(BaseModel):
    """One model decision: an action kind, the ref it targets and an optional value."""
    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    ref: Optional[str] = None
    value: Optional[str] = None

    @model_validator(mode="after")
    def _check_arguments(self) -> "ActionRequest":
        if self.kind.needs_ref and not self.ref:
            raise ValueError(f"Action '{self.kind.value}' requires an element ref")
        if self.kind in (ActionKind.FILL, ActionKind.SELECT, ActionKind.GOTO) and self.value is None:
            raise ValueError(f"Action '{self.kind.value}' requires a value")
        return self

    @property
    def signature(self) -> str:
        return f"{self.kind.value}:{self.ref or ''}:{self.value or ''}"

    def describe(self) -> str:
        parts = [self.kind.value]
        if self.ref:
            parts.append(f"ref={self.ref}")
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        return " ".join(parts)


class ActionResult(BaseModel):
    """Outcome of executing one action. Always folded into the conversation, never raised."""
    success: bool
    error: Optional[str] = None
    extracted_content: Optional[str] = None
    navigated: bool = False

    @model_validator(mode="after")
    def _error_implies_failure(self) -> "ActionResult":
        if self.success and self.error:
            raise ValueError("A successful ActionResult cannot carry an error")
        return self

    def as_observation(self, request: ActionRequest) -> str:
        if self.success:
            text = f"Action {request.describe()} succeeded."
            if self.extracted_content:
                text += f"\n{self.extracted_content}"
            return text
        return f"Action {request.describe()} failed: {self.error or 'unknown error'}"


class CompletionQuality(str, Enum):
    FAILED = "failed"
    PARTIAL = "partial"
    COMPLETE = "complete"
    EXCELLENT = "excellent"

    @property
    def is_success(self) -> bool:
        return self in (CompletionQuality.COMPLETE, CompletionQuality.EXCELLENT)


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    quality: CompletionQuality
    assessment: str = ""
    feedback: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.quality.is_success


class TaskPlan(BaseModel):
    success_criteria: str
    plan: str
    url: Optional[str] = None
    action_items: list[str] = Field(default_factory=list)
    search_query: Optional[str] = None


class TaskStats(BaseModel):
    iterations: int = 0
    actions: int = 0
    errors: int = 0
    validation_attempts: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0


class TaskExecutionResult(BaseModel):
    """What a finished task hands back to the caller, whatever the outcome."""
    status: str
    final_answer: Optional[str] = None
    reason: Optional[str] = None
    validation: Optional[ValidationResult] = None
    plan: Optional[str] = None
    success_criteria: Optional[str] = None
    stats: TaskStats = Field(default_factory=TaskStats)

    @property
    def success(self) -> bool:
        return self.status == "completed"

    @property
    def quality(self) -> Optional[CompletionQuality]:
        return self.validation.quality if self.validation else None

    def summary(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "reason": self.reason,
            "quality": self.quality.value if self.quality else None,
            "iterations": self.stats.iterations,
        }
