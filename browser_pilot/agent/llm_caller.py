from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, TypeVar

from browser_pilot.agent.concurrency import CancellationToken, cancellable_sleep, suspension_point
from browser_pilot.agent.events import EventEmitter, EventType
from browser_pilot.exceptions import TaskCancelled, is_retryable, status_code_of
from browser_pilot.llm.views import ChatInvokeCompletion, ToolDefinition

if TYPE_CHECKING:
    from browser_pilot.config import PilotConfig
    from browser_pilot.llm.base import BaseChatModel
    from browser_pilot.llm.messages import BaseMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")
RetryObserver = Callable[[int, BaseException], None]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff. Immutable; build one per invocation.

    The delay before attempt k+1 is ``initial_delay * backoff_factor ** (k - 1)``,
    capped at ``max_delay`` and optionally spread by up to ``jitter`` (a fraction).
    ``on_retry(attempt, error)`` is called after each failed attempt that will be retried.
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0
    jitter: float = 0.0
    attempt_timeout: Optional[float] = None
    on_retry: Optional[RetryObserver] = field(default=None, compare=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.backoff_factor < 1:
            raise ValueError("initial_delay must be >= 0 and backoff_factor >= 1")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        delay = min(self.initial_delay * self.backoff_factor ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    @classmethod
    def from_config(cls, config: PilotConfig, max_attempts: Optional[int] = None, **overrides) -> RetryPolicy:
        return cls(
            max_attempts=max_attempts or config.retry_max_attempts,
            initial_delay=config.retry_initial_delay,
            backoff_factor=config.retry_backoff_factor,
            max_delay=config.retry_max_delay,
            attempt_timeout=config.llm_timeout,
            **overrides,
        )


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    token: Optional[CancellationToken] = None,
    classify: Callable[[BaseException], bool] = is_retryable,
) -> T:
    """Run ``fn`` under ``policy``. Re-raises the last error verbatim once retries are exhausted."""
    attempt = 0
    while True:
        attempt += 1
        try:
            call = fn()
            if policy.attempt_timeout is not None:
                call = asyncio.wait_for(call, timeout=policy.attempt_timeout)
            return await suspension_point(token, "model call", call)
        except (asyncio.CancelledError, TaskCancelled):
            raise
        except Exception as e:
            if not classify(e):
                logger.warning(f"Non-retryable error on attempt {attempt}: {type(e).__name__}: {e}")
                raise
            if attempt >= policy.max_attempts:
                logger.warning(f"Giving up after {attempt} attempts: {type(e).__name__}: {e}")
                raise
            delay = policy.delay_after(attempt)
            logger.info(f"Attempt {attempt}/{policy.max_attempts} failed ({type(e).__name__}: {e}); retrying in {delay:.2f}s")
            if policy.on_retry is not None:
                policy.on_retry(attempt, e)
            await cancellable_sleep(token, delay, "backoff")


@dataclass
class LLMRequest:
    messages: Sequence[BaseMessage]
    purpose: str = "step"
    tools: Optional[Sequence[ToolDefinition]] = None
    tool_choice: Optional[str] = None
    max_tokens: Optional[int] = None


class LLMCaller:
    """
    Single entry point for model calls made by a task.
    Wraps every call in retry/backoff, emits generation events and tallies token usage.
    """

    def __init__(self, llm: BaseChatModel, emitter: EventEmitter, token: Optional[CancellationToken] = None):
        self.llm = llm
        self.emitter = emitter
        self.token = token
        self.input_tokens = 0
        self.output_tokens = 0
        self.calls = 0

    async def invoke(self, request: LLMRequest, policy: RetryPolicy) -> ChatInvokeCompletion:
        attempts = 0

        async def _attempt() -> ChatInvokeCompletion:
            nonlocal attempts
            attempts += 1
            self.calls += 1
            try:
                call = self.llm.ainvoke(
                    request.messages,
                    tools=request.tools,
                    tool_choice=request.tool_choice,
                    max_tokens=request.max_tokens,
                )
                if policy.attempt_timeout is not None:
                    return await asyncio.wait_for(call, timeout=policy.attempt_timeout)
                return await call
            except Exception as e:
                will_retry = is_retryable(e) and attempts < policy.max_attempts
                self.emitter.emit(EventType.AI_GENERATION_ERROR, {
                    "purpose": request.purpose,
                    "attempt": attempts,
                    "error": str(e) or type(e).__name__,
                    "statusCode": status_code_of(e),
                    "willRetry": will_retry,
                })
                raise

        # Per-attempt timeout is enforced inside _attempt
        completion = await retry_async(_attempt, replace(policy, attempt_timeout=None), self.token)
        self._record_usage(request, completion, attempts)
        return completion

    def _record_usage(self, request: LLMRequest, completion: ChatInvokeCompletion, attempts: int) -> None:
        usage = completion.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

        data: dict[str, Any] = {
            "purpose": request.purpose,
            "model": completion.model or getattr(self.llm, "model", None),
            "attempts": attempts,
            "toolCalls": [call.name for call in completion.tool_calls],
            "usage": {"inputTokens": input_tokens, "outputTokens": output_tokens},
        }
        self.emitter.emit(EventType.AI_GENERATION, data)
        logger.debug(f"{request.purpose} generation: {input_tokens} in / {output_tokens} out tokens")
