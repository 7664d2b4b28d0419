from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from browser_pilot.agent.llm_caller import LLMCaller, LLMRequest, RetryPolicy
from browser_pilot.agent.prompts import VALIDATE_TOOL, build_validation_prompt
from browser_pilot.agent.views import CompletionQuality, ValidationResult
from browser_pilot.exceptions import LLMException
from browser_pilot.llm.messages import UserMessage
from browser_pilot.llm.parsing import parse_json_lenient, parse_tool_arguments

if TYPE_CHECKING:
    from browser_pilot.agent.state import TaskState
    from browser_pilot.config import PilotConfig

logger = logging.getLogger(__name__)


class Assessor:
    """Judges a finished answer with one retry-wrapped model call. Never mutates the task state."""

    def __init__(self, llm_caller: LLMCaller, config: PilotConfig):
        self.llm_caller = llm_caller
        self.config = config

    async def validate(self, state: TaskState, success_criteria: str) -> ValidationResult:
        prompt = build_validation_prompt(
            task=state.task,
            success_criteria=success_criteria,
            final_answer=state.final_answer or "(no answer given)",
            history=state.conversation.history_text(self.config.validation_history_messages),
        )
        request = LLMRequest(
            messages=[UserMessage(content=prompt)],
            purpose="validation",
            tools=[VALIDATE_TOOL],
            tool_choice=VALIDATE_TOOL.name,
            max_tokens=self.config.max_validation_tokens,
        )
        policy = RetryPolicy.from_config(self.config, max_attempts=self.config.validation_max_attempts)
        completion = await self.llm_caller.invoke(request, policy)

        call = completion.first_tool_call
        if call is not None:
            args = parse_tool_arguments(call.arguments)
        else:
            # Some models answer in plain text; accept a JSON object there too
            parsed = parse_json_lenient(completion.completion or "")
            args = parsed if isinstance(parsed, dict) else {}
        return parse_verdict(args)


def parse_verdict(args: dict) -> ValidationResult:
    raw_quality = args.get("completion_quality", args.get("completionQuality"))
    try:
        quality = CompletionQuality(str(raw_quality).strip().lower())
    except ValueError:
        raise LLMException(f"Validator returned an invalid completion quality: {raw_quality!r}") from None

    assessment = args.get("task_assessment", args.get("taskAssessment")) or ""
    feedback = args.get("feedback") or None
    result = ValidationResult(quality=quality, assessment=str(assessment), feedback=feedback)
    logger.info(f"Validation verdict: {quality.value}")
    return result
