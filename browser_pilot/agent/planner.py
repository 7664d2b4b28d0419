from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from browser_pilot.agent.llm_caller import LLMCaller, LLMRequest, RetryPolicy
from browser_pilot.agent.prompts import PLAN_TOOL, build_plan_prompt
from browser_pilot.agent.views import TaskPlan
from browser_pilot.exceptions import LLMException
from browser_pilot.llm.messages import UserMessage
from browser_pilot.llm.parsing import parse_tool_arguments

if TYPE_CHECKING:
    from browser_pilot.config import PilotConfig

logger = logging.getLogger(__name__)


class Planner:
    """Produces the plan, success criteria and (optionally) a starting URL with a single model call."""

    def __init__(self, llm_caller: LLMCaller, config: PilotConfig):
        self.llm_caller = llm_caller
        self.config = config

    async def plan(
        self,
        task: str,
        starting_url: Optional[str] = None,
        guardrails: Optional[str] = None,
        search_enabled: bool = False,
    ) -> TaskPlan:
        request = LLMRequest(
            messages=[UserMessage(content=build_plan_prompt(task, starting_url, guardrails, search_enabled))],
            purpose="planning",
            tools=[PLAN_TOOL],
            tool_choice=PLAN_TOOL.name,
            max_tokens=self.config.max_planning_tokens,
        )
        policy = RetryPolicy.from_config(self.config, max_attempts=self.config.planning_max_attempts)
        completion = await self.llm_caller.invoke(request, policy)

        call = completion.first_tool_call
        args = parse_tool_arguments(call.arguments) if call is not None else {}
        plan_text = args.get("plan") or (completion.completion or "").strip()
        if not plan_text:
            raise LLMException("Planner returned neither a plan nor any text")

        url = args.get("url") or None
        if url is not None and not isinstance(url, str):
            logger.warning(f"Ignoring planner URL that is not a string: {url!r}")
            url = None
        if url and not url.startswith(("http://", "https://")):
            logger.warning(f"Ignoring planner URL without http(s) scheme: {url!r}")
            url = None
        items = args.get("action_items", args.get("actionItems")) or []

        plan = TaskPlan(
            success_criteria=args.get("success_criteria", args.get("successCriteria")) or task,
            plan=plan_text,
            url=url,
            action_items=[str(item) for item in items if item][:6],
            search_query=str(args["search_query"]) if args.get("search_query") else None,
        )
        logger.info(f"Plan ready ({len(plan.action_items)} action items, url={plan.url})")
        return plan
