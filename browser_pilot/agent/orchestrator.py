from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError

from browser_pilot.agent.actuator import Actuator
from browser_pilot.agent.assessor import Assessor
from browser_pilot.agent.concurrency import CancellationToken, suspension_point
from browser_pilot.agent.events import EventEmitter, EventType
from browser_pilot.agent.llm_caller import LLMCaller, LLMRequest, RetryPolicy
from browser_pilot.agent.message_manager.service import MessageManager
from browser_pilot.agent.message_manager.utils import save_conversation
from browser_pilot.agent.perception import Perception
from browser_pilot.agent.planner import Planner
from browser_pilot.agent.prompts import (
    WEB_SEARCH_TOOL,
    SystemPrompt,
    build_repetition_warning,
    build_snapshot_message,
    build_step_error_prompt,
    build_task_and_plan_prompt,
    build_validation_feedback_prompt,
    step_tools,
)
from browser_pilot.agent.state import TaskState, TaskStatus, agent_log
from browser_pilot.agent.views import ActionKind, ActionRequest, TaskExecutionResult
from browser_pilot.exceptions import BrowserActionError, ConversationBudgetExceeded, TaskCancelled
from browser_pilot.llm.parsing import parse_tool_arguments
from browser_pilot.llm.views import ChatInvokeCompletion, ToolCall
from browser_pilot.timing import Stopwatch

if TYPE_CHECKING:
    from browser_pilot.agent.settings import AgentSettings
    from browser_pilot.browser.views import BrowserCapability
    from browser_pilot.search.service import SearchService

logger = logging.getLogger(__name__)

BLANK_PAGE = "about:blank"

# Tool argument that carries the ActionRequest value, per action kind
_VALUE_ARGUMENT = {
    ActionKind.FILL: "value",
    ActionKind.SELECT: "value",
    ActionKind.GOTO: "url",
    ActionKind.WAIT: "seconds",
    ActionKind.EXTRACT: "description",
    ActionKind.DONE: "result",
    ActionKind.ABORT: "reason",
}


def action_from_tool_call(call: Optional[ToolCall]) -> tuple[Optional[ActionRequest], Optional[str]]:
    """Turn the model's tool call into an ActionRequest, or explain why it cannot be used."""
    if call is None:
        return None, "No tool was called. Call exactly one tool every turn."
    try:
        kind = ActionKind(call.name.strip().lower())
    except ValueError:
        return None, f"Unknown tool '{call.name}'."

    args = parse_tool_arguments(call.arguments)
    value = args.get(_VALUE_ARGUMENT.get(kind, "value"), args.get("value"))
    ref = args.get("ref")
    try:
        request = ActionRequest(
            kind=kind,
            ref=str(ref) if ref else None,
            value=str(value) if value is not None else None,
        )
    except ValidationError as e:
        return None, f"Invalid arguments for {kind.value}: {e.errors()[0]['msg']}"
    return request, None


class Orchestrator:
    """
    Runs one task through SETUP -> PLANNING -> STEPPING <-> VALIDATING -> {COMPLETED | ABORTED | FAILED}.

    The loop is strictly sequential. It suspends only inside model calls, browser
    actions and timers, each of which checks the cancellation token. Every
    transition emits STATUS_MESSAGE first; every terminal outcome emits exactly
    one final event (TASK_COMPLETED for COMPLETED and FAILED, TASK_ABORTED for ABORTED).
    """

    def __init__(
        self,
        settings: AgentSettings,
        browser: BrowserCapability,
        emitter: EventEmitter,
        perception: Perception,
        search_service: Optional[SearchService] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.settings = settings
        self.config = settings.config
        self.browser = browser
        self.emitter = emitter
        self.perception = perception
        self.search_service = search_service
        self.token = token or CancellationToken()

        self.llm_caller = LLMCaller(settings.llm, emitter, self.token)
        self.planner = Planner(self.llm_caller, self.config)
        self.assessor = Assessor(self.llm_caller, self.config)
        self.actuator = Actuator(browser, perception, self.llm_caller, emitter, self.config, self.token)

        self.state = TaskState(
            task=settings.task,
            starting_url=settings.starting_url,
            conversation=MessageManager(self.config.max_conversation_messages),
        )
        self._stopwatch = Stopwatch()

    # region - public

    async def run(self) -> TaskExecutionResult:
        self._stopwatch = Stopwatch()
        try:
            await self._setup()
            if not self.state.status.is_terminal:
                await self._plan()
            while not self.state.status.is_terminal:
                if self.state.status is TaskStatus.STEPPING:
                    await self._step()
                elif self.state.status is TaskStatus.VALIDATING:
                    await self._validate()
        except TaskCancelled:
            self._finish(TaskStatus.ABORTED, self.token.reason)
        except ConversationBudgetExceeded as e:
            self._finish(TaskStatus.ABORTED, f"Conversation budget exceeded: {e}")
        except Exception as e:
            self._log(logging.ERROR, f"Unexpected error: {type(e).__name__}: {e}", exc_info=True)
            self._finish(TaskStatus.FAILED, f"Unexpected error: {e}")
        finally:
            if self.settings.save_conversation_path:
                try:
                    await save_conversation(
                        self.state.conversation.messages, self.settings.save_conversation_path, self.state.final_answer
                    )
                except OSError as e:
                    self._log(logging.WARNING, f"Could not save conversation: {e}")
        return self.result()

    def result(self) -> TaskExecutionResult:
        state = self.state
        stats = state.stats(self._stopwatch.elapsed_ms())
        stats.input_tokens = self.llm_caller.input_tokens
        stats.output_tokens = self.llm_caller.output_tokens
        return TaskExecutionResult(
            status=state.status.value,
            final_answer=state.final_answer,
            reason=state.reason,
            validation=state.last_validation,
            plan=state.plan,
            success_criteria=state.success_criteria,
            stats=stats,
        )

    # endregion

    # region - phases

    async def _setup(self) -> None:
        cfg = self.config
        self.emitter.emit(EventType.TASK_SETUP, {
            "taskId": self.state.task_id,
            "task": self.state.task,
            "browserName": cfg.browser_name,
            "url": self.state.starting_url,
            "guardrails": self.settings.guardrails,
            "data": self.settings.data,
            "pwEndpoint": cfg.pw_endpoint,
            "pwCdpEndpoint": cfg.pw_cdp_endpoint,
            "proxy": cfg.proxy,
            "vision": cfg.vision,
        })
        try:
            await suspension_point(self.token, "browser start", self.browser.start())
        except BrowserActionError as e:
            self._finish(TaskStatus.FAILED, f"Browser could not be started: {e}")

    async def _plan(self) -> None:
        state = self.state
        self._transition(TaskStatus.PLANNING, "Creating a plan")
        try:
            plan = await self.planner.plan(
                state.task,
                starting_url=state.starting_url,
                guardrails=self.settings.guardrails,
                search_enabled=self.search_service is not None,
            )
        except TaskCancelled:
            raise
        except Exception as e:
            self._finish(TaskStatus.FAILED, f"Planning failed: {e}")
            return

        state.plan = plan.plan
        state.success_criteria = plan.success_criteria
        state.action_items = plan.action_items

        conversation = state.conversation
        conversation.set_system_message(
            SystemPrompt(
                self.settings.guardrails,
                self.settings.extend_system_message,
                search_enabled=self.search_service is not None,
            ).system_message
        )
        conversation.add_task_message(
            build_task_and_plan_prompt(state.task, plan.success_criteria, plan.plan, self.settings.data, self.settings.guardrails)
        )

        start_url = state.starting_url or plan.url or BLANK_PAGE
        if start_url != BLANK_PAGE:
            try:
                await suspension_point(self.token, "navigation", self.browser.goto(start_url))
                self.emitter.emit(EventType.PAGE_NAVIGATION, {"url": start_url, "title": await self.browser.get_title()})
            except BrowserActionError as e:
                self._log(logging.WARNING, f"Could not open {start_url}: {e}")
                conversation.add_context(f"Opening the starting URL {start_url} failed: {e}")
        elif self.search_service is not None:
            await self._initial_search(plan.search_query or state.task)

        self.emitter.emit(EventType.TASK_START, {
            "taskId": state.task_id,
            "task": state.task,
            "plan": plan.plan,
            "successCriteria": plan.success_criteria,
            "actionItems": plan.action_items,
            "url": start_url,
        })
        self._transition(TaskStatus.STEPPING, "Executing the plan")

    async def _initial_search(self, query: str) -> None:
        try:
            results = await suspension_point(self.token, "search", self.search_service.search(query))
        except TaskCancelled:
            raise
        except Exception as e:
            self._log(logging.WARNING, f"Search for {query!r} failed: {e}")
            self.state.conversation.add_context(f"A web search for {query!r} failed: {e}")
            return
        self.state.conversation.add_context(results)

    async def _step(self) -> None:
        state = self.state
        cfg = self.config
        if state.iteration >= cfg.max_iterations:
            self._finish(TaskStatus.ABORTED, f"Maximum iterations ({cfg.max_iterations}) exceeded")
            return
        state.iteration += 1

        self.emitter.emit(EventType.AGENT_STEP, {"iteration": state.iteration, "maxIterations": cfg.max_iterations})
        group = state.iteration

        try:
            snapshot = await suspension_point(self.token, "snapshot", self.perception.snapshot())
        except BrowserActionError as e:
            self._record_failure(f"Could not read the page: {e}", group)
            return
        state.conversation.add_snapshot(build_snapshot_message(snapshot, group), group)

        try:
            completion = await self.llm_caller.invoke(
                LLMRequest(
                    messages=state.conversation.messages,
                    purpose="step",
                    tools=step_tools(self.search_service is not None),
                    tool_choice="required",
                    max_tokens=cfg.max_generation_tokens,
                ),
                RetryPolicy.from_config(cfg),
            )
        except TaskCancelled:
            raise
        except Exception as e:
            self._finish(TaskStatus.FAILED, f"Model invocation failed: {e}")
            return

        call = completion.first_tool_call
        if call is not None and self.search_service is not None and call.name.strip().lower() == WEB_SEARCH_TOOL.name:
            state.conversation.add_action(call, group)
            await self._web_search(call, group)
            return

        request, problem = action_from_tool_call(call)
        if call is not None:
            state.conversation.add_action(call, group)
        if request is None:
            self._record_failure(problem, group)
            return

        if self._is_stuck(request, group):
            return

        if request.kind is ActionKind.DONE:
            state.final_answer = request.value or _text_of(completion)
            self._transition(TaskStatus.VALIDATING, "Validating the answer")
            return
        if request.kind is ActionKind.ABORT:
            self._finish(TaskStatus.ABORTED, request.value or "Aborted by the agent")
            return

        result = await self.actuator.execute(request, state.iteration)
        state.record_action_outcome(result.success)
        if result.success:
            state.conversation.add_observation(result.as_observation(request), group)
        else:
            state.conversation.add_observation(build_step_error_prompt(result.as_observation(request)), group)
            self._check_error_budget()

    async def _web_search(self, call: ToolCall, group: int) -> None:
        """Run a search the model asked for; results (or the error) come back as the step observation."""
        state = self.state
        query = str(parse_tool_arguments(call.arguments).get("query") or "").strip()
        self.emitter.emit(EventType.ACTION_EXECUTION, {
            "iteration": state.iteration,
            "action": WEB_SEARCH_TOOL.name,
            "ref": None,
            "value": query,
        })
        results, error = None, None
        if not query:
            error = "web_search needs a non-empty query"
        else:
            try:
                results = await suspension_point(self.token, "search", self.search_service.search(query))
            except TaskCancelled:
                raise
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
        self.emitter.emit(EventType.ACTION_RESULT, {
            "iteration": state.iteration,
            "action": WEB_SEARCH_TOOL.name,
            "ref": None,
            "success": error is None,
            "error": error,
        })

        state.record_action_outcome(error is None)
        if error is None:
            state.conversation.add_observation(f"Searched the web for {query!r}.\n{results}", group)
            return
        self._log(logging.WARNING, f"Web search for {query!r} failed: {error}")
        state.conversation.add_observation(build_step_error_prompt(f"Web search for {query!r} failed: {error}"), group)
        self._check_error_budget()

    def _is_stuck(self, request: ActionRequest, group: int) -> bool:
        """Track identical consecutive actions; warn once, then abort when it keeps happening."""
        state = self.state
        limit = self.config.max_repeated_actions
        count = state.repeat_count(request.signature) + 1
        state.recent_signatures.append(request.signature)
        if count <= limit:
            return False
        if count >= limit + 2:
            self._finish(TaskStatus.ABORTED, f"Excessive repetition: {request.describe()} repeated {count} times")
            return True
        message = build_repetition_warning(request.describe(), count)
        state.conversation.add_feedback(message, group)
        self.emitter.emit(EventType.STATUS_MESSAGE, {"status": state.status.value, "message": message, "iteration": state.iteration})
        return False

    async def _validate(self) -> None:
        state = self.state
        cfg = self.config
        state.validation_attempts += 1
        attempt = state.validation_attempts
        last_attempt = attempt >= cfg.max_validation_attempts

        try:
            verdict = await self.assessor.validate(state, state.success_criteria or state.task)
        except TaskCancelled:
            raise
        except Exception as e:
            self.emitter.emit(EventType.VALIDATION_ERROR, {"attempt": attempt, "error": str(e)})
            if last_attempt:
                previous = state.last_validation
                if previous is not None and previous.quality.value == "failed":
                    self._finish(TaskStatus.FAILED, f"Validation failed: {previous.assessment}")
                else:
                    self._finish(TaskStatus.COMPLETED, f"Answer accepted without a final verdict ({e})")
                return
            state.conversation.add_feedback(
                build_validation_feedback_prompt(attempt, "The answer could not be validated.", str(e)), state.iteration
            )
            self._transition(TaskStatus.STEPPING, "Validation errored; continuing")
            return

        state.last_validation = verdict
        state.last_feedback = verdict.feedback
        self.emitter.emit(EventType.TASK_VALIDATION, {
            "attempt": attempt,
            "quality": verdict.quality.value,
            "success": verdict.is_success,
            "assessment": verdict.assessment,
            "feedback": verdict.feedback,
        })

        if verdict.is_success:
            self._finish(TaskStatus.COMPLETED, verdict.assessment or f"Validated as {verdict.quality.value}")
        elif last_attempt:
            if verdict.quality.value == "failed":
                self._finish(TaskStatus.FAILED, f"Validation failed: {verdict.assessment}")
            else:
                self._finish(
                    TaskStatus.COMPLETED,
                    f"Accepted as {verdict.quality.value} after {attempt} validation attempts",
                )
        else:
            self.emitter.emit(EventType.VALIDATION_ERROR, {
                "attempt": attempt,
                "quality": verdict.quality.value,
                "feedback": verdict.feedback,
            })
            state.conversation.add_feedback(
                build_validation_feedback_prompt(attempt, verdict.assessment, verdict.feedback), state.iteration
            )
            self._transition(TaskStatus.STEPPING, f"Answer judged {verdict.quality.value}; continuing")

    # endregion

    # region - bookkeeping

    def _record_failure(self, message: str, group: int) -> None:
        self.state.record_error()
        self.state.conversation.add_observation(build_step_error_prompt(message), group)
        self._log(logging.WARNING, message)
        self._check_error_budget()

    def _check_error_budget(self) -> None:
        state = self.state
        cfg = self.config
        if state.consecutive_errors >= cfg.max_consecutive_errors:
            self._finish(TaskStatus.FAILED, f"Too many consecutive errors ({state.consecutive_errors})")
        elif state.total_errors >= cfg.max_total_errors:
            self._finish(TaskStatus.FAILED, f"Too many errors in total ({state.total_errors})")

    def _transition(self, new_status: TaskStatus, message: str) -> None:
        state = self.state
        self.emitter.emit(EventType.STATUS_MESSAGE, {
            "status": new_status.value,
            "previous": state.status.value,
            "message": message,
            "iteration": state.iteration,
        })
        state.transition(new_status)
        self._log(logging.INFO, f"{state.history[-2].value} -> {new_status.value}: {message}")

    def _finish(self, status: TaskStatus, reason: str) -> None:
        state = self.state
        if state.status.is_terminal:
            return
        state.reason = reason
        self._transition(status, reason)

        payload: dict[str, Any] = {
            "taskId": state.task_id,
            "status": status.value,
            "reason": reason,
            "iterations": state.iteration,
            "plan": state.plan,
        }
        if status is TaskStatus.ABORTED:
            self.emitter.emit(EventType.TASK_ABORTED, payload)
            return
        payload.update({
            "success": status is TaskStatus.COMPLETED,
            "finalAnswer": state.final_answer,
            "quality": state.last_validation.quality.value if state.last_validation else None,
            "feedback": state.last_feedback,
        })
        self.emitter.emit(EventType.TASK_COMPLETED, payload)

    def _log(self, level: int, message: str, **kwargs) -> None:
        agent_log(level, self.state.task_id, self.state.iteration, message, **kwargs)

    # endregion


def _text_of(completion: ChatInvokeCompletion) -> Optional[str]:
    return (completion.completion or "").strip() or None
