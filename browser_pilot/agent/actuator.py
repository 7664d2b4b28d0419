from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from browser_pilot.agent.concurrency import CancellationToken, cancellable_sleep, suspension_point
from browser_pilot.agent.events import EventEmitter, EventType
from browser_pilot.agent.llm_caller import LLMCaller, LLMRequest, RetryPolicy
from browser_pilot.agent.prompts import build_extraction_prompt
from browser_pilot.agent.views import ActionKind, ActionRequest, ActionResult
from browser_pilot.exceptions import BrowserActionError, LLMException, StaleRefError
from browser_pilot.llm.messages import UserMessage

if TYPE_CHECKING:
    from browser_pilot.agent.perception import Perception
    from browser_pilot.browser.views import BrowserCapability
    from browser_pilot.config import PilotConfig

logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 30.0


class Actuator:
    """
    Executes one ActionRequest against the browser.
    Failures come back as ActionResult(success=False); only cancellation propagates.
    """

    def __init__(
        self,
        browser: BrowserCapability,
        perception: Perception,
        llm_caller: LLMCaller,
        emitter: EventEmitter,
        config: PilotConfig,
        token: Optional[CancellationToken] = None,
    ):
        self.browser = browser
        self.perception = perception
        self.llm_caller = llm_caller
        self.emitter = emitter
        self.config = config
        self.token = token

    async def execute(self, request: ActionRequest, iteration: int = 0) -> ActionResult:
        self.emitter.emit(EventType.ACTION_EXECUTION, {
            "iteration": iteration,
            "action": request.kind.value,
            "ref": request.ref,
            "value": request.value,
        })
        try:
            result = await self._dispatch(request)
        except StaleRefError as e:
            result = ActionResult(success=False, error=str(e))
        except (BrowserActionError, LLMException) as e:
            result = ActionResult(success=False, error=str(e))
        except asyncio.TimeoutError:
            result = ActionResult(success=False, error=f"Action {request.kind.value} timed out")

        if result.success:
            logger.info(f"Action {request.describe()} succeeded")
        else:
            logger.warning(f"Action {request.describe()} failed: {result.error}")
        self.emitter.emit(EventType.ACTION_RESULT, {
            "iteration": iteration,
            "action": request.kind.value,
            "ref": request.ref,
            "success": result.success,
            "error": result.error,
        })
        return result

    async def _dispatch(self, request: ActionRequest) -> ActionResult:
        kind = request.kind
        if kind is ActionKind.WAIT:
            return await self._wait(request.value)
        if kind is ActionKind.EXTRACT:
            return await self._extract(request.value or "")
        if kind.is_terminal:
            return ActionResult(success=True)

        handle = None
        if kind.needs_ref:
            handle = self.perception.resolve(request.ref).handle

        url_before = await self.browser.get_url()
        await suspension_point(
            self.token, "browser action", self.browser.perform_action(handle, kind.value, request.value)
        )
        if not kind.navigates:
            return ActionResult(success=True)

        await self._wait_for_network()
        url_after = await self.browser.get_url()
        navigated = kind in (ActionKind.GOTO, ActionKind.BACK, ActionKind.FORWARD) or url_after != url_before
        if navigated:
            self.perception.invalidate()
            self.emitter.emit(EventType.PAGE_NAVIGATION, {
                "url": url_after,
                "title": await self.browser.get_title(),
                "previousUrl": url_before,
            })
        return ActionResult(success=True, navigated=navigated)

    async def _wait(self, value: Optional[str]) -> ActionResult:
        try:
            seconds = float(value) if value is not None else 1.0
        except ValueError:
            return ActionResult(success=False, error=f"Invalid wait duration: {value!r}")
        seconds = max(0.0, min(seconds, MAX_WAIT_SECONDS))
        self.emitter.emit(EventType.WAITING, {"seconds": seconds})
        await cancellable_sleep(self.token, seconds, "wait action")
        return ActionResult(success=True)

    async def _wait_for_network(self) -> None:
        timeout = self.config.network_idle_timeout
        self.emitter.emit(EventType.NETWORK_WAITING, {"timeout": timeout})
        try:
            await suspension_point(
                self.token,
                "network idle",
                asyncio.wait_for(self.browser.wait_for_load_state("networkidle", timeout=timeout), timeout + 1),
            )
        except (asyncio.TimeoutError, BrowserActionError) as e:
            # Long-polling pages never go idle; carry on with whatever has loaded
            logger.debug(f"Network did not settle within {timeout}s: {e!r}")
            self.emitter.emit(EventType.NETWORK_TIMEOUT, {"timeout": timeout})

    async def _extract(self, description: str) -> ActionResult:
        if not description.strip():
            return ActionResult(success=False, error="extract requires a description of the data to extract")
        markdown = await suspension_point(self.token, "browser action", self.browser.get_markdown())
        request = LLMRequest(
            messages=[UserMessage(content=build_extraction_prompt(description, markdown))],
            purpose="extract",
            max_tokens=self.config.max_generation_tokens,
        )
        completion = await self.llm_caller.invoke(request, RetryPolicy.from_config(self.config))
        extracted = (completion.completion or "").strip()
        if not extracted:
            return ActionResult(success=False, error="Extraction returned no content")
        return ActionResult(success=True, extracted_content=f"Extracted data:\n{extracted}")
