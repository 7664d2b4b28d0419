from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Union

from browser_pilot.agent.concurrency import CancellationToken
from browser_pilot.agent.events import EventEmitter, EventHandler, EventType
from browser_pilot.agent.orchestrator import Orchestrator
from browser_pilot.agent.perception import Perception
from browser_pilot.agent.settings import AgentSettings
from browser_pilot.agent.views import TaskExecutionResult
from browser_pilot.search.service import SearchService

if TYPE_CHECKING:
    from browser_pilot.browser.views import BrowserCapability

logger = logging.getLogger(__name__)


class Agent:
    """
    Public entry point: runs one browser task to a terminal state.

    The agent owns the event emitter and the cancellation token. Loggers from the
    settings are initialized before SETUP and disposed on every exit path. A browser
    created here (rather than injected) is also shut down when the run ends.
    """

    def __init__(self, settings: Optional[AgentSettings] = None, **kwargs: Any):
        self.settings = settings or AgentSettings(**kwargs)
        self.config = self.settings.config
        self.emitter = EventEmitter()
        self.token = CancellationToken()

        self._owns_browser = self.settings.browser is None
        self.browser: BrowserCapability = self.settings.browser or self._create_browser()
        self.perception = Perception(self.browser, self.emitter, vision=self.config.vision)
        # Built eagerly so a bad provider name or missing API key fails before the task starts
        self.search_service: Optional[SearchService] = (
            self.settings.search_service or SearchService.from_config(self.config, self.perception)
        )
        self._orchestrator: Optional[Orchestrator] = None

    def _create_browser(self) -> BrowserCapability:
        from browser_pilot.browser.session import BrowserSession

        return BrowserSession.from_config(self.config)

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self.emitter.on(event_type, handler)

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        self.emitter.off(event_type, handler)

    def cancel(self, reason: str = "Task cancelled") -> None:
        """Request cancellation; the task stops at its next suspension point."""
        self.token.cancel(reason)

    @property
    def state(self):
        return self._orchestrator.state if self._orchestrator else None

    async def run(self) -> TaskExecutionResult:
        self._orchestrator = Orchestrator(
            self.settings,
            self.browser,
            self.emitter,
            self.perception,
            search_service=self.search_service,
            token=self.token,
        )
        initialized = []
        try:
            for task_logger in self.settings.loggers:
                task_logger.initialize(self.emitter)
                initialized.append(task_logger)
            result = await self._orchestrator.run()
        finally:
            for task_logger in initialized:
                try:
                    task_logger.dispose()
                except Exception:
                    logger.exception(f"Failed to dispose logger {task_logger!r}")
            if self._owns_browser:
                await self._shutdown_browser()

        logger.log(logging.INFO if result.success else logging.WARNING, f"Task {result.status}: {result.reason}")
        return result

    async def _shutdown_browser(self) -> None:
        try:
            await self.browser.shutdown()
        except Exception as e:
            logger.warning(f"Browser shutdown failed: {type(e).__name__}: {e}")
