import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from typing_extensions import Self

from browser_pilot.browser.types import (
	Browser,
	BrowserContext,
	DriverTimeoutError,
	Page,
	TargetClosedError,
	async_patchright,
	async_playwright,
)
from browser_pilot.browser.views import PAGE_ACTIONS, LoadState, TemporaryTab
from browser_pilot.config import PilotConfig
from browser_pilot.dom.service import DomService
from browser_pilot.dom.views import AccessibleNode
from browser_pilot.exceptions import BrowserActionError, NavigationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Navigation timeout escalates per attempt: 15s, 30s, 60s
NAVIGATION_BASE_TIMEOUT = 15.0
NAVIGATION_TIMEOUT_MULTIPLIER = 2.0
NAVIGATION_MAX_TIMEOUT = 60.0
NAVIGATION_ATTEMPTS = 3


class PlaywrightTab:
	"""A short-lived page used for side quests."""

	def __init__(self, page: Page):
		self.page = page
		self._dom = DomService(page)

	async def goto(self, url: str) -> None:
		await self.page.goto(url, wait_until='domcontentloaded')

	async def wait_for_load_state(self, state: LoadState = 'load', timeout: Optional[float] = None) -> None:
		await self.page.wait_for_load_state(state, timeout=timeout * 1000 if timeout else None)

	async def get_markdown(self) -> str:
		return await self._dom.get_markdown()

	async def get_url(self) -> str:
		return self.page.url


class BrowserSession(BaseModel):
	"""
	Playwright (or patchright) backed implementation of the browser capability.

	Launches a local browser, or connects to a remote one through `pw_endpoint`
	(Playwright websocket) or `pw_cdp_endpoint` (Chrome DevTools Protocol).
	"""

	model_config = ConfigDict(arbitrary_types_allowed=True, extra='forbid')

	browser_name: Literal['chromium', 'firefox', 'webkit'] = 'chromium'
	driver: Literal['playwright', 'patchright'] = 'playwright'
	headless: bool = True
	pw_endpoint: Optional[str] = None
	pw_cdp_endpoint: Optional[str] = None
	proxy: Optional[str] = None
	action_timeout: float = Field(10.0, gt=0)
	viewport: dict[str, int] = Field(default_factory=lambda: {'width': 1280, 'height': 900})

	_playwright: Any = PrivateAttr(default=None)
	_browser: Optional[Browser] = PrivateAttr(default=None)
	_context: Optional[BrowserContext] = PrivateAttr(default=None)
	_page: Optional[Page] = PrivateAttr(default=None)
	_dom: Optional[DomService] = PrivateAttr(default=None)

	@classmethod
	def from_config(cls, config: PilotConfig) -> Self:
		return cls(
			browser_name=config.browser_name,
			driver=config.driver,
			headless=config.headless,
			pw_endpoint=config.pw_endpoint,
			pw_cdp_endpoint=config.pw_cdp_endpoint,
			proxy=config.proxy,
			action_timeout=config.action_timeout,
		)

	def __repr__(self) -> str:
		target = self.pw_cdp_endpoint and 'cdp' or self.pw_endpoint and 'ws' or 'local'
		return f'BrowserSession({self.driver}:{self.browser_name}, {target}, started={self._page is not None})'

	async def __aenter__(self) -> Self:
		await self.start()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		await self.shutdown()

	@property
	def page(self) -> Page:
		if self._page is None:
			raise BrowserActionError('Browser session has not been started')
		return self._page

	@property
	def dom(self) -> DomService:
		if self._dom is None:
			raise BrowserActionError('Browser session has not been started')
		return self._dom

	async def start(self) -> None:
		if self._page is not None:
			return
		factory = async_patchright if self.driver == 'patchright' else async_playwright
		self._playwright = await factory().start()
		browser_type = getattr(self._playwright, self.browser_name)

		if self.pw_cdp_endpoint:
			logger.info('Connecting to browser over CDP')
			self._browser = await self._playwright.chromium.connect_over_cdp(self.pw_cdp_endpoint)
		elif self.pw_endpoint:
			logger.info(f'Connecting to remote {self.browser_name} browser')
			self._browser = await browser_type.connect(self.pw_endpoint)
		else:
			launch_args: dict[str, Any] = {'headless': self.headless}
			if self.proxy:
				launch_args['proxy'] = {'server': self.proxy}
			logger.info(f'Launching {self.driver} {self.browser_name} (headless={self.headless})')
			self._browser = await browser_type.launch(**launch_args)

		if self.pw_cdp_endpoint and self._browser.contexts:
			self._context = self._browser.contexts[0]
		else:
			self._context = await self._browser.new_context(viewport=self.viewport)
		self._context.set_default_timeout(self.action_timeout * 1000)
		self._page = await self._context.new_page()
		self._dom = DomService(self._page)

	async def shutdown(self) -> None:
		"""Close everything this session opened. Safe to call more than once."""
		page, context, browser, playwright = self._page, self._context, self._browser, self._playwright
		self._page = self._context = self._browser = self._playwright = None
		self._dom = None
		try:
			if page is not None and not page.is_closed():
				await page.close()
			# Contexts owned by a CDP browser belong to the user
			if context is not None and not self.pw_cdp_endpoint:
				await context.close()
			if browser is not None:
				await browser.close()
		except TargetClosedError:
			logger.debug('Browser already closed during shutdown')
		finally:
			if playwright is not None:
				await playwright.stop()

	# region - Navigation

	async def goto(self, url: str) -> None:
		timeout = NAVIGATION_BASE_TIMEOUT
		for attempt in range(1, NAVIGATION_ATTEMPTS + 1):
			try:
				await self.page.goto(url, wait_until='domcontentloaded', timeout=timeout * 1000)
				return
			except DriverTimeoutError as e:
				if attempt == NAVIGATION_ATTEMPTS:
					raise NavigationTimeoutError(f'Navigation to {url} timed out after {attempt} attempts') from e
				logger.warning(f'Navigation to {url} timed out after {timeout:.0f}s (attempt {attempt}/{NAVIGATION_ATTEMPTS})')
				timeout = min(timeout * NAVIGATION_TIMEOUT_MULTIPLIER, NAVIGATION_MAX_TIMEOUT)

	async def go_back(self) -> None:
		await self.page.go_back(wait_until='domcontentloaded')

	async def go_forward(self) -> None:
		await self.page.go_forward(wait_until='domcontentloaded')

	async def get_url(self) -> str:
		return self.page.url

	async def get_title(self) -> str:
		return await self._read_page('the page title', self.page.title)

	async def wait_for_load_state(self, state: LoadState = 'load', timeout: Optional[float] = None) -> None:
		try:
			await self.page.wait_for_load_state(state, timeout=timeout * 1000 if timeout else None)
		except DriverTimeoutError as e:
			raise NavigationTimeoutError(f'Page did not reach {state!r} within {timeout}s') from e

	# endregion

	# region - Perception

	async def _read_page(self, what: str, read: Callable[[], Awaitable[T]]) -> T:
		"""Run a read-only page call; driver errors (e.g. a context destroyed mid-navigation) become BrowserActionError."""
		try:
			return await read()
		except BrowserActionError:
			raise
		except Exception as e:
			raise BrowserActionError(f'Could not read {what}: {type(e).__name__}: {e}') from e

	async def get_tree_with_refs(self) -> AccessibleNode:
		return await self._read_page('the page structure', self.dom.get_tree)

	async def get_markdown(self) -> str:
		return await self._read_page('the page content', self.dom.get_markdown)

	async def get_screenshot(self, with_marks: bool = False) -> str:
		return await self._read_page('a screenshot', lambda: self._screenshot(with_marks))

	async def _screenshot(self, with_marks: bool) -> str:
		if with_marks:
			await self.dom.draw_marks()
		try:
			png = await self.page.screenshot(type='png')
		finally:
			if with_marks:
				await self.dom.clear_marks()
		return base64.b64encode(png).decode('ascii')

	# endregion

	# region - Actions

	async def perform_action(self, handle: Optional[str], action: str, value: Optional[str] = None) -> None:
		if action not in PAGE_ACTIONS:
			raise BrowserActionError(f'Unsupported action: {action}')
		try:
			if action == 'goto':
				await self.goto(value or 'about:blank')
			elif action == 'back':
				await self.go_back()
			elif action == 'forward':
				await self.go_forward()
			elif action == 'wait':
				await asyncio.sleep(float(value or 1))
			else:
				await self._element_action(handle, action, value)
		except BrowserActionError:
			raise
		except DriverTimeoutError as e:
			raise BrowserActionError(
				f"Element with reference '{handle}' not found or not interactable. "
				'The page may have changed; take a fresh look at the page before retrying.'
			) from e
		except Exception as e:
			raise BrowserActionError(f'Failed to perform action: {e}') from e

	async def _element_action(self, handle: Optional[str], action: str, value: Optional[str]) -> None:
		if handle is None:
			raise BrowserActionError(f"Action '{action}' requires an element")
		locator = self.dom.locator_for(handle)
		if action == 'click':
			await locator.click()
		elif action == 'hover':
			await locator.hover()
		elif action == 'fill':
			if value is None:
				raise BrowserActionError('Value required for fill action')
			await locator.fill(value)
		elif action == 'focus':
			await locator.focus()
		elif action == 'check':
			await locator.check()
		elif action == 'uncheck':
			await locator.uncheck()
		elif action == 'select':
			await locator.select_option(value)
		elif action == 'enter':
			await locator.press('Enter')

	async def run_in_temporary_tab(self, fn: Callable[[TemporaryTab], Awaitable[T]]) -> T:
		if self._context is None:
			raise BrowserActionError('Browser session has not been started')
		page = await self._context.new_page()
		try:
			return await fn(PlaywrightTab(page))
		finally:
			if not page.is_closed():
				await page.close()

	# endregion
