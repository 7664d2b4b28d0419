from typing import Awaitable, Callable, Literal, Optional, Protocol, TypeVar, runtime_checkable

from browser_pilot.dom.views import AccessibleNode

T = TypeVar('T')

LoadState = Literal['load', 'domcontentloaded', 'networkidle']

# Actions a browser can perform against a single element or the page
PAGE_ACTIONS = frozenset(
	{'click', 'hover', 'fill', 'focus', 'check', 'uncheck', 'select', 'enter', 'wait', 'goto', 'back', 'forward'}
)


@runtime_checkable
class TemporaryTab(Protocol):
	"""The slice of browser behaviour available inside a side quest."""

	async def goto(self, url: str) -> None: ...

	async def wait_for_load_state(self, state: LoadState = 'load', timeout: Optional[float] = None) -> None: ...

	async def get_markdown(self) -> str: ...

	async def get_url(self) -> str: ...


@runtime_checkable
class BrowserCapability(Protocol):
	"""Browser operations the engine consumes. Element arguments are driver handles."""

	async def start(self) -> None: ...

	async def shutdown(self) -> None: ...

	async def goto(self, url: str) -> None: ...

	async def go_back(self) -> None: ...

	async def go_forward(self) -> None: ...

	async def get_url(self) -> str: ...

	async def get_title(self) -> str: ...

	async def get_tree_with_refs(self) -> AccessibleNode: ...

	async def get_markdown(self) -> str: ...

	async def get_screenshot(self, with_marks: bool = False) -> str:
		"""Base64-encoded PNG."""
		...

	async def perform_action(self, handle: Optional[str], action: str, value: Optional[str] = None) -> None: ...

	async def wait_for_load_state(self, state: LoadState = 'load', timeout: Optional[float] = None) -> None: ...

	async def run_in_temporary_tab(self, fn: Callable[[TemporaryTab], Awaitable[T]]) -> T: ...
