from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from browser_pilot.exceptions import SearchConfigurationError

if TYPE_CHECKING:
	import httpx

	from browser_pilot.agent.perception import Perception


@runtime_checkable
class SearchProvider(Protocol):
	"""Returns search results as Markdown for the model to read like any other page."""

	name: str
	requires_browser: bool

	async def search(self, query: str, perception: Optional[Perception] = None) -> str: ...


def create_provider(
	name: str,
	api_key: Optional[str] = None,
	http_client: Optional['httpx.AsyncClient'] = None,
) -> SearchProvider:
	"""Build a provider by name. Raises SearchConfigurationError for unknown names or missing credentials."""
	from browser_pilot.search import providers

	normalized = (name or '').strip().lower()
	if normalized == 'duckduckgo':
		return providers.DuckDuckGoSearchProvider()
	if normalized == 'google':
		return providers.GoogleSearchProvider()
	if normalized == 'bing':
		return providers.BingSearchProvider()
	if normalized in ('parallel', 'parallel-api'):
		if not api_key:
			raise SearchConfigurationError('Parallel API key is required for the parallel search provider (set PILOT_SEARCH_API_KEY)')
		return providers.ParallelSearchProvider(api_key, http_client=http_client)
	raise SearchConfigurationError(f'Unknown search provider: {name!r}')
