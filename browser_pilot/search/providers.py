import logging
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote_plus

import httpx

from browser_pilot.agent.prompts import SEARCH_RESULTS_LABEL, wrap_external_content

if TYPE_CHECKING:
	from browser_pilot.agent.perception import Perception
	from browser_pilot.browser.views import TemporaryTab

logger = logging.getLogger(__name__)

PARALLEL_SEARCH_URL = 'https://api.parallel.ai/v1beta/search'
PARALLEL_BETA_HEADER = 'search-extract-2025-10-10'
PARALLEL_MAX_CHARS_PER_RESULT = 1500


def results_header(query: str, provider: str) -> str:
	return f'# Search Results for "{query}" (via {provider})'


class BrowserSearchProvider:
	"""Renders a search engine results page in a side-quest tab and returns it as Markdown."""

	name = 'browser'
	requires_browser = True
	search_url = ''

	def url_for(self, query: str) -> str:
		return self.search_url + quote_plus(query)

	async def search(self, query: str, perception: Optional['Perception'] = None) -> str:
		if perception is None:
			raise RuntimeError(f'{self.name} search requires a browser')
		url = self.url_for(query)

		async def _load(tab: 'TemporaryTab') -> str:
			await tab.goto(url)
			await tab.wait_for_load_state('load')
			return await tab.get_markdown()

		markdown = await perception.run_side_quest(_load)
		logger.debug(f'{self.name} returned {len(markdown)} characters for {query!r}')
		return wrap_external_content(f'{results_header(query, self.name)}\n\n{markdown}', SEARCH_RESULTS_LABEL)


class DuckDuckGoSearchProvider(BrowserSearchProvider):
	name = 'duckduckgo'
	search_url = 'https://lite.duckduckgo.com/lite/?q='


class GoogleSearchProvider(BrowserSearchProvider):
	name = 'google'
	search_url = 'https://www.google.com/search?q='


class BingSearchProvider(BrowserSearchProvider):
	name = 'bing'
	search_url = 'https://www.bing.com/search?q='


class ParallelSearchProvider:
	"""Search over the Parallel HTTP API; needs no browser."""

	name = 'parallel-api'
	requires_browser = False

	def __init__(self, api_key: str, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
		self.api_key = api_key
		self.http_client = http_client
		self.timeout = timeout

	async def search(self, query: str, perception: Optional['Perception'] = None) -> str:
		payload = {
			'objective': query,
			'search_queries': [query],
			'excerpts': {'max_chars_per_result': PARALLEL_MAX_CHARS_PER_RESULT},
		}
		headers = {'x-api-key': self.api_key, 'parallel-beta': PARALLEL_BETA_HEADER}

		if self.http_client is not None:
			response = await self.http_client.post(PARALLEL_SEARCH_URL, json=payload, headers=headers)
		else:
			async with httpx.AsyncClient(timeout=self.timeout) as client:
				response = await client.post(PARALLEL_SEARCH_URL, json=payload, headers=headers)

		if response.is_error:
			raise RuntimeError(f'Parallel API error ({response.status_code}): {response.text}')
		data = response.json()
		if data.get('error'):
			raise RuntimeError(f'Parallel API error: {data["error"]}')
		return self.format_results(query, data.get('results') or [])

	def format_results(self, query: str, results: list[dict[str, Any]]) -> str:
		header = results_header(query, self.name)
		results = [r for r in results if isinstance(r, dict) and r.get('url')]
		if not results:
			return wrap_external_content(f'{header}\n\nNo results found.', SEARCH_RESULTS_LABEL)
		lines = []
		for i, result in enumerate(results, 1):
			url = result['url']
			lines.append(f'{i}. [{result.get("title") or url}]({url})')
			excerpts = result.get('excerpts') or []
			if excerpts:
				lines.append('\n'.join(excerpts))
			lines.append('')
		return wrap_external_content(f'{header}\n\n' + '\n'.join(lines).strip(), SEARCH_RESULTS_LABEL)
