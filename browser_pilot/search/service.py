from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from browser_pilot.exceptions import SearchConfigurationError
from browser_pilot.search.provider import SearchProvider, create_provider

if TYPE_CHECKING:
	import httpx

	from browser_pilot.agent.perception import Perception
	from browser_pilot.config import PilotConfig

logger = logging.getLogger(__name__)

SEARCH_RESULTS_REMINDER = (
	'Search results can be outdated or incomplete. Visit the most relevant pages to confirm details before answering.'
)


class SearchService:
	"""Runs auxiliary searches through one provider, borrowing side-quest tabs when the provider needs a browser."""

	def __init__(self, provider: SearchProvider, perception: Optional[Perception] = None):
		if provider.requires_browser and perception is None:
			raise SearchConfigurationError(f'{provider.name} search requires a browser')
		self.provider = provider
		self.perception = perception

	@classmethod
	def create(
		cls,
		provider_name: str,
		perception: Optional[Perception] = None,
		api_key: Optional[str] = None,
		http_client: Optional['httpx.AsyncClient'] = None,
	) -> 'SearchService':
		"""Construct eagerly so configuration problems surface before the task starts."""
		return cls(create_provider(provider_name, api_key=api_key, http_client=http_client), perception)

	@classmethod
	def from_config(cls, config: PilotConfig, perception: Optional[Perception]) -> Optional['SearchService']:
		if not config.search_provider or config.search_provider.lower() == 'none':
			return None
		return cls.create(config.search_provider, perception, api_key=config.search_api_key)

	@property
	def name(self) -> str:
		return self.provider.name

	async def search(self, query: str) -> str:
		logger.info(f'Searching via {self.provider.name}: {query!r}')
		perception = self.perception if self.provider.requires_browser else None
		results = await self.provider.search(query, perception)
		return f'{results}\n\n{SEARCH_RESULTS_REMINDER}'
