from browser_pilot.search.provider import SearchProvider, create_provider
from browser_pilot.search.service import SearchService

__all__ = ['SearchProvider', 'SearchService', 'create_provider']
