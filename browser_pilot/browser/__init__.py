from typing import TYPE_CHECKING

if TYPE_CHECKING:
	from .session import BrowserSession, PlaywrightTab
	from .views import BrowserCapability, TemporaryTab

# Playwright is only imported when a session is actually requested
_LAZY_IMPORTS = {
	'BrowserSession': ('.session', 'BrowserSession'),
	'PlaywrightTab': ('.session', 'PlaywrightTab'),
	'BrowserCapability': ('.views', 'BrowserCapability'),
	'TemporaryTab': ('.views', 'TemporaryTab'),
}


def __getattr__(name: str):
	"""Lazy import mechanism for browser components."""
	if name in _LAZY_IMPORTS:
		module_path, attr_name = _LAZY_IMPORTS[name]
		from importlib import import_module

		module = import_module(module_path, package=__name__)
		attr = getattr(module, attr_name)
		globals()[name] = attr
		return attr
	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = list(_LAZY_IMPORTS)
