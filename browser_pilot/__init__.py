import os

from browser_pilot.logging_config import setup_logging

# Set PILOT_SETUP_LOGGING=false to leave logging configuration to the host application
if os.environ.get('PILOT_SETUP_LOGGING', 'true').lower() != 'false':
	logger = setup_logging(log_level=os.environ.get('PILOT_LOGGING_LEVEL'))
else:
	import logging

	logger = logging.getLogger('browser_pilot')


# --- Lightweight, lazy re-exports ---
# Playwright and pydantic models are only imported when first used.

_LAZY_EXPORTS = {
	'Agent': ('browser_pilot.agent.service', 'Agent'),
	'AgentSettings': ('browser_pilot.agent.settings', 'AgentSettings'),
	'TaskExecutionResult': ('browser_pilot.agent.views', 'TaskExecutionResult'),
	'ActionRequest': ('browser_pilot.agent.views', 'ActionRequest'),
	'ActionResult': ('browser_pilot.agent.views', 'ActionResult'),
	'ValidationResult': ('browser_pilot.agent.views', 'ValidationResult'),
	'CompletionQuality': ('browser_pilot.agent.views', 'CompletionQuality'),
	'EventEmitter': ('browser_pilot.agent.events', 'EventEmitter'),
	'EventType': ('browser_pilot.agent.events', 'EventType'),
	'PilotConfig': ('browser_pilot.config', 'PilotConfig'),
	'BrowserSession': ('browser_pilot.browser.session', 'BrowserSession'),
	'SearchService': ('browser_pilot.search.service', 'SearchService'),
	'ConsoleLogger': ('browser_pilot.loggers', 'ConsoleLogger'),
	'JSONLogger': ('browser_pilot.loggers', 'JSONLogger'),
	'GenericLogger': ('browser_pilot.loggers', 'GenericLogger'),
	'MetricsCollector': ('browser_pilot.loggers', 'MetricsCollector'),
	'SecretsRedactor': ('browser_pilot.loggers', 'SecretsRedactor'),
}


def __getattr__(name: str):
	entry = _LAZY_EXPORTS.get(name)
	if not entry:
		raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
	module_path, attr_name = entry
	from importlib import import_module

	attr = getattr(import_module(module_path), attr_name)
	globals()[name] = attr
	return attr


__all__ = list(_LAZY_EXPORTS.keys())
