from browser_pilot.loggers.base import Logger
from browser_pilot.loggers.console import ConsoleLogger
from browser_pilot.loggers.filter import FilterLogger
from browser_pilot.loggers.generic import GenericLogger
from browser_pilot.loggers.json_logger import JSONLogger
from browser_pilot.loggers.metrics_collector import MetricsCollector
from browser_pilot.loggers.secrets_redactor import SECRET_FIELDS_BY_EVENT_TYPE, SecretsRedactor, redact_secrets
from browser_pilot.loggers.wrapper import WrapperLogger

__all__ = [
	'Logger',
	'ConsoleLogger',
	'FilterLogger',
	'GenericLogger',
	'JSONLogger',
	'MetricsCollector',
	'SecretsRedactor',
	'SECRET_FIELDS_BY_EVENT_TYPE',
	'WrapperLogger',
	'redact_secrets',
]
