import locale
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from browser_pilot.timing import now_utc_iso, process_start_utc_iso, uptime_seconds

load_dotenv()

RESULT_LEVEL = 35

_ROOT_LEVELS = {'debug': logging.DEBUG, 'info': logging.INFO, 'result': RESULT_LEVEL}

_QUIET_LOGGERS = ('httpx', 'httpcore', 'playwright', 'patchright', 'asyncio', 'urllib3', 'charset_normalizer')


def addLoggingLevel(levelName, levelNum, methodName=None):
	"""
	Register `levelName` = `levelNum` on the `logging` module, plus a `methodName`
	(default: the lower-cased level name) helper on `logging` and on the logger class.

	Raises `AttributeError` when any of those names already exists.
	"""
	methodName = methodName or levelName.lower()
	for owner, attr in ((logging, levelName), (logging, methodName), (logging.getLoggerClass(), methodName)):
		if hasattr(owner, attr):
			raise AttributeError(f'{attr} already defined on {getattr(owner, "__name__", owner)}')

	def log_at_level(self, message, *args, **kwargs):
		if self.isEnabledFor(levelNum):
			self._log(levelNum, message, args, **kwargs)

	def log_to_root(message, *args, **kwargs):
		logging.log(levelNum, message, *args, **kwargs)

	logging.addLevelName(levelNum, levelName)
	setattr(logging, levelName, levelNum)
	setattr(logging.getLoggerClass(), methodName, log_at_level)
	setattr(logging, methodName, log_to_root)


class SafeStreamHandler(logging.StreamHandler):
	"""Stream handler that degrades gracefully on consoles that cannot encode every character."""

	def emit(self, record):  # type: ignore[override]
		try:
			line = self.format(record) + self.terminator
			try:
				self.stream.write(line)
			except UnicodeEncodeError:
				encoding = getattr(self.stream, 'encoding', None) or locale.getpreferredencoding(False) or 'utf-8'
				self.stream.write(line.encode(encoding, errors='replace').decode(encoding, errors='replace'))
			self.flush()
		except Exception:
			self.handleError(record)


class PilotFormatter(logging.Formatter):
	"""Adds `utc`, `uptime` and a task/iteration prefix to every record."""

	def format(self, record):
		record.utc = now_utc_iso()
		record.uptime = f'{uptime_seconds():.3f}s'
		task_id = getattr(record, 'task_id', None)
		iteration = getattr(record, 'iteration', None)
		if task_id is not None:
			record.context = f'[{task_id[-6:]}#{iteration}] ' if iteration is not None else f'[{task_id[-6:]}] '
		else:
			record.context = ''
		return super().format(record)


def setup_logging(stream=None, log_level: Optional[str] = None, force_setup: bool = False):
	"""Configure logging for browser_pilot.

	Args:
		stream: Output stream for logs (default: sys.stdout).
		log_level: 'debug', 'info' or 'result' (default: 'info').
		force_setup: Reconfigure even if handlers already exist.
	"""
	try:
		addLoggingLevel('RESULT', RESULT_LEVEL)
	except AttributeError:
		pass

	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('browser_pilot')

	log_type = (log_level or 'info').lower()
	level = _ROOT_LEVELS.get(log_type, logging.INFO)

	handler = SafeStreamHandler(stream or sys.stdout)
	if log_type == 'result':
		handler.setFormatter(PilotFormatter('%(message)s'))
	else:
		handler.setFormatter(PilotFormatter('%(levelname)-8s [%(name)s] %(utc)s (+%(uptime)s) %(context)s%(message)s'))
	handler.setLevel(level)

	root = logging.getLogger()
	root.handlers = [handler]
	root.setLevel(level)

	pilot_logger = logging.getLogger('browser_pilot')
	pilot_logger.propagate = False
	pilot_logger.handlers = [handler]
	pilot_logger.setLevel(level)
	pilot_logger.debug(f'Logging initialized at {now_utc_iso()} (process_start={process_start_utc_iso()})')

	for name in _QUIET_LOGGERS:
		quiet = logging.getLogger(name)
		quiet.setLevel(logging.ERROR)
		quiet.propagate = False

	return pilot_logger
