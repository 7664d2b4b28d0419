import json
import logging
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def extract_first_json_object(text: str) -> Optional[str]:
	"""Return the first balanced top-level ``{...}`` in ``text``.

	Braces inside string literals (including escaped quotes) are ignored.
	Returns None when no balanced object is found.
	"""
	start = text.find('{')
	while start != -1:
		depth = 0
		in_string = False
		escaped = False
		for i in range(start, len(text)):
			ch = text[i]
			if in_string:
				if escaped:
					escaped = False
				elif ch == '\\':
					escaped = True
				elif ch == '"':
					in_string = False
				continue
			if ch == '"':
				in_string = True
			elif ch == '{':
				depth += 1
			elif ch == '}':
				depth -= 1
				if depth == 0:
					return text[start : i + 1]
		# Unbalanced from this brace; try the next candidate
		start = text.find('{', start + 1)
	return None


def try_json_parse(text: str) -> Optional[Any]:
	try:
		return json.loads(text)
	except (TypeError, ValueError):
		return None


def parse_json_lenient(text: str) -> Optional[Any]:
	"""Parse JSON, falling back to the first embedded object. None if both fail."""
	parsed = try_json_parse(text)
	if parsed is not None:
		return parsed

	candidate = extract_first_json_object(text)
	if candidate is None:
		return None
	parsed = try_json_parse(candidate)
	if parsed is not None:
		logger.warning(f'Recovered JSON object from malformed model output: {text[:120]!r}')
	return parsed


def parse_tool_arguments(arguments: Union[str, dict, None]) -> dict[str, Any]:
	"""Decode tool-call arguments; never raises. Unrecoverable input yields an empty dict."""
	if arguments is None:
		return {}
	if isinstance(arguments, dict):
		return arguments
	if not arguments.strip():
		return {}

	parsed = parse_json_lenient(arguments)
	if isinstance(parsed, dict):
		return parsed
	logger.warning(f'Could not parse tool arguments, using empty object: {arguments[:120]!r}')
	return {}
