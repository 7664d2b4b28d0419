from __future__ import annotations

import asyncio
from typing import Optional

import httpx

_AUTH_MARKERS = ("invalid api key", "authentication", "unauthorized", "forbidden")


class PilotError(Exception):
    """Base class for every error raised by browser_pilot."""


class AgentConfigurationError(PilotError):
    """Raised when settings or configuration values are invalid."""


class SearchConfigurationError(AgentConfigurationError):
    """Raised when a search provider cannot be constructed."""


class LLMException(PilotError):
    """Error returned by a model invocation, optionally carrying an HTTP-like status code."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class StaleRefError(PilotError):
    """A ref was used that does not belong to the most recent perception snapshot."""

    def __init__(self, ref: str, generation: Optional[int] = None):
        if generation is None:
            message = f"Element reference '{ref}' is not valid: no page snapshot has been taken"
        else:
            message = (
                f"Element reference '{ref}' does not belong to the current page snapshot "
                f"(generation {generation}). Use a ref from the latest snapshot."
            )
        super().__init__(message)
        self.ref = ref
        self.generation = generation


class BrowserActionError(PilotError):
    """A browser capability failed to perform an action."""


class NavigationTimeoutError(BrowserActionError):
    """Navigation did not complete in time."""


class ConversationBudgetExceeded(PilotError):
    """The conversation cannot be trimmed to fit the configured message budget."""


class TaskCancelled(PilotError):
    """The task was cancelled at a suspension point."""


def status_code_of(error: BaseException) -> Optional[int]:
    code = getattr(error, "status_code", None)
    if code is None:
        response = getattr(error, "response", None)
        code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def is_retryable(error: BaseException) -> bool:
    """Classify a model invocation error. Unknown errors are treated as transient."""
    if isinstance(error, TaskCancelled):
        return False
    if isinstance(error, (asyncio.TimeoutError, httpx.TransportError, ConnectionError)):
        return True

    code = status_code_of(error)
    if code is not None:
        if code in (408, 429) or code >= 500:
            return True
        if 400 <= code < 500:
            return False

    message = str(error).lower()
    if any(marker in message for marker in _AUTH_MARKERS):
        return False
    return True
