"""
Model-calling capability consumed by the engine.

Vendor adapters live outside this package; anything with a matching
``ainvoke`` coroutine can drive a task. Errors should carry a
``status_code`` attribute (see ``browser_pilot.exceptions.LLMException``)
so the retry layer can classify them.
"""
from typing import Optional, Protocol, Sequence, runtime_checkable

from browser_pilot.llm.messages import BaseMessage
from browser_pilot.llm.views import ChatInvokeCompletion, ToolDefinition


@runtime_checkable
class BaseChatModel(Protocol):
	model: str

	async def ainvoke(
		self,
		messages: Sequence[BaseMessage],
		tools: Optional[Sequence[ToolDefinition]] = None,
		tool_choice: Optional[str] = None,
		max_tokens: Optional[int] = None,
	) -> ChatInvokeCompletion: ...
