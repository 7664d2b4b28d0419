from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class ChatInvokeUsage(BaseModel):
	"""Token usage reported by a model call."""

	prompt_tokens: int = 0
	completion_tokens: int = 0

	@property
	def total_tokens(self) -> int:
		return self.prompt_tokens + self.completion_tokens


class ToolCall(BaseModel):
	id: str = ''
	name: str
	arguments: Union[str, dict[str, Any]] = Field(default_factory=dict)
	"""Raw JSON text as produced by the model, or an already-decoded object."""


class ToolDefinition(BaseModel):
	name: str
	description: str
	parameters: dict[str, Any] = Field(default_factory=lambda: {'type': 'object', 'properties': {}})


class ChatInvokeCompletion(BaseModel):
	"""Result of one model invocation."""

	completion: str = ''
	tool_calls: list[ToolCall] = Field(default_factory=list)
	usage: Optional[ChatInvokeUsage] = None
	model: Optional[str] = None

	@property
	def first_tool_call(self) -> Optional[ToolCall]:
		return self.tool_calls[0] if self.tool_calls else None
