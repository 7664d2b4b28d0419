from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from browser_pilot.llm.views import ToolCall


class ContentPartTextParam(BaseModel):
	type: Literal['text'] = 'text'
	text: str


class ImageURL(BaseModel):
	url: str
	"""Either a URL or a data URL (data:image/png;base64,...)."""
	media_type: str = 'image/png'


class ContentPartImageParam(BaseModel):
	type: Literal['image_url'] = 'image_url'
	image_url: ImageURL


ContentPart = Union[ContentPartTextParam, ContentPartImageParam]


class _MessageBase(BaseModel):
	content: Union[str, list[ContentPart]] = ''
	kind: Optional[str] = None
	"""Conversation bookkeeping tag (e.g. 'snapshot', 'action', 'observation'). Never sent to the model."""
	group: Optional[int] = None
	"""Iteration that produced the message; used when trimming the conversation."""

	@property
	def text(self) -> str:
		if isinstance(self.content, str):
			return self.content
		return '\n'.join(part.text for part in self.content if isinstance(part, ContentPartTextParam))

	@property
	def has_image(self) -> bool:
		return not isinstance(self.content, str) and any(isinstance(p, ContentPartImageParam) for p in self.content)


class SystemMessage(_MessageBase):
	role: Literal['system'] = 'system'


class UserMessage(_MessageBase):
	role: Literal['user'] = 'user'


class AssistantMessage(_MessageBase):
	role: Literal['assistant'] = 'assistant'
	tool_calls: list[ToolCall] = Field(default_factory=list)


BaseMessage = Union[SystemMessage, UserMessage, AssistantMessage]
