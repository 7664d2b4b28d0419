from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from browser_pilot.config import PilotConfig


class AgentSettings(BaseModel):
    """Everything one task run needs. Validated before the task enters SETUP."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    task: str
    llm: Any = Field(description="Model capability implementing BaseChatModel.ainvoke")
    browser: Optional[Any] = Field(None, description="Browser capability; a BrowserSession is created from config when unset.")
    starting_url: Optional[str] = None
    guardrails: Optional[str] = None
    data: Optional[Any] = Field(None, description="Input data handed to the model alongside the task.")
    loggers: list[Any] = Field(default_factory=list)
    config: PilotConfig = Field(default_factory=PilotConfig)
    search_service: Optional[Any] = Field(None, description="Overrides the search service built from config.")
    save_conversation_path: Optional[str] = None
    extend_system_message: Optional[str] = None

    @field_validator("task")
    @classmethod
    def _task_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("task must not be empty")
        return value.strip()

    @field_validator("starting_url")
    @classmethod
    def _starting_url_scheme(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not value.startswith(("http://", "https://", "about:")):
            raise ValueError(f"starting_url must be an http(s) or about: URL, got {value!r}")
        return value

    @field_validator("llm")
    @classmethod
    def _llm_has_ainvoke(cls, value: Any) -> Any:
        if not callable(getattr(value, "ainvoke", None)):
            raise ValueError("llm must provide an async ainvoke(messages, ...) method")
        return value

