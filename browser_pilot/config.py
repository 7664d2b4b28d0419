from __future__ import annotations

from typing import Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from browser_pilot.exceptions import AgentConfigurationError


class PilotConfig(BaseSettings):
    """
    Configuration for one task run.

    Every field reads ``PILOT_<FIELD>`` from the environment or a ``.env`` file;
    keyword arguments take precedence. Built once (directly or with ``from_env``)
    and handed to the engine, which passes the same instance to the retry layer,
    the validator and the search service.
    """
    model_config = SettingsConfigDict(
        env_prefix='PILOT_',
        env_file='.env',
        env_file_encoding='utf-8',
        env_ignore_empty=True,
        frozen=True,
        extra='forbid',
    )

    logging_level: Literal['debug', 'info', 'result'] = 'info'
    setup_logging: bool = True

    # Budgets
    max_iterations: int = Field(50, ge=1)
    max_conversation_messages: int = Field(100, ge=4)
    max_consecutive_errors: int = Field(5, ge=1)
    max_total_errors: int = Field(15, ge=1)
    max_validation_attempts: int = Field(3, ge=1)
    max_repeated_actions: int = Field(2, ge=1)

    # Retry
    retry_max_attempts: int = Field(3, ge=1)
    retry_initial_delay: float = Field(1.0, ge=0)
    retry_backoff_factor: float = Field(2.0, ge=1)
    retry_max_delay: float = Field(10.0, gt=0)
    planning_max_attempts: int = Field(3, ge=1)
    validation_max_attempts: int = Field(2, ge=1)

    # Timeouts, seconds
    llm_timeout: float = Field(90.0, gt=0)
    action_timeout: float = Field(10.0, gt=0)
    navigation_timeout: float = Field(30.0, gt=0)
    network_idle_timeout: float = Field(5.0, gt=0)

    # Model output budgets
    max_generation_tokens: int = 3000
    max_planning_tokens: int = 1500
    max_validation_tokens: int = 1000

    vision: bool = False
    validation_history_messages: int = Field(30, ge=1)

    search_provider: Optional[str] = None
    search_api_key: Optional[str] = None

    # Browser
    headless: bool = True
    browser_name: Literal['chromium', 'firefox', 'webkit'] = Field(
        'chromium', validation_alias=AliasChoices('browser_name', 'PILOT_BROWSER')
    )
    driver: Literal['playwright', 'patchright'] = 'playwright'
    pw_endpoint: Optional[str] = None
    pw_cdp_endpoint: Optional[str] = None
    proxy: Optional[str] = None

    @field_validator('logging_level', mode='before')
    @classmethod
    def _lower_level(cls, value):
        return value.lower() if isinstance(value, str) else value

    @classmethod
    def from_env(cls, dotenv: bool = True, **overrides) -> 'PilotConfig':
        """Read PILOT_* variables (and a .env file unless ``dotenv`` is false); overrides win."""
        if not dotenv:
            overrides['_env_file'] = None
        return cls.build(**overrides)

    @classmethod
    def build(cls, **values) -> 'PilotConfig':
        try:
            return cls(**values)
        except ValidationError as e:
            raise AgentConfigurationError(f'Invalid configuration: {e}') from e
