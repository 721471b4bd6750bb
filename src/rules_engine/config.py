"""Configuration for the rules engine.

Configuration is loaded from:
- keyword arguments
- environment variables prefixed with ``RULES_ENGINE_``
- and a local `.env` file (if present)

Only plain values live here. Collaborators that are code (rules, dispatch,
log provider, extra verbs) are passed to :class:`rules_engine.engine.RulesEngine`
directly.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for one engine instance.

    Environment variables:
    - RULES_ENGINE_CACHE_AGE
    - RULES_ENGINE_ENABLE_WORKFLOW_STACK
    - RULES_ENGINE_SUCCESS_STATE / RULES_ENGINE_FAIL_STATE
    - RULES_ENGINE_CONTEXT_EXCLUDED_FIELDS  (JSON list)
    - RULES_ENGINE_MAX_DEPTH
    - RULES_ENGINE_LOG_LEVEL
    """

    cache_age: float = Field(
        default=5.0,
        ge=0,
        description="Seconds a built workflow stays cached; 0 disables the cache",
    )
    enable_workflow_stack: bool = Field(
        default=False,
        description="Track per-step run state and hand it to logic and log calls",
    )
    success_state: str = Field(
        default="success",
        min_length=1,
        description="Status set on the context of a success dispatch",
    )
    fail_state: str = Field(
        default="fail",
        min_length=1,
        description="Status set on the context of a failure dispatch",
    )
    context_excluded_fields: list[str] = Field(
        default_factory=list,
        description="Fields never copied into a derived context, on top of the defaults",
    )
    max_depth: int = Field(
        default=32,
        gt=0,
        description="Maximum nesting of prerequisite workflows while building",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level used by the CLI",
    )

    model_config = SettingsConfigDict(
        env_prefix="RULES_ENGINE_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _distinct_states(self) -> EngineSettings:
        if self.success_state == self.fail_state:
            raise ValueError("success_state and fail_state must differ")
        return self
