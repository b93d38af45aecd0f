"""Configuration for the decider process.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing here changes how decisions are derived from history; these settings
only cover rendering limits, the completion message and logging.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeciderSettings(BaseSettings):
    """Settings for the decider.

    Environment variables:
    - LOG_LEVEL                   (optional)
    - DECIDER_COMPLETION_RESULT   (optional)
    - DECIDER_MAX_REASON_LENGTH   (optional)
    - DECIDER_MAX_DETAILS_LENGTH  (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `DeciderSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    completion_result: str = Field(
        default="All tasks completed successfully.",
        validation_alias="DECIDER_COMPLETION_RESULT",
        description="Result text sent with CompleteWorkflowExecution",
    )

    # The service rejects longer values outright, which would turn a workflow
    # failure into a decision task failure.
    max_reason_length: int = Field(
        default=256,
        gt=0,
        validation_alias="DECIDER_MAX_REASON_LENGTH",
        description="Maximum length of a FailWorkflowExecution reason",
    )
    max_details_length: int = Field(
        default=32768,
        gt=0,
        validation_alias="DECIDER_MAX_DETAILS_LENGTH",
        description="Maximum length of a FailWorkflowExecution details text",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )
