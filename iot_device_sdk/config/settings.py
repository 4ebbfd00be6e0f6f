"""Client configuration."""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .constants import (
    ENV_DIAGNOSTIC_SAMPLING_PERCENTAGE,
    ENV_IMMEDIATE_FIRST_RETRY,
    ENV_MAX_OPERATION_TIMEOUT,
    ENV_PRODUCT_INFO,
    MAX_OPERATION_TIMEOUT,
)


class ClientConfig(BaseModel):
    """
    Configuration shared by device and module clients.

    A client copies the values it needs at construction time; changing a
    config object afterwards does not affect existing clients.
    """
    max_operation_timeout: float = Field(
        default=MAX_OPERATION_TIMEOUT,
        ge=0,
        description="Seconds an operation may spend retrying before giving up"
    )
    immediate_first_retry: bool = Field(
        default=True,
        description="Retry the first failure immediately with the default policy"
    )
    diagnostic_sampling_percentage: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Percentage of outgoing messages carrying diagnostic data"
    )
    product_info: Optional[str] = Field(None, description="Free text appended to the user agent")

    @field_validator('diagnostic_sampling_percentage', mode='before')
    def validate_sampling_percentage(cls, v):
        if isinstance(v, bool):
            raise ValueError("sampling percentage must be an integer")
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """
        Build a config from environment variables (and a ``.env`` file).

        Keyword arguments take precedence over the environment.
        """
        load_dotenv()

        values: Dict[str, Any] = {}
        timeout = os.getenv(ENV_MAX_OPERATION_TIMEOUT)
        if timeout is not None:
            values["max_operation_timeout"] = timeout
        immediate = os.getenv(ENV_IMMEDIATE_FIRST_RETRY)
        if immediate is not None:
            values["immediate_first_retry"] = immediate.strip().lower() in ("1", "true", "yes", "on")
        sampling = os.getenv(ENV_DIAGNOSTIC_SAMPLING_PERCENTAGE)
        if sampling is not None:
            values["diagnostic_sampling_percentage"] = sampling
        product_info = os.getenv(ENV_PRODUCT_INFO)
        if product_info:
            values["product_info"] = product_info

        values.update(overrides)
        return cls(**values)
