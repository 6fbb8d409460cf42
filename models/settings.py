"""Configuration settings for the provisioner CLI and API."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RunMode(str, Enum):
    DRY_RUN = "dry-run"
    APPLY = "apply"


class KeaSettings(BaseSettings):
    """Connection and run options, read from ``KEA_*`` environment variables."""

    api_url: str = Field("http://127.0.0.1:8000", description="Kea control agent endpoint.")
    username: str | None = Field(default=None, description="HTTP Basic username for the control agent.")
    password: str | None = Field(default=None, description="HTTP Basic password for the control agent.")
    debug: bool = Field(default=False, description="Log payloads and responses.")
    mode: RunMode = Field(default=RunMode.DRY_RUN, description="dry-run suppresses mutating commands.")
    connect_timeout: float = Field(5.0, gt=0.0, description="Seconds to wait for the TCP connection.")
    request_timeout: float = Field(30.0, gt=0.0, description="Seconds to wait for a command response.")
    valid_lifetime: int = Field(300, ge=0, description="Lease lifetime written for new subnets.")
    rollback_on_failure: bool = Field(
        default=True,
        description="Delete subnets and reservations created by a run that fails fatally.",
    )
    workflow_path: Path = Field(Path("workflow.json"), description="Device workflow JSON.")
    template_path: Path = Field(Path("template.json"), description="Per-model port stencil JSON.")

    model_config = SettingsConfigDict(env_prefix="KEA_", case_sensitive=False)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("api_url must not be empty")
        return value.rstrip("/")
