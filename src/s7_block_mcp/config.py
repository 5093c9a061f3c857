"""Client settings loaded from the environment (``S7_*``) or a ``.env`` file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Connection parameters for one PLC."""

    address: str = "127.0.0.1:102"
    rack: int = Field(default=0, ge=0)
    slot: int = Field(default=1, ge=0)
    timeout: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="S7_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_settings() -> ClientSettings:
    return ClientSettings()
