"""Service configuration (pydantic-settings).

Values come from the environment or a ``.env`` at the repository root.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[3]
# repository_root/data (we are in backend/mynotes/core)
DEFAULT_DATA_DIR = REPO_ROOT / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(REPO_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Field(DEFAULT_DATA_DIR, validation_alias=AliasChoices("APP_DATA_DIR", "DATA_DIR"))
    aws_region: str = "us-east-1"
    notes_table_name: str = "Notes"

    # unset disables analytics submission and journaling
    pinpoint_app_id: Optional[str] = None
    # unset means a generated id persisted under data_dir
    pinpoint_endpoint_id: Optional[str] = None

    remote_max_workers: int = Field(4, ge=1)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()
