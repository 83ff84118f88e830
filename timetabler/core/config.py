from functools import lru_cache
import json
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


PROJECT_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class Settings(BaseSettings):
    # Resolve to the project .env so the CLI and uvicorn behave the same from any cwd.
    model_config = SettingsConfigDict(
        env_prefix="TIMETABLER_",
        env_file=str(PROJECT_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "Timetabler API"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    max_request_size_bytes: int = 5_000_000

    time_limit_seconds: float = 300.0
    random_seed: int | None = None
    parallel_instances: int = 1
    academic_year: int = 2024
    working_days: Annotated[list[str], NoDecode] = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

    cors_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", "working_days", mode="before")
    @classmethod
    def split_list(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: list[str]) -> list[str]:
        unknown = [day for day in value if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown working days: {', '.join(unknown)}")
        if not value:
            raise ValueError("At least one working day is required")
        return sorted(set(value), key=WEEKDAYS.index)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
