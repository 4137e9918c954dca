"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SHIPRATE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Shipment Zone & Rating API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for import reports.")
    persist_import_reports: bool = Field(
        default=True,
        description="Write a summary.json/zones.csv for every zone import run.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Zone import
    import_batch_size: int = Field(default=8, ge=1, description="Zones resolved per batch.")
    import_max_workers: int = Field(default=8, ge=1, description="Concurrent zone resolutions per batch.")
    import_batch_pause_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Pause between batches to bound sustained write load on the store.",
    )
    max_commit_size: int = Field(default=450, ge=1, description="Hard per-commit operation ceiling.")
    city_commit_size: int = Field(default=400, ge=1)
    postal_commit_size: int = Field(default=450, ge=1)
    delete_commit_size: int = Field(default=450, ge=1)

    # Zone matching query limits
    postal_query_limit: int = Field(default=200, ge=1)
    name_exact_query_limit: int = Field(default=100, ge=1)
    name_fuzzy_query_limit: int = Field(default=50, ge=1)

    # Rating
    default_currency: str = "CAD"
    oversize_threshold: float = Field(default=48.0, gt=0.0, description="Longest allowed side before oversize applies.")
    oversize_surcharge: float = Field(default=25.0, ge=0.0)
    declared_value_threshold: float = Field(default=1000.0, ge=0.0)
    declared_value_rate: float = Field(default=0.01, ge=0.0)
    skid_weight_threshold_lbs: float = Field(default=200.0, gt=0.0)
    skid_volume_threshold_cubic_feet: float = Field(default=20.0, gt=0.0)

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
