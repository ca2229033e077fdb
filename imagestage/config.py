from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Remote image store
    store_backend: Literal["http", "firebase"] = Field("http", description="Which ImageStore backend to use.")
    store_base_url: str = Field("http://127.0.0.1:8080/api/data/v9.2", description="Base URL of the OData-style API.")
    store_token: Optional[str] = Field(default=None, description="Bearer token sent to the HTTP store.")
    store_entity_set: str = Field("images", description="Entity set holding image records.")
    store_timeout: float = Field(30.0, description="HTTP timeout in seconds.")

    # Column names on the HTTP store
    column_id: str = Field("image_id")
    column_name: str = Field("image_name")
    column_note: str = Field("notes")
    column_image: str = Field("image")
    column_key_data: str = Field("key_data")
    column_group_label: str = Field("table_name")

    # Firebase
    project_id: Optional[str] = Field(default=None, description="GCP project ID")
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
        description="Path to service-account JSON file or JSON string itself.",
    )
    firebase_root: str = Field("images", description="Database path under which image records live.")

    # Engine behaviour
    group_label: str = Field("unknown_table", description="Label written with every created record.")
    key_change_policy: Literal["discard", "prompt", "keep"] = Field(
        "discard", description="What happens to unsaved images when the grouping key changes."
    )

    # Logging
    log_level: str = Field("INFO")


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
