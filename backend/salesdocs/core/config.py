from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_COMPANY_NAME = "Ziegelmehl Vertrieb GmbH"
DEFAULT_COMPANY_ADDRESS = "Werkstraße 1\n97906 Faulbach\nDeutschland"

_PLACEHOLDER_COMPANY_NAME = "Your Company Name"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(..., alias="DATABASE_URL")
    app_storage_dir: Path = Field(Path("/data"), alias="APP_STORAGE_DIR")

    basic_auth_username: str = Field(..., alias="BASIC_AUTH_USERNAME")
    basic_auth_password: str = Field(..., alias="BASIC_AUTH_PASSWORD")

    company_name: str = Field(DEFAULT_COMPANY_NAME, alias="COMPANY_NAME")
    company_address: str = Field(DEFAULT_COMPANY_ADDRESS, alias="COMPANY_ADDRESS")
    company_email: str | None = Field(None, alias="COMPANY_EMAIL")
    company_logo_path: str | None = Field(None, alias="COMPANY_LOGO_PATH")

    cors_origins: str | None = Field(None, alias="CORS_ORIGINS")

    # --- Document numbering ---
    numbering_max_attempts: int = Field(100, alias="NUMBERING_MAX_ATTEMPTS", ge=1)
    # 1 = calendar year. With e.g. 11, November and December already count towards the next season year.
    numbering_season_start_month: int = Field(1, alias="NUMBERING_SEASON_START_MONTH", ge=1, le=12)
    numbering_year_override: int | None = Field(None, alias="NUMBERING_YEAR_OVERRIDE")

    # --- Draft autosave ---
    autosave_debounce_seconds: float = Field(1.5, alias="AUTOSAVE_DEBOUNCE_SECONDS", gt=0)

    @field_validator("company_name", mode="before")
    @classmethod
    def _normalize_company_name(cls, v: object) -> object:
        if isinstance(v, str):
            name = v.strip()
            if name == _PLACEHOLDER_COMPANY_NAME:
                return DEFAULT_COMPANY_NAME
            return name
        return v

    @field_validator("company_address", mode="before")
    @classmethod
    def _normalize_company_address(cls, v: object) -> object:
        # `.env.example` uses "\n" escapes; convert them to real newlines so PDFs render nicely.
        if isinstance(v, str):
            return v.replace("\\n", "\n").replace("\r\n", "\n").strip()
        return v

    @field_validator("company_email", mode="before")
    @classmethod
    def _normalize_company_email(cls, v: object) -> object:
        if v is None:
            return None
        if isinstance(v, str):
            email = v.strip()
            return email or None
        return v

    @field_validator("company_logo_path", mode="before")
    @classmethod
    def _normalize_company_logo_path(cls, v: object) -> object:
        if v is None:
            return None
        if isinstance(v, str):
            path = v.strip()
            if not path:
                return None
            # WeasyPrint expects URLs; for absolute filesystem paths, prefix `file://`.
            if path.startswith("/") and "://" not in path:
                return f"file://{path}"
            return path
        return v

    @field_validator("numbering_year_override", mode="before")
    @classmethod
    def _normalize_numbering_year_override(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def pdf_dir(self) -> Path:
        return self.app_storage_dir / "pdfs"


@lru_cache
def get_settings() -> Settings:
    return Settings()
