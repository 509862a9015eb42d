from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    default_currency: str = Field("EUR", alias="LEDGER_DEFAULT_CURRENCY")
    percent_tolerance: Decimal = Field(Decimal("0.01"), alias="LEDGER_PERCENT_TOLERANCE", ge=0)
    log_level: str = Field("INFO", alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
