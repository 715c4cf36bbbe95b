import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ratsinfo.services.client import ClientConfig

load_dotenv()

DEFAULT_BASE_URL = "https://buergerinfo.stadt-koeln.de/oparl/bodies/stadtverwaltung_koeln"


class Settings(BaseModel):
    # OParl API
    oparl_base_url: str = Field(default=DEFAULT_BASE_URL, alias="OPARL_BASE_URL")
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")
    max_concurrent_requests: int = Field(default=5, alias="MAX_CONCURRENT_REQUESTS")

    # Cache Configuration
    cache_ttl_seconds: int = Field(default=600, alias="CACHE_TTL_SECONDS")
    cache_revalidate_seconds: int = Field(default=120, alias="CACHE_REVALIDATE_SECONDS")
    cache_max_size: int = Field(default=200, alias="CACHE_MAX_SIZE")
    cache_eviction_batch: int = Field(default=20, alias="CACHE_EVICTION_BATCH")
    cache_sub_entity_ttl_seconds: int | None = Field(
        default=None, alias="CACHE_SUB_ENTITY_TTL_SECONDS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")

    def client_config(self) -> ClientConfig:
        """Build the fetch client configuration from these settings."""
        sub_entity_ttl = (
            timedelta(seconds=self.cache_sub_entity_ttl_seconds)
            if self.cache_sub_entity_ttl_seconds is not None
            else None
        )
        return ClientConfig(
            base_url=self.oparl_base_url,
            hard_ttl=timedelta(seconds=self.cache_ttl_seconds),
            soft_ttl=timedelta(seconds=self.cache_revalidate_seconds),
            max_cache_size=self.cache_max_size,
            eviction_batch=self.cache_eviction_batch,
            max_concurrent_requests=self.max_concurrent_requests,
            sub_entity_ttl=sub_entity_ttl,
            timeout=self.request_timeout,
            debug=self.debug,
        )


def load_settings() -> Settings:
    """Read settings from the process environment."""
    return Settings.model_validate(
        {name: value for name, value in os.environ.items() if name in _ENV_NAMES}
    )


_ENV_NAMES = {field.alias for field in Settings.model_fields.values()}

global_settings = load_settings()
