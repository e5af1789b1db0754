"""Pydantic Settings — loads configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "ignore"}

    w3c_endpoint: str = "https://validator.w3.org/nu/"
    w3c_timeout: float = 30.0
    w3c_batch_size: int = 50
    w3c_batch_delay: float = 1.0

    pagespeed_endpoint: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    pagespeed_timeout: float = 60.0
    pagespeed_batch_size: int = 3
    pagespeed_batch_delay: float = 3.0
    google_api_key: str = ""

    max_upload_bytes: int = 5 * 1024 * 1024
    max_urls: int = 1000
    max_url_length: int = 2048

    user_agent: str = "siteprobe/0.1.0"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
