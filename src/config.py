"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from functools import lru_cache

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Meta (Facebook / Instagram) Lead Ads
    facebook_app_secret: str = ""  # HMAC key for X-Hub-Signature-256
    facebook_verify_token: str = ""  # hub.verify_token for the subscription handshake
    facebook_access_token: str = ""  # Page access token for Graph API lead reads
    facebook_graph_api_version: str = "v18.0"
    facebook_graph_base_url: str = "https://graph.facebook.com"
    facebook_graph_timeout_seconds: float = 10.0

    # Back-office staff routes (webhook status). Bearer token; required in production
    staff_api_token: str = ""

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


class MetaWebhookConfig(BaseModel):
    """
    Immutable snapshot of the Meta webhook secrets.
    Built once at startup and handed to the validator, handshake and fetcher.
    """
    model_config = ConfigDict(frozen=True)

    app_secret: str = ""
    verify_token: str = ""
    access_token: str = ""
    graph_api_version: str = "v18.0"
    graph_base_url: str = "https://graph.facebook.com"
    timeout_seconds: float = 10.0

    @property
    def missing_secrets(self) -> list[str]:
        missing = []
        if not self.app_secret:
            missing.append("FACEBOOK_APP_SECRET")
        if not self.verify_token:
            missing.append("FACEBOOK_VERIFY_TOKEN")
        if not self.access_token:
            missing.append("FACEBOOK_ACCESS_TOKEN")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_secrets


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_meta_webhook_config() -> MetaWebhookConfig:
    settings = get_settings()
    return MetaWebhookConfig(
        app_secret=settings.facebook_app_secret,
        verify_token=settings.facebook_verify_token,
        access_token=settings.facebook_access_token,
        graph_api_version=settings.facebook_graph_api_version,
        graph_base_url=settings.facebook_graph_base_url.rstrip("/"),
        timeout_seconds=settings.facebook_graph_timeout_seconds,
    )
