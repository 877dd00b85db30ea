from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod"),
        extra="ignore",
    )

    database_url: Optional[str] = None

    # Shared store for the résumé upload rate limiter. Leaving it unset
    # disables throttling (local dev only).
    redis_url: Optional[str] = None
    resume_rate_limit: int = 30
    resume_rate_window_seconds: int = 60

    # "auto" picks the LLM parser when an OpenRouter key is present
    resume_parser: str = "auto"
    openrouter_api_key: Optional[str] = None
    resume_parser_model: str = "openai/gpt-4.1-mini"

    # Auth settings. With auth disabled every request runs as a local dev user.
    auth_enabled: bool = True
    auth_secret_key: str = "change-me-in-production-please-32chars"
    access_token_expire_minutes: int = 60 * 24

    # Stripe billing settings
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_price_free: Optional[str] = None
    stripe_price_pro: Optional[str] = None
    stripe_price_enterprise: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "json"

    # Application base URL (for constructing callback URLs etc.)
    app_base_url: str = "http://localhost:8000"  # Default for local dev

    def price_for_plan(self, plan: str) -> Optional[str]:
        return {
            "FREE": self.stripe_price_free,
            "PRO": self.stripe_price_pro,
            "ENTERPRISE": self.stripe_price_enterprise,
        }.get(plan)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
