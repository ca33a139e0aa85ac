from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Remote mirror of the newsletter folder (HttpRepository)
    base_url: str | None = None
    user_agent: str = "NewsletterIngest/1.0"
    timeout: int = 20

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "NEWSLETTER_"


settings = Settings()
