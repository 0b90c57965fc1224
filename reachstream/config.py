from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Oxylabs residential proxy
    oxylabs_username: str = ""
    oxylabs_password: str = ""
    oxylabs_host: str = "pr.oxylabs.io"
    oxylabs_port: int = 7777

    # HTTP policy
    request_timeout: float = 30.0
    retry_limit: int = 2
    retry_backoff: float = 1.0  # seconds, doubled per attempt

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def proxy_configured(self) -> bool:
        return bool(self.oxylabs_username and self.oxylabs_password)

    @property
    def proxy_url(self) -> Optional[str]:
        """Proxy URL for httpx, or None when no credentials are set."""
        if not self.proxy_configured:
            return None
        return (
            f"http://{self.oxylabs_username}:{self.oxylabs_password}"
            f"@{self.oxylabs_host}:{self.oxylabs_port}"
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
