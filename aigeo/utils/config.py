"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Credentials are optional at load time. Handlers report missing
credentials per request instead of failing on import.
"""

from typing import List, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


def split_csv(raw: Optional[str]) -> List[str]:
    """Split a comma-separated setting into trimmed, non-empty values."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase (data store)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # DataForSEO
    DATAFORSEO_LOGIN: Optional[str] = None
    DATAFORSEO_PASSWORD: Optional[str] = None
    DATAFORSEO_MAX_RETRIES: int = 0

    # Google OAuth (Search Console + Business Profile share one refresh token)
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REFRESH_TOKEN: Optional[str] = None

    # Admin gate
    ARP_ADMIN_KEY: Optional[str] = None
    ARP_ALLOWED_ORIGINS: str = ""

    # Tracked site
    AI_GEO_DOMAIN: str = ""
    DEFAULT_SITE_URL: str = ""
    BRAND_TERMS: str = ""

    # Portfolio segment inference (path markers on best_url)
    ACADEMY_PATH_MARKER: str = "/academy"
    BLOG_PATH_MARKER: str = "/blog/"

    # SERP defaults
    SERP_LOCATION_NAME: str = "United Kingdom"
    SERP_LANGUAGE_CODE: str = "en"
    SERP_LANGUAGE_NAME: str = "English"
    SERP_DEPTH: int = 50
    LABS_LOCATION_CODE: int = 2826

    # Shared audits
    SHARE_TTL_DAYS: int = 30

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Timeouts
    API_TIMEOUT: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def has_supabase(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    @property
    def has_dataforseo(self) -> bool:
        return bool(self.DATAFORSEO_LOGIN and self.DATAFORSEO_PASSWORD)

    @property
    def has_google_oauth(self) -> bool:
        return bool(
            self.GOOGLE_CLIENT_ID
            and self.GOOGLE_CLIENT_SECRET
            and self.GOOGLE_REFRESH_TOKEN
        )

    @property
    def allowed_origins(self) -> List[str]:
        return split_csv(self.ARP_ALLOWED_ORIGINS)

    @property
    def brand_terms(self) -> List[str]:
        return [term.lower() for term in split_csv(self.BRAND_TERMS)]


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
