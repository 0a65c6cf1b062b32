"""Worker configuration using Pydantic Settings."""

from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Worker loop
    POLL_INTERVAL_MIN: float = 10.0
    POLL_INTERVAL_MAX: float = 60.0
    POLL_BACKOFF_MULTIPLIER: float = 1.5
    EMBEDDED_WORKER: bool = False

    # Heartbeat & stuck run detection (seconds)
    HEARTBEAT_INTERVAL: float = 30.0
    STUCK_RUN_TIMEOUT: float = 3600.0
    STUCK_CHECK_INTERVAL: float = 300.0

    # HTTP
    HTTP_TIMEOUT: float = 30.0
    FAVICON_TIMEOUT: float = 10.0
    USER_AGENT: str = "ReleaseQA-Bot/1.0"
    RETRY_INITIAL_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 30.0
    RETRY_JITTER: float = 0.5

    # Concurrency caps per provider
    PREFLIGHT_CONCURRENCY: int = 3
    PERFORMANCE_CONCURRENCY: int = 3
    SPELLING_CONCURRENCY: int = 5

    # URL caps per run
    PREFLIGHT_URL_LIMIT: int = 50
    PERFORMANCE_URL_LIMIT: int = 20
    SPELLING_URL_LIMIT: int = 20

    # Scoring
    PASS_THRESHOLD: int = 50
    SEVERITY_PENALTIES: Dict[str, int] = {
        "BLOCKER": 40,
        "CRITICAL": 20,
        "HIGH": 10,
        "MEDIUM": 5,
        "LOW": 2,
        "INFO": 0,
    }
    # Skipped by the link checker; these hosts answer bots with 403s
    CDN_WHITELIST: List[str] = [
        "kit.fontawesome.com",
        "use.fontawesome.com",
        "cdnjs.cloudflare.com",
        "cdn.jsdelivr.net",
        "unpkg.com",
        "ajax.googleapis.com",
        "fonts.googleapis.com",
        "fonts.gstatic.com",
        "code.jquery.com",
        "stackpath.bootstrapcdn.com",
        "maxcdn.bootstrapcdn.com",
        "use.typekit.net",
        "cdn.tailwindcss.com",
        "cdn.ampproject.org",
    ]

    # PageSpeed Insights
    PAGE_SPEED_API_KEY: Optional[str] = None
    PAGE_SPEED_API_URL: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    PAGE_SPEED_REFERER: str = ""
    PAGE_SPEED_MAX_RETRIES: int = 5

    # LanguageTool (self-hosted URL takes precedence over the cloud API key)
    LANGUAGETOOL_URL: Optional[str] = None
    LANGUAGETOOL_API_KEY: Optional[str] = None
    LANGUAGETOOL_CLOUD_URL: str = "https://api.languagetool.org/v2"
    LANGUAGETOOL_LEVEL: str = "default"
    # Comma-separated, e.g. "UPPERCASE_SENTENCE_START,EN_COMPOUNDS"
    LANGUAGETOOL_DISABLED_RULES: str = ""
    LANGUAGETOOL_DISABLED_CATEGORIES: str = ""

    # SE Ranking website audit
    SE_RANKING_API_KEY: Optional[str] = None
    SE_RANKING_API_URL: str = "https://api4.seranking.com"
    SE_RANKING_POLL_INTERVAL: float = 30.0
    SE_RANKING_MAX_WAIT: float = 3600.0
    SE_RANKING_MAX_PAGES: int = 500

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
