from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://insights:insights@db:5432/insights"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://app.example.com,https://proposals.example.com"
    CORS_ORIGINS: str = "*"

    # Upper bound for every store round-trip (statement + connect timeout).
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Reference timezone for the hour-of-day histogram.
    ANALYTICS_TIMEZONE: str = "UTC"

    # Engagement score policy. Weights are normalized to sum to 100.
    ENGAGEMENT_VIEWS_WEIGHT: float = 20.0
    ENGAGEMENT_TIME_WEIGHT: float = 50.0
    ENGAGEMENT_DIVERSITY_WEIGHT: float = 30.0
    ENGAGEMENT_VIEWS_TARGET: int = 5
    ENGAGEMENT_TIME_TARGET_SECONDS: int = 300

    # Per-IP budget for POST /analytics/track.
    RATE_LIMIT_TRACK_REQUESTS: int = 120
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    RECENT_ACTIVITY_LIMIT: int = 20
    TOP_PROPOSALS_LIMIT: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
