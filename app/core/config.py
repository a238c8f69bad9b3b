from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql+psycopg2://kindness:kindness@db:5432/kindness"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://journal.example.com,https://app.example.com"
    CORS_ORIGINS: str = "*"

    # Zone used when a user profile has no timezone set.
    DEFAULT_TIMEZONE: str = "UTC"

    # Longest explicit start..end range a trends request may ask for.
    MAX_RANGE_DAYS: int = 3660

    # Minimum gap between two AI regenerations of the same (user, period).
    REGENERATE_DEBOUNCE_SECONDS: float = 60.0

    # OpenAI-compatible chat completions provider for AI reflections.
    # Leaving AI_API_KEY empty disables the AI path.
    AI_API_KEY: str = ""
    AI_BASE_URL: str = "https://api.openai.com/v1"
    AI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 20.0
    AI_MAX_CONTEXT_ITEMS: int = 50

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def ai_enabled(self) -> bool:
        return bool(self.AI_API_KEY.strip())


settings = Settings()
