from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Pharmastock"
    DATABASE_URL: str = "sqlite:///./pharmastock.db"
    LOG_LEVEL: str = "INFO"

    # Browser dashboard origins (comma-separated)
    CORS_ORIGINS: str = "http://localhost:3000"

    # Narrative generation (OpenAI chat completions)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 60.0

    # Forecasting
    FORECAST_ALPHA: float = 0.4
    EXPIRY_WINDOW_DAYS: int = 30

    # Seconds between keep-alive comments on SSE streams
    SSE_HEARTBEAT_SECONDS: float = 15.0

    # Shared secret for the external snapshot scheduler (empty = endpoint disabled)
    SNAPSHOT_JOB_KEY: str = ""

    model_config = {"env_file": ".env"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
