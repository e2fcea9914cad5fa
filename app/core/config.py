from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://burnout:burnout@db:5432/burnout"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # OLBI questionnaire shape
    OLBI_ITEM_COUNT: int = 16
    LIKERT_MIN: int = 1
    LIKERT_MAX: int = 4

    # Burnout level cut-offs on the overall average (1-4 scale)
    BURNOUT_MEDIUM_THRESHOLD: Decimal = Decimal("2.0")
    BURNOUT_HIGH_THRESHOLD: Decimal = Decimal("2.75")
    # A dimension average at or above this adds a detail line to the interpretation
    OLBI_DIMENSION_ALERT: Decimal = Decimal("2.5")

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
