from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dispensary.db"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # calendar day used for daily THC totals when a store has no timezone
    COMPLIANCE_TIMEZONE: str = "UTC"
    TAX_RATE: float = 0.06

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
