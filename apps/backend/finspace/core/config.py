from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Finspace Backend"
    ENV: str = "dev"

    # apps/backend/db.sqlite3 as an absolute path so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # Recurrence defaults
    RECURRENCE_PREVIEW_COUNT: int = 12
    RECURRENCE_INSTANCE_COUNT: int = 6
    RECURRING_LOOKAHEAD_DAYS: int = 30

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="FINSPACE_", case_sensitive=False)


settings = Settings()
