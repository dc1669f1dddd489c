import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        port: int,
        database_url: str,
        jwt_secret: Optional[str],
        jwt_expires_hours: int,
        environment: str,
        timezone: str,
        bcrypt_rounds: int,
        cors_origins: list[str],
        scheduler_enabled: bool,
    ) -> None:
        self.port = port
        self.database_url = database_url
        self.jwt_secret = jwt_secret
        self.jwt_expires_hours = jwt_expires_hours
        self.environment = environment
        self.timezone = timezone
        self.bcrypt_rounds = bcrypt_rounds
        self.cors_origins = cors_origins
        self.scheduler_enabled = scheduler_enabled

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "finance.db"
        database_url = f"sqlite:///{default_db}"
    environment = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        port=int(os.getenv("PORT", "3000")),
        database_url=database_url,
        jwt_secret=os.getenv("JWT_SECRET") or None,
        jwt_expires_hours=int(os.getenv("JWT_EXPIRES_HOURS", "24")),
        environment=environment,
        timezone=os.getenv("FINANCE_TIMEZONE", "UTC"),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        scheduler_enabled=_flag(os.getenv("FINANCE_SCHEDULER_ENABLED", "true")),
    )
