import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        api_key: str,
        token_max_age_hours: int,
        log_level: str,
        currency_symbol: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.api_key = api_key
        self.token_max_age_hours = token_max_age_hours
        self.log_level = log_level
        self.currency_symbol = currency_symbol


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "UTC")
    secret_key = os.getenv(
        "BUDGET_SECRET_KEY",
        "5f0c2d8e41b7a9c3e6d1f4a8b2c7e0d9a3f6b1c4e7d0a2b5c8e1f3a6d9b2c5e8",
    )
    api_key = os.getenv("BUDGET_API_KEY", "budget-dev-key")
    token_max_age_hours = int(os.getenv("BUDGET_TOKEN_MAX_AGE_HOURS", "24"))
    log_level = os.getenv("BUDGET_LOG_LEVEL", "INFO").upper()
    currency_symbol = os.getenv("BUDGET_CURRENCY_SYMBOL", "$")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        api_key=api_key,
        token_max_age_hours=token_max_age_hours,
        log_level=log_level,
        currency_symbol=currency_symbol,
    )
