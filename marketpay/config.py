import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseModel):
    """Process-wide configuration, read once at start-up."""

    model_config = ConfigDict(frozen=True)

    database_url: str = "sqlite:///./marketpay.db"
    webhook_secret: str = ""
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    stock_service_url: str = "http://localhost:8002"
    stock_service_timeout: float = 5.0
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(dotenv_path=ENV_PATH)
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            webhook_secret=os.getenv("WEBHOOK_SECRET", ""),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            stock_service_url=os.getenv("STOCK_SERVICE_URL", defaults.stock_service_url),
            stock_service_timeout=float(
                os.getenv("STOCK_SERVICE_TIMEOUT", defaults.stock_service_timeout)
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            log_file=os.getenv("LOG_FILE") or None,
        )
