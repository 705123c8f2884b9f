import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv() # Optional: Load .env file

DEFAULT_RATE_SERVICE_URL = "http://localhost:8001/find_rate"


def _float_env(name: str, default: str) -> float:
    raw_value = os.getenv(name, default)
    try:
        return float(raw_value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw_value!r}") from None


def _int_env(name: str, default: str) -> int:
    raw_value = os.getenv(name, default)
    try:
        return int(raw_value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw_value!r}") from None


@dataclass(frozen=True)
class Settings:
    rate_service_url: str = DEFAULT_RATE_SERVICE_URL
    rate_service_timeout_seconds: float = 5.0
    app_host: str = "0.0.0.0"
    app_port: int = 8002 # Port for this service
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Reads every setting once; the result is passed to the app, never re-read."""
        return cls(
            rate_service_url=os.getenv("SALES_TAX_RATE_SERVICE", DEFAULT_RATE_SERVICE_URL),
            rate_service_timeout_seconds=_float_env("SALES_TAX_RATE_TIMEOUT_SECONDS", "5.0"),
            app_host=os.getenv("APP_HOST", "0.0.0.0"),
            app_port=_int_env("APP_PORT", "8002"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
