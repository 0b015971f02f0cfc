# Environment-driven client settings and logging setup.
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_TIMEOUT_SECONDS = 10.0
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Load a .env file into the process environment without overriding existing values.
def load_environment(dotenv_path: Optional[Path] = None) -> bool:
    return load_dotenv(dotenv_path=dotenv_path, override=False)


@dataclass(frozen=True)
class ClientSettings:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "INFO"

    # Build settings from QUIZ_* environment variables.
    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "ClientSettings":
        load_environment(dotenv_path)
        raw_timeout = os.getenv("QUIZ_API_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise ValueError(f"QUIZ_API_TIMEOUT must be a number, got {raw_timeout!r}") from exc
        if timeout <= 0:
            raise ValueError("QUIZ_API_TIMEOUT must be positive")
        return cls(
            base_url=os.getenv("QUIZ_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            timeout=timeout,
            log_level=os.getenv("QUIZ_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
