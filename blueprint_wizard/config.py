"""Runtime settings read from the environment (and a .env file, if present)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

ENV_PREFIX = "ONBOARD_"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None:
        return default
    return value.lower().strip() in ("y", "yes", "true", "1")


@dataclass
class Settings:
    log_level: str = "INFO"
    verbose: bool = False
    # Overrides output.storage_path from the blueprint
    output_dir: Optional[str] = None
    # 0 = re-prompt until valid input or cancellation
    max_input_attempts: int = 0
    credentials_key: Optional[str] = None
    open_browser: bool = False

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from ONBOARD_* environment variables."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        attempts = os.environ.get(ENV_PREFIX + "MAX_INPUT_ATTEMPTS", "0")
        try:
            max_attempts = max(0, int(attempts))
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}MAX_INPUT_ATTEMPTS must be an integer, got {attempts!r}")
        return cls(
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO"),
            verbose=_env_bool("VERBOSE"),
            output_dir=os.environ.get(ENV_PREFIX + "OUTPUT_DIR") or None,
            max_input_attempts=max_attempts,
            credentials_key=os.environ.get(ENV_PREFIX + "CREDENTIALS_KEY") or None,
            open_browser=_env_bool("OPEN_BROWSER"),
        )
