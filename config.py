"""
Runtime configuration for the Provision Store Billing API.
Settings are read from environment variables (optionally a .env file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class Settings:
    """Configuration settings for the API process."""

    # Database settings
    database_url: Optional[str] = None
    database_name: Optional[str] = None

    # Server settings
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Logging settings
    log_level: str = "INFO"

    # Billing settings
    bill_number_max_attempts: int = 5

    # Auth settings
    bcrypt_rounds: int = 12

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """Create settings from environment variables.

        Args:
            env_file: Optional path to .env file

        Returns:
            Settings: Settings instance
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            port=int(os.getenv("PORT", "8000")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            bill_number_max_attempts=int(os.getenv("BILL_NUMBER_MAX_ATTEMPTS", "5")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        )

    def validate(self) -> bool:
        """Validate settings.

        Returns:
            bool: True if settings are valid

        Raises:
            ValueError: If a setting is out of range
        """
        if self.port <= 0:
            raise ValueError("port must be positive")
        if self.bill_number_max_attempts <= 0:
            raise ValueError("bill_number_max_attempts must be positive")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")
        return True


settings = Settings.from_env()
