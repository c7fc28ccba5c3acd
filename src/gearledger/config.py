"""Configuration management for gearledger.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Lending
    default_loan_days: int
    base_url: str
    org_name: str

    # Logging
    log_level: str

    # SMTP (overdue notices)
    smtp_host: Optional[str]
    smtp_port: int
    smtp_user: Optional[str]
    smtp_pass: Optional[str]
    smtp_from: Optional[str]

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "GEARLEDGER_DB_PATH",
            str(Path.home() / ".gearledger" / "gearledger.db"),
        )
        db_path = Path(db_path_str).expanduser()
        smtp_user = os.environ.get("SMTP_USER")

        return cls(
            db_path=db_path,
            default_loan_days=int(os.environ.get("GEARLEDGER_DEFAULT_LOAN_DAYS", "7")),
            base_url=os.environ.get("GEARLEDGER_BASE_URL", "http://localhost:3000"),
            org_name=os.environ.get("GEARLEDGER_ORG_NAME", "the equipment store"),
            log_level=os.environ.get("GEARLEDGER_LOG_LEVEL", "WARNING").upper(),
            smtp_host=os.environ.get("SMTP_HOST"),
            smtp_port=int(os.environ.get("SMTP_PORT", "587")),
            smtp_user=smtp_user,
            smtp_pass=os.environ.get("SMTP_PASS"),
            smtp_from=os.environ.get("SMTP_FROM") or smtp_user,
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.default_loan_days < 1:
            errors.append("GEARLEDGER_DEFAULT_LOAN_DAYS must be at least 1")

        return errors

    def has_smtp_config(self) -> bool:
        """Check if SMTP configuration is present."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
