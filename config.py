"""Application configuration.

All settings can be overridden via environment variables with the prefix
``INVOICE_`` (e.g. ``INVOICE_LOG_LEVEL=DEBUG``) or a local ``.env`` file.
"""

import os
import sys
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="INVOICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file, in addition to stdout",
    )

    # Storage
    database_path: Optional[str] = Field(
        default=None,
        description="SQLite file holding the store; resolved per environment when unset",
    )

    # Invoice defaults
    default_due_days: int = Field(default=14, ge=0)
    default_tax_rate: Decimal = Field(default=Decimal("19"), ge=0)
    default_unit: str = Field(default="Unité")
    currency_suffix: str = Field(default="DA")

    # PDF fonts (Helvetica when unset or unreadable)
    pdf_font_path: Optional[str] = None
    pdf_bold_font_path: Optional[str] = None

    # Local server
    host: str = "127.0.0.1"
    port: int = 5000

    def database_uri(self) -> str:
        if self.database_path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.resolve_database_path()}"

    def resolve_database_path(self) -> str:
        if self.database_path:
            return self.database_path

        if getattr(sys, "frozen", False):
            base_path = os.path.dirname(sys.executable)
            return os.path.join(base_path, "data", "invoices.db")

        # Docker maps /app/data as a volume
        if self.environment == "production":
            return os.path.join("/app", "data", "invoices.db")

        base_path = os.path.dirname(os.path.abspath(__file__))
        return os.path.join(base_path, "data", "invoices.db")
