"""Settings for the exporter registry CLI and embedders."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigurationError

ENV_DB_PATH = "EXPORTREG_DB_PATH"
ENV_JOURNAL_PATH = "EXPORTREG_JOURNAL_PATH"
ENV_LOG_LEVEL = "EXPORTREG_LOG_LEVEL"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RegistrySettings(BaseModel):
    """Resolved settings. Command-line flags override these."""

    model_config = {"frozen": True}

    db_path: Path = Path("exportregistry.db")
    journal_path: Path | None = None
    log_level: str = "WARNING"

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, value: object) -> str:
        text = str(value).strip().upper()
        if text not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return text

    @field_validator("journal_path", mode="before")
    @classmethod
    def _blank_journal_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RegistrySettings":
        """Build settings from ``EXPORTREG_*`` environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if env.get(ENV_DB_PATH):
            values["db_path"] = env[ENV_DB_PATH]
        if ENV_JOURNAL_PATH in env:
            values["journal_path"] = env[ENV_JOURNAL_PATH]
        if env.get(ENV_LOG_LEVEL):
            values["log_level"] = env[ENV_LOG_LEVEL]
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid registry settings: {exc}") from exc

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
