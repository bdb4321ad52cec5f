"""Task board configuration.

Loaded from a YAML file; the ``TASKBOARD_API_URL`` environment variable
overrides the API location.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .board.models import DEFAULT_COLUMNS

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "taskboard" / "config.yaml"
API_URL_ENV = "TASKBOARD_API_URL"


@dataclass
class Config:
    """Runtime configuration for the board client."""

    api_url: str = "http://localhost:8000/api/v1"
    timeout: float = 15.0
    default_columns: list[str] = field(default_factory=lambda: list(DEFAULT_COLUMNS))
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        columns = self.default_columns
        if (
            not isinstance(columns, (list, tuple))
            or not columns
            or not all(isinstance(c, str) and c.strip() for c in columns)
        ):
            raise ValueError(f"default_columns must be a non-empty list of titles, got {columns!r}")
        self.default_columns = list(columns)

    @property
    def num_cards(self) -> int:
        return len(self.default_columns)

    @classmethod
    def load(cls, path: str | Path | None = None) -> Config:
        """Load config from YAML, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        cfg = cls()
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    raise ValueError("top level must be a mapping")
                cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
            except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
                logger.warning("Ignoring invalid config %s: %s", cfg_path, e)
                cfg = cls()
        env_url = os.environ.get(API_URL_ENV)
        if env_url:
            cfg.api_url = env_url
        return cfg
