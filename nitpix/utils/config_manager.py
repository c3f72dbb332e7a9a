"""Configuration management utilities."""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..core.constants import CONFIG_FILE_NAME
from ..models.config import ReviewConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages the review directory configuration."""

    def __init__(self, review_dir: Path):
        """Initialize config manager."""
        self.review_dir = review_dir
        self.config_file = review_dir / CONFIG_FILE_NAME

    def load_config(self) -> Optional[ReviewConfig]:
        """Load ``config.json``, or None if it is missing or unreadable."""
        if not self.config_file.exists():
            return None
        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
            return ReviewConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable config at {self.config_file}: {e}")
            return None

    def get_config(self) -> ReviewConfig:
        """Load config, falling back to defaults rooted at the project directory."""
        config = self.load_config() or ReviewConfig()
        if not config.project_root:
            config.project_root = str(self.review_dir.resolve().parent)
        return config

    def save_config(self, config: ReviewConfig) -> None:
        """Save config to ``config.json``."""
        self.review_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(config.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
