"""Configuration loading and construction of the configured services.

The YAML file may reference environment variables as ``${NAME}``; values
from a local ``.env`` file are visible too. Unset variables stay as literal
placeholders and the config models turn them into None.
"""

import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from litdedup.models.config import AppConfig, CatalogProviderType
from litdedup.services.checkpoint_service import CheckpointService
from litdedup.services.duplicate_detector import DuplicateDetector
from litdedup.services.providers.base import CatalogProvider
from litdedup.services.providers.pubmed import PubMedProvider
from litdedup.services.record_store import JsonRecordStore
from litdedup.utils.exceptions import ConfigValidationError
from litdedup.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "config/litdedup.yaml"


class ConfigManager:
    """Owns one validated ``AppConfig`` and builds services from it.

    The file is parsed on the first ``load_config`` call and cached after
    that, so the builders below can call it freely.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[AppConfig] = None

    def load_config(self) -> AppConfig:
        """Return the validated configuration.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ConfigValidationError: If it cannot be read, parsed or validated.
        """
        if self._config is not None:
            return self._config

        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        data = self._read_mapping()
        try:
            config = AppConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            store=config.store.path,
            catalog=config.catalog.provider.value,
        )
        self._config = config
        return config

    def _read_mapping(self) -> Dict[str, Any]:
        if not self.config_path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            text = self.config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigValidationError(f"Cannot read {self.config_path}: {e}")

        expanded = Template(text).safe_substitute(os.environ)
        try:
            data = yaml.safe_load(expanded)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Malformed YAML in {self.config_path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")
        return data

    def build_store(self) -> JsonRecordStore:
        return JsonRecordStore(Path(self.load_config().store.path))

    def build_catalog(self) -> CatalogProvider:
        settings = self.load_config().catalog
        if settings.provider != CatalogProviderType.PUBMED:  # pragma: no cover
            raise ConfigValidationError(f"Unsupported catalog provider: {settings.provider}")

        limiter = None
        if settings.requests_per_second:
            limiter = RateLimiter(requests_per_second=settings.requests_per_second)
        return PubMedProvider(
            api_key=settings.api_key,
            email=settings.email,
            tool=settings.tool,
            rate_limiter=limiter,
        )

    def build_detector(self) -> DuplicateDetector:
        return DuplicateDetector(self.load_config().detection)

    def build_checkpoint_service(self) -> CheckpointService:
        return CheckpointService(self.load_config().checkpoints)
