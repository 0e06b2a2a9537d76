import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from core.models.config_data import SyncConfigData, TimingConfig
from core.models.greenhouse import GreenhouseConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and manages sync engine tuning from a JSON file."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigLoader, cls).__new__(cls)
            cls._instance._config = SyncConfigData()
            cls._instance._initialized = False
            cls._instance._path = None
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = self._get_default_config()
            self.load_config()
            self._initialized = True

    @staticmethod
    def get_config_path() -> Path:
        """Get the path to the sync_config.json file."""
        # Config file lives in the project root/config directory
        return Path(__file__).parent.parent.parent / "config" / "sync_config.json"

    def load_config(self, path: Optional[Path] = None):
        """Load configuration from JSON file. Unknown keys are ignored."""
        if path is not None:
            self._path = Path(path)
        config_path = self._path or self.get_config_path()

        # Start from defaults so a partial file only overrides what it names
        self._config = self._get_default_config()

        if not config_path.exists():
            logger.error(f"Configuration file not found: {config_path}")
            return

        try:
            with open(config_path, "r") as f:
                json_data = json.load(f)

            timing_keys = {f.name for f in fields(TimingConfig)}
            timing_data = {
                key: value for key, value in json_data.get("timing", {}).items() if key in timing_keys
            }
            self._config.timing = TimingConfig(**timing_data)

            greenhouse_data = json_data.get("default_greenhouse")
            if greenhouse_data:
                self._config.default_greenhouse = GreenhouseConfig(**greenhouse_data)

            token_keys = json_data.get("token_keys")
            if isinstance(token_keys, list) and token_keys:
                self._config.token_keys = [str(key) for key in token_keys]

            logger.info(f"Configuration loaded from {config_path}")

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse configuration file: {e}")
            self._config = self._get_default_config()

        except (TypeError, ValueError, ValidationError) as e:
            logger.error(f"Invalid configuration in {config_path}: {e}")
            self._config = self._get_default_config()

    @staticmethod
    def _get_default_config() -> SyncConfigData:
        """Return default configuration."""
        return SyncConfigData()

    def get_config(self) -> SyncConfigData:
        return self._config

    def get_timing(self) -> TimingConfig:
        return self._config.timing

    def get_default_greenhouse(self) -> GreenhouseConfig:
        return self._config.default_greenhouse

    def get_token_keys(self) -> List[str]:
        return self._config.token_keys

    def reload_config(self):
        """Reload configuration from file."""
        self.load_config()
        logger.info("Configuration reloaded")


# Global singleton instance
config_loader = ConfigLoader()
