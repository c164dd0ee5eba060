"""
Configuration management for Farsi Hub.
"""
import os
import copy
import json
import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from farsihub.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Environment variables checked, in order, for the Gemini API key
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

# Default configuration
DEFAULT_CONFIG = {
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "timeout_seconds": 60,
        "models": {
            "trend": "gemini-2.0-flash-exp",
            "draft": "gemini-2.0-flash-exp",
            "image": "gemini-2.5-flash-image"
        },
        "image_aspect_ratio": "16:9"
    },
    "generation": {
        # Stays under the free-tier rate limit of the upstream service
        "cooldown_seconds": 30,
        "default_category": "TECH",
        "weights": {
            "TECH": 0.3,
            "CINEMA": 0.25,
            "GAMES": 0.2,
            "COOKING": 0.1,
            "TOURISM": 0.1,
            "SCIENCE": 0.05
        }
    },
    "retry": {
        "max_attempts": 3,
        "base_delay_seconds": 5,
        "trend": {},
        "draft": {},
        "image": {}
    },
    "storage": {
        "database": "data/farsihub.db",
        "snapshot": "posts.json"
    },
    "locale": {
        "date_format": "%Y/%m/%d",
        "digits": "persian"
    },
    "log": {
        "capacity": 100
    },
    "stats": {
        "revenue_per_view": 0.02
    }
}

class Config:
    """
    Configuration manager for Farsi Hub.
    """
    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the Config.

        Args:
            config_path: Path to a YAML or JSON configuration file
        """
        self.config_path = config_path
        self.config = self._load_config()

    def _load_config(self) -> Dict:
        """
        Load configuration from file or use defaults.

        Returns:
            Configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path:
            path = Path(self.config_path)
            if path.exists():
                try:
                    if path.suffix.lower() in ['.yaml', '.yml']:
                        with open(path, 'r', encoding='utf-8') as f:
                            user_config = yaml.safe_load(f) or {}
                    elif path.suffix.lower() == '.json':
                        with open(path, 'r', encoding='utf-8') as f:
                            user_config = json.load(f)
                    else:
                        raise ConfigurationError(f"Unsupported config file format: {path.suffix}")
                except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
                    raise ConfigurationError(f"Error loading config from {self.config_path}: {e}") from e

                self._update_dict(config, user_config)
            else:
                logger.warning(f"Config file {self.config_path} not found, using defaults")

        # Override with environment variables
        self._override_from_env(config)

        return config

    def _update_dict(self, target: Dict, source: Dict) -> None:
        """
        Recursively update a dictionary.

        Args:
            target: Target dictionary to update
            source: Source dictionary with new values
        """
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _override_from_env(self, config: Dict, prefix: str = 'FARSIHUB_') -> None:
        """
        Override configuration with environment variables.

        FARSIHUB_GENERATION__COOLDOWN_SECONDS=60 sets generation.cooldown_seconds.
        Sections are separated by a double underscore so that keys may keep
        their own underscores.

        Args:
            config: Configuration dictionary to update
            prefix: Prefix for environment variables
        """
        for key, value in os.environ.items():
            if not key.startswith(prefix) or key == 'FARSIHUB_CONFIG_PATH':
                continue
            parts = key[len(prefix):].lower().split('__')

            # Navigate to the right place in the config
            current = config
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            try:
                current[parts[-1]] = json.loads(value)
            except json.JSONDecodeError:
                current[parts[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Dot-separated key path (e.g., 'generation.cooldown_seconds')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        current = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def retry_settings(self, call_site: str) -> Dict[str, float]:
        """
        Resolve the retry parameters for one upstream call site.

        Args:
            call_site: One of 'trend', 'draft' or 'image'

        Returns:
            Dict with max_attempts and base_delay_seconds
        """
        settings = {
            "max_attempts": self.get("retry.max_attempts", 3),
            "base_delay_seconds": self.get("retry.base_delay_seconds", 5),
        }
        settings.update(self.get(f"retry.{call_site}", None) or {})
        return settings

    def save(self, path: Optional[str] = None) -> None:
        """
        Save the current configuration to a file.

        Args:
            path: Path to save the configuration to
        """
        save_path = path or self.config_path
        if not save_path:
            raise ConfigurationError("No path specified for saving configuration")

        path = Path(save_path)
        if path.suffix.lower() in ['.yaml', '.yml']:
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self.config, f, default_flow_style=False, allow_unicode=True)
        elif path.suffix.lower() == '.json':
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)
        else:
            raise ConfigurationError(f"Unsupported config file format: {path.suffix}")


def get_api_key() -> Optional[str]:
    """Return the Gemini API key from the environment, if any."""
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None


_config: Optional[Config] = None

def get_settings() -> Config:
    """
    Get the process-wide configuration, loading it on first use.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config(os.getenv('FARSIHUB_CONFIG_PATH'))
    return _config

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        key: Dot-separated key path (e.g., 'storage.database')
        default: Default value if key not found

    Returns:
        Configuration value
    """
    return get_settings().get(key, default)
