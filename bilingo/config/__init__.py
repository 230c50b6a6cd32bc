"""YAML configuration loader for Bilingo."""

import copy
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "openai": {
        "api_key_env": "OPENAI_API_KEY",
        "base_url": "https://api.openai.com/v1",
        "detection_model": "gpt-4o-mini",
    },
    "realtime": {
        "url": "wss://api.openai.com/v1/realtime",
        "model": "gpt-4o-realtime-preview",
        "session_url": "https://api.openai.com/v1/realtime/sessions",
    },
    "languages": {
        "default_main": "zh",
        "default_target": "en",
        "first_language_role": "main",
        "new_language_rule": "replace_target",
    },
    "classifier": {
        "min_remote_length": 5,
        "request_timeout_seconds": 5.0,
    },
    "connection": {
        "max_attempts": 3,
        "cooldown_seconds": 5.0,
        "retry_delay_seconds": 1.0,
        "channel_open_delay_seconds": 0.5,
    },
    "sync": {
        "settle_delay_seconds": 1.0,
    },
    "agent": {
        "name": "interpreter",
        "voice": "shimmer",
        "transcription_model": "whisper-1",
        "welcome_message": "",
    },
    "google_cloud": {
        "interim_interval_seconds": 1.0,
        "request_timeout_seconds": 5.0,
        "use_enhanced": True,
        "enable_automatic_punctuation": True,
    },
    "audio": {
        "sample_rate": 24000,
        "chunk_size": 1200,
        "channels": 1,
    },
    "logging": {
        "level": "INFO",
        "file_path": "logs/bilingo.log",
        "console_output": True,
    },
    "pubsub": {
        "transcript_topic": "transcript_entries",
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class BilingoConfig:
    """Bilingo configuration: built-in defaults overlaid with a YAML file."""

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, only defaults and overrides apply.
            overrides: Nested dict applied on top of the file
        """
        self.config_file = Path(config_path) if config_path else None
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_file is not None:
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
            logger.info(f"Loading configuration from: {self.config_file}")
            _deep_merge(self.config, self._load_config())

        if overrides:
            _deep_merge(self.config, copy.deepcopy(overrides))

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        self._resolve_paths(config)
        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent
        for section, key in (("google_cloud", "credentials_path"), ("logging", "file_path")):
            path = (config.get(section) or {}).get(key)
            if path and not os.path.isabs(path):
                config[section][key] = str(config_dir / path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'connection.max_attempts').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config
        for key in keys[:-1]:
            config_dict = config_dict.setdefault(key, {})
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_openai_api_key(self) -> str:
        """OpenAI API key from the environment variable named in the config."""
        env_name = self.get('openai.api_key_env', 'OPENAI_API_KEY')
        api_key = os.environ.get(env_name)
        if not api_key:
            raise ValueError(f"OpenAI API key not set: export {env_name}")
        return api_key

    def get_google_credentials_path(self) -> str:
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured (google_cloud.credentials_path)")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")
        return str(creds_file.absolute())
