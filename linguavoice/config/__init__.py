"""Simple YAML configuration loader for LinguaVoice."""

import os
import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..errors import CredentialMissingError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'gemini': {
        'api_key': None,
        'live_model': 'models/gemini-2.5-flash-native-audio-preview-09-2025',
        'batch_model': 'gemini-2.5-flash',
        'live_url': (
            'wss://generativelanguage.googleapis.com/ws/'
            'google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent'
        ),
        'api_base_url': 'https://generativelanguage.googleapis.com/v1beta',
        'connect_timeout_seconds': 15.0,
        'request_timeout_seconds': 60.0,
    },
    'audio': {
        'sample_rate': 16000,
        'chunk_size': 4096,
        'channels': 1,
        'device_index': None,
    },
    'recording': {
        'language': 'English',
        'max_duration_seconds': 300,
        'outbox_size': 64,
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/linguavoice.log',
        'console_output': True,
    },
}

MIN_DURATION_SECONDS = 60
MAX_DURATION_SECONDS = 600

API_KEY_ENV_VARS = ('GEMINI_API_KEY', 'API_KEY')


def validate_max_duration(seconds: int) -> int:
    """Check a max recording duration: whole minutes between 1 and 10."""
    seconds = int(seconds)
    if not MIN_DURATION_SECONDS <= seconds <= MAX_DURATION_SECONDS or seconds % 60:
        raise ValueError(
            f"max duration must be a whole number of minutes between "
            f"{MIN_DURATION_SECONDS} and {MAX_DURATION_SECONDS} seconds, got {seconds}"
        )
    return seconds


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class LinguaVoiceConfig:
    """LinguaVoice configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are used.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is not None and not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load the YAML file (if any) over the defaults."""
        config = copy.deepcopy(DEFAULT_CONFIG)
        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            return config

        logger.info(f"Loading configuration from: {self.config_file}")
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        _deep_merge(config, loaded)
        validate_max_duration(config['recording']['max_duration_seconds'])
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        log_path = config['logging'].get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'recording.language').

        Args:
            key_path: Dot-separated key path (e.g., 'audio.sample_rate')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'recording.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_api_key(self) -> str:
        """Get the Gemini API key - raises CredentialMissingError if not found."""
        api_key = self.get('gemini.api_key')
        if not api_key:
            for env_var in API_KEY_ENV_VARS:
                api_key = os.environ.get(env_var)
                if api_key:
                    break
        if not api_key:
            raise CredentialMissingError()
        return api_key
