"""Simple YAML configuration loader for IdeaCapture."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_FINISH_KEYWORDS = [
    "finish", "finished",
    "終わり", "おわり", "終了",
    "terminer", "fin",
    "끝", "종료",
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "storage": {
        "data_directory": "data",
        "history_file": "transcripts.json",
        "incremental_writes": False,
    },
    "session": {
        "persist_partials": True,
        "final_timeout_seconds": 3.0,
        "finish_keywords": DEFAULT_FINISH_KEYWORDS,
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/ideacapture.log",
        "console_output": True,
    },
}


class IdeaCaptureConfig:
    """IdeaCapture configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used.
        """
        if config_path is None:
            self.config_file = None
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            logger.info("No configuration file given, using defaults")
            return

        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        # Resolve data directory
        if 'storage' in config and 'data_directory' in config['storage']:
            data_dir = config['storage']['data_directory']
            if not os.path.isabs(data_dir):
                config['storage']['data_directory'] = str(config_dir / data_dir)

        # Resolve log file path
        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'session.persist_partials').

        Args:
            key_path: Dot-separated key path
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
            key_path: Dot-separated path to config value (e.g., 'storage.history_file')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())

    def get_history_path(self) -> str:
        """Get full path of the history JSON file."""
        filename = self.get('storage.history_file', 'transcripts.json')
        return str(Path(self.get_data_directory()) / filename)

    def get_incremental_writes(self) -> bool:
        return bool(self.get('storage.incremental_writes', False))

    def get_persist_partials(self) -> bool:
        return bool(self.get('session.persist_partials', True))

    def get_final_timeout_seconds(self) -> float:
        """Get the AwaitingFinal hard timeout. Must be positive."""
        timeout = float(self.get('session.final_timeout_seconds', 3.0))
        if timeout <= 0:
            raise ValueError(f"session.final_timeout_seconds must be positive, got {timeout}")
        return timeout

    def get_finish_keywords(self) -> List[str]:
        keywords = self.get('session.finish_keywords', DEFAULT_FINISH_KEYWORDS)
        if not isinstance(keywords, list):
            raise ValueError("session.finish_keywords must be a list")
        return [str(k) for k in keywords]
