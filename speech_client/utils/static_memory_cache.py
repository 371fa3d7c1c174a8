"""
Static memory cache for client configuration.
"""
import json
from typing import Dict, Any, Optional


class StaticMemoryCache:
    """Static class to keep the loaded config in memory."""
    config: Dict[str, Any] = {}
    config_file: Optional[str] = None

    @classmethod
    def initialize(cls, config_file: str = "config.json"):
        """Load config into memory."""
        with open(config_file, "r") as f:
            cls.config = json.load(f)
        cls.config_file = config_file

    @classmethod
    def load_dict(cls, config: Dict[str, Any]):
        """Use an in-memory dict as the config."""
        cls.config = dict(config)
        cls.config_file = None

    @classmethod
    def reset(cls):
        """Forget any loaded config."""
        cls.config = {}
        cls.config_file = None

    @classmethod
    def get_config(cls, section: str, key: str = None):
        """Retrieve configuration value from the static memory cache."""
        if key:
            return cls.config.get(section, {}).get(key)
        return cls.config.get(section, {})

    @classmethod
    def get_service_config(cls) -> Dict[str, Any]:
        """Get the speech service endpoint and credentials."""
        return {
            "url": None,
            "username": None,
            "password": None,
            "websocket_url": None,
            "timeout_seconds": 30,
            **cls.config.get("speech_to_text", {}),
        }

    @classmethod
    def get_streaming_config(cls) -> Dict[str, Any]:
        """Get streaming recognition settings."""
        return {
            "chunk_size": 4096,
            **cls.config.get("streaming", {}),
        }

    @classmethod
    def get_logging_config(cls) -> Dict[str, Any]:
        """Get logging configuration."""
        return cls.config.get("logging", {
            "log_level": "INFO",
            "log_file": "",
            "log_file_max_size": 10485760,
            "log_file_num_backups": 5,
            "log_console": True,
        })
