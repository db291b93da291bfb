"""
Configuration Manager - provider selection, API keys and backend settings
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from loja.models.provider import ProviderId, ProviderSettings
from loja.services.errors import ProviderConfigurationError

logger = logging.getLogger(__name__)


class ConfigManager:
    """JSON settings document shared by the service and the plugin settings page"""

    _instance = None
    _config_file = None

    CONFIG_NAME = "config.json"

    def __init__(self):
        self._config_file = self._locate_config_file()
        self._config = self._load_config()

    @classmethod
    def _locate_config_file(cls) -> Path:
        """$LOJA_CONFIG_DIR, then ~/.loja, then the temp directory"""
        candidates = [os.environ.get("LOJA_CONFIG_DIR"), os.path.expanduser("~/.loja")]
        for directory in filter(None, candidates):
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"[ConfigManager] Cannot use {directory}: {e}")
                continue
            return Path(directory) / cls.CONFIG_NAME

        fallback = Path(tempfile.gettempdir()) / "loja"
        fallback.mkdir(parents=True, exist_ok=True)
        logger.info(f"[ConfigManager] Using temporary config directory: {fallback}")
        return fallback / cls.CONFIG_NAME

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file, filling gaps from the defaults"""
        config = self._default_config()
        if not self._config_file.exists():
            return config

        try:
            with open(self._config_file) as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"[ConfigManager] Error loading config: {e}")
            return config

        for key, value in stored.items():
            if isinstance(value, dict) and isinstance(config.get(key), dict):
                config[key] = {**config[key], **value}
            else:
                config[key] = value
        return config

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "provider": ProviderId.GPT.value,
            "welcomeNotification": True,
            "workspaceRoot": None,
            "logLevel": "INFO",
            "gpt": {"apiKey": "", "model": "gpt-3.5-turbo", "temperature": 0.7, "timeoutSeconds": 60},
            "claude": {
                "apiKey": "",
                "model": "claude-3-opus-20240229",
                "temperature": 0.7,
                "maxTokens": 1024,
                "timeoutSeconds": 60,
            },
            "grok": {"apiKey": "", "model": "grok-beta", "temperature": 0.7, "timeoutSeconds": 60},
            "gemini": {
                "apiKey": "",
                "model": "gemini-2.5-flash",
                "temperature": 0.7,
                "maxTokens": 1024,
                "timeoutSeconds": 60,
            },
            "server": {"host": "127.0.0.1", "port": 8000},
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration"""
        # Re-read so edits from another process (or a provider switch) apply immediately
        self._config = self._load_config()
        return self._config.copy()

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self._config.update(config)

        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        """Set specific config value"""
        self._config[key] = value
        self.save_config(self._config)

    # ========== Typed accessors ==========

    def active_provider(self) -> str:
        """Provider identifier as stored; never cached across calls"""
        return self.get_config().get("provider", ProviderId.GPT.value)

    def set_provider(self, provider: ProviderId):
        self.get_config()
        self.set("provider", provider.value)
        logger.info(f"[ConfigManager] Active provider set to {provider.value}")

    def provider_settings(self, provider: ProviderId) -> ProviderSettings:
        section = self.get_config().get(provider.value)
        if not isinstance(section, dict):
            raise ProviderConfigurationError(f"No settings for provider: {provider.value}")
        return ProviderSettings.model_validate(section)

    def workspace_root(self) -> str | None:
        return os.environ.get("LOJA_WORKSPACE") or self.get_config().get("workspaceRoot")

    def welcome_enabled(self) -> bool:
        return bool(self.get_config().get("welcomeNotification", True))
