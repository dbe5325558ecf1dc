#!/usr/bin/env python3
"""Configuration and credential storage for GDSC.

config.json contains:

{
  "root_folder_id": "1AbC...",   // Drive folder browsed as the root
  "root_name": "Root",           // Breadcrumb label of the root
  "time_range": "14",            // 7/14/30/90/180/365 days or "all"
  "item_cap": 1000,              // Max entries per load, or "all"
  "search_scope": "current",     // "current" folder or "global" corpus
  "auto_widen": true,            // Widen an empty time-filtered listing automatically
  "enrichment_batch_size": 20,   // Concurrent child-folder count requests
  "log_level": "INFO"
}

The API key is kept apart from config.json, encrypted with a key held in the
system keyring. Stored values win over the GDSC_ROOT_FOLDER_ID and
GDSC_API_KEY environment variables.
"""

import json
import logging
import base64
import os
from pathlib import Path
from typing import Optional, Dict, Any

from cryptography.fernet import Fernet, InvalidToken
import keyring

from .models import TimeRange
from .validators import validate_config_value, ValidationError

logger = logging.getLogger(__name__)


class Config:
    """Manages GDSC configuration."""

    DEFAULT_CONFIG_DIR = Path.home() / ".config" / "gdsc"
    CONFIG_FILE = "config.json"
    API_KEY_FILE = ".api_key"
    LOG_FILE = "gdsc.log"

    ENV_ROOT_FOLDER_ID = "GDSC_ROOT_FOLDER_ID"
    ENV_API_KEY = "GDSC_API_KEY"

    KEYRING_SERVICE = "gdsc"
    KEYRING_KEY_NAME = "api_key_encryption_key"

    DEFAULTS: Dict[str, Any] = {
        'root_name': 'Root',
        'time_range': '14',
        'item_cap': 1000,
        'search_scope': 'current',
        'auto_widen': True,
        'enrichment_batch_size': 20,
        'log_level': 'INFO',
    }

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Custom configuration directory path
        """
        self.config_dir = config_dir or self.DEFAULT_CONFIG_DIR
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.config_path = self.config_dir / self.CONFIG_FILE
        self.api_key_path = self.config_dir / self.API_KEY_FILE
        self.log_path = self.config_dir / self.LOG_FILE

        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        if self.config_path.exists():
            with open(self.config_path, 'r') as f:
                self._config = json.load(f)
            logger.debug(f"Loaded config from {self.config_path}")
        else:
            self._config = dict(self.DEFAULTS)
            self.save()
            logger.debug(f"Created default config at {self.config_path}")

    def save(self) -> None:
        """Save configuration to file."""
        with open(self.config_path, 'w') as f:
            json.dump(self._config, f, indent=2)
        # Secure file permissions (owner read/write only)
        self.config_path.chmod(0o600)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value with validation.

        Args:
            key: Configuration key
            value: Configuration value

        Raises:
            ValueError: If value is invalid for the given key
        """
        try:
            validated_value = validate_config_value(key, value)
        except ValidationError as e:
            raise ValueError(str(e))
        self._config[key] = validated_value
        self.save()

    def items(self) -> Dict[str, Any]:
        merged = dict(self.DEFAULTS)
        merged.update(self._config)
        return merged

    @property
    def root_folder_id(self) -> str:
        """Stored root folder ID, else the environment, else ''."""
        return self._config.get('root_folder_id') or os.environ.get(self.ENV_ROOT_FOLDER_ID, '')

    @property
    def root_name(self) -> str:
        return self._config.get('root_name', self.DEFAULTS['root_name'])

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.parse(self._config.get('time_range', self.DEFAULTS['time_range']))

    @property
    def item_cap(self) -> Optional[int]:
        """Item cap, None when set to 'all'."""
        value = self._config.get('item_cap', self.DEFAULTS['item_cap'])
        if value == 'all':
            return None
        return int(value)

    @property
    def search_scope(self) -> str:
        return self._config.get('search_scope', self.DEFAULTS['search_scope'])

    @property
    def auto_widen(self) -> bool:
        return bool(self._config.get('auto_widen', self.DEFAULTS['auto_widen']))

    @property
    def enrichment_batch_size(self) -> int:
        return int(self._config.get('enrichment_batch_size', self.DEFAULTS['enrichment_batch_size']))

    @property
    def log_level(self) -> str:
        """Get log level."""
        return self._config.get('log_level', 'INFO').upper()

    def _get_encryption_key(self) -> bytes:
        """Get or create encryption key from system keyring.

        Returns:
            Encryption key bytes
        """
        key_str = keyring.get_password(self.KEYRING_SERVICE, self.KEYRING_KEY_NAME)

        if key_str:
            return base64.b64decode(key_str.encode())

        key = Fernet.generate_key()

        key_str = base64.b64encode(key).decode()
        keyring.set_password(self.KEYRING_SERVICE, self.KEYRING_KEY_NAME, key_str)

        logger.info("Generated new encryption key")
        return key

    def save_api_key(self, api_key: str) -> None:
        """Encrypt and store the Drive API key.

        Args:
            api_key: Google API key
        """
        api_key = api_key.strip()
        if not api_key:
            raise ValueError("API key cannot be empty")

        fernet = Fernet(self._get_encryption_key())
        self.api_key_path.write_bytes(fernet.encrypt(api_key.encode()))

        # Secure file permissions (owner read/write only)
        self.api_key_path.chmod(0o600)

        logger.info("API key saved with encryption")

    def load_api_key(self) -> Optional[str]:
        """Load the stored API key, falling back to the environment.

        Returns:
            API key or None if not configured
        """
        if self.api_key_path.exists():
            try:
                fernet = Fernet(self._get_encryption_key())
                return fernet.decrypt(self.api_key_path.read_bytes()).decode()
            except InvalidToken:
                logger.warning("Could not decrypt stored API key - please set it again")
                self.api_key_path.unlink(missing_ok=True)

        return os.environ.get(self.ENV_API_KEY) or None

    def clear_api_key(self) -> None:
        self.api_key_path.unlink(missing_ok=True)
        logger.info("Stored API key removed")
