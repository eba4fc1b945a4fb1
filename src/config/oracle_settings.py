"""
Oracle configuration and validation utilities.

Loads Dash Core, document store, sync interval, health server and logging
settings from environment variables (optionally via a .env file) and fails
fast on missing or malformed values.
"""

import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from src.sync.status_calculator import NETWORK_SUPERBLOCK_PARAMS
from src.utils.logger import logger

load_dotenv()  # Load environment variables from .env file

REQUIRED_VARIABLES = [
    "DASH_CORE_USERNAME",
    "DASH_CORE_PASSWORD",
    "PLATFORM_API_URL",
    "PLATFORM_IDENTITY_ID",
    "PLATFORM_API_TOKEN",
    "GOVERNANCE_CONTRACT_ID",
]

# (env var, default) for integer settings
_INTEGER_DEFAULTS = {
    'dash_core_port': ("DASH_CORE_PORT", "9998"),
    'proposal_interval_s': ("SYNC_PROPOSAL_INTERVAL_S", "300"),
    'vote_interval_s': ("SYNC_VOTE_INTERVAL_S", "300"),
    'masternode_interval_s': ("SYNC_MASTERNODE_INTERVAL_S", "3600"),
    'health_check_interval_s': ("HEALTH_CHECK_INTERVAL_S", "30"),
    'health_port': ("HEALTH_PORT", "8080"),
}


class OracleSettings:
    """Centralized oracle configuration with validation."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ
        self._config = self._load_config()
        self._validate_config()

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._environ.get(key)
        if value is None or value == "":
            return default
        return value

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {
            'dash_core_host': self._get("DASH_CORE_HOST", "127.0.0.1"),
            'dash_core_username': self._get("DASH_CORE_USERNAME"),
            'dash_core_password': self._get("DASH_CORE_PASSWORD"),
            'dash_core_timeout': self._get("DASH_CORE_TIMEOUT_S", "30"),
            'platform_network': self._get("PLATFORM_NETWORK", "testnet").lower(),
            'platform_api_url': self._get("PLATFORM_API_URL"),
            'platform_identity_id': self._get("PLATFORM_IDENTITY_ID"),
            'platform_api_token': self._get("PLATFORM_API_TOKEN"),
            'platform_timeout': self._get("PLATFORM_TIMEOUT_S", "30"),
            'contract_id': self._get("GOVERNANCE_CONTRACT_ID"),
            'health_enabled': self._get("HEALTH_ENABLED", "true").lower() in ("true", "1", "yes", "on"),
            'log_level': self._get("LOG_LEVEL", "info").lower(),
        }
        for name, (env_key, default) in _INTEGER_DEFAULTS.items():
            config[name] = self._get(env_key, default)
        return config

    def _validate_config(self) -> None:
        """Validate that all required configuration is present and well-formed."""
        missing = [var for var in REQUIRED_VARIABLES if not self._get(var)]
        if missing:
            error_msg = f"Missing required environment variables: {', '.join(missing)}"
            logger.error("OracleSettings: %s", error_msg)
            raise RuntimeError(error_msg)

        for name, (env_key, _) in _INTEGER_DEFAULTS.items():
            try:
                self._config[name] = int(self._config[name])
            except (ValueError, TypeError):
                raise RuntimeError(f"{env_key} must be a valid integer")
            if self._config[name] <= 0:
                raise RuntimeError(f"{env_key} must be positive")

        for name, env_key in (('dash_core_timeout', "DASH_CORE_TIMEOUT_S"), ('platform_timeout', "PLATFORM_TIMEOUT_S")):
            try:
                self._config[name] = float(self._config[name])
            except (ValueError, TypeError):
                raise RuntimeError(f"{env_key} must be a number")

        if self._config['platform_network'] not in NETWORK_SUPERBLOCK_PARAMS:
            raise RuntimeError("PLATFORM_NETWORK must be 'mainnet' or 'testnet'")

        if self._config['log_level'] not in ("debug", "info", "warn", "warning", "error"):
            raise RuntimeError("LOG_LEVEL must be one of debug, info, warn, error")

    @property
    def dash_core_url(self) -> str:
        return f"http://{self._config['dash_core_host']}:{self._config['dash_core_port']}"

    @property
    def dash_core_username(self) -> str:
        return self._config['dash_core_username']

    @property
    def dash_core_password(self) -> str:
        return self._config['dash_core_password']

    @property
    def dash_core_timeout(self) -> float:
        return self._config['dash_core_timeout']

    @property
    def platform_network(self) -> str:
        return self._config['platform_network']

    @property
    def superblock_interval(self) -> int:
        return NETWORK_SUPERBLOCK_PARAMS[self.platform_network][0]

    @property
    def first_superblock_height(self) -> int:
        return NETWORK_SUPERBLOCK_PARAMS[self.platform_network][1]

    @property
    def platform_api_url(self) -> str:
        return self._config['platform_api_url']

    @property
    def platform_identity_id(self) -> str:
        return self._config['platform_identity_id']

    @property
    def platform_api_token(self) -> str:
        return self._config['platform_api_token']

    @property
    def platform_timeout(self) -> float:
        return self._config['platform_timeout']

    @property
    def contract_id(self) -> str:
        return self._config['contract_id']

    @property
    def proposal_interval_s(self) -> int:
        return self._config['proposal_interval_s']

    @property
    def vote_interval_s(self) -> int:
        return self._config['vote_interval_s']

    @property
    def masternode_interval_s(self) -> int:
        return self._config['masternode_interval_s']

    @property
    def health_check_interval_s(self) -> int:
        return self._config['health_check_interval_s']

    @property
    def health_enabled(self) -> bool:
        return self._config['health_enabled']

    @property
    def health_port(self) -> int:
        return self._config['health_port']

    @property
    def log_level(self) -> str:
        return self._config['log_level']

    def summary(self) -> Dict[str, Any]:
        """Non-secret settings for the startup log line."""
        return {
            'dash_core': self.dash_core_url,
            'network': self.platform_network,
            'superblock': {'interval': self.superblock_interval, 'first_height': self.first_superblock_height},
            'contract_id': self.contract_id,
            'intervals_s': {
                'proposals': self.proposal_interval_s,
                'votes': self.vote_interval_s,
                'masternodes': self.masternode_interval_s,
            },
        }


_settings: Optional[OracleSettings] = None


def get_oracle_settings() -> OracleSettings:
    """Get the process-wide settings instance (entrypoint use only)."""
    global _settings
    if _settings is None:
        _settings = OracleSettings()
    return _settings
