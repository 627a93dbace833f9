"""Configuration management for vaultsync.

Settings are read from ``~/.config/vaultsync/config`` (KEY=value lines) and
can be overridden with environment variables of the same name.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_BUCKET = "VAULTSYNC_BUCKET"
ENV_REGION = "VAULTSYNC_REGION"
ENV_ACCESS_KEY_ID = "VAULTSYNC_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY = "VAULTSYNC_SECRET_ACCESS_KEY"
ENV_ENDPOINT = "VAULTSYNC_ENDPOINT"
ENV_STATE_DB = "VAULTSYNC_STATE_DB"

_REQUIRED = {
    ENV_BUCKET: "bucket",
    ENV_REGION: "region",
    ENV_ACCESS_KEY_ID: "access key id",
    ENV_SECRET_ACCESS_KEY: "secret access key",
}


def default_config_file() -> Path:
    return Path.home() / ".config" / "vaultsync" / "config"


class Config:
    """Object store settings and state database location."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or default_config_file()

    def _load_file(self) -> dict[str, Optional[str]]:
        if not self.config_file.exists():
            return {}
        return dict(dotenv_values(self.config_file))

    def get(self, key: str) -> Optional[str]:
        """Get a setting; the environment wins over the config file."""
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key) or None

    @property
    def bucket(self) -> Optional[str]:
        return self.get(ENV_BUCKET)

    @property
    def region(self) -> Optional[str]:
        return self.get(ENV_REGION)

    @property
    def access_key_id(self) -> Optional[str]:
        return self.get(ENV_ACCESS_KEY_ID)

    @property
    def secret_access_key(self) -> Optional[str]:
        return self.get(ENV_SECRET_ACCESS_KEY)

    @property
    def endpoint(self) -> Optional[str]:
        """Custom endpoint for S3-compatible stores (optional)."""
        return self.get(ENV_ENDPOINT)

    @property
    def state_db(self) -> Optional[Path]:
        """Explicit state database path (optional)."""
        value = self.get(ENV_STATE_DB)
        return Path(value).expanduser() if value else None

    def is_configured(self) -> bool:
        return all(self.get(key) for key in _REQUIRED)

    def require_s3_settings(self) -> None:
        """Ensure every required object store setting is present.

        Raises:
            ConfigurationError: Naming every missing setting
        """
        missing = [name for key, name in _REQUIRED.items() if not self.get(key)]
        if missing:
            raise ConfigurationError(
                f"Missing configuration: {', '.join(missing)}. "
                f"Run 'vaultsync init' or set the VAULTSYNC_* environment variables."
            )

    def save(
        self,
        bucket: str,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        endpoint: Optional[str] = None,
    ) -> None:
        """Write settings to the config file (readable by the owner only)."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        lines = [
            f"{ENV_BUCKET}={bucket}",
            f"{ENV_REGION}={region}",
            f"{ENV_ACCESS_KEY_ID}={access_key_id}",
            f"{ENV_SECRET_ACCESS_KEY}={secret_access_key}",
        ]
        if endpoint:
            lines.append(f"{ENV_ENDPOINT}={endpoint}")
        self.config_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        self.config_file.chmod(0o600)
        logger.debug(f"Saved configuration to {self.config_file}")


config = Config()
