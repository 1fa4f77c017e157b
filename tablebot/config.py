"""Configuration management for tablebot.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
defaults for the command prefix, chat API, logging and plugins.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("tablebot.bot")


class Config:
    """Central configuration manager for tablebot.

    Loads settings.yaml and .env from the config directory. Read-only
    after __init__.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``$TABLEBOT_CONFIG_DIR`` or ``<cwd>/config``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(os.environ.get("TABLEBOT_CONFIG_DIR") or Path.cwd() / "config")
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file (missing file -> empty dict)."""
        filepath = self.config_dir / filename
        if not filepath.exists():
            return {}
        try:
            with open(filepath, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Cannot parse {filename}: {e}", setting_name=filename
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"{filename} must contain a mapping", setting_name=filename
            )
        return data

    def validate(self):
        """Validate settings at startup.

        Logs warnings/errors but does not raise.
        """
        prefix = self.settings.get("command_prefix")
        if prefix is not None and (not isinstance(prefix, str) or " " in prefix):
            logger.error("config_invalid_value", key="command_prefix", value=prefix)
        if not self.account:
            logger.warning("no_account_configured", msg="Bot cannot receive messages")
        plugins = self.settings.get("plugins", {})
        if not isinstance(plugins, dict):
            logger.error("config_invalid_value", key="plugins", valid="mapping")

    @property
    def command_prefix(self) -> str:
        """Text that starts a command (default "!")."""
        prefix = self.settings.get("command_prefix", "!")
        if not isinstance(prefix, str):
            return "!"
        return prefix

    @property
    def rich_errors(self) -> bool:
        """Report command errors as embeds instead of plain text."""
        return bool(self.settings.get("rich_errors", False))

    @property
    def api_url(self) -> str:
        """Chat API URL. Env var TABLEBOT_API_URL takes precedence."""
        return os.environ.get("TABLEBOT_API_URL") or self.settings.get(
            "api_url", "http://127.0.0.1:8080"
        )

    @property
    def account(self) -> str:
        """The bot's own account. Env var TABLEBOT_ACCOUNT takes precedence."""
        return os.environ.get("TABLEBOT_ACCOUNT") or self.settings.get("account", "")

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging", {})
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"plugins": "DEBUG"}."""
        log_config = self.settings.get("logging", {})
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("backup_count", 5)

    @property
    def plugins_dir(self) -> Path:
        """Get plugins directory path."""
        configured = self.settings.get("plugins_dir")
        if configured:
            return Path(configured).expanduser()
        return self.config_dir.parent / "plugins"

    @property
    def plugin_allowlist(self) -> Optional[List[str]]:
        """Plugin directory names allowed to load, or None for all."""
        allowlist = self.settings.get("plugin_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("plugin_allowlist_invalid_type", type=type(allowlist).__name__)
            return None
        return allowlist

    def plugin_settings(self, name: str) -> dict:
        """The ``plugins.<name>`` settings block (empty when absent)."""
        plugins = self.settings.get("plugins", {})
        if not isinstance(plugins, dict):
            return {}
        block = plugins.get(name, {})
        return block if isinstance(block, dict) else {}


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
