"""
Configuration management for bmchat.

Provides a hierarchical configuration system with sensible defaults.
Supports both global (~/.config/bmchat/config.toml) and local (bmchat.toml)
configurations. Configuration objects are passed explicitly to the code
that needs them; there is no shared module-level instance.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, fields, asdict

from bmchat.constants import DEFAULT_HISTORY_SIZE, DEFAULT_SEARCH_LIMIT, DEFAULT_TOKENS_PER_BOOKMARK
from bmchat.scoring import RecencyWeights, get_recency_weights


def user_config_path() -> Path:
    return Path.home() / ".config" / "bmchat" / "config.toml"


@dataclass
class BmchatConfig:
    """
    bmchat configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (BMCHAT_*)
    3. Local config file (./bmchat.toml or ./.bmchatrc)
    4. User config file (~/.config/bmchat/config.toml)
    5. System defaults
    """

    # Chat-completion endpoint
    api_key: str = field(default="")
    base_url: str = field(default="https://api.openai.com/v1")
    model: str = field(default="gpt-3.5-turbo")
    custom_model: str = field(default="")  # Used when model == "custom"
    max_tokens: int = field(default=1000)
    temperature: float = field(default=0.7)
    timeout: int = field(default=30)  # Request timeout in seconds

    # Search and context
    tokens_per_bookmark: int = field(default=DEFAULT_TOKENS_PER_BOOKMARK)
    recency_profile: str = field(default="default")  # default, tiered
    search_limit: int = field(default=DEFAULT_SEARCH_LIMIT)

    # Bookmark source
    bookmarks_file: Optional[str] = field(default=None)  # Chrome Bookmarks or JSON list

    # Display settings
    output_format: str = field(default="table")  # table, json, urls, plain
    show_reasoning: bool = field(default=True)
    color_output: bool = field(default=True)

    # Advanced
    history_size: int = field(default=DEFAULT_HISTORY_SIZE)
    log_level: str = field(default="WARNING")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "BmchatConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (overrides search)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config = user_config_path()
        if user_config.exists():
            config._merge(cls._load_toml(user_config))

        # First local config found wins
        local_paths = [
            Path.cwd() / "bmchat.toml",
            Path.cwd() / ".bmchatrc",
            Path.cwd() / ".bmchat" / "config.toml",
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @classmethod
    def load_user(cls) -> "BmchatConfig":
        """
        Load defaults plus the user config file only.

        Local config files and BMCHAT_* variables are not applied.
        """
        config = cls()
        user_config = user_config_path()
        if user_config.exists():
            config._merge(cls._load_toml(user_config))
        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    @classmethod
    def is_field(cls, key: str) -> bool:
        """Whether ``key`` names a configuration field."""
        return key in {f.name for f in fields(cls)}

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if self.is_field(key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with BMCHAT_ prefix."""
        prefix = "BMCHAT_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if self.is_field(config_key):
                    self.set_value(config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        value = self.bookmarks_file
        if isinstance(value, str):
            self.bookmarks_file = os.path.expanduser(os.path.expandvars(value))

    def set_value(self, key: str, value: str):
        """
        Set a field from its string form, converting to the field's type.

        Raises:
            KeyError: If ``key`` is not a configuration field
        """
        if not self.is_field(key):
            raise KeyError(key)

        current_value = getattr(self, key)
        # bool before int: bool is an int subclass
        if isinstance(current_value, bool):
            setattr(self, key, value.lower() in ("true", "1", "yes"))
        elif isinstance(current_value, int):
            setattr(self, key, int(value))
        elif isinstance(current_value, float):
            setattr(self, key, float(value))
        else:
            setattr(self, key, value)

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)

        Returns:
            The path written
        """
        if path is None:
            path = user_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null
        data = {k: v for k, v in asdict(self).items() if v is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
        return path

    @property
    def resolved_model(self) -> str:
        """Model name to send, honoring the "custom" placeholder."""
        if self.model == "custom":
            return self.custom_model
        return self.model

    def has_credentials(self) -> bool:
        """Whether a remote API key is configured."""
        return bool(self.api_key and self.api_key.strip())

    def recency_weights(self) -> RecencyWeights:
        return get_recency_weights(self.recency_profile)


def load_config(config_file: Optional[Path] = None, **overrides) -> BmchatConfig:
    """
    Load configuration and apply command-line overrides.

    Args:
        config_file: Specific config file to load
        **overrides: Field values; None values are ignored

    Returns:
        A new configuration instance
    """
    config = BmchatConfig.load(config_file)

    for key, value in overrides.items():
        if config.is_field(key) and value is not None:
            setattr(config, key, value)

    return config
