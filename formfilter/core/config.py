"""Manages configuration for formfilter.

This module is responsible for loading, managing, and saving the settings
that shape compiled rule sets and live bindings: default messages, the class
names used when highlighting fields and placing error nodes, and the engine
used to bind a form. Settings are aggregated from default values, TOML files,
and environment variables.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

try:
    import tomllib  # Available in Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for Python versions < 3.11

import tomli_w

logger = logging.getLogger(__name__)

# The default path for the user-specific global configuration file.
USER_CONFIG_PATH = Path.home() / ".config" / "formfilter" / "config.toml"

# The project-level configuration file looked up in the working directory.
PROJECT_CONFIG_NAME = "formfilter.toml"


class Config:
    """Handles the configuration for formfilter.

    This class loads configuration from multiple sources with a defined
    precedence:
    1.  Default values (lowest precedence).
    2.  Project-specific `formfilter.toml` file.
    3.  User-level `~/.config/formfilter/config.toml` file.
    4.  A custom configuration file specified at runtime.
    5.  Environment variables (highest precedence).

    Attributes:
        DEFAULT_CONFIG (Dict[str, Any]): A dictionary containing the default
            configuration values.
    """

    DEFAULT_CONFIG = {
        "engine": "memory",
        "strict_bounds": False,  # Treat a length bound of 0 as set.
        "verbose": False,
        "binding": {
            "error_element": "div",
            "error_class": "invalid-feedback small fw-normal fs-6",
            "highlight_class": "is-invalid",
            "placement_class": "invalid-feedback-error",
            "group_class": "input-group",
        },
        "messages": {
            "required": "This field is required.",
            "pattern": "Invalid format",
            "minlength": "Please enter at least {0} characters.",
            "maxlength": "Please enter no more than {0} characters.",
        },
    }

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """Initializes the configuration manager.

        Args:
            config_path (Optional[Path]): An optional path to a specific
                configuration file to load. If provided, it takes precedence
                over default file locations.
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        self._load_config(config_path)

    def _load_config(self, config_path: Optional[Path] = None) -> None:
        """Loads configuration from files and environment variables.

        Args:
            config_path (Optional[Path]): A specific config file path.
        """
        if config_path:
            self._load_file_config(Path(config_path))
        else:
            self._load_default_configs()

        self._load_env_config()

    def _load_default_configs(self) -> None:
        """Loads configs from standard locations if they exist."""
        project_config = Path.cwd() / PROJECT_CONFIG_NAME
        if project_config.exists():
            self._load_file_config(project_config)

        if USER_CONFIG_PATH.exists():
            self._load_file_config(USER_CONFIG_PATH)

    def _merge_configs(self, base: Dict[str, Any], new: Dict[str, Any]) -> None:
        """Recursively merges a new config dict into a base dict.

        Args:
            base (Dict[str, Any]): The base configuration dictionary.
            new (Dict[str, Any]): The new configuration to merge in.
        """
        for key, value in new.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._merge_configs(base[key], value)
            else:
                base[key] = value

    def _load_file_config(self, config_path: Path) -> None:
        """Loads and merges configuration from a TOML file.

        Args:
            config_path (Path): The path to the TOML configuration file.
        """
        try:
            with open(config_path, "rb") as f:
                file_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Could not load config from {config_path}: {e}")
            return
        self._merge_configs(self.config, file_config)

    def _load_env_config(self) -> None:
        """Loads and merges configuration from environment variables."""
        env_mapping = {
            "FORMFILTER_ENGINE": "engine",
            "FORMFILTER_STRICT_BOUNDS": "strict_bounds",
            "FORMFILTER_VERBOSE": "verbose",
            "FORMFILTER_ERROR_ELEMENT": "binding.error_element",
            "FORMFILTER_ERROR_CLASS": "binding.error_class",
            "FORMFILTER_HIGHLIGHT_CLASS": "binding.highlight_class",
        }

        for env_var, config_key in env_mapping.items():
            value = os.getenv(env_var)
            if value is not None:
                self._set_nested_key(config_key, value)

    def _set_nested_key(self, key_path: str, value: str) -> None:
        """Sets a value in the config dict using a dot-separated path.

        Values from environment variables are always strings, so boolean
        settings are cast here.

        Args:
            key_path (str): The dot-separated key (e.g., "binding.error_class").
            value (str): The string value from the environment variable.
        """
        keys = key_path.split('.')
        target_config = self.config
        for key in keys[:-1]:
            if key not in target_config or not isinstance(target_config[key], dict):
                target_config[key] = {}
            target_config = target_config[key]

        leaf_key = keys[-1]
        if leaf_key in ["strict_bounds", "verbose"]:
            target_config[leaf_key] = value.lower() in ("true", "1", "yes", "on")
        else:
            target_config[leaf_key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieves a configuration value using a dot-separated key.

        Args:
            key (str): The dot-separated key (e.g., "messages.required").
            default (Any): The default value to return if the key is not found.

        Returns:
            Any: The configuration value or the default.
        """
        keys = key.split('.')
        value = self.config
        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Sets a configuration value in memory.

        Args:
            key (str): The dot-separated key (e.g., "binding.error_element").
            value (Any): The value to set.
        """
        keys = key.split('.')
        target_config = self.config
        for k in keys[:-1]:
            target_config = target_config.setdefault(k, {})
        target_config[keys[-1]] = value

    def default_message(self, rule: str) -> str:
        """Returns the configured default message template for a rule."""
        return self.get(f"messages.{rule}", self.DEFAULT_CONFIG["messages"].get(rule, ""))

    def binding_option(self, name: str) -> str:
        """Returns a binding setting such as a class name or element tag."""
        return self.get(f"binding.{name}", self.DEFAULT_CONFIG["binding"][name])

    def _get_user_config(self) -> Dict[str, Any]:
        """Loads and returns the contents of the user config file.

        Returns:
            Dict[str, Any]: The user configuration dictionary, or an empty
            dict if the file doesn't exist or fails to parse.
        """
        if not USER_CONFIG_PATH.exists():
            return {}
        try:
            with open(USER_CONFIG_PATH, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            return {}

    def save_user_config(self) -> None:
        """Saves the current configuration to the user config file.

        Only settings that differ from the defaults are persisted, so the
        file stays small and later changes to the defaults still apply.

        Raises:
            IOError: If the configuration file cannot be written.
        """
        user_config = self._get_user_config()

        for key, value in self.config.items():
            if key in self.DEFAULT_CONFIG and value != self.DEFAULT_CONFIG[key]:
                user_config[key] = value
            elif key not in self.DEFAULT_CONFIG:
                user_config[key] = value

        try:
            USER_CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
            with open(USER_CONFIG_PATH, "wb") as f:
                tomli_w.dump(user_config, f)
        except OSError as e:
            raise IOError(f"Failed to save configuration to {USER_CONFIG_PATH}: {e}")

    def __str__(self) -> str:
        return f"Config({self.config})"
