"""
Configuration management for the service container.
Handles environment variables, JSON config files, and validation.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, Union, List, Callable
from dataclasses import dataclass, field, asdict

from dotenv import load_dotenv

from service_container.custom_logging import get_logger

logger = get_logger("config")


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    log_dir: Optional[str] = None  # console only when unset
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class AutoLoadConfig:
    """Directory auto-load settings."""
    module_extension: str = ".py"
    exclusion_prefix: str = "!"
    export_name: str = "service"


@dataclass
class ContainerConfig:
    """
    Construction-time settings for a ServiceContainer.

    Attributes:
        name: Container name, used in log messages
        register_as_current: Make the container the process-wide current one
        serialize_mutations: Run mutating operations one at a time under a lock
        logger: Container-wide logging override, called with (container, descriptor)
            in place of each service's own logging policy
        extras: Free-form application settings carried by the container
    """

    name: str = "service_container"
    register_as_current: bool = False
    serialize_mutations: bool = False
    logger: Optional[Callable[..., Any]] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    # Sub-configurations
    logging: LoggingConfig = None
    autoload: AutoLoadConfig = None

    def __post_init__(self):
        """Initialize mutable defaults and validate."""
        if self.logging is None:
            self.logging = LoggingConfig()
        if self.autoload is None:
            self.autoload = AutoLoadConfig()

        self._validate_config()

    def _validate_config(self):
        """Validate configuration values."""
        validation_errors = []

        if not isinstance(self.name, str) or not self.name:
            validation_errors.append("Container name must be a non-empty string")

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(self.logging.level).upper() not in valid_levels:
            validation_errors.append(f"Invalid log level: {self.logging.level}")
        if self.logging.max_file_size < 1:
            validation_errors.append("Log max_file_size must be >= 1")
        if self.logging.backup_count < 0:
            validation_errors.append("Log backup_count must be >= 0")

        if self.logger is not None and not callable(self.logger):
            validation_errors.append("Logger override must be callable")

        if not self.autoload.module_extension.startswith("."):
            validation_errors.append(
                f"Module extension must start with '.': {self.autoload.module_extension}"
            )
        if not self.autoload.export_name.isidentifier():
            validation_errors.append(f"Invalid export name: {self.autoload.export_name}")

        if validation_errors:
            for error in validation_errors:
                logger.error(f"Config validation error: {error}")
            raise ValueError(f"Configuration validation failed: {validation_errors}")


class ConfigManager:
    """Loads ContainerConfig from defaults, a JSON file and the environment."""

    def __init__(self):
        self.logger = get_logger("config_manager")
        load_dotenv()  # Load environment variables from .env file
        self.logger.debug("Loaded environment variables from .env")

    def load_config(self,
                    config_file: Optional[str] = None,
                    env_prefix: str = "SERVICE_CONTAINER_") -> ContainerConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to JSON configuration file
            env_prefix: Prefix for environment variables

        Returns:
            ContainerConfig instance
        """
        self.logger.debug("Loading service container configuration...")

        # Start with default config
        config_dict = asdict(ContainerConfig())

        # Load from file if provided
        if config_file and Path(config_file).exists():
            self.logger.info(f"Loading config from file: {config_file}")
            with open(config_file, 'r') as f:
                file_config = json.load(f)
            config_dict = self._deep_merge(config_dict, file_config)

        # Override with environment variables
        env_config = self._load_from_env(env_prefix)
        config_dict = self._deep_merge(config_dict, env_config)

        try:
            config = ContainerConfig(
                name=config_dict.get('name', 'service_container'),
                register_as_current=config_dict.get('register_as_current', False),
                serialize_mutations=config_dict.get('serialize_mutations', False),
                extras=config_dict.get('extras') or {},
                logging=LoggingConfig(**config_dict.get('logging', {})),
                autoload=AutoLoadConfig(**config_dict.get('autoload', {})),
            )
            self.logger.debug("Configuration loaded successfully")
            return config
        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}")
            raise

    def _load_from_env(self, prefix: str) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config = {}

        # Environment variable -> (config path, target type)
        mappings = {
            f"{prefix}NAME": (["name"], str),
            f"{prefix}REGISTER_AS_CURRENT": (["register_as_current"], bool),
            f"{prefix}SERIALIZE_MUTATIONS": (["serialize_mutations"], bool),
            f"{prefix}LOG_LEVEL": (["logging", "level"], str),
            f"{prefix}LOG_DIR": (["logging", "log_dir"], str),
            f"{prefix}LOG_MAX_FILE_SIZE": (["logging", "max_file_size"], int),
            f"{prefix}LOG_BACKUP_COUNT": (["logging", "backup_count"], int),
            f"{prefix}MODULE_EXTENSION": (["autoload", "module_extension"], str),
            f"{prefix}EXCLUSION_PREFIX": (["autoload", "exclusion_prefix"], str),
            f"{prefix}EXPORT_NAME": (["autoload", "export_name"], str),
        }

        for env_var, (path, target) in mappings.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            self._set_nested_value(env_config, path, self._convert_type(env_var, value, target))

        return env_config

    def _convert_type(self, env_var: str, value: str, target: type) -> Union[str, int, bool]:
        """Convert an environment string to the type of the field it sets."""
        if target is bool:
            lowered = value.strip().lower()
            if lowered in {"true", "1", "yes", "on"}:
                return True
            if lowered in {"false", "0", "no", "off"}:
                return False
            raise ValueError(f"{env_var} must be a boolean, got {value!r}")

        if target is int:
            try:
                return int(value.strip())
            except ValueError:
                raise ValueError(f"{env_var} must be an integer, got {value!r}") from None

        return value

    @staticmethod
    def _set_nested_value(target: Dict[str, Any], path: List[str], value: Any):
        """Set target[path[0]][path[1]]... = value, creating sections on the way."""
        *sections, leaf = path
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Return base updated by override; nested sections merge key by key."""
        merged = dict(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                value = self._deep_merge(current, value)
            merged[key] = value
        return merged

    def create_env_template(self, path: str = ".env.template", prefix: str = "SERVICE_CONTAINER_"):
        """Write a .env template listing the variables read by _load_from_env()."""
        self.logger.info(f"Writing environment template to: {path}")
        lines = [
            "# Service container environment template",
            "# Copy to .env and fill in values as needed",
            "",
            "# --- Core ---",
            f"{prefix}NAME=service_container",
            f"{prefix}REGISTER_AS_CURRENT=false",
            f"{prefix}SERIALIZE_MUTATIONS=false",
            "",
            "# --- Logging ---",
            f"{prefix}LOG_LEVEL=INFO",
            f"{prefix}LOG_DIR=",
            f"{prefix}LOG_MAX_FILE_SIZE=10485760",
            f"{prefix}LOG_BACKUP_COUNT=5",
            "",
            "# --- Auto-load ---",
            f"{prefix}MODULE_EXTENSION=.py",
            f"{prefix}EXCLUSION_PREFIX=!",
            f"{prefix}EXPORT_NAME=service",
        ]
        with open(path, "w") as f:
            f.write("\n".join(lines) + "\n")
        self.logger.info("Environment template written successfully")


def load_config(config_file: Optional[str] = None) -> ContainerConfig:
    """Load a ContainerConfig using the default environment prefix."""
    return ConfigManager().load_config(config_file)
