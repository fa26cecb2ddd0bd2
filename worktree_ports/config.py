"""
Configuration handling for the worktree port allocator.

This module provides functionality to load, validate, and manage
configuration from JSON files, dotenv files and environment variables.
"""

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigError


logger = logging.getLogger(__name__)

# Characters allowed in the port variable suffix of a template
SUFFIX_PATTERN = re.compile(r"^[A-Z_]+$")


class Config:
    """Configuration manager for the port allocator."""
    
    DEFAULT_CONFIG = {
        "portAllocation": {
            "base": 40000,
            "ceiling": 65535
        },
        "index": {
            "fileName": ".gwt_index"
        },
        "template": {
            "fileName": ".env.template",
            "portSuffix": "_PORT"
        },
        "registry": {
            "timeout": 10
        },
        "probe": {
            "enabled": True,
            "host": "127.0.0.1"
        },
        "lock": {
            "enabled": True,
            "timeout": 10,
            "fileName": "gwt-ports.lock"
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s %(name)s: %(message)s",
            "file": None
        }
    }
    
    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = None):
        """
        Initialize the configuration manager.
        
        Args:
            config_path: Path to a JSON configuration file (optional)
            env_file: Path to a dotenv file with GWT_* overrides (optional)
        """
        self.config: Dict[str, Any] = {}
        self.config_path = config_path
        self.env_file = env_file
        self._load_config()
    
    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Nested sections must not be shared with DEFAULT_CONFIG
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        
        if self.config_path:
            self._load_from_file(self.config_path)
        
        if self.env_file:
            self._load_env_file(self.env_file)
        
        self._load_from_env()
        
        self._validate_config()
        
        logger.debug(f"Configuration loaded from {self.config_path or 'defaults'}")
    
    def _load_from_file(self, config_path: str) -> None:
        """
        Load configuration from JSON file.
        
        Args:
            config_path: Path to configuration file
        
        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            return
        
        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file: {e}")
        
        if not isinstance(file_config, dict):
            raise ConfigError("Config file must contain a JSON object")
        
        self._merge_config(self.config, file_config)
        logger.debug(f"Loaded configuration from {config_path}")
    
    def _load_env_file(self, env_file: str) -> None:
        """
        Load GWT_* variables from a dotenv file into the process environment.
        
        Variables already present in the environment win over the file.
        
        Args:
            env_file: Path to the dotenv file
        """
        path = Path(env_file)
        if not path.is_file():
            logger.warning(f"Env file not found: {env_file}")
            return
        load_dotenv(path, override=False)
        logger.debug(f"Loaded environment overrides from {env_file}")
    
    def _load_from_env(self) -> None:
        """Load configuration overrides from environment variables."""
        env_mappings = {
            "GWT_PORT_BASE": ("portAllocation.base", "int"),
            "GWT_PORT_CEILING": ("portAllocation.ceiling", "int"),
            "GWT_INDEX_FILE": ("index.fileName", "string"),
            "GWT_TEMPLATE_FILE": ("template.fileName", "string"),
            "GWT_PORT_SUFFIX": ("template.portSuffix", "string"),
            "GWT_REGISTRY_TIMEOUT": ("registry.timeout", "float"),
            "GWT_PROBE": ("probe.enabled", "bool"),
            "GWT_PROBE_HOST": ("probe.host", "string"),
            "GWT_LOCK": ("lock.enabled", "bool"),
            "GWT_LOCK_TIMEOUT": ("lock.timeout", "float"),
            "GWT_LOG_LEVEL": ("logging.level", "string"),
            "GWT_LOG_FILE": ("logging.file", "string")
        }
        
        for env_var, (config_path, value_type) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    parsed_value = self._parse_env_value(value, value_type)
                    self._set_nested_value(self.config, config_path, parsed_value)
                    logger.debug(f"Loaded {env_var}={value}")
                except ValueError as e:
                    raise ConfigError(f"Failed to parse {env_var}: {e}", config_key=config_path)
    
    def _parse_env_value(self, value: str, value_type: str) -> Any:
        """
        Parse environment variable value based on type.
        
        Args:
            value: String value from environment
            value_type: Type to parse to (string, int, float, bool)
        
        Returns:
            Parsed value
        
        Raises:
            ValueError: If value cannot be parsed
        """
        if value_type == "string":
            return value
        elif value_type == "int":
            return int(value)
        elif value_type == "float":
            return float(value)
        elif value_type == "bool":
            return value.lower() in ("true", "1", "yes", "on")
        else:
            raise ValueError(f"Unknown value type: {value_type}")
    
    def _merge_config(self, base: Dict, override: Dict) -> None:
        """
        Recursively merge override config into base config.
        
        Args:
            base: Base configuration dictionary (modified in place)
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value
    
    def _set_nested_value(self, config: Dict, path: str, value: Any) -> None:
        """
        Set a nested configuration value using dot notation.
        
        Args:
            config: Configuration dictionary
            path: Dot-separated path to the value
            value: Value to set
        """
        keys = path.split(".")
        current = config
        
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        
        current[keys[-1]] = value
    
    def _validate_config(self) -> None:
        """
        Validate configuration values.
        
        Raises:
            ConfigError: If configuration is invalid
        """
        base = self.get_port_base()
        ceiling = self.get_port_ceiling()
        if not isinstance(base, int) or not isinstance(ceiling, int):
            raise ConfigError(
                f"Port bounds must be integers, got: {base!r}, {ceiling!r}",
                config_key="portAllocation"
            )
        if base < 1 or ceiling > 65535:
            raise ConfigError(
                f"Port space must be between 1-65535, got: {base}-{ceiling}",
                config_key="portAllocation"
            )
        if base >= ceiling:
            raise ConfigError(
                f"Port base {base} must be below ceiling {ceiling}",
                config_key="portAllocation"
            )
        
        for key in ("index.fileName", "template.fileName", "lock.fileName"):
            value = self.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Invalid file name: {value!r}", config_key=key)
        
        suffix = self.get_port_suffix()
        if not isinstance(suffix, str) or not SUFFIX_PATTERN.match(suffix):
            raise ConfigError(f"Invalid port suffix: {suffix!r}", config_key="template.portSuffix")
        
        for key in ("registry.timeout", "lock.timeout"):
            value = self.get(key)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"Timeout must be a positive number, got: {value!r}", config_key=key)
        
        for key in ("probe.enabled", "lock.enabled"):
            value = self.get(key)
            if not isinstance(value, bool):
                raise ConfigError(f"{key} must be a boolean, got: {value!r}", config_key=key)
        
        log_level = self.get_log_level()
        valid_levels = ("debug", "info", "warning", "error", "critical")
        if not isinstance(log_level, str) or log_level.lower() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}", config_key="logging.level")
    
    def get_port_base(self) -> int:
        """Get the lowest port of the allocatable space."""
        return self.config.get("portAllocation", {}).get("base", 40000)
    
    def get_port_ceiling(self) -> int:
        """Get the upper bound of the allocatable space."""
        return self.config.get("portAllocation", {}).get("ceiling", 65535)
    
    def get_index_file_name(self) -> str:
        """Get the per-worktree allocation record file name."""
        return self.config.get("index", {}).get("fileName", ".gwt_index")
    
    def get_template_file_name(self) -> str:
        """Get the env template file name."""
        return self.config.get("template", {}).get("fileName", ".env.template")
    
    def get_port_suffix(self) -> str:
        """Get the suffix that marks a template variable as a port."""
        return self.config.get("template", {}).get("portSuffix", "_PORT")
    
    def get_registry_timeout(self) -> float:
        """Get the timeout for worktree enumeration in seconds."""
        return self.config.get("registry", {}).get("timeout", 10)
    
    def get_probe_enabled(self) -> bool:
        """Get whether the liveness probe runs after allocation."""
        return self.config.get("probe", {}).get("enabled", True)
    
    def get_probe_host(self) -> str:
        """Get the host address the probe checks."""
        return self.config.get("probe", {}).get("host", "127.0.0.1")
    
    def get_lock_enabled(self) -> bool:
        """Get whether allocations run under the repository lock."""
        return self.config.get("lock", {}).get("enabled", True)
    
    def get_lock_timeout(self) -> float:
        """Get the lock acquisition timeout in seconds."""
        return self.config.get("lock", {}).get("timeout", 10)
    
    def get_lock_file_name(self) -> str:
        """Get the lock file name."""
        return self.config.get("lock", {}).get("fileName", "gwt-ports.lock")
    
    def get_log_level(self) -> str:
        """Get log level."""
        return self.config.get("logging", {}).get("level", "INFO")
    
    def get_log_format(self) -> str:
        """Get log format string."""
        return self.config.get("logging", {}).get(
            "format",
            "%(levelname)s %(name)s: %(message)s"
        )
    
    def get_log_file(self) -> Optional[str]:
        """Get log file path (None for console only)."""
        return self.config.get("logging", {}).get("file")
    
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.
        
        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found
        
        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        current = self.config
        
        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default
        
        return current
    
    def set(self, key: str, value: Any) -> None:
        """
        Override a configuration value and re-validate.
        
        Args:
            key: Configuration key (dot notation)
            value: New value
        
        Raises:
            ConfigError: If the resulting configuration is invalid
        """
        self._set_nested_value(self.config, key, value)
        self._validate_config()
    
    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self.config)
