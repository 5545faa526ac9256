"""Centralized configuration management for mincore.

This module provides a unified configuration system with clear precedence:
1. CLI arguments (highest priority)
2. Local .mincore.json in target directory (if present)
3. Config file (via --config path)
4. Environment variables
5. Default values (lowest priority)
"""

import copy
import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .database_config import DatabaseConfig
from .lookup_config import LookupConfig
from .mirror_config import MirrorConfig

LOCAL_CONFIG_NAME = ".mincore.json"


class Config(BaseModel):
    """Centralized configuration for mincore."""

    model_config = ConfigDict(validate_assignment=True)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    lookup: LookupConfig = Field(default_factory=LookupConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    debug: bool = Field(default=False)

    def __init__(
        self,
        config_file: Path | None = None,
        overrides: dict[str, Any] | None = None,
        target_dir: Path | None = None,
        **kwargs: Any,
    ):
        """Initialize configuration with hierarchical loading.

        Args:
            config_file: Optional path to configuration file (from --config)
            overrides: Optional dictionary of CLI overrides
            target_dir: Optional directory to check for .mincore.json
            **kwargs: Additional keyword arguments
        """
        config_data: dict[str, Any] = {}

        # 1. Environment variables
        env_vars = self._load_env_vars()
        config_data.update(copy.deepcopy(env_vars))

        # 2. Config file (from --config)
        if config_file is not None:
            if not config_file.exists():
                raise ValueError(f"Config file not found: {config_file}")
            self._deep_merge(config_data, self._read_json(config_file))

        # 3. Local .mincore.json in the target directory
        local_dir = target_dir if target_dir is not None else Path.cwd()
        local_config_path = local_dir / LOCAL_CONFIG_NAME
        if local_config_path.exists():
            self._deep_merge(config_data, self._read_json(local_config_path))

        # 4. CLI overrides
        if overrides:
            self._deep_merge(config_data, overrides)

        # 5. Additional kwargs
        if kwargs:
            self._deep_merge(config_data, kwargs)

        super().__init__(**config_data)

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        try:
            with open(path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Invalid JSON in config file {path}: {e}. "
                "Please check the file format and try again."
            ) from e

    @staticmethod
    def _load_env_vars() -> dict[str, Any]:
        """Load configuration from environment variables.

        Uses the MINCORE_ prefix with __ delimiter for nested values.
        """
        config: dict[str, Any] = {}

        if debug := os.getenv("MINCORE_DEBUG"):
            config["debug"] = debug.lower() in ("true", "1", "yes")

        if database := DatabaseConfig.load_from_env():
            config["database"] = database
        if lookup := LookupConfig.load_from_env():
            config["lookup"] = lookup
        if mirror := MirrorConfig.load_from_env():
            config["mirror"] = mirror

        return config

    @classmethod
    def _deep_merge(cls, base: dict[str, Any], update: dict[str, Any]) -> None:
        """Deep merge update dictionary into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                cls._deep_merge(base[key], value)
            else:
                base[key] = value

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_cli_args(
        cls,
        args: Any,
        config_file: Path | None = None,
        target_dir: Path | None = None,
    ) -> "Config":
        """Create configuration from CLI arguments.

        Args:
            args: Parsed command line arguments
            config_file: Optional config file path (from --config)
            target_dir: Optional directory to check for .mincore.json

        Returns:
            Configured Config instance
        """
        overrides: dict[str, Any] = {}

        if database := DatabaseConfig.extract_cli_overrides(args):
            overrides["database"] = database
        if lookup := LookupConfig.extract_cli_overrides(args):
            overrides["lookup"] = lookup
        if mirror := MirrorConfig.extract_cli_overrides(args):
            overrides["mirror"] = mirror
        if getattr(args, "verbose", False):
            overrides["debug"] = True

        if config_file is None and getattr(args, "config", None):
            config_file = Path(args.config)

        return cls(config_file=config_file, overrides=overrides, target_dir=target_dir)
