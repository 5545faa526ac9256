"""Remote lookup service configuration for mincore.

Controls which lookup provider is used, how to reach it and the volume cap
and pause that shape every remote call.
"""

import argparse
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class LookupConfig(BaseModel):
    """Configuration for the volume-limited lookup service."""

    provider: Literal["ldap", "directory"] = Field(
        default="ldap",
        description="Lookup provider: a real LDAP server or an in-memory directory",
    )

    # LDAP connection settings
    url: str | None = Field(default=None, description="LDAP server URL")
    base_dn: str = Field(default="", description="Search base DN")
    bind_dn: str | None = Field(default=None, description="DN used to bind")
    password: str | None = Field(default=None, description="Bind password")
    object_class: str = Field(
        default="person", description="Object class every searched entry must have"
    )

    # In-memory directory settings
    directory_fixture: Path | None = Field(
        default=None,
        description="JSON file with the entries served by the directory provider",
    )

    # Call shaping
    volume_cap: int = Field(
        default=500, ge=1, description="Maximum entries returned per call (G)"
    )
    pause_seconds: float = Field(
        default=3.0, ge=0.0, description="Pause after every remote call"
    )
    timeout: int = Field(
        default=30, ge=1, le=600, description="Per-call time limit in seconds"
    )

    @field_validator("url")
    def validate_url(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("ldap://", "ldaps://")):
            raise ValueError(f"LDAP URL must start with ldap:// or ldaps://: {v}")
        return v

    @model_validator(mode="after")
    def validate_provider_settings(self) -> "LookupConfig":
        if self.provider == "directory" and self.directory_fixture is not None:
            if not self.directory_fixture.suffix == ".json":
                raise ValueError("Directory fixture must be a .json file")
        return self

    def is_configured(self) -> bool:
        """Check if the selected provider has what it needs to connect."""
        if self.provider == "ldap":
            return self.url is not None
        return True

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add lookup-related CLI arguments."""
        parser.add_argument(
            "--lookup-provider",
            choices=["ldap", "directory"],
            help="Lookup provider to use",
        )
        parser.add_argument("--url", help="LDAP server URL")
        parser.add_argument(
            "--fixture",
            type=Path,
            help="JSON entries for the in-memory directory provider",
        )
        parser.add_argument(
            "--volume-cap",
            type=int,
            help="Maximum entries returned per remote call",
        )
        parser.add_argument(
            "--pause",
            type=float,
            help="Pause in seconds after every remote call",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load lookup config from environment variables."""
        config: dict[str, Any] = {}
        if provider := os.getenv("MINCORE_LOOKUP__PROVIDER"):
            config["provider"] = provider
        if url := os.getenv("MINCORE_LOOKUP__URL"):
            config["url"] = url
        if base_dn := os.getenv("MINCORE_LOOKUP__BASE_DN"):
            config["base_dn"] = base_dn
        if bind_dn := os.getenv("MINCORE_LOOKUP__BIND_DN"):
            config["bind_dn"] = bind_dn
        if password := os.getenv("MINCORE_LOOKUP__PASSWORD"):
            config["password"] = password
        if fixture := os.getenv("MINCORE_LOOKUP__DIRECTORY_FIXTURE"):
            config["directory_fixture"] = fixture
        if volume_cap := os.getenv("MINCORE_LOOKUP__VOLUME_CAP"):
            config["volume_cap"] = int(volume_cap)
        if pause := os.getenv("MINCORE_LOOKUP__PAUSE_SECONDS"):
            config["pause_seconds"] = float(pause)
        if timeout := os.getenv("MINCORE_LOOKUP__TIMEOUT"):
            config["timeout"] = int(timeout)
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract lookup config from CLI arguments."""
        overrides: dict[str, Any] = {}
        if getattr(args, "lookup_provider", None):
            overrides["provider"] = args.lookup_provider
        if getattr(args, "url", None):
            overrides["url"] = args.url
        if getattr(args, "fixture", None) is not None:
            overrides["directory_fixture"] = args.fixture
            overrides.setdefault("provider", "directory")
        if getattr(args, "volume_cap", None) is not None:
            overrides["volume_cap"] = args.volume_cap
        if getattr(args, "pause", None) is not None:
            overrides["pause_seconds"] = args.pause
        return overrides

    def __repr__(self) -> str:
        """String representation hiding the bind password."""
        target = self.url if self.provider == "ldap" else self.directory_fixture
        return (
            f"LookupConfig(provider={self.provider}, target={target}, "
            f"volume_cap={self.volume_cap}, pause={self.pause_seconds})"
        )
