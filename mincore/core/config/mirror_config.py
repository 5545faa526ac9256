"""Mirror behavior configuration for mincore.

Alphabets, crawl tuning and maintenance settings. Defaults describe a
person directory keyed by ``uid`` and searched by surname (``sn``).
"""

import argparse
import math
import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from mincore.core.filters.compiler import RETRY_SCHEMAS, FilterSchema

DEFAULT_ALPHABETS = {
    "sn": " '-abcdefghijklmnopqrstuvwxyz",
    "uid": "0123456789abcdefghijklmnopqrstuvwxyz",
}


class MirrorConfig(BaseModel):
    """Configuration for crawling, partitioning and freshness maintenance."""

    uniqueness_attribute: str = Field(
        default="uid", description="Attribute that is unique across all entries"
    )

    attributes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ALPHABETS),
        description="Ordered alphabet per mirrored attribute",
    )

    visible_attributes: list[str] = Field(
        default_factory=lambda: ["sn", "uid"],
        description="Attributes returned to callers of a read",
    )

    buffer: int = Field(
        default=10, ge=0, description="Safety buffer P subtracted from G for splinters"
    )

    crawler: Literal["trench", "rank_shrink"] = Field(
        default="trench", description="Crawler used for escalated crawl orders"
    )

    step: int | None = Field(
        default=None, ge=1, description="TRENCH scan step (default: ceil(G/2))"
    )

    density_divisor: int = Field(
        default=4,
        ge=1,
        description="RANK-SHRINK treats a border as dense above ceil(g/divisor)",
    )

    schema_retries: list[FilterSchema] = Field(
        default_factory=lambda: list(RETRY_SCHEMAS),
        description="Alternative filter schemas tried after the default one",
    )

    staleness_days: float = Field(
        default=3.0, gt=0, description="Age after which a splinter is due"
    )

    time_budget_seconds: float | None = Field(
        default=None, gt=0, description="Wall-clock budget per crawl (None: unlimited)"
    )

    wait_for_escalation: bool = Field(
        default=True,
        description="Wait for escalated crawls before answering a read",
    )

    @field_validator("attributes")
    def validate_alphabets(cls, v: dict[str, str]) -> dict[str, str]:
        """Alphabets must be non-empty and strictly ascending."""
        for name, chars in v.items():
            if not chars:
                raise ValueError(f"Alphabet for '{name}' cannot be empty")
            if any(a >= b for a, b in zip(chars, chars[1:])):
                raise ValueError(
                    f"Alphabet for '{name}' must be strictly ascending by code point"
                )
        return v

    @model_validator(mode="after")
    def validate_attributes(self) -> "MirrorConfig":
        if self.uniqueness_attribute not in self.attributes:
            raise ValueError(
                f"Uniqueness attribute '{self.uniqueness_attribute}' needs an alphabet"
            )
        unknown = [a for a in self.visible_attributes if a not in self.attributes]
        if unknown:
            raise ValueError(f"Visible attributes without alphabet: {unknown}")
        return self

    @property
    def searchable_attributes(self) -> list[str]:
        return [a for a in self.attributes if a != self.uniqueness_attribute]

    def splinter_cap(self, volume_cap: int) -> int:
        """Largest splinter size, ``G - P`` (at least 1)."""
        return max(1, volume_cap - self.buffer)

    def scan_step(self, volume_cap: int) -> int:
        return self.step or math.ceil(volume_cap / 2)

    def density_threshold(self, volume_cap: int) -> int:
        return math.ceil(volume_cap / self.density_divisor)

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add mirror-related CLI arguments."""
        parser.add_argument(
            "--crawler",
            choices=["trench", "rank_shrink"],
            help="Crawler used for full crawls and escalations",
        )
        parser.add_argument("--buffer", type=int, help="Splinter safety buffer P")
        parser.add_argument(
            "--time-budget",
            type=float,
            help="Wall-clock budget per crawl in seconds",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load mirror config from environment variables."""
        config: dict[str, Any] = {}
        if unique := os.getenv("MINCORE_MIRROR__UNIQUENESS_ATTRIBUTE"):
            config["uniqueness_attribute"] = unique
        if visible := os.getenv("MINCORE_MIRROR__VISIBLE_ATTRIBUTES"):
            config["visible_attributes"] = visible.split(",")
        if buffer := os.getenv("MINCORE_MIRROR__BUFFER"):
            config["buffer"] = int(buffer)
        if crawler := os.getenv("MINCORE_MIRROR__CRAWLER"):
            config["crawler"] = crawler
        if step := os.getenv("MINCORE_MIRROR__STEP"):
            config["step"] = int(step)
        if divisor := os.getenv("MINCORE_MIRROR__DENSITY_DIVISOR"):
            config["density_divisor"] = int(divisor)
        if retries := os.getenv("MINCORE_MIRROR__SCHEMA_RETRIES"):
            config["schema_retries"] = [s.strip().upper() for s in retries.split(",")]
        if days := os.getenv("MINCORE_MIRROR__STALENESS_DAYS"):
            config["staleness_days"] = float(days)
        if budget := os.getenv("MINCORE_MIRROR__TIME_BUDGET_SECONDS"):
            config["time_budget_seconds"] = float(budget)
        if wait := os.getenv("MINCORE_MIRROR__WAIT_FOR_ESCALATION"):
            config["wait_for_escalation"] = wait.lower() in ("true", "1", "yes")
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract mirror config from CLI arguments."""
        overrides: dict[str, Any] = {}
        if getattr(args, "crawler", None):
            overrides["crawler"] = args.crawler
        if getattr(args, "buffer", None) is not None:
            overrides["buffer"] = args.buffer
        if getattr(args, "time_budget", None) is not None:
            overrides["time_budget_seconds"] = args.time_budget
        if getattr(args, "no_wait", False):
            overrides["wait_for_escalation"] = False
        return overrides
