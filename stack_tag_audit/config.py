"""Application configuration and settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


DEFAULT_FLUSH_EVERY = 1000
DEFAULT_MAX_DEPTH = 10
DEFAULT_CUSTOM_RESOURCE_PREFIX = "Custom::"

LEGACY_TAXONOMY: list[str] = [
    "Name",
    "BU",
    "Product",
    "Repository",
    "TeamID",
    "Environment",
]

CURRENT_TAXONOMY: list[str] = [
    "Name",
    "rlg:business-unit",
    "rlg:product",
    "rlg:application",
    "rlg:repository",
    "rlg:techdata-team",
    "rlg:contact",
    "rlg:environment",
    "rlg:classification",
    "rlg:compliance",
]

# Provider error codes that mean "the resource is gone" or "no tags here".
SKIPPABLE_ERROR_CODES: list[str] = [
    "ResourceNotFoundException",
    "EntityNotFoundException",
    "TagsNotSupportedException",
]

# Stack resources that stand for another deployed stack rather than infrastructure.
INDIRECTION_RESOURCE_TYPES: list[str] = [
    "AWS::ServiceCatalog::CloudFormationProduct",
    "AWS::ServiceCatalog::CloudFormationProvisionedProduct",
]


def _env_region() -> str:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION", "")


class Settings(BaseModel):
    """Runtime settings resolved from env vars, an optional YAML file and CLI flags."""

    # ── AWS session ──────────────────────────────────────────────────
    aws_region: str = Field(
        default_factory=_env_region,
        description="AWS region to audit. Uses the boto3 default chain if empty.",
    )
    aws_profile: str = Field(
        default_factory=lambda: os.environ.get("AWS_PROFILE", ""),
        description="AWS CLI profile name. Uses default credentials if empty.",
    )

    # ── Output ───────────────────────────────────────────────────────
    output_path: str = Field(
        default="",
        description="CSV report destination. Empty = stdout.",
    )
    flush_every: int = Field(
        default=DEFAULT_FLUSH_EVERY,
        description="Flush the report after this many processed resources.",
    )

    # ── Discovery ────────────────────────────────────────────────────
    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        description="Maximum nesting depth when expanding provisioned products.",
    )
    indirection_resource_types: list[str] = Field(
        default_factory=lambda: list(INDIRECTION_RESOURCE_TYPES),
    )
    custom_resource_prefix: str = DEFAULT_CUSTOM_RESOURCE_PREFIX

    # ── Compliance ───────────────────────────────────────────────────
    legacy_taxonomy: list[str] = Field(default_factory=lambda: list(LEGACY_TAXONOMY))
    current_taxonomy: list[str] = Field(default_factory=lambda: list(CURRENT_TAXONOMY))
    skippable_error_codes: list[str] = Field(
        default_factory=lambda: list(SKIPPABLE_ERROR_CODES),
    )

    # Behaviour
    verbose: bool = False

    @field_validator("legacy_taxonomy", "current_taxonomy")
    @classmethod
    def _check_taxonomy(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("taxonomy must contain at least one tag key")
        if len(set(value)) != len(value):
            raise ValueError("taxonomy contains duplicate tag keys")
        return value

    @field_validator("flush_every", "max_depth")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> Settings:
        """Load settings from a YAML mapping, then apply non-empty *overrides*."""
        try:
            raw = yaml.safe_load(Path(path).read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"{path}: invalid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        raw.update({k: v for k, v in overrides.items() if v not in ("", None)})
        return cls(**raw)
