"""Pydantic models for discovered resources, lookup outcomes and report rows."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────── Discovery ───────────────────────────────────────


class DiscoveredResource(BaseModel):
    """A physical resource reachable from a matched stack."""

    model_config = ConfigDict(frozen=True)

    resource_type: str = Field(description="CloudFormation type, e.g. 'AWS::S3::Bucket'")
    logical_id: str = ""
    physical_id: str = ""
    owner_stack_name: str = ""


# ──────────────────────────── Tag lookups ─────────────────────────────────────


class LookupStatus(str, Enum):
    """How a single tag lookup ended."""

    SUCCESS = "success"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    NOT_IMPLEMENTED = "not_implemented"
    FATAL = "fatal"


class LookupOutcome(BaseModel):
    """Result of looking up the tags of one resource."""

    status: LookupStatus
    resource_type: str = ""
    tags: dict[str, str] = Field(default_factory=dict)
    error: str = ""

    @classmethod
    def success(cls, resource_type: str, tags: dict[str, str]) -> LookupOutcome:
        return cls(status=LookupStatus.SUCCESS, resource_type=resource_type, tags=tags)

    @classmethod
    def unsupported(cls, resource_type: str, error: str = "") -> LookupOutcome:
        return cls(status=LookupStatus.UNSUPPORTED, resource_type=resource_type, error=error)

    @classmethod
    def not_found(cls, resource_type: str, error: str = "") -> LookupOutcome:
        return cls(status=LookupStatus.NOT_FOUND, resource_type=resource_type, error=error)

    @classmethod
    def not_implemented(cls, resource_type: str) -> LookupOutcome:
        return cls(
            status=LookupStatus.NOT_IMPLEMENTED,
            resource_type=resource_type,
            error=f"{resource_type} resource not implemented",
        )

    @classmethod
    def fatal(cls, resource_type: str, error: str) -> LookupOutcome:
        return cls(status=LookupStatus.FATAL, resource_type=resource_type, error=error)

    @property
    def is_skippable(self) -> bool:
        """Recorded as a not-applicable row; the run carries on."""
        return self.status in {LookupStatus.UNSUPPORTED, LookupStatus.NOT_FOUND}

    @property
    def is_fatal(self) -> bool:
        return self.status in {LookupStatus.NOT_IMPLEMENTED, LookupStatus.FATAL}


# ──────────────────────────── Compliance ──────────────────────────────────────


class Origin(str, Enum):
    """Whether a resource came from the matched stack or from elsewhere."""

    PIPELINE = "PIPELINE"
    CUSTOM = "CUSTOM"


REPORT_HEADER: list[str] = [
    "Project",
    "Type",
    "Resource Name",
    "Tags",
    "Missing Tags",
    "Created By",
    "Classic Coverage",
    "Modern Coverage",
]

NOT_APPLICABLE = "N/A"


class ComplianceRecord(BaseModel):
    """One report row: a resource scored against both taxonomies."""

    model_config = ConfigDict(frozen=True)

    resource_type: str
    physical_id: str
    origin_stack_name: str
    search_term: str
    present_modern_tags: list[str] = Field(default_factory=list)
    missing_modern_tags: list[str] = Field(default_factory=list)
    legacy_coverage_pct: int | None = None
    modern_coverage_pct: int | None = None

    @property
    def short_type(self) -> str:
        """'AWS::S3::Bucket' -> 'Bucket'; anything shorter is kept whole."""
        parts = self.resource_type.split("::")
        return parts[2] if len(parts) > 2 else self.resource_type

    @property
    def origin(self) -> Origin:
        if self.search_term in self.origin_stack_name:
            return Origin.PIPELINE
        return Origin.CUSTOM

    def to_row(self) -> list[str]:
        def _pct(value: int | None) -> str:
            return NOT_APPLICABLE if value is None else f"{value}%"

        return [
            self.search_term,
            self.short_type,
            self.physical_id,
            ",".join(self.present_modern_tags),
            ",".join(self.missing_modern_tags),
            self.origin.value,
            _pct(self.legacy_coverage_pct),
            _pct(self.modern_coverage_pct),
        ]


# ──────────────────────────── Run summary ─────────────────────────────────────


class AuditSummary(BaseModel):
    """Aggregated results of one audit run."""

    search_terms: list[str] = Field(default_factory=list)
    resources_discovered: int = 0
    rows_written: int = 0
    unsupported: int = 0
    not_found: int = 0
    anomalies: list[str] = Field(default_factory=list)
    aborted_on: DiscoveredResource | None = None
    error: str = ""
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
