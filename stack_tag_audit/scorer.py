"""Score resource tags against the legacy and current taxonomies."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from stack_tag_audit.models import ComplianceRecord, DiscoveredResource


def split_keys(tags: Mapping[str, str], taxonomy: Sequence[str]) -> tuple[list[str], list[str]]:
    """Partition *taxonomy* into (present, missing), keeping taxonomy order."""
    present = [key for key in taxonomy if key in tags]
    missing = [key for key in taxonomy if key not in tags]
    return present, missing


def coverage(present: Sequence[str], taxonomy: Sequence[str]) -> int:
    """Integer percentage of *taxonomy* keys that are present."""
    return 100 * len(present) // len(taxonomy)


def score(
    resource: DiscoveredResource,
    search_term: str,
    tags: Mapping[str, str],
    legacy_taxonomy: Sequence[str],
    current_taxonomy: Sequence[str],
) -> ComplianceRecord:
    present, missing = split_keys(tags, current_taxonomy)
    legacy_present, _ = split_keys(tags, legacy_taxonomy)
    return ComplianceRecord(
        resource_type=resource.resource_type,
        physical_id=resource.physical_id,
        origin_stack_name=resource.owner_stack_name,
        search_term=search_term,
        present_modern_tags=present,
        missing_modern_tags=missing,
        legacy_coverage_pct=coverage(legacy_present, legacy_taxonomy),
        modern_coverage_pct=coverage(present, current_taxonomy),
    )


def not_applicable(resource: DiscoveredResource, search_term: str) -> ComplianceRecord:
    """Row for a resource whose tags could not or need not be scored."""
    return ComplianceRecord(
        resource_type=resource.resource_type,
        physical_id=resource.physical_id,
        origin_stack_name=resource.owner_stack_name,
        search_term=search_term,
    )
