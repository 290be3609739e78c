"""Audit driver: discovery, tag lookup, scoring and report flushing.

Every lookup is turned into a :class:`LookupOutcome`.  Unsupported and
not-found resources are logged and reported as ``N/A`` rows; anything else
stops the run after the report has been flushed.

Exit codes
----------
0  every discovered resource was reported
1  fatal provider, extraction or configuration error
3  a resource type has no registered tag lookup
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from stack_tag_audit.config import Settings
from stack_tag_audit.errors import TagAuditError, TagsNotSupportedError
from stack_tag_audit.models import AuditSummary, DiscoveredResource, LookupOutcome, LookupStatus
from stack_tag_audit.registry import TagLookupRegistry
from stack_tag_audit.report import CsvReportSink
from stack_tag_audit.resolver import StackResourceResolver
from stack_tag_audit.scorer import not_applicable, score

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NOT_IMPLEMENTED = 3


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def lookup_tags(
    resource: DiscoveredResource,
    registry: TagLookupRegistry,
    skippable_error_codes: Iterable[str] = (),
) -> LookupOutcome:
    """Fetch and classify the tags of one resource."""
    rtype = resource.resource_type
    lookup = registry.resolve(rtype)
    if lookup is None:
        return LookupOutcome.not_implemented(rtype)

    try:
        tags = lookup.lookup(resource.physical_id)
    except TagsNotSupportedError as exc:
        return LookupOutcome.unsupported(rtype, str(exc))
    except ClientError as exc:
        code = error_code(exc)
        if code == TagsNotSupportedError.code:
            return LookupOutcome.unsupported(rtype, str(exc))
        if code in set(skippable_error_codes):
            return LookupOutcome.not_found(rtype, str(exc))
        return LookupOutcome.fatal(rtype, str(exc))
    except (BotoCoreError, TagAuditError) as exc:
        return LookupOutcome.fatal(rtype, f"{type(exc).__name__}: {exc}")

    return LookupOutcome.success(rtype, tags)


def run_audit(
    search_terms: Sequence[str],
    resolver: StackResourceResolver,
    registry: TagLookupRegistry,
    sink: CsvReportSink,
    settings: Settings,
) -> AuditSummary:
    """Audit every stack family in *search_terms*, writing one row per resource.

    The sink is flushed every ``settings.flush_every`` resources and once
    more before returning, whether the run completed or aborted.
    """
    summary = AuditSummary(search_terms=list(search_terms))
    processed = 0

    try:
        for term in search_terms:
            try:
                resources = resolver.discover(term)
            except (ClientError, BotoCoreError) as exc:
                summary.error = f"Discovery failed for {term!r}: {exc}"
                summary.exit_code = EXIT_FATAL
                logger.error(summary.error)
                return summary

            summary.resources_discovered += len(resources)

            for resource in resources:
                outcome = lookup_tags(resource, registry, settings.skippable_error_codes)

                if outcome.is_fatal:
                    summary.aborted_on = resource
                    summary.error = outcome.error
                    summary.exit_code = (
                        EXIT_NOT_IMPLEMENTED
                        if outcome.status is LookupStatus.NOT_IMPLEMENTED
                        else EXIT_FATAL
                    )
                    logger.error(
                        "%s (%s %s in stack %s)",
                        outcome.error,
                        resource.resource_type,
                        resource.physical_id,
                        resource.owner_stack_name,
                    )
                    return summary

                if outcome.is_skippable:
                    logger.warning(outcome.error)
                    if outcome.status is LookupStatus.NOT_FOUND:
                        summary.not_found += 1
                    else:
                        summary.unsupported += 1
                    record = not_applicable(resource, term)
                else:
                    record = score(
                        resource,
                        term,
                        outcome.tags,
                        settings.legacy_taxonomy,
                        settings.current_taxonomy,
                    )

                sink.add(record)
                summary.rows_written += 1
                processed += 1
                if processed % settings.flush_every == 0:
                    sink.flush()
    finally:
        sink.flush()
        summary.anomalies = list(resolver.anomalies)

    return summary
