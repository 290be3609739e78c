"""Tests for lookup classification and the audit driver."""

from __future__ import annotations

import csv
import io
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from stack_tag_audit.adapter import UnsupportedTagLookup
from stack_tag_audit.auditor import EXIT_FATAL, EXIT_NOT_IMPLEMENTED, EXIT_OK, lookup_tags, run_audit
from stack_tag_audit.config import Settings
from stack_tag_audit.errors import TagExtractionError
from stack_tag_audit.models import DiscoveredResource, LookupStatus
from stack_tag_audit.registry import TagLookupRegistry
from stack_tag_audit.report import CsvReportSink

SKIPPABLE = ["ResourceNotFoundException", "EntityNotFoundException", "TagsNotSupportedException"]


# ══════════════════════════════════════════════════════════════════════════════
#  Helpers
# ══════════════════════════════════════════════════════════════════════════════


class _StaticLookup:
    """Returns fixed tags, or raises a fixed error."""

    def __init__(self, tags: dict[str, str] | None = None, error: Exception | None = None) -> None:
        self.tags = tags or {}
        self.error = error
        self.calls: list[str] = []

    def lookup(self, resource_id: str) -> dict[str, str]:
        self.calls.append(resource_id)
        if self.error is not None:
            raise self.error
        return dict(self.tags)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, "ListTags")


def _resource(rtype: str = "AWS::S3::Bucket", pid: str = "b", stack: str = "billing-main") -> DiscoveredResource:
    return DiscoveredResource(resource_type=rtype, logical_id=pid.upper(), physical_id=pid, owner_stack_name=stack)


def _resolver(*batches: list[DiscoveredResource], anomalies: list[str] | None = None) -> MagicMock:
    resolver = MagicMock()
    resolver.discover.side_effect = list(batches)
    resolver.anomalies = anomalies or []
    return resolver


def _rows(buf: io.StringIO) -> list[list[str]]:
    return list(csv.reader(io.StringIO(buf.getvalue())))


# ══════════════════════════════════════════════════════════════════════════════
#  lookup_tags
# ══════════════════════════════════════════════════════════════════════════════


class TestLookupTags:
    def test_success(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup({"owner": "a"})})
        outcome = lookup_tags(_resource(), registry, SKIPPABLE)
        assert outcome.status is LookupStatus.SUCCESS
        assert outcome.tags == {"owner": "a"}

    def test_absent_type_is_not_implemented(self) -> None:
        outcome = lookup_tags(_resource("AWS::New::Thing"), TagLookupRegistry({}), SKIPPABLE)
        assert outcome.status is LookupStatus.NOT_IMPLEMENTED
        assert outcome.is_fatal

    def test_custom_resource_is_unsupported(self) -> None:
        outcome = lookup_tags(_resource("Custom::Rotation"), TagLookupRegistry({}), SKIPPABLE)
        assert outcome.status is LookupStatus.UNSUPPORTED

    def test_sentinel_is_unsupported(self) -> None:
        registry = TagLookupRegistry({"AWS::IAM::Policy": UnsupportedTagLookup("AWS::IAM::Policy")})
        outcome = lookup_tags(_resource("AWS::IAM::Policy"), registry, SKIPPABLE)
        assert outcome.status is LookupStatus.UNSUPPORTED
        assert "does not support tagging" in outcome.error

    def test_skippable_code_is_not_found(self) -> None:
        registry = TagLookupRegistry({"AWS::Glue::Job": _StaticLookup(error=_client_error("EntityNotFoundException"))})
        outcome = lookup_tags(_resource("AWS::Glue::Job"), registry, SKIPPABLE)
        assert outcome.status is LookupStatus.NOT_FOUND

    def test_tags_not_supported_code_is_unsupported(self) -> None:
        registry = TagLookupRegistry({"AWS::X::Y": _StaticLookup(error=_client_error("TagsNotSupportedException"))})
        assert lookup_tags(_resource("AWS::X::Y"), registry, SKIPPABLE).status is LookupStatus.UNSUPPORTED

    def test_other_code_is_fatal(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup(error=_client_error("NoSuchTagSet"))})
        outcome = lookup_tags(_resource(), registry, SKIPPABLE)
        assert outcome.status is LookupStatus.FATAL
        assert "NoSuchTagSet" in outcome.error

    def test_code_becomes_skippable_when_configured(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup(error=_client_error("NoSuchTagSet"))})
        outcome = lookup_tags(_resource(), registry, [*SKIPPABLE, "NoSuchTagSet"])
        assert outcome.status is LookupStatus.NOT_FOUND

    def test_extraction_error_is_fatal(self) -> None:
        registry = TagLookupRegistry({"AWS::IAM::Role": _StaticLookup(error=TagExtractionError("empty"))})
        outcome = lookup_tags(_resource("AWS::IAM::Role"), registry, SKIPPABLE)
        assert outcome.status is LookupStatus.FATAL
        assert "TagExtractionError" in outcome.error

    def test_transport_error_is_fatal(self) -> None:
        err = EndpointConnectionError(endpoint_url="https://iam.amazonaws.com")
        registry = TagLookupRegistry({"AWS::IAM::Role": _StaticLookup(error=err)})
        assert lookup_tags(_resource("AWS::IAM::Role"), registry, SKIPPABLE).status is LookupStatus.FATAL


# ══════════════════════════════════════════════════════════════════════════════
#  run_audit
# ══════════════════════════════════════════════════════════════════════════════


class TestRunAudit:
    def test_one_row_per_resource(self) -> None:
        registry = TagLookupRegistry({
            "AWS::S3::Bucket": _StaticLookup({"Name": "x", "rlg:product": "p"}),
            "AWS::IAM::Policy": UnsupportedTagLookup("AWS::IAM::Policy"),
        })
        resources = [
            _resource(pid="b1"),
            _resource("AWS::IAM::Policy", pid="pol"),
            _resource("Custom::Thing", pid="c1", stack="SC-1-pp-x"),
        ]
        buf = io.StringIO()

        summary = run_audit(["billing"], _resolver(resources), registry, CsvReportSink(buf), Settings())

        rows = _rows(buf)
        assert summary.exit_code == EXIT_OK
        assert summary.rows_written == 3
        assert summary.unsupported == 2
        assert len(rows) == 4
        assert rows[1][:3] == ["billing", "Bucket", "b1"]
        assert rows[1][3] == "Name,rlg:product"
        assert rows[1][7] == "20%"
        assert rows[2][6:] == ["N/A", "N/A"]
        assert rows[3][5] == "CUSTOM"

    def test_not_found_is_counted_and_reported(self) -> None:
        registry = TagLookupRegistry({"AWS::Glue::Job": _StaticLookup(error=_client_error("EntityNotFoundException"))})
        buf = io.StringIO()
        summary = run_audit(["billing"], _resolver([_resource("AWS::Glue::Job")]), registry, CsvReportSink(buf), Settings())
        assert summary.not_found == 1
        assert _rows(buf)[1][6:] == ["N/A", "N/A"]

    def test_not_implemented_aborts_after_flush(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup({"Name": "x"})})
        resources = [_resource(pid="b1"), _resource(pid="b2"), _resource("AWS::New::Thing", pid="n"), _resource(pid="b3")]
        buf = io.StringIO()
        sink = CsvReportSink(buf)
        sink.flush = MagicMock(wraps=sink.flush)  # type: ignore[method-assign]

        summary = run_audit(["billing"], _resolver(resources), registry, sink, Settings())

        assert summary.exit_code == EXIT_NOT_IMPLEMENTED
        assert summary.rows_written == 2
        assert summary.aborted_on is not None and summary.aborted_on.physical_id == "n"
        assert "not implemented" in summary.error
        assert [r[2] for r in _rows(buf)[1:]] == ["b1", "b2"]
        sink.flush.assert_called()

    def test_fatal_error_aborts(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup(error=_client_error("AccessDenied"))})
        summary = run_audit(["billing"], _resolver([_resource()]), registry, CsvReportSink(io.StringIO()), Settings())
        assert summary.exit_code == EXIT_FATAL
        assert summary.rows_written == 0

    def test_discovery_error_aborts(self) -> None:
        resolver = MagicMock()
        resolver.anomalies = []
        resolver.discover.side_effect = _client_error("Throttling")
        summary = run_audit(["billing"], resolver, TagLookupRegistry({}), CsvReportSink(io.StringIO()), Settings())
        assert summary.exit_code == EXIT_FATAL
        assert "Discovery failed" in summary.error

    def test_periodic_flush(self) -> None:
        lookup = _StaticLookup({"Name": "x"})
        registry = TagLookupRegistry({"AWS::S3::Bucket": lookup})
        resources = [_resource(pid=f"b{i}") for i in range(7)]
        sink = MagicMock()

        run_audit(["billing"], _resolver(resources), registry, sink, Settings(flush_every=3))

        # after 3 and 6, then the final flush
        assert sink.flush.call_count == 3
        assert sink.add.call_count == 7
        assert lookup.calls == [f"b{i}" for i in range(7)]

    def test_multiple_search_terms_share_one_report(self) -> None:
        registry = TagLookupRegistry({"AWS::S3::Bucket": _StaticLookup({})})
        resolver = _resolver([_resource(pid="a")], [_resource(pid="b", stack="search-x")])
        buf = io.StringIO()

        summary = run_audit(["billing", "search"], resolver, registry, CsvReportSink(buf), Settings())

        rows = _rows(buf)
        assert summary.resources_discovered == 2
        assert [r[0] for r in rows[1:]] == ["billing", "search"]
        assert rows.count(rows[0]) == 1

    def test_anomalies_are_reported(self) -> None:
        resolver = _resolver([], anomalies=["Cycle detected: a -> b -> a; skipping a"])
        summary = run_audit(["billing"], resolver, TagLookupRegistry({}), CsvReportSink(io.StringIO()), Settings())
        assert summary.succeeded
        assert summary.anomalies == ["Cycle detected: a -> b -> a; skipping a"]
