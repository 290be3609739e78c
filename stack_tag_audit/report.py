"""CSV report sink."""

from __future__ import annotations

import csv
import logging
import sys
from pathlib import Path
from typing import IO

from stack_tag_audit.models import REPORT_HEADER, ComplianceRecord

logger = logging.getLogger(__name__)


class CsvReportSink:
    """Writes compliance rows as CSV, header first.

    Rows are buffered by the underlying stream until :meth:`flush`.
    """

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self._writer = csv.writer(stream, lineterminator="\n")
        self.rows_written = 0
        self._writer.writerow(REPORT_HEADER)

    def add(self, record: ComplianceRecord) -> None:
        self._writer.writerow(record.to_row())
        self.rows_written += 1

    def flush(self) -> None:
        self._stream.flush()
        logger.debug("Report flushed (%d rows)", self.rows_written)


def open_report(output_path: str = "") -> tuple[CsvReportSink, IO[str]]:
    """Open a sink on *output_path*, or on stdout when empty.

    Returns the sink and the stream; the caller closes the stream unless it
    is stdout.
    """
    if not output_path:
        return CsvReportSink(sys.stdout), sys.stdout
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    stream = path.open("w", newline="", encoding="utf-8")
    return CsvReportSink(stream), stream
