"""
Exception hierarchy for broken reference detection.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from brokenurls.core import BrokenReference, ScanReport


class BrokenUrlsError(Exception):
    """Base class for every error raised by this package."""


class ParseError(BrokenUrlsError):
    """A document could not be read or parsed into an element tree."""

    def __init__(self, document: str, detail: str) -> None:
        super().__init__(f"Can't parse the file at '{document}': {detail}")
        self.document = document
        self.detail = detail


class BrokenReferenceError(BrokenUrlsError):
    """A single reference failed its availability check."""

    def __init__(self, failure: BrokenReference) -> None:
        super().__init__(failure.message())
        self.failure = failure


class LocalNotFoundError(BrokenReferenceError):
    pass


class FragmentNotFoundError(BrokenReferenceError):
    pass


class RemoteUnreachableError(BrokenReferenceError):
    pass


class RemoteGoneError(BrokenReferenceError):
    pass


class BrokenUrlsReportError(BrokenUrlsError):
    """Raised once a full scan found broken references or unreadable documents."""

    def __init__(self, report: ScanReport) -> None:
        lines = [f"Found {report.failure_count} broken reference(s):"]
        lines.extend(f"  - {row.message()}" for row in report.broken)
        lines.extend(f"  - Can't parse the file at '{e.document}': {e.detail}" for e in report.document_errors)
        super().__init__("\n".join(lines))
        self.report = report
