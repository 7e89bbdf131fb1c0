"""
Scan orchestration and report data structures.
"""
from __future__ import annotations

import sys
import threading
from collections import Counter
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, as_completed, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Type, Union

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter

from brokenurls.check import DEFAULT_TIMEOUT_S, CheckOutcome, FailureReason, ReferenceChecker
from brokenurls.errors import (
    BrokenReferenceError,
    BrokenUrlsReportError,
    FragmentNotFoundError,
    LocalNotFoundError,
    ParseError,
    RemoteGoneError,
    RemoteUnreachableError,
)
from brokenurls.extract import extract_references, parse_document, read_document
from brokenurls.resolve import ClassifiedReference, ReferenceKind, classify

PathLike = Union[str, Path]

DEFAULT_USER_AGENT = "BrokenUrlsDetector/1.0"

ERROR_TYPES: Dict[FailureReason, Type[BrokenReferenceError]] = {
    FailureReason.LOCAL_NOT_FOUND: LocalNotFoundError,
    FailureReason.FRAGMENT_NOT_FOUND: FragmentNotFoundError,
    FailureReason.REMOTE_UNREACHABLE: RemoteUnreachableError,
    FailureReason.REMOTE_GONE: RemoteGoneError,
}


@dataclass(slots=True)
class ScanConfig:
    """Settings for one detector run."""
    timeout_s: float = DEFAULT_TIMEOUT_S
    user_agent: str = DEFAULT_USER_AGENT
    max_workers: int = 16
    max_documents: int = 4
    fail_fast: bool = False
    verbose: bool = False
    extensions: Tuple[str, ...] = (".html",)


@dataclass(frozen=True, slots=True)
class BrokenReference:
    """A reference that failed its check, with everything needed to fix it."""
    document: str
    target: str
    label: str
    kind: str
    reason: FailureReason
    detail: str = ""
    status_code: Optional[int] = None

    @classmethod
    def from_outcome(cls, classified: ClassifiedReference, outcome: CheckOutcome) -> BrokenReference:
        ref = classified.reference
        return cls(
            document=ref.source_path,
            target=ref.target,
            label=ref.label,
            kind=ref.kind.value,
            reason=outcome.reason,
            detail=outcome.detail,
            status_code=outcome.status_code,
        )

    def message(self) -> str:
        where = f"'{self.target} ({self.label})'"
        if self.reason is FailureReason.LOCAL_NOT_FOUND:
            return f"Can't find the path to {where} in file at '{self.document}'"
        if self.reason is FailureReason.FRAGMENT_NOT_FOUND:
            return f"Can't find the anchor {where} in file at '{self.document}'"
        if self.reason is FailureReason.REMOTE_UNREACHABLE:
            return f"Can't reach the url at {where} in file at '{self.document}' ({self.detail})"
        return f"Can't find the url at {where} (status code: {self.status_code}) in file at '{self.document}'"

    def to_error(self) -> BrokenReferenceError:
        return ERROR_TYPES[self.reason](self)

    def sort_key(self) -> Tuple[str, str, str, str, str]:
        return (self.document, self.target, self.label, self.kind, self.reason.value)

    def to_dict(self) -> Dict[str, object]:
        return {
            "document": self.document,
            "target": self.target,
            "label": self.label,
            "kind": self.kind,
            "reason": self.reason.value,
            "detail": self.detail,
            "status_code": self.status_code,
        }


@dataclass(frozen=True, slots=True)
class DocumentError:
    """A document that could not be read or parsed."""
    document: str
    detail: str


@dataclass(slots=True)
class ScanReport:
    """Aggregate of every failure found during a scan."""
    documents_scanned: int = 0
    references_checked: int = 0
    references_ignored: int = 0
    broken: List[BrokenReference] = field(default_factory=list)
    document_errors: List[DocumentError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.broken and not self.document_errors

    @property
    def failure_count(self) -> int:
        return len(self.broken) + len(self.document_errors)

    def merge(self, other: ScanReport) -> None:
        self.documents_scanned += other.documents_scanned
        self.references_checked += other.references_checked
        self.references_ignored += other.references_ignored
        self.broken.extend(other.broken)
        self.document_errors.extend(other.document_errors)

    def finalize(self) -> ScanReport:
        """Sort rows so the report does not depend on completion order."""
        self.broken.sort(key=BrokenReference.sort_key)
        self.document_errors.sort(key=lambda e: (e.document, e.detail))
        return self

    def counts_by_reason(self) -> Dict[str, int]:
        counts = Counter(row.reason.value for row in self.broken)
        if self.document_errors:
            counts["parse-error"] = len(self.document_errors)
        return dict(counts)

    def to_dict(self) -> Dict[str, object]:
        return {
            "ok": self.ok,
            "documents_scanned": self.documents_scanned,
            "references_checked": self.references_checked,
            "references_ignored": self.references_ignored,
            "broken": [row.to_dict() for row in self.broken],
            "document_errors": [{"document": e.document, "detail": e.detail} for e in self.document_errors],
        }


def build_session(user_agent: str, pool_size: int) -> requests.Session:
    """Create the HTTP session shared by every remote check."""
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def list_documents(folder: Path, recursive: bool, extensions: Tuple[str, ...] = (".html",)) -> List[Path]:
    """Return the HTML files of a folder, sorted."""
    candidates = folder.rglob("*") if recursive else folder.iterdir()
    wanted = {ext.lower() for ext in extensions}
    return sorted(p for p in candidates if p.is_file() and p.suffix.lower() in wanted)


def print_start(root: Path, documents: int, config: ScanConfig) -> None:
    """Print the scan banner to stderr."""
    sys.stderr.write(f"Scanning {documents} document(s) under: {root}\n")
    mode = "fail-fast" if config.fail_fast else "collect-all"
    sys.stderr.write(f"Timeout: {config.timeout_s:g}s | Workers: {config.max_workers} | Mode: {mode}\n\n")


def print_document_line(report: ScanReport, source_path: str) -> None:
    """Print a single per-document result line."""
    if report.document_errors:
        line = f"  ✗ ERROR {source_path}: {report.document_errors[0].detail}\n"
    elif report.broken:
        line = f"  ✗ {source_path} ({len(report.broken)} broken of {report.references_checked})\n"
    else:
        line = f"  ✓ {source_path} ({report.references_checked} refs)\n"
    sys.stderr.write(line)
    sys.stderr.flush()


class BrokenUrlsDetector:
    """
    Scans documents under an output folder for broken references.

    Documents are processed on one thread pool and their reference checks on
    another, so a document task waiting on its checks never starves the pool
    it is running on. The HTTP session is shared by every check. Each
    top-level scan gets its own abort event, so a detector stays usable after
    a failed or interrupted scan.
    """

    def __init__(
        self,
        output_folder: PathLike,
        config: Optional[ScanConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.output_folder = Path(output_folder)
        if not self.output_folder.is_dir():
            raise FileNotFoundError(f"Output folder not found: {self.output_folder}")
        self.config = config or ScanConfig()
        self._extensions = {ext.lower() for ext in self.config.extensions}
        self._owns_session = session is None
        self.session = session or build_session(self.config.user_agent, self.config.max_workers)
        self.checker = ReferenceChecker(self.output_folder, self.session, self.config.timeout_s)
        self._active_scans: Set[threading.Event] = set()
        self._lock = threading.Lock()
        self._check_pool = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="brokenurls-check"
        )
        self._document_pool = ThreadPoolExecutor(
            max_workers=self.config.max_documents, thread_name_prefix="brokenurls-doc"
        )

    def __enter__(self) -> BrokenUrlsDetector:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(cancel=exc_type is not None)

    def close(self, cancel: bool = False) -> None:
        """Shut down the pools, dropping queued work when cancelling."""
        if cancel:
            with self._lock:
                for aborted in self._active_scans:
                    aborted.set()
        self._document_pool.shutdown(wait=True, cancel_futures=cancel)
        self._check_pool.shutdown(wait=True, cancel_futures=cancel)
        if self._owns_session:
            self.session.close()

    @contextmanager
    def _scan(self) -> Iterator[threading.Event]:
        aborted = threading.Event()
        with self._lock:
            self._active_scans.add(aborted)
        try:
            yield aborted
        except BaseException:
            aborted.set()
            raise
        finally:
            with self._lock:
                self._active_scans.discard(aborted)

    def scan_file(self, path: PathLike) -> ScanReport:
        """Scan exactly one document, given relative to the output folder."""
        file_path = self._locate(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found in output folder: {path}")
        if file_path.suffix.lower() not in self._extensions:
            return ScanReport()
        with self._scan() as aborted:
            return self._scan_path(file_path, aborted).finalize()

    def scan_folder(self, path: PathLike = "", including_subfolders: bool = True) -> ScanReport:
        """Scan every HTML document in a folder relative to the output folder."""
        folder = self._locate(path)
        if not folder.is_dir():
            raise FileNotFoundError(f"Folder not found in output folder: {path}")
        documents = list_documents(folder, including_subfolders, tuple(self._extensions))

        if self.config.verbose:
            print_start(folder, len(documents), self.config)

        report = ScanReport()
        with self._scan() as aborted:
            futures = [self._document_pool.submit(self._scan_path, doc, aborted) for doc in documents]
            try:
                for fut in as_completed(futures):
                    # Dropped by an abort; the failure behind it is raised from its own future
                    if _was_cancelled(fut):
                        continue
                    report.merge(fut.result())
            except BaseException:
                _cancel_all(futures)
                raise
            if aborted.is_set():
                raise CancelledError()
        return report.finalize()

    def scan_document(self, html: str, source_path: str) -> ScanReport:
        """Scan a document already held in memory."""
        report = ScanReport(documents_scanned=1)
        try:
            document = parse_document(html, source_path)
        except ParseError as e:
            return self._record_parse_error(report, e)
        with self._scan() as aborted:
            return self._check_document(document, source_path, report, aborted).finalize()

    def _locate(self, path: PathLike) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.output_folder / candidate

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.output_folder).as_posix()
        except ValueError:
            return path.as_posix()

    def _record_parse_error(self, report: ScanReport, error: ParseError) -> ScanReport:
        if self.config.fail_fast:
            raise error
        report.document_errors.append(DocumentError(error.document, error.detail))
        if self.config.verbose:
            print_document_line(report, error.document)
        return report

    def _scan_path(self, path: Path, aborted: threading.Event) -> ScanReport:
        if aborted.is_set():
            raise CancelledError()
        source_path = self._relative(path)
        report = ScanReport(documents_scanned=1)
        try:
            document = read_document(path, source_path)
        except ParseError as e:
            if self.config.fail_fast:
                aborted.set()
            return self._record_parse_error(report, e)
        return self._check_document(document, source_path, report, aborted)

    def _check_one(
        self, classified: ClassifiedReference, document: BeautifulSoup, aborted: threading.Event
    ) -> CheckOutcome:
        if aborted.is_set():
            raise CancelledError()
        outcome = self.checker.check(classified, document)
        if self.config.fail_fast and not outcome.ok:
            aborted.set()
        return outcome

    def _check_document(
        self, document: BeautifulSoup, source_path: str, report: ScanReport, aborted: threading.Event
    ) -> ScanReport:
        """Check every reference of one parsed document concurrently."""
        futures: Dict[Future, ClassifiedReference] = {}
        for classified in map(classify, extract_references(document, source_path)):
            if classified.kind is ReferenceKind.IGNORED:
                report.references_ignored += 1
                continue
            futures[self._check_pool.submit(self._check_one, classified, document, aborted)] = classified
        report.references_checked += len(futures)

        try:
            if self.config.fail_fast:
                for fut in as_completed(futures):
                    if _was_cancelled(fut):
                        continue
                    outcome = fut.result()
                    if not outcome.ok:
                        raise BrokenReference.from_outcome(futures[fut], outcome).to_error()
            else:
                wait(futures)
        except BaseException:
            aborted.set()
            _cancel_all(futures)
            raise

        for fut, classified in futures.items():
            outcome = fut.result()
            if not outcome.ok:
                report.broken.append(BrokenReference.from_outcome(classified, outcome))

        if self.config.verbose:
            print_document_line(report, source_path)
        return report


def _was_cancelled(fut: Future) -> bool:
    return fut.cancelled() or isinstance(fut.exception(), CancelledError)


def _cancel_all(futures: Iterable[Future]) -> None:
    for fut in futures:
        fut.cancel()


def detect_broken_urls_at(
    output_folder: PathLike,
    path: PathLike,
    config: Optional[ScanConfig] = None,
    session: Optional[requests.Session] = None,
) -> ScanReport:
    """
    Detect broken URLs in one HTML file relative to the output folder.

    Returns the report of a clean scan. Raises BrokenUrlsReportError listing
    every failure, or the first BrokenReferenceError / ParseError when the
    config asks to fail fast.
    """
    with BrokenUrlsDetector(output_folder, config, session) as detector:
        report = detector.scan_file(path)
    if not report.ok:
        raise BrokenUrlsReportError(report)
    return report


def detect_broken_urls_in(
    output_folder: PathLike,
    path: PathLike = "",
    including_subfolders: bool = True,
    config: Optional[ScanConfig] = None,
    session: Optional[requests.Session] = None,
) -> ScanReport:
    """
    Detect broken URLs in every HTML file of a folder relative to the output folder.

    Same failure contract as detect_broken_urls_at().
    """
    with BrokenUrlsDetector(output_folder, config, session) as detector:
        report = detector.scan_folder(path, including_subfolders)
    if not report.ok:
        raise BrokenUrlsReportError(report)
    return report
