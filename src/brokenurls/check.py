"""
Availability checks for classified references.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import requests
from bs4 import BeautifulSoup

from brokenurls.resolve import ClassifiedReference, ReferenceKind

DEFAULT_TIMEOUT_S = 15.0

# Only a confirmed "not found" or "gone" counts as broken
GONE_STATUS_CODES: frozenset[int] = frozenset((404, 410))


class FailureReason(str, Enum):
    LOCAL_NOT_FOUND = "local-not-found"
    FRAGMENT_NOT_FOUND = "fragment-not-found"
    REMOTE_UNREACHABLE = "remote-unreachable"
    REMOTE_GONE = "remote-gone"


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    """Result of checking one reference."""
    reason: Optional[FailureReason] = None
    detail: str = ""
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls) -> CheckOutcome:
        return cls()

    @classmethod
    def failed(cls, reason: FailureReason, detail: str, status_code: Optional[int] = None) -> CheckOutcome:
        return cls(reason=reason, detail=detail, status_code=status_code)


OK = CheckOutcome.success()


def check_fragment(anchor: str, document: BeautifulSoup) -> CheckOutcome:
    """Look the anchor up among the ids of the same document."""
    # "#" and "#top" scroll to the top of the page
    if not anchor or anchor.lower() == "top":
        return OK
    for candidate in (anchor, unquote(anchor)):
        if document.find(id=candidate) is not None:
            return OK
    return CheckOutcome.failed(FailureReason.FRAGMENT_NOT_FOUND, f"no element with id '{anchor}'")


def check_local(resolved_path: str, tree_root: Path) -> CheckOutcome:
    """Check that a path exists as a file or a folder inside the tree."""
    if resolved_path == ".." or resolved_path.startswith("../"):
        return CheckOutcome.failed(FailureReason.LOCAL_NOT_FOUND, f"'{resolved_path}' is outside the output folder")
    candidate = tree_root / resolved_path
    if candidate.is_file() or candidate.is_dir():
        return OK
    return CheckOutcome.failed(FailureReason.LOCAL_NOT_FOUND, f"no file or folder at '{resolved_path}'")


def check_remote(url: str, session: requests.Session, timeout_s: float = DEFAULT_TIMEOUT_S) -> CheckOutcome:
    """Issue a single HEAD request and interpret its final status code."""
    try:
        resp = session.head(url, timeout=timeout_s, allow_redirects=True)
    except (requests.RequestException, ValueError) as e:
        # urllib3 rejects malformed hosts with LocationParseError, a ValueError
        return CheckOutcome.failed(FailureReason.REMOTE_UNREACHABLE, str(e) or type(e).__name__)

    if resp.status_code in GONE_STATUS_CODES:
        return CheckOutcome.failed(
            FailureReason.REMOTE_GONE,
            f"status code: {resp.status_code}",
            status_code=resp.status_code,
        )
    return OK


class ReferenceChecker:
    """Dispatches a classified reference to the matching check."""

    def __init__(self, tree_root: Path, session: requests.Session, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.tree_root = tree_root
        self.session = session
        self.timeout_s = timeout_s

    def check(self, classified: ClassifiedReference, document: BeautifulSoup) -> CheckOutcome:
        if classified.kind is ReferenceKind.FRAGMENT_ANCHOR:
            return check_fragment(classified.anchor or "", document)
        if classified.kind is ReferenceKind.LOCAL_PATH:
            return check_local(classified.resolved_path or ".", self.tree_root)
        if classified.kind is ReferenceKind.REMOTE_URL:
            return check_remote(classified.url or "", self.session, self.timeout_s)
        return OK
