from __future__ import annotations

from pathlib import Path

import pytest
import requests
from urllib3.exceptions import LocationParseError

from brokenurls.check import (
    DEFAULT_TIMEOUT_S,
    FailureReason,
    ReferenceChecker,
    check_fragment,
    check_local,
    check_remote,
)
from brokenurls.extract import ElementKind, Reference, parse_document
from brokenurls.resolve import classify

from conftest import FakeSession


def test_local_file_and_folder_exist(site) -> None:
    root = site({"blog/images/cat.png": b"\x89PNG", "blog/index.html": "<p></p>"})
    assert check_local("blog/images/cat.png", root).ok
    assert check_local("blog/images", root).ok
    assert check_local(".", root).ok


def test_local_missing_path(site) -> None:
    root = site({"index.html": ""})
    outcome = check_local("missing.png", root)
    assert not outcome.ok
    assert outcome.reason is FailureReason.LOCAL_NOT_FOUND
    assert "missing.png" in outcome.detail


def test_local_path_outside_tree_is_not_found(site) -> None:
    root = site({"inner/index.html": ""})
    outcome = check_local("../inner/index.html", root / "inner")
    assert outcome.reason is FailureReason.LOCAL_NOT_FOUND


def test_fragment_found_by_id() -> None:
    document = parse_document('<h2 id="section1">One</h2><h2 id="a b">Two</h2>')
    assert check_fragment("section1", document).ok
    assert check_fragment("a%20b", document).ok
    missing = check_fragment("section2", document)
    assert missing.reason is FailureReason.FRAGMENT_NOT_FOUND


def test_fragment_top_of_page_is_always_ok() -> None:
    document = parse_document("<p>No ids</p>")
    assert check_fragment("", document).ok
    assert check_fragment("top", document).ok
    assert check_fragment("TOP", document).ok


def test_fragment_check_performs_no_io(tmp_path: Path) -> None:
    session = FakeSession()
    checker = ReferenceChecker(tmp_path / "does-not-exist", session)
    document = parse_document('<a href="#here">go</a><div id="here"></div>')
    classified = classify(Reference("#here", "go", "index.html", ElementKind.HYPERLINK))
    assert checker.check(classified, document).ok
    assert session.calls == []


@pytest.mark.parametrize("status", [404, 410])
def test_remote_gone_statuses(status: int) -> None:
    session = FakeSession({"https://x.test/gone": status})
    outcome = check_remote("https://x.test/gone", session)
    assert outcome.reason is FailureReason.REMOTE_GONE
    assert outcome.status_code == status


@pytest.mark.parametrize("status", [200, 301, 403, 500, 999])
def test_remote_other_statuses_pass(status: int) -> None:
    session = FakeSession({"https://x.test/page": status})
    assert check_remote("https://x.test/page", session).ok


@pytest.mark.parametrize(
    "error",
    [
        requests.Timeout("timed out"),
        requests.ConnectionError("connection refused"),
        requests.exceptions.SSLError("bad certificate"),
    ],
)
def test_remote_network_failures_are_unreachable(error: Exception) -> None:
    session = FakeSession({"https://x.test/slow": error})
    outcome = check_remote("https://x.test/slow", session)
    assert outcome.reason is FailureReason.REMOTE_UNREACHABLE
    assert outcome.status_code is None
    assert outcome.detail


def test_remote_check_is_a_single_head_with_timeout() -> None:
    session = FakeSession({"https://x.test/a": requests.Timeout("slow")})
    check_remote("https://x.test/a", session)
    assert session.calls == [
        {"url": "https://x.test/a", "timeout": DEFAULT_TIMEOUT_S, "allow_redirects": True}
    ]
    assert DEFAULT_TIMEOUT_S == 15.0


def test_checker_dispatches_by_kind(site) -> None:
    root = site({"blog/post.html": "", "blog/images/cat.png": b""})
    session = FakeSession({"https://x.test/gone": 410})
    checker = ReferenceChecker(root, session, timeout_s=3.0)
    document = parse_document("<p></p>")

    def outcome(target: str):
        return checker.check(classify(Reference(target, "l", "blog/post.html", ElementKind.IMAGE)), document)

    assert outcome("images/cat.png").ok
    assert outcome("images/dog.png").reason is FailureReason.LOCAL_NOT_FOUND
    assert outcome("https://x.test/gone").reason is FailureReason.REMOTE_GONE
    assert outcome("mailto:a@b.com").ok
    assert session.calls[0]["timeout"] == 3.0


def test_remote_malformed_host_is_unreachable() -> None:
    url = "http://" + "a" * 70 + ".test/"
    session = FakeSession({url: LocationParseError("a" * 70 + ".test")})
    outcome = check_remote(url, session)
    assert outcome.reason is FailureReason.REMOTE_UNREACHABLE
    assert outcome.detail
