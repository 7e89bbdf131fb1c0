from __future__ import annotations

import threading
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, List, Union

import pytest

Answer = Union[int, Exception, Callable[[], int]]


class FakeSession:
    """Stands in for requests.Session; answers HEAD requests from a table."""

    def __init__(self, answers: Dict[str, Answer] | None = None) -> None:
        self.answers = answers or {}
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def head(self, url: str, timeout: float, allow_redirects: bool) -> SimpleNamespace:
        with self._lock:
            self.calls.append({"url": url, "timeout": timeout, "allow_redirects": allow_redirects})
        answer = self.answers.get(url, 200)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            answer = answer()
        return SimpleNamespace(status_code=answer)

    def close(self) -> None:
        pass


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def site(tmp_path: Path) -> Callable[..., Path]:
    """Write files under a temporary output folder: site({"index.html": "..."})."""

    def _write(files: Dict[str, Union[str, bytes]]) -> Path:
        for rel, content in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write
