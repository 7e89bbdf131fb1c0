"""
Classification of extracted references into anchors, local paths and remote URLs.
"""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlsplit

from brokenurls.extract import Reference


class ReferenceKind(str, Enum):
    FRAGMENT_ANCHOR = "fragment-anchor"
    LOCAL_PATH = "local-path"
    REMOTE_URL = "remote-url"
    IGNORED = "ignored"


@dataclass(frozen=True, slots=True)
class ClassifiedReference:
    """
    A reference together with its disposition.

    Exactly one of anchor, resolved_path and url is set, matching kind.
    Ignored references carry none of them.
    """
    reference: Reference
    kind: ReferenceKind
    anchor: Optional[str] = None
    resolved_path: Optional[str] = None
    url: Optional[str] = None


def containing_folder(source_path: str) -> str:
    """Return the document's path without its final segment."""
    return posixpath.dirname(source_path.replace("\\", "/"))


def resolve_local_path(path: str, source_path: str) -> str:
    """
    Resolve a URL path against the document location.

    Root-absolute paths are taken relative to the tree root, anything else
    relative to the folder holding the document. The result is a normalized
    POSIX path relative to the tree root ("." for the root itself).
    """
    path = unquote(path)
    if path.startswith("/"):
        joined = path.lstrip("/")
    else:
        joined = posixpath.join(containing_folder(source_path), path)
    return posixpath.normpath(joined) if joined else "."


def classify(ref: Reference) -> ClassifiedReference:
    """Decide how a reference should be checked."""
    target = ref.target.strip()
    if not target:
        return ClassifiedReference(ref, ReferenceKind.IGNORED)

    if target.startswith("#"):
        return ClassifiedReference(ref, ReferenceKind.FRAGMENT_ANCHOR, anchor=target[1:])

    try:
        parsed = urlsplit(target)
    except ValueError:
        return ClassifiedReference(ref, ReferenceKind.IGNORED)

    scheme = parsed.scheme.lower()
    if not scheme:
        # Schemeless always means local; "//host/x" is a root-absolute path
        path = f"//{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
        return ClassifiedReference(
            ref,
            ReferenceKind.LOCAL_PATH,
            resolved_path=resolve_local_path(path, ref.source_path),
        )

    if scheme.startswith("http"):
        return ClassifiedReference(ref, ReferenceKind.REMOTE_URL, url=target)

    return ClassifiedReference(ref, ReferenceKind.IGNORED)
