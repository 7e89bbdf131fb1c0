"""
Reference extraction from parsed HTML documents.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Tuple

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup

from brokenurls.errors import ParseError

# Marker used in ElementRule.label_sources for the element's rendered text
TEXT = "#text"


class ElementKind(str, Enum):
    HYPERLINK = "hyperlink"
    IMAGE = "image"
    MEDIA_SOURCE = "media-source"
    FORM_ACTION = "form-action"
    FRAME = "frame"


@dataclass(frozen=True, slots=True)
class ElementRule:
    """How one element kind yields its target and its label."""
    kind: ElementKind
    tag: str
    target_attr: str
    label_sources: Tuple[str, ...]
    fallback_label: str

    def label_for(self, element: Tag) -> str:
        for source in self.label_sources:
            value = element.get_text(separator=" ", strip=True) if source == TEXT else attr(element, source)
            if value:
                return value
        return self.fallback_label


ELEMENT_RULES: Tuple[ElementRule, ...] = (
    ElementRule(ElementKind.HYPERLINK, "a", "href", (TEXT,), "a href"),
    ElementRule(ElementKind.IMAGE, "img", "src", ("title", "alt"), "img src"),
    ElementRule(ElementKind.MEDIA_SOURCE, "source", "srcset", (), "source srcset"),
    ElementRule(ElementKind.FORM_ACTION, "form", "action", (), "form action"),
    ElementRule(ElementKind.FRAME, "iframe", "src", ("title",), "iframe src"),
)


@dataclass(frozen=True, slots=True)
class Reference:
    """One pointer found in a document, exactly as written."""
    target: str
    label: str
    source_path: str
    kind: ElementKind


def attr(element: Tag, name: str) -> str:
    """Return an attribute value, or an empty string when it is absent."""
    value = element.get(name)
    if value is None:
        return ""
    # bs4 hands multi-valued attributes back as lists
    if isinstance(value, list):
        return " ".join(value)
    return value


def parse_document(html: str, source_path: str = "<string>") -> BeautifulSoup:
    """Build the element tree for one document."""
    try:
        return BeautifulSoup(html, "lxml")
    except (ParserRejectedMarkup, ValueError) as e:
        raise ParseError(source_path, str(e)) from e


def read_document(path: Path, source_path: str) -> BeautifulSoup:
    """Read a file from disk and parse it."""
    try:
        html = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(source_path, str(e)) from e
    return parse_document(html, source_path)


def extract_references(document: BeautifulSoup, source_path: str) -> List[Reference]:
    """Collect every reference in a parsed document, one table row at a time."""
    return [
        Reference(
            target=attr(element, rule.target_attr),
            label=rule.label_for(element),
            source_path=source_path,
            kind=rule.kind,
        )
        for rule in ELEMENT_RULES
        for element in document.find_all(rule.tag)
    ]
