"""
Broken reference detection for a folder of generated HTML documents.
Checks links, images, media sources, form actions and iframes against the
output folder (local paths, in-page anchors) or the network (HEAD requests).
"""
from brokenurls.core import (
    BrokenReference,
    BrokenUrlsDetector,
    ScanConfig,
    ScanReport,
    detect_broken_urls_at,
    detect_broken_urls_in,
)
from brokenurls.errors import BrokenReferenceError, BrokenUrlsError, BrokenUrlsReportError, ParseError

__version__ = "1.0.0"
__all__ = [
    "BrokenReference",
    "BrokenReferenceError",
    "BrokenUrlsDetector",
    "BrokenUrlsError",
    "BrokenUrlsReportError",
    "ParseError",
    "ScanConfig",
    "ScanReport",
    "detect_broken_urls_at",
    "detect_broken_urls_in",
]
