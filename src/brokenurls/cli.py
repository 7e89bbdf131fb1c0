"""
Command-line interface for the broken URL detector.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from brokenurls.core import DEFAULT_USER_AGENT, BrokenUrlsDetector, ScanConfig, ScanReport
from brokenurls.errors import BrokenReferenceError, ParseError


def print_summary(report: ScanReport) -> None:
    """Print scan summary to stderr."""
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("BROKEN URL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Documents scanned:      {report.documents_scanned}\n")
    sys.stderr.write(f"References checked:     {report.references_checked}\n")
    sys.stderr.write(f"References ignored:     {report.references_ignored}\n\n")

    counts = report.counts_by_reason()
    if counts:
        sys.stderr.write("Failures by reason:\n")
        for reason, count in sorted(counts.items()):
            sys.stderr.write(f"  {reason}: {count}\n")
    else:
        sys.stderr.write("No broken references found.\n")

    sys.stderr.write("\n")


def print_failures(report: ScanReport) -> None:
    """Print every failure, one per line, to stderr."""
    for row in report.broken:
        sys.stderr.write(f"✗ {row.message()}\n")
    for error in report.document_errors:
        sys.stderr.write(f"✗ Can't parse the file at '{error.document}': {error.detail}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect broken links, images, sources, forms and iframes in generated HTML."
    )
    parser.add_argument("output_folder", help="Root folder of the generated site")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--file", help="Scan a single HTML file (relative to the output folder)")
    target.add_argument("--path", default="", help="Scan this subfolder (relative to the output folder)")
    parser.add_argument("--no-subfolders", action="store_true", help="Do not descend into subfolders")
    parser.add_argument("--timeout", type=float, default=15.0, help="HEAD request timeout in seconds (default: 15)")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--workers", type=int, default=16, help="Concurrent reference checks (default: 16)")
    parser.add_argument("--documents", type=int, default=4, help="Documents scanned in parallel (default: 4)")
    parser.add_argument("--fail-fast", action="store_true", help="Stop at the first broken reference")
    parser.add_argument("--out", help="Write the JSON report to this path, or '-' for stdout")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--verbose", action="store_true", help="Show progress and summary")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the detector CLI."""
    args = build_parser().parse_args(argv)

    config = ScanConfig(
        timeout_s=args.timeout,
        user_agent=args.user_agent,
        max_workers=args.workers,
        max_documents=args.documents,
        fail_fast=args.fail_fast,
        verbose=args.verbose,
    )

    try:
        with BrokenUrlsDetector(args.output_folder, config) as detector:
            if args.file:
                report = detector.scan_file(args.file)
            else:
                report = detector.scan_folder(args.path, including_subfolders=not args.no_subfolders)
    except FileNotFoundError as e:
        sys.stderr.write(f"{e}\n")
        return 2
    except (BrokenReferenceError, ParseError) as e:
        # Only raised in fail-fast mode
        sys.stderr.write(f"✗ {e}\n")
        return 1

    if args.verbose:
        print_summary(report)
    print_failures(report)

    if args.out:
        json_text = json.dumps(report.to_dict(), ensure_ascii=False, indent=2 if args.pretty else None)
        if args.out == "-":
            print(json_text)
        else:
            output_path = Path(args.out)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(json_text, encoding="utf-8")
            if args.verbose:
                sys.stderr.write(f"Report written to: {output_path}\n")

    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
