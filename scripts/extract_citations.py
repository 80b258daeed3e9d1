"""
Run citation detection and linking on one PDF and print a summary.

Usage:
    python scripts/extract_citations.py path/to/paper.pdf
    python scripts/extract_citations.py paper.pdf --preset strict --debug

With no stored reference list, the numbered entries located in the PDF's
bibliography stand in as references, so numeric and annotation links work.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from citelink import CitationSpanDetector, CitationLinker, EngineConfig, Reference
from citelink.errors import CitationEngineError
from citelink.log import configure_logging

PRESETS = {
    "default": EngineConfig.default,
    "strict": EngineConfig.strict,
    "recall": EngineConfig.recall,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Extract and link in-text citations from a PDF")
    parser.add_argument("pdf_path", help="PDF file to process")
    parser.add_argument("--preset", choices=sorted(PRESETS), default="default")
    parser.add_argument("--references-start-page", type=int, default=None,
                        help="1-indexed first bibliography page, if known")
    parser.add_argument("--limit", type=int, default=30, help="Spans to list (0 = none)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and detection report")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging("DEBUG" if args.debug else "WARNING")

    config = PRESETS[args.preset]()
    config.detector.debug = args.debug
    detector = CitationSpanDetector(config.detector)
    linker = CitationLinker(config.linker)

    print(f"Processing: {args.pdf_path}")
    print("=" * 60)

    try:
        detection = detector.detect(args.pdf_path, references_start_page=args.references_start_page)
    except CitationEngineError as exc:
        print(f"Error: {exc}")
        return 1

    report = detection.report
    references = [
        Reference(number=e.number, raw_text=f"[{e.number}]", page_num=e.page_num, y_top=e.top, y_bottom=e.bottom)
        for e in sorted(report.entry_extents.values(), key=lambda e: e.number)
    ]
    run = linker.run(detection.spans, references, report.references_start_page)
    results = run.results

    print(report.summary())

    linked_ids = {r.span.id for r in results}
    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"  - spans: {len(detection.spans)}")
    print(f"  - linked spans: {len(linked_ids)}")
    print(f"  - links: {len(results)}")
    print(f"  - links by method: {run.stats.by_method}")
    if detection.spans:
        avg = sum(s.confidence for s in detection.spans) / len(detection.spans)
        print(f"  - avg confidence: {avg:.3f}")

    if args.limit and detection.spans:
        targets = {}
        for r in results:
            targets.setdefault(r.span.id, []).append(str(r.reference.number))
        print(f"\nSpans (first {min(args.limit, len(detection.spans))}):")
        for span in detection.spans[:args.limit]:
            refs = ",".join(targets.get(span.id, [])) or "-"
            print(f"  p{span.page_num:<3} {span.provenance.value:<10} {span.style.value:<11} "
                  f"{span.confidence:.2f}  {span.raw_text!r} -> {refs}")
        if len(detection.spans) > args.limit:
            print(f"  ... and {len(detection.spans) - args.limit} more")

    print("\n" + "=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
