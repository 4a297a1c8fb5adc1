"""
Image Text Search -- Command Line Interface
=============================================
Entry point for all user-facing operations.

Commands:
  ingest   -- Find images under _images folders, OCR them, save the index
  search   -- Boolean word search over the saved index
  stats    -- Show index and worker statistics
  check    -- Start the recognition worker once and report whether it works

Usage examples:
  python cli.py ingest --base-dir ../repo-test-ocr
  python cli.py ingest --languages en fr --query "water|(salt&dough)"
  python cli.py search "water|(salt&dough)"
  python cli.py search "!draft & (release|changelog)" --save
  python cli.py stats

Query language:
  &   AND        salt&dough
  |   OR         water|salt
  !   NOT        !bake
  ()  grouping   water|(salt&dough)
  Matching is case-insensitive; words shorter than 3 characters are never
  indexed, so they never match.

Design notes:
  - Each command maps to a handler function that orchestrates the
    relevant pipeline modules.
  - Settings come from configs/settings.yaml (override with --config).
  - Errors are caught and displayed with helpful messages.
  - Logging is configured at startup based on --verbose flag.
"""

import argparse
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root (resolve regardless of where the script is invoked from)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))

from ocr_search.config import (  # noqa: E402
    DEFAULT_OUTPUT_FILE,
    DEFAULT_QUERY_RESULTS_FILE,
    DEFAULT_SCAN_DIRS,
    WorkerConfig,
    load_settings,
    resolve_base_dir,
    section,
    worker_languages,
)
from ocr_search.errors import OcrSearchError, QuerySyntaxError  # noqa: E402


def setup_logging(verbose: bool = False) -> None:
    """Configure root logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _index_file(args: argparse.Namespace, settings: dict) -> Path:
    raw = getattr(args, "index", None) or section(settings, "paths").get("output_file")
    return Path(raw or DEFAULT_OUTPUT_FILE).expanduser()


def _query_results_file(settings: dict) -> Path:
    raw = section(settings, "paths").get("query_results_file") or DEFAULT_QUERY_RESULTS_FILE
    return Path(raw).expanduser()


def _print_matches(query: str, matches) -> None:
    print(f"\n{'='*60}")
    print(f"Matches for: \"{query}\"  ({len(matches)})")
    print(f"{'='*60}")
    for i, doc in enumerate(matches, 1):
        print(f"{i:4d}. {doc.identifier}")
        print(f"      {doc.source_path}")
    print(f"{'='*60}")


# ===================================================================
# Command handlers
# ===================================================================

def cmd_ingest(args: argparse.Namespace) -> None:
    """
    Ingest pipeline: discover images -> OCR via worker -> word sets -> save.

    Optionally runs a query over the fresh index and saves its matches.
    """
    from ocr_search.index.document_index import save_documents
    from ocr_search.ingestion.discovery import discover_images
    from ocr_search.ingestion.indexer import IndexingReport, index_images
    from ocr_search.ocr.client import RecognitionClient
    from ocr_search.worker.channel import WorkerChannel

    settings = args.settings
    base_dir = Path(args.base_dir).expanduser().resolve() if args.base_dir else resolve_base_dir(settings)
    scan_dirs = section(settings, "paths").get("scan_dirs") or DEFAULT_SCAN_DIRS
    languages = args.languages or worker_languages(settings)
    output = _index_file(args, settings)

    logging.info("=== INGEST PIPELINE START (base_dir=%s) ===", base_dir)

    # --- Step 1: Discover images ---
    logging.info("Step 1/3: Searching for _images folders in %s", ", ".join(scan_dirs))
    image_files = discover_images(base_dir, scan_dirs)
    if not image_files:
        print(f"ERROR: No images found under {base_dir} ({', '.join(scan_dirs)}).")
        sys.exit(1)
    if args.max_images:
        image_files = image_files[: args.max_images]
    logging.info("  Found %d images", len(image_files))

    # --- Step 2: OCR ---
    logging.info("Step 2/3: Recognising text (languages=%s)", ",".join(languages))
    report = IndexingReport()
    worker_config = WorkerConfig.from_settings(settings)
    with RecognitionClient(WorkerChannel(worker_config)) as client:
        client.initialize(languages)
        index = index_images(client, image_files, progress=not args.no_progress, report=report)

    # --- Step 3: Save ---
    logging.info("Step 3/3: Saving index")
    index.save(output)
    print(
        f"\nIngestion complete:\n"
        f"  Images found:      {len(image_files)}\n"
        f"  Documents indexed: {report.indexed}\n"
        f"  Without text:      {report.empty}\n"
        f"  Failed:            {len(report.failed)}\n"
        f"  OCR results saved: {output}"
    )

    if args.query:
        matches = index.search(args.query)
        _print_matches(args.query, matches)
        if matches:
            results_file = save_documents(matches, _query_results_file(settings))
            print(f"Query results saved to: {results_file}")
    logging.info("=== INGEST PIPELINE COMPLETE ===")


def cmd_search(args: argparse.Namespace) -> None:
    """Boolean search over the saved index (no OCR involved)."""
    from ocr_search.index.document_index import DocumentIndex, save_documents

    settings = args.settings
    index_file = _index_file(args, settings)
    try:
        index = DocumentIndex.load(index_file)
    except FileNotFoundError:
        print(f"ERROR: Index not found at {index_file}. Run 'python cli.py ingest' first.")
        sys.exit(1)

    try:
        matches = index.search(args.query)
    except QuerySyntaxError as exc:
        print(f"ERROR: Invalid query: {exc}")
        sys.exit(2)

    if not matches:
        print("No results found.")
        return
    _print_matches(args.query, matches)

    if args.save is not None:
        target = Path(args.save).expanduser() if args.save else _query_results_file(settings)
        save_documents(matches, target)
        print(f"Query results saved to: {target}")


def cmd_stats(args: argparse.Namespace) -> None:
    """Display statistics about the saved index and the configuration."""
    from ocr_search.index.document_index import DocumentIndex

    settings = args.settings
    print(f"\n{'='*60}")
    print("Image Text Search -- Statistics")
    print(f"{'='*60}")

    base_dir = resolve_base_dir(settings)
    print(f"\nBase directory: {base_dir}")
    print(f"  {'exists' if base_dir.is_dir() else '[NOT FOUND]'}")

    index_file = _index_file(args, settings)
    print(f"\nIndex: {index_file}")
    if index_file.exists():
        index = DocumentIndex.load(index_file)
        print(f"  Documents:       {len(index)}")
        print(f"  Distinct words:  {index.vocabulary_size}")
        print(f"  Size:            {index_file.stat().st_size / 1024:.1f} KB")
    else:
        print("  [NOT YET CREATED -- run ingest]")

    worker_config = WorkerConfig.from_settings(settings)
    print("\nWorker:")
    print(f"  Command:    {' '.join(worker_config.command())}")
    print(f"  Languages:  {', '.join(worker_languages(settings))}")
    print(f"  Timeout:    {worker_config.request_timeout or 'none'}")
    print(f"\n{'='*60}")


def cmd_check(args: argparse.Namespace) -> None:
    """Start the worker, initialise it, optionally OCR one image, then stop it."""
    from ocr_search.ocr.client import RecognitionClient
    from ocr_search.worker.channel import WorkerChannel

    settings = args.settings
    languages = args.languages or worker_languages(settings)
    with RecognitionClient(WorkerChannel(WorkerConfig.from_settings(settings))) as client:
        client.initialize(languages)
        print(f"Worker OK (languages: {', '.join(languages)})")
        if args.image:
            items = client.recognize(args.image)
            print(f"{len(items)} text regions in {args.image}")
            for item in items:
                print(f"  {item.confidence:.2f}  {item.text}")


# ===================================================================
# Argument parser
# ===================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocr-search",
        description=(
            "Extract text from documentation images and search it with "
            "boolean word queries."
        ),
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Settings file (default: configs/settings.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- ingest --
    p_ingest = subparsers.add_parser(
        "ingest",
        help="OCR every image under _images folders and save the index",
    )
    p_ingest.add_argument(
        "--base-dir",
        type=str,
        default=None,
        dest="base_dir",
        help="Root containing the scanned directories (default: BASE_DIR or settings)",
    )
    p_ingest.add_argument(
        "--languages",
        nargs="+",
        default=None,
        help="Recognition languages, e.g. en fr (default: settings)",
    )
    p_ingest.add_argument(
        "--index",
        type=str,
        default=None,
        help="Where to write the index JSON (default: settings paths.output_file)",
    )
    p_ingest.add_argument(
        "--max-images",
        type=int,
        default=0,
        dest="max_images",
        help="Limit the number of images processed (0 = all, default: 0)",
    )
    p_ingest.add_argument(
        "--query",
        type=str,
        default=None,
        help="Run this query after indexing and save its matches",
    )
    p_ingest.add_argument(
        "--no-progress",
        action="store_true",
        dest="no_progress",
        help="Disable the progress bar",
    )
    p_ingest.set_defaults(func=cmd_ingest)

    # -- search --
    p_search = subparsers.add_parser(
        "search",
        help="Boolean word search over the saved index",
    )
    p_search.add_argument(
        "query",
        type=str,
        help="Query, e.g. \"water|(salt&dough)\"",
    )
    p_search.add_argument(
        "--index",
        type=str,
        default=None,
        help="Index JSON to search (default: settings paths.output_file)",
    )
    p_search.add_argument(
        "--save",
        nargs="?",
        const="",
        default=None,
        help="Save matches as JSON (default file: settings paths.query_results_file)",
    )
    p_search.set_defaults(func=cmd_search)

    # -- stats --
    p_stats = subparsers.add_parser(
        "stats",
        help="Show index and worker statistics",
    )
    p_stats.add_argument("--index", type=str, default=None, help="Index JSON")
    p_stats.set_defaults(func=cmd_stats)

    # -- check --
    p_check = subparsers.add_parser(
        "check",
        help="Start the recognition worker and verify it initialises",
    )
    p_check.add_argument(
        "--languages",
        nargs="+",
        default=None,
        help="Recognition languages (default: settings)",
    )
    p_check.add_argument(
        "--image",
        type=str,
        default=None,
        help="Also recognise this image",
    )
    p_check.set_defaults(func=cmd_check)

    return parser


# ===================================================================
# Main entry point
# ===================================================================

def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, "verbose", False))

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    args.settings = load_settings(args.config)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(130)
    except OcrSearchError as exc:
        logging.error("Command failed: %s", exc)
        sys.exit(1)
    except Exception as exc:
        logging.error("Command failed: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
