"""CLI entry point for ledger-import.

Commands:
    ledger-import annotate FILE --accounts PATH [--existing PATH]
                  [--source SOURCE] [--as-of DATE] [--output PATH]
                                     Suggest accounts and flag duplicates
    ledger-import payloads FILE --accounts PATH [--output PATH]
                                     Posting payloads for reviewed records
    ledger-import rules [--kind structured|phrase]
                                     Print the active rule tables
    ledger-import watch              Annotate extractor files dropped in a folder
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from ledger_import.models import Provenance

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on LEDGER_IMPORT_LOG_LEVEL env var."""
    level = os.environ.get("LEDGER_IMPORT_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load rule config from LEDGER_IMPORT_CONFIG_DIR or the packaged defaults."""
    from ledger_import.config import Config

    return Config(config_dir=os.environ.get("LEDGER_IMPORT_CONFIG_DIR"))


def _get_processor(config):
    from ledger_import.categorize.pipeline import ImportBatchProcessor

    return ImportBatchProcessor.from_config(config)


def _get_watch_dir() -> Path:
    return Path(os.environ.get("LEDGER_IMPORT_WATCH_DIR", "inbox"))


def _get_output_dir() -> Path:
    return Path(os.environ.get("LEDGER_IMPORT_OUTPUT_DIR", "annotated"))


def _get_ledger_dir() -> Path:
    return Path(os.environ.get("LEDGER_IMPORT_LEDGER_DIR", "ledger"))


def _read_json(path: Path):
    """Read a JSON file, raising ValueError with the path on bad content."""
    with open(path) as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e


def _write_json(data, output: Path | None) -> None:
    text = json.dumps(data, indent=2)
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n")
        print(f"Wrote {output}")


def _missing(*paths: Path | None) -> Path | None:
    for path in paths:
        if path is not None and not path.exists():
            return path
    return None


# ── Command handlers ─────────────────────────────────────


def cmd_annotate(args: argparse.Namespace) -> int:
    """Annotate one extractor payload file."""
    from ledger_import.parsers.extraction import (
        ExtractionError,
        parse_accounts,
        parse_date,
        parse_existing_transactions,
    )

    missing = _missing(args.file, args.accounts, args.existing)
    if missing is not None:
        print(f"Error: File not found: {missing}")
        return 1

    config = _get_config()
    processor = _get_processor(config)

    try:
        accounts = parse_accounts(_read_json(args.accounts))
        existing = (
            parse_existing_transactions(_read_json(args.existing))
            if args.existing else []
        )
        as_of = parse_date(args.as_of) if args.as_of else None
        result = processor.process_payload(
            _read_json(args.file), existing, accounts,
            source=args.source, as_of=as_of,
        )
    except (ExtractionError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    _write_json([t.to_dict() for t in result.transactions], args.output)

    summary = result.summary
    print(
        f"{summary.total} transaction(s): "
        f"{summary.duplicate_count} possible duplicate(s), "
        f"{summary.low_confidence_count} low confidence",
        file=sys.stderr,
    )
    return 0


def cmd_payloads(args: argparse.Namespace) -> int:
    """Turn a reviewed annotation file into posting payloads."""
    from ledger_import.parsers.extraction import (
        ExtractionError,
        parse_accounts,
        parse_reviewed_transaction,
    )
    from ledger_import.posting import PostingError, approved_payloads

    missing = _missing(args.file, args.accounts)
    if missing is not None:
        print(f"Error: File not found: {missing}")
        return 1

    try:
        accounts = parse_accounts(_read_json(args.accounts))
        rows = _read_json(args.file)
        if not isinstance(rows, list):
            raise ValueError(f"Expected a list of reviewed transactions in {args.file}")
        reviewed = [parse_reviewed_transaction(row) for row in rows]
        payloads = list(approved_payloads(reviewed, accounts))
    except (ExtractionError, PostingError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    _write_json(payloads, args.output)
    return 0


def cmd_rules(args: argparse.Namespace) -> int:
    """Print the active structured cascade and/or phrase rules."""
    from ledger_import.categorize.freeform import load_phrase_rules
    from ledger_import.categorize.structured import load_structured_rules

    config = _get_config()

    if args.kind in (None, "structured"):
        rules = load_structured_rules(config.structured_rules)
        print(f"Structured cascade ({len(rules)} rules, first match wins):")
        for i, rule in enumerate(rules, 1):
            print(
                f"  {i:2d}. {rule.name:<20s} {rule.transaction_type.value:<8s}"
                f" -> {rule.account_keywords[0]} ({rule.account_type.value})"
                f" @ {rule.confidence}"
            )

    if args.kind in (None, "phrase"):
        phrases = load_phrase_rules(config.phrase_rules)
        print(f"Phrase rules ({len(phrases)}):")
        for rule in phrases:
            print(
                f"  \"{rule.phrase}\" -> {rule.account_keyword} ({rule.account_type.value})"
            )
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    """Start the drop-folder watcher."""
    import time

    from ledger_import.watcher.observer import AnnotatePipeline, FileWatcher

    config = _get_config()
    pipeline = AnnotatePipeline(
        processor=_get_processor(config),
        ledger_dir=_get_ledger_dir(),
        output_dir=_get_output_dir(),
    )
    watcher = FileWatcher(_get_watch_dir(), pipeline)
    watcher.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        watcher.stop()
    return 0


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "annotate": cmd_annotate,
    "payloads": cmd_payloads,
    "rules": cmd_rules,
    "watch": cmd_watch,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="ledger-import",
        description="Account suggestions and duplicate checks for imported transactions",
    )
    subparsers = parser.add_subparsers(dest="command")

    # annotate
    annotate_p = subparsers.add_parser(
        "annotate", help="Suggest accounts and flag duplicates for an extractor file",
    )
    annotate_p.add_argument("file", type=Path, help="Extractor JSON payload")
    annotate_p.add_argument("--accounts", type=Path, required=True, help="Account catalog JSON")
    annotate_p.add_argument("--existing", type=Path, help="Existing ledger transactions JSON")
    annotate_p.add_argument(
        "--source", choices=[p.value for p in Provenance],
        help="Override the payload's source",
    )
    annotate_p.add_argument("--as-of", help="End of the existing-transaction window (YYYY-MM-DD)")
    annotate_p.add_argument("--output", type=Path, help="Write JSON here instead of stdout")

    # payloads
    payloads_p = subparsers.add_parser(
        "payloads", help="Build posting payloads from a reviewed annotation file",
    )
    payloads_p.add_argument("file", type=Path, help="Reviewed annotation JSON")
    payloads_p.add_argument("--accounts", type=Path, required=True, help="Account catalog JSON")
    payloads_p.add_argument("--output", type=Path, help="Write JSON here instead of stdout")

    # rules
    rules_p = subparsers.add_parser("rules", help="Print the active rule tables")
    rules_p.add_argument("--kind", choices=["structured", "phrase"], help="Only one table")

    # watch
    subparsers.add_parser("watch", help="Annotate extractor files dropped into a folder")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
