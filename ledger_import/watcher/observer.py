"""File watcher: PollingObserver + AnnotatePipeline orchestration.

Watches a drop folder for extractor payloads (.json), waits for file
stability (size+mtime stable), validates the JSON is complete, then:
  detect → stable → load ledger snapshot → annotate → write result

The ledger snapshot directory holds accounts.json (catalog) and
transactions.json (existing-transaction window), exported by the ledger
service. Results are written as <name>.annotated.json in the output dir.

Uses PollingObserver as primary (not fallback) since drop folders often
live on network shares where inotify is unreliable.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEventHandler

from ledger_import.categorize.pipeline import ImportBatchProcessor
from ledger_import.parsers.extraction import (
    ExtractionError,
    parse_accounts,
    parse_existing_transactions,
)

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".json"}
ANNOTATED_SUFFIX = ".annotated.json"

ACCOUNTS_FILE = "accounts.json"
TRANSACTIONS_FILE = "transactions.json"

DEFAULT_STABILITY_SECONDS = 5
DEFAULT_CHECK_INTERVAL = 1.0
DEFAULT_POLL_INTERVAL = 10


@dataclass
class AnnotateResult:
    """Result of annotating a single dropped file."""
    file_name: str
    status: str  # "success", "error"
    total: int = 0
    duplicate_count: int = 0
    low_confidence_count: int = 0
    output_path: Path | None = None
    error_message: str | None = None


class FileStabilityError(Exception):
    """Raised when a file fails post-stability validation."""


# ── File stability & validation ──────────────────────────


def wait_for_stable(
    filepath: Path,
    stability_seconds: float = DEFAULT_STABILITY_SECONDS,
    check_interval: float = DEFAULT_CHECK_INTERVAL,
    max_wait: float = 120.0,
) -> None:
    """Wait until file size and mtime are stable for stability_seconds.

    Raises:
        TimeoutError: If file doesn't stabilize within max_wait.
    """
    prev_size = -1
    prev_mtime = -1.0
    stable_since: float | None = None
    start = time.monotonic()

    while True:
        if time.monotonic() - start > max_wait:
            raise TimeoutError(
                f"File did not stabilize within {max_wait}s: {filepath}"
            )

        stat = filepath.stat()
        if stat.st_size == prev_size and stat.st_mtime == prev_mtime:
            if stable_since is None:
                stable_since = time.monotonic()
            elif time.monotonic() - stable_since >= stability_seconds:
                return
        else:
            stable_since = None

        prev_size = stat.st_size
        prev_mtime = stat.st_mtime
        time.sleep(check_interval)


def load_payload(filepath: Path):
    """Read a dropped extractor file.

    Raises:
        FileStabilityError: If the file is empty or not complete JSON.
    """
    content = filepath.read_text(errors="replace")
    if not content.strip():
        raise FileStabilityError(f"Empty payload file: {filepath}")
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise FileStabilityError(f"Incomplete or invalid JSON in {filepath}: {e}") from e


def is_result_file(filepath: Path) -> bool:
    return filepath.name.endswith(ANNOTATED_SUFFIX)


# ── Annotate pipeline ────────────────────────────────────


class AnnotatePipeline:
    """Orchestrate: load snapshot → annotate → write.

    Args:
        processor: Batch processor doing the classification and dedup.
        ledger_dir: Directory with accounts.json and transactions.json.
        output_dir: Where annotated results are written.
    """

    def __init__(
        self,
        processor: ImportBatchProcessor,
        ledger_dir: Path,
        output_dir: Path,
    ):
        self.processor = processor
        self.ledger_dir = Path(ledger_dir)
        self.output_dir = Path(output_dir)

    def load_ledger(self):
        """Read the catalog and existing transactions from the snapshot.

        A missing transactions.json means an empty ledger; a missing
        accounts.json is an error since every suggestion needs a catalog.
        """
        accounts_path = self.ledger_dir / ACCOUNTS_FILE
        if not accounts_path.exists():
            raise FileNotFoundError(f"Account catalog not found: {accounts_path}")
        accounts = parse_accounts(json.loads(accounts_path.read_text()))

        transactions_path = self.ledger_dir / TRANSACTIONS_FILE
        existing = []
        if transactions_path.exists():
            existing = parse_existing_transactions(json.loads(transactions_path.read_text()))
        return accounts, existing

    def output_path_for(self, filepath: Path) -> Path:
        return self.output_dir / f"{filepath.stem}{ANNOTATED_SUFFIX}"

    def process_file(self, filepath: Path, payload=None) -> AnnotateResult:
        """Annotate one dropped file and write the result.

        Returns AnnotateResult with counts; errors are reported in the
        result, not raised.
        """
        file_name = filepath.name

        if filepath.suffix.lower() not in SUPPORTED_EXTENSIONS:
            return AnnotateResult(
                file_name=file_name,
                status="error",
                error_message=f"Unsupported file extension: {filepath.suffix}",
            )

        try:
            if payload is None:
                payload = load_payload(filepath)
            accounts, existing = self.load_ledger()
            result = self.processor.process_payload(payload, existing, accounts)

            self.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self.output_path_for(filepath)
            output_path.write_text(
                json.dumps([t.to_dict() for t in result.transactions], indent=2) + "\n"
            )
        except (ExtractionError, FileStabilityError, FileNotFoundError, ValueError) as e:
            logger.error("Could not annotate %s: %s", file_name, e)
            return AnnotateResult(file_name=file_name, status="error", error_message=str(e))

        summary = result.summary
        return AnnotateResult(
            file_name=file_name,
            status="success",
            total=summary.total,
            duplicate_count=summary.duplicate_count,
            low_confidence_count=summary.low_confidence_count,
            output_path=output_path,
        )


# ── File watcher ─────────────────────────────────────────


class FileWatcher(FileSystemEventHandler):
    """Watch a drop folder for extractor payloads using PollingObserver.

    Processes files sequentially; each file is an independent batch.

    Args:
        watch_dir: Directory to watch for new files.
        pipeline: AnnotatePipeline to process files.
        stability_seconds: Seconds of stability before processing.
        check_interval: Seconds between stability checks.
    """

    def __init__(
        self,
        watch_dir: Path,
        pipeline: AnnotatePipeline,
        stability_seconds: float = DEFAULT_STABILITY_SECONDS,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
    ):
        self.watch_dir = Path(watch_dir)
        self.pipeline = pipeline
        self.stability_seconds = stability_seconds
        self.check_interval = check_interval
        self._observer = None

    def start(self) -> None:
        """Start watching the drop folder."""
        from watchdog.observers.polling import PollingObserver

        if not self.watch_dir.exists():
            self.watch_dir.mkdir(parents=True, exist_ok=True)

        self._observer = PollingObserver(timeout=DEFAULT_POLL_INTERVAL)
        self._observer.schedule(self, str(self.watch_dir), recursive=False)
        self._observer.start()
        logger.info("Watching %s for extractor payloads", self.watch_dir)

    def stop(self) -> None:
        """Stop watching."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            logger.info("File watcher stopped")

    def on_created(self, event) -> None:
        """Handle new file creation events."""
        if event.is_directory:
            return

        filepath = Path(event.src_path)

        if filepath.suffix.lower() not in SUPPORTED_EXTENSIONS or is_result_file(filepath):
            return

        logger.info("New file detected: %s", filepath.name)
        self._process_file(filepath)

    def _process_file(self, filepath: Path) -> AnnotateResult | None:
        """Wait for stability, validate, then annotate."""
        try:
            wait_for_stable(
                filepath,
                stability_seconds=self.stability_seconds,
                check_interval=self.check_interval,
            )
            payload = load_payload(filepath)

            result = self.pipeline.process_file(filepath, payload=payload)
            logger.info(
                "Annotate result for %s: %s (total=%d, dup=%d, low=%d)",
                filepath.name, result.status,
                result.total, result.duplicate_count, result.low_confidence_count,
            )
            return result

        except FileStabilityError as e:
            logger.error("File validation failed: %s", e)
            return AnnotateResult(
                file_name=filepath.name,
                status="error",
                error_message=str(e),
            )
        except TimeoutError as e:
            logger.error("File stability timeout: %s", e)
            return AnnotateResult(
                file_name=filepath.name,
                status="error",
                error_message=str(e),
            )
        except Exception as e:
            logger.exception("Unexpected error processing %s", filepath.name)
            return AnnotateResult(
                file_name=filepath.name,
                status="error",
                error_message=str(e),
            )
