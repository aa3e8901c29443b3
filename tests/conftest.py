"""Shared test fixtures."""

from pathlib import Path

from ledger_import.config import DEFAULT_CONFIG_DIR

# Synthetic rule files with non-default values
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

# Rule files shipped with the package
PACKAGED_CONFIG_DIR = DEFAULT_CONFIG_DIR
