"""YAML configuration loader for ledger-import.

Loads the three rule files from a config directory:
  rules.yaml, structured_rules.yaml, phrase_rules.yaml

The packaged defaults under ledger_import/defaults/ are used when no
directory is given.
"""

from pathlib import Path

import yaml

DEFAULT_CONFIG_DIR = Path(__file__).parent / "defaults"


class Config:
    """Loads and provides access to the engine's rule files."""

    def __init__(self, config_dir: Path | str | None = None):
        self.config_dir = Path(config_dir) if config_dir is not None else DEFAULT_CONFIG_DIR
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._rules: dict | None = None
        self._structured_rules: list[dict] | None = None
        self._phrase_rules: list[dict] | None = None

    def _load(self, filename: str) -> dict | list:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        return data

    @property
    def rules(self) -> dict:
        if self._rules is None:
            data = self._load("rules.yaml")
            if not isinstance(data, dict):
                raise ValueError(f"rules.yaml must be a mapping: {self.config_dir}")
            self._rules = data
        return self._rules

    @property
    def structured_rules(self) -> list[dict]:
        """Ordered keyword cascade for extracted receipts and PDFs."""
        if self._structured_rules is None:
            data = self._load("structured_rules.yaml")
            self._structured_rules = data.get("rules", []) if isinstance(data, dict) else data
        return self._structured_rules

    @property
    def phrase_rules(self) -> list[dict]:
        """Contextual phrase → account affinities for freeform text."""
        if self._phrase_rules is None:
            data = self._load("phrase_rules.yaml")
            self._phrase_rules = data.get("rules", []) if isinstance(data, dict) else data
        return self._phrase_rules

    @property
    def duplicate_params(self) -> dict:
        return self.rules.get("duplicate", {}) or {}

    @property
    def freeform_params(self) -> dict:
        return self.rules.get("freeform", {}) or {}

    @property
    def structured_params(self) -> dict:
        return self.rules.get("structured", {}) or {}

    @property
    def window_days(self) -> int:
        """How far back the existing-transaction window reaches. Default: 180."""
        return int(self.rules.get("window", {}).get("days", 180))

    @property
    def window_limit(self) -> int:
        """Maximum number of existing transactions compared. Default: 500."""
        return int(self.rules.get("window", {}).get("limit", 500))
