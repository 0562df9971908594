"""Static technical information per connector label, for display after classification."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, TypeAdapter, ValidationError

from conectec.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConnectorInfo(BaseModel):
    """Technical details shown next to a classification result."""

    compatibility: str
    speed: str
    power: str
    uses: str


# On-disk layout: a flat JSON object mapping each label to its ConnectorInfo.
_INFO_FILE = TypeAdapter(dict[str, ConnectorInfo])


class ConnectorInfoStore:
    """Read-only lookup keyed by label string. Missing labels are not an error."""

    def __init__(self, connectors: dict[str, ConnectorInfo] | None = None) -> None:
        self._connectors = dict(connectors or {})

    @classmethod
    def from_file(cls, path: str | Path) -> ConnectorInfoStore:
        """Load a JSON object of ``{label: ConnectorInfo}`` entries.

        Raises:
            ConfigurationError: If the file cannot be read or does not validate.
        """
        try:
            raw = Path(path).read_text(encoding="utf-8")
            connectors = _INFO_FILE.validate_json(raw)
        except (OSError, ValidationError) as exc:
            raise ConfigurationError(f"Invalid connector info file {path}: {exc}") from exc
        logger.info("Loaded technical info for %d connectors from %s", len(connectors), path)
        return cls(connectors)

    def lookup(self, label: str) -> ConnectorInfo | None:
        return self._connectors.get(label)

    def __len__(self) -> int:
        return len(self._connectors)
