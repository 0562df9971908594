"""Ordered label table, index-aligned with the model's output vector."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from conectec.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONNECTOR_LABELS: tuple[str, ...] = (
    "Conector Lightning (Apple)",
    "Cable Audio Óptico",
    "Clavija US (Americana)",
    "Clavija US (Americana) 3 pines",
    "Cable Coaxial",
    "Adaptador de corriente 6 salidas",
    "Adaptador de corriente (clavija redonda)",
    "Conector DisplayPort",
    "Conector HDMI",
    "Adaptador jack de audio de 3.5mm",
    "Cargador magnetico",
    "Conector Micro HDMI",
    "Conector Micro-USB",
    "Adaptador de corriente multicontacto",
    "Conector RCA",
    "Conector RJ-45 (Ethernet)",
    "Adaptador multipuerto USB hub",
    "Conector USB tipo A",
    "Conector USB tipo C",
    "Conector VGA",
)


@dataclass(frozen=True)
class LabelTable:
    """Immutable sequence of class names; position i names model output i."""

    labels: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.labels:
            raise ConfigurationError("Label table is empty")
        if len(set(self.labels)) != len(self.labels):
            raise ConfigurationError("Label table contains duplicate labels")

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, index: int) -> str:
        return self.labels[index]

    @classmethod
    def default(cls) -> LabelTable:
        return cls(CONNECTOR_LABELS)

    @classmethod
    def from_file(cls, path: str | Path) -> LabelTable:
        """Read one label per line, ignoring blank lines."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot read label table {path}: {exc}") from exc
        labels = tuple(line.strip() for line in text.splitlines() if line.strip())
        logger.info("Loaded %d labels from %s", len(labels), path)
        return cls(labels)
