"""
Known-address label provider: address -> known-entity metadata.

StaticLabelProvider loads a JSON database ({"labels": [...]}) once per
process. It is read-only after load; reload() refreshes it between scan
sessions. The normalizer snapshots lookups per scan, so a reload never
changes a scan already in progress.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Protocol

from solana_privacy_scanner.analysis_engine.models import Label
from solana_privacy_scanner.config.env import get_labels_path
from solana_privacy_scanner.core.exceptions import LabelProviderError
from solana_privacy_scanner.logging import get_logger

logger = get_logger(__name__)


class LabelProvider(Protocol):
    """Lookup contract the normalizer depends on. Must be side-effect free."""

    def lookup(self, address: str) -> Label | None: ...

    def lookup_many(self, addresses: Iterable[str]) -> dict[str, Label]: ...


def _parse_labels(payload: object, source: str) -> dict[str, Label]:
    if not isinstance(payload, dict) or not isinstance(payload.get("labels"), list):
        raise LabelProviderError(f"Label database {source} has no 'labels' list")
    labels: dict[str, Label] = {}
    for i, item in enumerate(payload["labels"]):
        if not isinstance(item, dict):
            logger.warning("labels_entry_skipped", source=source, index=i, error="not an object")
            continue
        try:
            label = Label.from_dict(item)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("labels_entry_skipped", source=source, index=i, error=str(e))
            continue
        labels[label.address] = label
    return labels


class StaticLabelProvider:
    """
    Label provider backed by a static JSON file.

    Raises LabelProviderError if the file is missing, unreadable, or not a
    label database; individual malformed entries are skipped with a warning.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else get_labels_path()
        self._labels: dict[str, Label] = {}
        self.reload()

    @classmethod
    def from_labels(cls, labels: Iterable[Label]) -> "StaticLabelProvider":
        """Build an in-memory provider (no file); reload() is a no-op."""
        provider = cls.__new__(cls)
        provider._path = None
        provider._labels = {label.address: label for label in labels}
        return provider

    @property
    def path(self) -> Path | None:
        return self._path

    def reload(self) -> None:
        """Re-read the label file. Existing lookups are replaced atomically."""
        if self._path is None:
            return
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise LabelProviderError(f"Cannot read label database {self._path}: {e}") from e
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LabelProviderError(f"Label database {self._path} is not valid JSON: {e}") from e
        self._labels = _parse_labels(payload, str(self._path))
        logger.info("labels_loaded", path=str(self._path), count=len(self._labels))

    def lookup(self, address: str) -> Label | None:
        return self._labels.get(address)

    def lookup_many(self, addresses: Iterable[str]) -> dict[str, Label]:
        out: dict[str, Label] = {}
        for address in addresses:
            label = self._labels.get(address)
            if label is not None:
                out[address] = label
        return out

    def get_all_labels(self) -> list[Label]:
        return list(self._labels.values())

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, address: object) -> bool:
        return address in self._labels
