"""Local tracking of the last known version of each secret.

Records live under the ``secrets`` key of the project config document and are
never read or written by a remote backend.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from .config_loader import ConfigManager

logger = logging.getLogger(__name__)


@dataclass
class TrackingRecord:
    """Last version this client observed for one secret."""
    version: int
    file: str
    last_pulled: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingRecord":
        return cls(
            version=int(data.get("version", 0)),
            file=data.get("file", ""),
            last_pulled=data.get("lastPulled"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"version": self.version, "file": self.file}
        if self.last_pulled is not None:
            data["lastPulled"] = self.last_pulled
        return data


class TrackingStore(Protocol):
    """Keyed persistence of tracking records."""

    def get(self, name: str) -> Optional[TrackingRecord]: ...

    def upsert(self, name: str, version: Optional[int] = None, file: Optional[str] = None,
               last_pulled: Optional[str] = None) -> TrackingRecord: ...

    def remove(self, name: str) -> bool: ...

    def names(self) -> List[str]: ...


def tracked_version(store: TrackingStore, name: str) -> int:
    """Version recorded for name, 0 when untracked."""
    record = store.get(name)
    return record.version if record else 0


def _merge(records: Dict[str, Dict[str, Any]], name: str, version: Optional[int],
           file: Optional[str], last_pulled: Optional[str]) -> TrackingRecord:
    existing = records.get(name)
    if existing is None:
        record = TrackingRecord(version=version or 0, file=file or "", last_pulled=last_pulled)
    else:
        record = TrackingRecord.from_dict(existing)
        if version is not None:
            record.version = version
        if file is not None:
            record.file = file
        if last_pulled is not None:
            record.last_pulled = last_pulled
    records[name] = record.to_dict()
    return record


class InMemoryTrackingStore:
    """Tracking store held in a plain dict, nothing persisted."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self.records: Dict[str, Dict[str, Any]] = records if records is not None else {}

    def get(self, name: str) -> Optional[TrackingRecord]:
        data = self.records.get(name)
        return TrackingRecord.from_dict(data) if data else None

    def upsert(self, name, version=None, file=None, last_pulled=None) -> TrackingRecord:
        return _merge(self.records, name, version, file, last_pulled)

    def remove(self, name: str) -> bool:
        return self.records.pop(name, None) is not None

    def names(self) -> List[str]:
        return sorted(self.records)


class ConfigTrackingStore:
    """Tracking store persisted in the project config document.

    Every mutation is saved immediately through the ConfigManager.
    """

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager

    @property
    def _records(self) -> Dict[str, Dict[str, Any]]:
        config = self.config_manager.config
        if config.get("secrets") is None:
            config["secrets"] = {}
        return config["secrets"]

    def get(self, name: str) -> Optional[TrackingRecord]:
        data = self._records.get(name)
        return TrackingRecord.from_dict(data) if data else None

    def upsert(self, name, version=None, file=None, last_pulled=None) -> TrackingRecord:
        record = _merge(self._records, name, version, file, last_pulled)
        self.config_manager.save()
        logger.debug(f"Tracking '{name}' at version {record.version} ({record.file})")
        return record

    def remove(self, name: str) -> bool:
        if self._records.pop(name, None) is None:
            return False
        self.config_manager.save()
        logger.debug(f"Stopped tracking '{name}'")
        return True

    def names(self) -> List[str]:
        return sorted(self._records)
