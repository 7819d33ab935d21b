"""
Reference Pose Storage
Key-value storage and the reference pose repository built on it.

The reference pose is stored as a JSON record under a single key and is
overwritten wholesale on each capture (last write wins).
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import config
from pipeline.pose_data import PoseSample

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal get/set storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class MemoryStore(KeyValueStore):
    """In-process store (tests, replay)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    All keys in one JSON object on disk.

    A missing or unreadable file reads as an empty store; the next write
    replaces it.
    """

    def __init__(self, path: str = config.REFERENCE_STORE_PATH):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Store file %s unreadable (%s), treating as empty", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store file %s is not a JSON object, treating as empty", self.path)
            return {}
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class ReferencePoseRepository:
    """Load and save the normalized reference pose."""

    def __init__(self, store: KeyValueStore, key: str = config.REFERENCE_POSE_KEY):
        self.store = store
        self.key = key

    def load(self) -> Optional[PoseSample]:
        """
        Return the stored reference, or None when absent or corrupt.
        """
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return PoseSample.from_record(json.loads(raw))
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Error loading reference pose: %s", e)
            return None

    def save(self, pose: PoseSample) -> None:
        """Overwrite the stored reference."""
        self.store.set(self.key, json.dumps(pose.to_record()))
        logger.info("Saved reference pose (%d keypoints)", len(pose))

    def clear(self) -> None:
        self.store.delete(self.key)

    def exists(self) -> bool:
        return self.load() is not None
