import json
import logging
import secrets
import string
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

_ID_ALPHABET = string.ascii_uppercase + string.digits


class RecordStore:
    """
    JSON-file collection of records keyed by ``id``.

    The whole collection is one JSON array at ``<data_dir>/<collection>.json``.
    A missing or unreadable file reads as an empty collection.
    """

    def __init__(self, data_dir: str, collection: str):
        """
        Args:
            data_dir: Directory holding the collection file
            collection: Collection name, used as the file stem
        """
        self.data_dir = Path(data_dir)
        self.collection = collection
        self.path = self.data_dir / f"{collection}.json"
        self._lock = threading.Lock()

    def _load(self) -> List[Record]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (json.JSONDecodeError, IOError) as exc:
            logger.warning(f"Unreadable {self.collection} store, starting empty: {exc}")
            return []
        if not isinstance(records, list):
            logger.warning(f"Unexpected {self.collection} store layout, starting empty")
            return []
        return records

    def _save(self, records: List[Record]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    def append(self, record: Record) -> Record:
        """Append a record. It must carry an ``id``."""
        if "id" not in record:
            raise ValueError("record must have an 'id'")
        with self._lock:
            records = self._load()
            records.append(record)
            self._save(records)
        return record

    def list(self, predicate: Optional[Callable[[Record], bool]] = None) -> List[Record]:
        """All records in insertion order, optionally filtered."""
        records = self._load()
        if predicate is None:
            return records
        return [r for r in records if predicate(r)]

    def get(self, record_id: str) -> Optional[Record]:
        for record in self._load():
            if record.get("id") == record_id:
                return record
        return None

    def update(self, record_id: str, patch: Dict[str, Any]) -> Optional[Record]:
        """
        Merge ``patch`` into a record.

        Returns:
            The updated record, or None if no record has ``record_id``
        """
        with self._lock:
            records = self._load()
            for index, record in enumerate(records):
                if record.get("id") == record_id:
                    updated = {**record, **patch, "id": record_id}
                    records[index] = updated
                    self._save(records)
                    return updated
        return None

    def delete(self, record_id: str) -> Optional[Record]:
        """Remove a record and return it, or None if it does not exist."""
        with self._lock:
            records = self._load()
            for index, record in enumerate(records):
                if record.get("id") == record_id:
                    removed = records.pop(index)
                    self._save(records)
                    return removed
        return None


def new_record_id(prefix: str) -> str:
    """``<PREFIX>-<epoch ms>-<9 random upper-case alphanumerics>``"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"
