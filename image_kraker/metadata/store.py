import json
import logging
from typing import Dict, Optional, Protocol

from ..models import Fingerprint

MetadataRecord = Dict[str, Fingerprint]


class MetadataBackend(Protocol):
    def read_metadata(self, record_id: str) -> Optional[str]: ...

    def write_metadata(self, record_id: str, blob: str) -> None: ...


class MetadataStore:
    """
    Read-through cache of per-record fingerprints.

    A record is loaded from the backend the first time it is asked for and
    kept in memory for the rest of the run. Every put() is written back to
    the backend immediately; nothing is batched.
    """

    def __init__(self, backend: MetadataBackend):
        self.backend = backend
        self._cache: Dict[str, MetadataRecord] = {}

    def get(self, record_id: str) -> MetadataRecord:
        """Returns the fingerprint map of a record. Never fails; missing data is an empty map."""
        if record_id in self._cache:
            return self._cache[record_id]

        record = self._load(record_id)
        self._cache[record_id] = record
        return record

    def lookup(self, record_id: str, file_name: str) -> Optional[Fingerprint]:
        return self.get(record_id).get(file_name)

    def put(self, record_id: str, file_name: str, fingerprint: Fingerprint):
        """
        Stores the fingerprint of a freshly replaced file and persists the whole record.
        Raises DatabaseError if the backend write fails; the in-memory map keeps the update.
        """
        record = self.get(record_id)
        record[file_name] = fingerprint
        blob = json.dumps(
            {name: fp.to_dict() for name, fp in record.items()},
            sort_keys=True,
        )
        self.backend.write_metadata(record_id, blob)

    def _load(self, record_id: str) -> MetadataRecord:
        try:
            blob = self.backend.read_metadata(record_id)
        except Exception as e:
            logging.warning(f"Could not read kraken metadata for {record_id}: {e}")
            return {}

        if not blob:
            return {}

        try:
            data = json.loads(blob)
            return {
                name: Fingerprint.from_dict(entry)
                for name, entry in data.items()
                if isinstance(entry, dict)
            }
        except (ValueError, TypeError, AttributeError) as e:
            logging.warning(f"Ignoring unreadable kraken metadata for {record_id}: {e}")
            return {}
