import hashlib
from pathlib import Path
from .. import config
from ..models import Fingerprint

class FileHasher:
    """Computes the fingerprint fields used for change detection."""

    def content_hash(self, path: Path) -> str:
        """Reads entire file. High I/O cost."""
        h = hashlib.sha256()
        with open(path, 'rb') as f:
            while chunk := f.read(config.HASH_CHUNK_SIZE):
                h.update(chunk)
        return h.hexdigest()

    def modified_at(self, path: Path) -> int:
        """Modification time in whole seconds since the epoch."""
        return int(path.stat().st_mtime)

    def fingerprint(self, path: Path, compare: str) -> Fingerprint:
        """
        Fingerprint of the file as it is on disk now.
        Only the field of the comparison method is filled; `none` tracks the hash
        so a later hash-comparing run can still skip the file.
        """
        if compare == 'timestamp':
            return Fingerprint(modified_at=self.modified_at(path))
        return Fingerprint(content_hash=self.content_hash(path))
