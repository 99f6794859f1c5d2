from typing import Optional

from ..models import CandidateFile, Decision, Fingerprint
from .hasher import FileHasher

class ChangeDetector:
    def __init__(self, compare: str, hasher: Optional[FileHasher] = None):
        self.compare = compare
        self.hasher = hasher or FileHasher()

    def decide(self, file: CandidateFile, cached: Optional[Fingerprint]) -> Decision:
        """
        UNKNOWN if the file was never kraked, otherwise CHANGED/UNCHANGED
        according to the comparison method.
        Only reads the file; never touches it.
        """
        if cached is None:
            return Decision.UNKNOWN

        if self.compare == 'none':
            return Decision.CHANGED

        if self.compare == 'timestamp':
            changed = self.hasher.modified_at(file.path) != cached.modified_at
        else:
            changed = self.hasher.content_hash(file.path) != cached.content_hash

        return Decision.CHANGED if changed else Decision.UNCHANGED
