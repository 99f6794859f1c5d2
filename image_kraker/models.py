from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from . import config


class Decision(Enum):
    UNKNOWN = "unknown"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class ReplaceOutcome(Enum):
    SUCCEEDED = "succeeded"
    DOWNLOAD_FAILED = "download_failed"
    SIZE_MISMATCH = "size_mismatch"
    BACKUP_FAILED = "backup_failed"
    SWAP_FAILED_RESTORED = "swap_failed_restored"
    SWAP_FAILED_UNRESTORED = "swap_failed_unrestored"


@dataclass(frozen=True)
class CandidateFile:
    """
    A file handed over by the host enumeration for this run.
    """
    record_id: str
    path: Path
    size_bytes: int

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Fingerprint:
    """
    Last-known optimization state of a file.
    Only the field of the active comparison method is populated.
    """
    content_hash: Optional[str] = None
    modified_at: Optional[int] = None

    def to_dict(self) -> dict:
        return {'hash': self.content_hash, 'mtime': self.modified_at}

    @classmethod
    def from_dict(cls, data: dict) -> "Fingerprint":
        mtime = data.get('mtime')
        return cls(
            content_hash=data.get('hash'),
            modified_at=int(mtime) if mtime is not None else None,
        )


@dataclass(frozen=True)
class OptimizationResult:
    success: bool
    error_message: Optional[str] = None
    original_size: int = 0
    optimized_size: int = 0
    saved_bytes: int = 0
    artifact_url: Optional[str] = None

    @property
    def is_transport_error(self) -> bool:
        return (not self.success and self.error_message is not None
                and self.error_message.startswith(config.TRANSPORT_ERROR_PREFIX))


@dataclass(frozen=True)
class ReplaceResult:
    outcome: ReplaceOutcome
    fingerprint: Optional[Fingerprint] = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome is ReplaceOutcome.SUCCEEDED


@dataclass(frozen=True)
class AccountStatus:
    quota_total: int
    quota_used: int
    quota_remaining: int


@dataclass
class RunStatistics:
    # Counters only ever go up; RunCoordinator is the only writer.
    records: int = 0
    files: int = 0
    unknown: int = 0
    compared: int = 0
    changed: int = 0
    unchanged: int = 0
    uploaded: int = 0
    kraked: int = 0
    samesize: int = 0
    failed: int = 0
    would_krake: int = 0
    size: int = 0
    saved: int = 0


@dataclass
class FileOutcome:
    """One row of the per-file run log."""
    record_id: str
    path: Path
    decision: Decision
    status: str
    detail: str = ""
    original_size: int = 0
    saved_bytes: int = 0
