import os
import logging
from pathlib import Path

from .. import config
from ..exceptions import BackupError, DownloadError, SizeMismatchError, SwapError, TransportError
from ..models import ReplaceOutcome, ReplaceResult
from ..scanning.hasher import FileHasher

class SafeReplacer:
    """
    Swaps an image for its kraked version without ever losing the original.

    Sequence (each failing step ends the call):
      1. Download the artifact next to the original ("<name>.kraked").
      2. Check the downloaded size against the announced size.
      3. Rename the original to its backup name ("<name>.org").
      4. Rename the artifact to the original name; on failure put the backup back.
      5. Fingerprint the new file for the metadata store.

    The backup is never deleted here. A later replace of the same file
    overwrites it, with a warning.
    """

    def __init__(self, client, compare: str, hasher: FileHasher = None):
        self.client = client
        self.compare = compare
        self.hasher = hasher or FileHasher()

    @staticmethod
    def temp_path(path: Path) -> Path:
        return path.with_name(path.name + config.TEMP_SUFFIX)

    @staticmethod
    def backup_path(path: Path) -> Path:
        return path.with_name(path.name + config.BACKUP_SUFFIX)

    def replace(self, path: Path, artifact_url: str, expected_size: int) -> ReplaceResult:
        tmp = self.temp_path(path)
        backup = self.backup_path(path)

        # 1. Download
        try:
            self.client.download(artifact_url, tmp)
        except (TransportError, DownloadError) as e:
            self._discard(tmp)
            return ReplaceResult(ReplaceOutcome.DOWNLOAD_FAILED, detail=f"Kraked image download failed. ({e})")

        # 2. Verify size
        try:
            self._verify_size(tmp, expected_size)
        except SizeMismatchError as e:
            self._discard(tmp)
            return ReplaceResult(ReplaceOutcome.SIZE_MISMATCH, detail=str(e))

        # 3. Backup
        try:
            self._backup(path, backup)
        except BackupError as e:
            self._discard(tmp)
            return ReplaceResult(ReplaceOutcome.BACKUP_FAILED, detail=str(e))

        # 4. Swap
        try:
            self._swap(tmp, path)
        except SwapError as error:
            try:
                self._rename(backup, path)
            except OSError as restore_err:
                logging.error(f"{error} Failed to restore original image {path} from {backup}: {restore_err}")
                return ReplaceResult(
                    ReplaceOutcome.SWAP_FAILED_UNRESTORED,
                    detail=f"{error} Failed to restore original image; it is at {backup}.",
                )
            self._discard(tmp)
            return ReplaceResult(ReplaceOutcome.SWAP_FAILED_RESTORED, detail=f"{error} Original image restored.")

        # 5. Fingerprint
        try:
            fingerprint = self.hasher.fingerprint(path, self.compare)
        except OSError as e:
            return ReplaceResult(ReplaceOutcome.SUCCEEDED, detail=f"Could not fingerprint kraked image: {e}")
        return ReplaceResult(ReplaceOutcome.SUCCEEDED, fingerprint=fingerprint)

    def _verify_size(self, tmp: Path, expected_size: int):
        actual = tmp.stat().st_size if tmp.exists() else -1
        if actual != int(expected_size):
            raise SizeMismatchError(
                f"Kraked image download failed. File size mismatch (expected {expected_size}, got {actual})."
            )

    def _backup(self, path: Path, backup: Path):
        # Keeps the content from just before the latest swap
        if backup.exists():
            logging.warning(f"Overwriting previous backup {backup}")
        try:
            self._rename(path, backup)
        except OSError as e:
            raise BackupError(f"Image backup failed. Image not kraked. ({e})") from e

    def _swap(self, tmp: Path, path: Path):
        try:
            self._rename(tmp, path)
        except OSError as e:
            raise SwapError(f"Image replacement failed. ({e})") from e

    def _rename(self, src: Path, dest: Path):
        os.replace(src, dest)

    def _discard(self, tmp: Path):
        try:
            tmp.unlink(missing_ok=True)
        except OSError as e:
            logging.debug(f"Could not remove temporary file {tmp}: {e}")
