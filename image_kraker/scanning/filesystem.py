import os
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .. import config
from ..models import CandidateFile

class DiskScanner:
    """
    Enumerates the images below a library root as records.

    A record is an original image plus the size variants generated from it
    ("photo.jpg", "photo-150x150.jpg", "photo-1024x768.jpg"). The record id
    is the original's path relative to the root, in POSIX form.
    """

    def __init__(self, types: Iterable[str]):
        self.extensions = {ext for ext, t in config.EXT_TO_TYPE.items() if t in set(types)}

    def scan(self, root: Path, record_ids: Optional[Iterable[str]] = None) -> Iterator[CandidateFile]:
        """
        Yields CandidateFiles record by record, the original first.

        Args:
            record_ids: Restrict the scan to these records (all records if empty/None).
        """
        wanted = set(record_ids) if record_ids else None

        for record_id, paths in self.group_records(root).items():
            if wanted is not None and record_id not in wanted:
                continue
            for path in paths:
                try:
                    size_bytes = path.stat().st_size
                except OSError as e:
                    logging.warning(f"Cannot stat {path}: {e}")
                    continue
                yield CandidateFile(record_id=record_id, path=path, size_bytes=size_bytes)

    def group_records(self, root: Path) -> Dict[str, List[Path]]:
        records: Dict[str, List[Path]] = {}

        for directory, files in self._iter_directories(root):
            names = {f.name for f in files}
            originals = []
            variants = []
            for f in files:
                m = config.SIZE_VARIANT_PATTERN.match(f.stem)
                if m and f"{m.group('stem')}{f.suffix}" in names:
                    variants.append((directory / f"{m.group('stem')}{f.suffix}", f))
                else:
                    originals.append(f)

            # A variant of a variant has no record to join; it stands alone
            original_set = set(originals)
            for original, variant in variants:
                if original not in original_set:
                    originals.append(variant)
            originals.sort(key=lambda p: p.name.lower())

            for f in originals:
                records[self._record_id(root, f)] = [f]
            for original, variant in variants:
                if original in original_set:
                    records[self._record_id(root, original)].append(variant)

        return records

    def _record_id(self, root: Path, path: Path) -> str:
        return path.relative_to(root).as_posix()

    def _iter_directories(self, root: Path) -> Iterator[Tuple[Path, List[Path]]]:
        """Depth-first walker using os.scandir; yields (directory, sorted image files)."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except (OSError, PermissionError):
                logging.warning(f"Permission denied: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    if Path(e.name).suffix.lower() in self.extensions:
                        files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            if files:
                yield current, files
