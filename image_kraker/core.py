import logging
from pathlib import Path
from typing import Iterable, List, Optional

from tqdm import tqdm

from .config import KrakerConfig
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import DatabaseError
from .metadata.store import MetadataStore
from .models import CandidateFile, Decision, FileOutcome, ReplaceOutcome, RunStatistics
from .optimization.client import KrakenClient
from .optimization.replace import SafeReplacer
from .reporting import format_size, savings_percent
from .scanning.detector import ChangeDetector
from .scanning.hasher import FileHasher


class RunCoordinator:
    """
    Drives one pass over the candidate files:
    detect -> (dry run stop) -> optimize -> replace -> persist fingerprint.

    Files are handled strictly one after another. The coordinator is the only
    writer of RunStatistics; every other component just returns an outcome.
    """

    def __init__(self,
                 store: MetadataStore,
                 detector: ChangeDetector,
                 client,
                 replacer: SafeReplacer,
                 lossy: bool = False,
                 dry_run: bool = False,
                 limit: int = -1,
                 show_progress: bool = True):
        self.store = store
        self.detector = detector
        self.client = client
        self.replacer = replacer
        self.lossy = lossy
        self.dry_run = dry_run
        self.limit = limit
        self.show_progress = show_progress

        self.stats = RunStatistics()
        self.outcomes: List[FileOutcome] = []

    def run(self, candidates: Iterable[CandidateFile]) -> RunStatistics:
        files = list(candidates)
        last_record = None
        started = 0

        for file in tqdm(files, desc="Kraking", unit="img", disable=not self.show_progress):
            # The cap only stops new files from starting
            if self.limit != -1 and started >= self.limit:
                logging.info(f"Limit of {self.limit} images reached. Leaving the rest for the next run.")
                break

            if file.record_id != last_record:
                self.stats.records += 1
                last_record = file.record_id
            self.stats.files += 1

            try:
                decision = self.detector.decide(file, self.store.lookup(file.record_id, file.name))
            except OSError as e:
                logging.warning(f"Cannot compare {file.path}: {e}")
                self.stats.failed += 1
                self._record(file, Decision.CHANGED, "failed", f"Comparison failed: {e}")
                continue

            if decision is Decision.UNKNOWN:
                self.stats.unknown += 1
            else:
                if self.detector.compare != 'none':
                    self.stats.compared += 1
                if decision is Decision.UNCHANGED:
                    self.stats.unchanged += 1
                    self._record(file, decision, "unchanged")
                    continue
                self.stats.changed += 1

            started += 1
            self._krake(file, decision)

        return self.stats

    def _krake(self, file: CandidateFile, decision: Decision):
        # Nothing past this point may run in a dry run: no upload, no disk change
        if self.dry_run:
            self.stats.would_krake += 1
            logging.debug(f"[DRY RUN] Would krake {file.path}")
            self._record(file, decision, "would krake", original_size=file.size_bytes)
            return

        logging.info(f"Kraking {file.path} ({format_size(file.size_bytes)})")
        result = self.client.optimize(file.path, self.lossy)

        if not result.is_transport_error:
            self.stats.uploaded += 1

        if not result.success:
            self.stats.failed += 1
            logging.warning(f"Krake API call failed for {file.path}. ({result.error_message})")
            self._record(file, decision, "failed", result.error_message or "")
            return

        if result.saved_bytes <= 0:
            self.stats.samesize += 1
            logging.info("Image can not be optimized any further.")
            self._record(file, decision, "already optimal", original_size=result.original_size)
            return

        replaced = self.replacer.replace(file.path, result.artifact_url, result.optimized_size)

        if not replaced.succeeded:
            self.stats.failed += 1
            if replaced.outcome is ReplaceOutcome.SWAP_FAILED_UNRESTORED:
                logging.error(f"MANUAL INTERVENTION NEEDED for {file.path}: {replaced.detail}")
            else:
                logging.warning(f"{file.path}: {replaced.outcome.value}. {replaced.detail}")
            self._record(file, decision, replaced.outcome.value, replaced.detail,
                         original_size=result.original_size)
            return

        detail = replaced.detail
        if replaced.fingerprint is None:
            logging.error(f"Kraked {file.path} but its fingerprint is unknown. {detail}")
        else:
            try:
                self.store.put(file.record_id, file.name, replaced.fingerprint)
            except DatabaseError as e:
                logging.error(f"Kraked {file.path} but could not save its metadata: {e}")
                detail = f"Metadata not saved: {e}"

        self.stats.kraked += 1
        self.stats.size += result.original_size
        self.stats.saved += result.saved_bytes

        logging.info(
            f"Kraked {file.path} (Kraked size: {format_size(result.optimized_size)}, "
            f"Savings: {format_size(result.saved_bytes)} / "
            f"{savings_percent(result.original_size, result.saved_bytes)}%)"
        )
        self._record(file, decision, "kraked", detail,
                     original_size=result.original_size, saved_bytes=result.saved_bytes)

    def _record(self, file: CandidateFile, decision: Decision, status: str, detail: str = "",
                original_size: int = 0, saved_bytes: int = 0):
        self.outcomes.append(FileOutcome(
            record_id=file.record_id,
            path=file.path,
            decision=decision,
            status=status,
            detail=detail,
            original_size=original_size,
            saved_bytes=saved_bytes,
        ))


class KrakerApp:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    def krake(self,
              candidates: Iterable[CandidateFile],
              cfg: KrakerConfig,
              client: Optional[KrakenClient] = None,
              show_progress: bool = True) -> RunCoordinator:
        """
        Runs the pipeline over the given candidates with metadata kept in the app's database.
        Returns the coordinator so callers can read its statistics and per-file outcomes.
        """
        client = client or KrakenClient(cfg.api_key, cfg.api_secret)
        hasher = FileHasher()

        # A dry run only reads the catalog
        with DBManager(self.db_path, read_only=cfg.dry_run) as conn:
            db_ops = DBOperations(conn)
            logging.debug(f"Metadata database holds {db_ops.count_records()} records.")

            coordinator = RunCoordinator(
                store=MetadataStore(db_ops),
                detector=ChangeDetector(cfg.compare, hasher),
                client=client,
                replacer=SafeReplacer(client, cfg.compare, hasher),
                lossy=cfg.lossy,
                dry_run=cfg.dry_run,
                limit=cfg.limit,
                show_progress=show_progress,
            )
            coordinator.run(candidates)

        logging.info("Kraking phase complete.")
        return coordinator
