import csv
import logging
from pathlib import Path
from typing import Iterable, List

from tqdm import tqdm

from .models import FileOutcome, RunStatistics


def format_size(num_bytes: int) -> str:
    """Human readable size in binary units, e.g. '1.50kB'."""
    return tqdm.format_sizeof(num_bytes, suffix="B", divisor=1024)


def savings_percent(original_size: int, saved_bytes: int) -> float:
    if original_size <= 0:
        return 0.0
    return round(abs(saved_bytes / original_size * 100), 2)


class ReportGenerator:
    def __init__(self, stats: RunStatistics, dry_run: bool = False):
        self.stats = stats
        self.dry_run = dry_run

    def summary_lines(self) -> List[str]:
        """
        Final run report. A dry run stops after the detection figures since
        nothing was uploaded.
        """
        s = self.stats
        lines = [
            f"{s.records} records ({s.files} images) checked.",
            f"{s.unknown} images with no kraken metadata.",
            f"{s.compared} images checked for changes.",
            f"{s.changed} modified images found.",
        ]

        if self.dry_run:
            lines.append(f"{s.would_krake} images will be kraked.")
            return lines

        lines += [
            f"{s.unchanged} unchanged images skipped.",
            f"{s.uploaded} images uploaded.",
            f"{s.kraked} images successfully kraked.",
            f"{s.samesize} images already fully optimized.",
            f"{s.failed} images failed to kraken.",
        ]

        if s.size > 0 and s.saved > 0:
            lines.append(
                f"{format_size(s.size)} compressed by {format_size(s.saved)}. "
                f"Savings: {savings_percent(s.size, s.saved)}%"
            )
        return lines

    def log_summary(self):
        for line in self.summary_lines():
            logging.info(line)

    def write_outcomes_csv(self, outcomes: Iterable[FileOutcome], output_csv: Path):
        """One row per file that was looked at during the run."""
        headers = [
            "Record",
            "Path",
            "Decision",
            "Status",
            "Original Size",
            "Saved Bytes",
            "Notes",
        ]

        count = 0
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for o in outcomes:
                writer.writerow([
                    o.record_id,
                    str(o.path),
                    o.decision.value,
                    o.status,
                    o.original_size,
                    o.saved_bytes,
                    o.detail,
                ])
                count += 1

        logging.info(f"Report written to {output_csv} ({count} files).")
