"""Append-only JSONL storage shared by the queue, ledger and escrow logs.

Every append is flushed and fsynced before returning. Writers hold an
exclusive flock. Compaction replaces the file atomically.
"""
import fcntl
import json
import logging
import os
from pathlib import Path
from typing import Iterable

from .receipt import StopRule

logger = logging.getLogger(__name__)


class LogStore:
    """Append-only entry log backed by a JSONL file.

    Attributes:
        path: Path to the JSONL file
    """

    def __init__(self, path: str | Path):
        """Initialize LogStore.

        Args:
            path: Path to JSONL file for entry storage
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def append(self, entry: dict) -> None:
        """Durably append one entry."""
        self.append_many([entry])

    def append_many(self, entries: Iterable[dict]) -> None:
        """Durably append entries in order under a single lock."""
        lines = "".join(json.dumps(e, sort_keys=True, default=str) + "\n" for e in entries)
        if not lines:
            return

        with open(self.path, "a", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(lines)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def read_all(self) -> list[dict]:
        """Read every entry in file order.

        A torn final line (crash mid-append) is dropped from the file so the
        next append starts on a clean line. A corrupt line anywhere else
        means the log cannot be trusted.

        Raises:
            StopRule: If a line before the last one fails to parse
        """
        if not self.path.exists():
            return []

        with open(self.path, "r", encoding="utf-8") as f:
            lines = [line.strip() for line in f]
        lines = [line for line in lines if line]

        entries = []
        for i, line in enumerate(lines):
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as e:
                if i == len(lines) - 1:
                    logger.warning("Dropping torn tail entry in %s", self.path)
                    self.rewrite(entries)
                    break
                raise StopRule(f"Corrupt entry {i} in {self.path}: {e}") from e

        return entries

    def rewrite(self, entries: Iterable[dict]) -> None:
        """Atomically replace the log contents with entries."""
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write(json.dumps(entry, sort_keys=True, default=str) + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
