from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from loguru import logger


class JobStatus(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class Progress:
    percent: int
    saved: int
    skipped: int
    total_seen: int


@dataclass
class JobOutcome:
    status: JobStatus
    folder_path: Optional[Path] = None
    saved: int = 0


class EventSink:
    """
    Outbound side of the harvester. The UI/transport subclasses this; the
    base class just writes everything to the log.
    """

    def log(self, message: str):
        logger.info(message)

    def queue_update(self, length: int):
        logger.debug(f"[QUEUE] {length} waiting")

    def queue_empty(self):
        logger.debug("[QUEUE] empty")

    def progress(self, progress: Progress):
        logger.debug(
            f"[PROG] saved={progress.saved} skipped={progress.skipped} seen={progress.total_seen}"
        )

    def done(self, outcome: JobOutcome):
        logger.debug(f"[DONE] {outcome.status.value} {outcome.folder_path or ''}")

    def history(self, entries: List):
        logger.debug(f"[HIST] {len(entries)} entries")
