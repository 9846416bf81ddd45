import json
import time
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class HistoryEntry:
    url: str                      # what the user typed, the unique key
    folder: str
    pinned: bool = False
    date: int = field(default_factory=_now_ms)   # epoch ms

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            url=data["url"],
            folder=data.get("folder", ""),
            pinned=bool(data.get("pinned", False)),
            date=int(data.get("date", 0)),
        )


OnChange = Callable[[List[HistoryEntry]], None]


class HistoryStore:
    """
    Past requests, newest first, unique by url.

    The whole list is rewritten after every mutation and the change
    callback receives a fresh snapshot.
    """

    def __init__(self, path: Path, on_change: Optional[OnChange] = None):
        self.path = Path(path)
        self.on_change = on_change
        self._entries: List[HistoryEntry] = self.load()

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def load(self) -> List[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [HistoryEntry.from_dict(d) for d in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[HIST] Ignoring unreadable history file {self.path}: {e}")
            return []

    def upsert(self, entry: HistoryEntry) -> List[HistoryEntry]:
        # a repeated url keeps its original position and fields
        if any(e.url == entry.url for e in self._entries):
            return self._commit(list(self._entries))
        return self._commit([entry] + self._entries)

    def toggle_pin(self, url: str) -> List[HistoryEntry]:
        updated = [replace(e, pinned=not e.pinned) if e.url == url else e for e in self._entries]
        return self._commit(updated)

    def remove(self, url: str) -> List[HistoryEntry]:
        return self._commit([e for e in self._entries if e.url != url])

    def _commit(self, entries: List[HistoryEntry]) -> List[HistoryEntry]:
        # memory only follows the file once the write went through
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [asdict(e) for e in entries]
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        self._entries = entries

        snapshot = self.entries
        if self.on_change:
            self.on_change(snapshot)
        return snapshot
