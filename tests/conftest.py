from pathlib import Path
from typing import Dict, List, Optional

import pytest

from harvester.adapters.base import PageCapability
from harvester.config import Settings
from harvester.events import EventSink


class FakePage(PageCapability):
    """
    In-memory page. `snapshots` is the list of URL lists returned by
    successive extract_images() calls; the last one repeats forever.
    """

    def __init__(self, snapshots: Optional[List[List[str]]] = None, scroll_height: int = 1000,
                 nav_ok: bool = True, on_wait=None):
        self.snapshots = snapshots or [[]]
        self._scroll_height = scroll_height
        self.nav_ok = nav_ok
        self.on_wait = on_wait
        self.navigated: List[str] = []
        self.scrolled: List[int] = []
        self.waits: List[int] = []
        self.extract_calls = 0
        self.close_calls = 0

    async def navigate(self, url, timeout_ms, wait_until):
        self.navigated.append(url)
        return self.nav_ok

    async def extract_images(self, content_type):
        idx = min(self.extract_calls, len(self.snapshots) - 1)
        self.extract_calls += 1
        return list(self.snapshots[idx])

    async def scroll_by(self, amount):
        self.scrolled.append(amount)

    async def viewport_height(self):
        return 900

    async def scroll_height(self):
        return self._scroll_height

    async def wait(self, delay_ms):
        self.waits.append(delay_ms)
        if self.on_wait:
            self.on_wait(self)

    async def close(self):
        self.close_calls += 1


class FakeFetcher:
    """Writes the URL into the file instead of downloading. `fail` maps url -> exception."""

    def __init__(self, fail: Optional[Dict[str, Exception]] = None, on_fetch=None):
        self.fail = fail or {}
        self.on_fetch = on_fetch
        self.fetched: List[str] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited += 1
        return False

    async def fetch(self, url: str, dest: Path):
        self.fetched.append(url)
        if self.on_fetch:
            self.on_fetch(url)
        if url in self.fail:
            raise self.fail[url]
        dest.write_text(url)


class RecordingEvents(EventSink):
    def __init__(self):
        self.logs: List[str] = []
        self.queue_lengths: List[int] = []
        self.empties = 0
        self.progresses = []
        self.outcomes = []
        self.snapshots = []

    def log(self, message):
        self.logs.append(message)

    def queue_update(self, length):
        self.queue_lengths.append(length)

    def queue_empty(self):
        self.empties += 1

    def progress(self, progress):
        self.progresses.append(progress)

    def done(self, outcome):
        self.outcomes.append(outcome)

    def history(self, entries):
        self.snapshots.append(entries)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        downloads_dir=tmp_path / "downloads",
        history_file=tmp_path / "history.json",
        loop_delay_ms=1,
        scroll_interval_ms=1,
    )


@pytest.fixture
def events():
    return RecordingEvents()
