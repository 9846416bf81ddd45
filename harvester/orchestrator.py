from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

from loguru import logger

from harvester.adapters.base import PageCapability
from harvester.cancel import CancellationToken, JobCancelled
from harvester.config import Settings
from harvester.events import EventSink, JobOutcome, JobStatus, Progress
from harvester.history import HistoryEntry, HistoryStore
from harvester.pipeline import BatchResult, ImageFetcher, run_batch
from harvester.resolver import ResolvedTarget, resolve


@dataclass(frozen=True)
class Job:
    target_input: str           # URL or free-text query, as typed
    loop_mode: bool = False
    show_browser: bool = False


class JobState(str, Enum):
    INIT = "init"
    RESOLVING = "resolving"
    LOADING = "loading"
    LOOP_SCANNING = "loop_scanning"
    BOUNDED_SCANNING = "bounded_scanning"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ERROR = "error"


PageFactory = Callable[[bool], Awaitable[PageCapability]]


class ScrapeOrchestrator:
    """
    Drives one job from raw input to a terminal outcome.

        INIT -> RESOLVING -> LOADING -> LOOP_SCANNING | BOUNDED_SCANNING
             -> COMPLETED | STOPPED | ERROR

    Cancellation is polled at job start, at the top of every loop round,
    before every bounded scroll step, after every batch and before every
    download. The page, once opened,
    is closed on every exit path.
    """

    def __init__(
        self,
        settings: Settings,
        history: HistoryStore,
        events: EventSink,
        page_factory: Optional[PageFactory] = None,
        fetcher_factory: Optional[Callable] = None,
    ):
        self.settings = settings
        self.history = history
        self.events = events
        self._page_factory = page_factory or self._launch_playwright
        self._fetcher_factory = fetcher_factory or ImageFetcher
        self.state = JobState.INIT

    async def _launch_playwright(self, headless: bool) -> PageCapability:
        # imported here so the core never needs Playwright unless it launches a browser
        from harvester.adapters.playwright_page import PlaywrightPage

        return await PlaywrightPage.launch(headless=headless, storage_state=self.settings.storage_state)

    def _enter(self, state: JobState):
        logger.debug(f"[JOB ] {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, job: Job, token: CancellationToken) -> JobOutcome:
        self.state = JobState.INIT
        page: Optional[PageCapability] = None
        folder_path = None
        totals = BatchResult()

        try:
            token.raise_if_cancelled()

            self._enter(JobState.RESOLVING)
            target = resolve(job.target_input, self.settings.downloads_dir)
            folder_path = target.folder_path
            self.events.log(f"Starting: {job.target_input}")
            folder_path.mkdir(parents=True, exist_ok=True)

            self._enter(JobState.LOADING)
            page = await self._page_factory(not job.show_browser)
            self.events.log("Loading page...")
            await page.navigate(
                target.target_url,
                timeout_ms=self.settings.nav_timeout_ms,
                wait_until=self.settings.nav_wait_until,
            )

            # recorded even if the scan later fails or is stopped
            self.history.upsert(HistoryEntry(url=job.target_input, folder=str(folder_path)))

            seen: Set[str] = set()
            async with self._fetcher_factory() as fetcher:
                if job.loop_mode:
                    await self._loop_scan(page, target, seen, token, fetcher, totals)
                else:
                    await self._bounded_scan(page, target, seen, token, fetcher, totals)

            self._enter(JobState.COMPLETED)
            self.events.log(f"Finished. Saved: {totals.saved}")
            outcome = JobOutcome(JobStatus.COMPLETED, folder_path, totals.saved)

        except JobCancelled:
            self._enter(JobState.STOPPED)
            self.events.log("Stopped/Skipped.")
            outcome = JobOutcome(JobStatus.STOPPED, folder_path, totals.saved)

        except Exception as e:
            self._enter(JobState.ERROR)
            logger.exception(f"[ERR ] Job '{job.target_input}' failed")
            self.events.log(f"Error: {e}")
            outcome = JobOutcome(JobStatus.ERROR, folder_path, totals.saved)

        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception:
                    # the job is over either way, its outcome still has to go out
                    logger.exception("[ERR ] Closing the page failed")

        self.events.done(outcome)
        return outcome

    async def _loop_scan(self, page, target: ResolvedTarget, seen, token, fetcher, totals: BatchResult):
        self._enter(JobState.LOOP_SCANNING)
        self.events.log("Infinite loop active.")

        # only a stop request ends this
        while True:
            token.raise_if_cancelled()

            viewport = await page.viewport_height()
            await page.scroll_by(viewport * self.settings.loop_scroll_viewports)
            await page.wait(self.settings.loop_delay_ms)

            batch = await run_batch(page, target.folder_path, seen, target.content_type, token, fetcher)
            totals.saved += batch.saved
            totals.skipped += batch.skipped
            if batch.saved > 0:
                self.events.progress(Progress(100, totals.saved, totals.skipped, len(seen)))

    async def _bounded_scan(self, page, target: ResolvedTarget, seen, token, fetcher, totals: BatchResult):
        self._enter(JobState.BOUNDED_SCANNING)
        self.events.log("Standard mode: scanning...")

        await self._scroll_through(page, token)

        batch = await run_batch(page, target.folder_path, seen, target.content_type, token, fetcher)
        totals.saved += batch.saved
        totals.skipped += batch.skipped
        self.events.progress(Progress(100, totals.saved, totals.skipped, len(seen)))

        # the batch leaves early when stopped, that is not a completion
        token.raise_if_cancelled()

    async def _scroll_through(self, page, token: CancellationToken):
        # infinite feeds never reach scrollHeight, the cap bounds the runtime
        step = self.settings.scroll_step_px
        travelled = 0
        while True:
            token.raise_if_cancelled()
            height = await page.scroll_height()
            await page.scroll_by(step)
            travelled += step
            if travelled >= height or travelled > self.settings.scroll_cap_px:
                break
            await page.wait(self.settings.scroll_interval_ms)
        logger.debug(f"[SCRL] Scrolled {travelled}px")
