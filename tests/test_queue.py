import asyncio

from conftest import FakeFetcher, FakePage, RecordingEvents
from harvester.cancel import CancellationToken
from harvester.events import JobOutcome, JobStatus
from harvester.history import HistoryStore
from harvester.orchestrator import Job, ScrapeOrchestrator
from harvester.queue import QueueManager


class SlowOrchestrator:
    """Records concurrency; each job runs until its token is cancelled or `ticks` pass."""

    def __init__(self, ticks=3, fail_on=()):
        self.ticks = ticks
        self.fail_on = set(fail_on)
        self.running = 0
        self.max_running = 0
        self.order = []
        self.tokens = []

    async def run(self, job: Job, token: CancellationToken):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        self.order.append(job.target_input)
        self.tokens.append(token)
        try:
            if job.target_input in self.fail_on:
                raise RuntimeError("boom")
            for _ in range(self.ticks):
                if token.cancelled:
                    return JobOutcome(JobStatus.STOPPED)
                await asyncio.sleep(0)
            return JobOutcome(JobStatus.COMPLETED)
        finally:
            self.running -= 1


def test_jobs_run_one_at_a_time_in_fifo_order():
    orch = SlowOrchestrator()
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        lengths = [manager.submit(Job(name)) for name in ("a", "b", "c")]
        await asyncio.sleep(0)
        lengths.append(manager.submit(Job("d")))
        await manager.join()
        return manager, lengths

    manager, lengths = asyncio.run(scenario())

    assert orch.order == ["a", "b", "c", "d"]
    assert orch.max_running == 1
    assert lengths[:3] == [1, 2, 3]
    assert not manager.busy
    assert events.empties == 1
    assert events.logs[-1] == "All tasks completed."


def test_interleaved_submissions_never_overlap():
    orch = SlowOrchestrator(ticks=2)
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        for i in range(20):
            manager.submit(Job(str(i)))
            for _ in range(i % 3):
                await asyncio.sleep(0)
        await manager.join()

    asyncio.run(scenario())

    assert orch.order == [str(i) for i in range(20)]
    assert orch.max_running == 1


def test_failing_job_does_not_stall_queue():
    orch = SlowOrchestrator(fail_on={"b"})
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        for name in ("a", "b", "c"):
            manager.submit(Job(name))
        await manager.join()

    asyncio.run(scenario())
    assert orch.order == ["a", "b", "c"]


def test_stop_current_only_cancels_running_job():
    orch = SlowOrchestrator(ticks=1000)
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        manager.submit(Job("a"))
        manager.submit(Job("b"))
        await asyncio.sleep(0)
        manager.stop_current()
        # let "b" start, then stop it as well
        while len(orch.order) < 2:
            await asyncio.sleep(0)
        assert manager.pending == 0
        manager.stop_current()
        await manager.join()

    asyncio.run(scenario())
    assert orch.order == ["a", "b"]


def test_clear_all_empties_queue_and_cancels_active_job():
    orch = SlowOrchestrator(ticks=1000)
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        for name in ("a", "b", "c"):
            manager.submit(Job(name))
        await asyncio.sleep(0)
        manager.clear_all()
        assert manager.pending == 0
        await manager.join()

    asyncio.run(scenario())

    assert orch.order == ["a"]
    assert orch.tokens[0].cancelled
    assert events.queue_lengths[-1] == 0


def test_new_job_gets_fresh_token_and_old_one_is_cancelled():
    orch = SlowOrchestrator(ticks=1)
    events = RecordingEvents()

    async def scenario():
        manager = QueueManager(orch, events)
        manager.submit(Job("a"))
        manager.submit(Job("b"))
        await manager.join()

    asyncio.run(scenario())

    first, second = orch.tokens
    assert first is not second
    assert first.cancelled
    assert not second.cancelled


def test_end_to_end_with_real_orchestrator(settings):
    events = RecordingEvents()
    pages = []

    async def factory(headless):
        page = FakePage([["https://x.com/1.jpg"]])
        pages.append(page)
        return page

    history = HistoryStore(settings.history_file, on_change=events.history)
    orch = ScrapeOrchestrator(settings, history, events, page_factory=factory,
                              fetcher_factory=FakeFetcher)

    async def scenario():
        manager = QueueManager(orch, events)
        manager.submit(Job("red car"))
        manager.submit(Job("red car"))
        await manager.join()

    asyncio.run(scenario())

    statuses = [o.status for o in events.outcomes]
    assert statuses == [JobStatus.COMPLETED, JobStatus.COMPLETED]
    assert [o.saved for o in events.outcomes] == [1, 0]
    assert [p.close_calls for p in pages] == [1, 1]
    assert len(history.entries) == 1
