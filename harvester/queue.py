import asyncio
from collections import deque
from typing import Deque, Optional

from loguru import logger

from harvester.cancel import CancellationToken
from harvester.events import EventSink
from harvester.orchestrator import Job, ScrapeOrchestrator


class QueueManager:
    """
    Single-flight job queue.

    Everything mutable here (queue, busy flag, active token) lives on the
    event loop that calls submit(); there are no other locks. submit()
    flips the busy flag before it schedules the drain task, so two quick
    submissions can never start two drains.
    """

    def __init__(self, orchestrator: ScrapeOrchestrator, events: EventSink):
        self.orchestrator = orchestrator
        self.events = events
        self._queue: Deque[Job] = deque()
        self._busy = False
        self._token: Optional[CancellationToken] = None
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._queue)

    def submit(self, job: Job) -> int:
        self._queue.append(job)
        length = len(self._queue)
        self.events.log(f"Added to queue. Position: {length}")
        self.events.queue_update(length)

        if not self._busy:
            self._busy = True
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return length

    def stop_current(self):
        if self._token is not None:
            self._token.cancel()

    def clear_all(self):
        self._queue.clear()
        self.events.queue_update(0)
        self.events.log("Queue cleared. Stopping all...")
        if self._token is not None:
            self._token.cancel()

    async def join(self):
        """Wait until the queue has drained and no job is running."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _drain(self):
        try:
            while self._queue:
                job = self._queue.popleft()
                self.events.queue_update(len(self._queue))

                # a token still referenced from a previous job must not stay live
                if self._token is not None:
                    self._token.cancel()
                self._token = CancellationToken()

                try:
                    await self.orchestrator.run(job, self._token)
                except Exception:
                    # the orchestrator reports its own failures; this is a last resort
                    logger.exception(f"[ERR ] Job '{job.target_input}' escaped the orchestrator")

                if self._queue:
                    self.events.log("Starting next task in queue...")
        finally:
            self._busy = False

        self.events.log("All tasks completed.")
        self.events.queue_empty()
