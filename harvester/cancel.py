class JobCancelled(Exception):
    """Raised at a cancellation checkpoint once the job's token is signaled."""


class CancellationToken:
    """
    Cooperative stop signal for one job.

    Nothing is interrupted when cancel() is called: the orchestrator and the
    download pipeline poll the token at their checkpoints and unwind from
    there. In-flight work (a download mid-transfer) finishes on its own.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise JobCancelled("Stopped by user")
