# sheetqueue/core/queue/exceptions.py
from __future__ import annotations


class JobTimeoutError(TimeoutError):
    """A job lost the race against its queue's deadline.

    The queue slot is released when this is raised. The underlying work is
    not necessarily stopped: unless the queue cancels on timeout, it keeps
    running (and holding whatever it holds, e.g. a browser process) until it
    settles on its own.
    """

    def __init__(
        self,
        queue_name: str,
        timeout_seconds: float,
        label: str | None = None,
    ) -> None:
        target = f"job '{label}'" if label else 'job'
        super().__init__(
            f"{target} on queue '{queue_name}' timed out after {timeout_seconds:g}s"
        )
        self.queue_name = queue_name
        self.timeout_seconds = timeout_seconds
        self.label = label
