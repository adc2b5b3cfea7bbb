"""
Blocking adapter work in worker threads.

A worker thread cannot be interrupted. When the awaiting task is
cancelled (collaborator timeout), the thread is abandoned and runs to
completion on its own; `on_abandon` then receives its result so any
file it produced can be removed.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional, TypeVar

import anyio

T = TypeVar("T")


class _Job:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.abandoned = False
        self.finished = False
        self.result: Any = None


async def run_in_worker(
    func: Callable[..., T],
    *args: Any,
    on_abandon: Optional[Callable[[T], None]] = None,
) -> T:
    job = _Job()

    def work() -> T:
        result = func(*args)
        with job.lock:
            job.finished = True
            job.result = result
            abandoned = job.abandoned
        if abandoned and on_abandon is not None:
            on_abandon(result)
        return result

    try:
        return await anyio.to_thread.run_sync(work, abandon_on_cancel=True)
    except anyio.get_cancelled_exc_class():
        with job.lock:
            job.abandoned = True
            finished = job.finished
        # Finished between cancellation and delivery
        if finished and on_abandon is not None:
            on_abandon(job.result)
        raise
