import asyncio
from typing import Awaitable, Callable, Optional

from app.core.logger import get_logger

logger = get_logger("ReplyQueue")

ReplyJob = Callable[[], Awaitable[None]]


class ReplyQueue:
    """
    FIFO of reply jobs drained by a single worker task.

    A job starts only after the previous one finished, successfully or not,
    so answers go out in the order their messages were accepted. The worker
    is started lazily on the running loop and survives failing jobs.
    """

    def __init__(self):
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, job: ReplyJob) -> None:
        if self._closed:
            raise RuntimeError("Reply queue is closed")
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._queue.put_nowait(job)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job()
            except Exception as e:
                logger.error(f"Reply job failed: {e}")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self, timeout: float = 5.0) -> None:
        """Refuse new jobs, give queued ones `timeout` seconds, then stop the worker."""
        self._closed = True
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {self.pending} queued replies on shutdown")
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
