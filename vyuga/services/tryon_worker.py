"""Worker pool executing queued try-on jobs inside the API process."""

import asyncio
import logging
from typing import Any

from vyuga.services.tryon_service import TryOnService

logger = logging.getLogger(__name__)


class TryOnWorkerPool:
    """Asyncio workers that claim and execute try-on jobs.

    Jobs are persisted rows, so nothing is lost when the process stops:
    QUEUED rows wait for the next claim and PROCESSING rows whose lease
    runs out are taken over by the recovery sweep. Jobs run on the
    application loop and are independent of the request that queued them.
    """

    def __init__(
        self,
        service: TryOnService,
        concurrency: int = 2,
        poll_seconds: float = 2.0,
        recovery_interval_seconds: float = 60.0,
    ) -> None:
        self.service = service
        self.concurrency = concurrency
        self.poll_seconds = poll_seconds
        self.recovery_interval_seconds = recovery_interval_seconds
        self._wake = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._recovered: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def notify(self) -> None:
        """Wake idle workers; called right after a job is queued."""
        self._wake.set()

    async def start(self) -> None:
        """Start workers and the recovery sweep."""
        if self._tasks:
            return
        for index in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker_loop(index), name=f"tryon-worker-{index}"))
        self._tasks.append(asyncio.create_task(self._recovery_loop(), name="tryon-recovery"))
        logger.info("Try-on worker pool started with %d workers", self.concurrency)

    async def stop(self) -> None:
        """Cancel workers. Interrupted jobs are picked up again after their lease expires."""
        tasks = [*self._tasks, *self._recovered]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = []
        self._recovered.clear()
        logger.info("Try-on worker pool stopped")

    async def _wait_for_work(self) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.poll_seconds)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    async def _run(self, job: dict[str, Any]) -> None:
        try:
            status = await self.service.execute_job(job)
            logger.debug("Try-on %s finished as %s", job["id"], status)
        except Exception:
            # The lease still expires, so the recovery sweep retries this job
            logger.exception("Try-on %s could not be finalized", job["id"])

    async def _worker_loop(self, index: int) -> None:
        while True:
            try:
                job = await self.service.claim_next_job()
            except Exception:
                logger.exception("Try-on worker %d failed to claim a job", index)
                job = None

            if job is None:
                await self._wait_for_work()
                continue

            await self._run(job)

    async def _recovery_loop(self) -> None:
        while True:
            try:
                jobs = await self.service.reclaim_stale_jobs()
            except Exception:
                logger.exception("Try-on recovery sweep failed")
                jobs = []

            for job in jobs:
                task = asyncio.create_task(self._run(job))
                self._recovered.add(task)
                task.add_done_callback(self._recovered.discard)

            await asyncio.sleep(self.recovery_interval_seconds)
