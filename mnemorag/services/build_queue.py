"""
Single-writer background queue for build passes.

Builds submitted from request paths run one at a time on a background
worker; each outcome is published on `results` and logged.
"""

import asyncio
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable

from mnemorag.models.build import BuildJobResult, BuildJobStatus, BuildOptions, BuildResult
from mnemorag.utils.exceptions import ValidationError
from mnemorag.utils.id_generator import generate_job_id
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

BuildRunner = Callable[[BuildOptions], Awaitable[BuildResult]]


class BuildJobQueue:
    """
    Serializes builds through one background worker.

    Example:
        >>> queue = BuildJobQueue(lambda options: build(options, memory_store, embedder, vectors))
        >>> queue.start()
        >>> job_id = await queue.submit(BuildOptions(memory_ids=["m1"]))
        >>> outcome = await queue.results.get()
        >>> await queue.stop()
    """

    def __init__(self, runner: BuildRunner, max_pending: int = 0, max_finished: int = 1000):
        """
        Args:
            runner: Coroutine function running one build
            max_pending: Bound on queued jobs, 0 for unbounded
            max_finished: Finished jobs whose status is kept; older ones are forgotten
        """
        self.runner = runner
        self.max_finished = max_finished
        self._jobs: asyncio.Queue[tuple[str, BuildOptions, datetime]] = asyncio.Queue(max_pending)
        self.results: asyncio.Queue[BuildJobResult] = asyncio.Queue()
        self._statuses: dict[str, BuildJobStatus] = {}
        self._finished: deque[str] = deque()
        self._worker_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background worker."""
        if not self.running:
            self._worker_task = asyncio.create_task(self._worker())

    async def stop(self) -> None:
        """Stop the worker; queued jobs that have not started are left pending."""
        if self.running:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None

    async def submit(self, options: BuildOptions | dict | None = None) -> str:
        """
        Queue a build.

        Returns:
            Job id; the outcome is published on `results`

        Raises:
            ValidationError: If options are malformed
        """
        if not isinstance(options, BuildOptions):
            try:
                options = BuildOptions.model_validate(options or {})
            except ValueError as e:
                raise ValidationError(f"Invalid build options: {e}") from e

        job_id = generate_job_id()
        self._statuses[job_id] = BuildJobStatus.PENDING
        await self._jobs.put((job_id, options, datetime.now()))
        logger.bind(job_id=job_id, pending=self._jobs.qsize()).info(
            f"Build job queued: {job_id}",
        )
        return job_id

    def status(self, job_id: str) -> BuildJobStatus | None:
        return self._statuses.get(job_id)

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        await self._jobs.join()

    async def _worker(self) -> None:
        while True:
            job_id, options, submitted_at = await self._jobs.get()
            try:
                self._statuses[job_id] = BuildJobStatus.RUNNING
                outcome = await self._run_job(job_id, options, submitted_at)
                self._record_finished(job_id, outcome.status)
                await self.results.put(outcome)
            finally:
                self._jobs.task_done()

    def _record_finished(self, job_id: str, status: BuildJobStatus) -> None:
        self._statuses[job_id] = status
        self._finished.append(job_id)
        while len(self._finished) > self.max_finished:
            self._statuses.pop(self._finished.popleft(), None)

    async def _run_job(
        self, job_id: str, options: BuildOptions, submitted_at: datetime
    ) -> BuildJobResult:
        try:
            result = await self.runner(options)
        except asyncio.CancelledError:
            logger.bind(job_id=job_id).info("Build worker stopped")
            raise
        except Exception as e:
            logger.bind(job_id=job_id, error=str(e), error_type=type(e).__name__).error(
                f"Build job {job_id} failed: {e}",
            )
            return BuildJobResult(
                job_id=job_id,
                status=BuildJobStatus.FAILED,
                options=options,
                error=str(e),
                submitted_at=submitted_at,
                finished_at=datetime.now(),
            )

        logger.bind(job_id=job_id, no_op=result.no_op).info(
            f"Build job {job_id} completed",
        )
        return BuildJobResult(
            job_id=job_id,
            status=BuildJobStatus.COMPLETED,
            options=options,
            result=result,
            submitted_at=submitted_at,
            finished_at=datetime.now(),
        )
