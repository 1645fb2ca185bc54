"""
Job loop: poll, run, report, sleep.

One job at a time. After every iteration the loop sleeps for the effective
job interval; when the poll call is rate limited (HTTP 429) it sleeps twice
as long. A separate task pings the API on its own cadence.

Stopping is cooperative: ``stop()`` clears the running flag (checked at the
top of every iteration) and wakes the loop from its sleep. A job already in
flight is allowed to finish.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from datahive_worker.core.exceptions import ProcessingFailedError
from datahive_worker.core.logging import emit_job_event, finalize_job_event, init_job_event
from datahive_worker.core.models import ErrorKind, Job, JobStatus
from datahive_worker.jobs.pipeline import StepPipeline
from datahive_worker.services.config_manager import ConfigManager

logger = structlog.get_logger()

RATE_LIMIT_MARKER = "429"
RATE_LIMIT_BACKOFF_FACTOR = 2


def is_rate_limited(error: BaseException) -> bool:
    """The job API signals rate limiting by embedding 429 in the error text."""
    return RATE_LIMIT_MARKER in str(error)


class JobLoop:
    """
    Drives the worker.

    Args:
        api_client: Job source (poll / complete_job / report_error / ping)
        pipeline: Step pipeline that executes a job
        config_manager: Effective configuration (job and ping intervals)
        browser: BrowserSession to restart every ``reload_after_jobs`` jobs
        sleep: Awaitable taking seconds; defaults to an interruptible wait
    """

    def __init__(
        self,
        api_client: Any,
        pipeline: StepPipeline,
        config_manager: ConfigManager,
        browser: Any | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.api_client = api_client
        self.pipeline = pipeline
        self.config_manager = config_manager
        self.browser = browser
        self.running = False
        self.jobs_processed = 0
        self._sleep = sleep
        self._stop_event = asyncio.Event()
        self._ping_task: asyncio.Task | None = None
        self.log = logger.bind(component="JobLoop")

    @property
    def interval(self) -> int:
        """Effective poll interval in milliseconds."""
        return int(self.config_manager.get("job_interval", 0))

    async def start(self) -> None:
        """Fetch configuration, start pinging and run until stopped."""
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self.log.info("Starting job loop")

        await self.config_manager.fetch_configuration()
        self.log.info("Current configuration", **self.config_manager.snapshot())

        self._ping_task = asyncio.create_task(self._ping_loop())
        try:
            await self.run()
        finally:
            await self._cancel_ping()

    async def run(self) -> None:
        while self.running:
            delay_ms = await self.run_once()
            await self._wait(delay_ms / 1000)

    async def run_once(self) -> int:
        """
        One iteration: poll and process at most one job.

        Returns:
            Milliseconds to sleep before the next iteration
        """
        interval = self.interval
        try:
            await self.config_manager.refresh_if_stale()
            interval = self.interval

            job = await self.api_client.poll()
            if job is not None:
                self.log.info("Received job", job_id=job.id)
                await self.process_job(job)
            else:
                self.log.debug("No job received")
            return interval

        except Exception as e:
            self.log.error("Error in job loop", error=str(e))
            if is_rate_limited(e):
                backoff = interval * RATE_LIMIT_BACKOFF_FACTOR
                self.log.warning("Rate limit hit, backing off", delay_ms=backoff)
                return backoff
            return interval

    async def process_job(self, job: Job) -> None:
        """Run a job through the pipeline and report the outcome. Never raises."""
        log = self.log.bind(job_id=job.id)
        settings = self.config_manager.settings
        init_job_event(job.id, job.type, version=settings.app_version, environment=settings.environment)
        log.info("Job state", status=JobStatus.RECEIVED.value)
        started = time.monotonic()

        try:
            log.info("Job state", status=JobStatus.RUNNING.value)
            outcome = await self.pipeline.run(job)
            await self.api_client.complete_job(job.id, outcome.result, self._metadata(started))

        except Exception as e:
            failure = ProcessingFailedError(job.id, e)
            log.error(
                "Failed to process job",
                status=JobStatus.FAILED.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            emit_job_event(finalize_job_event(JobStatus.FAILED.value, e))
            await self._report_failure(failure)

        else:
            log.info("Job completed", status=JobStatus.COMPLETED.value)
            emit_job_event(finalize_job_event(JobStatus.COMPLETED.value))

        finally:
            self.jobs_processed += 1
            await self._maybe_reload_browser()

    def _metadata(self, started: float) -> dict[str, Any]:
        if not self.config_manager.get("enable_performance_tracking", False):
            return {}
        return {"duration": int((time.monotonic() - started) * 1000)}

    async def _report_failure(self, failure: ProcessingFailedError) -> None:
        try:
            await self.api_client.report_error(
                failure.job_id,
                ErrorKind.PROCESSING_FAILED.value,
                {"message": str(failure)},
            )
        except Exception as e:
            self.log.error("Failed to report job error", job_id=failure.job_id, error=str(e))

    async def _maybe_reload_browser(self) -> None:
        every = int(self.config_manager.get("reload_after_jobs", 0))
        if self.browser is None or every <= 0 or self.jobs_processed % every:
            return
        try:
            await self.browser.restart()
        except Exception as e:
            self.log.error("Browser restart failed", error=str(e))

    async def _ping_loop(self) -> None:
        while self.running:
            try:
                await self.api_client.ping()
            except Exception as e:
                self.log.warning("Ping failed", error=str(e))
            await asyncio.sleep(self.config_manager.get("ping_interval", 120_000) / 1000)

    async def _cancel_ping(self) -> None:
        if self._ping_task is None:
            return
        self._ping_task.cancel()
        try:
            await self._ping_task
        except asyncio.CancelledError:
            pass
        self._ping_task = None

    async def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        """Request a cooperative stop."""
        if self.running:
            self.log.info("Stop requested")
        self.running = False
        self._stop_event.set()
