"""
Worker assembly: build the components, run the job loop, tear down.
"""

import asyncio
import signal
from dataclasses import dataclass

import structlog

from datahive_worker.core.config import Settings
from datahive_worker.jobs.pipeline import StepPipeline
from datahive_worker.services.api_client import ApiClient
from datahive_worker.services.browser import BrowserSession
from datahive_worker.services.config_manager import ConfigManager
from datahive_worker.tools import build_default_registry
from datahive_worker.worker.job_loop import JobLoop

logger = structlog.get_logger()


@dataclass
class WorkerContext:
    settings: Settings
    api_client: ApiClient
    browser: BrowserSession | None
    job_loop: JobLoop


async def startup(settings: Settings) -> WorkerContext:
    """
    Initialize the worker context.

    A browser that fails to launch is logged and kept: the session retries
    the launch when the next offscreen job asks for a page.
    """
    logger.info("Starting up worker...", api_base_url=settings.api_base_url)

    browser: BrowserSession | None = None
    if settings.browser_enabled:
        browser = BrowserSession(headless=settings.headless)
        try:
            await browser.start()
        except Exception as e:
            logger.error("Browser launch failed, retrying on first offscreen job", error=str(e))

    api_client = ApiClient(settings)
    registry = build_default_registry(browser=browser, page_timeout=settings.timeout)
    config_manager = ConfigManager(api_client, settings)
    job_loop = JobLoop(
        api_client,
        StepPipeline(registry),
        config_manager,
        browser=browser,
    )

    logger.info(
        "Worker startup complete.",
        tools=registry.list(),
        max_concurrent_jobs=settings.max_concurrent_jobs,
        page_timeout_ms=settings.timeout,
    )
    return WorkerContext(settings=settings, api_client=api_client, browser=browser, job_loop=job_loop)


async def shutdown(ctx: WorkerContext) -> None:
    """
    Cleanup the worker context.
    """
    logger.info("Shutting down worker...")
    ctx.job_loop.stop()
    if ctx.browser is not None:
        try:
            await ctx.browser.close()
        except Exception as e:
            logger.error("Browser close failed", error=str(e))
    await ctx.api_client.close()
    logger.info("Worker shutdown complete.")


async def run_worker(settings: Settings) -> None:
    """Run until SIGINT/SIGTERM."""
    ctx = await startup(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, ctx.job_loop.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await ctx.job_loop.start()
    finally:
        await shutdown(ctx)


__all__ = ["JobLoop", "WorkerContext", "startup", "shutdown", "run_worker"]
