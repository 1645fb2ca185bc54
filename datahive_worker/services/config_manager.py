"""
Remote configuration manager.

Starts from the local settings and applies overrides served by
``GET /configuration``. A failed fetch keeps whatever was in effect before.
"""

import time
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from datahive_worker.core.config import Settings

logger = structlog.get_logger()

# Added on top of the server's job delay so we never poll early
JOB_INTERVAL_BUFFER_MS = 5000


@dataclass
class RemoteConfig:
    job_interval: int  # ms
    ping_interval: int  # ms
    reload_after_jobs: int
    max_concurrent_jobs: int
    enable_performance_tracking: bool
    timeout: int  # ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteConfig":
        return cls(
            job_interval=settings.job_interval,
            ping_interval=settings.ping_interval,
            reload_after_jobs=settings.reload_after_jobs,
            max_concurrent_jobs=settings.max_concurrent_jobs,
            enable_performance_tracking=settings.enable_performance_tracking,
            timeout=settings.timeout,
        )


def job_interval_from_server(data: dict[str, Any]) -> int | None:
    """Server delay (seconds) -> poll interval in ms, buffer included."""
    seconds = data.get("job_execution_delay", data.get("jobIntervalSeconds"))
    if seconds is None:
        return None
    return int(float(seconds) * 1000) + JOB_INTERVAL_BUFFER_MS


class ConfigManager:
    """Holds the effective runtime configuration."""

    # Server key -> RemoteConfig attribute
    OVERRIDES = {
        "reloadAfterJobs": "reload_after_jobs",
        "maxConcurrentJobs": "max_concurrent_jobs",
        "enablePerformanceTracking": "enable_performance_tracking",
    }

    def __init__(self, api_client: Any, settings: Settings):
        self.api_client = api_client
        self.settings = settings
        self.config = RemoteConfig.from_settings(settings)
        self.last_fetch: float | None = None
        self.fetch_interval = settings.config_refresh_interval / 1000
        self.log = logger.bind(component="ConfigManager")

    async def fetch_configuration(self) -> RemoteConfig:
        """Fetch overrides from the API. Failures are logged and swallowed."""
        self.log.debug("Fetching configuration from API")
        # A failed attempt also counts: retry after the next refresh interval
        self.last_fetch = time.monotonic()
        try:
            data = await self.api_client.fetch_config()
            self.apply(data)
        except Exception as e:
            self.log.error("Failed to fetch configuration, keeping current values", error=str(e))
        return self.config

    def apply(self, data: dict[str, Any]) -> bool:
        """Merge server values into the effective config. Returns True if anything changed."""
        changes: dict[str, Any] = {}

        try:
            interval = job_interval_from_server(data)
        except (TypeError, ValueError):
            self.log.warning("Ignoring invalid job delay", value=data.get("job_execution_delay"))
            interval = None
        if interval is not None and interval != self.config.job_interval:
            changes["job_interval"] = interval

        for key, attr in self.OVERRIDES.items():
            if key in data and data[key] is not None and getattr(self.config, attr) != data[key]:
                changes[attr] = data[key]

        for attr, value in changes.items():
            setattr(self.config, attr, value)

        if changes:
            self.log.info("Configuration updated", **changes)
        else:
            self.log.debug("No configuration changes")
        return bool(changes)

    def is_stale(self) -> bool:
        if self.last_fetch is None:
            return True
        return time.monotonic() - self.last_fetch > self.fetch_interval

    async def refresh_if_stale(self) -> RemoteConfig:
        if self.is_stale():
            return await self.fetch_configuration()
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self.config, key, None)
        return default if value is None else value

    def snapshot(self) -> dict[str, Any]:
        return {**asdict(self.config), "last_fetch": self.last_fetch}

    def reset(self) -> None:
        self.config = RemoteConfig.from_settings(self.settings)
        self.last_fetch = None
