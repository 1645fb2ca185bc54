"""
Pytest configuration and fixtures for DataHive worker tests.
"""

from typing import Any

import pytest
import structlog

from datahive_worker.core.config import Settings
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any configure_logging() a test triggered; it binds the captured stdout."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> Settings:
    """Settings with credentials, isolated from any local .env file."""
    return Settings(
        _env_file=None,
        api_base_url="http://api.test/api",
        jwt="test-jwt",
        device_id="device-1",
        job_interval=1000,
        ping_interval=60_000,
    )


@pytest.fixture
def context() -> ToolContext:
    """Tool context for a job without variables."""
    return ToolContext(job_id="job-1", variables={})


class RecordingTool(Tool):
    """Tool that records its params and returns a preset result."""

    def __init__(self, name: str = "record", result: Any = "ok", output: str | None = None):
        super().__init__(name)
        self.result = result
        self.output = output
        self.calls: list[dict[str, Any]] = []

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        self.calls.append(params)
        return ToolResult.with_output(self.result, self.output)


@pytest.fixture
def make_tool() -> type[RecordingTool]:
    """Factory for RecordingTool instances."""
    return RecordingTool
