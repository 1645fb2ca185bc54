"""
Tools a pipeline step can ``use``.

    conditional-gate   ConditionalGateTool  stop or fail the pipeline on a condition
    fetch              FetchTool            one HTTP request, status returned as data
    fetch-and-extract  FetchAndExtractTool  HTTP GET + tag-based text extraction
    offscreen          OffscreenTool        headless browser scrape with XPath
"""

from typing import Any

import httpx

from datahive_worker.tools.base import Tool
from datahive_worker.tools.conditional_gate import OPERATORS, ConditionalGateTool, Operator
from datahive_worker.tools.fetch import FetchTool
from datahive_worker.tools.fetch_and_extract import FetchAndExtractTool
from datahive_worker.tools.offscreen import DEFAULT_TIMEOUT_MS, OffscreenTool
from datahive_worker.tools.registry import ToolRegistry


def build_default_registry(
    browser: Any | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    page_timeout: int = DEFAULT_TIMEOUT_MS,
) -> ToolRegistry:
    """Registry with the built-in tools.

    Args:
        browser: Started BrowserSession for the offscreen tool (may be
            attached later via ``OffscreenTool.set_browser``)
        transport: httpx transport for the HTTP tools (tests)
        page_timeout: Offscreen page load timeout (ms) when a step sets none
    """
    fetch = FetchTool(transport=transport)
    registry = ToolRegistry()
    registry.register_all([
        ConditionalGateTool(),
        fetch,
        OffscreenTool(browser, default_timeout=page_timeout),
        FetchAndExtractTool(fetch),
    ])
    return registry


__all__ = [
    "Tool",
    "ToolRegistry",
    "ConditionalGateTool",
    "FetchTool",
    "FetchAndExtractTool",
    "OffscreenTool",
    "Operator",
    "OPERATORS",
    "build_default_registry",
]
