"""
Fetch-and-Extract Tool

GET a page and pull text out of it by tag name, without a browser.

Known approximation: this is a tag-matching regex, not an HTML parser. For
each field it takes the first ``<tag ...>...</tag>`` pair (non-greedy, case
insensitive), so self-closing tags, nested tags of the same name and
malformed markup mis-extract. Use the ``offscreen`` tool when that matters.
"""

import re
from typing import Any

from datahive_worker.core.exceptions import ToolExecutionError, ToolValidationError
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool, require_url
from datahive_worker.tools.fetch import DEFAULT_TIMEOUT_MS, FetchTool

TAG_PATTERN = re.compile(r"<[^>]+>")


def extract_by_tag(html: str, selector: str) -> str | None:
    """Inner text of the first ``<selector>`` element, tags stripped."""
    tag = re.escape(selector)
    match = re.search(rf"<{tag}[^>]*>([\s\S]*?)</{tag}>", html, re.IGNORECASE)
    if not match:
        return None
    return TAG_PATTERN.sub("", match.group(1)).strip()


class FetchAndExtractTool(Tool):
    """Fetch HTML over plain HTTP and extract fields by tag name."""

    description = "Fetches HTML and extracts data using simple selectors"

    def __init__(self, fetch_tool: FetchTool | None = None) -> None:
        super().__init__("fetch-and-extract")
        self._fetch = fetch_tool or FetchTool()

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        url = params["url"]
        rules = params.get("rules") or {}

        log = self.get_logger(context)
        log.info("Fetching and extracting", url=url)

        fetched = await self._fetch.execute(
            {
                "url": url,
                "method": "GET",
                "headers": params.get("headers") or {},
                "timeout": params.get("timeout", DEFAULT_TIMEOUT_MS),
            },
            context,
        )

        html = fetched.result["data"]
        if not isinstance(html, str):
            raise ToolExecutionError("Response is not HTML/text")

        log.debug("Received HTML", size=len(html))

        data: dict[str, Any] = {}
        for field in rules.get("fields") or []:
            selector = field.get("selector")
            if selector:
                data[field["field_name"]] = extract_by_tag(html, str(selector))

        log.info("Extraction complete", fields=len(data))
        return ToolResult.with_output(data, params.get("output"))

    def validate(self, params: dict[str, Any]) -> bool:
        require_url(params)

        rules = params.get("rules")
        if not isinstance(rules, dict) or rules.get("fields") is None:
            raise ToolValidationError("Missing required parameter: rules.fields")
        if not isinstance(rules["fields"], list):
            raise ToolValidationError("rules.fields must be a list")
        for field in rules["fields"]:
            if not isinstance(field, dict) or not field.get("field_name"):
                raise ToolValidationError("Each field must have a field_name")

        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "url": {"type": "string", "required": True, "description": "URL to fetch"},
                "rules": {"type": "object", "required": True, "description": "Extraction rules"},
                "headers": {"type": "object", "required": False, "description": "HTTP headers"},
                "timeout": {"type": "number", "required": False, "default": DEFAULT_TIMEOUT_MS, "description": "Timeout in ms"},
                "output": {"type": "string", "required": False, "description": "Variable name for result"},
            },
            "examples": [
                {
                    "description": "Extract title and description",
                    "params": {
                        "url": "https://example.com",
                        "rules": {
                            "fields": [
                                {"field_name": "title", "selector": "h1"},
                                {"field_name": "description", "selector": "p"},
                            ]
                        },
                    },
                }
            ],
            "notes": [
                "Tag matching via regex, not a DOM parser",
                "Self-closing, nested same-tag or malformed HTML will mis-extract",
                "For JavaScript-heavy sites, use the offscreen tool instead",
            ],
        }
