"""
Unit tests for the offscreen tool.

The browser session is replaced by a fake that hands out recording pages.
"""

from contextlib import asynccontextmanager
from typing import Any

import pytest

from datahive_worker.core.exceptions import BrowserUnavailableError, ToolValidationError
from datahive_worker.tools.offscreen import (
    EXTRACT_SCRIPT,
    OffscreenTool,
    is_single_value_xpath,
    prepare_rules,
)


class FakePage:
    def __init__(self, result: Any = None, fail: Exception | None = None):
        self.result = result
        self.fail = fail
        self.goto_calls: list[tuple[str, dict]] = []
        self.evaluate_calls: list[tuple[str, Any]] = []
        self.closed = False

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.goto_calls.append((url, kwargs))
        if self.fail is not None:
            raise self.fail

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluate_calls.append((script, arg))
        return self.result


class FakeSession:
    def __init__(self, page: FakePage):
        self.page = page

    @asynccontextmanager
    async def open_page(self):
        try:
            yield self.page
        finally:
            self.page.closed = True


class TestXPathHelpers:
    @pytest.mark.parametrize(
        "xpath,single",
        [
            ("//h1/text()", True),
            ("//img[@id='main']/@src", True),
            ("//a/@data-id", True),
            ("//ul/li", False),
            ("//div[@class='x']", False),
        ],
    )
    def test_single_value_detection(self, xpath, single):
        assert is_single_value_xpath(xpath) is single

    def test_prepare_rules_without_fields(self):
        assert prepare_rules(None) is None
        assert prepare_rules({}) is None
        assert prepare_rules({"fields": []}) is None

    def test_prepare_rules_annotates_fields(self):
        rules = {"fields": [{"field_name": "t", "xpath": "//h1/text()"}, {"field_name": "li", "xpath": "//li"}]}

        assert prepare_rules(rules) == {
            "fields": [
                {"field_name": "t", "xpath": "//h1/text()", "single": True},
                {"field_name": "li", "xpath": "//li", "single": False},
            ]
        }


@pytest.mark.asyncio
class TestOffscreenTool:
    async def test_requires_browser(self, context):
        with pytest.raises(BrowserUnavailableError):
            await OffscreenTool().execute({"url": "https://example.com"}, context)

    async def test_scrapes_with_rules(self, context):
        page = FakePage(result={"title": "Shoes"})
        tool = OffscreenTool(FakeSession(page))

        result = await tool.execute(
            {
                "url": "https://example.com/p/1",
                "rules": {"fields": [{"field_name": "title", "xpath": "//h1/text()"}]},
                "output": "product",
            },
            context,
        )

        assert result.result == {"title": "Shoes"}
        assert result.output == {"product": {"title": "Shoes"}}
        assert page.goto_calls == [("https://example.com/p/1", {"wait_until": "networkidle", "timeout": 60000})]
        script, rules = page.evaluate_calls[0]
        assert script == EXTRACT_SCRIPT
        assert rules["fields"][0]["single"] is True
        assert page.closed

    async def test_whole_page_without_rules(self, context):
        page = FakePage(result={"html": "<html></html>", "text": "", "url": "https://example.com/", "title": ""})
        tool = OffscreenTool(FakeSession(page))

        result = await tool.execute({"url": "https://example.com"}, context)

        assert page.evaluate_calls[0][1] is None
        assert set(result.result) == {"html", "text", "url", "title"}

    async def test_puppeteer_wait_until_alias(self, context):
        page = FakePage(result={})
        tool = OffscreenTool(FakeSession(page))

        await tool.execute({"url": "https://example.com", "waitUntil": "networkidle2", "timeout": 5000}, context)

        assert page.goto_calls[0][1] == {"wait_until": "networkidle", "timeout": 5000}

    async def test_configured_default_timeout(self, context):
        """Test the worker-wide page timeout applies when a step sets none."""
        page = FakePage(result={})
        tool = OffscreenTool(FakeSession(page), default_timeout=15_000)

        await tool.execute({"url": "https://example.com"}, context)
        await tool.execute({"url": "https://example.com", "timeout": 2000}, context)

        assert page.goto_calls[0][1]["timeout"] == 15_000
        assert page.goto_calls[1][1]["timeout"] == 2000
        assert tool.metadata()["parameters"]["timeout"]["default"] == 15_000

    async def test_navigation_error_closes_page(self, context):
        page = FakePage(fail=TimeoutError("navigation timeout"))
        tool = OffscreenTool(FakeSession(page))

        with pytest.raises(TimeoutError):
            await tool.execute({"url": "https://example.com"}, context)

        assert page.closed

    async def test_set_browser(self, context):
        page = FakePage(result={"ok": True})
        tool = OffscreenTool()
        tool.set_browser(FakeSession(page))

        result = await tool.execute({"url": "https://example.com"}, context)

        assert result.result == {"ok": True}


class TestOffscreenValidation:
    @pytest.fixture
    def tool(self):
        return OffscreenTool()

    def test_valid(self, tool):
        params = {"url": "https://example.com", "rules": {"fields": [{"field_name": "t", "xpath": "//h1"}]}}
        assert tool.validate(params) is True

    def test_missing_xpath(self, tool):
        with pytest.raises(ToolValidationError, match="Field t is missing xpath"):
            tool.validate({"url": "https://example.com", "rules": {"fields": [{"field_name": "t"}]}})

    def test_invalid_wait_until(self, tool):
        with pytest.raises(ToolValidationError, match="Invalid waitUntil: soon"):
            tool.validate({"url": "https://example.com", "waitUntil": "soon"})

    def test_rules_without_fields_allowed(self, tool):
        """Test legacy rule collections without fields pass validation."""
        assert tool.validate({"url": "https://example.com", "rules": {"yamlRules": ""}}) is True
