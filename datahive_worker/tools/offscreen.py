"""
Offscreen Tool

Scrapes a page in the headless browser and extracts fields by XPath.

Example step:

    - use: offscreen
      url: https://example.com/product/{{ vars.sku }}
      rules:
        fields:
          - field_name: title
            xpath: //h1/text()
          - field_name: image
            xpath: //img[@id='main']/@src
          - field_name: bullets
            xpath: //ul[@class='features']/li
      output: product

An xpath ending in ``/text()`` or ``/@attr`` yields one trimmed value (or
null); any other xpath yields the text of every matching node (or null).
Without fields the whole page is returned: html, visible text, final url
and title.
"""

import re
from typing import Any

from datahive_worker.core.exceptions import BrowserUnavailableError, ToolValidationError
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool, require_url

DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_WAIT_UNTIL = "networkidle"

# Puppeteer-style wait conditions still found in older rule documents
WAIT_UNTIL_ALIASES = {
    "networkidle0": "networkidle",
    "networkidle2": "networkidle",
}
VALID_WAIT_UNTIL = ("load", "domcontentloaded", "networkidle", "commit")

SINGLE_VALUE_XPATH = re.compile(r"(/text\(\)|@[\w-]+)$")

# Runs inside the page; receives the rules mapping as its argument
EXTRACT_SCRIPT = """
(rules) => {
    const nodeText = (node) =>
        node.textContent ? node.textContent.trim() : node.nodeValue;

    const first = (xpath) => document.evaluate(
        xpath, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null
    ).singleNodeValue;

    const all = (xpath) => {
        const snapshot = document.evaluate(
            xpath, document, null, XPathResult.ORDERED_NODE_SNAPSHOT_TYPE, null
        );
        const nodes = [];
        for (let i = 0; i < snapshot.snapshotLength; i++) {
            nodes.push(snapshot.snapshotItem(i));
        }
        return nodes;
    };

    if (!rules || !rules.fields || rules.fields.length === 0) {
        return {
            html: document.documentElement.outerHTML,
            text: document.body ? document.body.innerText : "",
            url: document.location.href,
            title: document.title,
        };
    }

    const data = {};
    for (const field of rules.fields) {
        if (!field.xpath) continue;
        if (field.single) {
            const node = first(field.xpath);
            data[field.field_name] = node ? nodeText(node) : null;
        } else {
            const nodes = all(field.xpath);
            data[field.field_name] = nodes.length > 0 ? nodes.map(nodeText) : null;
        }
    }
    return data;
}
"""


def is_single_value_xpath(xpath: str) -> bool:
    """True when the xpath selects a text node or a single attribute."""
    return bool(SINGLE_VALUE_XPATH.search(xpath))


def prepare_rules(rules: Any) -> dict[str, Any] | None:
    """Annotate each field with whether it yields one value or a list."""
    if not isinstance(rules, dict) or not rules.get("fields"):
        return None
    fields = []
    for field in rules["fields"]:
        xpath = field.get("xpath")
        fields.append({
            "field_name": field.get("field_name"),
            "xpath": xpath,
            "single": bool(xpath) and is_single_value_xpath(xpath),
        })
    return {"fields": fields}


class OffscreenTool(Tool):
    """Headless-browser scrape with XPath extraction."""

    description = "Scrapes web pages in a headless browser using XPath selectors"

    def __init__(self, browser: Any | None = None, default_timeout: int = DEFAULT_TIMEOUT_MS) -> None:
        super().__init__("offscreen")
        self.browser = browser
        self.default_timeout = default_timeout

    def set_browser(self, browser: Any) -> None:
        """Attach the started BrowserSession (done by the worker at startup)."""
        self.browser = browser

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        if self.browser is None:
            raise BrowserUnavailableError("Browser not initialized. Call set_browser() first.")

        url = params["url"]
        timeout_ms = int(params.get("timeout", self.default_timeout))
        wait_until = params.get("waitUntil") or DEFAULT_WAIT_UNTIL
        wait_until = WAIT_UNTIL_ALIASES.get(wait_until, wait_until)
        rules = prepare_rules(params.get("rules"))

        log = self.get_logger(context)
        log.info("Scraping", url=url, wait_until=wait_until)

        async with self.browser.open_page() as page:
            try:
                await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
                result = await page.evaluate(EXTRACT_SCRIPT, rules)
            except Exception as e:
                log.error("Scraping failed", url=url, error=str(e))
                raise

        log.info("Extraction complete", fields=len(result) if isinstance(result, dict) else 0)
        return ToolResult.with_output(result, params.get("output"))

    def validate(self, params: dict[str, Any]) -> bool:
        require_url(params)

        wait_until = params.get("waitUntil")
        if wait_until and WAIT_UNTIL_ALIASES.get(wait_until, wait_until) not in VALID_WAIT_UNTIL:
            raise ToolValidationError(f"Invalid waitUntil: {wait_until}")

        rules = params.get("rules")
        if isinstance(rules, dict) and rules.get("fields") is not None:
            if not isinstance(rules["fields"], list):
                raise ToolValidationError("rules.fields must be a list")

            for field in rules["fields"]:
                if not isinstance(field, dict) or not field.get("field_name"):
                    raise ToolValidationError("Each field must have a field_name")
                if not field.get("xpath"):
                    raise ToolValidationError(f"Field {field['field_name']} is missing xpath")

        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "url": {"type": "string", "required": True, "description": "URL to scrape"},
                "rules": {"type": "object", "required": False, "description": "Extraction rules with XPath"},
                "timeout": {"type": "number", "required": False, "default": self.default_timeout, "description": "Page load timeout in ms"},
                "waitUntil": {"type": "string", "required": False, "default": DEFAULT_WAIT_UNTIL, "description": "Wait condition"},
                "output": {"type": "string", "required": False, "description": "Variable name for result"},
            },
            "examples": [
                {
                    "description": "Extract product details",
                    "params": {
                        "url": "https://example.com/product",
                        "rules": {
                            "fields": [
                                {"field_name": "title", "xpath": "//h1/text()"},
                                {"field_name": "price", "xpath": "//span[@class='price']/text()"},
                                {"field_name": "description", "xpath": "//div[@id='description']//text()"},
                            ]
                        },
                        "output": "product_data",
                    },
                },
                {
                    "description": "Get full page content",
                    "params": {"url": "https://example.com", "output": "page_content"},
                },
            ],
        }
