"""
Fetch Tool

Issues a single HTTP request. HTTP error statuses are returned as data so a
later conditional gate can look at them; only transport failures raise.

Example step:

    - use: fetch
      url: https://api.example.com/data?q={{ vars.q }}
      method: GET
      headers:
        Authorization: Bearer abc
      output: api_response
"""

import socket
from typing import Any

import httpx

from datahive_worker.core.exceptions import NetworkError, ToolValidationError
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool, require_url

VALID_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
DEFAULT_TIMEOUT_MS = 30_000
MAX_REDIRECTS = 5

_HOST_NOT_FOUND_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)


def _error_chain(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def categorize_error(exc: httpx.HTTPError, url: str, timeout_ms: int) -> NetworkError:
    """Map an httpx transport error onto a NetworkError with a distinct message."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"Request timeout after {timeout_ms}ms", NetworkError.TIMEOUT)

    for err in _error_chain(exc):
        if isinstance(err, socket.gaierror):
            return NetworkError(f"Host not found: {url}", NetworkError.HOST_NOT_FOUND)
        if isinstance(err, ConnectionRefusedError):
            return NetworkError(f"Connection refused: {url}", NetworkError.CONNECTION_REFUSED)

    text = str(exc).lower()
    if any(marker in text for marker in _HOST_NOT_FOUND_MARKERS):
        return NetworkError(f"Host not found: {url}", NetworkError.HOST_NOT_FOUND)
    if "connection refused" in text:
        return NetworkError(f"Connection refused: {url}", NetworkError.CONNECTION_REFUSED)

    return NetworkError(f"Network error: {exc}", NetworkError.NETWORK)


def decode_body(response: httpx.Response) -> Any:
    """JSON for JSON content types, text otherwise."""
    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type and response.content:
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


class FetchTool(Tool):
    """Single HTTP request via httpx."""

    description = "Fetches data from a URL using HTTP"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__("fetch")
        # Injected in tests (httpx.MockTransport); None means real network
        self._transport = transport

    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        url = params["url"]
        method = str(params.get("method") or "GET").upper()
        headers = params.get("headers") or {}
        body = params.get("body")
        timeout_ms = int(params.get("timeout", DEFAULT_TIMEOUT_MS))
        follow_redirects = bool(params.get("followRedirects", True))

        log = self.get_logger(context)
        log.info("Fetching", method=method, url=url)

        request_kwargs: dict[str, Any] = {"headers": {str(k): str(v) for k, v in headers.items()}}
        if body is not None:
            if isinstance(body, (dict, list)):
                request_kwargs["json"] = body
            elif isinstance(body, bytes):
                request_kwargs["content"] = body
            else:
                request_kwargs["content"] = str(body)

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=timeout_ms / 1000,
                follow_redirects=follow_redirects,
                max_redirects=MAX_REDIRECTS,
            ) as client:
                response = await client.request(method, url, **request_kwargs)
        except httpx.HTTPError as e:
            log.error("Request failed", url=url, error=str(e))
            raise categorize_error(e, url, timeout_ms) from e

        result = {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "data": decode_body(response),
        }

        log.info("Response received", status=response.status_code)
        if response.status_code >= 400:
            # Not raised: a conditional gate downstream decides what to do
            log.warning("HTTP error status", status=response.status_code, reason=response.reason_phrase)

        return ToolResult.with_output(result, params.get("output"))

    def validate(self, params: dict[str, Any]) -> bool:
        require_url(params)

        method = params.get("method")
        if method and str(method).upper() not in VALID_METHODS:
            raise ToolValidationError(f"Invalid HTTP method: {method}")

        headers = params.get("headers")
        if headers is not None and not isinstance(headers, dict):
            raise ToolValidationError("Parameter 'headers' must be a mapping")

        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "url": {"type": "string", "required": True, "description": "URL to fetch"},
                "method": {"type": "string", "required": False, "default": "GET", "description": "HTTP method"},
                "headers": {"type": "object", "required": False, "description": "HTTP headers"},
                "body": {"type": "object", "required": False, "description": "Request body"},
                "timeout": {"type": "number", "required": False, "default": DEFAULT_TIMEOUT_MS, "description": "Timeout in ms"},
                "followRedirects": {"type": "boolean", "required": False, "default": True, "description": "Follow redirects"},
                "output": {"type": "string", "required": False, "description": "Variable name for result"},
            },
            "examples": [
                {
                    "description": "Simple GET request",
                    "params": {"url": "https://api.example.com/data", "output": "api_data"},
                },
                {
                    "description": "POST with JSON body",
                    "params": {
                        "url": "https://api.example.com/submit",
                        "method": "POST",
                        "headers": {"Content-Type": "application/json"},
                        "body": {"key": "value"},
                    },
                },
            ],
        }
