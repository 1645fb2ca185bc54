"""
Unit tests for the DataHive API client.
"""

import json

import httpx
import pytest

from datahive_worker.core.exceptions import APIError
from datahive_worker.services.api_client import ApiClient


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_client(settings, *responses: httpx.Response) -> tuple[ApiClient, Recorder]:
    recorder = Recorder(*responses)
    return ApiClient(settings, transport=httpx.MockTransport(recorder)), recorder


@pytest.mark.asyncio
class TestApiClient:
    async def test_poll_returns_job(self, settings):
        client, recorder = make_client(
            settings,
            httpx.Response(200, json={"id": 42, "vars": {"q": "shoes"}, "ruleCollection": {"yamlRules": "steps: []"}}),
        )

        job = await client.poll()

        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == "http://api.test/api/job"
        assert request.headers["Authorization"] == "Bearer test-jwt"
        assert request.headers["X-Device-Id"] == "device-1"
        assert request.headers["X-App-Version"] == settings.app_version
        assert job.id == "42"
        assert job.resolve_variables() == {"q": "shoes"}
        assert job.yaml_rules == "steps: []"
        await client.close()

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(204),
            httpx.Response(200, json={}),
            httpx.Response(200, json={"message": "no jobs"}),
        ],
    )
    async def test_poll_without_job(self, settings, response):
        client, _ = make_client(settings, response)

        assert await client.poll() is None
        await client.close()

    async def test_invalid_job_is_reported_as_failed(self, settings):
        client, recorder = make_client(
            settings,
            httpx.Response(200, json={"id": "j9", "vars": "oops"}),
            httpx.Response(200),
        )

        assert await client.poll() is None

        report = recorder.requests[1]
        assert report.method == "POST"
        assert report.url.path == "/api/job/j9/error"
        body = json.loads(report.content)
        assert body["error"] == "PROCESSING_FAILED"
        assert body["metadata"]["message"].startswith("Invalid job payload")
        assert body["context"] == "extension"
        await client.close()

    async def test_invalid_job_report_failure_is_swallowed(self, settings):
        client, recorder = make_client(
            settings,
            httpx.Response(200, json={"id": "j9", "vars": "oops"}),
            httpx.Response(500, text="down"),
        )

        assert await client.poll() is None
        assert len(recorder.requests) == 2
        await client.close()

    async def test_http_error_keeps_status_in_message(self, settings):
        """Test the status code is part of the message (rate limit detection)."""
        client, _ = make_client(settings, httpx.Response(429, text="Too Many Requests"))

        with pytest.raises(APIError) as exc_info:
            await client.poll()

        assert str(exc_info.value) == "HTTP 429: Too Many Requests"
        assert exc_info.value.status_code == 429
        await client.close()

    async def test_complete_job_payload(self, settings):
        client, recorder = make_client(settings, httpx.Response(200, json={"ok": True}))

        await client.complete_job("j1", {"title": "x"}, {"duration": 5})

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/job/j1"
        assert json.loads(request.content) == {
            "result": {"title": "x"},
            "metadata": {"duration": 5},
            "context": "extension",
        }
        await client.close()

    async def test_report_error_payload(self, settings):
        client, recorder = make_client(settings, httpx.Response(200))

        await client.report_error("j1", "PROCESSING_FAILED", {"message": "boom"})

        request = recorder.requests[0]
        assert request.url.path == "/api/job/j1/error"
        assert json.loads(request.content) == {
            "error": "PROCESSING_FAILED",
            "metadata": {"message": "boom"},
            "context": "extension",
        }
        await client.close()

    async def test_fetch_config(self, settings):
        client, recorder = make_client(settings, httpx.Response(200, json={"job_execution_delay": 30}))

        assert await client.fetch_config() == {"job_execution_delay": 30}
        assert recorder.requests[0].url.path == "/api/configuration"
        await client.close()

    async def test_ping(self, settings):
        client, recorder = make_client(settings, httpx.Response(200), httpx.Response(503, text="down"))

        assert await client.ping() is True
        assert await client.ping() is False
        assert recorder.requests[0].method == "POST"
        assert recorder.requests[0].url.path == "/api/ping"
        await client.close()

    async def test_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = ApiClient(settings, transport=httpx.MockTransport(handler))

        with pytest.raises(APIError, match="Request to /job failed"):
            await client.poll()
        await client.close()

    async def test_invalid_json(self, settings):
        client, _ = make_client(settings, httpx.Response(200, text="<html>"))

        with pytest.raises(APIError, match="Invalid JSON response"):
            await client.poll()
        await client.close()
