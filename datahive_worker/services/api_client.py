"""
DataHive API client.

Async client for the job API: poll for work, report results and errors,
fetch remote configuration and send liveness pings.

Non-2xx responses raise ``APIError("HTTP <status>: <body>")``. The job loop
detects rate limiting by looking for ``429`` in that message, so the status
code must stay in the text.
"""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from datahive_worker.core.config import Settings
from datahive_worker.core.exceptions import APIError
from datahive_worker.core.models import ErrorKind, Job

logger = structlog.get_logger()

# Sent with every result/error report
REPORT_CONTEXT = "extension"


class ApiClient:
    """
    Async client for the DataHive job API.

    Args:
        settings: Worker settings (base url, credentials, version)
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.base_url = settings.api_base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.log = logger.bind(component="ApiClient")

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-App-Version": self.settings.app_version,
            "X-User-Agent": self.settings.user_agent,
            "X-Device-Type": "extension",
        }
        if self.settings.jwt:
            headers["Authorization"] = f"Bearer {self.settings.jwt}"
        if self.settings.device_id:
            headers["X-Device-Id"] = self.settings.device_id
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._get_headers(),
                timeout=self.settings.api_timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, endpoint: str, body: dict[str, Any] | None = None) -> Any:
        """
        Make a request to the API.

        Returns:
            Parsed JSON body, or None for an empty body

        Raises:
            APIError: On non-2xx status or transport failure
        """
        try:
            response = await self._get_client().request(method, endpoint, json=body)
        except httpx.HTTPError as e:
            self.log.error("Request failed", endpoint=endpoint, error=str(e))
            raise APIError(f"Request to {endpoint} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            message = f"HTTP {response.status_code}: {response.text[:500]}"
            self.log.error("Request failed", endpoint=endpoint, status=response.status_code)
            raise APIError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON response from {endpoint}: {e}") from e

    async def poll(self) -> Job | None:
        """
        Ask the API for the next job.

        A job that carries an id but fails validation is reported back as
        failed, so the server does not keep it assigned to this device.

        Returns:
            Job if one is assigned and valid, None otherwise
        """
        data = await self._request("GET", "/job")
        if not isinstance(data, dict) or not data.get("id"):
            return None
        try:
            return Job.model_validate(data)
        except ValidationError as e:
            job_id = str(data["id"])
            self.log.error("Invalid job payload", job_id=job_id, error=str(e))
            await self._reject_job(job_id, f"Invalid job payload: {e}")
            return None

    async def _reject_job(self, job_id: str, message: str) -> None:
        try:
            await self.report_error(job_id, ErrorKind.PROCESSING_FAILED.value, {"message": message})
        except APIError as e:
            self.log.error("Failed to report job error", job_id=job_id, error=str(e))

    async def complete_job(self, job_id: str, result: Any, metadata: dict[str, Any] | None = None) -> Any:
        return await self._request(
            "POST",
            f"/job/{job_id}",
            {"result": result, "metadata": metadata or {}, "context": REPORT_CONTEXT},
        )

    async def report_error(self, job_id: str, error: str, metadata: dict[str, Any] | None = None) -> Any:
        return await self._request(
            "POST",
            f"/job/{job_id}/error",
            {"error": error, "metadata": metadata or {}, "context": REPORT_CONTEXT},
        )

    async def fetch_config(self) -> dict[str, Any]:
        data = await self._request("GET", "/configuration")
        return data if isinstance(data, dict) else {}

    async def ping(self) -> bool:
        """Liveness ping. Never raises."""
        try:
            await self._request("POST", "/ping")
        except APIError as e:
            self.log.warning("Ping failed", error=str(e))
            return False
        self.log.info("Ping successful")
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
