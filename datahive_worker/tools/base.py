from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlparse

import structlog

from datahive_worker.core.exceptions import ToolValidationError
from datahive_worker.core.models import ToolContext, ToolResult

logger = structlog.get_logger()


class Tool(ABC):
    """Base class for all tools a pipeline step can ``use``.

    Subclasses pass their registry name to ``__init__`` and implement
    ``execute``. ``validate`` runs before every execution and should raise
    ``ToolValidationError`` for unusable parameters.
    """

    description: str = "No description provided"

    def __init__(self, name: str):
        if not name:
            raise ValueError("Tool name is required")
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def validate(self, params: dict[str, Any]) -> bool:
        """Check parameters before execution. Accepts anything by default."""
        return True

    @abstractmethod
    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult:
        """Logic for the tool goes here."""
        pass

    def metadata(self) -> dict[str, Any]:
        """Describe the tool for introspection (``datahive-worker tools``)."""
        return {
            "name": self.name,
            "description": self.description,
        }

    def get_logger(self, context: ToolContext | None):
        """Logger bound to this tool and, when known, the job."""
        base = context.logger if context is not None and context.logger is not None else logger
        if context is not None:
            return base.bind(tool=self.name, job_id=context.job_id)
        return base.bind(tool=self.name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def require_url(params: dict[str, Any]) -> str:
    """Shared url check for tools that talk to the network."""
    url = params.get("url") if isinstance(params, dict) else None
    if not url:
        raise ToolValidationError("Missing required parameter: url")
    if not isinstance(url, str):
        raise ToolValidationError(f"Invalid URL: {url!r}")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ToolValidationError(f"Invalid URL: {url}")
    return url
