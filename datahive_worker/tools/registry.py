"""
Tool registry: name -> Tool mapping and the single point of dispatch.

The registry is filled once at startup and only read afterwards; it is not
guarded for concurrent writers.
"""

from collections.abc import Iterable
from typing import Any

import structlog

from datahive_worker.core.exceptions import ToolNotFoundError, ToolRegistrationError
from datahive_worker.core.models import ToolContext, ToolResult
from datahive_worker.tools.base import Tool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing and executing tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            TypeError: If ``tool`` is not a ``Tool``
            ToolRegistrationError: If the name is already taken (the first
                registration is kept)
        """
        if not isinstance(tool, Tool):
            raise TypeError("Tool must extend the Tool base class")

        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool with name '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug("Registered tool", tool=tool.name)

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, self.list())
        return tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def all_metadata(self) -> list[dict[str, Any]]:
        return [tool.metadata() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any], context: ToolContext) -> ToolResult:
        """Resolve, validate and run a tool; the ToolResult is returned as is."""
        tool = self.get(name)
        tool.validate(params)
        return await tool.execute(params, context)

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    # Defined last: inside the class body the name shadows the builtin
    def list(self) -> list[str]:
        """Registered tool names in registration order."""
        return [*self._tools]
