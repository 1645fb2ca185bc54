"""
Core package initialization.
"""

from datahive_worker.core.config import Settings, get_settings
from datahive_worker.core.models import (
    ErrorKind,
    Job,
    JobStatus,
    PipelineOutcome,
    RuleCollection,
    ToolContext,
    ToolResult,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Enums
    "JobStatus",
    "ErrorKind",
    # Models
    "Job",
    "RuleCollection",
    "ToolResult",
    "ToolContext",
    "PipelineOutcome",
]
