"""
Core models and types for the DataHive worker.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class JobStatus(str, Enum):
    RECEIVED = "received"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Error identifiers sent to ``/job/{id}/error``."""
    PROCESSING_FAILED = "PROCESSING_FAILED"


# =============================================================================
# Job payloads (as served by the API)
# =============================================================================


class BaseSchema(BaseModel):
    """Base schema for API payloads: accepts camelCase aliases, keeps unknown keys."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class RuleCollection(BaseSchema):
    yaml_rules: str | None = Field(default=None, alias="yamlRules")


class Job(BaseSchema):
    id: str
    url: str | None = None
    type: str | None = None
    rule_collection: RuleCollection | None = Field(default=None, alias="ruleCollection")
    vars: dict[str, Any] | None = None
    variables: dict[str, Any] | None = None
    params: dict[str, Any] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        if v is None or v == "":
            raise ValueError("job id cannot be empty")
        return str(v)

    def resolve_variables(self) -> dict[str, Any]:
        """Variables for substitution: vars, else variables, else params."""
        for source in (self.vars, self.variables, self.params):
            if source is not None:
                return dict(source)
        return {}

    @property
    def yaml_rules(self) -> str | None:
        if self.rule_collection is None:
            return None
        return self.rule_collection.yaml_rules

    def raw_rule_collection(self) -> dict[str, Any] | None:
        """The rule collection as received, used by the legacy fallback."""
        if self.rule_collection is None:
            return None
        return self.rule_collection.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Tool execution
# =============================================================================


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""
    result: Any
    should_continue: bool = True
    output: dict[str, Any] | None = None  # {<output name>: result}

    @classmethod
    def with_output(cls, result: Any, output_name: str | None) -> "ToolResult":
        return cls(
            result=result,
            should_continue=True,
            output={output_name: result} if output_name else None,
        )


@dataclass
class ToolContext:
    """What a tool gets to know about the job it runs in."""
    job_id: str
    variables: dict[str, Any] = field(default_factory=dict)
    logger: Any = None


@dataclass
class PipelineOutcome:
    """Aggregated result of running one job through the step pipeline."""
    result: Any = None
    executed: bool = False
    steps_run: int = 0
    stopped_early: bool = False
    fallback: str | None = None  # "offscreen" | "skipped" when the legacy path ran
    outputs: dict[str, Any] = field(default_factory=dict)
