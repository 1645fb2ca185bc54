"""
Job execution: rule documents, variable substitution and the step pipeline.
"""

from datahive_worker.jobs.pipeline import StepPipeline
from datahive_worker.jobs.rules import parse_rule_document
from datahive_worker.jobs.substitution import substitute

__all__ = [
    "StepPipeline",
    "parse_rule_document",
    "substitute",
]
