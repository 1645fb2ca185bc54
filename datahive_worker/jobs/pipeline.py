"""
Step pipeline: runs one job's rule document through the tool registry.

Steps execute strictly in document order, one at a time. Each step is
variable-substituted as a whole, then dispatched by its ``use`` field. A
step whose ToolResult has ``should_continue=False`` ends the run early.
Any exception from validation or execution aborts the whole job.

Jobs that predate rule documents fall back to a single offscreen scrape
(``type`` offscreen / fetch-and-extract) or a "skipped" placeholder.
"""

from typing import Any

import structlog

from datahive_worker.core.logging import enrich_event
from datahive_worker.core.models import Job, PipelineOutcome, ToolContext
from datahive_worker.jobs.rules import parse_rule_document
from datahive_worker.jobs.substitution import find_placeholders, substitute
from datahive_worker.tools.registry import ToolRegistry

logger = structlog.get_logger()

# Job types served by the single-shot scrape path
LEGACY_SCRAPE_TYPES = ("offscreen", "fetch-and-extract")
SKIPPED_RESULT = {"status": "skipped", "reason": "no_steps"}


class StepPipeline:
    """Interpret a job's steps against a tool registry."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def run(self, job: Job) -> PipelineOutcome:
        log = logger.bind(job_id=job.id)
        variables = job.resolve_variables()
        log.debug("Job variables", variables=variables)

        context = ToolContext(job_id=job.id, variables=dict(variables), logger=log)
        outcome = PipelineOutcome()

        steps = parse_rule_document(job.yaml_rules)
        missing = sorted(find_placeholders(steps) - set(variables))
        if missing:
            enrich_event(variables_missing=missing)

        for index, step in enumerate(steps, start=1):
            processed = substitute(step, variables)
            name = processed.get("use")

            if not isinstance(name, str) or not self.registry.has(name):
                log.warning("Skipping step with unknown tool", step=index, use=name)
                continue

            log.info("Executing step", step=index, use=name)
            tool_result = await self.registry.execute(name, processed, context)
            outcome.steps_run += 1

            if tool_result.output:
                # Collected only: later steps still substitute from the job variables
                outcome.outputs.update(tool_result.output)

            if tool_result.result is not None:
                outcome.result = tool_result.result
                outcome.executed = True

            if tool_result.should_continue is False:
                log.info("Step indicated to stop processing", step=index, use=name)
                outcome.stopped_early = True
                break

        if not outcome.executed:
            await self._run_fallback(job, variables, context, outcome, log)

        enrich_event(
            steps_total=len(steps),
            steps_run=outcome.steps_run,
            stopped_early=outcome.stopped_early,
            fallback=outcome.fallback,
        )
        return outcome

    async def _run_fallback(
        self,
        job: Job,
        variables: dict[str, Any],
        context: ToolContext,
        outcome: PipelineOutcome,
        log: Any,
    ) -> None:
        """Single-shot handling for jobs without a usable step list."""
        if job.type in LEGACY_SCRAPE_TYPES:
            params = job.params or {}
            url = substitute(params.get("url") or job.url, variables)
            rules = substitute(params.get("rules") or job.raw_rule_collection(), variables)

            outcome.fallback = "offscreen"
            if url:
                tool_result = await self.registry.execute("offscreen", {"url": url, "rules": rules}, context)
                outcome.result = tool_result.result
            else:
                log.warning("No URL for fallback job processing", type=job.type)
        else:
            log.warning("No executable steps found for job", type=job.type)
            outcome.fallback = "skipped"
            outcome.result = dict(SKIPPED_RESULT)
