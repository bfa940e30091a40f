"""Planner service — the generation round trips a planning UI performs.

Wires prompts, the dispatcher and the parsers together:

    analyze_project_idea  idea -> model analysis text
    generate_roadmap      known project -> phased roadmap text
    breakdown_tasks       one phase -> task list text
    plan_project          idea -> PartialProjectPlan
    expand_tasks          plan -> plan with tasks attached to each phase
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from roadmapper.ai.base import (
    ErrorKind,
    Failure,
    GenerationError,
    GenerationRequest,
    GenerationResult,
    SamplingParameters,
)
from roadmapper.ai.credentials import CredentialContext, FileCredentialStore
from roadmapper.ai.dispatcher import GenerationRequestDispatcher
from roadmapper.ai.retry import Dispatcher, RetryingDispatcher
from roadmapper.ai.transport import GenaiTransport, HttpxTransport
from roadmapper.config import RoadmapperConfig
from roadmapper.models import Complexity, PartialProjectPlan, Phase
from roadmapper.parsing.analysis import ProjectAnalysisParser
from roadmapper.parsing.tasks import TaskExtractor
from roadmapper.prompts import PROJECT_ANALYSIS, ROADMAP_GENERATION, TASK_BREAKDOWN, PromptBuilder

logger = logging.getLogger(__name__)

NO_CONTEXT = "No additional context provided"

_DEFAULT_SAMPLING: dict[str, SamplingParameters] = {
    "analysis": SamplingParameters(temperature=0.7, max_output_tokens=3000),
    "roadmap": SamplingParameters(temperature=0.6, max_output_tokens=2500),
    "tasks": SamplingParameters(temperature=0.5, max_output_tokens=2000),
}


@dataclass
class PlanOutcome:
    """Result of plan_project: the plan is set only when generation and parsing succeeded."""
    result: GenerationResult
    plan: PartialProjectPlan | None = None

    @property
    def is_success(self) -> bool:
        return self.result.is_success and self.plan is not None


@dataclass
class TaskExpansion:
    """Result of expand_tasks. failures maps phase id -> error for phases left without tasks."""
    plan: PartialProjectPlan
    failures: dict[str, GenerationError] = field(default_factory=dict)


class PlannerService:
    """High-level planning operations on top of a dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        prompts: PromptBuilder | None = None,
        parser: ProjectAnalysisParser | None = None,
        task_extractor: TaskExtractor | None = None,
        sampling: dict[str, SamplingParameters] | None = None,
        max_parallel: int = 3,
    ):
        self.dispatcher = dispatcher
        self.prompts = prompts or PromptBuilder()
        self.parser = parser or ProjectAnalysisParser()
        self.task_extractor = task_extractor or TaskExtractor()
        self.sampling = {**_DEFAULT_SAMPLING, **(sampling or {})}
        self.max_parallel = max_parallel

    @classmethod
    def from_config(cls, config: RoadmapperConfig) -> PlannerService:
        """Build the full stack (store, credentials, transport, retry) from config."""
        store = FileCredentialStore(config.credentials.path)
        credentials = CredentialContext.load(store, use_env=config.credentials.use_env)
        transport = GenaiTransport() if config.api.transport == "genai" else HttpxTransport(config.api.base_url)
        dispatcher: Dispatcher = GenerationRequestDispatcher(
            transport=transport,
            credentials=credentials,
            model=config.api.model,
            timeout=config.api.timeout,
        )
        if config.retry.max_attempts > 1:
            dispatcher = RetryingDispatcher(
                dispatcher,
                max_attempts=config.retry.max_attempts,
                delay=config.retry.delay,
                backoff=config.retry.backoff,
            )
        return cls(
            dispatcher,
            sampling={op: config.sampling_for(op) for op in config.sampling},
            max_parallel=config.global_.max_parallel,
        )

    async def aclose(self) -> None:
        """Close the dispatcher's transport if it holds a connection pool."""
        transport = getattr(self.dispatcher, "transport", None)
        close = getattr(transport, "aclose", None)
        if close is not None:
            await close()

    def _request(self, operation: str, template_id: str, variables: dict[str, str]) -> GenerationRequest:
        return GenerationRequest(
            prompt_text=self.prompts.render(template_id, variables),
            sampling=self.sampling.get(operation, SamplingParameters()),
        )

    async def analyze_project_idea(
        self,
        idea: str,
        context: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        request = self._request("analysis", PROJECT_ANALYSIS, {
            "idea": idea,
            "context": context or NO_CONTEXT,
        })
        return await self.dispatcher.dispatch(request, cancel=cancel)

    async def generate_roadmap(
        self,
        title: str,
        description: str,
        duration: int,
        complexity: Complexity | str,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        level = complexity.value if isinstance(complexity, Complexity) else complexity
        request = self._request("roadmap", ROADMAP_GENERATION, {
            "title": title,
            "description": description,
            "duration": str(duration),
            "complexity": level,
        })
        return await self.dispatcher.dispatch(request, cancel=cancel)

    async def breakdown_tasks(
        self,
        phase_title: str,
        phase_description: str,
        duration: int,
        deliverables: Sequence[str],
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        request = self._request("tasks", TASK_BREAKDOWN, {
            "phaseTitle": phase_title,
            "phaseDescription": phase_description,
            "duration": str(duration),
            "deliverables": ", ".join(deliverables),
        })
        return await self.dispatcher.dispatch(request, cancel=cancel)

    async def plan_project(
        self,
        idea: str,
        context: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PlanOutcome:
        """Analyze an idea and parse the answer into a partial plan."""
        result = await self.analyze_project_idea(idea, context, cancel=cancel)
        if not result.is_success:
            return PlanOutcome(result=result)

        plan = self.parser.parse(result.text, original_idea=idea)
        if plan is None:
            return PlanOutcome(result=Failure.of(ErrorKind.PARSE_FAILURE))
        logger.info("Planned %r with %d phases", plan.title, len(plan.roadmap))
        return PlanOutcome(result=result, plan=plan)

    async def expand_tasks(
        self,
        plan: PartialProjectPlan,
        on_progress: Callable[[str, str], None] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> TaskExpansion:
        """Fetch and attach tasks for every phase, a few phases at a time."""
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def expand(phase: Phase) -> tuple[Phase, GenerationError | None]:
            async with semaphore:
                if on_progress:
                    on_progress(phase.id, "running")
                result = await self.breakdown_tasks(
                    phase.title,
                    phase.description,
                    phase.estimated_duration_days,
                    phase.deliverables,
                    cancel=cancel,
                )
                if not result.is_success:
                    if on_progress:
                        on_progress(phase.id, "failed")
                    return phase, result.error
                tasks = self.task_extractor.extract(result.text, phase.id)
                if on_progress:
                    on_progress(phase.id, "done")
                return phase.with_tasks(tasks), None

        outcomes = await asyncio.gather(*(expand(p) for p in plan.roadmap))

        failures = {phase.id: error for phase, error in outcomes if error is not None}
        if failures:
            logger.warning("Task breakdown failed for %d of %d phases", len(failures), len(outcomes))
        return TaskExpansion(
            plan=plan.with_roadmap([phase for phase, _ in outcomes]),
            failures=failures,
        )
