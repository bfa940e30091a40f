"""Project analysis parsing: a partial project plan out of model output.

The parser is best-effort. Text with nothing recognizable still yields a
plan built entirely from defaults; None is returned only when the input is
not text at all or a stage fails unexpectedly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from roadmapper.models import (
    DEFAULT_PROJECT_DURATION_DAYS,
    DEFAULT_PROJECT_TITLE,
    AIGeneratedContent,
    Complexity,
    PartialProjectPlan,
    ProjectStatus,
)
from roadmapper.parsing.roadmap import RoadmapExtractor
from roadmapper.parsing.scanner import (
    COMPLEXITY_LABELS,
    DESCRIPTION_LABELS,
    DURATION_LABELS,
    TITLE_LABELS,
    first_match,
)

logger = logging.getLogger(__name__)


def extract_title(content: str) -> str:
    return first_match(content, TITLE_LABELS) or DEFAULT_PROJECT_TITLE


def extract_description(content: str) -> str:
    return first_match(content, DESCRIPTION_LABELS) or ""


def extract_duration(content: str) -> int:
    """Overall duration in days: first of days, weeks (x7), months (x30)."""
    return first_match(content, DURATION_LABELS) or DEFAULT_PROJECT_DURATION_DAYS


def extract_complexity(content: str) -> Complexity:
    value = first_match(content, COMPLEXITY_LABELS)
    return Complexity(value) if value else Complexity.MEDIUM


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectAnalysisParser:
    """Combines field extraction and roadmap extraction into one plan."""

    def __init__(
        self,
        roadmap_extractor: RoadmapExtractor | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.roadmap_extractor = roadmap_extractor or RoadmapExtractor()
        self._clock = clock

    def parse(self, content: object, original_idea: str = "") -> PartialProjectPlan | None:
        if not isinstance(content, str):
            logger.error(
                "Failed to parse project analysis at stage 'input': expected text, got %s",
                type(content).__name__,
            )
            return None

        stage = "title"
        try:
            title = extract_title(content)
            stage = "description"
            description = extract_description(content)
            stage = "duration"
            duration = extract_duration(content)
            stage = "complexity"
            complexity = extract_complexity(content)
            stage = "roadmap"
            roadmap = self.roadmap_extractor.extract(content)
        except Exception:
            logger.exception(
                "Failed to parse project analysis at stage '%s' (%d chars)",
                stage, len(content),
            )
            return None

        logger.debug(
            "Parsed project analysis: %r, %d phases, %d days, %s complexity",
            title, len(roadmap), duration, complexity.value,
        )
        return PartialProjectPlan(
            title=title,
            description=description,
            status=ProjectStatus.DRAFT,
            ai_generated=AIGeneratedContent(
                original_idea=original_idea,
                guide=content,
                roadmap=roadmap,
                estimated_duration_days=duration,
                complexity=complexity,
                generated_at=self._clock(),
            ),
        )


def parse_project_analysis(content: object, original_idea: str = "") -> PartialProjectPlan | None:
    return ProjectAnalysisParser().parse(content, original_idea)
