"""Roadmap extraction: phases out of free-form model output."""

from __future__ import annotations

from roadmapper.models import DEFAULT_PHASE_DURATION_DAYS, Phase
from roadmapper.parsing.scanner import PHASE_HEADING, HeadingPattern, scan_headings
from roadmapper.parsing.strategies import PhaseStrategies


def phase_id(order: int) -> str:
    """Stable id of the phase discovered at 0-based position `order`."""
    return f"phase-{order + 1}"


class RoadmapExtractor:
    """Builds ordered phases from "Phase <n>: <title>" lines.

    The number in the heading is ignored; phases are ordered and identified
    by the position at which they were found. Each phase after the first
    depends on exactly the one before it.
    """

    def __init__(
        self,
        strategies: PhaseStrategies | None = None,
        pattern: HeadingPattern = PHASE_HEADING,
    ):
        self.strategies = strategies or PhaseStrategies()
        self.pattern = pattern

    def extract(self, content: str) -> tuple[Phase, ...]:
        phases: list[Phase] = []
        for heading in scan_headings(content, self.pattern):
            order = heading.index
            title = heading.title
            duration = self.strategies.duration_days(content, title)
            phases.append(Phase(
                id=phase_id(order),
                title=title,
                description=self.strategies.description(content, title),
                order=order,
                estimated_duration_days=duration or DEFAULT_PHASE_DURATION_DAYS,
                prerequisites=(phase_id(order - 1),) if order > 0 else (),
                deliverables=tuple(self.strategies.deliverables(content, title)),
            ))
        return tuple(phases)


def parse_roadmap(content: str) -> tuple[Phase, ...]:
    """Extract phases with the default strategies."""
    return RoadmapExtractor().extract(content)
