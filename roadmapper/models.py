"""Project plan data models.

Everything here is produced fresh by a parse call and never mutated by the
parser afterwards. Callers that need to enrich a record (attach tasks, merge
the partial plan into a stored project) derive a new copy instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


DEFAULT_PROJECT_TITLE = "Untitled Project"
DEFAULT_PROJECT_DURATION_DAYS = 30
DEFAULT_PHASE_DURATION_DAYS = 7
DEFAULT_TASK_HOURS = 8


class Complexity(Enum):
    """Overall project complexity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(Enum):
    """Task priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class ProjectStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


@dataclass(frozen=True)
class Task:
    """An actionable unit of work belonging to exactly one phase."""
    id: str
    title: str
    description: str
    phase_id: str
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    estimated_hours: int = DEFAULT_TASK_HOURS
    dependencies: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "phaseId": self.phase_id,
            "priority": self.priority.value,
            "status": self.status.value,
            "estimatedHours": self.estimated_hours,
            "dependencies": list(self.dependencies),
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class Phase:
    """A named stage of a project.

    prerequisites always holds at most the id of the preceding phase: the
    roadmap is a strict linear chain, not a dependency graph.
    """
    id: str
    title: str
    description: str
    order: int
    estimated_duration_days: int = DEFAULT_PHASE_DURATION_DAYS
    prerequisites: tuple[str, ...] = ()
    deliverables: tuple[str, ...] = ()
    tasks: tuple[Task, ...] = ()

    def with_tasks(self, tasks: tuple[Task, ...] | list[Task]) -> Phase:
        """Return a copy of this phase carrying the given tasks."""
        return replace(self, tasks=tuple(tasks))

    @property
    def estimated_hours(self) -> int:
        return sum(t.estimated_hours for t in self.tasks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "order": self.order,
            "estimatedDuration": self.estimated_duration_days,
            "prerequisites": list(self.prerequisites),
            "deliverables": list(self.deliverables),
            "tasks": [t.to_dict() for t in self.tasks],
        }


@dataclass(frozen=True)
class AIGeneratedContent:
    """The part of a project plan derived from model output."""
    original_idea: str
    guide: str
    roadmap: tuple[Phase, ...]
    generated_at: datetime
    estimated_duration_days: int = DEFAULT_PROJECT_DURATION_DAYS
    complexity: Complexity = Complexity.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalIdea": self.original_idea,
            "guide": self.guide,
            "roadmap": [p.to_dict() for p in self.roadmap],
            "estimatedDuration": self.estimated_duration_days,
            "complexity": self.complexity.value,
            "generatedAt": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class PartialProjectPlan:
    """Project plan fields producible from model text alone.

    Identifiers, timestamps, schedule, progress and user customizations are
    owned by whoever stores the project, not by the parser.
    """
    ai_generated: AIGeneratedContent
    title: str = DEFAULT_PROJECT_TITLE
    description: str = ""
    status: ProjectStatus = field(default=ProjectStatus.DRAFT)

    @property
    def roadmap(self) -> tuple[Phase, ...]:
        return self.ai_generated.roadmap

    def with_roadmap(self, roadmap: tuple[Phase, ...] | list[Phase]) -> PartialProjectPlan:
        return replace(self, ai_generated=replace(self.ai_generated, roadmap=tuple(roadmap)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "aiGenerated": self.ai_generated.to_dict(),
        }
