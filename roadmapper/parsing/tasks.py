"""Task extraction: tasks of one phase out of free-form model output."""

from __future__ import annotations

from roadmapper.models import DEFAULT_TASK_HOURS, Task, TaskStatus
from roadmapper.parsing.scanner import TASK_HEADING, HeadingPattern, scan_headings
from roadmapper.parsing.strategies import TaskStrategies


def task_id(phase_id: str, index: int) -> str:
    return f"{phase_id}-task-{index + 1}"


class TaskExtractor:
    """Builds tasks from "Task <n>:" or "Step <n>:" lines.

    Titles and order come from the text; the remaining fields come from the
    task strategies. Inter-task dependencies are never extracted.
    """

    def __init__(
        self,
        strategies: TaskStrategies | None = None,
        pattern: HeadingPattern = TASK_HEADING,
    ):
        self.strategies = strategies or TaskStrategies()
        self.pattern = pattern

    def extract(self, content: str, phase_id: str) -> tuple[Task, ...]:
        tasks: list[Task] = []
        for heading in scan_headings(content, self.pattern):
            title = heading.title
            hours = self.strategies.hours(content, title)
            tasks.append(Task(
                id=task_id(phase_id, heading.index),
                title=title,
                description=self.strategies.description(content, title),
                phase_id=phase_id,
                priority=self.strategies.priority(content, title),
                status=TaskStatus.TODO,
                estimated_hours=hours or DEFAULT_TASK_HOURS,
                tags=tuple(self.strategies.tags(content, title)),
            ))
        return tuple(tasks)


def parse_tasks(content: str, phase_id: str) -> tuple[Task, ...]:
    """Extract tasks for `phase_id` with the default strategies."""
    return TaskExtractor().extract(content, phase_id)
