"""Per-field extraction strategies for phases and tasks.

The scanners establish titles and order; every other field comes from one
of these functions. Each takes the full model output and the section title
and returns the field value. The built-in ones return fixed defaults:

    phase description   "Description for <title>"
    phase duration      7 days
    phase deliverables  none
    task description    "Description for <title>"
    task priority       medium
    task hours          8
    task tags           none

Swap a single strategy by passing a modified PhaseStrategies/TaskStrategies
to the extractor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from roadmapper.models import DEFAULT_PHASE_DURATION_DAYS, DEFAULT_TASK_HOURS, Priority


def default_description(content: str, title: str) -> str:
    return f"Description for {title}"


def default_phase_duration(content: str, title: str) -> int:
    return DEFAULT_PHASE_DURATION_DAYS


def default_deliverables(content: str, title: str) -> tuple[str, ...]:
    return ()


def default_task_priority(content: str, title: str) -> Priority:
    return Priority.MEDIUM


def default_task_hours(content: str, title: str) -> int:
    return DEFAULT_TASK_HOURS


def default_task_tags(content: str, title: str) -> tuple[str, ...]:
    return ()


@dataclass(frozen=True)
class PhaseStrategies:
    description: Callable[[str, str], str] = default_description
    duration_days: Callable[[str, str], int | None] = default_phase_duration
    deliverables: Callable[[str, str], tuple[str, ...]] = default_deliverables


@dataclass(frozen=True)
class TaskStrategies:
    description: Callable[[str, str], str] = default_description
    priority: Callable[[str, str], Priority] = default_task_priority
    hours: Callable[[str, str], int | None] = default_task_hours
    tags: Callable[[str, str], tuple[str, ...]] = default_task_tags
