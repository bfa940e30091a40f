"""Heuristic extraction of plans, phases and tasks from model output."""

from roadmapper.parsing.analysis import ProjectAnalysisParser, parse_project_analysis
from roadmapper.parsing.roadmap import RoadmapExtractor, parse_roadmap
from roadmapper.parsing.strategies import PhaseStrategies, TaskStrategies
from roadmapper.parsing.tasks import TaskExtractor, parse_tasks

__all__ = [
    "PhaseStrategies",
    "ProjectAnalysisParser",
    "RoadmapExtractor",
    "TaskExtractor",
    "TaskStrategies",
    "parse_project_analysis",
    "parse_roadmap",
    "parse_tasks",
]
