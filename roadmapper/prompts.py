"""Prompt templates and rendering.

Templates use `{name}` placeholders. Rendering is a single pass over the
template: every occurrence of a known placeholder gets the same value,
substituted values are never expanded again, and placeholders without a
value are left as they are.
"""

from __future__ import annotations

import re
from typing import Mapping


PROJECT_ANALYSIS = "project_analysis"
ROADMAP_GENERATION = "roadmap_generation"
TASK_BREAKDOWN = "task_breakdown"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


# Template definitions: id -> (description, template)
TEMPLATES: dict[str, tuple[str, str]] = {
    PROJECT_ANALYSIS: (
        "Turn a free-text project idea into a guide and phased roadmap",
        """Analyze the following project idea and create a comprehensive development plan:

Project Idea: {idea}
Additional Context: {context}

Please provide:
1. A detailed project guide explaining the concept, goals, and potential challenges
2. A structured roadmap with phases, each including:
   - Phase name and description
   - Key deliverables
   - Estimated duration
   - Prerequisites and dependencies
3. Timeline estimates for the entire project
4. Complexity assessment (low/medium/high)
5. Resource requirements and recommendations

Format your response so it can be parsed:
- Start with "Project Title: <title>" and "Description: <one paragraph>"
- Introduce each phase on its own line as "Phase <number>: <phase name>"
- State the overall timeline as "Estimated duration: <number> days|weeks|months"
- State the complexity as "Complexity: low|medium|high\"""",
    ),

    ROADMAP_GENERATION: (
        "Break a known project into ordered phases",
        """Create a detailed project roadmap for the following project:

Project: {title}
Description: {description}
Estimated Duration: {duration} days
Complexity: {complexity}

Break down into phases with:
- Clear phase objectives
- Specific deliverables
- Task breakdowns
- Time estimates
- Dependencies between phases
- Success criteria for each phase

Introduce each phase on its own line as "Phase <number>: <phase name>".""",
    ),

    TASK_BREAKDOWN: (
        "Break one phase into actionable tasks",
        """Break down the following project phase into specific, actionable tasks:

Phase: {phaseTitle}
Description: {phaseDescription}
Duration: {duration} days
Deliverables: {deliverables}

For each task, provide:
- Clear, actionable title
- Detailed description
- Estimated hours
- Priority level (low/medium/high)
- Dependencies on other tasks
- Skills/resources required

Introduce each task on its own line as "Task <number>: <task title>".""",
    ),
}


def list_templates() -> list[tuple[str, str]]:
    """Return list of (id, description) for all available templates."""
    return [(tid, desc) for tid, (desc, _) in TEMPLATES.items()]


def get_template(template_id: str) -> str:
    if template_id not in TEMPLATES:
        raise ValueError(
            f"Unknown template: {template_id}. "
            f"Available: {', '.join(TEMPLATES.keys())}"
        )
    return TEMPLATES[template_id][1]


def template_variables(template_id: str) -> list[str]:
    """Placeholder names used by a template, in first-appearance order."""
    names: list[str] = []
    for name in _PLACEHOLDER.findall(get_template(template_id)):
        if name not in names:
            names.append(name)
    return names


def render_text(template: str, variables: Mapping[str, str]) -> str:
    """Substitute `{name}` placeholders in an arbitrary template string."""
    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def render(template_id: str, variables: Mapping[str, str]) -> str:
    """Render a registered template with the given variables."""
    return render_text(get_template(template_id), variables)


class PromptBuilder:
    """Renders templates from a template table (the built-in one by default)."""

    def __init__(self, templates: Mapping[str, str] | None = None):
        if templates is None:
            templates = {tid: text for tid, (_, text) in TEMPLATES.items()}
        self._templates = dict(templates)

    @property
    def template_ids(self) -> list[str]:
        return list(self._templates)

    def render(self, template_id: str, variables: Mapping[str, str]) -> str:
        try:
            template = self._templates[template_id]
        except KeyError:
            raise ValueError(
                f"Unknown template: {template_id}. "
                f"Available: {', '.join(self._templates)}"
            ) from None
        return render_text(template, variables)
