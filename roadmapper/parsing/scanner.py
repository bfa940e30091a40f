"""Line/pattern scanner over free-form model output.

Two kinds of scanning live here:

- Heading scans walk the text line by line and yield one Heading per line
  that opens a new section ("Phase 2: Build", "Task 3: Write tests").
- Label scans try a fixed, ordered table of patterns against the whole
  text; the first pattern that matches anywhere wins.

Both are driven by the tables below so that priority and case handling are
visible in one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterator


# Markdown noise that may precede a heading: quotes, bullets, list numbers, bold/headers
_LEADING_DECORATION = r"^\s*(?:(?:[#>*+\-]|\d+[.)])\s*)*"
_LEADING_DECORATION_RE = re.compile(_LEADING_DECORATION)
# Closing run of an ATX header ("## Build ##"); a "#" attached to a word stays
_CLOSING_HASHES = re.compile(r"(?:^|\s+)#+$")
_EMPHASIS_PAIRS = ("**", "__")
_EMPHASIS_WRAPPERS = ("**", "__", "*", "_")


@dataclass(frozen=True)
class HeadingPattern:
    """A section heading: one or more labels followed by a number."""
    name: str
    labels: tuple[str, ...]
    # Lines whose title starts with one of these labels annotate a section
    # instead of opening a new one, see scan_headings.
    annotation_labels: tuple[str, ...] = ()

    @property
    def regex(self) -> re.Pattern[str]:
        labels = "|".join(re.escape(label) for label in self.labels)
        return re.compile(
            _LEADING_DECORATION
            + rf"(?:\*\*|__)?(?:{labels})\s+(?P<number>\d+)\s*(?:\*\*|__)?\s*"
            + r"(?P<sep>[:.\-–—])?\s*(?P<title>.*)$",
            re.IGNORECASE,
        )

    @property
    def annotation_regex(self) -> re.Pattern[str] | None:
        if not self.annotation_labels:
            return None
        labels = "|".join(re.escape(label) for label in self.annotation_labels)
        return re.compile(rf"^(?:{labels})\s*:", re.IGNORECASE)


@dataclass(frozen=True)
class Heading:
    """One discovered heading. index is the 0-based discovery position."""
    index: int
    title: str
    line_number: int


PHASE_HEADING = HeadingPattern(
    name="phase",
    labels=("Phase",),
    annotation_labels=(
        "complexity",
        "estimated duration",
        "duration",
        "deliverables",
        "prerequisites",
        "dependencies",
    ),
)

TASK_HEADING = HeadingPattern(
    name="task",
    labels=("Task", "Step"),
)


def clean_title(raw: str) -> str:
    """Strip whitespace, a closing `##` run and emphasis markers from a heading title.

    Only emphasis left unbalanced by markers opened before the label, or
    emphasis wrapping the whole title, is removed. A "#" or "_" that is part
    of the title ("Port to C#", "__init__ cleanup") is kept.
    """
    title = _CLOSING_HASHES.sub("", raw.strip()).strip()
    for marker in _EMPHASIS_PAIRS:
        if title.count(marker) % 2:
            if title.endswith(marker):
                title = title[:-len(marker)].rstrip()
            elif title.startswith(marker):
                title = title[len(marker):].lstrip()
    for marker in _EMPHASIS_WRAPPERS:
        inner = title[len(marker):-len(marker)]
        if (
            len(title) > 2 * len(marker)
            and title.startswith(marker)
            and title.endswith(marker)
            and marker not in inner
        ):
            return inner.strip()
    return title


def _title_below(lines: list[str], start: int, regex: re.Pattern[str]) -> str:
    """Title taken from the first non-blank line after a bare heading."""
    for line in lines[start:]:
        if not line.strip():
            continue
        if regex.match(line):
            return ""
        return clean_title(_LEADING_DECORATION_RE.sub("", line))
    return ""


def scan_headings(content: str, pattern: HeadingPattern) -> Iterator[Heading]:
    """Yield headings in the order they appear in `content`.

    A heading with nothing after the label ("### Phase 1:") takes its title
    from the next non-blank line, unless that line is a heading itself.
    A line such as "Phase 1 complexity: high" is an annotation and opens no
    section when nothing separates the number from the label, or when the
    number belongs to a section already seen.
    """
    regex = pattern.regex
    annotation = pattern.annotation_regex
    lines = content.splitlines()
    seen_numbers: set[str] = set()
    index = 0
    for line_number, line in enumerate(lines):
        match = regex.match(line)
        if match is None:
            continue
        number = match.group("number")
        title = clean_title(match.group("title"))
        if not title:
            title = _title_below(lines, line_number + 1, regex)
        elif annotation is not None and annotation.match(title):
            if match.group("sep") is None or number in seen_numbers:
                continue
        if not title:
            continue
        seen_numbers.add(number)
        yield Heading(index=index, title=title, line_number=line_number)
        index += 1


# ─── Label tables ─────────────────────────────────────────────


@dataclass(frozen=True)
class LabelPattern:
    """A pattern that extracts one field value from anywhere in the text."""
    field: str
    regex: re.Pattern[str]
    convert: Callable[[str], object] = str


def _label(text: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(text)}\s*([^\n]+)", re.IGNORECASE)


TITLE_LABELS: tuple[LabelPattern, ...] = (
    LabelPattern("title", _label("Project Title:"), clean_title),
    LabelPattern("title", _label("Title:"), clean_title),
)

DESCRIPTION_LABELS: tuple[LabelPattern, ...] = (
    LabelPattern("description", _label("Description:"), clean_title),
    LabelPattern("description", _label("Summary:"), clean_title),
)

# Checked in this order; the first unit that matches anywhere decides,
# regardless of where the other units appear in the text.
DURATION_LABELS: tuple[LabelPattern, ...] = (
    LabelPattern("duration", re.compile(r"\b(\d+)\s*days?\b", re.IGNORECASE), int),
    LabelPattern("duration", re.compile(r"\b(\d+)\s*weeks?\b", re.IGNORECASE), lambda v: int(v) * 7),
    LabelPattern("duration", re.compile(r"\b(\d+)\s*months?\b", re.IGNORECASE), lambda v: int(v) * 30),
)

COMPLEXITY_LABELS: tuple[LabelPattern, ...] = (
    LabelPattern(
        "complexity",
        re.compile(r"\bcomplexity\b[*_]*:?[*_\s]*(low|medium|high)\b", re.IGNORECASE),
        str.lower,
    ),
)


def first_match(content: str, table: tuple[LabelPattern, ...]) -> object | None:
    """Converted value of the first table entry matching `content`, else None."""
    for pattern in table:
        match = pattern.regex.search(content)
        if match:
            value = pattern.convert(match.group(1))
            if value not in ("", None):
                return value
    return None
