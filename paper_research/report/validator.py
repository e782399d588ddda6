"""Structural and content checks for a finished report.

Pure functions over the markdown text. Each check is independent; the report
is complete only when all of them pass.
"""

import re
from typing import Optional

from ..models import ReportValidation
from .template import (
    REFERENCES_HEADING,
    RELATED_WORK_HEADING,
    REQUIRED_QUESTION_HEADINGS,
    REQUIRED_REPORT_HEADINGS,
)

MIN_SECTION_CHARS = 120

COMPARISON_KEYWORDS = re.compile(
    r"(compare|compared|difference|differ|similar|whereas|unlike|in contrast)", re.IGNORECASE
)
NUMERIC_CITATION = re.compile(r"\[\d+\]")
URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)
_HEADING_PREFIX = re.compile(r"^(#+)\s+")


def has_heading(markdown: str, heading: str) -> bool:
    return re.search(rf"^{re.escape(heading)}\s*$", markdown, re.MULTILINE) is not None


def get_section_body(markdown: str, heading: str) -> str:
    """Text between ``heading`` and the next heading of equal or shallower depth."""
    lines = markdown.replace("\r\n", "\n").split("\n")
    target = heading.strip()
    try:
        start = next(i for i, line in enumerate(lines) if line.strip() == target)
    except StopIteration:
        return ""

    level_match = _HEADING_PREFIX.match(heading)
    level = len(level_match.group(1)) if level_match else 1
    end = len(lines)
    for i in range(start + 1, len(lines)):
        match = _HEADING_PREFIX.match(lines[i].strip())
        if match and len(match.group(1)) <= level:
            end = i
            break
    return "\n".join(lines[start + 1:end]).strip()


def has_related_work_comparison(markdown: str) -> bool:
    text = get_section_body(markdown, RELATED_WORK_HEADING)
    has_keyword = COMPARISON_KEYWORDS.search(text) is not None
    has_citation = NUMERIC_CITATION.search(text) is not None or URL_PATTERN.search(text) is not None
    return has_keyword and has_citation


def has_reference_urls(markdown: str) -> bool:
    return URL_PATTERN.search(get_section_body(markdown, REFERENCES_HEADING)) is not None


def validate_report(markdown: str, min_section_chars: Optional[int] = None) -> ReportValidation:
    """
    Validate report text against the required template.

    Args:
        markdown: Report text
        min_section_chars: Override for the per-question body length floor

    Returns:
        ReportValidation snapshot
    """
    floor = MIN_SECTION_CHARS if min_section_chars is None else min_section_chars
    missing = [h for h in REQUIRED_REPORT_HEADINGS if not has_heading(markdown, h)]
    answered = all(len(get_section_body(markdown, h)) >= floor for h in REQUIRED_QUESTION_HEADINGS)
    comparison = has_related_work_comparison(markdown)
    references = has_reference_urls(markdown)
    all_headings = not missing

    return ReportValidation(
        has_all_required_headings=all_headings,
        missing_headings=missing,
        answered_required_questions=answered,
        has_related_work_comparison=comparison,
        has_reference_urls=references,
        is_complete=all_headings and answered and comparison and references,
    )
