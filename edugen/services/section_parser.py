"""Splits generated markdown documents into named sections for display.

Lesson plans are generated as markdown where every section title is a
level-3 heading and the lesson details sit in a bullet list above the first
heading, using the ``- **Key:** value`` convention.
"""

import re

__all__ = [
    "DETAILS_KEY",
    "LESSON_PLAN_DETAIL_FIELDS",
    "NOT_PROVIDED",
    "extract_lesson_plan_details",
    "get_detail_value",
    "parse_sections",
]

DETAILS_KEY = "Details"
NOT_PROVIDED = "Not Provided"

H3_REGEX = re.compile(r"^###\s+(.*)$")

LESSON_PLAN_DETAIL_FIELDS: list[str] = [
    "Subject",
    "Week",
    "Duration",
    "Form",
    "Strand",
    "Sub-Strand",
    "Content Standard",
    "Learning Outcome(s)",
    "Learning Indicator(s)",
    "Essential Question(s)",
    "Pedagogical Strategies",
    "Teaching & Learning Resources",
    "Keywords",
]


def parse_sections(document: str) -> dict[str, str]:
    """Split ``document`` on level-3 headings.

    Text before the first heading is stored under ``"Details"`` (always
    present). A repeated heading title overwrites the earlier section.
    """
    sections: dict[str, str] = {}
    current_title = DETAILS_KEY
    buffer: list[str] = []

    for line in (document or "").split("\n"):
        line = line.removesuffix("\r")
        match = H3_REGEX.match(line)
        if match:
            sections[current_title] = "\n".join(buffer).strip()
            current_title = match.group(1).strip()
            buffer = []
        else:
            buffer.append(line)
    sections[current_title] = "\n".join(buffer).strip()
    return sections


def get_detail_value(key: str, details: str) -> str:
    """Return the value of the ``- **key:** value`` bullet in ``details``."""
    pattern = re.compile(rf"- \*\*{re.escape(key)}:\*\*\s*([\s\S]*?)(?=\n- \*\*|$)")
    match = pattern.search(details or "")
    return match.group(1).strip() if match else NOT_PROVIDED


def extract_lesson_plan_details(details: str) -> dict[str, str]:
    return {field: get_detail_value(field, details) for field in LESSON_PLAN_DETAIL_FIELDS}
