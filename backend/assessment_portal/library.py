from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import ValidationError

from .answers import Section
from .schemas import AptitudeQuestion, Assessment, AssessmentListItem, CaseStudy, MCQuestion, SAQuestion

SortKey = Literal["recent", "name", "questions"]

_SECTION_MODELS = {
    Section.MCQ: MCQuestion,
    Section.SAQ: SAQuestion,
    Section.CASE_STUDY: CaseStudy,
    Section.APTITUDE: AptitudeQuestion,
}

_LIST_FIELDS = {
    Section.MCQ: "mcqs",
    Section.SAQ: "saqs",
    Section.APTITUDE: "aptitude_questions",
}


class EditError(ValueError):
    pass


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _created_sort_key(item: AssessmentListItem) -> float:
    try:
        return _parse_timestamp(item.created_at).timestamp()
    except ValueError:
        return -math.inf


def filter_and_sort(
    items: Iterable[AssessmentListItem],
    *,
    search: str = "",
    difficulty: str = "all",
    sort_by: SortKey = "recent",
) -> List[AssessmentListItem]:
    query = search.strip().lower()
    matched = [
        item
        for item in items
        if (not query or query in item.role_name.lower() or any(query in s.lower() for s in item.target_skills))
        and (difficulty == "all" or item.difficulty_level == difficulty)
    ]
    if sort_by == "name":
        return sorted(matched, key=lambda i: i.role_name.lower())
    if sort_by == "questions":
        return sorted(matched, key=lambda i: i.total_questions, reverse=True)
    return sorted(matched, key=_created_sort_key, reverse=True)


def relative_date(value: str, now: Optional[datetime] = None) -> str:
    try:
        created = _parse_timestamp(value)
    except ValueError:
        return value
    now = now or datetime.now(timezone.utc)
    days = abs((now - created).days)
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return created.date().isoformat()


def share_path(assessment_id: str) -> str:
    return f"/role-assessment/preview/{assessment_id}"


def count_questions(assessment: Assessment) -> int:
    return (
        len(assessment.mcqs)
        + len(assessment.saqs)
        + (len(assessment.case_study.questions) if assessment.case_study else 0)
        + len(assessment.aptitude_questions)
    )


def replace_question(assessment: Assessment, section: Section, index: int, data: Dict[str, Any]) -> Assessment:
    model = _SECTION_MODELS.get(section)
    if model is None:
        raise EditError(f"Unknown section '{section.value}'")
    try:
        question = model.model_validate(data)
    except ValidationError as err:
        raise EditError(f"Invalid {section.value} question: {err.error_count()} field error(s)") from err

    if section is Section.CASE_STUDY:
        updated = assessment.model_copy(update={"case_study": question})
    else:
        field = _LIST_FIELDS[section]
        questions = list(getattr(assessment, field))
        if not 0 <= index < len(questions):
            raise EditError(f"No {section.value} question at index {index}")
        questions[index] = question
        updated = assessment.model_copy(update={field: questions})
    return updated.model_copy(update={"total_questions": count_questions(updated)})


def delete_question(assessment: Assessment, section: Section, index: int) -> Assessment:
    field = _LIST_FIELDS.get(section)
    if field is None:
        raise EditError(f"{section.value} questions cannot be deleted")
    questions = list(getattr(assessment, field))
    if not 0 <= index < len(questions):
        raise EditError(f"No {section.value} question at index {index}")
    del questions[index]
    updated = assessment.model_copy(update={field: questions})
    return updated.model_copy(update={"total_questions": count_questions(updated)})


@dataclass
class AssessmentDraft:
    assessment: Assessment
    has_changes: bool = False

    def replace(self, section: Section, index: int, data: Dict[str, Any]) -> None:
        self.assessment = replace_question(self.assessment, section, index, data)
        self.has_changes = True

    def delete(self, section: Section, index: int) -> None:
        self.assessment = delete_question(self.assessment, section, index)
        self.has_changes = True

    def saved(self, assessment: Assessment) -> None:
        self.assessment = assessment
        self.has_changes = False
