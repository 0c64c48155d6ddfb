from __future__ import annotations

import math
from fractions import Fraction
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .answers import ChoiceAnswer, Section, TextAnswer, answer_key
from .schemas import AptitudeQuestion, Assessment, MCQuestion, StudentAssessmentResult
from .timer import format_minutes

PASS_THRESHOLD = 70.0
SUBJECTIVE_CREDIT_RATIO = 0.7


class SkillTally(BaseModel):
    correct: int = 0
    total: int = 0


class TakeResult(BaseModel):
    score: int
    total_questions: int
    percentage: int
    pass_threshold: float
    passed: bool
    time_spent: int
    correct_answers: int
    skill_breakdown: Dict[str, SkillTally] = Field(default_factory=dict)


def is_mcq_correct(question: MCQuestion, answer: Optional[BaseModel]) -> bool:
    return isinstance(answer, ChoiceAnswer) and answer.index == question.correct_answer


def is_aptitude_correct(question: AptitudeQuestion, answer: Optional[BaseModel]) -> bool:
    if not isinstance(answer, TextAnswer):
        return False
    return answer.text.strip().lower() == question.correct_answer.strip().lower()


def subjective_count(assessment: Assessment) -> int:
    return len(assessment.saqs) + (1 if assessment.case_study else 0)


def placeholder_subjective_credit(count: int, ratio: float = SUBJECTIVE_CREDIT_RATIO) -> int:
    """Flat credit for short-answer and case-study items, which are not graded here."""
    # Fraction(str(...)) keeps 0.7 exact so e.g. 10 * 0.7 cannot land a hair under 7
    return math.floor(count * Fraction(str(ratio)))


def is_passed(percentage: float, threshold: float = PASS_THRESHOLD) -> bool:
    return percentage >= threshold


def score_locally(
    assessment: Assessment,
    answers: Mapping[str, BaseModel],
    *,
    time_spent: int = 0,
    threshold: float = PASS_THRESHOLD,
    subjective_ratio: float = SUBJECTIVE_CREDIT_RATIO,
) -> TakeResult:
    correct = 0
    total = 0
    breakdown: Dict[str, SkillTally] = {}

    for position, q in enumerate(assessment.mcqs):
        total += 1
        hit = is_mcq_correct(q, answers.get(answer_key(Section.MCQ, q.id, position)))
        if hit:
            correct += 1
        if q.skill:
            tally = breakdown.setdefault(q.skill, SkillTally())
            tally.total += 1
            tally.correct += 1 if hit else 0

    for position, q in enumerate(assessment.aptitude_questions):
        total += 1
        if is_aptitude_correct(q, answers.get(answer_key(Section.APTITUDE, q.id, position))):
            correct += 1

    subjective = subjective_count(assessment)
    total += subjective
    correct += placeholder_subjective_credit(subjective, subjective_ratio)

    percentage = (correct / total) * 100 if total > 0 else 0.0
    return TakeResult(
        score=correct,
        total_questions=total,
        percentage=round(percentage),
        pass_threshold=threshold,
        passed=is_passed(percentage, threshold),
        time_spent=time_spent,
        correct_answers=correct,
        skill_breakdown=breakdown,
    )


def performance_level(percentage: float) -> str:
    if percentage >= 90:
        return "Excellent"
    if percentage >= 80:
        return "Good"
    if percentage >= 70:
        return "Satisfactory"
    if percentage >= 60:
        return "Needs Improvement"
    return "Unsatisfactory"


def results_summary(result: StudentAssessmentResult) -> str:
    lines = [
        f"Assessment Results: {result.task_title}",
        f"Score: {result.total_score:g}/{result.max_possible_score:g} ({result.percentage_score:.1f}%)",
        f"Grade: {result.grade_letter}",
        f"Time Spent: {format_minutes(result.time_spent_minutes)}",
        f"Submitted: {result.submitted_at}",
        "",
        "Question Breakdown:",
    ]
    for i, q in enumerate(result.question_results, 1):
        lines.append(f"{i}. {q.question_title}: {q.score:g}/{q.max_score:g} ({q.percentage:.1f}%)")
    return "\n".join(lines)
