from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .answers import SECTION_ORDER, Section, answer_key
from .schemas import Assessment, TaskQuestion


@dataclass(frozen=True)
class Position:
    section: Section
    index: int = 0


@dataclass(frozen=True)
class QuestionRef:
    section: Section
    position: int
    question: Any

    @property
    def question_id(self) -> Any:
        return self.question.id

    @property
    def key(self) -> str:
        return answer_key(self.section, self.question.id, self.position)


class SectionNavigator:
    """Walks an assessment section by section: MCQ, SAQ, case study, aptitude.

    Forward moves cross into the next non-empty section. Backward moves stay
    inside the current section unless ``back_across_sections`` is set.
    """

    def __init__(self, assessment: Assessment, *, back_across_sections: bool = False) -> None:
        self.assessment = assessment
        self.back_across_sections = back_across_sections

    def questions(self, section: Section) -> List[Any]:
        if section is Section.MCQ:
            return list(self.assessment.mcqs)
        if section is Section.SAQ:
            return list(self.assessment.saqs)
        if section is Section.CASE_STUDY:
            return [self.assessment.case_study] if self.assessment.case_study else []
        if section is Section.APTITUDE:
            return list(self.assessment.aptitude_questions)
        return []

    def _later_sections(self, section: Section) -> Sequence[Section]:
        return SECTION_ORDER[SECTION_ORDER.index(section) + 1:]

    def _earlier_sections(self, section: Section) -> Sequence[Section]:
        return tuple(reversed(SECTION_ORDER[: SECTION_ORDER.index(section)]))

    def first(self) -> Position:
        for section in SECTION_ORDER:
            if self.questions(section):
                return Position(section, 0)
        return Position(Section.MCQ, 0)

    def next(self, pos: Position) -> Position:
        count = len(self.questions(pos.section))
        if pos.index < count - 1:
            return Position(pos.section, pos.index + 1)
        if pos.index == count - 1:
            for section in self._later_sections(pos.section):
                if self.questions(section):
                    return Position(section, 0)
        return pos

    def previous(self, pos: Position) -> Position:
        if pos.index > 0:
            return Position(pos.section, pos.index - 1)
        if self.back_across_sections:
            for section in self._earlier_sections(pos.section):
                count = len(self.questions(section))
                if count:
                    return Position(section, count - 1)
        return pos

    def jump(self, pos: Position, index: int) -> Position:
        if 0 <= index < len(self.questions(pos.section)):
            return Position(pos.section, index)
        return pos

    def is_last(self, pos: Position) -> bool:
        if any(self.questions(section) for section in self._later_sections(pos.section)):
            return False
        return pos.index == len(self.questions(pos.section)) - 1

    def current(self, pos: Position) -> Optional[QuestionRef]:
        questions = self.questions(pos.section)
        if 0 <= pos.index < len(questions):
            return QuestionRef(pos.section, pos.index, questions[pos.index])
        return None

    def progress(self, pos: Position) -> float:
        count = len(self.questions(pos.section))
        return (pos.index + 1) / count * 100 if count else 0.0

    def refs(self) -> List[QuestionRef]:
        return [
            QuestionRef(section, position, question)
            for section in SECTION_ORDER
            for position, question in enumerate(self.questions(section))
        ]


class FlatNavigator:
    """Walks a task's question list by index; any question can be jumped to."""

    def __init__(self, questions: Sequence[TaskQuestion]) -> None:
        self._questions = list(questions)

    def questions(self, section: Section = Section.TASK) -> List[TaskQuestion]:
        return list(self._questions)

    def first(self) -> Position:
        return Position(Section.TASK, 0)

    def next(self, pos: Position) -> Position:
        return self.jump(pos, pos.index + 1)

    def previous(self, pos: Position) -> Position:
        return self.jump(pos, pos.index - 1)

    def jump(self, pos: Position, index: int) -> Position:
        if 0 <= index < len(self._questions):
            return Position(Section.TASK, index)
        return pos

    def is_last(self, pos: Position) -> bool:
        return pos.index == len(self._questions) - 1

    def current(self, pos: Position) -> Optional[QuestionRef]:
        if 0 <= pos.index < len(self._questions):
            return QuestionRef(Section.TASK, pos.index, self._questions[pos.index])
        return None

    def progress(self, pos: Position) -> float:
        count = len(self._questions)
        return (pos.index + 1) / count * 100 if count else 0.0

    def refs(self) -> List[QuestionRef]:
        return [QuestionRef(Section.TASK, i, q) for i, q in enumerate(self._questions)]
