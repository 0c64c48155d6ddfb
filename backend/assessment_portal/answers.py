from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class Section(str, Enum):
    MCQ = "mcq"
    SAQ = "saq"
    CASE_STUDY = "case_study"
    APTITUDE = "aptitude"
    # flat task question list (task assessments)
    TASK = "task"


SECTION_ORDER: Tuple[Section, ...] = (Section.MCQ, Section.SAQ, Section.CASE_STUDY, Section.APTITUDE)


class ChoiceAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["choice"] = "choice"
    index: int


class TextAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def is_blank(self) -> bool:
        return not self.text.strip()


class CaseStudyAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["case_study"] = "case_study"
    responses: Tuple[str, ...] = ()

    def with_response(self, position: int, text: str, size: int) -> "CaseStudyAnswer":
        """Return a copy with sub-answer ``position`` replaced, padded to ``size`` entries."""
        responses = list(self.responses) + [""] * max(0, size - len(self.responses))
        responses[position] = text
        return CaseStudyAnswer(responses=tuple(responses))


AnswerValue = Annotated[Union[ChoiceAnswer, TextAnswer, CaseStudyAnswer], Field(discriminator="kind")]

EXPECTED_KIND: Dict[Section, str] = {
    Section.MCQ: "choice",
    Section.SAQ: "text",
    Section.CASE_STUDY: "case_study",
    Section.APTITUDE: "text",
    Section.TASK: "text",
}


class AnswerShapeError(ValueError):
    pass


def answer_key(section: Section, question_id: object, position: int) -> str:
    # position disambiguates ids repeated across (or within) sections
    return f"{section.value}_{question_id}_{position}"


def check_shape(section: Section, value: BaseModel) -> None:
    expected = EXPECTED_KIND[section]
    kind = getattr(value, "kind", None)
    if kind != expected:
        raise AnswerShapeError(f"{section.value} questions take a '{expected}' answer, got '{kind}'")


def set_answer(answers: Mapping[str, BaseModel], key: str, value: BaseModel) -> Dict[str, BaseModel]:
    updated = dict(answers)
    updated[key] = value
    return updated


def get_answer(answers: Mapping[str, BaseModel], key: str) -> Optional[BaseModel]:
    return answers.get(key)
