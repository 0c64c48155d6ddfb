from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


Difficulty = Literal["easy", "medium", "hard"]
QuestionId = Union[int, str]


class MCQuestion(BaseModel):
    id: QuestionId
    question: str
    options: List[str] = Field(default_factory=list)
    correct_answer: int
    skill: str = ""
    difficulty: str = ""
    explanation: str = ""


class SAQuestion(BaseModel):
    id: QuestionId
    question: str
    sample_answer: str = ""
    skill: str = ""
    difficulty: str = ""


class CaseStudy(BaseModel):
    id: QuestionId
    title: str
    scenario: str
    questions: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    difficulty: str = ""


class AptitudeQuestion(BaseModel):
    id: QuestionId
    question: str
    correct_answer: str
    explanation: str = ""


class SkillCoverage(BaseModel):
    skill_name: str
    question_count: int = 0
    coverage_percentage: float = 0.0
    quality: str = ""


class Assessment(BaseModel):
    assessment_id: str
    role_name: str
    target_skills: List[str] = Field(default_factory=list)
    difficulty_level: Difficulty = "medium"
    mcqs: List[MCQuestion] = Field(default_factory=list)
    saqs: List[SAQuestion] = Field(default_factory=list)
    case_study: Optional[CaseStudy] = None
    aptitude_questions: List[AptitudeQuestion] = Field(default_factory=list)
    skill_coverage: List[SkillCoverage] = Field(default_factory=list)
    total_questions: int = 0
    estimated_duration_minutes: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    is_published: Optional[bool] = None


class GenerateAssessmentRequest(BaseModel):
    role: str
    skills: List[str]
    difficulty: Difficulty = "medium"


class UpdateAssessmentRequest(BaseModel):
    assessment_id: str
    role_name: str
    target_skills: List[str]
    difficulty_level: Difficulty
    mcqs: List[MCQuestion]
    saqs: List[SAQuestion]
    case_study: Optional[CaseStudy]
    aptitude_questions: List[AptitudeQuestion]
    skill_coverage: List[SkillCoverage]
    total_questions: int
    estimated_duration_minutes: int

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> "UpdateAssessmentRequest":
        return cls(
            assessment_id=assessment.assessment_id,
            role_name=assessment.role_name,
            target_skills=assessment.target_skills,
            difficulty_level=assessment.difficulty_level,
            mcqs=assessment.mcqs,
            saqs=assessment.saqs,
            case_study=assessment.case_study,
            aptitude_questions=assessment.aptitude_questions,
            skill_coverage=assessment.skill_coverage,
            total_questions=assessment.total_questions,
            estimated_duration_minutes=assessment.estimated_duration_minutes,
        )


class AssessmentStatus(BaseModel):
    assessment_id: str
    status: Literal["generating", "completed", "failed"]
    progress_percentage: float = 0
    current_step: str = ""
    estimated_completion_seconds: int = 0
    error_message: Optional[str] = None


class AssessmentListItem(BaseModel):
    assessment_id: str
    role_name: str
    target_skills: List[str] = Field(default_factory=list)
    difficulty_level: str = ""
    total_questions: int = 0
    estimated_duration_minutes: int = 0
    created_by_email: str = ""
    created_at: str
    updated_at: str = ""
    is_published: bool = False
    deployed_courses_count: int = 0


class Course(BaseModel):
    id: int
    name: str = ""


# Task assessments (richer variant)

class QuestionBlock(BaseModel):
    id: str = ""
    type: str = "paragraph"
    props: Dict[str, Any] = Field(default_factory=dict)
    content: List[Any] = Field(default_factory=list)
    children: List[Any] = Field(default_factory=list)

    def text(self) -> str:
        return "".join(c if isinstance(c, str) else str((c or {}).get("text", "")) for c in self.content)


class TaskQuestion(BaseModel):
    id: int
    title: str = ""
    blocks: List[QuestionBlock] = Field(default_factory=list)
    type: Literal["objective", "subjective"] = "subjective"
    input_type: Literal["text", "code", "audio"] = "text"
    response_type: Literal["chat", "exam"] = "exam"
    coding_languages: Optional[List[str]] = None
    max_attempts: Optional[int] = None
    is_feedback_shown: Optional[bool] = None
    position: int = 0


class AssessmentSubmission(BaseModel):
    id: int
    user_id: int
    task_id: int
    cohort_id: Optional[int] = None
    course_id: Optional[int] = None
    started_at: str
    submitted_at: Optional[str] = None
    time_spent_seconds: int = 0
    total_score: float = 0
    max_possible_score: float = 0
    percentage_score: float = 0
    status: Literal["in_progress", "submitted", "graded"] = "in_progress"
    attempt_number: int = 1
    is_final_submission: bool = False


class AssessmentTask(BaseModel):
    id: int
    title: str
    type: str = "assessment"
    questions: List[TaskQuestion] = Field(default_factory=list)
    total_questions: int = 0
    estimated_time_minutes: Optional[int] = None
    instructions: Optional[str] = None
    is_timed: bool = False
    time_limit_minutes: Optional[int] = None


class AssessmentSessionPayload(BaseModel):
    submission: AssessmentSubmission
    task: AssessmentTask
    current_question_index: int = 0
    progress_percentage: float = 0
    can_navigate_freely: bool = True
    saved_responses: Dict[int, str] = Field(default_factory=dict)


class StudentQuestionResult(BaseModel):
    question_id: int
    question_title: str = ""
    user_response: str = ""
    correct_answer: Optional[str] = None
    ai_feedback: str = ""
    score: float = 0
    max_score: float = 0
    percentage: float = 0
    is_correct: Optional[bool] = None
    time_spent_seconds: int = 0
    scorecard_breakdown: Optional[Any] = None


class StudentAssessmentResult(BaseModel):
    submission_id: int
    task_title: str
    total_score: float
    max_possible_score: float
    percentage_score: float
    grade_letter: str
    rank_in_cohort: Optional[int] = None
    total_cohort_participants: Optional[int] = None
    time_spent_minutes: float = 0
    submitted_at: str
    question_results: List[StudentQuestionResult] = Field(default_factory=list)
    overall_feedback: str = ""
    areas_for_improvement: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
