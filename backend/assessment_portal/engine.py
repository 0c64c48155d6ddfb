from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel

from .answers import CaseStudyAnswer, Section, TextAnswer, check_shape
from .autosave import SaveCoordinator
from .backend_client import BackendClient, BackendError, NotFound, PermissionDenied
from .navigator import FlatNavigator, Position, QuestionRef, SectionNavigator
from .schemas import Assessment, AssessmentSessionPayload, TaskQuestion
from .scoring import PASS_THRESHOLD, SUBJECTIVE_CREDIT_RATIO, TakeResult, score_locally
from .settings import settings
from .state import (
    Action,
    AnswerSet,
    FlagToggled,
    Loaded,
    LoadFailed,
    Moved,
    Phase,
    Reset,
    SessionState,
    SubmitFailed,
    SubmitStarted,
    Submitted,
    Ticked,
    status_counts,
    status_of,
    transition,
)
from .timer import Ticker, format_clock, start_clock

logger = logging.getLogger(__name__)


class Navigation(str, Enum):
    SECTIONED = "sectioned"
    FLAT = "flat"


class Scoring(str, Enum):
    LOCAL = "local"
    SERVER = "server"


@dataclass(frozen=True)
class SessionConfig:
    navigation: Navigation
    scoring: Scoring
    autosave: bool = False
    pass_threshold: float = PASS_THRESHOLD
    subjective_credit_ratio: float = SUBJECTIVE_CREDIT_RATIO
    autosave_delay: float = 3.0
    tick_seconds: float = 1.0
    back_across_sections: bool = False

    @classmethod
    def role_quiz(cls, **overrides: Any) -> "SessionConfig":
        config = cls(
            navigation=Navigation.SECTIONED,
            scoring=Scoring.LOCAL,
            pass_threshold=settings.pass_threshold,
            subjective_credit_ratio=settings.subjective_credit_ratio,
            tick_seconds=settings.timer_tick_seconds,
        )
        return replace(config, **overrides)

    @classmethod
    def task_exam(cls, **overrides: Any) -> "SessionConfig":
        config = cls(
            navigation=Navigation.FLAT,
            scoring=Scoring.SERVER,
            autosave=True,
            autosave_delay=settings.autosave_delay_seconds,
            tick_seconds=settings.timer_tick_seconds,
        )
        return replace(config, **overrides)


class SessionError(Exception):
    """The session cannot do what was asked in its current state."""


class SessionClosed(SessionError):
    pass


CompletionHook = Callable[["AssessmentSession"], Union[None, Awaitable[None]]]


class AssessmentSession:
    def __init__(
        self,
        client: BackendClient,
        config: SessionConfig,
        *,
        session_id: Optional[str] = None,
        on_complete: Optional[CompletionHook] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.client = client
        self.config = config
        self.on_complete = on_complete
        self.state = SessionState()
        self.assessment: Optional[Assessment] = None
        self.task_session: Optional[AssessmentSessionPayload] = None
        self.navigator: Optional[Union[SectionNavigator, FlatNavigator]] = None
        self.result: Optional[TakeResult] = None
        self._ticker = Ticker(self._on_tick, config.tick_seconds)
        self._saves: Optional[SaveCoordinator] = None
        if config.scoring is Scoring.SERVER:
            self._saves = SaveCoordinator(self._post_answer, delay=config.autosave_delay)
        self._submit_lock = asyncio.Lock()
        self._questions_by_key: Dict[str, TaskQuestion] = {}
        # per-question seconds, reported with each saved answer
        self._question_seconds: Dict[str, int] = {}
        self._entered_at = 0
        self.last_active = time.monotonic()

    # Session Loader

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def idle_seconds(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.last_active

    def dispatch(self, action: Action) -> SessionState:
        self.state = transition(self.state, action)
        if not isinstance(action, Ticked):
            self.touch()
        return self.state

    async def load_assessment(self, assessment_id: Optional[str]) -> SessionState:
        if not assessment_id:
            return self.dispatch(LoadFailed("Assessment ID is required", "missing"))
        try:
            assessment = await self.client.get_role_assessment(assessment_id)
        except NotFound:
            return self.dispatch(LoadFailed("Assessment not found", "not_found"))
        except BackendError as err:
            logger.error("Error fetching assessment %s: %s", assessment_id, err)
            return self.dispatch(LoadFailed("Failed to load assessment", err.kind))
        self.assessment = assessment
        self.navigator = SectionNavigator(assessment, back_across_sections=self.config.back_across_sections)
        self.dispatch(Loaded(self.navigator.first(), start_clock()))
        self._entered_at = 0
        self._ticker.start()
        return self.state

    async def start_task(
        self,
        task_id: Optional[int],
        *,
        cohort_id: Optional[int] = None,
        course_id: Optional[int] = None,
    ) -> SessionState:
        if task_id is None:
            return self.dispatch(LoadFailed("Task ID is required", "missing"))
        try:
            payload = await self.client.start_assessment(task_id, cohort_id=cohort_id, course_id=course_id)
        except NotFound:
            return self.dispatch(LoadFailed("Assessment not found", "not_found"))
        except PermissionDenied:
            return self.dispatch(LoadFailed("You do not have permission to take this assessment", "forbidden"))
        except BackendError as err:
            logger.error("Error starting task %s: %s", task_id, err)
            return self.dispatch(LoadFailed("Failed to start assessment", err.kind))

        self.task_session = payload
        task = payload.task
        self.navigator = FlatNavigator(task.questions)
        limit = task.time_limit_minutes * 60 if task.is_timed and task.time_limit_minutes else None
        clock = start_clock(payload.submission.time_spent_seconds, limit)
        position = self.navigator.jump(self.navigator.first(), payload.current_question_index)
        self.dispatch(Loaded(position, clock))
        self._entered_at = clock.elapsed

        for ref in self.navigator.refs():
            self._questions_by_key[ref.key] = ref.question
            saved = payload.saved_responses.get(ref.question.id)
            if saved:
                value = TextAnswer(text=saved)
                self.dispatch(AnswerSet(ref.key, value))
                self._saves.mark_acknowledged(ref.key, value)

        if payload.submission.status != "in_progress":
            # nothing left to answer; results are already with the backend
            self.dispatch(SubmitStarted())
            self.dispatch(Submitted())
            return self.state
        self._ticker.start()
        return self.state

    @property
    def submission_id(self) -> Optional[int]:
        return self.task_session.submission.id if self.task_session else None

    # Question Navigator

    def _require_loaded(self) -> Union[SectionNavigator, FlatNavigator]:
        if self.navigator is None or self.state.position is None:
            raise SessionError(self.state.error or "Assessment is not loaded")
        return self.navigator

    def _require_active(self) -> Union[SectionNavigator, FlatNavigator]:
        navigator = self._require_loaded()
        if self.state.phase is not Phase.ACTIVE:
            raise SessionClosed("Assessment already submitted")
        return navigator

    def current(self) -> Optional[QuestionRef]:
        if self.navigator is None or self.state.position is None:
            return None
        return self.navigator.current(self.state.position)

    def is_last(self) -> bool:
        navigator = self._require_loaded()
        return navigator.is_last(self.state.position)

    def progress(self) -> float:
        navigator = self._require_loaded()
        return navigator.progress(self.state.position)

    async def next(self) -> SessionState:
        navigator = self._require_active()
        return await self._move(navigator.next(self.state.position))

    async def previous(self) -> SessionState:
        navigator = self._require_active()
        return await self._move(navigator.previous(self.state.position))

    async def jump(self, index: int) -> SessionState:
        navigator = self._require_active()
        return await self._move(navigator.jump(self.state.position, index))

    async def _move(self, target: Position) -> SessionState:
        if self._saves is not None:
            await self._save_current()
        if target != self.state.position:
            self._leave_current()
        return self.dispatch(Moved(target))

    def _leave_current(self) -> None:
        ref = self.current()
        if ref is None:
            return
        spent = self.state.clock.elapsed - self._entered_at
        self._question_seconds[ref.key] = self._question_seconds.get(ref.key, 0) + max(0, spent)
        self._entered_at = self.state.clock.elapsed

    # Answer Store

    def answer(self, value: BaseModel) -> SessionState:
        self._require_active()
        ref = self.current()
        if ref is None:
            raise SessionError("No question to answer")
        check_shape(ref.section, value)
        self.dispatch(AnswerSet(ref.key, value))
        if self.config.autosave and self._saves is not None and isinstance(value, TextAnswer) and not value.is_blank():
            self._saves.schedule(ref.key, value)
        return self.state

    def answer_case_study_part(self, part: int, text: str) -> SessionState:
        self._require_active()
        ref = self.current()
        if ref is None or ref.section is not Section.CASE_STUDY:
            raise SessionError("Current question is not a case study")
        size = len(ref.question.questions)
        if not 0 <= part < size:
            raise SessionError(f"Case study has no sub-question {part}")
        existing = self.state.answers.get(ref.key)
        base = existing if isinstance(existing, CaseStudyAnswer) else CaseStudyAnswer()
        return self.answer(base.with_response(part, text, size))

    def current_answer(self) -> Optional[BaseModel]:
        ref = self.current()
        if ref is None:
            return None
        return self.state.answers.get(ref.key)

    def toggle_flag(self) -> SessionState:
        self._require_active()
        ref = self.current()
        if ref is None:
            raise SessionError("No question to flag")
        return self.dispatch(FlagToggled(ref.key))

    def reset(self) -> SessionState:
        navigator = self._require_active()
        if self.config.scoring is Scoring.SERVER:
            # saved answers and the countdown live on the submission
            raise SessionError("Answers already saved to this submission cannot be reset")
        self._question_seconds.clear()
        self._entered_at = 0
        return self.dispatch(Reset(navigator.first(), start_clock()))

    # Autosave

    async def save(self) -> bool:
        self._require_active()
        if self._saves is None:
            raise SessionError("Answers are only saved when the assessment is graded by the server")
        return await self._save_current()

    async def _save_current(self) -> bool:
        ref = self.current()
        if ref is None or self._saves is None:
            return True
        value = self.state.answers.get(ref.key)
        if not isinstance(value, TextAnswer) or value.is_blank():
            return True
        return await self._saves.save_now(ref.key, value)

    async def _post_answer(self, key: str, value: BaseModel) -> None:
        question = self._questions_by_key[key]
        spent = self._question_seconds.get(key, 0)
        ref = self.current()
        if ref is not None and ref.key == key:
            spent += max(0, self.state.clock.elapsed - self._entered_at)
        await self.client.submit_question(
            self.submission_id,
            question.id,
            value.text,
            response_type=question.input_type,
            time_spent_seconds=spent,
        )

    # Timer

    async def _on_tick(self) -> None:
        before = self.state.clock
        self.dispatch(Ticked())
        if not before.expired and self.state.clock.expired:
            await self._on_time_up()

    async def _on_time_up(self) -> None:
        logger.info("Time is up for session %s, submitting", self.session_id)
        try:
            await self.submit()
        except Exception:
            # not retried; the taker can still submit by hand
            logger.exception("Error auto-submitting assessment session %s", self.session_id)

    def elapsed_label(self) -> str:
        clock = self.state.clock
        if clock.remaining is not None:
            return f"{format_clock(clock.remaining)} remaining"
        return f"{format_clock(clock.elapsed)} elapsed"

    # Scorer/Submitter

    async def submit(self) -> SessionState:
        async with self._submit_lock:
            if self.state.phase is Phase.SUBMITTED:
                return self.state
            navigator = self._require_active()
            if self.config.scoring is Scoring.LOCAL and navigator.refs() and not navigator.is_last(self.state.position):
                raise SessionError("Reach the last question before submitting")
            self._leave_current()
            if self.config.scoring is Scoring.LOCAL:
                self.result = score_locally(
                    self.assessment,
                    self.state.answers,
                    time_spent=self.state.clock.elapsed,
                    threshold=self.config.pass_threshold,
                    subjective_ratio=self.config.subjective_credit_ratio,
                )
                self.dispatch(SubmitStarted())
                self.dispatch(Submitted())
            else:
                self.dispatch(SubmitStarted())
                try:
                    await self._save_current()
                    await self._saves.drain()
                    await self.client.finalize(self.submission_id)
                except BackendError as err:
                    logger.error("Error submitting assessment %s: %s", self.submission_id, err)
                    self.dispatch(SubmitFailed("Failed to submit assessment. Please try again."))
                    raise
                self.dispatch(Submitted())
                self._saves.cancel_all()
            self._ticker.stop()
        if self.on_complete is not None:
            outcome = self.on_complete(self)
            if asyncio.iscoroutine(outcome):
                await outcome
        return self.state

    async def close(self) -> None:
        self._ticker.stop()
        if self._saves is not None:
            self._saves.cancel_all()

    # View

    def question_statuses(self) -> List[Dict[str, Any]]:
        if self.navigator is None:
            return []
        current = self.current()
        return [
            {
                "section": ref.section.value,
                "position": ref.position,
                "question_id": ref.question_id,
                "status": status_of(self.state, ref.key).value,
                "current": current is not None and ref.key == current.key,
            }
            for ref in self.navigator.refs()
        ]

    def snapshot(self) -> Dict[str, Any]:
        state = self.state
        ref = self.current()
        answer = self.current_answer()
        keys = [r.key for r in self.navigator.refs()] if self.navigator else []
        section_total = len(self.navigator.questions(ref.section)) if self.navigator and ref else 0
        return {
            "session_id": self.session_id,
            "phase": state.phase.value,
            "error": state.error,
            "error_kind": state.error_kind,
            "section": state.position.section.value if state.position else None,
            "index": state.position.index if state.position else None,
            "section_total": section_total,
            "question": _public_question(ref.question) if ref else None,
            "answer": answer.model_dump() if answer is not None else None,
            "status": status_of(state, ref.key).value if ref else None,
            "progress_percentage": self.navigator.progress(state.position) if self.navigator and state.position else 0.0,
            "is_last": self.navigator.is_last(state.position) if self.navigator and state.position else False,
            "elapsed_seconds": state.clock.elapsed,
            "remaining_seconds": state.clock.remaining,
            "timer": self.elapsed_label(),
            "counts": status_counts(state, keys),
            "submission_id": self.submission_id,
            "result": self.result.model_dump() if self.result else None,
        }


# grading data stays on the server while the assessment is being taken
_HIDDEN_FIELDS = {"correct_answer", "explanation", "sample_answer"}


def _public_question(question: BaseModel) -> Dict[str, Any]:
    return question.model_dump(exclude=_HIDDEN_FIELDS)
