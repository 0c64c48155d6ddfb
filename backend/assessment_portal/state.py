"""Immutable session state and its transition function."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Union

from pydantic import BaseModel

from .answers import set_answer
from .navigator import Position
from .timer import Clock, tick


class Phase(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FAILED = "failed"


class QuestionStatus(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class SessionState:
    phase: Phase = Phase.LOADING
    position: Optional[Position] = None
    answers: Mapping[str, BaseModel] = field(default_factory=dict)
    flagged: FrozenSet[str] = frozenset()
    clock: Clock = Clock()
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass(frozen=True)
class Loaded:
    position: Position
    clock: Clock


@dataclass(frozen=True)
class LoadFailed:
    message: str
    kind: str = "failed"


@dataclass(frozen=True)
class AnswerSet:
    key: str
    value: BaseModel


@dataclass(frozen=True)
class Moved:
    position: Position


@dataclass(frozen=True)
class FlagToggled:
    key: str


@dataclass(frozen=True)
class Ticked:
    pass


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class Submitted:
    pass


@dataclass(frozen=True)
class SubmitFailed:
    message: str


@dataclass(frozen=True)
class Reset:
    position: Position
    clock: Clock


Action = Union[
    Loaded, LoadFailed, AnswerSet, Moved, FlagToggled, Ticked, SubmitStarted, Submitted, SubmitFailed, Reset
]

# clock keeps running while a finalize request is in flight
_CLOCK_PHASES = (Phase.ACTIVE, Phase.SUBMITTING)


def transition(state: SessionState, action: Action) -> SessionState:
    if isinstance(action, Loaded):
        return replace(state, phase=Phase.ACTIVE, position=action.position, clock=action.clock, error=None, error_kind=None)
    if isinstance(action, LoadFailed):
        return replace(state, phase=Phase.FAILED, error=action.message, error_kind=action.kind)
    if isinstance(action, Reset):
        return SessionState(phase=Phase.ACTIVE, position=action.position, clock=action.clock)
    if isinstance(action, Ticked):
        if state.phase not in _CLOCK_PHASES:
            return state
        return replace(state, clock=tick(state.clock))
    if isinstance(action, Submitted):
        if state.phase is Phase.SUBMITTED:
            return state
        return replace(state, phase=Phase.SUBMITTED, error=None, error_kind=None)
    if isinstance(action, SubmitFailed):
        if state.phase is not Phase.SUBMITTING:
            return state
        return replace(state, phase=Phase.ACTIVE, error=action.message, error_kind="failed")

    # Everything below is user interaction and only applies to an active session
    if state.phase is not Phase.ACTIVE:
        return state
    if isinstance(action, AnswerSet):
        return replace(state, answers=set_answer(state.answers, action.key, action.value))
    if isinstance(action, Moved):
        return replace(state, position=action.position)
    if isinstance(action, FlagToggled):
        flagged = state.flagged - {action.key} if action.key in state.flagged else state.flagged | {action.key}
        return replace(state, flagged=flagged)
    if isinstance(action, SubmitStarted):
        return replace(state, phase=Phase.SUBMITTING, error=None, error_kind=None)
    raise TypeError(f"Unknown session action: {action!r}")


def status_of(state: SessionState, key: str) -> QuestionStatus:
    if key in state.flagged:
        return QuestionStatus.FLAGGED
    if key in state.answers:
        return QuestionStatus.ANSWERED
    return QuestionStatus.UNANSWERED


def status_counts(state: SessionState, keys: Iterable[str]) -> Dict[str, int]:
    counts = {status.value: 0 for status in QuestionStatus}
    for key in keys:
        counts[status_of(state, key).value] += 1
    return counts
