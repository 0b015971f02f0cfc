# Quiz attempt state and the transitions that drive it.
#
# AttemptState is immutable: every transition takes a state and returns a new
# one. Backend failures are attached to the returned state as a Notice; an
# AuthRequired failure from any call resets to UNAUTHENTICATED.
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from quiz_client.api_client import QuizApiClient
from quiz_client.errors import (
    ApiError,
    Classification,
    LocalInvariantViolation,
    NoQuestions,
    format_api_error,
    is_auth_required,
)
from quiz_client.review import progress_percent
from quiz_client.schemas import (
    AttemptResult,
    AttemptReview,
    AttemptStart,
    Identity,
    Question,
    QuestionType,
    QuizSummary,
    SubmitAttemptRequest,
)
from quiz_client.session import resolve_identity

logger = logging.getLogger("quiz_client.attempt")

LOGIN_REQUIRED = "Login required."
NO_QUESTIONS = "no_questions"


class Stage(str, Enum):
    AUTHENTICATING = "AUTHENTICATING"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    QUIZ_SELECTION = "QUIZ_SELECTION"
    ATTEMPT_STARTING = "ATTEMPT_STARTING"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTING = "SUBMITTING"
    COMPLETE = "COMPLETE"


# Human-readable message attached to a state after a failed operation.
class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str
    message: str


class AttemptState(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: Stage = Stage.AUTHENTICATING
    identity: Optional[Identity] = None
    quizzes: List[QuizSummary] = Field(default_factory=list)
    selected_quiz_id: Optional[int] = None
    questions: List[Question] = Field(default_factory=list)
    pointer: int = 0
    answers: Dict[int, List[int]] = Field(default_factory=dict)
    attempt: Optional[AttemptStart] = None
    result: Optional[AttemptResult] = None
    review: Optional[AttemptReview] = None
    notice: Optional[Notice] = None

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.pointer < len(self.questions):
            return self.questions[self.pointer]
        return None

    @property
    def current_selection(self) -> List[int]:
        question = self.current_question
        if question is None:
            return []
        return list(self.answers.get(question.id, []))

    @property
    def current_number(self) -> int:
        return self.pointer + 1

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return bool(self.questions) and self.pointer == len(self.questions) - 1

    @property
    def progress_percent(self) -> int:
        return progress_percent(self.current_number, self.total_questions)

    @property
    def can_clear(self) -> bool:
        question = self.current_question
        return question is not None and question.type is QuestionType.MULTI


def _notice(exc: Exception) -> Notice:
    if isinstance(exc, ApiError):
        message = format_api_error(exc) if exc.violations else str(exc)
        return Notice(kind=exc.kind.value, message=message)
    if isinstance(exc, NoQuestions):
        return Notice(kind=NO_QUESTIONS, message=str(exc))
    return Notice(kind="error", message=str(exc))


# Hard reset after the backend session is gone. Nothing from the attempt survives.
def session_lost(state: Optional[AttemptState] = None) -> AttemptState:
    if state is not None and state.stage is not Stage.UNAUTHENTICATED:
        logger.info("Session lost during %s; resetting to login", state.stage.value)
    return AttemptState(
        stage=Stage.UNAUTHENTICATED,
        notice=Notice(kind=Classification.AUTH_REQUIRED.value, message=LOGIN_REQUIRED),
    )


def require_stage(state: AttemptState, *stages: Stage) -> None:
    if state.stage not in stages:
        allowed = ", ".join(stage.value for stage in stages)
        raise LocalInvariantViolation(
            f"operation requires stage {allowed}, current stage is {state.stage.value}"
        )


# Options carry no score while answering.
def _redact(question: Question) -> Question:
    options = [option.model_copy(update={"score": None}) for option in question.options]
    return question.model_copy(update={"options": options})


async def authenticate(api: QuizApiClient, state: Optional[AttemptState] = None) -> AttemptState:
    try:
        identity = await resolve_identity(api)
    except ApiError as exc:
        return AttemptState(stage=Stage.UNAUTHENTICATED, notice=_notice(exc))
    if identity is None:
        return AttemptState(stage=Stage.UNAUTHENTICATED)
    return await load_quizzes(api, AttemptState(stage=Stage.QUIZ_SELECTION, identity=identity))


async def load_quizzes(api: QuizApiClient, state: AttemptState) -> AttemptState:
    require_stage(state, Stage.QUIZ_SELECTION)
    try:
        quizzes = await api.list_quizzes()
    except ApiError as exc:
        if is_auth_required(exc):
            return session_lost(state)
        logger.warning("Failed to load quizzes: %s", exc)
        return state.model_copy(update={"notice": _notice(exc)})
    return state.model_copy(update={"quizzes": quizzes, "notice": None})


# Fetch questions, then start the attempt. Either failure leaves selection as it was.
async def start_quiz(api: QuizApiClient, state: AttemptState, quiz_id: int) -> AttemptState:
    require_stage(state, Stage.QUIZ_SELECTION)
    try:
        questions = await api.get_questions(quiz_id)
        if not questions:
            raise NoQuestions(quiz_id)
        attempt = await api.start_attempt(quiz_id)
    except ApiError as exc:
        if is_auth_required(exc):
            return session_lost(state)
        logger.warning("Failed to start quiz %s: %s", quiz_id, exc)
        return state.model_copy(update={"notice": _notice(exc)})
    except NoQuestions as exc:
        logger.info("Quiz %s has no questions", quiz_id)
        return state.model_copy(update={"notice": _notice(exc)})

    return state.model_copy(
        update={
            "stage": Stage.IN_PROGRESS,
            "selected_quiz_id": quiz_id,
            "questions": [_redact(question) for question in questions],
            "pointer": 0,
            "answers": {question.id: [] for question in questions},
            "attempt": attempt,
            "result": None,
            "review": None,
            "notice": None,
        }
    )


def _answers_open(state: AttemptState) -> bool:
    return state.stage is Stage.IN_PROGRESS and state.result is None


# Radio semantics for SINGLE, checkbox semantics for MULTI.
def toggle_option(state: AttemptState, option_id: int) -> AttemptState:
    question = state.current_question
    if question is None or not _answers_open(state):
        return state
    if option_id not in question.option_ids:
        return state

    if question.type is QuestionType.SINGLE:
        selected = [option_id]
    else:
        chosen = set(state.answers.get(question.id, [])) ^ {option_id}
        selected = [oid for oid in question.option_ids if oid in chosen]
    return state.model_copy(update={"answers": {**state.answers, question.id: selected}})


def clear_current(state: AttemptState) -> AttemptState:
    question = state.current_question
    if question is None or not _answers_open(state):
        return state
    if question.type is not QuestionType.MULTI:
        raise LocalInvariantViolation("clearing is only available for MULTI questions")
    return state.model_copy(update={"answers": {**state.answers, question.id: []}})


def can_advance(state: AttemptState) -> bool:
    question = state.current_question
    if question is None or state.stage is not Stage.IN_PROGRESS:
        return False
    selected = state.answers.get(question.id, [])
    if question.required and not selected:
        return False
    if question.required and question.type is QuestionType.SINGLE and len(selected) != 1:
        return False
    return True


# Move to the next question, or submit when the current one is the last.
async def advance(
    api: QuizApiClient, state: AttemptState, now: Optional[datetime] = None
) -> AttemptState:
    require_stage(state, Stage.IN_PROGRESS)
    if state.is_last_question and state.attempt is None:
        raise LocalInvariantViolation("Attempt not started. Please reload.")
    if not can_advance(state):
        raise LocalInvariantViolation("current question does not allow advancing yet")
    if not state.is_last_question:
        return state.model_copy(update={"pointer": state.pointer + 1, "notice": None})
    return await _submit(api, state, now or datetime.now(tz=timezone.utc))


async def _submit(api: QuizApiClient, state: AttemptState, now: datetime) -> AttemptState:
    attempt_id = state.attempt.attempt_id
    result = state.result
    try:
        if result is None:
            payload = SubmitAttemptRequest(submitted_at=now, answers=state.answers)
            result = await api.submit_attempt(attempt_id, payload)
        review = await api.get_review(attempt_id)
    except ApiError as exc:
        if is_auth_required(exc):
            return session_lost(state)
        logger.warning("Submission of attempt %s failed: %s", attempt_id, exc)
        return state.model_copy(
            update={"stage": Stage.IN_PROGRESS, "result": result, "notice": _notice(exc)}
        )
    logger.info("Attempt %s complete: %s/%s", attempt_id, result.score, result.total_points)
    return state.model_copy(
        update={"stage": Stage.COMPLETE, "result": result, "review": review, "notice": None}
    )


def back_to_selection(state: AttemptState) -> AttemptState:
    require_stage(state, Stage.COMPLETE)
    return AttemptState(
        stage=Stage.QUIZ_SELECTION, identity=state.identity, quizzes=state.quizzes
    )
