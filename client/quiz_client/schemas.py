# Pydantic request/response schemas for the quiz backend.
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel


class QuestionType(str, Enum):
    SINGLE = "SINGLE"
    MULTI = "MULTI"


class ScoringMode(str, Enum):
    BINARY = "BINARY"
    WEIGHTED = "WEIGHTED"


# Shared config: camelCase on the wire, snake_case in Python.
class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# One external OAuth identity linked to the user.
class LinkedIdentity(ApiModel):
    provider: str
    provider_subject: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    picture_url: Optional[str] = None
    last_login_at: Optional[datetime] = None


# Response model for /api/me. A numeric user id is mandatory.
class Identity(ApiModel):
    user_id: StrictInt
    full_name: Optional[str] = None
    email: Optional[str] = None
    identities: List[LinkedIdentity] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return self.full_name or self.email or "User"


# Response model for quiz listings.
class QuizSummary(ApiModel):
    id: int
    title: str
    description: Optional[str] = None
    active: bool
    created_at: datetime


# Answer option; `score` is only populated in review payloads.
class Option(ApiModel):
    id: int
    option_no: int
    text: str
    score: Optional[Decimal] = None


# Response model for a question while taking a quiz.
class Question(ApiModel):
    id: int
    question_no: int
    type: QuestionType
    text: str
    scoring_mode: ScoringMode = ScoringMode.BINARY
    points: Decimal
    required: bool
    options: List[Option]

    @property
    def option_ids(self) -> List[int]:
        return [option.id for option in self.options]


# Response model for a started attempt.
class AttemptStart(ApiModel):
    attempt_id: StrictInt
    quiz_id: int
    started_at: datetime


# Request payload for submitting a whole answer set.
class SubmitAttemptRequest(ApiModel):
    submitted_at: datetime
    answers: Dict[int, List[int]]


# Response model for a submitted attempt summary.
class AttemptResult(ApiModel):
    attempt_id: int
    quiz_id: int
    status: str
    score: Decimal
    total_points: Decimal
    started_at: datetime
    submitted_at: datetime


# Per-question breakdown inside an attempt review.
class ReviewItem(ApiModel):
    question_id: int
    question_no: int
    type: QuestionType
    text: str
    achieved_score: Decimal
    max_score: Decimal
    required: bool
    options: List[Option]
    selected_option_ids: List[int] = Field(default_factory=list)
    correct_option_ids: List[int] = Field(default_factory=list)
    is_correct: bool = False


# Response model for the full attempt review.
class AttemptReview(ApiModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    status: str
    score: Decimal
    total_points: Decimal
    started_at: datetime
    submitted_at: datetime
    items: List[ReviewItem]


# Field-level violation reported by the backend.
class ApiViolation(ApiModel):
    field: str
    message: str


# Structured error body returned for failed requests.
class ApiErrorBody(ApiModel):
    timestamp: Optional[str] = None
    status: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None
    path: Optional[str] = None
    violations: List[ApiViolation] = Field(default_factory=list)


# Request payload for creating a quiz (admin).
class QuizCreate(ApiModel):
    title: str
    description: Optional[str] = None
    active: bool = True


# Request payload for adding a question to a quiz (admin).
class QuestionCreate(ApiModel):
    question_no: int
    type: QuestionType
    text: str
    points: str
    required: bool = True


# Request payload for adding an option to a question (admin).
class OptionCreate(ApiModel):
    option_no: int
    text: str
    correct: bool = False


# Response model for a created quiz.
class QuizAdminOut(ApiModel):
    id: StrictInt
    title: str
    description: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None


# Response model for a created question.
class QuestionAdminOut(ApiModel):
    id: StrictInt
    quiz_id: int
    question_no: int
    type: QuestionType
    text: str
    points: Decimal
    required: bool
    created_at: Optional[datetime] = None


# Response model for a created option.
class OptionAdminOut(ApiModel):
    id: StrictInt
    question_id: int
    option_no: int
    text: str
    correct: bool
    created_at: Optional[datetime] = None
