# Admin quiz-authoring draft: editing, validation and ordered creation.
import logging
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from quiz_client.api_client import QuizApiClient
from quiz_client.errors import ApiError, QuizClientError, is_auth_required
from quiz_client.schemas import OptionCreate, QuestionCreate, QuestionType, QuizCreate

logger = logging.getLogger("quiz_client.wizard")

DEFAULT_POINTS = "1.00"


def new_client_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class DraftOption(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    client_id: str = Field(default_factory=lambda: new_client_id("o"))
    option_no: Optional[int] = None
    text: str = ""
    correct: bool = False


class DraftQuestion(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    client_id: str = Field(default_factory=lambda: new_client_id("q"))
    question_no: Optional[int] = None
    type: QuestionType = QuestionType.SINGLE
    text: str = ""
    points: str = DEFAULT_POINTS
    required: bool = True
    options: List[DraftOption] = Field(default_factory=list)

    def option(self, client_id: str) -> DraftOption:
        for option in self.options:
            if option.client_id == client_id:
                return option
        raise KeyError(client_id)


class DraftQuiz(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    title: str = ""
    description: Optional[str] = None
    active: bool = True

    def to_payload(self) -> QuizCreate:
        description = (self.description or "").strip()
        return QuizCreate(
            title=self.title.strip(), description=description or None, active=self.active
        )


def _is_ordinal(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


# Collect every rule violation in the draft; an empty list means it can be submitted.
def validate_draft(quiz: DraftQuiz, questions: List[DraftQuestion]) -> List[str]:
    errors: List[str] = []
    if not quiz.title or not quiz.title.strip():
        errors.append("Quiz title is required.")
    if not questions:
        errors.append("Add at least 1 question.")

    seen_question_nos = set()
    for question in questions:
        qno = question.question_no
        if not _is_ordinal(qno):
            errors.append(
                f'Question "{question.text or question.client_id}": questionNo must be >= 1.'
            )
        elif qno in seen_question_nos:
            errors.append(
                f"Duplicate questionNo: {qno}. Each questionNo must be unique within a quiz."
            )
        else:
            seen_question_nos.add(qno)

        if not question.text.strip():
            errors.append(f"QuestionNo {qno}: text is required.")
        if not question.points.strip():
            errors.append(f"QuestionNo {qno}: points is required (e.g., 1.00).")
        if not question.options:
            errors.append(f"QuestionNo {qno}: add at least 1 option.")

        seen_option_nos = set()
        correct_count = 0
        for option in question.options:
            ono = option.option_no
            if not _is_ordinal(ono):
                errors.append(f"QuestionNo {qno}: optionNo must be >= 1.")
            elif ono in seen_option_nos:
                errors.append(f"QuestionNo {qno}: duplicate optionNo {ono}.")
            else:
                seen_option_nos.add(ono)
            if not option.text.strip():
                errors.append(f"QuestionNo {qno}, Option {ono}: text is required.")
            if option.correct:
                correct_count += 1

        if question.type is QuestionType.SINGLE and correct_count != 1:
            errors.append(
                f"QuestionNo {qno}: SINGLE must have exactly 1 correct option "
                f"(currently {correct_count})."
            )
        if question.type is QuestionType.MULTI and correct_count < 1:
            errors.append(f"QuestionNo {qno}: MULTI must have at least 1 correct option.")

    return errors


class WizardDraft(BaseModel):
    quiz: DraftQuiz = Field(default_factory=DraftQuiz)
    questions: List[DraftQuestion] = Field(default_factory=list)

    # A fresh draft starts with one SINGLE question and two blank options.
    @classmethod
    def blank(cls) -> "WizardDraft":
        draft = cls()
        draft.add_question()
        return draft

    def question(self, client_id: str) -> DraftQuestion:
        for question in self.questions:
            if question.client_id == client_id:
                return question
        raise KeyError(client_id)

    def add_question(self) -> DraftQuestion:
        numbers = [q.question_no for q in self.questions if _is_ordinal(q.question_no)]
        question = DraftQuestion(
            question_no=max(numbers, default=0) + 1,
            options=[DraftOption(option_no=1), DraftOption(option_no=2)],
        )
        self.questions.append(question)
        return question

    def remove_question(self, client_id: str) -> None:
        self.questions = [q for q in self.questions if q.client_id != client_id]

    def update_question(self, question_client_id: str, **changes: Any) -> DraftQuestion:
        question = self.question(question_client_id)
        for name, value in changes.items():
            if name not in DraftQuestion.model_fields or name in ("client_id", "options"):
                raise AttributeError(f"cannot update question field {name!r}")
            setattr(question, name, value)
        return question

    def add_option(self, question_client_id: str) -> DraftOption:
        question = self.question(question_client_id)
        numbers = [o.option_no for o in question.options if _is_ordinal(o.option_no)]
        option = DraftOption(option_no=max(numbers, default=0) + 1)
        question.options.append(option)
        return option

    def remove_option(self, question_client_id: str, option_client_id: str) -> None:
        question = self.question(question_client_id)
        question.options = [o for o in question.options if o.client_id != option_client_id]

    def update_option(
        self, question_client_id: str, option_client_id: str, **changes: Any
    ) -> DraftOption:
        option = self.question(question_client_id).option(option_client_id)
        for name, value in changes.items():
            if name not in DraftOption.model_fields or name == "client_id":
                raise AttributeError(f"cannot update option field {name!r}")
            setattr(option, name, value)
        return option

    # On a SINGLE question, marking one option correct clears the others.
    def mark_correct(
        self, question_client_id: str, option_client_id: str, correct: bool = True
    ) -> None:
        question = self.question(question_client_id)
        chosen = question.option(option_client_id)
        if question.type is QuestionType.SINGLE and correct:
            for option in question.options:
                option.correct = False
        chosen.correct = correct

    def validate(self) -> List[str]:
        return validate_draft(self.quiz, self.questions)


class CreatedEntity(BaseModel):
    client_id: str
    server_id: int


# Server ids received so far, in creation order.
class DraftSubmission(BaseModel):
    quiz_id: Optional[int] = None
    questions: List[CreatedEntity] = Field(default_factory=list)
    options: List[CreatedEntity] = Field(default_factory=list)

    def describe(self) -> str:
        if self.quiz_id is None:
            return "nothing was created"
        return (
            f"quiz {self.quiz_id}, {len(self.questions)} question(s), "
            f"{len(self.options)} option(s) created"
        )


class DraftInvalid(QuizClientError):
    def __init__(self, violations: List[str]):
        super().__init__(f"Draft has {len(violations)} violation(s)")
        self.violations = violations


class DraftSubmissionFailed(QuizClientError):
    def __init__(self, progress: DraftSubmission, error: ApiError):
        super().__init__(f"Draft submission stopped ({progress.describe()}): {error}")
        self.progress = progress
        self.error = error

    @property
    def auth_required(self) -> bool:
        return is_auth_required(self.error)


def normalize_points(points: str) -> str:
    value = points.strip()
    return value or DEFAULT_POINTS


# Create quiz, then each question followed by its options, strictly in draft order.
# There is no rollback: on failure the ids created so far travel with the error.
async def submit_draft(
    api: QuizApiClient, quiz: DraftQuiz, questions: List[DraftQuestion]
) -> DraftSubmission:
    violations = validate_draft(quiz, questions)
    if violations:
        raise DraftInvalid(violations)

    progress = DraftSubmission()
    try:
        created_quiz = await api.create_quiz(quiz.to_payload())
        progress.quiz_id = created_quiz.id
        for question in questions:
            created_question = await api.add_question(
                created_quiz.id,
                QuestionCreate(
                    question_no=question.question_no,
                    type=question.type,
                    text=question.text.strip(),
                    points=normalize_points(question.points),
                    required=question.required,
                ),
            )
            progress.questions.append(
                CreatedEntity(client_id=question.client_id, server_id=created_question.id)
            )
            for option in question.options:
                created_option = await api.add_option(
                    created_question.id,
                    OptionCreate(
                        option_no=option.option_no,
                        text=option.text.strip(),
                        correct=option.correct,
                    ),
                )
                progress.options.append(
                    CreatedEntity(client_id=option.client_id, server_id=created_option.id)
                )
    except ApiError as exc:
        logger.warning("Draft submission failed after %s: %s", progress.describe(), exc)
        raise DraftSubmissionFailed(progress, exc) from exc

    logger.info("Draft submitted: %s", progress.describe())
    return progress
