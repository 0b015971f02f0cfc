# Error taxonomy shared by the transport, attempt and wizard layers.
from enum import Enum
from typing import List, Optional

from quiz_client.schemas import ApiErrorBody, ApiViolation


# Outcome of classifying a single backend response.
class Classification(str, Enum):
    SUCCESS = "success"
    AUTH_REQUIRED = "auth_required"
    FORBIDDEN = "forbidden"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    MALFORMED_RESPONSE = "malformed_response"


class QuizClientError(Exception):
    """Base class for every error raised by quiz_client."""


# A classified backend failure. `kind` is the discriminant callers branch on.
class ApiError(QuizClientError):
    kind = Classification.SERVER_ERROR

    def __init__(
        self,
        message: str,
        status: int = 0,
        body_text: str = "",
        payload: Optional[ApiErrorBody] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.body_text = body_text
        self.payload = payload

    @property
    def violations(self) -> List[ApiViolation]:
        if self.payload is None:
            return []
        return list(self.payload.violations)


class AuthRequired(ApiError):
    kind = Classification.AUTH_REQUIRED


class Forbidden(ApiError):
    kind = Classification.FORBIDDEN


class ValidationFailed(ApiError):
    kind = Classification.VALIDATION_FAILED


class NotFound(ApiError):
    kind = Classification.NOT_FOUND


class ServerError(ApiError):
    kind = Classification.SERVER_ERROR


# A success response whose body did not decode into the expected shape.
class MalformedResponse(ApiError):
    kind = Classification.MALFORMED_RESPONSE


ERROR_TYPES = {
    Classification.AUTH_REQUIRED: AuthRequired,
    Classification.FORBIDDEN: Forbidden,
    Classification.VALIDATION_FAILED: ValidationFailed,
    Classification.NOT_FOUND: NotFound,
    Classification.SERVER_ERROR: ServerError,
}


class NoQuestions(QuizClientError):
    def __init__(self, quiz_id: int):
        super().__init__("No questions found for this quiz.")
        self.quiz_id = quiz_id


# Raised when the caller performs an action its own gating should have prevented.
class LocalInvariantViolation(QuizClientError):
    pass


def is_auth_required(exc: BaseException) -> bool:
    return isinstance(exc, ApiError) and exc.kind is Classification.AUTH_REQUIRED


# Render an API error with its field violations and a bounded body excerpt.
def format_api_error(exc: ApiError, body_limit: int = 800) -> str:
    base = exc.message or f"HTTP {exc.status}"
    text = f"API error ({exc.status}): {base}"
    violations = exc.violations
    if violations:
        text += "\n" + "\n".join(f"- {v.field}: {v.message}" for v in violations)
    if exc.body_text and exc.body_text != base:
        text += f"\n\nDetails:\n{exc.body_text[:body_limit]}"
    return text
