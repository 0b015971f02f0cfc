# Async HTTP client for the quiz backend and the single response classifier.
import logging
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from quiz_client.config import ClientSettings, DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from quiz_client.errors import (
    AuthRequired,
    Classification,
    ERROR_TYPES,
    Forbidden,
    MalformedResponse,
    ServerError,
)
from quiz_client.schemas import (
    ApiErrorBody,
    AttemptResult,
    AttemptReview,
    AttemptStart,
    Identity,
    OptionAdminOut,
    OptionCreate,
    Question,
    QuestionAdminOut,
    QuestionCreate,
    QuizAdminOut,
    QuizCreate,
    QuizSummary,
    SubmitAttemptRequest,
)

logger = logging.getLogger("quiz_client.api")

LOGIN_PATH_MARKERS = ("/login", "/oauth2/authorization")

_QUIZ_LIST = TypeAdapter(List[QuizSummary])
_QUESTION_LIST = TypeAdapter(List[Question])
_IDENTITY = TypeAdapter(Identity)
_ATTEMPT_START = TypeAdapter(AttemptStart)
_ATTEMPT_RESULT = TypeAdapter(AttemptResult)
_ATTEMPT_REVIEW = TypeAdapter(AttemptReview)
_QUIZ_CREATED = TypeAdapter(QuizAdminOut)
_QUESTION_CREATED = TypeAdapter(QuestionAdminOut)
_OPTION_CREATED = TypeAdapter(OptionAdminOut)


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").lower()


# True when redirects were followed and ended on the same origin's login page.
def looks_like_login_redirect(response: httpx.Response) -> bool:
    if not response.history:
        return False
    origin = response.history[0].request.url
    final = response.url
    if (origin.scheme, origin.host, origin.port) != (final.scheme, final.host, final.port):
        return False
    return any(marker in final.path for marker in LOGIN_PATH_MARKERS)


def _error_body(response: httpx.Response) -> Optional[ApiErrorBody]:
    if "application/json" not in _content_type(response):
        return None
    try:
        return ApiErrorBody.model_validate(response.json())
    except (ValueError, ValidationError):
        return None


# Classify a response into exactly one transport outcome.
def classify_response(response: httpx.Response, path: str) -> Classification:
    if looks_like_login_redirect(response):
        return Classification.AUTH_REQUIRED
    if path.startswith("/api/") and "text/html" in _content_type(response):
        return Classification.AUTH_REQUIRED
    if response.status_code == 401:
        return Classification.AUTH_REQUIRED
    if response.status_code == 403:
        return Classification.FORBIDDEN
    if response.is_success:
        return Classification.SUCCESS
    body = _error_body(response)
    if body is not None and body.violations:
        return Classification.VALIDATION_FAILED
    if response.status_code == 404:
        return Classification.NOT_FOUND
    return Classification.SERVER_ERROR


# Raise the tagged ApiError matching the response classification.
def raise_for_response(response: httpx.Response, path: str) -> None:
    classification = classify_response(response, path)
    if classification is Classification.SUCCESS:
        return
    if classification is Classification.AUTH_REQUIRED:
        reason = "Unauthorized" if response.status_code == 401 else "Login required (HTML redirect)"
        raise AuthRequired("Login required.", 401, reason)
    if classification is Classification.FORBIDDEN:
        raise Forbidden("Forbidden", 403, "Forbidden")

    text = response.text
    body = _error_body(response)
    message = (body.message if body else None) or text or f"HTTP {response.status_code}"
    raise ERROR_TYPES[classification](message, response.status_code, text, body)


def _decode(adapter: Any, data: Any, path: str) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        logger.warning("Malformed response for %s: %s", path, exc.error_count())
        raise MalformedResponse(f"Unexpected response from {path}", 200, str(data)[:800]) from exc


class QuizApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cookies: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            cookies=cookies,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> "QuizApiClient":
        return cls(base_url=settings.base_url, timeout=settings.timeout, **kwargs)

    async def __aenter__(self) -> "QuizApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # Send one request and return the decoded JSON (or text) body of a success.
    async def request(self, method: str, path: str, json: Any = None) -> Any:
        logger.debug("%s %s", method, path)
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.RequestError as exc:
            logger.warning("Network error on %s %s: %s", method, path, exc)
            raise ServerError(f"Network error: {exc}", 0) from exc

        raise_for_response(response, path)

        if response.status_code == 204 or not response.content:
            return None
        if "application/json" in _content_type(response):
            try:
                return response.json()
            except ValueError as exc:
                raise MalformedResponse(
                    f"Invalid JSON from {path}", response.status_code, response.text[:800]
                ) from exc
        return response.text

    async def me(self) -> Identity:
        data = await self.request("GET", "/api/me")
        return _decode(_IDENTITY, data, "/api/me")

    async def list_quizzes(self) -> List[QuizSummary]:
        data = await self.request("GET", "/api/quizzes")
        return _decode(_QUIZ_LIST, data, "/api/quizzes")

    async def get_questions(self, quiz_id: int) -> List[Question]:
        path = f"/api/quizzes/{quiz_id}/questions"
        return _decode(_QUESTION_LIST, await self.request("GET", path), path)

    async def start_attempt(self, quiz_id: int) -> AttemptStart:
        path = f"/api/quizzes/{quiz_id}/attempts/start"
        return _decode(_ATTEMPT_START, await self.request("POST", path, json={}), path)

    async def submit_attempt(self, attempt_id: int, payload: SubmitAttemptRequest) -> AttemptResult:
        path = f"/api/attempts/{attempt_id}/submit"
        body = payload.model_dump(mode="json", by_alias=True)
        return _decode(_ATTEMPT_RESULT, await self.request("POST", path, json=body), path)

    async def get_review(self, attempt_id: int) -> AttemptReview:
        path = f"/api/attempts/{attempt_id}/review"
        return _decode(_ATTEMPT_REVIEW, await self.request("GET", path), path)

    # End the backend session. A redirect to the login page counts as success.
    async def logout(self) -> None:
        try:
            await self.request("POST", "/logout")
        except AuthRequired:
            logger.debug("Logout landed on the login page")

    async def create_quiz(self, payload: QuizCreate) -> QuizAdminOut:
        path = "/api/admin/quizzes"
        body = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        return _decode(_QUIZ_CREATED, await self.request("POST", path, json=body), path)

    async def add_question(self, quiz_id: int, payload: QuestionCreate) -> QuestionAdminOut:
        path = f"/api/admin/quizzes/{quiz_id}/questions"
        body = payload.model_dump(mode="json", by_alias=True)
        return _decode(_QUESTION_CREATED, await self.request("POST", path, json=body), path)

    async def add_option(self, question_id: int, payload: OptionCreate) -> OptionAdminOut:
        path = f"/api/admin/questions/{question_id}/options"
        body = payload.model_dump(mode="json", by_alias=True)
        return _decode(_OPTION_CREATED, await self.request("POST", path, json=body), path)
