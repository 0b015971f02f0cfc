# Pytest fixtures and an in-memory fake of the quiz backend.
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from quiz_client.api_client import QuizApiClient
from quiz_client.attempt import AttemptState, Stage
from quiz_client.schemas import AttemptStart, Question

BASE_URL = "http://testserver"
TIMESTAMP = "2026-01-05T10:00:00Z"
LOGIN_PAGE = "<html><body><h1>Sign in</h1></body></html>"


# Build a question payload the way the backend serializes it.
def question_payload(
    question_id: int,
    question_no: int,
    option_ids: List[int],
    type_: str = "SINGLE",
    required: bool = True,
    points: str = "1.00",
    scores: Optional[List[str]] = None,
) -> Dict[str, Any]:
    options = []
    for idx, option_id in enumerate(option_ids):
        option = {"id": option_id, "optionNo": idx + 1, "text": f"Option {option_id}"}
        if scores is not None:
            option["score"] = scores[idx]
        options.append(option)
    return {
        "id": question_id,
        "questionNo": question_no,
        "type": type_,
        "text": f"Question {question_no}?",
        "scoringMode": "BINARY",
        "points": points,
        "required": required,
        "options": options,
    }


class FakeBackend:
    """Scriptable stand-in for the quiz backend.

    ``fail(route, mode)`` makes a route misbehave: ``unauthorized``,
    ``forbidden``, ``html``, ``login_redirect``, ``server_error``,
    ``validation``, ``not_found`` or ``malformed``. With ``on_call`` only the
    n-th call of that route fails.
    """

    def __init__(self):
        self.logged_in = True
        self.me_payload: Dict[str, Any] = {
            "userId": 7,
            "fullName": "Ada Lovelace",
            "email": "ada@example.com",
            "identities": [
                {
                    "provider": "github",
                    "providerSubject": "12345",
                    "displayName": "ada",
                    "email": "ada@example.com",
                    "emailVerified": True,
                    "pictureUrl": None,
                    "lastLoginAt": TIMESTAMP,
                }
            ],
        }
        self.quizzes: List[Dict[str, Any]] = [
            {"id": 1, "title": "Anatomy", "description": "Two questions", "active": True,
             "createdAt": TIMESTAMP},
            {"id": 2, "title": "Empty", "description": None, "active": True,
             "createdAt": TIMESTAMP},
            {"id": 3, "title": "Mixed", "description": None, "active": True,
             "createdAt": TIMESTAMP},
        ]
        self.questions: Dict[int, List[Dict[str, Any]]] = {
            1: [
                question_payload(11, 1, [111, 112], scores=["1", "0"]),
                question_payload(12, 2, [121, 122], scores=["1", "0"]),
            ],
            2: [],
            3: [
                question_payload(31, 1, [311, 312, 313], type_="MULTI", points="2.50"),
                question_payload(32, 2, [321, 322], required=False),
            ],
        }
        self.correct: Dict[int, List[int]] = {11: [111], 12: [121], 31: [311, 312], 32: [321]}
        self.calls: List[str] = []
        self.bodies: Dict[str, List[Any]] = {}
        self.submissions: Dict[int, Dict[str, Any]] = {}
        self.failures: Dict[str, Dict[str, Any]] = {}
        self.next_id = 1000
        self.app = self._build_app()

    def fail(self, route: str, mode: str, on_call: Optional[int] = None) -> None:
        self.failures[route] = {"mode": mode, "on_call": on_call}

    def heal(self, route: str) -> None:
        self.failures.pop(route, None)

    def count(self, route: str) -> int:
        return self.calls.count(route)

    def _allocate(self) -> int:
        self.next_id += 1
        return self.next_id

    def _guard(self, route: str, body: Any = None):
        self.calls.append(route)
        self.bodies.setdefault(route, []).append(body)
        failure = self.failures.get(route)
        if failure and failure["on_call"] not in (None, self.count(route)):
            failure = None
        if failure is None:
            if not self.logged_in and route != "logout":
                return JSONResponse({"status": 401, "message": "Unauthorized"}, status_code=401)
            return None
        mode = failure["mode"]
        if mode == "unauthorized":
            return JSONResponse({"status": 401, "message": "Unauthorized"}, status_code=401)
        if mode == "forbidden":
            return JSONResponse({"status": 403, "message": "Forbidden"}, status_code=403)
        if mode == "html":
            return HTMLResponse(LOGIN_PAGE)
        if mode == "login_redirect":
            return RedirectResponse("/login", status_code=302)
        if mode == "validation":
            return JSONResponse(
                {
                    "timestamp": TIMESTAMP,
                    "status": 400,
                    "error": "Bad Request",
                    "message": "Validation failed",
                    "path": route,
                    "violations": [{"field": "text", "message": "must not be blank"}],
                },
                status_code=400,
            )
        if mode == "not_found":
            return JSONResponse({"status": 404, "message": "Not found"}, status_code=404)
        if mode == "malformed":
            return JSONResponse({"unexpected": True})
        return JSONResponse({"status": 500, "message": "Backend exploded"}, status_code=500)

    def _result(self, attempt_id: int) -> Dict[str, Any]:
        submission = self.submissions[attempt_id]
        return {
            "attemptId": attempt_id,
            "quizId": submission["quizId"],
            "status": "SUBMITTED",
            "score": submission["score"],
            "totalPoints": submission["totalPoints"],
            "startedAt": TIMESTAMP,
            "submittedAt": submission["submittedAt"],
        }

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.get("/login")
        def login_page():
            return HTMLResponse(LOGIN_PAGE)

        @app.get("/api/me")
        def me():
            return backend._guard("me") or backend.me_payload

        @app.get("/api/quizzes")
        def list_quizzes():
            return backend._guard("list_quizzes") or backend.quizzes

        @app.get("/api/quizzes/{quiz_id}/questions")
        def get_questions(quiz_id: int):
            return backend._guard("get_questions") or backend.questions.get(quiz_id, [])

        @app.post("/api/quizzes/{quiz_id}/attempts/start")
        def start_attempt(quiz_id: int):
            failure = backend._guard("start_attempt")
            if failure:
                return failure
            attempt_id = backend._allocate()
            backend.submissions[attempt_id] = {"quizId": quiz_id}
            return {"attemptId": attempt_id, "quizId": quiz_id, "startedAt": TIMESTAMP}

        @app.post("/api/attempts/{attempt_id}/submit")
        async def submit_attempt(attempt_id: int, request: Request):
            body = await request.json()
            failure = backend._guard("submit_attempt", body)
            if failure:
                return failure
            submission = backend.submissions[attempt_id]
            answers = {int(qid): ids for qid, ids in body["answers"].items()}
            questions = backend.questions[submission["quizId"]]
            achieved = sum(
                1 for q in questions if sorted(answers.get(q["id"], [])) == backend.correct[q["id"]]
            )
            submission.update(
                answers=answers,
                submittedAt=body["submittedAt"],
                score=f"{achieved}.00",
                totalPoints=f"{len(questions)}.00",
            )
            return backend._result(attempt_id)

        @app.get("/api/attempts/{attempt_id}/review")
        def get_review(attempt_id: int):
            failure = backend._guard("get_review")
            if failure:
                return failure
            submission = backend.submissions[attempt_id]
            items = []
            for q in backend.questions[submission["quizId"]]:
                selected = submission["answers"].get(q["id"], [])
                is_correct = sorted(selected) == backend.correct[q["id"]]
                items.append(
                    {
                        "questionId": q["id"],
                        "questionNo": q["questionNo"],
                        "type": q["type"],
                        "text": q["text"],
                        "achievedScore": "1.00" if is_correct else "0.00",
                        "maxScore": "1.00",
                        "required": q["required"],
                        "options": [
                            {**o, "score": 1 if o["id"] in backend.correct[q["id"]] else 0}
                            for o in q["options"]
                        ],
                        "selectedOptionIds": selected,
                        "correctOptionIds": backend.correct[q["id"]],
                        "isCorrect": is_correct,
                    }
                )
            return {
                **backend._result(attempt_id),
                "quizTitle": f"Quiz {submission['quizId']}",
                "items": items,
            }

        @app.post("/logout")
        def logout():
            failure = backend._guard("logout")
            if failure:
                return failure
            backend.logged_in = False
            return RedirectResponse("/login?logout", status_code=302)

        @app.post("/api/admin/quizzes")
        async def create_quiz(request: Request):
            body = await request.json()
            failure = backend._guard("create_quiz", body)
            if failure:
                return failure
            return {"id": backend._allocate(), "createdAt": TIMESTAMP, **body}

        @app.post("/api/admin/quizzes/{quiz_id}/questions")
        async def add_question(quiz_id: int, request: Request):
            body = await request.json()
            failure = backend._guard("add_question", body)
            if failure:
                return failure
            return {"id": backend._allocate(), "quizId": quiz_id, "createdAt": TIMESTAMP, **body}

        @app.post("/api/admin/questions/{question_id}/options")
        async def add_option(question_id: int, request: Request):
            body = await request.json()
            failure = backend._guard("add_option", body)
            if failure:
                return failure
            return {
                "id": backend._allocate(),
                "questionId": question_id,
                "createdAt": TIMESTAMP,
                **body,
            }

        return app


@pytest.fixture()
def backend():
    return FakeBackend()


# Provide a QuizApiClient wired to the fake backend through the ASGI transport.
@pytest_asyncio.fixture()
async def api(backend):
    transport = httpx.ASGITransport(app=backend.app)
    async with QuizApiClient(base_url=BASE_URL, transport=transport) as client:
        yield client


# Expose the question payload builder to tests.
@pytest.fixture()
def build_question():
    return question_payload


# Build an IN_PROGRESS AttemptState directly from question payloads.
@pytest.fixture()
def make_state():
    def _build(questions, pointer=0, answers=None, attempt_id=501):
        parsed = [Question.model_validate(q) for q in questions]
        attempt = None
        if attempt_id is not None:
            attempt = AttemptStart(attempt_id=attempt_id, quiz_id=1, started_at=TIMESTAMP)
        return AttemptState(
            stage=Stage.IN_PROGRESS,
            selected_quiz_id=1,
            questions=parsed,
            pointer=pointer,
            answers=answers if answers is not None else {q.id: [] for q in parsed},
            attempt=attempt,
        )

    return _build
