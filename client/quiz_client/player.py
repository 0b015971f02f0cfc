# Owner of a single quiz-taking session's AttemptState.
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from quiz_client import attempt
from quiz_client.api_client import QuizApiClient
from quiz_client.attempt import AttemptState, Stage
from quiz_client.errors import ApiError, LocalInvariantViolation

logger = logging.getLogger("quiz_client.player")

Transition = Callable[[AttemptState], Awaitable[AttemptState]]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class QuizPlayer:
    """Drives one quiz-taking view.

    The player is the only writer of its ``state``. While a backend call is in
    flight the state shows the interim stage (ATTEMPT_STARTING, SUBMITTING),
    and a second async operation is rejected. After ``close()`` results that
    arrive late are dropped instead of being applied, and so are results of
    calls that were still pending when ``logout()`` ran.
    """

    def __init__(self, api: QuizApiClient, clock: Callable[[], datetime] = utc_now):
        self.api = api
        self.state = AttemptState()
        self.closed = False
        self._clock = clock
        self._in_flight = False
        self._generation = 0

    @property
    def busy(self) -> bool:
        return self._in_flight

    # A result belongs to the generation it started in; logout starts a new one.
    def _is_current(self, generation: int) -> bool:
        return not self.closed and generation == self._generation

    def _commit(self, state: AttemptState, generation: Optional[int] = None) -> AttemptState:
        if generation is None:
            generation = self._generation
        if not self._is_current(generation):
            logger.debug("Dropping superseded %s state", state.stage.value)
            return self.state
        self.state = state
        return state

    async def _run(self, transition: Transition, interim: Optional[Stage] = None) -> AttemptState:
        if self._in_flight:
            raise LocalInvariantViolation("another operation is already in flight")
        generation = self._generation
        self._in_flight = True
        previous = self.state
        if interim is not None:
            self.state = previous.model_copy(update={"stage": interim})
        try:
            state = await transition(previous)
        except BaseException:
            if self._is_current(generation):
                self.state = previous
            raise
        finally:
            if generation == self._generation:
                self._in_flight = False
        return self._commit(state, generation)

    async def authenticate(self) -> AttemptState:
        return await self._run(lambda state: attempt.authenticate(self.api, state))

    async def refresh_quizzes(self) -> AttemptState:
        return await self._run(lambda state: attempt.load_quizzes(self.api, state))

    async def select_quiz(self, quiz_id: int) -> AttemptState:
        attempt.require_stage(self.state, Stage.QUIZ_SELECTION)
        return await self._run(
            lambda state: attempt.start_quiz(self.api, state, quiz_id),
            interim=Stage.ATTEMPT_STARTING,
        )

    def toggle_option(self, option_id: int) -> AttemptState:
        return self._commit(attempt.toggle_option(self.state, option_id))

    def clear_current(self) -> AttemptState:
        return self._commit(attempt.clear_current(self.state))

    @property
    def can_advance(self) -> bool:
        return not self._in_flight and attempt.can_advance(self.state)

    async def next(self) -> AttemptState:
        interim = Stage.SUBMITTING if self.state.is_last_question else None
        return await self._run(
            lambda state: attempt.advance(self.api, state, now=self._clock()),
            interim=interim,
        )

    def back_to_selection(self) -> AttemptState:
        return self._commit(attempt.back_to_selection(self.state))

    # Local state is discarded before the backend is told; its answer does not matter.
    # Any transition still awaiting the backend is superseded and cannot write back.
    async def logout(self) -> AttemptState:
        self._generation += 1
        self._in_flight = False
        self._commit(AttemptState(stage=Stage.UNAUTHENTICATED))
        try:
            await self.api.logout()
        except ApiError as exc:
            logger.warning("Logout request failed: %s", exc)
        return self.state

    def close(self) -> None:
        self.closed = True
