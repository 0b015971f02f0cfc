# Display helpers for attempt reviews and progress. Scores are compared numerically.
from decimal import Decimal
from enum import Enum
from typing import Union

from quiz_client.schemas import Option, ReviewItem


class Outcome(str, Enum):
    BEST = "best"
    PARTIAL = "partial"
    INCORRECT = "incorrect"
    NONE = "none"


OUTCOME_LABELS = {
    Outcome.BEST: "Best Answer",
    Outcome.PARTIAL: "Partially Correct",
    Outcome.INCORRECT: "Incorrect",
    Outcome.NONE: "",
}


# "0", "0.00" and "-0" all count as a zero score.
def question_outcome(item: ReviewItem) -> Outcome:
    if item.achieved_score == item.max_score:
        return Outcome.BEST
    if item.achieved_score == 0:
        return Outcome.INCORRECT
    return Outcome.PARTIAL


def option_outcome(option: Option, item: ReviewItem) -> Outcome:
    if option.score is None:
        return Outcome.NONE
    if option.score == item.max_score:
        return Outcome.BEST
    if option.score > 0:
        return Outcome.PARTIAL
    return Outcome.NONE


def marks_label(score: Union[Decimal, int]) -> str:
    return f"{score} mark" if score == 1 else f"{score} marks"


# Whole percent, rounded half up.
def progress_percent(current: int, total: int) -> int:
    if total <= 0:
        return 0
    return (200 * current + total) // (2 * total)
