"""Stage transitions for revised words."""
from wordrev.config import MAX_STAGE, MIN_STAGE
from wordrev.models.revision_models import StageTransition

STAGES = list(range(MIN_STAGE, MAX_STAGE + 1))

STAGE_NAMES = {
    0: "Not revised",
    1: "1st",
    2: "2nd",
    3: "3rd",
    4: "4th",
    5: "5th or above",
}


def stage_display_name(stage: int) -> str:
    """Get display name for a revision stage."""
    return STAGE_NAMES.get(stage, "Unknown")


def check_stage(stage: int) -> int:
    """Return `stage` if it is a valid stage, else raise ValueError."""
    if stage not in STAGE_NAMES:
        raise ValueError(f"Stage must be between {MIN_STAGE} and {MAX_STAGE}, got {stage}")
    return stage


def can_advance(stage: int) -> bool:
    """Check if a word at this stage moves up on a correct answer."""
    return check_stage(stage) < MAX_STAGE


def next_stage(current: int, correct: bool) -> StageTransition:
    """Compute the stage a word lands in after an answer.

    A correct answer moves the word one stage up, except at the last stage
    where it stays. An incorrect answer never moves it. `left_stage` is True
    only when the word leaves the queue of `current`.
    """
    if correct and can_advance(current):
        return StageTransition(current + 1, True)
    return StageTransition(check_stage(current), False)
