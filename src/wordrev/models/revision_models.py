"""Models for revision-related data structures."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, NamedTuple, Optional

from wordrev.config import MAX_STAGE, MIN_STAGE


class UserAction(Enum):
    """Possible user actions during revision."""
    SELECT_STAGE = "stage"  # User picked a stage to revise
    HINT = "hint"  # User asked for one more letter
    SKIP = "skip"  # User skipped the word
    DELETE = "delete"  # User wants to delete the word
    CONTINUE = "continue"  # User read the feedback and moves on
    LIST_WORDS = "list"  # User wants to see every word in the stage
    OPEN_WORD = "open"  # User picked a word from the stage list
    SHOW_WORD = "show"  # User went back to the current word


class Outcome(Enum):
    """Result of the latest answer for the current word."""
    IDLE = "idle"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    ERROR = "error"


@dataclass(frozen=True)
class WordRecord:
    """A saved word as seen by the revision engine."""
    id: int
    target_word: str
    translation: str
    part_of_speech: str
    example_sentence: str
    blanked_example: str
    stage: int
    created_at: datetime
    last_touched_at: datetime

    def __post_init__(self):
        if not MIN_STAGE <= self.stage <= MAX_STAGE:
            raise ValueError(f"Stage must be between {MIN_STAGE} and {MAX_STAGE}, got {self.stage}")

    def touched(self, stage: int, at: datetime) -> "WordRecord":
        """Copy moved to `stage` and touched at `at` (never before creation)."""
        return replace(self, stage=stage, last_touched_at=max(at, self.created_at))


class StageTransition(NamedTuple):
    """Where a word goes after an answer."""
    stage: int
    left_stage: bool


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of an answer submission."""
    outcome: Outcome = Outcome.IDLE
    word: Optional[WordRecord] = None
    correct_answer: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "AnswerResult":
        return cls()

    @classmethod
    def correct(cls, word: WordRecord) -> "AnswerResult":
        return cls(Outcome.CORRECT, word=word, correct_answer=word.target_word)

    @classmethod
    def incorrect(cls, word: WordRecord) -> "AnswerResult":
        return cls(Outcome.INCORRECT, word=word, correct_answer=word.target_word)

    @classmethod
    def error(cls, message: str) -> "AnswerResult":
        return cls(Outcome.ERROR, message=message)

    @property
    def answered(self) -> bool:
        return self.outcome in (Outcome.CORRECT, Outcome.INCORRECT)


@dataclass(frozen=True)
class SessionView:
    """Snapshot of a revision session handed back to the caller."""
    stage: int
    position: int
    total: int
    word: Optional[WordRecord] = None
    displayed_sentence: str = ""
    revealed_letters: int = 0
    hint_enabled: bool = False
    result: AnswerResult = field(default_factory=AnswerResult.idle)
    queue: List[WordRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.word is None

    @property
    def progress_text(self) -> str:
        if self.is_empty:
            return ""
        return f"Word {self.position} of {self.total}"
