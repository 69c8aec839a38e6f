"""Revision session: one learner working through the words of one stage."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from wordrev.config import MIN_STAGE
from wordrev.exceptions import PersistenceUnavailable
from wordrev.models.base import utcnow
from wordrev.models.revision_models import AnswerResult, SessionView, WordRecord
from wordrev.monitoring import answers_submitted, hints_revealed, revision_sessions, stage_transitions, words_deleted
from wordrev.services.answer_evaluator import is_blank_answer, is_correct
from wordrev.services.hint_revealer import HintRevealer
from wordrev.services.persistence import WordGateway
from wordrev.services.stage_machine import check_stage, next_stage, stage_display_name

logger = logging.getLogger(__name__)


class RevisionSession:
    """Walks through the queue of one stage, answer by answer.

    The queue of a stage is every word in it, least recently touched first.
    Answering a word touches it and may move it to the next stage, so the
    queue is reloaded from storage before the next word is shown and the
    position is adjusted:

    - the answered word left the stage: the position stays, the words behind
      it moved up into this slot ("Word 1 of 4" -> "Word 1 of 3");
    - the answered word stayed (wrong answer, or last stage): it went to the
      back of the queue, so the position moves on ("Word 2 of 10" ->
      "Word 3 of 10").

    Stepping past the end starts the stage over from the first word.

    All operations that touch storage are serialized. Selecting another stage
    invalidates loads still in flight; their results are dropped.
    """

    def __init__(
        self,
        gateway: WordGateway,
        clock: Optional[Callable[[], datetime]] = None,
        on_change: Optional[Callable[[SessionView], None]] = None,
        blank_marker: Optional[str] = None,
    ):
        self.gateway = gateway
        self.clock = clock or utcnow
        self.on_change = on_change
        self.active_stage = MIN_STAGE
        self.queue: List[WordRecord] = []
        self.position = 0
        self.result = AnswerResult.idle()
        self.hint = HintRevealer(blank_marker)
        self._last_answer_left_stage = False
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def current_word(self) -> Optional[WordRecord]:
        if self.position < 1 or self.position > len(self.queue):
            return None
        return self.queue[self.position - 1]

    @property
    def last_answer_left_stage(self) -> bool:
        return self._last_answer_left_stage

    def view(self) -> SessionView:
        """Current state of the session."""
        return SessionView(
            stage=self.active_stage,
            position=self.position,
            total=len(self.queue),
            word=self.current_word,
            displayed_sentence=self.hint.render(),
            revealed_letters=self.hint.revealed_count,
            hint_enabled=self.hint.can_reveal,
            result=self.result,
            queue=list(self.queue),
        )

    def _notify(self) -> SessionView:
        view = self.view()
        if self.on_change:
            self.on_change(view)
        return view

    def _show(self, stage: int, records: List[WordRecord], position: int) -> None:
        """Make `records` the queue and the word at `position` current."""
        self.active_stage = stage
        self.queue = list(records)
        self.position = position if self.queue else 0
        self.result = AnswerResult.idle()
        self._last_answer_left_stage = False
        self.hint.reset(self.current_word)

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self._generation:
            logger.debug(f"Discarding stale {what}, a newer stage was selected")
            return True
        return False

    async def select_stage(self, stage: int) -> SessionView:
        """Start revising `stage` from its least recently touched word."""
        check_stage(stage)
        self._generation += 1
        generation = self._generation
        async with self._lock:
            if self._is_stale(generation, f"load of stage {stage}"):
                return self.view()
            records = await self.gateway.query_by_stage(stage)
            if self._is_stale(generation, f"load of stage {stage}"):
                return self.view()
            self._show(stage, records, 1)

        revision_sessions.labels(stage=str(stage)).inc()
        logger.info(f"Selected stage {stage} ({stage_display_name(stage)}) with {len(records)} words")
        return self._notify()

    async def refresh(self) -> SessionView:
        """Reload the active stage from its first word."""
        return await self.select_stage(self.active_stage)

    def _reject(self, message: str) -> AnswerResult:
        self.result = AnswerResult.error(message)
        answers_submitted.labels(outcome=self.result.outcome.value).inc()
        self._notify()
        return self.result

    async def submit_answer(self, answer: str) -> AnswerResult:
        """Check `answer` against the current word and store the outcome.

        The session does not move on by itself; call continue_to_next_word()
        once the feedback has been shown.
        """
        generation = self._generation
        async with self._lock:
            word = self.current_word
            if word is None:
                return self._reject("No word to check")
            if self.result.answered:
                logger.debug(f"Word {word.id} already answered, ignoring repeated submission")
                return self.result
            if is_blank_answer(answer):
                return self._reject("Please enter an answer")

            correct = is_correct(word.target_word, answer)
            transition = next_stage(self.active_stage, correct)
            updated = word.touched(transition.stage, self.clock())

            if not await self.gateway.update(updated):
                raise PersistenceUnavailable("update", f"Failed to update word {word.id}")

            result = AnswerResult.correct(updated) if correct else AnswerResult.incorrect(updated)
            answers_submitted.labels(outcome=result.outcome.value).inc()
            if transition.left_stage:
                stage_transitions.labels(from_stage=str(word.stage), to_stage=str(updated.stage)).inc()
            logger.info(
                f"Word {word.id} answered {result.outcome.value}: "
                f"stage {word.stage} -> {updated.stage}, left stage: {transition.left_stage}"
            )

            if self._is_stale(generation, f"answer for word {word.id}"):
                return result
            if self.current_word is not word:
                logger.debug(f"Word {word.id} is no longer current, not showing its result")
                return result
            self.queue[self.position - 1] = updated
            self.result = result
            self._last_answer_left_stage = transition.left_stage

        self._notify()
        return result

    async def continue_to_next_word(self) -> SessionView:
        """Reload the stage and move to the word after the one just answered."""
        generation = self._generation
        async with self._lock:
            stage = self.active_stage
            records = await self.gateway.query_by_stage(stage)
            if self._is_stale(generation, f"reload of stage {stage}"):
                return self.view()

            if not records:
                logger.info(f"Stage {stage} is empty")
                self._show(stage, records, 0)
                return self._notify()

            if self._last_answer_left_stage:
                next_position = self.position
            else:
                next_position = self.position + 1
            next_position = max(next_position, 1)

            if next_position > len(records):
                logger.info(f"Reached the end of stage {stage}, starting over")
                records = await self.gateway.query_by_stage(stage)
                if self._is_stale(generation, f"reload of stage {stage}"):
                    return self.view()
                next_position = 1

            self._show(stage, records, next_position)

        return self._notify()

    async def skip(self) -> SessionView:
        """Move on without answering; the word keeps its stage and place."""
        return await self.continue_to_next_word()

    async def delete_current_word(self) -> SessionView:
        """Delete the current word and show the one that takes its place."""
        generation = self._generation
        async with self._lock:
            word = self.current_word
            if word is None:
                raise ValueError("No word to delete")

            if await self.gateway.delete(word):
                words_deleted.inc()
                logger.info(f"Deleted word {word.id} from stage {word.stage}")
            else:
                logger.warning(f"Word {word.id} was already gone")

            stage = self.active_stage
            records = await self.gateway.query_by_stage(stage)
            if self._is_stale(generation, f"reload of stage {stage}"):
                return self.view()
            self._show(stage, records, min(self.position, len(records)))

        return self._notify()

    def navigate_to(self, position: int) -> SessionView:
        """Jump to a 1-based position in the loaded queue."""
        if position < 1 or position > len(self.queue):
            raise ValueError(f"Invalid word position {position}, stage has {len(self.queue)} words")
        self._show(self.active_stage, self.queue, position)
        return self._notify()

    def reveal_next_letter(self) -> bool:
        """Reveal one more letter of the current word.

        Returns whether more letters can still be revealed.
        """
        if self.current_word is None:
            return False
        before = self.hint.revealed_count
        more = self.hint.reveal_next()
        if self.hint.revealed_count > before:
            hints_revealed.inc()
            self._notify()
        return more

    async def stage_statistics(self) -> Dict[int, int]:
        """Number of words in every stage."""
        return await self.gateway.count_by_stage()
