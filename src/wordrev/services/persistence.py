"""Storage access for the revision engine."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wordrev.exceptions import PersistenceUnavailable
from wordrev.models.base import SessionLocal
from wordrev.models.models import Word
from wordrev.models.revision_models import WordRecord
from wordrev.monitoring import db_errors
from wordrev.services.stage_machine import STAGES, check_stage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WordGateway(ABC):
    """Ordered queries and updates over saved words."""

    @abstractmethod
    async def query_by_stage(self, stage: int) -> List[WordRecord]:
        """Words in `stage`, least recently touched first."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    async def update(self, record: WordRecord) -> bool:
        """Write the record's stage and touch time. False if it no longer exists."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    async def delete(self, record: WordRecord) -> bool:
        """Remove the record. False if it no longer exists."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    async def count_by_stage(self) -> Dict[int, int]:
        """Number of words in every stage."""
        raise NotImplementedError("Subclasses must implement this method")


class SqlWordGateway(WordGateway):
    """Word gateway over SQLAlchemy, scoped to one user."""

    def __init__(self, user_id: int, session_factory: Callable[[], Session] = SessionLocal):
        self.user_id = user_id
        self.session_factory = session_factory

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, operation, work)

    def _run_sync(self, operation: str, work: Callable[[Session], T]) -> T:
        db = self.session_factory()
        try:
            return work(db)
        except SQLAlchemyError as e:
            db.rollback()
            db_errors.labels(operation=operation).inc()
            logger.error(f"Database error during {operation} for user {self.user_id}: {e}")
            raise PersistenceUnavailable(operation, f"Failed to {operation} words: {e}") from e
        finally:
            db.close()

    def _words(self, db: Session):
        return db.query(Word).filter(Word.user_id == self.user_id)

    async def query_by_stage(self, stage: int) -> List[WordRecord]:
        check_stage(stage)

        def work(db: Session) -> List[WordRecord]:
            words = (
                self._words(db)
                .filter(Word.stage == stage)
                .order_by(Word.last_touched_at.asc(), Word.id.asc())
                .all()
            )
            return [word.to_record() for word in words]

        return await self._run("load", work)

    async def update(self, record: WordRecord) -> bool:
        def work(db: Session) -> bool:
            word = self._words(db).filter(Word.id == record.id).first()
            if not word:
                logger.warning(f"Word {record.id} not found for user {self.user_id}, nothing to update")
                return False
            word.stage = record.stage
            word.last_touched_at = record.last_touched_at
            db.commit()
            return True

        return await self._run("update", work)

    async def delete(self, record: WordRecord) -> bool:
        def work(db: Session) -> bool:
            word = self._words(db).filter(Word.id == record.id).first()
            if not word:
                logger.warning(f"Word {record.id} not found for user {self.user_id}, nothing to delete")
                return False
            db.delete(word)
            db.commit()
            return True

        return await self._run("delete", work)

    async def count_by_stage(self) -> Dict[int, int]:
        def work(db: Session) -> Dict[int, int]:
            rows = (
                db.query(Word.stage, func.count(Word.id))
                .filter(Word.user_id == self.user_id)
                .group_by(Word.stage)
                .all()
            )
            counts = {stage: 0 for stage in STAGES}
            counts.update({stage: count for stage, count in rows})
            return counts

        return await self._run("count", work)
