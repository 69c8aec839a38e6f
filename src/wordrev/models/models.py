"""Database models for the bot."""
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from wordrev.config import MAX_STAGE, MIN_STAGE
from wordrev.models.base import Base, utcnow
from wordrev.models.revision_models import WordRecord


class User(Base):
    """User model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(Integer, unique=True, nullable=False)
    username = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    words = relationship("Word", back_populates="user", cascade="all, delete-orphan")


class Word(Base):
    """A saved word and its revision stage."""

    __tablename__ = "words"
    __table_args__ = (
        CheckConstraint(f"stage BETWEEN {MIN_STAGE} AND {MAX_STAGE}", name="ck_words_stage_range"),
        Index("ix_words_user_stage_touched", "user_id", "stage", "last_touched_at"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_word = Column(String, nullable=False)
    translation = Column(String, nullable=False)
    part_of_speech = Column(String, nullable=False, default="")
    example_sentence = Column(String, nullable=False, default="")
    blanked_example = Column(String, nullable=False)
    stage = Column(Integer, nullable=False, default=MIN_STAGE)  # 0: Not revised ... 5: 5th or above
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_touched_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="words")

    def to_record(self) -> WordRecord:
        """Detach the row into an immutable record."""
        return WordRecord(
            id=self.id,
            target_word=self.target_word,
            translation=self.translation,
            part_of_speech=self.part_of_speech or "",
            example_sentence=self.example_sentence or "",
            blanked_example=self.blanked_example,
            stage=self.stage,
            created_at=self.created_at,
            last_touched_at=self.last_touched_at,
        )

    def __repr__(self) -> str:
        return f"<Word {self.id} {self.target_word!r} stage={self.stage}>"
