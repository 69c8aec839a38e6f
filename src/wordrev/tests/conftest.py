"""Test configuration."""
import itertools
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generator

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from dotenv import load_dotenv
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from wordrev.models.base import init_db
from wordrev.models.models import User, Word
from wordrev.services.persistence import SqlWordGateway
from wordrev.services.revision_service import RevisionSession
from wordrev.services.word_service import create_blank_sentence

fake = Faker()

BASE_TIME = datetime(2024, 1, 1, 12, 0)


class FakeClock:
    """Clock that moves one minute forward on every reading."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 9, 0)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def engine():
    """In-memory database shared by every thread of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def user(db: Session) -> User:
    """Create a test user."""
    user = User(telegram_id=fake.random_int(), username=fake.user_name())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_word(db: Session, user: User) -> Callable[..., Word]:
    """Factory saving words whose touch order follows creation order."""
    counter = itertools.count()

    def _make_word(target_word: str, stage: int = 0, example: str = None, user_id: int = None) -> Word:
        created = BASE_TIME + timedelta(minutes=next(counter))
        example = example if example is not None else f"I would like the {target_word} today."
        word = Word(
            user_id=user_id or user.id,
            target_word=target_word,
            translation=fake.word(),
            part_of_speech="noun",
            example_sentence=example,
            blanked_example=create_blank_sentence(example, target_word),
            stage=stage,
            created_at=created,
            last_touched_at=created,
        )
        db.add(word)
        db.commit()
        db.refresh(word)
        return word

    return _make_word


@pytest.fixture
def stored_word(session_factory) -> Callable[[int], Word]:
    """Read a word back from storage, bypassing any cached objects."""

    def _stored_word(word_id: int) -> Word:
        db = session_factory()
        try:
            return db.query(Word).filter(Word.id == word_id).first()
        finally:
            db.close()

    return _stored_word


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(user: User, session_factory) -> SqlWordGateway:
    return SqlWordGateway(user.id, session_factory)


@pytest.fixture
def session(gateway: SqlWordGateway, clock: FakeClock) -> RevisionSession:
    return RevisionSession(gateway, clock=clock)
