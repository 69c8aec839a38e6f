"""Service for saving words for revision."""
import logging
import re
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from wordrev.config import MIN_STAGE, settings
from wordrev.models.base import utcnow
from wordrev.models.models import Word
from wordrev.monitoring import words_added
from wordrev.services.stage_machine import STAGES

logger = logging.getLogger(__name__)

ENGLISH_WORD_PATTERN = re.compile(r"^[A-Za-z'-]+$")
VOWELS = set("aeiou")


def is_valid_english_word(word: str) -> bool:
    """Check if a string contains only letters, hyphens and apostrophes."""
    return bool(ENGLISH_WORD_PATTERN.match(word.strip()))


def validate_word_for_saving(target_word: str, translation: str) -> Optional[str]:
    """Return an error message if the word cannot be saved, else None."""
    word = target_word.strip()
    translation = translation.strip()
    if not word:
        return "English word cannot be empty"
    if not translation:
        return "Translation cannot be empty"
    if len(word) < settings.revision.min_word_length:
        return "English word too short"
    if len(word) > settings.revision.max_word_length:
        return "English word too long"
    if not is_valid_english_word(word):
        return "Please enter a valid English word"
    if len(translation) > settings.revision.max_translation_length:
        return "Translation too long"
    return None


def word_inflections(word: str) -> List[str]:
    """Common English inflections of `word`, most likely first."""
    word = word.lower()
    forms = [word + "s", word + "es", word + "ed", word + "d", word + "ing"]
    if word.endswith("y") and len(word) > 1 and word[-2] not in VOWELS:
        forms += [word[:-1] + "ies", word[:-1] + "ied"]
    if word.endswith("e"):
        forms.append(word[:-1] + "ing")
    if len(word) >= 3 and word[-1] not in VOWELS | {"w", "x", "y"} \
            and word[-2] in VOWELS and word[-3] not in VOWELS:
        forms += [word + word[-1] + "ed", word + word[-1] + "ing"]

    seen = set()
    unique = []
    for form in forms:
        if form not in seen:
            seen.add(form)
            unique.append(form)
    return unique


def create_blank_sentence(
    sentence: str,
    word: str,
    blank_marker: Optional[str] = None,
    fallback_template: Optional[str] = None,
) -> str:
    """Hide the first occurrence of `word` in `sentence` behind the blank marker.

    Whole words are matched case-insensitively; when the word itself is not
    found its inflections are tried. If nothing matches, a template sentence
    with the blank is returned so the answer is never left visible.
    """
    marker = blank_marker or settings.revision.blank_marker
    template = fallback_template or settings.revision.blank_fallback_template
    fallback = template.format(blank=marker)

    word = word.strip()
    if not sentence.strip() or not word:
        return fallback

    for candidate in [word] + word_inflections(word):
        pattern = re.compile(rf"(?<![\w'-]){re.escape(candidate)}(?![\w'-])", re.IGNORECASE)
        blanked, count = pattern.subn(marker, sentence, count=1)
        if count:
            return blanked

    logger.debug(f"Word {word!r} not found in example, using fallback sentence")
    return fallback


def parse_word_entry(text: str) -> Tuple[str, str, str, str]:
    """Parse `word | translation | part of speech | example` chat input."""
    parts = [part.strip() for part in text.split("|")]
    if len(parts) < 2:
        raise ValueError("Expected at least: word | translation")
    if len(parts) > 4:
        # Examples may contain the separator themselves
        parts = parts[:3] + [" | ".join(parts[3:])]
    parts += [""] * (4 - len(parts))
    target_word, translation, part_of_speech, example = parts
    return target_word, translation, part_of_speech, example


class WordService:
    """Service for saving and looking up words."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_word(self, word_id: int) -> Optional[Word]:
        """Get a word by its ID."""
        return self.db.query(Word).filter(Word.id == word_id).first()

    def search_by_target_word(self, user_id: int, target_word: str) -> List[Word]:
        """Find a user's words spelled like `target_word`, ignoring case."""
        return (
            self.db.query(Word)
            .filter(
                Word.user_id == user_id,
                func.lower(Word.target_word) == target_word.strip().lower(),
            )
            .all()
        )

    def is_duplicate_word(self, user_id: int, target_word: str, translation: str) -> bool:
        """Check if the user already saved this word with this translation."""
        return any(
            word.translation.strip().lower() == translation.strip().lower()
            for word in self.search_by_target_word(user_id, target_word)
        )

    def add_word(
        self,
        user_id: int,
        target_word: str,
        translation: str,
        part_of_speech: str = "",
        example_sentence: str = "",
    ) -> Word:
        """Save a new word at the first stage."""
        error = validate_word_for_saving(target_word, translation)
        if error:
            raise ValueError(error)

        target_word = target_word.strip()
        translation = translation.strip()
        if self.is_duplicate_word(user_id, target_word, translation):
            raise ValueError(f"Word '{target_word}' with this translation is already saved")

        example_sentence = example_sentence.strip()
        now = utcnow()
        word = Word(
            user_id=user_id,
            target_word=target_word,
            translation=translation,
            part_of_speech=part_of_speech.strip(),
            example_sentence=example_sentence,
            blanked_example=create_blank_sentence(example_sentence, target_word),
            stage=MIN_STAGE,
            created_at=now,
            last_touched_at=now,
        )
        self.db.add(word)
        self.db.commit()
        self.db.refresh(word)

        words_added.inc()
        logger.info(f"Saved word {word.id} '{target_word}' for user {user_id}")
        return word

    def get_word_count(self, user_id: int) -> int:
        """Get the number of words saved by a user."""
        return self.db.query(Word).filter(Word.user_id == user_id).count()

    def get_stage_statistics(self, user_id: int) -> Dict[int, int]:
        """Get the number of a user's words in every stage."""
        rows = (
            self.db.query(Word.stage, func.count(Word.id))
            .filter(Word.user_id == user_id)
            .group_by(Word.stage)
            .all()
        )
        statistics = {stage: 0 for stage in STAGES}
        statistics.update({stage: count for stage, count in rows})
        return statistics
