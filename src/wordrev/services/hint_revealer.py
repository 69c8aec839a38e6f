"""Letter-by-letter hints inside the blanked example sentence."""
import logging
from typing import Optional

from wordrev.config import settings
from wordrev.models.revision_models import WordRecord

logger = logging.getLogger(__name__)


class HintRevealer:
    """Reveals the current word one letter at a time."""

    def __init__(self, blank_marker: Optional[str] = None):
        self.blank_marker = blank_marker or settings.revision.blank_marker
        self.word: Optional[WordRecord] = None
        self.revealed_count = 0

    def reset(self, word: Optional[WordRecord]) -> None:
        """Start over for a newly shown word."""
        self.word = word
        self.revealed_count = 0

    @property
    def word_length(self) -> int:
        return len(self.word.target_word) if self.word else 0

    @property
    def can_reveal(self) -> bool:
        return self.revealed_count < self.word_length

    def reveal_next(self) -> bool:
        """Reveal one more letter.

        Returns whether further letters remain, so the caller can disable the
        hint button once the word is fully shown.
        """
        if self.can_reveal:
            self.revealed_count += 1
            logger.debug(f"Revealed {self.revealed_count}/{self.word_length} letters of word {self.word.id}")
        return self.can_reveal

    def render(self) -> str:
        """The blanked example with the revealed letters filled in."""
        if self.word is None:
            return ""
        blanked = self.word.blanked_example
        if self.revealed_count == 0:
            return blanked

        revealed = self.word.target_word.lower()[:self.revealed_count]
        rest = self.blank_marker if self.can_reveal else ""
        return blanked.replace(self.blank_marker, revealed + rest, 1)
