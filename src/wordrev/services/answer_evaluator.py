"""Answer checking for typed revision answers."""


def normalize_answer(answer: str) -> str:
    """Normalize an answer by trimming whitespace and converting to lowercase."""
    return answer.strip().lower()


def is_blank_answer(answer: str) -> bool:
    return not answer or not answer.strip()


def is_correct(expected: str, typed: str) -> bool:
    """Check if a typed answer matches the expected word.

    Case and surrounding whitespace are ignored; anything else, including
    other inflections of the same word, counts as wrong.
    """
    if is_blank_answer(typed):
        return False
    return normalize_answer(expected) == normalize_answer(typed)
