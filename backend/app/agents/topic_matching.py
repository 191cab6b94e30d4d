import re
from typing import Iterable

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

MIN_WORD_MATCH_RATIO = 0.6
MIN_MATCHING_WORDS = 2


def topic_key(name: str) -> str:
    return (name or "").lower().strip()


def normalize_topic(name: str) -> str:
    text = _NON_ALNUM.sub("", (name or "").lower().strip())
    return _WHITESPACE.sub(" ", text)


def _significant_words(text: str):
    return [w for w in text.split(" ") if len(w) > 2]


def is_valid_topic_fuzzy(session_topic: str, valid_topics: Iterable[str]) -> bool:
    """Whether a generated topic name plausibly refers to one of the user's topics.

    Matches, in order of preference: identical after normalisation, one name
    containing the other, or at least 60% of the session topic's words
    (longer than two characters) appearing in a valid topic with two or more
    matching words.
    """
    valid_topics = list(valid_topics)
    session = normalize_topic(session_topic)

    normalized_valid = [normalize_topic(v) for v in valid_topics]
    if session in normalized_valid:
        return True

    session_words = _significant_words(session)
    for valid in normalized_valid:
        if session in valid or valid in session:
            return True

        valid_words = _significant_words(valid)
        matching = [w for w in session_words if w in valid_words or w in valid]
        ratio = len(matching) / len(session_words) if session_words else 0
        if ratio >= MIN_WORD_MATCH_RATIO and len(matching) >= MIN_MATCHING_WORDS:
            return True

    return False
