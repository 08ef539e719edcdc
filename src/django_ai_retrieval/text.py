"""
Text normalisation helpers shared by chunking, embedding and scoring.

Everything in here is a pure function so results are stable across processes.
"""

import hashlib
import re

MIN_TOKEN_LENGTH = 3

# Function words are never significant tokens or keywords
STOP_WORDS = frozenset(
    """
    about above after again all also and any are because been before being
    below between both but can could did does doing down during each every few
    for from further had has have having her here hers herself him himself his
    how into its itself just more most much must myself nor not now off once
    only other our ours ourselves out over own same she should some such than
    that the their theirs them themselves then there these they this those
    through too under until very was were what when where which while who whom
    whose why will with would you your yours yourself yourselves
    """.split()
)

_PUNCTUATION_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"\W+")


def normalize(text: str) -> str:
    """Lower-case text, blank out punctuation and collapse whitespace."""
    text = _PUNCTUATION_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def split_words(text: str) -> list[str]:
    """Split lower-cased text on non-word boundaries, dropping empty pieces."""
    return [word for word in _NON_WORD_RE.split(text.lower()) if word]


def tokenize(text: str, min_length: int = MIN_TOKEN_LENGTH) -> list[str]:
    """Return the normalised tokens of text that are at least min_length long."""
    return [word for word in split_words(normalize(text)) if len(word) >= min_length]


def significant_tokens(text: str) -> list[str]:
    """Tokens that say something about the topic of text."""
    return [token for token in tokenize(text, MIN_TOKEN_LENGTH) if token not in STOP_WORDS]


def content_hash(text: str) -> str:
    """Generate a hash for the given content."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def java_string_hash(token: str) -> int:
    """32-bit signed rolling hash (h = 31 * h + code unit).

    The builtin hash() is salted per process, so it can't be used to place
    tokens in a vector that has to be reproducible.
    """
    value = 0
    encoded = token.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        code_unit = int.from_bytes(encoded[i : i + 2], "little")
        value = (value * 31 + code_unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value
