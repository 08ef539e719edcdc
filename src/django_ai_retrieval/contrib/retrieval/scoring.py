import numpy as np

from django_ai_retrieval.text import STOP_WORDS, split_words

DEFAULT_DIMENSION_EPSILON = 0.01
DEFAULT_DIMENSION_BONUS_DIVISOR = 50.0
DEFAULT_MAX_DIMENSION_BONUS = 0.1
DEFAULT_KEYWORD_MIN_LENGTH = 4
DEFAULT_KEYWORD_LENGTH_DIVISOR = 15.0
DEFAULT_MAX_KEYWORD_BOOST = 0.3
DEFAULT_SHORT_QUERY_KEYWORD_BONUS = 0.1


class SimilarityScorer:
    """Hybrid vector and lexical relevance score.

    The vector part is the dot product of two normalised vectors plus a small
    bonus for every dimension both vectors activate. The lexical part rewards
    query words that appear verbatim in the passage, longer words more, which
    covers short keyword-style queries the hashed vectors barely separate.
    """

    def __init__(
        self,
        *,
        dimension_epsilon: float = DEFAULT_DIMENSION_EPSILON,
        dimension_bonus_divisor: float = DEFAULT_DIMENSION_BONUS_DIVISOR,
        max_dimension_bonus: float = DEFAULT_MAX_DIMENSION_BONUS,
        keyword_min_length: int = DEFAULT_KEYWORD_MIN_LENGTH,
        keyword_length_divisor: float = DEFAULT_KEYWORD_LENGTH_DIVISOR,
        max_keyword_boost: float = DEFAULT_MAX_KEYWORD_BOOST,
        short_query_keyword_bonus: float = DEFAULT_SHORT_QUERY_KEYWORD_BONUS,
    ):
        self.dimension_epsilon = dimension_epsilon
        self.dimension_bonus_divisor = dimension_bonus_divisor
        self.max_dimension_bonus = max_dimension_bonus
        self.keyword_min_length = keyword_min_length
        self.keyword_length_divisor = keyword_length_divisor
        self.max_keyword_boost = max_keyword_boost
        self.short_query_keyword_bonus = short_query_keyword_bonus

    def vector_score(self, query_vector: np.ndarray, passage_vector: np.ndarray) -> float:
        if query_vector.shape != passage_vector.shape:
            return 0.0

        matched_dimensions = np.count_nonzero(
            (query_vector > self.dimension_epsilon)
            & (passage_vector > self.dimension_epsilon)
        )
        dimension_bonus = min(
            self.max_dimension_bonus, matched_dimensions / self.dimension_bonus_divisor
        )
        return float(np.dot(query_vector, passage_vector)) + dimension_bonus

    def keywords(self, query_text: str) -> list[str]:
        return [
            word
            for word in split_words(query_text)
            if len(word) >= self.keyword_min_length and word not in STOP_WORDS
        ]

    def keyword_boost(
        self, query_text: str, passage_text: str, *, short_query: bool = False
    ) -> float:
        passage_lower = passage_text.lower()
        boost = 0.0
        for word in self.keywords(query_text):
            if word in passage_lower:
                boost += min(self.max_keyword_boost, len(word) / self.keyword_length_divisor)
                if short_query:
                    boost += self.short_query_keyword_bonus
        return boost

    def score(
        self,
        query_vector: np.ndarray,
        passage_vector: np.ndarray,
        query_text: str,
        passage_text: str,
        *,
        short_query: bool = False,
    ) -> float:
        return self.vector_score(query_vector, passage_vector) + self.keyword_boost(
            query_text, passage_text, short_query=short_query
        )
