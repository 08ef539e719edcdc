"""
Settings for the retrieval engine.

Every tuned constant lives here as a named field. Projects override them with
an `AI_RETRIEVAL` dict in their Django settings, using the field names as keys:

    AI_RETRIEVAL = {
        "chunk_size": 800,
        "specific_terms": ["acme-3c", "office.adv"],
    }
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from . import chunking, context, embedding, query, scoring

SETTINGS_NAME = "AI_RETRIEVAL"


@dataclass(frozen=True)
class RetrievalSettings:
    # Chunking
    chunk_size: int = chunking.DEFAULT_CHUNK_SIZE
    chunk_overlap: int = chunking.DEFAULT_CHUNK_OVERLAP
    split_oversized_paragraphs: bool = True

    # Vectorizer
    vector_dimensions: int = embedding.DEFAULT_DIMENSIONS
    max_token_weight: float = embedding.DEFAULT_MAX_TOKEN_WEIGHT
    token_weight_divisor: float = embedding.DEFAULT_TOKEN_WEIGHT_DIVISOR
    neighbour_weight: float = embedding.DEFAULT_NEIGHBOUR_WEIGHT

    # Scoring
    dimension_epsilon: float = scoring.DEFAULT_DIMENSION_EPSILON
    dimension_bonus_divisor: float = scoring.DEFAULT_DIMENSION_BONUS_DIVISOR
    max_dimension_bonus: float = scoring.DEFAULT_MAX_DIMENSION_BONUS
    keyword_min_length: int = scoring.DEFAULT_KEYWORD_MIN_LENGTH
    keyword_length_divisor: float = scoring.DEFAULT_KEYWORD_LENGTH_DIVISOR
    max_keyword_boost: float = scoring.DEFAULT_MAX_KEYWORD_BOOST
    short_query_keyword_bonus: float = scoring.DEFAULT_SHORT_QUERY_KEYWORD_BONUS

    # Query
    min_relevance_score: float = query.DEFAULT_MIN_RELEVANCE_SCORE
    short_query_threshold_factor: float = query.DEFAULT_SHORT_QUERY_THRESHOLD_FACTOR
    short_query_max_tokens: int = query.DEFAULT_SHORT_QUERY_MAX_TOKENS
    specific_terms: tuple[str, ...] = ()
    default_top_k: int = query.DEFAULT_TOP_K
    specific_term_top_k: int = query.DEFAULT_SPECIFIC_TERM_TOP_K
    direct_match_score: float = query.DEFAULT_DIRECT_MATCH_SCORE

    # Context assembly
    default_max_chars: int = context.DEFAULT_MAX_CHARS
    min_truncated_chars: int = context.DEFAULT_MIN_TRUNCATED_CHARS
    condense_ratio: float | None = context.DEFAULT_CONDENSE_RATIO
    preview_chars: int = context.DEFAULT_PREVIEW_CHARS

    # Engine
    cache_max_entries: int | None = None
    enabled: bool = True

    def __post_init__(self):
        # Accept any iterable of terms, but store them hashable and immutable
        object.__setattr__(self, "specific_terms", tuple(self.specific_terms))
        self.validate()

    def validate(self):
        positive = [
            "chunk_size",
            "vector_dimensions",
            "token_weight_divisor",
            "dimension_bonus_divisor",
            "keyword_length_divisor",
            "default_top_k",
            "specific_term_top_k",
            "default_max_chars",
            "preview_chars",
        ]
        for name in positive:
            if getattr(self, name) <= 0:
                raise ImproperlyConfigured(
                    f"{SETTINGS_NAME}['{name}'] must be positive, got {getattr(self, name)!r}"
                )

        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ImproperlyConfigured(
                f"{SETTINGS_NAME}['chunk_overlap'] must be at least 0 and smaller "
                f"than chunk_size ({self.chunk_size}), got {self.chunk_overlap!r}"
            )
        if not 0 < self.short_query_threshold_factor <= 1:
            raise ImproperlyConfigured(
                f"{SETTINGS_NAME}['short_query_threshold_factor'] must be in (0, 1], "
                f"got {self.short_query_threshold_factor!r}"
            )
        if self.cache_max_entries is not None and self.cache_max_entries < 1:
            raise ImproperlyConfigured(
                f"{SETTINGS_NAME}['cache_max_entries'] must be positive or None"
            )
        if self.condense_ratio is not None and self.condense_ratio < 1:
            raise ImproperlyConfigured(
                f"{SETTINGS_NAME}['condense_ratio'] must be at least 1 or None"
            )

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "RetrievalSettings":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ImproperlyConfigured(
                f"Unknown {SETTINGS_NAME} settings: {', '.join(unknown)}"
            )
        return cls(**values)

    def replace(self, **changes) -> "RetrievalSettings":
        return dataclasses.replace(self, **changes)


def get_retrieval_settings() -> RetrievalSettings:
    """Build settings from the Django `AI_RETRIEVAL` setting, if any."""
    if not settings.configured:
        return RetrievalSettings()
    return RetrievalSettings.from_dict(getattr(settings, SETTINGS_NAME, {}))
