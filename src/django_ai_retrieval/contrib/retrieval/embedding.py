from abc import ABC, abstractmethod
from typing import Iterable

import numpy as np

from django_ai_retrieval.text import java_string_hash, significant_tokens

from .schema import EmbeddedPassage, Passage

DEFAULT_DIMENSIONS = 1024
DEFAULT_MAX_TOKEN_WEIGHT = 1.5
DEFAULT_TOKEN_WEIGHT_DIVISOR = 4.0
DEFAULT_NEIGHBOUR_WEIGHT = 0.5


class EmbeddingTransformer(ABC):
    """Base class for embedding transformers which turn Passages into EmbeddedPassages."""

    @property
    def transformer_id(self) -> str:
        """Get unique identifier for this transformer."""
        return self.__class__.__name__

    @abstractmethod
    def embed_string(self, text: str) -> np.ndarray:
        """Embed a string using the transformer."""
        pass

    def embed_passages(self, passages: Iterable["Passage"]) -> list["EmbeddedPassage"]:
        """Add embeddings to multiple passages."""
        return [passage.add_embedding(self.embed_string(passage.content)) for passage in passages]


class HashEmbeddingTransformer(EmbeddingTransformer):
    """Deterministic pseudo-embedding built from hashed tokens.

    Each significant token is hashed into one of `dimensions` buckets and adds
    a weight proportional to its length (capped at max_token_weight). A
    fraction of that weight also lands in the two neighbouring buckets, so
    near-collisions still earn partial credit. The result is L2-normalised;
    text without significant tokens maps to the zero vector.
    """

    def __init__(
        self,
        dimensions: int = DEFAULT_DIMENSIONS,
        max_token_weight: float = DEFAULT_MAX_TOKEN_WEIGHT,
        token_weight_divisor: float = DEFAULT_TOKEN_WEIGHT_DIVISOR,
        neighbour_weight: float = DEFAULT_NEIGHBOUR_WEIGHT,
    ):
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        if token_weight_divisor <= 0:
            raise ValueError("token_weight_divisor must be positive")
        self.dimensions = dimensions
        self.max_token_weight = max_token_weight
        self.token_weight_divisor = token_weight_divisor
        self.neighbour_weight = neighbour_weight

    @property
    def transformer_id(self) -> str:
        """Get unique identifier for this transformer, including its parameters."""
        return (
            f"hash_{self.dimensions}_{self.max_token_weight}"
            f"_{self.token_weight_divisor}_{self.neighbour_weight}"
        )

    def token_weight(self, token: str) -> float:
        return min(self.max_token_weight, len(token) / self.token_weight_divisor)

    def bucket(self, token: str) -> int:
        return java_string_hash(token) % self.dimensions

    def embed_string(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimensions, dtype=np.float64)

        for token in significant_tokens(text):
            position = self.bucket(token)
            weight = self.token_weight(token)
            vector[position] += weight
            if position > 0:
                vector[position - 1] += weight * self.neighbour_weight
            if position < self.dimensions - 1:
                vector[position + 1] += weight * self.neighbour_weight

        magnitude = np.linalg.norm(vector)
        if magnitude > 0:
            vector /= magnitude

        vector.setflags(write=False)
        return vector
