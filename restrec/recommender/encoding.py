"""Categorical encoding of user and restaurant identifiers.

Maps raw string identifiers to dense zero-based integer indices so they
can address rows of the latent factor matrices.
"""

import logging
from typing import Dict, Hashable, Iterable, Tuple

import numpy as np
import pandas as pd

from restrec.recommender.exceptions import PersistenceError, UnknownCategoryError

# Configure module logger
logger = logging.getLogger(__name__)


class CategoryEncoder:
    """Bijection between raw identifiers and dense integer indices.

    Indices are assigned in first-seen order when the encoder is fitted.
    The encoder never grows afterwards: unseen values raise
    UnknownCategoryError.
    """

    def __init__(self, classes: Iterable[Hashable], category: str = "value"):
        self._classes: Tuple[Hashable, ...] = tuple(classes)
        self._index = pd.Index(self._classes)
        if not self._index.is_unique:
            raise ValueError(f"Duplicate {category} values in encoder classes")
        self._value_to_idx: Dict[Hashable, int] = {
            value: idx for idx, value in enumerate(self._classes)
        }
        self.category = category

    @classmethod
    def fit(
        cls, values: Iterable[Hashable], category: str = "value"
    ) -> "CategoryEncoder":
        """Build an encoder from the distinct values, in first-seen order."""
        distinct = pd.unique(pd.Series(list(values), dtype=object))
        encoder = cls(distinct.tolist(), category=category)
        logger.debug(f"Fitted {category} encoder with {len(encoder)} classes")
        return encoder

    @classmethod
    def from_dict(
        cls, mapping: Dict[Hashable, int], category: str = "value"
    ) -> "CategoryEncoder":
        """Rebuild an encoder from a value-to-index mapping.

        Raises:
            PersistenceError: If the indices are not exactly 0..n-1.
        """
        indices = sorted(mapping.values())
        if indices != list(range(len(mapping))):
            raise PersistenceError(
                f"Invalid {category} mapping: indices must cover 0..{len(mapping) - 1}",
                details={"category": category, "size": len(mapping)},
            )
        ordered = sorted(mapping.items(), key=lambda item: item[1])
        return cls([value for value, _ in ordered], category=category)

    @property
    def classes_(self) -> Tuple[Hashable, ...]:
        return self._classes

    def __len__(self) -> int:
        return len(self._classes)

    def __contains__(self, value: object) -> bool:
        return value in self._value_to_idx

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoryEncoder):
            return NotImplemented
        return self.category == other.category and self._classes == other._classes

    def __repr__(self) -> str:
        return f"CategoryEncoder(category={self.category!r}, n_classes={len(self)})"

    def encode(self, value: Hashable) -> int:
        try:
            return self._value_to_idx[value]
        except (KeyError, TypeError):
            raise UnknownCategoryError(value, self.category) from None

    def encode_many(self, values: Iterable[Hashable]) -> np.ndarray:
        """Encode a sequence of values in one pass.

        Raises:
            UnknownCategoryError: Naming the first value that has no encoding.
        """
        values = list(values)
        indices = self._index.get_indexer(values)
        missing = np.flatnonzero(indices < 0)
        if missing.size:
            raise UnknownCategoryError(values[missing[0]], self.category)
        return indices.astype(np.int64)

    def decode(self, index: int) -> Hashable:
        if not 0 <= int(index) < len(self._classes):
            raise UnknownCategoryError(index, f"{self.category} index")
        return self._classes[int(index)]

    def to_dict(self) -> Dict[Hashable, int]:
        return dict(self._value_to_idx)
