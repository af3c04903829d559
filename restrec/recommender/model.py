"""Trained matrix factorization model and rating predictor.

A RestaurantRecommenderModel is an immutable snapshot produced by training
or by loading persisted artifacts. Predictions are plain dot products of
user and restaurant latent factors and are never clamped to the rating
range.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

import numpy as np

from restrec.recommender.encoding import CategoryEncoder

# Configure module logger
logger = logging.getLogger(__name__)


def _read_only(matrix: np.ndarray) -> np.ndarray:
    matrix = np.array(matrix, dtype=np.float64, copy=True)
    matrix.flags.writeable = False
    return matrix


@dataclass(frozen=True, eq=False)
class RestaurantRecommenderModel:
    """Latent factors plus the encoders that address them.

    Attributes:
        user_factors: Matrix of shape (n_users, rank).
        restaurant_factors: Matrix of shape (n_restaurants, rank).
        user_encoder: Encoder for user identifiers (rows of user_factors).
        restaurant_encoder: Encoder for restaurant names (rows of
            restaurant_factors).
        params: Hyperparameters the model was trained with.
        training_rmse: Root-mean-squared error on the training ratings.
    """

    user_factors: np.ndarray
    restaurant_factors: np.ndarray
    user_encoder: CategoryEncoder
    restaurant_encoder: CategoryEncoder
    params: Dict[str, Any] = field(default_factory=dict)
    training_rmse: float = float("nan")

    def __post_init__(self) -> None:
        user_factors = _read_only(self.user_factors)
        restaurant_factors = _read_only(self.restaurant_factors)

        if user_factors.ndim != 2 or restaurant_factors.ndim != 2:
            raise ValueError("Factor matrices must be two-dimensional")
        if user_factors.shape[1] != restaurant_factors.shape[1]:
            raise ValueError(
                f"Factor rank mismatch: users have {user_factors.shape[1]}, "
                f"restaurants have {restaurant_factors.shape[1]}"
            )
        if user_factors.shape[0] != len(self.user_encoder):
            raise ValueError(
                f"user_factors has {user_factors.shape[0]} rows but the encoder "
                f"knows {len(self.user_encoder)} users"
            )
        if restaurant_factors.shape[0] != len(self.restaurant_encoder):
            raise ValueError(
                f"restaurant_factors has {restaurant_factors.shape[0]} rows but the "
                f"encoder knows {len(self.restaurant_encoder)} restaurants"
            )

        object.__setattr__(self, "user_factors", user_factors)
        object.__setattr__(self, "restaurant_factors", restaurant_factors)
        object.__setattr__(self, "params", dict(self.params))

    @property
    def rank(self) -> int:
        return int(self.user_factors.shape[1])

    @property
    def n_users(self) -> int:
        return len(self.user_encoder)

    @property
    def n_restaurants(self) -> int:
        return len(self.restaurant_encoder)

    def predict(self, user_id: str, restaurant_name: str) -> float:
        """Predict the rating a user would give a restaurant.

        Args:
            user_id: Raw user identifier seen during training.
            restaurant_name: Raw restaurant name seen during training.

        Returns:
            Dot product of the two factor vectors.

        Raises:
            UnknownCategoryError: If either identifier has no encoding.
        """
        user_idx = self.user_encoder.encode(user_id)
        restaurant_idx = self.restaurant_encoder.encode(restaurant_name)
        return float(
            np.dot(self.user_factors[user_idx], self.restaurant_factors[restaurant_idx])
        )

    def predict_many(self, user_id: str, restaurant_names: Iterable[str]) -> np.ndarray:
        """Predict ratings of one user for several restaurants at once."""
        user_idx = self.user_encoder.encode(user_id)
        restaurant_idx = self.restaurant_encoder.encode_many(restaurant_names)
        return self.restaurant_factors[restaurant_idx] @ self.user_factors[user_idx]

    def predict_pairs(
        self, user_ids: Iterable[str], restaurant_names: Iterable[str]
    ) -> np.ndarray:
        """Predict ratings for aligned sequences of users and restaurants."""
        user_idx = self.user_encoder.encode_many(user_ids)
        restaurant_idx = self.restaurant_encoder.encode_many(restaurant_names)
        if user_idx.shape != restaurant_idx.shape:
            raise ValueError("user_ids and restaurant_names must have the same length")
        return np.einsum(
            "ij,ij->i",
            self.user_factors[user_idx],
            self.restaurant_factors[restaurant_idx],
        )
