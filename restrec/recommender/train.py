"""Matrix factorization model training module.

This module learns low-rank latent factors for users and restaurants from
explicit (user, restaurant, rating) triples. The factors minimise the
squared reconstruction error of the observed ratings plus an L2 penalty:

    sum((rating - U[u] . R[r]) ** 2) + regularization * (|U|^2 + |R|^2)

Two solvers are available: alternating least squares (the default) and
stochastic gradient descent. Both are deterministic for a fixed
random_state.
"""

import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from restrec.recommender.encoding import CategoryEncoder
from restrec.recommender.exceptions import InsufficientDataError
from restrec.recommender.model import RestaurantRecommenderModel
from restrec.recommender.utils import (
    RATING_COL,
    RESTAURANT_COL,
    USER_COL,
    load_ratings,
    save_model_artifacts,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Model configuration constants
DEFAULT_RANK = 100
DEFAULT_N_ITERATIONS = 100
DEFAULT_REGULARIZATION = 0.1
DEFAULT_LEARNING_RATE = 0.01
DEFAULT_RANDOM_STATE = 0
DEFAULT_SOLVER = "als"
DEFAULT_INIT_SCALE = 0.1

SOLVERS = ("als", "sgd")


@dataclass(frozen=True)
class TrainingConfig:
    """Parameters for a complete training run."""

    csv_path: str
    output_dir: Optional[str] = None
    rank: int = DEFAULT_RANK
    n_iter: int = DEFAULT_N_ITERATIONS
    regularization: float = DEFAULT_REGULARIZATION
    learning_rate: float = DEFAULT_LEARNING_RATE
    solver: str = DEFAULT_SOLVER
    random_state: int = DEFAULT_RANDOM_STATE
    sep: str = "\t"


def _is_positive_int(value) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, np.integer)) and value > 0


def _validate_hyperparameters(
    rank: int,
    n_iter: int,
    regularization: float,
    learning_rate: float,
    solver: str,
) -> None:
    if not _is_positive_int(rank):
        raise ValueError(f"rank must be a positive integer, got {rank!r}")
    if not _is_positive_int(n_iter):
        raise ValueError(f"n_iter must be a positive integer, got {n_iter!r}")
    if solver not in SOLVERS:
        raise ValueError(f"solver must be one of {SOLVERS}, got {solver!r}")
    if not math.isfinite(regularization) or regularization < 0:
        raise ValueError(
            f"regularization must be finite and non-negative, got {regularization}"
        )
    if solver == "als" and regularization == 0:
        raise ValueError("The ALS solver requires a positive regularization")
    if not math.isfinite(learning_rate) or learning_rate <= 0:
        raise ValueError(
            f"learning_rate must be finite and positive, got {learning_rate}"
        )


def _group_observations(indices: np.ndarray, n_groups: int) -> List[np.ndarray]:
    """Positions of the observations belonging to each row index."""
    order = np.argsort(indices, kind="stable")
    counts = np.bincount(indices, minlength=n_groups)
    return np.split(order, np.cumsum(counts)[:-1])


def _rmse(
    user_factors: np.ndarray,
    restaurant_factors: np.ndarray,
    user_idx: np.ndarray,
    restaurant_idx: np.ndarray,
    ratings: np.ndarray,
) -> float:
    predictions = np.einsum(
        "ij,ij->i", user_factors[user_idx], restaurant_factors[restaurant_idx]
    )
    return float(np.sqrt(np.mean((ratings - predictions) ** 2)))


def _als_half_step(
    fixed: np.ndarray,
    groups: List[np.ndarray],
    other_idx: np.ndarray,
    ratings: np.ndarray,
    regularization: float,
) -> np.ndarray:
    """Solve every row of one factor matrix with the other held fixed."""
    rank = fixed.shape[1]
    ridge = regularization * np.eye(rank)
    solved = np.empty((len(groups), rank))
    for row, observations in enumerate(groups):
        factors = fixed[other_idx[observations]]
        lhs = factors.T @ factors + ridge
        rhs = factors.T @ ratings[observations]
        solved[row] = linalg.solve(lhs, rhs, assume_a="pos")
    return solved


def _sgd_epoch(
    user_factors: np.ndarray,
    restaurant_factors: np.ndarray,
    user_idx: np.ndarray,
    restaurant_idx: np.ndarray,
    ratings: np.ndarray,
    order: np.ndarray,
    learning_rate: float,
    regularization: float,
) -> None:
    for i in order:
        u = user_idx[i]
        r = restaurant_idx[i]
        user_vec = user_factors[u].copy()
        error = ratings[i] - user_vec @ restaurant_factors[r]
        user_factors[u] += learning_rate * (
            error * restaurant_factors[r] - regularization * user_vec
        )
        restaurant_factors[r] += learning_rate * (
            error * user_vec - regularization * restaurant_factors[r]
        )


def fit_factors(
    user_idx: np.ndarray,
    restaurant_idx: np.ndarray,
    ratings: np.ndarray,
    n_users: int,
    n_restaurants: int,
    rank: int = DEFAULT_RANK,
    n_iter: int = DEFAULT_N_ITERATIONS,
    regularization: float = DEFAULT_REGULARIZATION,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    solver: str = DEFAULT_SOLVER,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> Tuple[np.ndarray, np.ndarray, float]:
    """Learn user and restaurant factor matrices from encoded ratings.

    Args:
        user_idx: Encoded user index of each rating.
        restaurant_idx: Encoded restaurant index of each rating.
        ratings: Observed rating values.
        n_users: Number of rows of the user factor matrix.
        n_restaurants: Number of rows of the restaurant factor matrix.
        rank: Width of the latent factor vectors.
        n_iter: Number of ALS sweeps or SGD epochs.
        regularization: L2 penalty on the factors.
        learning_rate: SGD step size (ignored by ALS).
        solver: "als" or "sgd".
        random_state: Seed for factor initialisation and SGD shuffling.

    Returns:
        A tuple containing:
            - User factors of shape (n_users, rank)
            - Restaurant factors of shape (n_restaurants, rank)
            - Final training RMSE

    Raises:
        ValueError: If a hyperparameter is invalid or the index arrays
            are inconsistent.
        InsufficientDataError: If there are no ratings, or a user or
            restaurant has no observations.
    """
    _validate_hyperparameters(rank, n_iter, regularization, learning_rate, solver)

    user_idx = np.asarray(user_idx, dtype=np.int64)
    restaurant_idx = np.asarray(restaurant_idx, dtype=np.int64)
    ratings = np.asarray(ratings, dtype=np.float64)

    aligned = user_idx.shape == restaurant_idx.shape == ratings.shape
    if not aligned or ratings.ndim != 1:
        raise ValueError("user_idx, restaurant_idx and ratings must be 1-D and aligned")
    if ratings.size == 0:
        raise InsufficientDataError("Cannot train on an empty set of ratings")
    if user_idx.min() < 0 or user_idx.max() >= n_users:
        raise ValueError(f"user indices must lie in [0, {n_users})")
    if restaurant_idx.min() < 0 or restaurant_idx.max() >= n_restaurants:
        raise ValueError(f"restaurant indices must lie in [0, {n_restaurants})")

    for name, indices, size in (
        ("user", user_idx, n_users),
        ("restaurant", restaurant_idx, n_restaurants),
    ):
        unobserved = np.flatnonzero(np.bincount(indices, minlength=size) == 0)
        if unobserved.size:
            raise InsufficientDataError(
                f"{unobserved.size} {name}(s) have no ratings, "
                f"e.g. {name} index {int(unobserved[0])}",
                details={"category": name, "indices": unobserved[:10].tolist()},
            )

    logger.info(
        f"Training {solver.upper()} matrix factorization with rank {rank}",
        extra={
            "num_ratings": int(ratings.size),
            "num_users": n_users,
            "num_restaurants": n_restaurants,
            "n_iter": n_iter,
            "regularization": regularization,
            "random_state": random_state,
        },
    )

    rng = np.random.default_rng(random_state)
    user_factors = rng.normal(0.0, DEFAULT_INIT_SCALE, size=(n_users, rank))
    restaurant_factors = rng.normal(0.0, DEFAULT_INIT_SCALE, size=(n_restaurants, rank))

    if solver == "als":
        user_groups = _group_observations(user_idx, n_users)
        restaurant_groups = _group_observations(restaurant_idx, n_restaurants)

    for iteration in range(n_iter):
        if solver == "als":
            user_factors = _als_half_step(
                restaurant_factors, user_groups, restaurant_idx, ratings, regularization
            )
            restaurant_factors = _als_half_step(
                user_factors, restaurant_groups, user_idx, ratings, regularization
            )
        else:
            order = rng.permutation(ratings.size)
            _sgd_epoch(
                user_factors,
                restaurant_factors,
                user_idx,
                restaurant_idx,
                ratings,
                order,
                learning_rate,
                regularization,
            )

        if logger.isEnabledFor(logging.DEBUG):
            rmse = _rmse(
                user_factors, restaurant_factors, user_idx, restaurant_idx, ratings
            )
            logger.debug(
                f"Iteration {iteration + 1}/{n_iter}: training RMSE {rmse:.4f}"
            )

    training_rmse = _rmse(
        user_factors, restaurant_factors, user_idx, restaurant_idx, ratings
    )
    if not np.isfinite(training_rmse):
        raise ValueError(
            "Training diverged (non-finite RMSE); lower the learning rate "
            "or raise the regularization"
        )

    logger.info(f"Model training completed, training RMSE: {training_rmse:.4f}")

    return user_factors, restaurant_factors, training_rmse


def train_mf_model(
    ratings: pd.DataFrame,
    rank: int = DEFAULT_RANK,
    n_iter: int = DEFAULT_N_ITERATIONS,
    regularization: float = DEFAULT_REGULARIZATION,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    solver: str = DEFAULT_SOLVER,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> RestaurantRecommenderModel:
    """Train a matrix factorization model on a ratings DataFrame.

    Fits the user and restaurant encoders on the ratings themselves, so
    every rating references a known user and restaurant.

    Args:
        ratings: DataFrame with UserId, RestaurantName and TotalRating columns.
        rank: Width of the latent factor vectors (default: 100).
        n_iter: Number of training iterations (default: 100).
        regularization: L2 penalty on the factors (default: 0.1).
        learning_rate: SGD step size (default: 0.01).
        solver: "als" (default) or "sgd".
        random_state: Random seed for reproducibility (default: 0).

    Returns:
        The trained model.

    Raises:
        InsufficientDataError: If ratings is empty.
        ValueError: If a column is missing or a hyperparameter is invalid.
    """
    missing = {USER_COL, RESTAURANT_COL, RATING_COL} - set(ratings.columns)
    if missing:
        raise ValueError(f"Ratings missing required columns: {sorted(missing)}")
    if ratings.empty:
        raise InsufficientDataError("Cannot train on an empty set of ratings")

    user_encoder = CategoryEncoder.fit(ratings[USER_COL], category="user")
    restaurant_encoder = CategoryEncoder.fit(
        ratings[RESTAURANT_COL], category="restaurant"
    )

    user_factors, restaurant_factors, training_rmse = fit_factors(
        user_encoder.encode_many(ratings[USER_COL]),
        restaurant_encoder.encode_many(ratings[RESTAURANT_COL]),
        ratings[RATING_COL].to_numpy(dtype=np.float64),
        n_users=len(user_encoder),
        n_restaurants=len(restaurant_encoder),
        rank=rank,
        n_iter=n_iter,
        regularization=regularization,
        learning_rate=learning_rate,
        solver=solver,
        random_state=random_state,
    )

    return RestaurantRecommenderModel(
        user_factors=user_factors,
        restaurant_factors=restaurant_factors,
        user_encoder=user_encoder,
        restaurant_encoder=restaurant_encoder,
        params={
            "rank": int(rank),
            "n_iter": int(n_iter),
            "regularization": float(regularization),
            "learning_rate": float(learning_rate),
            "solver": solver,
            "random_state": int(random_state),
        },
        training_rmse=training_rmse,
    )


def train_restaurant_model(
    csv_path: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    rank: int = DEFAULT_RANK,
    n_iter: int = DEFAULT_N_ITERATIONS,
    regularization: float = DEFAULT_REGULARIZATION,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    solver: str = DEFAULT_SOLVER,
    random_state: int = DEFAULT_RANDOM_STATE,
    sep: str = "\t",
) -> RestaurantRecommenderModel:
    """Train a restaurant recommendation model from a ratings file.

    This is the main entry point for offline training. It orchestrates the
    complete pipeline: loading data, fitting encoders, learning the factor
    matrices, and saving artifacts.

    Args:
        csv_path: Path to a ratings file with UserId, RestaurantName and
            TotalRating columns.
        output_dir: Directory where model artifacts will be saved. Nothing
            is written when None.
        rank: Width of the latent factor vectors (default: 100).
        n_iter: Number of training iterations (default: 100).
        regularization: L2 penalty on the factors (default: 0.1).
        learning_rate: SGD step size (default: 0.01).
        solver: "als" (default) or "sgd".
        random_state: Random seed for reproducibility (default: 0).
        sep: Field separator of the ratings file (default: tab).

    Returns:
        The trained model.

    Raises:
        FileNotFoundError: If the ratings file does not exist.
        ParseError: If the ratings file is malformed.
        InsufficientDataError: If there is nothing to train on.
        PersistenceError: If unable to save model artifacts.

    Example:
        >>> model = train_restaurant_model(
        ...     "data/trainingData.tsv",
        ...     output_dir="models",
        ...     rank=50,
        ... )
        >>> print(f"Trained model with rank {model.rank}")
    """
    logger.info("=" * 60)
    logger.info("Starting matrix factorization model training")
    logger.info("=" * 60)

    try:
        ratings = load_ratings(csv_path, sep=sep)

        model = train_mf_model(
            ratings,
            rank=rank,
            n_iter=n_iter,
            regularization=regularization,
            learning_rate=learning_rate,
            solver=solver,
            random_state=random_state,
        )

        if output_dir is not None:
            save_model_artifacts(model, output_dir)

        logger.info("=" * 60)
        logger.info("Training completed successfully!")
        logger.info("=" * 60)

        return model

    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        raise


def train_with_config(config: TrainingConfig) -> RestaurantRecommenderModel:
    """Train a model from a TrainingConfig."""
    logger.debug("Training configuration", extra={"config": asdict(config)})
    return train_restaurant_model(
        csv_path=config.csv_path,
        output_dir=config.output_dir,
        rank=config.rank,
        n_iter=config.n_iter,
        regularization=config.regularization,
        learning_rate=config.learning_rate,
        solver=config.solver,
        random_state=config.random_state,
        sep=config.sep,
    )
