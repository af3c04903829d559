"""Offline evaluation of matrix factorization models.

Cross-validation trains one model per fold and scores the held-out
ratings with RMSE and R^2. The hyperparameter sweep repeats that for a
grid of settings. Neither is used on the serving path.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.model_selection import KFold

from restrec.recommender.exceptions import InsufficientDataError
from restrec.recommender.train import (
    DEFAULT_LEARNING_RATE,
    DEFAULT_N_ITERATIONS,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RANK,
    DEFAULT_REGULARIZATION,
    DEFAULT_SOLVER,
    train_mf_model,
)
from restrec.recommender.utils import RATING_COL, RESTAURANT_COL, USER_COL

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_N_FOLDS = 5


@dataclass(frozen=True)
class FoldMetrics:
    """Scores of one cross-validation fold.

    Attributes:
        fold: Zero-based fold number.
        rmse: Root-mean-squared error on the scored held-out ratings.
        r2: Coefficient of determination on the same ratings.
        n_train: Ratings used to train the fold's model.
        n_test: Held-out ratings in the fold.
        n_skipped: Held-out ratings that could not be scored because their
            user or restaurant never appears in the training part.
    """

    fold: int
    rmse: float
    r2: float
    n_train: int
    n_test: int
    n_skipped: int


@dataclass(frozen=True)
class CrossValidationResult:
    folds: List[FoldMetrics]
    mean_rmse: float
    mean_r2: float
    params: Dict[str, object] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        """Per-fold metrics as a DataFrame, one row per fold."""
        return pd.DataFrame([vars(fold) for fold in self.folds])


def _score_fold(y_true: np.ndarray, y_pred: np.ndarray) -> tuple:
    if y_true.size == 0:
        return math.nan, math.nan
    rmse = float(np.sqrt(mean_squared_error(y_true, y_pred)))
    # r2_score is undefined for a single sample
    r2 = float(r2_score(y_true, y_pred)) if y_true.size > 1 else math.nan
    return rmse, r2


def cross_validate(
    ratings: pd.DataFrame,
    n_folds: int = DEFAULT_N_FOLDS,
    rank: int = DEFAULT_RANK,
    n_iter: int = DEFAULT_N_ITERATIONS,
    regularization: float = DEFAULT_REGULARIZATION,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    solver: str = DEFAULT_SOLVER,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> CrossValidationResult:
    """Estimate model quality with k-fold cross-validation.

    Rows are shuffled into folds with a seeded KFold, so the result is
    reproducible for a fixed random_state. Each fold trains a fresh model
    on the remaining folds; encoders are fitted on that training part only.

    Args:
        ratings: DataFrame with UserId, RestaurantName and TotalRating columns.
        n_folds: Number of folds, at least 2 (default: 5).
        rank: Width of the latent factor vectors.
        n_iter: Number of training iterations per fold.
        regularization: L2 penalty on the factors.
        learning_rate: SGD step size.
        solver: "als" or "sgd".
        random_state: Seed for the fold split and for training.

    Returns:
        Per-fold metrics and their arithmetic means.

    Raises:
        InsufficientDataError: If n_folds < 2 or there are fewer than
            2 * n_folds ratings.
    """
    if n_folds < 2:
        raise InsufficientDataError(
            f"Cross-validation needs at least 2 folds, got {n_folds}",
            details={"n_folds": n_folds},
        )
    if len(ratings) < 2 * n_folds:
        raise InsufficientDataError(
            f"Cross-validation with {n_folds} folds needs at least "
            f"{2 * n_folds} ratings, got {len(ratings)}",
            details={"n_folds": n_folds, "num_ratings": len(ratings)},
        )

    params = {
        "rank": rank,
        "n_iter": n_iter,
        "regularization": regularization,
        "learning_rate": learning_rate,
        "solver": solver,
        "n_folds": n_folds,
    }
    logger.info(f"Starting {n_folds}-fold cross-validation", extra={"params": params})

    splitter = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    folds: List[FoldMetrics] = []

    for fold, (train_rows, test_rows) in enumerate(splitter.split(ratings)):
        train = ratings.iloc[train_rows]
        test = ratings.iloc[test_rows]

        model = train_mf_model(
            train,
            rank=rank,
            n_iter=n_iter,
            regularization=regularization,
            learning_rate=learning_rate,
            solver=solver,
            random_state=random_state,
        )

        scorable = test[USER_COL].isin(model.user_encoder.classes_) & test[
            RESTAURANT_COL
        ].isin(model.restaurant_encoder.classes_)
        scored = test[scorable]
        y_true = scored[RATING_COL].to_numpy(dtype=np.float64)
        y_pred = model.predict_pairs(scored[USER_COL], scored[RESTAURANT_COL])
        rmse, r2 = _score_fold(y_true, y_pred)

        metrics = FoldMetrics(
            fold=fold,
            rmse=rmse,
            r2=r2,
            n_train=len(train),
            n_test=len(test),
            n_skipped=int((~scorable).sum()),
        )
        folds.append(metrics)

        logger.info(
            f"Fold {fold + 1}/{n_folds}: RMSE={rmse:.4f}, R2={r2:.4f}",
            extra={"n_skipped": metrics.n_skipped, "n_test": metrics.n_test},
        )
        if metrics.n_skipped:
            logger.warning(
                f"Fold {fold + 1}: skipped {metrics.n_skipped} held-out ratings "
                "with users or restaurants unseen in training"
            )

    result = CrossValidationResult(
        folds=folds,
        mean_rmse=float(np.mean([f.rmse for f in folds])),
        mean_r2=float(np.mean([f.r2 for f in folds])),
        params=params,
    )

    logger.info(
        f"Cross-validation finished: mean RMSE={result.mean_rmse:.4f}, "
        f"mean R2={result.mean_r2:.4f}"
    )

    return result


def sweep_hyperparameters(
    ratings: pd.DataFrame,
    ranks: Sequence[int] = (DEFAULT_RANK,),
    n_iters: Sequence[int] = (DEFAULT_N_ITERATIONS,),
    regularizations: Sequence[float] = (DEFAULT_REGULARIZATION,),
    n_folds: int = DEFAULT_N_FOLDS,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    solver: str = DEFAULT_SOLVER,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> List[CrossValidationResult]:
    """Cross-validate every combination of the given hyperparameters.

    Returns:
        One result per combination, best (lowest mean RMSE) first. Results
        with NaN mean RMSE sort last.
    """
    results = []
    grid = list(itertools.product(ranks, n_iters, regularizations))
    logger.info(f"Sweeping {len(grid)} hyperparameter combinations")

    for rank, n_iter, regularization in grid:
        results.append(
            cross_validate(
                ratings,
                n_folds=n_folds,
                rank=rank,
                n_iter=n_iter,
                regularization=regularization,
                learning_rate=learning_rate,
                solver=solver,
                random_state=random_state,
            )
        )

    results.sort(key=lambda r: (math.isnan(r.mean_rmse), r.mean_rmse))

    best: Optional[CrossValidationResult] = results[0] if results else None
    if best is not None:
        logger.info(f"Best hyperparameters: {best.params} (RMSE={best.mean_rmse:.4f})")

    return results
