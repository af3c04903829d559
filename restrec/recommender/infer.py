"""Module for getting recommendations.

Uses a trained model to recommend restaurants a user has not rated yet.
The model is always passed in explicitly; nothing here loads or caches
models behind the caller's back.
"""

import logging
import time
from typing import Dict, Iterable, List, Set, Tuple

import pandas as pd

from restrec.recommender.exceptions import UnknownCategoryError
from restrec.recommender.model import RestaurantRecommenderModel
from restrec.recommender.utils import RESTAURANT_COL, USER_COL

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_TOP_N = 10

Recommendation = Tuple[str, float]


def _validate_top_n(top_n: int) -> None:
    if top_n < 0:
        raise ValueError(f"top_n must be non-negative, got {top_n}")


def _rank_candidates(
    model: RestaurantRecommenderModel,
    user_id: str,
    candidates: List[str],
    top_n: int,
) -> List[Recommendation]:
    """Score candidates for a user and keep the top N.

    Ties keep the candidates' order since sorted() is stable.
    """
    if not candidates or top_n == 0:
        return []

    scores = model.predict_many(user_id, candidates)
    scored = sorted(
        zip(candidates, scores.tolist()),
        key=lambda item: item[1],
        reverse=True,
    )
    return scored[:top_n]


class Recommender:
    """Recommends restaurants from a fixed model and ratings corpus.

    Rated sets and the candidate list are computed once, so repeated
    recommend() calls only score and sort. Instances are read-only after
    construction and can be shared between threads.
    """

    def __init__(self, model: RestaurantRecommenderModel, ratings: pd.DataFrame):
        self.model = model
        self.restaurants: Tuple[str, ...] = tuple(pd.unique(ratings[RESTAURANT_COL]))
        self._rated: Dict[str, Set[str]] = {
            user: set(group)
            for user, group in ratings.groupby(USER_COL, sort=False)[RESTAURANT_COL]
        }

        logger.info(
            f"Initialized Recommender: {len(self._rated)} users, "
            f"{len(self.restaurants)} restaurants in corpus"
        )

    def rated_by(self, user_id: str) -> Set[str]:
        return set(self._rated.get(user_id, ()))

    def candidates_for(self, user_id: str) -> List[str]:
        rated = self._rated.get(user_id, set())
        return [name for name in self.restaurants if name not in rated]

    def recommend(
        self, user_id: str, top_n: int = DEFAULT_TOP_N
    ) -> List[Recommendation]:
        """Top-N unrated restaurants for a user, best predicted score first.

        Raises:
            UnknownCategoryError: If the user (or a candidate restaurant)
                has no encoding in the model.
            ValueError: If top_n is negative.
        """
        _validate_top_n(top_n)
        start_time = time.time()

        candidates = self.candidates_for(user_id)
        recommendations = _rank_candidates(self.model, user_id, candidates, top_n)

        logger.info(
            "Recommendations generated",
            extra={
                "user_id": user_id,
                "num_candidates": len(candidates),
                "num_recommendations": len(recommendations),
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

        return recommendations


def recommend_restaurants_for_user(
    model: RestaurantRecommenderModel,
    ratings: pd.DataFrame,
    user_id: str,
    top_n: int = DEFAULT_TOP_N,
) -> List[Recommendation]:
    """Get restaurant recommendations for a user.

    Every distinct restaurant in the corpus that the user has not rated is
    scored with the model; the top N are returned.

    Args:
        model: Trained model.
        ratings: Ratings corpus the model was trained on.
        user_id: User to recommend for.
        top_n: Maximum number of recommendations (default: 10).

    Returns:
        List of (restaurant_name, predicted_score) tuples sorted by score,
        highest first. Scores are not clamped to the rating range.

    Raises:
        UnknownCategoryError: If the user has no factors in the model, or a
            candidate restaurant has no encoding.
        ValueError: If top_n is negative.

    Example:
        >>> recs = recommend_restaurants_for_user(model, ratings, "U1134")
        >>> for name, score in recs:
        ...     print(f"{score:.1f} {name}")
    """
    _validate_top_n(top_n)

    logger.info(
        "Starting recommendation generation",
        extra={"user_id": user_id, "top_n": top_n},
    )

    already_rated = set(ratings.loc[ratings[USER_COL] == user_id, RESTAURANT_COL])
    candidates = [
        name for name in pd.unique(ratings[RESTAURANT_COL]) if name not in already_rated
    ]

    try:
        recommendations = _rank_candidates(model, user_id, candidates, top_n)
    except UnknownCategoryError as e:
        logger.error(
            "Recommendation generation failed",
            extra={"user_id": user_id, "error": str(e)},
        )
        raise

    logger.info(
        "Recommendations generated",
        extra={
            "user_id": user_id,
            "num_candidates": len(candidates),
            "num_recommendations": len(recommendations),
        },
    )

    return recommendations


def batch_recommend_for_users(
    model: RestaurantRecommenderModel,
    ratings: pd.DataFrame,
    user_ids: Iterable[str],
    top_n: int = DEFAULT_TOP_N,
) -> Dict[str, List[Recommendation]]:
    """Generate recommendations for multiple users in batch.

    More efficient than calling recommend_restaurants_for_user() multiple
    times, as the corpus is indexed once and reused for all users.

    Returns:
        Dictionary mapping user IDs to their recommendations. Users unknown
        to the model map to an empty list.

    Raises:
        UnknownCategoryError: If a corpus restaurant has no encoding in the
            model.
        ValueError: If top_n is negative.

    Example:
        >>> recommendations = batch_recommend_for_users(
        ...     model, ratings, ["U1077", "U1134"], top_n=5
        ... )
        >>> for user_id, recs in recommendations.items():
        ...     print(f"User {user_id}: {recs}")
    """
    _validate_top_n(top_n)
    user_ids = list(user_ids)
    logger.info(
        f"Generating batch recommendations for {len(user_ids)} users, top_n={top_n}"
    )

    recommender = Recommender(model, ratings)
    results: Dict[str, List[Recommendation]] = {}

    for user_id in user_ids:
        if user_id not in model.user_encoder:
            logger.warning(f"Skipping user {user_id}: not seen during training")
            results[user_id] = []
            continue
        results[user_id] = recommender.recommend(user_id, top_n=top_n)

    logger.info(f"Batch recommendations completed for {len(results)} users")

    return results
