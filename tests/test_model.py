"""Tests for the trained model and its predictor."""

import numpy as np
import pytest

from restrec.recommender.encoding import CategoryEncoder
from restrec.recommender.exceptions import UnknownCategoryError
from restrec.recommender.model import RestaurantRecommenderModel


@pytest.fixture
def hand_built_model() -> RestaurantRecommenderModel:
    """Rank-2 model with known factors."""
    return RestaurantRecommenderModel(
        user_factors=np.array([[1.0, 2.0], [3.0, 0.0]]),
        restaurant_factors=np.array([[1.0, 1.0], [0.5, -1.0], [4.0, 3.0]]),
        user_encoder=CategoryEncoder.fit(["U1", "U2"], category="user"),
        restaurant_encoder=CategoryEncoder.fit(["A", "B", "C"], category="restaurant"),
    )


def test_predict_is_dot_product(hand_built_model):
    assert hand_built_model.predict("U1", "A") == pytest.approx(3.0)
    assert hand_built_model.predict("U1", "B") == pytest.approx(-1.5)
    assert hand_built_model.predict("U2", "C") == pytest.approx(12.0)


def test_predictions_are_not_clamped(hand_built_model):
    """Scores outside any rating scale are returned as-is."""
    assert hand_built_model.predict("U1", "C") == pytest.approx(10.0)
    assert hand_built_model.predict("U1", "B") < 0


def test_predict_unknown_user(hand_built_model):
    with pytest.raises(UnknownCategoryError) as exc_info:
        hand_built_model.predict("U999", "A")

    assert exc_info.value.category == "user"


def test_predict_unknown_restaurant(hand_built_model):
    with pytest.raises(UnknownCategoryError) as exc_info:
        hand_built_model.predict("U1", "Nowhere")

    assert exc_info.value.category == "restaurant"


def test_predict_many_matches_predict(hand_built_model):
    scores = hand_built_model.predict_many("U2", ["C", "A", "B"])

    expected = [hand_built_model.predict("U2", name) for name in ["C", "A", "B"]]
    assert scores.tolist() == pytest.approx(expected)


def test_predict_pairs_matches_predict(hand_built_model):
    scores = hand_built_model.predict_pairs(["U1", "U2"], ["B", "A"])

    assert scores.tolist() == pytest.approx([-1.5, 3.0])


def test_shape_properties(hand_built_model):
    assert hand_built_model.rank == 2
    assert hand_built_model.n_users == 2
    assert hand_built_model.n_restaurants == 3


def test_factors_are_copied_and_read_only():
    user_factors = np.ones((1, 2))
    model = RestaurantRecommenderModel(
        user_factors=user_factors,
        restaurant_factors=np.ones((1, 2)),
        user_encoder=CategoryEncoder.fit(["U1"]),
        restaurant_encoder=CategoryEncoder.fit(["A"]),
    )

    user_factors[0, 0] = 100.0

    assert model.predict("U1", "A") == pytest.approx(2.0)
    with pytest.raises(ValueError):
        model.restaurant_factors[0, 0] = 5.0


def test_rank_mismatch_is_rejected():
    with pytest.raises(ValueError, match="rank mismatch"):
        RestaurantRecommenderModel(
            user_factors=np.ones((1, 2)),
            restaurant_factors=np.ones((1, 3)),
            user_encoder=CategoryEncoder.fit(["U1"]),
            restaurant_encoder=CategoryEncoder.fit(["A"]),
        )


def test_encoder_size_mismatch_is_rejected():
    with pytest.raises(ValueError, match="user_factors has 2 rows"):
        RestaurantRecommenderModel(
            user_factors=np.ones((2, 2)),
            restaurant_factors=np.ones((1, 2)),
            user_encoder=CategoryEncoder.fit(["U1"]),
            restaurant_encoder=CategoryEncoder.fit(["A"]),
        )
