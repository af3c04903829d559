"""Tests for the inference module."""

import pandas as pd
import pytest

from restrec.recommender.exceptions import UnknownCategoryError
from restrec.recommender.infer import (
    Recommender,
    batch_recommend_for_users,
    recommend_restaurants_for_user,
)
from restrec.recommender.train import train_mf_model


@pytest.fixture
def example_model(example_ratings):
    """Model trained on the four-rating example."""
    return train_mf_model(example_ratings, rank=2, n_iter=10, random_state=0)


@pytest.fixture
def fake_model(fake_ratings):
    """Model trained on the synthetic ratings."""
    return train_mf_model(fake_ratings, rank=5, n_iter=10, random_state=42)


def _rated_by(ratings: pd.DataFrame, user_id: str) -> set:
    return set(ratings.loc[ratings["UserId"] == user_id, "RestaurantName"])


def test_recommend_excludes_already_rated(example_model, example_ratings):
    """U1 rated A and B, so C is the only candidate."""
    recommendations = recommend_restaurants_for_user(
        example_model, example_ratings, "U1", top_n=10
    )

    assert [name for name, _ in recommendations] == ["C"]
    assert recommendations[0][1] == pytest.approx(example_model.predict("U1", "C"))


def test_recommend_other_user_in_example(example_model, example_ratings):
    recommendations = recommend_restaurants_for_user(
        example_model, example_ratings, "U2", top_n=10
    )

    assert [name for name, _ in recommendations] == ["B"]


def test_recommend_properties_hold_for_every_user(fake_model, fake_ratings):
    """Output is short enough, sorted, and never contains rated restaurants."""
    all_restaurants = set(fake_ratings["RestaurantName"])
    top_n = 4

    for user_id in fake_ratings["UserId"].unique():
        rated = _rated_by(fake_ratings, user_id)
        recommendations = recommend_restaurants_for_user(
            fake_model, fake_ratings, user_id, top_n=top_n
        )
        names = [name for name, _ in recommendations]
        scores = [score for _, score in recommendations]

        assert len(recommendations) <= top_n
        assert len(recommendations) <= len(all_restaurants - rated)
        assert scores == sorted(scores, reverse=True)
        assert not set(names) & rated
        assert set(names) <= all_restaurants
        assert len(names) == len(set(names))


def test_recommend_returns_all_candidates_when_fewer_than_top_n(
    fake_model, fake_ratings
):
    user_id = fake_ratings["UserId"].iloc[0]
    unrated = set(fake_ratings["RestaurantName"]) - _rated_by(fake_ratings, user_id)

    recommendations = recommend_restaurants_for_user(
        fake_model, fake_ratings, user_id, top_n=1000
    )

    assert {name for name, _ in recommendations} == unrated


def test_recommend_scores_match_predictor(fake_model, fake_ratings):
    user_id = fake_ratings["UserId"].iloc[3]

    for name, score in recommend_restaurants_for_user(
        fake_model, fake_ratings, user_id, top_n=10
    ):
        assert score == pytest.approx(fake_model.predict(user_id, name))


def test_recommend_zero_top_n(fake_model, fake_ratings):
    assert recommend_restaurants_for_user(fake_model, fake_ratings, "U1001", 0) == []


def test_recommend_negative_top_n(fake_model, fake_ratings):
    with pytest.raises(ValueError):
        recommend_restaurants_for_user(fake_model, fake_ratings, "U1001", -1)


def test_recommend_unknown_user_raises(example_model, example_ratings):
    """A user absent from the corpus has no factors to score with."""
    with pytest.raises(UnknownCategoryError):
        recommend_restaurants_for_user(example_model, example_ratings, "U999", 10)


def test_recommend_user_who_rated_everything(example_ratings):
    ratings = pd.concat(
        [
            example_ratings,
            pd.DataFrame(
                [("U1", "C", 1)], columns=["UserId", "RestaurantName", "TotalRating"]
            ),
        ],
        ignore_index=True,
    )
    model = train_mf_model(ratings, rank=2, n_iter=5)

    assert recommend_restaurants_for_user(model, ratings, "U1", 10) == []


def test_recommend_candidate_without_encoding_raises(example_model, example_ratings):
    """A corpus restaurant unknown to the model surfaces the predictor's error."""
    corpus = pd.concat(
        [
            example_ratings,
            pd.DataFrame(
                [("U2", "D", 3)], columns=["UserId", "RestaurantName", "TotalRating"]
            ),
        ],
        ignore_index=True,
    )

    with pytest.raises(UnknownCategoryError) as exc_info:
        recommend_restaurants_for_user(example_model, corpus, "U1", 10)

    assert exc_info.value.value == "D"


def test_recommender_class_matches_function(fake_model, fake_ratings):
    recommender = Recommender(fake_model, fake_ratings)

    for user_id in fake_ratings["UserId"].unique()[:5]:
        expected = recommend_restaurants_for_user(
            fake_model, fake_ratings, user_id, top_n=3
        )
        assert recommender.recommend(user_id, top_n=3) == expected


def test_recommender_rated_and_candidates(example_model, example_ratings):
    recommender = Recommender(example_model, example_ratings)

    assert recommender.restaurants == ("A", "B", "C")
    assert recommender.rated_by("U1") == {"A", "B"}
    assert recommender.rated_by("nobody") == set()
    assert recommender.candidates_for("U2") == ["B"]
    assert recommender.candidates_for("nobody") == ["A", "B", "C"]


def test_batch_recommend_for_users(example_model, example_ratings):
    results = batch_recommend_for_users(
        example_model, example_ratings, ["U1", "U2", "U999"], top_n=5
    )

    assert [name for name, _ in results["U1"]] == ["C"]
    assert [name for name, _ in results["U2"]] == ["B"]
    assert results["U999"] == []


def test_batch_recommend_propagates_restaurant_mismatch(
    example_model, example_ratings
):
    """Only unknown users are skipped; a corpus the model cannot score fails."""
    corpus = pd.concat(
        [
            example_ratings,
            pd.DataFrame(
                [("U2", "D", 3)], columns=["UserId", "RestaurantName", "TotalRating"]
            ),
        ],
        ignore_index=True,
    )

    with pytest.raises(UnknownCategoryError) as exc_info:
        batch_recommend_for_users(example_model, corpus, ["U1"], top_n=5)

    assert exc_info.value.value == "D"


def test_batch_recommend_negative_top_n(example_model, example_ratings):
    with pytest.raises(ValueError):
        batch_recommend_for_users(example_model, example_ratings, ["U999"], top_n=-1)
