"""Tests for the synthetic ratings generator."""

import pytest

from restrec.recommender.utils import load_ratings
from scripts.generate_fake_data import generate_fake_ratings, restaurant_name


def test_generate_fake_ratings_covers_every_user_and_restaurant():
    df = generate_fake_ratings(num_users=8, num_restaurants=5, num_ratings=30, seed=1)

    assert len(df) == 30
    assert df["UserId"].nunique() == 8
    assert df["RestaurantName"].nunique() == 5
    assert df["TotalRating"].between(0, 6).all()


def test_generate_fake_ratings_is_reproducible():
    kwargs = {"num_users": 5, "num_restaurants": 5, "num_ratings": 20, "seed": 3}
    first = generate_fake_ratings(**kwargs)
    second = generate_fake_ratings(**kwargs)

    assert first.equals(second)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"num_users": 0},
        {"num_ratings": 2, "num_users": 5, "num_restaurants": 5},
        {"min_rating": 4, "max_rating": 1},
    ],
)
def test_generate_fake_ratings_rejects_bad_arguments(kwargs):
    with pytest.raises(ValueError):
        generate_fake_ratings(**kwargs)


def test_restaurant_names_are_unique():
    names = [restaurant_name(i) for i in range(250)]

    assert len(set(names)) == 250


def test_generated_file_loads(tmp_path):
    df = generate_fake_ratings(num_users=4, num_restaurants=3, num_ratings=10, seed=0)
    path = tmp_path / "ratings.tsv"
    df.to_csv(path, sep="\t", index=False)

    loaded = load_ratings(path)

    assert loaded.equals(df.astype({"TotalRating": "int64"}))
