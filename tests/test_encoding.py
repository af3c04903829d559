"""Tests for the categorical encoder."""

import numpy as np
import pytest

from restrec.recommender.encoding import CategoryEncoder
from restrec.recommender.exceptions import PersistenceError, UnknownCategoryError


def test_fit_assigns_indices_in_first_seen_order():
    """Distinct values get 0..n-1 in the order they first appear."""
    encoder = CategoryEncoder.fit(["b", "a", "b", "c", "a"], category="user")

    assert encoder.classes_ == ("b", "a", "c")
    assert len(encoder) == 3
    assert [encoder.encode(v) for v in ("b", "a", "c")] == [0, 1, 2]


def test_fit_is_deterministic():
    values = ["U3", "U1", "U2", "U1"]

    assert CategoryEncoder.fit(values) == CategoryEncoder.fit(values)


def test_decode_inverts_encode():
    """decode(encode(x)) == x for every fitted value."""
    values = ["Tacos El Centro", "Cafe Azul", "Sushi Real"]
    encoder = CategoryEncoder.fit(values)

    for value in values:
        assert encoder.decode(encoder.encode(value)) == value


def test_encode_unknown_value_raises():
    encoder = CategoryEncoder.fit(["A", "B"], category="restaurant")

    with pytest.raises(UnknownCategoryError) as exc_info:
        encoder.encode("Z")

    assert exc_info.value.value == "Z"
    assert exc_info.value.category == "restaurant"
    assert "Unknown restaurant 'Z'" in str(exc_info.value)


def test_unknown_category_error_is_a_key_error():
    encoder = CategoryEncoder.fit(["A"])

    with pytest.raises(KeyError):
        encoder.encode("B")


def test_encode_many_returns_int_array():
    encoder = CategoryEncoder.fit(["x", "y", "z"])

    indices = encoder.encode_many(["z", "x", "x"])

    assert indices.dtype == np.int64
    assert indices.tolist() == [2, 0, 0]


def test_encode_many_names_first_unknown_value():
    encoder = CategoryEncoder.fit(["x", "y"])

    with pytest.raises(UnknownCategoryError) as exc_info:
        encoder.encode_many(["x", "missing", "also-missing"])

    assert exc_info.value.value == "missing"


def test_encoder_does_not_grow_after_fit():
    encoder = CategoryEncoder.fit(["x"])

    with pytest.raises(UnknownCategoryError):
        encoder.encode("y")

    assert len(encoder) == 1
    assert "y" not in encoder


def test_decode_out_of_range_raises():
    encoder = CategoryEncoder.fit(["x"])

    with pytest.raises(UnknownCategoryError):
        encoder.decode(1)


def test_dict_round_trip():
    encoder = CategoryEncoder.fit(["c", "a", "b"], category="user")

    restored = CategoryEncoder.from_dict(encoder.to_dict(), category="user")

    assert restored == encoder
    assert restored.classes_ == ("c", "a", "b")


def test_from_dict_rejects_gaps_in_indices():
    with pytest.raises(PersistenceError):
        CategoryEncoder.from_dict({"a": 0, "b": 2})
