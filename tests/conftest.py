"""Shared fixtures for the RestRec test suite."""

import logging
import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure `import scripts...` works for the data generator.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from scripts.generate_fake_data import generate_fake_ratings  # noqa: E402


@pytest.fixture
def example_ratings() -> pd.DataFrame:
    """Four ratings from two users over three restaurants."""
    return pd.DataFrame(
        [("U1", "A", 5), ("U1", "B", 3), ("U2", "A", 4), ("U2", "C", 2)],
        columns=["UserId", "RestaurantName", "TotalRating"],
    )


@pytest.fixture
def fake_ratings() -> pd.DataFrame:
    """Synthetic ratings: 12 users, 10 restaurants, 90 ratings."""
    return generate_fake_ratings(
        num_users=12, num_restaurants=10, num_ratings=90, seed=7
    )


@pytest.fixture
def ratings_tsv(tmp_path: Path, fake_ratings: pd.DataFrame) -> Path:
    """fake_ratings written as a tab-separated file with a header row."""
    path = tmp_path / "trainingData.tsv"
    fake_ratings.to_csv(path, sep="\t", index=False)
    return path


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
