"""Generate fake restaurant rating data for testing and development.

This module provides functionality to create synthetic
(user, restaurant, rating) records for exercising the recommendation
pipeline. It writes tab-separated files with the UserId, RestaurantName
and TotalRating columns the loader expects.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_ratings
        df = generate_fake_ratings(num_users=100, num_restaurants=50)
"""

import argparse
import random
from pathlib import Path
from typing import Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_RESTAURANTS = 40
DEFAULT_NUM_RATINGS = 600
DEFAULT_MIN_RATING = 0
DEFAULT_MAX_RATING = 6
DEFAULT_SEED = 42

_CUISINES = [
    "Tacos", "Tortas", "Pizzeria", "Cafe", "Mariscos", "Sushi",
    "Cocina", "Parrilla", "Fonda", "Bistro",
]
_SUFFIXES = [
    "El Centro", "La Estrella", "Don Pepe", "Los Arcos", "Del Sol",
    "San Jose", "Azul", "Real", "Express", "Familiar",
]


def restaurant_name(index: int) -> str:
    """Deterministic human-looking name for the index-th restaurant."""
    cuisine = _CUISINES[index % len(_CUISINES)]
    suffix = _SUFFIXES[(index // len(_CUISINES)) % len(_SUFFIXES)]
    name = f"{cuisine} {suffix}"
    extra = index // (len(_CUISINES) * len(_SUFFIXES))
    return f"{name} {extra + 1}" if extra else name


def generate_fake_ratings(
    num_users: int = DEFAULT_NUM_USERS,
    num_restaurants: int = DEFAULT_NUM_RESTAURANTS,
    num_ratings: int = DEFAULT_NUM_RATINGS,
    min_rating: int = DEFAULT_MIN_RATING,
    max_rating: int = DEFAULT_MAX_RATING,
    seed: Optional[int] = DEFAULT_SEED,
) -> pd.DataFrame:
    """Generate synthetic rating data for recommendation system testing.

    Each user and each restaurant gets a hidden taste score; ratings lean
    towards max_rating when the two agree so the data has some structure
    for matrix factorization to find. Every user and every restaurant is
    rated at least once.

    Args:
        num_users: Number of unique users to simulate. Must be positive.
        num_restaurants: Number of unique restaurants. Must be positive.
        num_ratings: Total number of rating records to generate. Must be at
            least max(num_users, num_restaurants).
        min_rating: Lowest possible rating.
        max_rating: Highest possible rating.
        seed: Random seed, or None for a non-reproducible run.

    Returns:
        A pandas DataFrame with the following columns:
            - UserId: String user identifier ("U1001", "U1002", ...)
            - RestaurantName: Restaurant name
            - TotalRating: Integer rating in [min_rating, max_rating]

    Raises:
        ValueError: If any count is non-positive, num_ratings is too small
            to cover every user and restaurant, or min_rating > max_rating.
    """
    # Validate inputs
    if num_users <= 0 or num_restaurants <= 0 or num_ratings <= 0:
        raise ValueError("num_users, num_restaurants, and num_ratings must be positive")
    if num_ratings < max(num_users, num_restaurants):
        raise ValueError(
            "num_ratings must be at least max(num_users, num_restaurants) "
            "so every user and restaurant is rated"
        )
    if min_rating > max_rating:
        raise ValueError("min_rating must not exceed max_rating")

    rng = random.Random(seed)
    user_ids = [f"U{1001 + i}" for i in range(num_users)]
    restaurants = [restaurant_name(i) for i in range(num_restaurants)]
    user_taste = [rng.random() for _ in user_ids]
    restaurant_taste = [rng.random() for _ in restaurants]

    # Cover every user and restaurant once, then fill the rest at random
    pairs = [
        (i % num_users, i % num_restaurants)
        for i in range(max(num_users, num_restaurants))
    ]
    while len(pairs) < num_ratings:
        pairs.append((rng.randrange(num_users), rng.randrange(num_restaurants)))

    span = max_rating - min_rating
    records = []
    for user, restaurant in pairs:
        affinity = 1.0 - abs(user_taste[user] - restaurant_taste[restaurant])
        noisy = affinity + rng.gauss(0.0, 0.15)
        rating = min_rating + round(min(max(noisy, 0.0), 1.0) * span)
        records.append({
            "UserId": user_ids[user],
            "RestaurantName": restaurants[restaurant],
            "TotalRating": int(rating),
        })

    return pd.DataFrame(records, columns=["UserId", "RestaurantName", "TotalRating"])


def main() -> None:
    """Main entry point for the data generation script.

    Generates fake rating data and saves it as a TSV file (by default
    data/trainingData.tsv). Prints summary statistics upon completion.
    """
    parser = argparse.ArgumentParser(description="Generate fake restaurant ratings")
    parser.add_argument("--num-users", type=int, default=DEFAULT_NUM_USERS)
    parser.add_argument("--num-restaurants", type=int, default=DEFAULT_NUM_RESTAURANTS)
    parser.add_argument("--num-ratings", type=int, default=DEFAULT_NUM_RATINGS)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(__file__).parent.parent / "data" / "trainingData.tsv",
    )
    args = parser.parse_args()

    print(f"Generating {args.num_ratings} fake ratings...")
    print(f"Users: {args.num_users}, Restaurants: {args.num_restaurants}")

    try:
        df = generate_fake_ratings(
            num_users=args.num_users,
            num_restaurants=args.num_restaurants,
            num_ratings=args.num_ratings,
            seed=args.seed,
        )
    except ValueError as e:
        print(f"Error generating data: {e}")
        raise SystemExit(1)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, sep="\t", index=False)

    # Print results summary
    print(f"\nData generated successfully!")
    print(f"Saved to: {args.output}")
    print(f"\nData preview:")
    print(df.head(10))
    print(f"\nData summary:")
    print(f"  Total ratings: {len(df)}")
    print(f"  Unique users: {df['UserId'].nunique()}")
    print(f"  Unique restaurants: {df['RestaurantName'].nunique()}")
    print(f"  Mean rating: {df['TotalRating'].mean():.2f}")


if __name__ == '__main__':
    main()
