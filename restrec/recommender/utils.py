"""Utility functions for the recommendation system.

This module provides helper functions for loading ratings data, model
artifact management, and common operations used throughout the
recommendation system.
"""

import csv
import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import joblib
import numpy as np
import pandas as pd

from restrec.recommender.encoding import CategoryEncoder
from restrec.recommender.exceptions import (
    ModelNotFoundError,
    ParseError,
    PersistenceError,
)
from restrec.recommender.model import RestaurantRecommenderModel

# Configure module logger
logger = logging.getLogger(__name__)

# Ratings file columns
USER_COL = "UserId"
RESTAURANT_COL = "RestaurantName"
RATING_COL = "TotalRating"
RATING_COLUMNS = [USER_COL, RESTAURANT_COL, RATING_COL]

# Model artifact filenames
MODEL_FILENAME = "mf_model.joblib"
USER_MAPPING_FILENAME = "user_id_mapping.joblib"
RESTAURANT_MAPPING_FILENAME = "restaurant_mapping.joblib"

# Bumped whenever the layout of MODEL_FILENAME changes
ARTIFACT_FORMAT_VERSION = 1

PathLike = Union[str, Path]


def load_ratings(path: PathLike, sep: str = "\t") -> pd.DataFrame:
    """Load (user, restaurant, rating) records from a delimited text file.

    The file must start with a header row naming the UserId, RestaurantName
    and TotalRating columns. Extra columns are dropped and blank lines are
    ignored. Any malformed row fails the whole load, and the error names its
    physical line.

    Args:
        path: Path to the ratings file.
        sep: Field separator (default: tab).

    Returns:
        DataFrame with columns UserId (str), RestaurantName (str) and
        TotalRating (int64), in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ParseError: If the header or any row is malformed.

    Example:
        >>> ratings = load_ratings("data/trainingData.tsv")
        >>> print(f"Loaded {len(ratings)} ratings")
    """
    ratings_file = Path(path)
    if not ratings_file.exists():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    logger.info(f"Loading ratings from {path}")

    # The header is read as a data row so that every line, including the
    # header, must have the same number of fields. Blank lines after the
    # header are kept so that row labels track physical line numbers.
    leading_blank = _count_leading_blank_lines(ratings_file)
    try:
        raw = pd.read_csv(
            ratings_file,
            sep=sep,
            header=None,
            dtype=str,
            keep_default_na=False,
            na_values=[],
            quoting=csv.QUOTE_NONE,
            skiprows=leading_blank,
            skip_blank_lines=False,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError:
        raise ParseError(str(path), "file is empty, expected a header row") from None
    except pd.errors.ParserError as e:
        raise ParseError(str(path), str(e)) from None
    except UnicodeDecodeError as e:
        raise ParseError(
            str(path),
            f"not valid UTF-8 text ({e.reason})",
            line=_first_undecodable_line(ratings_file),
        ) from None

    raw.index = raw.index + leading_blank
    blank = raw.fillna("").apply(lambda col: col.str.strip().eq("")).all(axis=1)
    raw = raw[~blank]
    if raw.empty:
        raise ParseError(str(path), "file is empty, expected a header row")

    header_line = _line_number(raw.index[0])
    header = [str(name).strip() for name in raw.iloc[0]]
    missing = set(RATING_COLUMNS) - set(header)
    if missing:
        raise ParseError(
            str(path),
            f"missing required columns: {sorted(missing)}",
            line=header_line,
        )
    duplicated = [col for col in RATING_COLUMNS if header.count(col) > 1]
    if duplicated:
        raise ParseError(
            str(path), f"duplicate columns: {duplicated}", line=header_line
        )

    df = raw.iloc[1:].copy()
    df.columns = header
    df = df[RATING_COLUMNS]

    # Rows with too few fields come back as NaN even with na_values disabled
    for col in RATING_COLUMNS:
        bad = df[col].isna() | (df[col].str.len() == 0)
        if bad.any():
            raise ParseError(
                str(path), f"empty {col} field", line=_line_number(bad.idxmax())
            )

    ratings = df[RATING_COL].str.strip()
    not_integer = ~ratings.str.fullmatch(r"[+-]?\d+")
    if not_integer.any():
        label = not_integer.idxmax()
        raise ParseError(
            str(path),
            f"{RATING_COL} '{df.at[label, RATING_COL]}' is not an integer",
            line=_line_number(label),
        )

    limits = np.iinfo(np.int64)
    out_of_range = ratings.map(
        lambda value: not limits.min <= int(value) <= limits.max
    )
    if out_of_range.any():
        label = out_of_range.idxmax()
        raise ParseError(
            str(path),
            f"{RATING_COL} '{ratings[label]}' is out of range",
            line=_line_number(label),
        )

    df = df.assign(**{RATING_COL: ratings.astype(np.int64)}).reset_index(drop=True)

    logger.info(
        "Loaded ratings",
        extra={
            "num_ratings": len(df),
            "num_users": int(df[USER_COL].nunique()),
            "num_restaurants": int(df[RESTAURANT_COL].nunique()),
        },
    )

    return df


def _line_number(label: int) -> int:
    # raw row labels are 0-based physical lines, header included
    return int(label) + 1


def _count_leading_blank_lines(path: Path) -> int:
    count = 0
    with open(path, "rb") as f:
        for line in f:
            if line.strip():
                break
            count += 1
    return count


def _first_undecodable_line(path: Path) -> Optional[int]:
    with open(path, "rb") as f:
        for number, line in enumerate(f, start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError:
                return number
    return None


def save_model_artifacts(
    model: RestaurantRecommenderModel,
    output_dir: PathLike,
    model_filename: str = MODEL_FILENAME,
    user_mapping_filename: str = USER_MAPPING_FILENAME,
    restaurant_mapping_filename: str = RESTAURANT_MAPPING_FILENAME,
) -> None:
    """Save a trained model and its ID mappings to disk.

    Saves the factor matrices and the user/restaurant ID mappings as
    separate joblib files in the specified output directory. Creates the
    directory if it doesn't exist.

    Args:
        model: Trained model to save.
        output_dir: Directory path where artifacts will be saved.
        model_filename: Filename for the factors (default: "mf_model.joblib").
        user_mapping_filename: Filename for user mapping
            (default: "user_id_mapping.joblib").
        restaurant_mapping_filename: Filename for restaurant mapping
            (default: "restaurant_mapping.joblib").

    Raises:
        PersistenceError: If unable to create output directory or save files.
    """
    output_path = Path(output_dir)

    logger.info(f"Saving model artifacts to {output_dir}")

    payload = {
        "format_version": ARTIFACT_FORMAT_VERSION,
        "user_factors": np.asarray(model.user_factors),
        "restaurant_factors": np.asarray(model.restaurant_factors),
        "params": dict(model.params),
        "training_rmse": float(model.training_rmse),
    }

    try:
        output_path.mkdir(parents=True, exist_ok=True)

        model_path = output_path / model_filename
        joblib.dump(payload, model_path)
        logger.info(f"Saved model to {model_path}")

        user_mapping_path = output_path / user_mapping_filename
        joblib.dump(model.user_encoder.to_dict(), user_mapping_path)
        logger.info(f"Saved user mapping to {user_mapping_path}")

        restaurant_mapping_path = output_path / restaurant_mapping_filename
        joblib.dump(model.restaurant_encoder.to_dict(), restaurant_mapping_path)
        logger.info(f"Saved restaurant mapping to {restaurant_mapping_path}")
    except OSError as e:
        raise PersistenceError(
            f"Failed to save model to '{output_dir}': {e}",
            details={"model_path": str(output_dir), "error": str(e)},
        ) from e


def load_model_artifacts(
    model_dir: PathLike,
    model_filename: str = MODEL_FILENAME,
    user_mapping_filename: str = USER_MAPPING_FILENAME,
    restaurant_mapping_filename: str = RESTAURANT_MAPPING_FILENAME,
) -> RestaurantRecommenderModel:
    """Load a trained model and its ID mappings from disk.

    Args:
        model_dir: Directory path where artifacts are stored.
        model_filename: Filename for the factors (default: "mf_model.joblib").
        user_mapping_filename: Filename for user mapping
            (default: "user_id_mapping.joblib").
        restaurant_mapping_filename: Filename for restaurant mapping
            (default: "restaurant_mapping.joblib").

    Returns:
        The model exactly as it was saved.

    Raises:
        ModelNotFoundError: If the directory or any artifact file is missing.
        PersistenceError: If an artifact is corrupt or incompatible.

    Example:
        >>> model = load_model_artifacts("models")
        >>> print(f"Model has rank {model.rank}")
        >>> print(f"Number of users: {model.n_users}")
    """
    model_path = Path(model_dir)

    if not model_path.is_dir():
        raise ModelNotFoundError(str(model_dir))

    logger.info(f"Loading model artifacts from {model_dir}")

    model_file, user_mapping_file, restaurant_mapping_file = get_model_paths(
        model_dir, model_filename, user_mapping_filename, restaurant_mapping_filename
    )

    payload = _load_artifact(model_file, model_dir)
    user_mapping = _load_artifact(user_mapping_file, model_dir)
    restaurant_mapping = _load_artifact(restaurant_mapping_file, model_dir)

    if not isinstance(payload, dict) or "format_version" not in payload:
        raise PersistenceError(
            f"Model file {model_file} does not contain a RestRec model",
            details={"model_path": str(model_file)},
        )
    if payload["format_version"] != ARTIFACT_FORMAT_VERSION:
        raise PersistenceError(
            f"Unsupported model format version {payload['format_version']} "
            f"(expected {ARTIFACT_FORMAT_VERSION})",
            details={
                "model_path": str(model_file),
                "format_version": payload["format_version"],
            },
        )
    for name, mapping in (("user", user_mapping), ("restaurant", restaurant_mapping)):
        if not isinstance(mapping, dict):
            raise PersistenceError(
                f"The {name} mapping in {model_dir} is not a dictionary",
                details={"model_path": str(model_dir)},
            )

    try:
        model = RestaurantRecommenderModel(
            user_factors=payload["user_factors"],
            restaurant_factors=payload["restaurant_factors"],
            user_encoder=CategoryEncoder.from_dict(user_mapping, category="user"),
            restaurant_encoder=CategoryEncoder.from_dict(
                restaurant_mapping, category="restaurant"
            ),
            params=payload.get("params", {}),
            training_rmse=payload.get("training_rmse", float("nan")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise PersistenceError(
            f"Model artifacts in {model_dir} are inconsistent: {e}",
            details={"model_path": str(model_dir), "error": str(e)},
        ) from e

    logger.info(
        "Model loaded",
        extra={
            "rank": model.rank,
            "num_users": model.n_users,
            "num_restaurants": model.n_restaurants,
        },
    )

    return model


def _load_artifact(path: Path, model_dir: PathLike):
    if not path.exists():
        raise ModelNotFoundError(str(model_dir), details={"missing_file": str(path)})
    try:
        return joblib.load(path)
    except Exception as e:
        # joblib/pickle raise a wide range of errors on truncated or foreign files
        raise PersistenceError(
            f"Failed to read model artifact {path}: {e}",
            details={"model_path": str(path), "error_type": type(e).__name__},
        ) from e


def get_model_paths(
    model_dir: PathLike,
    model_filename: str = MODEL_FILENAME,
    user_mapping_filename: str = USER_MAPPING_FILENAME,
    restaurant_mapping_filename: str = RESTAURANT_MAPPING_FILENAME,
) -> Tuple[Path, Path, Path]:
    """Get file paths for model artifacts without loading them.

    Useful for checking if model files exist before attempting to load.

    Returns:
        A tuple containing Path objects for:
            - Model file path
            - User mapping file path
            - Restaurant mapping file path
    """
    model_path = Path(model_dir)
    return (
        model_path / model_filename,
        model_path / user_mapping_filename,
        model_path / restaurant_mapping_filename,
    )


def check_model_exists(model_dir: PathLike) -> bool:
    """Check if all required model artifacts exist."""
    return all(path.exists() for path in get_model_paths(model_dir))
