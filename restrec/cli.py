"""Command-line interface for RestRec.

Training and serving are separate subcommands: `train` exports a model
directory, while `recommend` and `predict` load one (or, when no model
directory is given, train an in-memory model from the ratings file first).

Example:
    Train and export a model:
        $ restrec train data/trainingData.tsv --output-dir models

    Recommend from the exported model:
        $ restrec recommend data/trainingData.tsv U1134 --model-dir models

    Cross-validate a configuration:
        $ restrec evaluate data/trainingData.tsv --n-folds 5 --rank 50
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from restrec import __version__
from restrec.logging_config import (
    LOG_LEVEL_ENV_VAR,
    default_log_level,
    setup_logging,
)
from restrec.recommender.evaluate import (
    DEFAULT_N_FOLDS,
    cross_validate,
    sweep_hyperparameters,
)
from restrec.recommender.exceptions import RestRecError
from restrec.recommender.infer import DEFAULT_TOP_N, recommend_restaurants_for_user
from restrec.recommender.model import RestaurantRecommenderModel
from restrec.recommender.train import (
    DEFAULT_LEARNING_RATE,
    DEFAULT_N_ITERATIONS,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RANK,
    DEFAULT_REGULARIZATION,
    DEFAULT_SOLVER,
    SOLVERS,
    train_mf_model,
    train_restaurant_model,
)
from restrec.recommender.utils import (
    load_model_artifacts,
    load_ratings,
    save_model_artifacts,
)

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be a non-negative integer, got {value}")
    return number


def _training_options() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    group = parser.add_argument_group("training options")
    group.add_argument(
        "--rank",
        type=_positive_int,
        default=DEFAULT_RANK,
        help=f"Width of the latent factor vectors (default: {DEFAULT_RANK})",
    )
    group.add_argument(
        "--n-iter",
        type=_positive_int,
        default=DEFAULT_N_ITERATIONS,
        help=f"Number of training iterations (default: {DEFAULT_N_ITERATIONS})",
    )
    group.add_argument(
        "--regularization",
        type=float,
        default=DEFAULT_REGULARIZATION,
        help=f"L2 penalty on the factors (default: {DEFAULT_REGULARIZATION})",
    )
    group.add_argument(
        "--learning-rate",
        type=float,
        default=DEFAULT_LEARNING_RATE,
        help=f"SGD step size (default: {DEFAULT_LEARNING_RATE})",
    )
    group.add_argument(
        "--solver",
        choices=SOLVERS,
        default=DEFAULT_SOLVER,
        help=f"Optimization method (default: {DEFAULT_SOLVER})",
    )
    group.add_argument(
        "--random-state",
        type=int,
        default=DEFAULT_RANDOM_STATE,
        help=f"Random seed for reproducibility (default: {DEFAULT_RANDOM_STATE})",
    )
    group.add_argument(
        "--sep",
        default="\t",
        help="Field separator of the ratings file (default: tab)",
    )
    return parser


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the top-level parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="restrec",
        description="Train and query a restaurant recommendation model.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  restrec train data/trainingData.tsv --output-dir models
  restrec recommend data/trainingData.tsv U1134 --model-dir models --top-n 10
  restrec predict U1134 "Tortas Locas Hipocampo" --model-dir models
  restrec evaluate data/trainingData.tsv --n-folds 5 --rank 50 --n-iter 20
        """,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )

    training = _training_options()
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser(
        "train", parents=[training], help="Train a model and save its artifacts"
    )
    train.add_argument("data", type=Path, help="Path to the ratings file")
    train.add_argument(
        "--output-dir",
        type=Path,
        default=Path("models"),
        help="Directory where model artifacts will be saved (default: models)",
    )

    recommend = subparsers.add_parser(
        "recommend", parents=[training], help="Recommend restaurants for a user"
    )
    recommend.add_argument("data", type=Path, help="Path to the ratings file")
    recommend.add_argument("user_id", help="User to recommend restaurants for")
    recommend.add_argument(
        "--top-n",
        type=_non_negative_int,
        default=DEFAULT_TOP_N,
        help=f"Number of recommendations to return (default: {DEFAULT_TOP_N})",
    )
    model_source = recommend.add_mutually_exclusive_group()
    model_source.add_argument(
        "--model-dir",
        type=Path,
        help="Load a saved model instead of training one",
    )
    model_source.add_argument(
        "--save-model",
        type=Path,
        help="Save the model trained for this run to a directory",
    )

    predict = subparsers.add_parser(
        "predict",
        parents=[training],
        help="Predict one user's rating of one restaurant",
    )
    predict.add_argument("user_id", help="User identifier")
    predict.add_argument("restaurant", help="Restaurant name")
    predict_source = predict.add_mutually_exclusive_group(required=True)
    predict_source.add_argument("--model-dir", type=Path, help="Load a saved model")
    predict_source.add_argument(
        "--data", type=Path, help="Train an in-memory model from a ratings file"
    )

    evaluate = subparsers.add_parser(
        "evaluate", parents=[training], help="Cross-validate model quality"
    )
    evaluate.add_argument("data", type=Path, help="Path to the ratings file")
    evaluate.add_argument(
        "--n-folds",
        type=int,
        default=DEFAULT_N_FOLDS,
        help=f"Number of cross-validation folds (default: {DEFAULT_N_FOLDS})",
    )
    evaluate.add_argument(
        "--sweep-ranks",
        type=_positive_int,
        nargs="+",
        help="Ranks to sweep; enables the hyperparameter sweep",
    )
    evaluate.add_argument(
        "--sweep-regularizations",
        type=float,
        nargs="+",
        help="Regularization values to sweep; enables the hyperparameter sweep",
    )

    return parser


def _train_in_memory(args: argparse.Namespace, ratings) -> RestaurantRecommenderModel:
    return train_mf_model(
        ratings,
        rank=args.rank,
        n_iter=args.n_iter,
        regularization=args.regularization,
        learning_rate=args.learning_rate,
        solver=args.solver,
        random_state=args.random_state,
    )


def _run_train(args: argparse.Namespace) -> int:
    logger.info("=" * 70)
    logger.info("Training Configuration")
    logger.info("=" * 70)
    logger.info(f"Ratings path:     {args.data}")
    logger.info(f"Output directory: {args.output_dir}")
    logger.info(f"Rank:             {args.rank}")
    logger.info(f"Iterations:       {args.n_iter}")
    logger.info(f"Solver:           {args.solver}")
    logger.info(f"Random state:     {args.random_state}")
    logger.info("=" * 70)

    model = train_restaurant_model(
        csv_path=args.data,
        output_dir=args.output_dir,
        rank=args.rank,
        n_iter=args.n_iter,
        regularization=args.regularization,
        learning_rate=args.learning_rate,
        solver=args.solver,
        random_state=args.random_state,
        sep=args.sep,
    )

    print(
        f"Trained rank-{model.rank} model on {model.n_users} users and "
        f"{model.n_restaurants} restaurants (training RMSE {model.training_rmse:.4f})"
    )
    print(f"Model saved to: {args.output_dir.absolute()}")
    return 0


def _run_recommend(args: argparse.Namespace) -> int:
    ratings = load_ratings(args.data, sep=args.sep)

    if args.model_dir is not None:
        model = load_model_artifacts(args.model_dir)
    else:
        model = _train_in_memory(args, ratings)
        if args.save_model is not None:
            save_model_artifacts(model, args.save_model)

    recommendations = recommend_restaurants_for_user(
        model, ratings, args.user_id, top_n=args.top_n
    )

    print()
    print(f"Top {args.top_n} restaurants for {args.user_id}")
    print("-------------------------------------")
    for name, score in recommendations:
        print(f"Predicted rating [{score:.1f}] for restaurant: {name}")
    if not recommendations:
        print("No unrated restaurants to recommend.")
    print()
    return 0


def _run_predict(args: argparse.Namespace) -> int:
    if args.model_dir is not None:
        model = load_model_artifacts(args.model_dir)
    else:
        model = _train_in_memory(args, load_ratings(args.data, sep=args.sep))

    score = model.predict(args.user_id, args.restaurant)
    print(
        f"Predicted rating [{score:.4f}] of {args.user_id} "
        f"for restaurant: {args.restaurant}"
    )
    return 0


def _run_evaluate(args: argparse.Namespace) -> int:
    ratings = load_ratings(args.data, sep=args.sep)
    options = dict(
        n_folds=args.n_folds,
        n_iter=args.n_iter,
        learning_rate=args.learning_rate,
        solver=args.solver,
        random_state=args.random_state,
    )

    if args.sweep_ranks or args.sweep_regularizations:
        results = sweep_hyperparameters(
            ratings,
            ranks=args.sweep_ranks or [args.rank],
            n_iters=[args.n_iter],
            regularizations=args.sweep_regularizations or [args.regularization],
            **{k: v for k, v in options.items() if k != "n_iter"},
        )
        print(f"{'rank':>6} {'reg':>8} {'mean RMSE':>10} {'mean R2':>10}")
        for result in results:
            print(
                f"{result.params['rank']:>6} {result.params['regularization']:>8g} "
                f"{result.mean_rmse:>10.4f} {result.mean_r2:>10.4f}"
            )
        return 0

    result = cross_validate(
        ratings,
        rank=args.rank,
        regularization=args.regularization,
        **options,
    )
    print(result.to_frame().to_string(index=False))
    print(f"\nMean RMSE: {result.mean_rmse:.4f}")
    print(f"Mean R2:   {result.mean_r2:.4f}")
    return 0


COMMANDS = {
    "train": _run_train,
    "recommend": _run_recommend,
    "predict": _run_predict,
    "evaluate": _run_evaluate,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code: 0 on success, 1 on error, 130 when interrupted.
    """
    args = build_arg_parser().parse_args(argv)

    try:
        setup_logging(
            "DEBUG" if args.verbose else default_log_level(),
            json_format=args.log_format == "json",
        )
    except ValueError as e:
        print(f"Error: {e} (check {LOG_LEVEL_ENV_VAR})", file=sys.stderr)
        return 1

    try:
        return COMMANDS[args.command](args)
    except RestRecError as e:
        logger.error(f"{type(e).__name__}: {e.message}", extra={"details": e.details})
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
