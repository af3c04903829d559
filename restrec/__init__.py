"""RestRec: restaurant recommendation with matrix factorization.

This package trains a collaborative filtering model on
(user, restaurant, rating) triples and uses it to recommend restaurants
a user has not rated yet.

Modules:
    recommender: data loading, encoding, training, evaluation and inference
    cli: command-line entry point for the train/serve phases
"""

__version__ = "0.1.0"
