"""Machine learning module for the RestRec recommendation system.

This module contains the matrix factorization model, the training and
cross-validation logic, and the inference functions that turn learned
latent factors into restaurant recommendations.
"""
