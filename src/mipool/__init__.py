"""
Pooling of repeated analyses of multiply-imputed data.

This package combines the estimates of a model fitted separately to each of m
imputed datasets into a single set of inferences using Rubin's rules, with
Barnard-Rubin degrees of freedom, confidence intervals and fractions of
missing information.
"""

__version__ = "1.0.0"
__author__ = "Data Science Research"
