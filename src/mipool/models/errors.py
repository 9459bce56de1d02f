"""
Exception and warning types raised while pooling multiply-imputed analyses.
"""


class PoolingError(Exception):
    """Base class for structural errors in the pooling pipeline."""


class TypeMismatchError(PoolingError, TypeError):
    """Input is not a recognized collection of per-imputation results."""


class InconsistentTermsError(PoolingError, ValueError):
    """Term names or their order differ across imputations."""


class InsufficientDataError(PoolingError, ValueError):
    """No imputations were supplied."""


class RankDeficiencyError(PoolingError, ValueError):
    """Pivot metadata does not match the confidence-interval rows."""


class LinkFunctionWarning(UserWarning):
    """Coefficients were exponentiated for a model without a log or logit link."""
