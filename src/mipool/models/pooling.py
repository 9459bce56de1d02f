"""
Pooling of repeated analyses of multiply-imputed data with Rubin's rules.
"""

import numpy as np
import pandas as pd
from typing import Any, List, Optional, Union
import logging
from dataclasses import dataclass

from ..data.fits import (
    ImputationFits, TERM_COL, ESTIMATE_COL, STD_ERROR_COL, DF_COL, coefficient_table
)
from .errors import InconsistentTermsError, InsufficientDataError, TypeMismatchError


logger = logging.getLogger(__name__)

POOLED_COLUMNS = ['qbar', 'ubar', 'b', 't', 'dfcom', 'df', 'riv', 'lambda', 'fmi']


@dataclass(frozen=True)
class PooledResult:
    """
    Pooled estimates of a repeated analysis.

    The ``pooled`` table is indexed by term name and holds, per term:

        qbar    pooled complete-data estimate
        ubar    within-imputation variance of qbar
        b       between-imputation variance of qbar
        t       total variance of qbar
        dfcom   degrees of freedom in the complete data
        df      degrees of freedom of the t statistic
        riv     relative increase in variance due to nonresponse
        lambda  proportion of the variance attributable to the missingness
        fmi     fraction of missing information
    """
    m: int
    pooled: pd.DataFrame
    link: Optional[str] = None
    rank: Optional[int] = None
    pivot: Optional[List[int]] = None

    @property
    def terms(self) -> List[str]:
        """Term names in pooled order."""
        return list(self.pooled.index)

    def vcov(self) -> pd.DataFrame:
        """Diagonal variance matrix of the pooled estimates."""
        return pd.DataFrame(
            np.diag(self.pooled['t'].to_numpy(dtype=float)),
            index=self.pooled.index,
            columns=self.pooled.index
        )

    def render(self) -> str:
        """Plain-text representation: header line followed by the pooled table."""
        return f"Class: mipo    m = {self.m}\n{self.pooled.to_string()}"

    def __str__(self) -> str:
        return self.render()


def barnard_rubin(
    m: int,
    b: Union[float, np.ndarray],
    t: Union[float, np.ndarray],
    dfcom: Union[float, np.ndarray] = np.inf
) -> np.ndarray:
    """
    Degrees of freedom with the Barnard-Rubin small-sample adjustment.

    Interpolates between the classical Rubin df (m - 1) / lambda^2 and the
    observed-data df derived from dfcom, so the result never exceeds dfcom.

    Args:
        m: Number of imputations
        b: Between-imputation variance
        t: Total variance
        dfcom: Complete-data degrees of freedom (may be infinite)

    Returns:
        Array of adjusted degrees of freedom
    """
    b = np.asarray(b, dtype=float)
    t = np.asarray(t, dtype=float)
    dfcom = np.broadcast_to(np.asarray(dfcom, dtype=float), b.shape)

    with np.errstate(divide='ignore', invalid='ignore'):
        lam = (1 + 1 / m) * b / t
        df_old = np.where(lam == 0, np.inf, (m - 1) / lam ** 2)
        df_obs = (dfcom + 1) / (dfcom + 3) * dfcom * (1 - lam)
        df = df_old * df_obs / (df_old + df_obs)

    # Infinite operands: the finite side is the limit of the interpolation.
    df = np.where(np.isinf(df_old), df_obs, df)
    df = np.where(np.isinf(dfcom), df_old, df)
    return df


def variance_ratios(m: int, b, ubar, t, df):
    """riv, lambda and fmi from the variance components."""
    b = np.asarray(b, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        riv = (1 + 1 / m) * b / np.asarray(ubar, dtype=float)
        lam = (1 + 1 / m) * b / np.asarray(t, dtype=float)
        fmi = (riv + 2 / (np.asarray(df, dtype=float) + 3)) / (riv + 1)
    return riv, lam, fmi


def _collect_fits(estimates_by_imputation: Any) -> ImputationFits:
    if isinstance(estimates_by_imputation, ImputationFits):
        return estimates_by_imputation
    if isinstance(estimates_by_imputation, (list, tuple)):
        return ImputationFits.from_results(estimates_by_imputation)
    raise TypeMismatchError(
        f"Expected ImputationFits or a list of per-imputation results, "
        f"got {type(estimates_by_imputation).__name__}"
    )


def _check_terms(tables: List[pd.DataFrame]) -> List[str]:
    """Terms shared by every imputation, in order."""
    terms = list(tables[0][TERM_COL])
    if len(set(terms)) != len(terms):
        raise InconsistentTermsError(
            "inconsistent term sets across imputations: duplicate term names in imputation 1"
        )
    for i, table in enumerate(tables[1:], start=2):
        other = list(table[TERM_COL])
        if other != terms:
            raise InconsistentTermsError(
                f"inconsistent term sets across imputations: imputation {i} has terms "
                f"{other}, expected {terms}"
            )
    return terms


def _complete_data_df(
    fits: ImputationFits,
    df_matrix: np.ndarray,
    dfcom: Optional[float]
) -> np.ndarray:
    n_terms = df_matrix.shape[1]
    if dfcom is not None:
        return np.full(n_terms, float(dfcom))

    # Smallest reported df per term; nan where no imputation reports one
    missing = np.isnan(df_matrix)
    reported = np.where(
        missing.all(axis=0),
        np.nan,
        np.where(missing, np.inf, df_matrix).min(axis=0)
    )

    if np.isnan(reported).any():
        if fits.dfcom is not None:
            reported = np.where(np.isnan(reported), fits.dfcom, reported)
        else:
            logger.warning("Complete-data degrees of freedom not reported; large sample assumed")
            reported = np.where(np.isnan(reported), np.inf, reported)
    return reported


def pool(estimates_by_imputation: Any, dfcom: Optional[float] = None) -> PooledResult:
    """
    Combine the estimates of m repeated analyses with Rubin's rules.

    Args:
        estimates_by_imputation: ImputationFits, or a list with one result per
            imputation (coefficient table, estimate records or results object)
        dfcom: Complete-data degrees of freedom; overrides what the fits report

    Returns:
        PooledResult with one row per term, in the order of the fits

    Raises:
        TypeMismatchError: If the input is not a recognized results collection
        InsufficientDataError: If no imputations were supplied
        InconsistentTermsError: If the imputations do not share the same terms
    """
    fits = _collect_fits(estimates_by_imputation)
    m = fits.m
    if m == 0:
        raise InsufficientDataError("At least one imputation is required for pooling")

    tables = [coefficient_table(table) for table in fits.tables]
    terms = _check_terms(tables)

    estimates = np.vstack([table[ESTIMATE_COL].to_numpy(dtype=float) for table in tables])
    std_errors = np.vstack([table[STD_ERROR_COL].to_numpy(dtype=float) for table in tables])
    df_matrix = np.vstack([table[DF_COL].to_numpy(dtype=float) for table in tables])

    qbar = estimates.mean(axis=0)
    ubar = (std_errors ** 2).mean(axis=0)
    if m > 1:
        b = estimates.var(axis=0, ddof=1)
        t = ubar + b + b / m
    else:
        b = np.zeros_like(qbar)
        t = ubar.copy()

    dfcom_values = _complete_data_df(fits, df_matrix, dfcom)
    df = barnard_rubin(m, b, t, dfcom_values)
    riv, lam, fmi = variance_ratios(m, b, ubar, t, df)

    pooled = pd.DataFrame({
        'qbar': qbar,
        'ubar': ubar,
        'b': b,
        't': t,
        'dfcom': dfcom_values,
        'df': df,
        'riv': riv,
        'lambda': lam,
        'fmi': fmi
    }, index=pd.Index(terms, name=TERM_COL), columns=POOLED_COLUMNS)

    logger.info(f"Pooled {len(terms)} terms across m = {m} imputations")

    return PooledResult(
        m=m,
        pooled=pooled,
        link=fits.link,
        rank=fits.rank,
        pivot=None if fits.pivot is None else list(fits.pivot)
    )
