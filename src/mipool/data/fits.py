"""
Adapters that turn per-imputation model results into uniform coefficient tables.

Models are fitted elsewhere; this module only reads what the fits report
(term, estimate, standard error and residual degrees of freedom) and collects
one table per imputed dataset.
"""

import numpy as np
import pandas as pd
from typing import Any, List, Optional, Sequence
import logging
from dataclasses import dataclass, field

from ..models.errors import TypeMismatchError


logger = logging.getLogger(__name__)

TERM_COL = 'term'
ESTIMATE_COL = 'estimate'
STD_ERROR_COL = 'std.error'
DF_COL = 'df'
TIDY_COLUMNS = [TERM_COL, ESTIMATE_COL, STD_ERROR_COL, DF_COL]


@dataclass(frozen=True)
class PerImputationEstimate:
    """One coefficient reported by the fit on a single imputed dataset."""
    term: str
    estimate: float
    std_error: float
    dfcom: float = np.nan


def tidy_estimates(rows: Sequence[PerImputationEstimate]) -> pd.DataFrame:
    """
    Convert estimate records into a coefficient table.

    Args:
        rows: Estimates of a single imputation, in term order

    Returns:
        DataFrame with columns term, estimate, std.error and df
    """
    return pd.DataFrame({
        TERM_COL: [str(row.term) for row in rows],
        ESTIMATE_COL: [float(row.estimate) for row in rows],
        STD_ERROR_COL: [float(row.std_error) for row in rows],
        DF_COL: [float(row.dfcom) for row in rows],
    }, columns=TIDY_COLUMNS)


def _is_results_object(obj: Any) -> bool:
    return hasattr(obj, 'params') and hasattr(obj, 'bse')


def _from_results_object(obj: Any) -> pd.DataFrame:
    """Read params/bse/df_resid from a fitted-results object."""
    params = pd.Series(obj.params)
    bse = pd.Series(obj.bse)
    if len(bse) != len(params):
        raise TypeMismatchError(
            f"Results object reports {len(params)} parameters but {len(bse)} standard errors"
        )
    if isinstance(obj.bse, pd.Series) and isinstance(obj.params, pd.Series):
        bse = bse.reindex(params.index)

    df_resid = getattr(obj, 'df_resid', None)
    dfcom = np.nan if df_resid is None else float(df_resid)

    return pd.DataFrame({
        TERM_COL: [str(term) for term in params.index],
        ESTIMATE_COL: params.to_numpy(dtype=float),
        STD_ERROR_COL: bse.to_numpy(dtype=float),
        DF_COL: dfcom,
    }, columns=TIDY_COLUMNS)


def coefficient_table(obj: Any) -> pd.DataFrame:
    """
    Normalize one imputation's results into a coefficient table.

    Accepts a tidy DataFrame (term, estimate, std.error and optionally df),
    a (possibly empty) list of PerImputationEstimate records, or a fitted-results object
    exposing ``params`` and ``bse`` (and optionally ``df_resid``).

    Args:
        obj: Results of the analysis of one imputed dataset

    Returns:
        A fresh DataFrame with columns term, estimate, std.error and df

    Raises:
        TypeMismatchError: If obj is none of the recognized forms
    """
    if isinstance(obj, pd.DataFrame):
        missing = [col for col in TIDY_COLUMNS[:3] if col not in obj.columns]
        if missing:
            raise TypeMismatchError(f"Coefficient table is missing columns: {missing}")
        table = pd.DataFrame({
            TERM_COL: obj[TERM_COL].astype(str).to_numpy(),
            ESTIMATE_COL: obj[ESTIMATE_COL].to_numpy(dtype=float),
            STD_ERROR_COL: obj[STD_ERROR_COL].to_numpy(dtype=float),
            DF_COL: obj[DF_COL].to_numpy(dtype=float) if DF_COL in obj.columns else np.nan,
        }, columns=TIDY_COLUMNS)
        return table

    if isinstance(obj, (list, tuple)) and all(
        isinstance(row, PerImputationEstimate) for row in obj
    ):
        return tidy_estimates(obj)

    if _is_results_object(obj):
        return _from_results_object(obj)

    raise TypeMismatchError(
        f"Cannot read per-imputation estimates from object of type {type(obj).__name__}"
    )


def _link_name(results: Any) -> Optional[str]:
    """Link function name of a fitted GLM-like results object, if it has one."""
    if isinstance(results, (pd.DataFrame, list, tuple)):
        return None
    family = getattr(getattr(results, 'model', None), 'family', None)
    link = getattr(family, 'link', None)
    if link is None:
        return None
    if isinstance(link, str):
        return link.lower()
    return type(link).__name__.lower()


@dataclass(frozen=True)
class ImputationFits:
    """
    Results of the same analysis repeated on each of m imputed datasets.

    Attributes:
        tables: One coefficient table per imputation
        link: Link function of the fitted model (e.g. 'logit'), if known
        rank: Rank of the design matrix, if the fit reports it
        pivot: Column pivot of the design matrix decomposition, if reported
        dfcom: Fallback complete-data degrees of freedom for fits without df
    """
    tables: List[pd.DataFrame]
    link: Optional[str] = None
    rank: Optional[int] = None
    pivot: Optional[List[int]] = field(default=None)
    dfcom: Optional[float] = None

    @property
    def m(self) -> int:
        """Number of imputations."""
        return len(self.tables)

    @classmethod
    def from_results(
        cls,
        results: Sequence[Any],
        link: Optional[str] = None,
        rank: Optional[int] = None,
        pivot: Optional[Sequence[int]] = None,
        dfcom: Optional[float] = None
    ) -> 'ImputationFits':
        """
        Collect the per-imputation results of a repeated analysis.

        Args:
            results: Sequence with one result per imputation (see coefficient_table)
            link: Link function name; read from the first result when omitted
            rank: Rank of the design matrix
            pivot: Pivot of the design matrix decomposition
            dfcom: Fallback complete-data degrees of freedom

        Returns:
            ImputationFits holding normalized coefficient tables
        """
        if isinstance(results, (pd.DataFrame, str)) or not isinstance(results, (list, tuple)):
            raise TypeMismatchError(
                f"Expected a list of per-imputation results, got {type(results).__name__}"
            )

        tables = [coefficient_table(item) for item in results]

        if link is None and results:
            link = _link_name(results[0])

        logger.debug(f"Collected {len(tables)} coefficient tables (link: {link})")

        return cls(
            tables=tables,
            link=link,
            rank=None if rank is None else int(rank),
            pivot=None if pivot is None else [int(p) for p in pivot],
            dfcom=None if dfcom is None else float(dfcom)
        )
