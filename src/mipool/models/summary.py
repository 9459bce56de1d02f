"""
Inference on pooled estimates: t statistics, p-values, confidence intervals.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple, Union
import logging
from dataclasses import dataclass, field
from scipy import stats

from .errors import (
    InsufficientDataError, LinkFunctionWarning, RankDeficiencyError, TypeMismatchError
)
from .pooling import PooledResult, variance_ratios


logger = logging.getLogger(__name__)

DEFAULT_CONF_LEVEL = 0.95
EXPONENTIAL_LINKS = ('log', 'logit')


@dataclass(frozen=True)
class SummaryResult:
    """Summary table of a pooled analysis plus any advisory warnings raised on the way."""
    table: pd.DataFrame
    warnings: Tuple[LinkFunctionWarning, ...] = field(default_factory=tuple)

    @property
    def terms(self) -> List[str]:
        return list(self.table.index)

    def render(self) -> str:
        return self.table.to_string()

    def __str__(self) -> str:
        return self.render()


def _t_quantile(p: float, df: np.ndarray) -> np.ndarray:
    """Student-t quantile; infinite df falls back to the normal quantile."""
    df = np.asarray(df, dtype=float)
    finite = ~np.isinf(df)
    return np.where(
        finite,
        stats.t.ppf(p, np.where(finite, df, 1.0)),
        stats.norm.ppf(p)
    )


def _two_sided_p(statistic: np.ndarray, df: np.ndarray) -> np.ndarray:
    """Two-sided p-value of a t statistic; infinite df uses the normal distribution."""
    abs_stat = np.abs(statistic)
    finite = ~np.isinf(df)
    return np.where(
        finite,
        2 * stats.t.sf(abs_stat, np.where(finite, df, 1.0)),
        2 * stats.norm.sf(abs_stat)
    )


def _format_percent(prob: float) -> str:
    return f"{100 * prob:.3g} %"


def confint(
    pooled: PooledResult,
    parm: Optional[Sequence[Union[str, int]]] = None,
    level: float = DEFAULT_CONF_LEVEL
) -> pd.DataFrame:
    """
    Confidence intervals for the pooled estimates.

    Uses Student-t quantiles with each term's own degrees of freedom.

    Args:
        pooled: Pooled result
        parm: Terms to include, by name or position. All terms when None
        level: Confidence level, between 0 and 1

    Returns:
        DataFrame indexed by term with lower and upper bound columns
        labelled by their percentage (e.g. '2.5 %' and '97.5 %')
    """
    if not 0 < level < 1:
        raise ValueError(f"Confidence level must be between 0 and 1, got {level}")

    table = pooled.pooled
    if parm is not None:
        parm = list(parm)
        if all(isinstance(p, (int, np.integer)) for p in parm):
            table = table.iloc[parm]
        else:
            table = table.loc[parm]

    alpha = (1 - level) / 2
    qbar = table['qbar'].to_numpy(dtype=float)
    se = np.sqrt(table['t'].to_numpy(dtype=float))
    df = table['df'].to_numpy(dtype=float)

    with np.errstate(invalid='ignore'):
        lower = qbar + _t_quantile(alpha, df) * se
        upper = qbar + _t_quantile(1 - alpha, df) * se

    return pd.DataFrame(
        {_format_percent(alpha): lower, _format_percent(1 - alpha): upper},
        index=table.index
    )


def reorder_intervals(
    ci: pd.DataFrame,
    pivot: Sequence[int],
    rank: int,
    n_terms: Optional[int] = None
) -> pd.DataFrame:
    """
    Keep the interval rows of retained coefficients of a rank-deficient fit.

    Row i of the result is row ``pivot[i]`` of ``ci``, for i < rank. The row
    labels are dropped so the rows can be merged by position.

    Args:
        ci: Raw confidence-interval rows
        pivot: Column pivot of the design matrix decomposition
        rank: Number of retained coefficients
        n_terms: Number of rows the merged intervals must have

    Raises:
        RankDeficiencyError: If the pivot does not fit the interval rows
    """
    pivot = [int(p) for p in pivot]
    if rank < 0 or rank > len(pivot):
        raise RankDeficiencyError(f"Rank {rank} is incompatible with a pivot of length {len(pivot)}")

    retained = pivot[:rank]
    out_of_range = [p for p in retained if p < 0 or p >= len(ci)]
    if out_of_range:
        raise RankDeficiencyError(
            f"Pivot indices {out_of_range} out of range for {len(ci)} confidence-interval rows"
        )
    if n_terms is not None and len(retained) != n_terms:
        raise RankDeficiencyError(
            f"Pivot retains {len(retained)} coefficients but the pooled result has {n_terms} terms"
        )

    return ci.iloc[retained].reset_index(drop=True)


def summarize(
    pooled: PooledResult,
    m: Optional[int] = None,
    conf_int: bool = False,
    conf_level: float = DEFAULT_CONF_LEVEL,
    exponentiate: bool = False,
    link_hint: Optional[str] = None
) -> SummaryResult:
    """
    Summary statistics of a pooled analysis.

    P-values are reported only when every term has positive degrees of
    freedom; otherwise all of them are missing.

    Args:
        pooled: Result of pool()
        m: Number of imputations; defaults to pooled.m
        conf_int: Whether to add confidence bounds conf.low and conf.high
        conf_level: Confidence level of the interval
        exponentiate: Whether to exponentiate the estimate and interval bounds
        link_hint: Link function of the model; defaults to pooled.link

    Returns:
        SummaryResult indexed by term in pooled order
    """
    if not isinstance(pooled, PooledResult):
        raise TypeMismatchError(f"Expected a PooledResult, got {type(pooled).__name__}")

    if m is None:
        m = pooled.m
    elif isinstance(m, bool) or not float(m).is_integer():
        raise ValueError(f"Number of imputations must be a whole number, got {m}")
    m = int(m)
    if m < 1:
        raise InsufficientDataError(f"Number of imputations must be at least 1, got {m}")

    table = pooled.pooled
    qbar = table['qbar'].to_numpy(dtype=float)
    ubar = table['ubar'].to_numpy(dtype=float)
    b = table['b'].to_numpy(dtype=float)
    t = table['t'].to_numpy(dtype=float)
    df = table['df'].to_numpy(dtype=float)

    with np.errstate(divide='ignore', invalid='ignore'):
        std_error = np.sqrt(t)
        statistic = qbar / std_error

    if np.all(df > 0):
        p_value = _two_sided_p(statistic, df)
    else:
        logger.info("Some terms have non-positive degrees of freedom; p-values not reported")
        p_value = np.full(len(df), np.nan)

    riv, lam, fmi = variance_ratios(m, b, ubar, t, df)

    collected = []
    if exponentiate:
        link = link_hint if link_hint is not None else pooled.link
        if link not in EXPONENTIAL_LINKS:
            warning = LinkFunctionWarning(
                "Exponentiating coefficients, but model did not use a log or logit link function"
            )
            logger.warning(str(warning))
            collected.append(warning)
        trans = np.exp
    else:
        trans = np.array

    columns = {
        'estimate': trans(qbar),
        'std.error': std_error,
    }

    if conf_int:
        ci = confint(pooled, level=conf_level)
        if pooled.rank is not None and pooled.pivot is not None:
            ci = reorder_intervals(ci, pooled.pivot, pooled.rank, n_terms=len(table))
        columns['conf.low'] = trans(ci.iloc[:, 0].to_numpy(dtype=float))
        columns['conf.high'] = trans(ci.iloc[:, 1].to_numpy(dtype=float))

    columns.update({
        'statistic': statistic,
        'df': df.copy(),
        'p.value': p_value,
        'riv': riv,
        'lambda': lam,
        'fmi': fmi,
    })

    summary = pd.DataFrame(columns, index=table.index.copy())
    return SummaryResult(table=summary, warnings=tuple(collected))
