"""
Baseline FDR control methods.

Covariate-free corrections: Bonferroni, Benjamini-Hochberg (BH),
two-stage adaptive BH and Storey's q-value. The step-up procedures come
from statsmodels.
"""

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests
from typing import Optional


def _pvalues(table: pd.DataFrame) -> np.ndarray:
    return table['pvalue'].to_numpy(dtype=float)


def unadjusted(table: pd.DataFrame) -> np.ndarray:
    """Raw p-values, the no-correction reference."""
    return _pvalues(table).copy()


def bonferroni(table: pd.DataFrame) -> np.ndarray:
    """Bonferroni-adjusted p-values (family-wise error rate)."""
    return multipletests(_pvalues(table), method='bonferroni')[1]


def benjamini_hochberg(table: pd.DataFrame) -> np.ndarray:
    """
    Benjamini-Hochberg (BH) adjusted p-values.

    Controls FDR at level α for independent tests or under
    positive regression dependency (PRDS) when features with
    adjusted p <= α are rejected.
    """
    return multipletests(_pvalues(table), method='fdr_bh')[1]


def two_stage_bh(table: pd.DataFrame, alpha: float = 0.1) -> np.ndarray:
    """
    Two-stage adaptive BH (Benjamini, Krieger & Yekutieli).

    The first stage estimates the number of true nulls at ``alpha``, so the
    adjusted values are only calibrated for thresholds near ``alpha``.
    """
    return multipletests(_pvalues(table), alpha=alpha, method='fdr_tsbh')[1]


def estimate_pi0_storey(p_values: np.ndarray, lambda_val: float = 0.5) -> float:
    """
    Estimate proportion of true nulls using Storey's method.

    π₀ = #{p_i > λ} / ((1-λ) * n)

    Parameters
    ----------
    p_values : np.ndarray
        P-values
    lambda_val : float, default=0.5
        Threshold parameter (typically 0.5)

    Returns
    -------
    pi0 : float
        Estimated proportion of true nulls, clipped to [0, 1]
    """
    if not 0 <= lambda_val < 1:
        raise ValueError(f"lambda_val must lie in [0, 1), got {lambda_val}")

    n = len(p_values)
    if n == 0:
        return 1.0
    n_above = np.sum(p_values > lambda_val)
    pi0 = n_above / ((1 - lambda_val) * n)

    return float(np.clip(pi0, 0, 1))


def storey_qvalue(table: pd.DataFrame, lambda_val: float = 0.5) -> np.ndarray:
    """
    Storey's q-values: π₀-scaled BH-adjusted p-values.

    q_(i) = min_{j >= i} π₀ m p_(j) / j
    """
    p_values = _pvalues(table)
    pi0 = estimate_pi0_storey(p_values, lambda_val=lambda_val)
    return np.minimum(pi0 * benjamini_hochberg(table), 1.0)


def pvalue_to_zscore(p_values: np.ndarray, sign: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Convert p-values to z-scores.

    With ``sign`` (e.g. the sign of the effect size) two-sided p-values map
    to signed z-scores that are N(0, 1) under the null. Without a sign the
    p-values are treated as one-sided: z = Φ⁻¹(1 - p).
    """
    p_values = np.clip(np.asarray(p_values, dtype=float), 1e-300, 1.0)
    if sign is None:
        return stats.norm.isf(p_values)

    sign = np.sign(np.asarray(sign, dtype=float))
    # Zero effects carry no direction; split them deterministically.
    sign[sign == 0] = 1.0
    return sign * stats.norm.isf(p_values / 2)


def table_zscores(table: pd.DataFrame) -> np.ndarray:
    """
    Signed z-scores from a results table, using the best sign available.

    A column without negative values (e.g. chi-square statistics) carries
    no direction, and the p-values are then treated as one-sided.
    """
    for column in ('test_statistic', 'effect_size'):
        if column not in table.columns:
            continue
        values = table[column].to_numpy(dtype=float)
        if not np.isnan(values).any() and (values < 0).any():
            return pvalue_to_zscore(_pvalues(table), values)
    return pvalue_to_zscore(_pvalues(table))


def reject(adjusted: np.ndarray, alpha: float = 0.1) -> np.ndarray:
    """Boolean rejections at level ``alpha``."""
    return np.asarray(adjusted, dtype=float) <= alpha
