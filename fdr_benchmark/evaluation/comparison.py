"""
Cross-method and cross-covariate comparisons.

Rank agreement and rejection-set overlap between methods, UpSet-style
intersection counts, per-dataset method ranks and covariate diagnostics.
All functions return tables; plotting is left to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from ..methods.covariate import covariate_bins
from ..methods.registry import MethodRegistry, apply_methods
from .metrics import aligned_truth, metrics_at_thresholds

logger = logging.getLogger(__name__)


def rank_agreement(adjusted: pd.DataFrame, method: str = 'spearman') -> pd.DataFrame:
    """Pairwise rank correlation of adjusted values across methods."""
    if method not in ('spearman', 'kendall'):
        raise ValueError(f"Unknown rank correlation: {method}")
    return adjusted.corr(method=method)


def rejection_overlap(adjusted: pd.DataFrame, alpha: float = 0.1) -> pd.DataFrame:
    """
    Jaccard index of the rejection sets of every pair of methods.

    Two empty rejection sets count as identical (index 1).
    """
    rejected = adjusted <= alpha
    methods = list(adjusted.columns)
    overlap = pd.DataFrame(np.eye(len(methods)), index=methods, columns=methods)

    for i, a in enumerate(methods):
        for b in methods[i + 1:]:
            union = int((rejected[a] | rejected[b]).sum())
            inter = int((rejected[a] & rejected[b]).sum())
            value = inter / union if union > 0 else 1.0
            overlap.loc[a, b] = value
            overlap.loc[b, a] = value

    return overlap


def intersection_counts(adjusted: pd.DataFrame, alpha: float = 0.1) -> pd.DataFrame:
    """
    Number of features per rejection pattern (UpSet data).

    Returns
    -------
    counts : pd.DataFrame
        One boolean column per method plus 'n_features', sorted by count.
        Features rejected by no method are left out.
    """
    rejected = adjusted <= alpha
    rejected = rejected[rejected.any(axis=1)]
    methods = list(adjusted.columns)

    if rejected.empty:
        return pd.DataFrame(columns=methods + ['n_features'])

    counts = rejected.groupby(methods).size().rename('n_features').reset_index()
    return counts.sort_values('n_features', ascending=False, kind='mergesort').reset_index(drop=True)


def method_ranks(
    frame: pd.DataFrame,
    metric: str = 'rejections',
    alpha: float = 0.1,
    group: str = 'dataset',
    ascending: bool = False
) -> pd.DataFrame:
    """
    Rank methods within each group and average the ranks.

    By default the method with the most rejections in a dataset gets
    rank 1; ties share the average rank.
    """
    at_alpha = frame[np.isclose(frame['alpha'], alpha)]
    if at_alpha.empty:
        raise ValueError(f"No results at alpha={alpha}")
    if group not in at_alpha.columns:
        raise ValueError(f"Group column '{group}' not in results")

    ranked = at_alpha.assign(
        rank=at_alpha.groupby(group)[metric].rank(ascending=ascending, method='average')
    )
    summary = ranked.groupby('method').agg(
        mean_rank=('rank', 'mean'),
        sd_rank=('rank', 'std'),
        n_groups=(group, 'nunique')
    )
    return summary.sort_values('mean_rank').reset_index()


@dataclass
class CovariateDiagnostics:
    """Summary of how a covariate relates to the p-values."""
    covariate: str
    bins: pd.DataFrame
    histogram: pd.DataFrame
    spearman_rho: float
    spearman_pvalue: float


def covariate_diagnostics(
    table: pd.DataFrame,
    covariate: str,
    n_bins: int = 4,
    hist_bins: int = 20,
    threshold: float = 0.05
) -> CovariateDiagnostics:
    """
    Check whether a covariate is informative.

    An informative covariate shifts the share of small p-values between
    covariate strata while the p-value histogram stays flat near 1.

    Parameters
    ----------
    table : pd.DataFrame
        Results table with 'pvalue' and the covariate
    covariate : str
        Covariate column
    n_bins : int, default=4
        Number of covariate quantile bins
    hist_bins : int, default=20
        Number of p-value histogram bins on [0, 1]
    threshold : float, default=0.05
        Nominal p-value cutoff for the per-bin share of small p-values

    Returns
    -------
    CovariateDiagnostics
    """
    data = table[['pvalue', covariate]].dropna()
    if data.empty:
        raise ValueError(f"No features with both a p-value and '{covariate}'")

    p = data['pvalue'].to_numpy(dtype=float)
    x = data[covariate].to_numpy(dtype=float)
    n_bins = max(1, min(n_bins, len(data)))
    bins = covariate_bins(x, n_bins) if n_bins > 1 else np.zeros(len(data), dtype=int)

    bin_rows = []
    hist_rows = []
    edges = np.linspace(0, 1, hist_bins + 1)
    for b in np.unique(bins):
        in_bin = bins == b
        bin_rows.append({
            'bin': int(b),
            'covariate_min': float(x[in_bin].min()),
            'covariate_max': float(x[in_bin].max()),
            'n_features': int(in_bin.sum()),
            'frac_significant': float(np.mean(p[in_bin] < threshold)),
        })
        counts, _ = np.histogram(p[in_bin], bins=edges)
        for left, right, count in zip(edges[:-1], edges[1:], counts):
            hist_rows.append({'bin': int(b), 'p_left': left, 'p_right': right, 'count': int(count)})

    if np.ptp(x) == 0:
        rho, rho_p = np.nan, np.nan
    else:
        rho, rho_p = stats.spearmanr(x, p)

    return CovariateDiagnostics(
        covariate=covariate,
        bins=pd.DataFrame(bin_rows),
        histogram=pd.DataFrame(hist_rows),
        spearman_rho=float(rho),
        spearman_pvalue=float(rho_p)
    )


def compare_covariates(
    table: pd.DataFrame,
    covariates: Sequence[str],
    registry: MethodRegistry,
    alphas: Optional[Sequence[float]] = None,
    return_adjusted: bool = False
) -> Union[pd.DataFrame, Tuple[pd.DataFrame, Dict[str, pd.DataFrame]]]:
    """
    Re-run the panel once per covariate choice.

    Covariate-free methods are included in every run as references, so
    each covariate block is self-contained.

    Parameters
    ----------
    table : pd.DataFrame
        Results table (with 'is_null' for simulations)
    covariates : sequence of str
        Covariate columns to compare
    registry : MethodRegistry
        Methods to run
    alphas : sequence of float, optional
        Significance thresholds
    return_adjusted : bool
        If True, also return the adjusted values per covariate

    Returns
    -------
    frame : pd.DataFrame
        Long metrics frame with a 'covariate' column
    adjusted : dict, optional
        Covariate name -> adjusted values
    """
    if not covariates:
        raise ValueError("At least one covariate is required")

    frames = []
    adjusted_by_covariate = {}
    for covariate in covariates:
        logger.info("Applying %d methods with covariate %s", len(registry), covariate)
        adjusted = apply_methods(table, registry, covariate=covariate)
        frame = metrics_at_thresholds(adjusted, aligned_truth(table, adjusted), alphas)
        frame.insert(0, 'covariate', covariate)
        frames.append(frame)
        adjusted_by_covariate[covariate] = adjusted

    result = pd.concat(frames, ignore_index=True)
    if return_adjusted:
        return result, adjusted_by_covariate
    return result
