"""
Covariate-aware FDR methods with a Python backend.

- Boca-Leek: the null proportion π₀(x) is regressed on the covariate
  (binomial GLM from statsmodels on a spline basis from scikit-learn) and
  multiplies the BH-adjusted p-values.
- Binned local fdr: Efron's local fdr (statsmodels) estimated separately
  within covariate quantile bins.
"""

import logging

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import rankdata
from sklearn.preprocessing import SplineTransformer
from statsmodels.stats.multitest import local_fdr, NullDistribution

from .baseline import benjamini_hochberg, estimate_pi0_storey, table_zscores

logger = logging.getLogger(__name__)


def spline_basis(covariate: np.ndarray, n_knots: int = 4, degree: int = 3) -> np.ndarray:
    """
    B-spline basis of the rank-transformed covariate, without intercept.

    Working on ranks makes the basis insensitive to skewed covariates
    such as mean expression. A constant covariate gives zero columns.
    """
    covariate = np.asarray(covariate, dtype=float)
    n = len(covariate)
    if n == 0 or np.ptp(covariate) == 0:
        return np.empty((n, 0))

    u = rankdata(covariate) / n
    transformer = SplineTransformer(
        n_knots=n_knots,
        degree=degree,
        knots='uniform',
        include_bias=False
    )
    return transformer.fit_transform(u.reshape(-1, 1))


def estimate_pi0_regression(
    p_values: np.ndarray,
    covariate: np.ndarray,
    lambda_val: float = 0.8,
    n_knots: int = 4,
    degree: int = 3
) -> np.ndarray:
    """
    Covariate-dependent null proportion π₀(x).

    E[1{p > λ} | x] = π₀(x) (1 - λ), fitted by binomial regression.

    Returns
    -------
    pi0 : np.ndarray
        One π₀ estimate per feature, clipped to [0, 1]
    """
    if not 0 <= lambda_val < 1:
        raise ValueError(f"lambda_val must lie in [0, 1), got {lambda_val}")

    y = (np.asarray(p_values) > lambda_val).astype(float)
    if y.min() == y.max():
        # Degenerate response: the GLM would separate perfectly.
        fitted = np.full(len(y), y[0] if len(y) else 1.0)
    else:
        X = sm.add_constant(spline_basis(covariate, n_knots, degree), has_constant='add')
        model = sm.GLM(y, X, family=sm.families.Binomial())
        fitted = model.fit().predict(X)

    return np.clip(fitted / (1 - lambda_val), 0, 1)


def boca_leek(
    table: pd.DataFrame,
    covariate: np.ndarray,
    lambda_val: float = 0.8,
    n_knots: int = 4,
    degree: int = 3
) -> np.ndarray:
    """Boca-Leek adjusted values: π₀(x_i) times the BH-adjusted p-value."""
    p_values = table['pvalue'].to_numpy(dtype=float)
    pi0 = estimate_pi0_regression(p_values, covariate, lambda_val, n_knots, degree)
    logger.debug("bl: pi0(x) in [%.3f, %.3f]", pi0.min(), pi0.max())
    return pi0 * benjamini_hochberg(table)


def lfdr_to_qvalue(lfdr: np.ndarray) -> np.ndarray:
    """
    FDR-adjusted values from local fdr.

    Rejecting the k features with the smallest lfdr has estimated FDR equal
    to the mean of those k lfdr values, so each feature gets the running
    mean of the sorted lfdr up to its own position.
    """
    lfdr = np.clip(np.asarray(lfdr, dtype=float), 0, 1)
    order = np.argsort(lfdr, kind='mergesort')
    running_mean = np.cumsum(lfdr[order]) / np.arange(1, len(lfdr) + 1)

    q = np.empty_like(lfdr)
    q[order] = running_mean
    return q


def covariate_bins(covariate: np.ndarray, n_bins: int) -> np.ndarray:
    """Quantile bin index (0..n_bins-1) per feature; ties broken by order."""
    ranks = pd.Series(covariate).rank(method='first')
    return pd.qcut(ranks, q=n_bins, labels=False).to_numpy()


def binned_lfdr(
    table: pd.DataFrame,
    covariate: np.ndarray,
    n_bins: int = 20,
    min_bin_size: int = 200,
    null: str = 'theoretical',
    deg: int = 7,
    hist_bins: int = 30
) -> np.ndarray:
    """
    Local fdr estimated within covariate quantile bins.

    Parameters
    ----------
    table : pd.DataFrame
        Results table ('pvalue' and optionally a signed statistic)
    covariate : np.ndarray
        Independent covariate
    n_bins : int, default=20
        Maximum number of covariate bins
    min_bin_size : int, default=200
        Fewer bins are used when bins would hold fewer features than this
    null : {'theoretical', 'empirical'}
        Theoretical N(0, 1) null with Storey's π₀ per bin, or Efron's
        empirical null fitted per bin
    deg, hist_bins : int
        Polynomial degree and histogram size of the marginal density fit

    Returns
    -------
    adjusted : np.ndarray
        Running-mean lfdr q-values, see :func:`lfdr_to_qvalue`
    """
    if null not in ('theoretical', 'empirical'):
        raise ValueError(f"Unknown null type: {null}")

    n = len(table)
    n_bins = max(1, min(n_bins, n // min_bin_size))
    bins = covariate_bins(covariate, n_bins) if n_bins > 1 else np.zeros(n, dtype=int)

    z_scores = table_zscores(table)
    p_values = table['pvalue'].to_numpy(dtype=float)
    lfdr = np.empty(n)

    for b in np.unique(bins):
        in_bin = bins == b
        z_bin = z_scores[in_bin]

        if null == 'empirical':
            null_dist = NullDistribution(z_bin, estimate_null_proportion=True)
            lfdr[in_bin] = local_fdr(
                z_bin,
                null_proportion=min(null_dist.null_proportion, 1.0),
                null_pdf=null_dist.pdf,
                deg=deg,
                nbins=hist_bins
            )
        else:
            pi0 = estimate_pi0_storey(p_values[in_bin])
            lfdr[in_bin] = local_fdr(z_bin, null_proportion=pi0, deg=deg, nbins=hist_bins)

    logger.debug("lfdr: %d covariate bins", n_bins)
    return lfdr_to_qvalue(lfdr)
