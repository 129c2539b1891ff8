"""
Per-feature differential testing for case-study datasets.

Turns a count matrix (features x samples) and a two-level sample grouping
into a results table: p-value, log2 fold change, its standard error, a
signed test statistic and candidate covariates (mean expression,
detection rate, mean non-zero abundance, a random control).
"""

import logging
from typing import Literal, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from ..methods import r_methods

logger = logging.getLogger(__name__)

DIFFERENTIAL_TESTS = ('welch', 'wilcoxon', 'mast', 'scdd')

MODALITY_COVARIATE = {
    'rnaseq': 'mean_expression',
    'chipseq': 'mean_expression',
    'scrnaseq': 'detection_rate',
    'microbiome': 'detection_rate',
}


def filter_features(
    counts: pd.DataFrame,
    min_count: float = 1.0,
    min_samples: int = 2
) -> pd.DataFrame:
    """Keep features with at least ``min_count`` in ``min_samples`` samples."""
    keep = (counts >= min_count).sum(axis=1) >= min_samples
    n_dropped = int((~keep).sum())
    if n_dropped:
        logger.info("Filtered %d of %d low-count features", n_dropped, len(counts))
    return counts.loc[keep]


def normalize_counts(
    counts: pd.DataFrame,
    method: Literal['cpm', 'tss', 'none'] = 'cpm',
    log: bool = True,
    pseudocount: float = 1.0
) -> pd.DataFrame:
    """
    Library-size normalization.

    Parameters
    ----------
    counts : pd.DataFrame
        Features x samples
    method : {'cpm', 'tss', 'none'}
        Counts per million, total-sum scaling (relative abundance) or raw
    log : bool, default=True
        Return log2(normalized + pseudocount)
    pseudocount : float, default=1.0
        Added before the log, on the normalized scale
    """
    if method not in ('cpm', 'tss', 'none'):
        raise ValueError(f"Unknown normalization: {method}")

    values = counts.astype(float)
    if method != 'none':
        lib_size = values.sum(axis=0)
        empty = lib_size[lib_size <= 0].index.tolist()
        if empty:
            raise ValueError(f"Samples with zero library size: {empty}")
        scale = 1e6 if method == 'cpm' else 1.0
        values = values / lib_size * scale

    if log:
        values = np.log2(values + pseudocount)
    return values


def compute_covariates(
    counts: pd.DataFrame,
    modality: str = 'rnaseq',
    normalization: str = 'cpm',
    random_state: Optional[int] = 42
) -> pd.DataFrame:
    """
    Candidate covariates per feature, independent of the group labels.

    Returns
    -------
    covariates : pd.DataFrame
        mean_expression (mean normalized abundance), detection_rate
        (fraction of samples with a non-zero count, "ubiquity"),
        mean_nonzero (mean normalized abundance over non-zero samples),
        uninf_covariate (uniform noise) and ind_covariate, the modality's
        default choice among them
    """
    if modality not in MODALITY_COVARIATE:
        raise ValueError(f"Unknown modality: {modality}")

    normalized = normalize_counts(counts, normalization, log=False)
    nonzero = counts > 0

    n_nonzero = nonzero.sum(axis=1)
    nonzero_sum = normalized.where(nonzero, 0.0).sum(axis=1)
    mean_nonzero = (nonzero_sum / n_nonzero.replace(0, np.nan)).fillna(0.0)

    rng = np.random.default_rng(random_state)
    covariates = pd.DataFrame({
        'mean_expression': normalized.mean(axis=1),
        'detection_rate': nonzero.mean(axis=1),
        'mean_nonzero': mean_nonzero,
        'uninf_covariate': rng.uniform(0, 1, size=len(counts)),
    }, index=counts.index)
    covariates['ind_covariate'] = covariates[MODALITY_COVARIATE[modality]]
    return covariates


def _align_groups(counts: pd.DataFrame, groups: Union[pd.Series, Sequence]) -> pd.Series:
    if isinstance(groups, pd.Series) and set(counts.columns) <= set(groups.index):
        return groups.reindex(counts.columns)
    groups = pd.Series(list(groups), index=counts.columns)
    return groups


def differential_test(
    counts: pd.DataFrame,
    groups: Union[pd.Series, Sequence],
    levels: Optional[Sequence[str]] = None,
    test: Literal['welch', 'wilcoxon', 'mast', 'scdd'] = 'welch',
    modality: str = 'rnaseq',
    normalization: str = 'cpm',
    min_count: float = 1.0,
    min_samples: int = 2,
    pseudocount: float = 1.0,
    feature_metadata: Optional[pd.DataFrame] = None,
    random_state: Optional[int] = 42
) -> pd.DataFrame:
    """
    Two-group differential test for every feature.

    Parameters
    ----------
    counts : pd.DataFrame
        Count matrix, features x samples
    groups : pd.Series or sequence
        Group label per sample (a Series indexed by sample name, or a
        sequence in column order)
    levels : sequence of str, optional
        [reference, treatment]; default: the two sorted group labels
    test : {'welch', 'wilcoxon', 'mast', 'scdd'}
        Welch t-test on log2-normalized values, Wilcoxon rank-sum
        (Mann-Whitney U) on normalized values, or one of the single-cell
        tests run in R through rpy2: the MAST hurdle model on log2 values
        and scDD on normalized values. The R tests raise
        MethodUnavailableError when rpy2 or the R package is missing.
    modality : str
        Picks the default 'ind_covariate' (see MODALITY_COVARIATE)
    normalization : {'cpm', 'tss', 'none'}
    min_count, min_samples
        Low-count filter, see :func:`filter_features`
    pseudocount : float
        Added on the normalized scale before taking log2
    feature_metadata : pd.DataFrame, optional
        Extra per-feature numeric columns (e.g. region width) joined in as
        further covariates
    random_state : int, optional
        Seed for the uninformative covariate

    Returns
    -------
    table : pd.DataFrame
        Results table: pvalue, effect_size (log2 fold change treatment vs
        reference), se, test_statistic and covariate columns
    """
    if test not in DIFFERENTIAL_TESTS:
        raise ValueError(f"Unknown test: {test} (choose from {', '.join(DIFFERENTIAL_TESTS)})")

    groups = _align_groups(counts, groups)
    if levels is None:
        levels = sorted(groups.dropna().unique())
    if len(levels) != 2:
        raise ValueError(f"Need exactly two groups, got {list(levels)}")
    reference, treatment = levels

    in_test = groups.isin([reference, treatment]).to_numpy()
    counts = counts.loc[:, in_test]
    groups = groups[in_test]
    is_trt = (groups == treatment).to_numpy()
    n_ref, n_trt = int((~is_trt).sum()), int(is_trt.sum())
    if min(n_ref, n_trt) < 2:
        raise ValueError(f"Each group needs at least 2 samples ({reference}: {n_ref}, {treatment}: {n_trt})")

    counts = filter_features(counts, min_count=min_count, min_samples=min_samples)
    if counts.empty:
        raise ValueError("No features left after filtering")

    logged = normalize_counts(counts, normalization, log=True, pseudocount=pseudocount).to_numpy()
    a, b = logged[:, ~is_trt], logged[:, is_trt]

    effect_size = b.mean(axis=1) - a.mean(axis=1)
    se = np.sqrt(a.var(axis=1, ddof=1) / n_ref + b.var(axis=1, ddof=1) / n_trt)

    if test == 'welch':
        statistic, p_values = stats.ttest_ind(b, a, axis=1, equal_var=False)
    elif test == 'wilcoxon':
        u_stat, p_values = stats.mannwhitneyu(b, a, axis=1, alternative='two-sided')
        # Centre U so that its sign gives the direction of the shift
        statistic = u_stat - n_ref * n_trt / 2
    elif test == 'mast':
        statistic, p_values = r_methods.mast_test(logged, is_trt)
    else:
        normalized = normalize_counts(counts, normalization, log=False).to_numpy()
        p_values = r_methods.scdd_test(normalized, is_trt)
        statistic = np.full(len(p_values), np.nan)

    table = pd.DataFrame({
        'pvalue': p_values,
        'effect_size': effect_size,
        'se': se,
        'test_statistic': statistic,
    }, index=counts.index)

    n_missing = int(table['pvalue'].isna().sum())
    if n_missing:
        logger.warning("%d features have an undefined p-value (constant within both groups)", n_missing)

    covariates = compute_covariates(counts, modality, normalization, random_state)
    table = table.join(covariates)

    if feature_metadata is not None:
        extra = feature_metadata.select_dtypes(include='number')
        extra = extra[[c for c in extra.columns if c not in table.columns]]
        table = table.join(extra)

    logger.info(
        "%s test, %s vs %s: %d features, %d with p < 0.05",
        test, treatment, reference, len(table), int((table['pvalue'] < 0.05).sum())
    )
    return table
