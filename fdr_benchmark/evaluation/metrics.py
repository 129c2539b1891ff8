"""
Evaluation metrics for FDR control methods.

Computes rejections, FDR, TPR (power), TNR, etc. on a grid of
significance thresholds.
"""

import numpy as np
import pandas as pd
from typing import Dict, Iterable, Optional, Sequence

DEFAULT_ALPHAS = [round(0.01 * i, 2) for i in range(1, 11)]

METRIC_COLUMNS = ['rejections', 'FDR', 'TPR', 'TNR', 'FPR', 'precision', 'F1', 'TP', 'FP', 'TN', 'FN']


def compute_confusion_matrix(
    discoveries: np.ndarray,
    is_null: np.ndarray
) -> Dict[str, int]:
    """
    Compute confusion matrix elements.

    Parameters
    ----------
    discoveries : np.ndarray, dtype=bool
        Boolean array indicating rejections (1 = reject, 0 = accept)
    is_null : np.ndarray
        Truth (True/1 = H0 true/null, False/0 = H1 true/alternative)

    Returns
    -------
    confusion : dict
        Dictionary with keys: 'TP', 'FP', 'TN', 'FN', 'n_discoveries', 'n_true_signals'
    """
    discoveries = np.asarray(discoveries).astype(bool)
    is_null = np.asarray(is_null).astype(bool)
    if discoveries.shape != is_null.shape:
        raise ValueError(
            f"discoveries and truth differ in shape: {discoveries.shape} vs {is_null.shape}"
        )

    # True positives: correctly reject H0 when H1 is true
    TP = int(np.sum(discoveries & ~is_null))

    # False positives: incorrectly reject H0 when H0 is true
    FP = int(np.sum(discoveries & is_null))

    # True negatives: correctly accept H0 when H0 is true
    TN = int(np.sum(~discoveries & is_null))

    # False negatives: incorrectly accept H0 when H1 is true
    FN = int(np.sum(~discoveries & ~is_null))

    return {
        'TP': TP,
        'FP': FP,
        'TN': TN,
        'FN': FN,
        'n_discoveries': TP + FP,
        'n_true_signals': TP + FN
    }


def compute_metrics(
    discoveries: np.ndarray,
    is_null: np.ndarray
) -> Dict[str, float]:
    """
    Compute all evaluation metrics.

    Parameters
    ----------
    discoveries : np.ndarray, dtype=bool
        Boolean array indicating rejections
    is_null : np.ndarray
        Truth (True/1 = H0, False/0 = H1)

    Returns
    -------
    metrics : dict
        Dictionary containing:
        - TPR (True Positive Rate / Sensitivity / Recall / Power)
        - FDR (False Discovery Proportion of this replicate)
        - TNR (True Negative Rate / Specificity)
        - FPR (False Positive Rate)
        - precision (Positive Predictive Value)
        - F1 (F1 score)
        - rejections (number of discoveries) and the confusion counts
    """
    cm = compute_confusion_matrix(discoveries, is_null)

    TP = cm['TP']
    FP = cm['FP']
    TN = cm['TN']
    FN = cm['FN']
    n_discoveries = cm['n_discoveries']
    n_true_signals = cm['n_true_signals']
    n_true_nulls = TN + FP

    TPR = TP / n_true_signals if n_true_signals > 0 else 0.0
    FDR = FP / n_discoveries if n_discoveries > 0 else 0.0
    TNR = TN / n_true_nulls if n_true_nulls > 0 else 0.0
    FPR = FP / n_true_nulls if n_true_nulls > 0 else 0.0
    precision = TP / n_discoveries if n_discoveries > 0 else 0.0

    if precision + TPR > 0:
        F1 = 2 * (precision * TPR) / (precision + TPR)
    else:
        F1 = 0.0

    return {
        'rejections': n_discoveries,
        'TPR': TPR,
        'power': TPR,  # Alias
        'FDR': FDR,
        'TNR': TNR,
        'FPR': FPR,
        'precision': precision,
        'F1': F1,
        'n_true_signals': n_true_signals,
        'TP': TP,
        'FP': FP,
        'TN': TN,
        'FN': FN
    }


def aligned_truth(table: pd.DataFrame, adjusted: pd.DataFrame, column: str = 'is_null') -> Optional[np.ndarray]:
    """Truth for the features kept in ``adjusted``, or None without a truth column."""
    if column not in table.columns:
        return None
    return table.loc[adjusted.index, column].to_numpy().astype(bool)


def metrics_at_thresholds(
    adjusted: pd.DataFrame,
    is_null: Optional[np.ndarray] = None,
    alphas: Optional[Sequence[float]] = None
) -> pd.DataFrame:
    """
    Rejections (and, with truth, performance metrics) per method and alpha.

    Parameters
    ----------
    adjusted : pd.DataFrame
        Adjusted values, one column per method (see ``apply_methods``)
    is_null : np.ndarray, optional
        Truth aligned with ``adjusted`` rows. Without it only the number
        of rejections is reported.
    alphas : sequence of float, optional
        Significance thresholds (default 0.01, 0.02, ..., 0.10)

    Returns
    -------
    frame : pd.DataFrame
        Long format, one row per (method, alpha)
    """
    alphas = DEFAULT_ALPHAS if alphas is None else list(alphas)
    if is_null is not None and len(is_null) != len(adjusted):
        raise ValueError(f"Truth has {len(is_null)} entries for {len(adjusted)} features")

    rows = []
    for method in adjusted.columns:
        values = adjusted[method].to_numpy(dtype=float)
        for alpha in alphas:
            discoveries = values <= alpha
            if is_null is None:
                row = {'rejections': int(discoveries.sum())}
            else:
                row = compute_metrics(discoveries, is_null)
            row['method'] = method
            row['alpha'] = alpha
            rows.append(row)

    frame = pd.DataFrame(rows)
    if frame.empty:
        return pd.DataFrame(columns=['method', 'alpha', 'rejections'])
    leading = ['method', 'alpha']
    return frame[leading + [c for c in frame.columns if c not in leading]]


def summarize_metrics(
    frame: pd.DataFrame,
    by: Iterable[str] = ('method', 'alpha'),
    metrics: Optional[Iterable[str]] = None
) -> pd.DataFrame:
    """
    Summarize metrics across multiple replications.

    Parameters
    ----------
    frame : pd.DataFrame
        Long metrics frame with a 'replicate' column (or any repeated rows)
    by : iterable of str
        Grouping columns
    metrics : iterable of str, optional
        Metric columns to summarize (default: every known metric present)

    Returns
    -------
    summary : pd.DataFrame
        One row per group and metric with mean, std, se, min, max, median
        and the number of replicates n
    """
    by = list(by)
    if metrics is None:
        metrics = [c for c in METRIC_COLUMNS if c in frame.columns]
    metrics = list(metrics)

    if frame.empty:
        return pd.DataFrame(columns=by + ['metric', 'mean', 'std', 'se', 'min', 'max', 'median', 'n'])

    long = frame.melt(id_vars=by, value_vars=metrics, var_name='metric')
    grouped = long.groupby(by + ['metric'], sort=False)['value']

    summary = grouped.agg(['mean', 'std', 'min', 'max', 'median', 'count']).reset_index()
    summary = summary.rename(columns={'count': 'n'})
    summary['std'] = summary['std'].fillna(0.0)
    summary['se'] = summary['std'] / np.sqrt(summary['n'])

    return summary[by + ['metric', 'mean', 'std', 'se', 'min', 'max', 'median', 'n']]


def compare_methods(
    frame: pd.DataFrame,
    metric: str = 'TPR',
    alpha: float = 0.1
) -> Dict[str, float]:
    """
    Compare multiple methods on a specific metric at one threshold.

    Returns
    -------
    comparison : dict
        Dictionary mapping method names to mean metric values
    """
    at_alpha = frame[np.isclose(frame['alpha'], alpha)]
    if at_alpha.empty:
        raise ValueError(f"No results at alpha={alpha}")
    means = at_alpha.groupby('method', sort=False)[metric].mean()
    return {method: float(value) for method, value in means.items()}


def compute_relative_power_gain(
    power_method: float,
    power_baseline: float
) -> float:
    """
    Compute relative power gain over baseline.

    gain = (power_method - power_baseline) / power_baseline

    Returns
    -------
    gain : float
        Relative power gain (e.g., 0.5 = 50% gain)
    """
    if power_baseline == 0:
        return np.inf if power_method > 0 else 0.0

    return (power_method - power_baseline) / power_baseline


def relative_to_baseline(
    frame: pd.DataFrame,
    metric: str = 'rejections',
    baseline: str = 'bh'
) -> pd.DataFrame:
    """
    Add ``<metric>_vs_<baseline>``, the relative gain of every method over
    the baseline method within each alpha (and replicate/dataset/covariate,
    when present).
    """
    if baseline not in set(frame['method']):
        raise ValueError(f"Baseline method '{baseline}' not in results")

    keys = [c for c in ('setting', 'dataset', 'covariate', 'replicate', 'alpha') if c in frame.columns]
    reference = (
        frame[frame['method'] == baseline]
        .set_index(keys)[metric]
        .rename('_baseline')
    )
    out = frame.join(reference, on=keys)
    out[f'{metric}_vs_{baseline}'] = [
        compute_relative_power_gain(v, b) for v, b in zip(out[metric], out['_baseline'])
    ]
    return out.drop(columns='_baseline')
