"""Evaluation metrics and analysis."""

from .metrics import (
    DEFAULT_ALPHAS,
    aligned_truth,
    compute_confusion_matrix,
    compute_metrics,
    metrics_at_thresholds,
    summarize_metrics,
    compare_methods,
    compute_relative_power_gain,
    relative_to_baseline
)
from .comparison import (
    CovariateDiagnostics,
    compare_covariates,
    covariate_diagnostics,
    intersection_counts,
    method_ranks,
    rank_agreement,
    rejection_overlap
)

__all__ = [
    'DEFAULT_ALPHAS',
    'aligned_truth',
    'compute_confusion_matrix',
    'compute_metrics',
    'metrics_at_thresholds',
    'summarize_metrics',
    'compare_methods',
    'compute_relative_power_gain',
    'relative_to_baseline',
    'CovariateDiagnostics',
    'compare_covariates',
    'covariate_diagnostics',
    'intersection_counts',
    'method_ranks',
    'rank_agreement',
    'rejection_overlap'
]
