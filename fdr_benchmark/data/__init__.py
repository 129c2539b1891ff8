"""Data loading, simulation and differential-testing utilities."""

from .loader import (
    fetch_dataset,
    read_count_matrix,
    read_results_table,
    read_sample_table
)

from .synthetic import (
    pi0_function,
    generate_effects,
    generate_pvalues,
    simulate_results_table
)

from .differential import (
    filter_features,
    normalize_counts,
    compute_covariates,
    differential_test
)

__all__ = [
    'fetch_dataset',
    'read_count_matrix',
    'read_results_table',
    'read_sample_table',
    'pi0_function',
    'generate_effects',
    'generate_pvalues',
    'simulate_results_table',
    'filter_features',
    'normalize_counts',
    'compute_covariates',
    'differential_test'
]
