"""Experiment runners for simulation and dataset benchmarks."""

from .run_evaluation import (
    evaluate_table,
    run_single_replication,
    run_simulation,
    run_simulation_grid,
    run_table_benchmark,
    build_results_table,
    run_dataset_benchmark
)

__all__ = [
    'evaluate_table',
    'run_single_replication',
    'run_simulation',
    'run_simulation_grid',
    'run_table_benchmark',
    'build_results_table',
    'run_dataset_benchmark'
]
