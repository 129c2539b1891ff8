"""
Benchmark runners.

Simulation benchmarks repeat simulate -> correct -> score over replicates
(optionally in worker processes). Dataset benchmarks compute a results
table from count data once, then correct it under every covariate choice.
Result files are cached: a run is skipped when its output already exists,
unless ``overwrite`` is set.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..config.benchmark_config import BenchmarkConfig, DatasetConfig, SimulationConfig
from ..data.differential import differential_test
from ..data.loader import fetch_dataset, read_count_matrix, read_sample_table, read_table
from ..data.synthetic import simulate_results_table
from ..evaluation.comparison import (
    compare_covariates,
    covariate_diagnostics,
    intersection_counts,
    method_ranks,
    rejection_overlap
)
from ..evaluation.metrics import (
    aligned_truth,
    metrics_at_thresholds,
    relative_to_baseline,
    summarize_metrics
)
from ..methods.registry import MethodRegistry, apply_methods, build_registry

logger = logging.getLogger(__name__)


def evaluate_table(
    table: pd.DataFrame,
    registry: MethodRegistry,
    covariate: Optional[str] = None,
    alphas: Optional[Sequence[float]] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Evaluates methods on a specific, already-generated results table.

    Returns
    -------
    adjusted : pd.DataFrame
        Adjusted values, one column per method
    metrics : pd.DataFrame
        Rejections (and FDR/TPR/TNR when the table has 'is_null') per
        method and alpha
    """
    adjusted = apply_methods(table, registry, covariate=covariate)
    metrics = metrics_at_thresholds(adjusted, aligned_truth(table, adjusted), alphas)
    return adjusted, metrics


def _simulation_kwargs(sim_config: SimulationConfig) -> Dict[str, Any]:
    kwargs = asdict(sim_config)
    kwargs.pop('name')
    return kwargs


def run_single_replication(
    sim_config: SimulationConfig,
    bench_config: BenchmarkConfig,
    replicate: int
) -> pd.DataFrame:
    """Simulate one results table and score every method on it."""
    table = simulate_results_table(
        **_simulation_kwargs(sim_config),
        random_state=bench_config.random_state + replicate
    )
    registry = build_registry(bench_config.methods, bench_config.method_params)
    _, metrics = evaluate_table(table, registry, bench_config.covariate, bench_config.alphas)
    metrics.insert(0, 'replicate', replicate)
    return metrics


def run_simulation(
    sim_config: SimulationConfig,
    bench_config: BenchmarkConfig,
    show_progress: bool = True
) -> pd.DataFrame:
    """
    Run all replicates of one simulation setting.

    Writes ``<results_dir>/<name>_metrics.csv`` (every replicate) and
    ``<name>_summary.csv`` (mean/sd/se across replicates). When the metrics
    file exists and ``overwrite`` is off, it is loaded instead.
    """
    output_path = Path(bench_config.results_dir)
    metrics_file = output_path / f"{sim_config.name}_metrics.csv"

    if metrics_file.exists() and not bench_config.overwrite:
        logger.info("%s exists, skipping simulation '%s'", metrics_file, sim_config.name)
        return pd.read_csv(metrics_file)

    output_path.mkdir(parents=True, exist_ok=True)
    replicates = range(bench_config.n_replicates)
    logger.info(
        "Running '%s': %d replicates x %d tests, %d methods",
        sim_config.name, bench_config.n_replicates, sim_config.n_tests, len(bench_config.methods)
    )

    frames = []
    if bench_config.n_jobs == 1:
        for rep in tqdm(replicates, desc=sim_config.name, disable=not show_progress):
            frames.append(run_single_replication(sim_config, bench_config, rep))
    else:
        with ProcessPoolExecutor(max_workers=bench_config.n_jobs) as executor:
            futures = {
                executor.submit(run_single_replication, sim_config, bench_config, rep): rep
                for rep in replicates
            }
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc=sim_config.name, disable=not show_progress):
                frames.append(future.result())

    metrics = pd.concat(frames, ignore_index=True)
    metrics = metrics.sort_values('replicate', kind='mergesort').reset_index(drop=True)
    metrics.insert(0, 'setting', sim_config.name)

    metrics.to_csv(metrics_file, index=False)
    summary = summarize_metrics(metrics, by=['setting', 'method', 'alpha'])
    summary.to_csv(output_path / f"{sim_config.name}_summary.csv", index=False)
    logger.info("Saved %s", metrics_file)

    return metrics


def run_simulation_grid(
    settings: Union[Mapping[str, SimulationConfig], Sequence[SimulationConfig]],
    bench_config: BenchmarkConfig,
    show_progress: bool = True
) -> pd.DataFrame:
    """Run several simulation settings and stack their metrics."""
    if isinstance(settings, Mapping):
        configs = []
        for name, config in settings.items():
            if config.name != name:
                config = SimulationConfig.from_dict({**config.to_dict(), 'name': name})
            configs.append(config)
    else:
        configs = list(settings)

    names = [c.name for c in configs]
    if len(set(names)) != len(names):
        raise ValueError(f"Simulation setting names must be unique: {names}")

    frames = [run_simulation(c, bench_config, show_progress) for c in configs]
    return pd.concat(frames, ignore_index=True)


def _summary_alpha(alphas: Sequence[float]) -> float:
    """0.1 when it is on the grid, else the largest threshold."""
    return 0.1 if any(np.isclose(a, 0.1) for a in alphas) else max(alphas)


def run_table_benchmark(
    table: pd.DataFrame,
    bench_config: BenchmarkConfig,
    covariates: Optional[Sequence[str]] = None,
    name: str = 'table',
    output_dir: Optional[Union[str, Path]] = None
) -> Dict[str, Any]:
    """
    Apply the panel to one results table under each covariate choice.

    Parameters
    ----------
    table : pd.DataFrame
        Results table
    bench_config : BenchmarkConfig
    covariates : sequence of str, optional
        Covariates to compare (default: ``bench_config.covariate``)
    name : str
        Dataset name, stored in the 'dataset' column
    output_dir : str or Path, optional
        Where to write outputs (default ``<results_dir>/<name>``)

    Returns
    -------
    results : dict
        'metrics' (long frame), 'adjusted' (covariate -> adjusted values),
        'overlap' and 'intersections' for the primary covariate at
        alpha = 0.1, 'ranks' (mean rank by rejections across covariates),
        'diagnostics' (covariate -> CovariateDiagnostics)
    """
    covariates = list(covariates or [bench_config.covariate])
    output_dir = Path(output_dir or Path(bench_config.results_dir) / name)
    output_dir.mkdir(parents=True, exist_ok=True)

    registry = build_registry(bench_config.methods, bench_config.method_params)
    metrics, adjusted = compare_covariates(
        table, covariates, registry, bench_config.alphas, return_adjusted=True
    )
    metrics.insert(0, 'dataset', name)
    if 'bh' in set(metrics['method']):
        metrics = relative_to_baseline(metrics, metric='rejections', baseline='bh')

    alpha = _summary_alpha(bench_config.alphas)
    primary = adjusted[covariates[0]]
    overlap = rejection_overlap(primary, alpha)
    intersections = intersection_counts(primary, alpha)
    ranks = method_ranks(metrics, metric='rejections', alpha=alpha, group='covariate')

    diagnostics = {}
    for covariate in covariates:
        if covariate in table.columns:
            diagnostics[covariate] = covariate_diagnostics(table, covariate)
            diagnostics[covariate].bins.to_csv(output_dir / f"covariate_bins_{covariate}.csv", index=False)
        else:
            logger.warning("Covariate %s not in table '%s', no diagnostics", covariate, name)

    metrics.to_csv(output_dir / 'metrics.csv', index=False)
    for covariate, frame in adjusted.items():
        frame.to_csv(output_dir / f"adjusted_{covariate}.csv")
    overlap.to_csv(output_dir / 'overlap.csv')
    intersections.to_csv(output_dir / 'intersections.csv', index=False)
    ranks.to_csv(output_dir / 'ranks.csv', index=False)

    logger.info("Saved results for '%s' to %s", name, output_dir)

    return {
        'metrics': metrics,
        'adjusted': adjusted,
        'overlap': overlap,
        'intersections': intersections,
        'ranks': ranks,
        'diagnostics': diagnostics,
    }


def build_results_table(
    dataset_config: DatasetConfig,
    bench_config: BenchmarkConfig
) -> pd.DataFrame:
    """
    Results table for a case-study dataset, cached as
    ``<results_dir>/<name>/results_table.csv``.
    """
    output_dir = Path(bench_config.results_dir) / dataset_config.name
    cached = output_dir / 'results_table.csv'
    if cached.exists() and not bench_config.overwrite:
        logger.info("%s exists, skipping differential testing", cached)
        return pd.read_csv(cached, index_col=0)

    if not dataset_config.counts_path:
        raise ValueError(f"Dataset '{dataset_config.name}' has no counts_path")
    if not dataset_config.samples_path:
        raise ValueError(f"Dataset '{dataset_config.name}' has no samples_path")

    if dataset_config.counts_url:
        fetch_dataset(dataset_config.counts_url, dataset_config.counts_path,
                      overwrite=bench_config.overwrite)
    if dataset_config.samples_url:
        fetch_dataset(dataset_config.samples_url, dataset_config.samples_path,
                      overwrite=bench_config.overwrite)

    counts = read_count_matrix(dataset_config.counts_path)
    samples = read_sample_table(dataset_config.samples_path)
    if dataset_config.group_col not in samples.columns:
        raise ValueError(
            f"Sample table has no column '{dataset_config.group_col}' "
            f"(columns: {list(samples.columns)})"
        )

    missing = [s for s in counts.columns if s not in samples.index]
    if missing:
        raise ValueError(f"Samples without annotation: {missing[:5]}{'...' if len(missing) > 5 else ''}")

    feature_metadata = None
    if dataset_config.feature_metadata_path:
        feature_metadata = read_table(dataset_config.feature_metadata_path)

    table = differential_test(
        counts,
        samples[dataset_config.group_col],
        levels=dataset_config.groups,
        test=dataset_config.test,
        modality=dataset_config.modality,
        normalization=dataset_config.normalization,
        min_count=dataset_config.min_count,
        min_samples=dataset_config.min_samples,
        pseudocount=dataset_config.pseudocount,
        feature_metadata=feature_metadata,
        random_state=bench_config.random_state
    )

    output_dir.mkdir(parents=True, exist_ok=True)
    table.to_csv(cached)
    return table


def run_dataset_benchmark(
    dataset_config: DatasetConfig,
    bench_config: BenchmarkConfig
) -> Dict[str, Any]:
    """Fetch/read a dataset, test every feature and benchmark the panel."""
    table = build_results_table(dataset_config, bench_config)
    results = run_table_benchmark(
        table,
        bench_config,
        covariates=dataset_config.covariates,
        name=dataset_config.name
    )
    results['table'] = table
    return results
