"""
Command-line entry point.

    fdr-benchmark methods
    fdr-benchmark simulate --preset quick_test --benchmark-preset python_only
    fdr-benchmark table results.csv --covariate baseMean --alpha 0.05
    fdr-benchmark dataset --config configs/scrnaseq.yaml
    fdr-benchmark run configs/experiment.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from .config import (
    BENCHMARK_PRESETS,
    SIMULATION_PRESETS,
    BenchmarkConfig,
    DatasetConfig,
    SimulationConfig,
    create_config_from_preset,
    load_config,
    load_experiment,
)
from .data.loader import read_results_table
from .evaluation.metrics import summarize_metrics
from .experiments.run_evaluation import (
    run_dataset_benchmark,
    run_simulation,
    run_simulation_grid,
    run_table_benchmark,
)
from .methods.registry import MethodUnavailableError, default_registry

logger = logging.getLogger(__name__)


def _benchmark_config(args) -> BenchmarkConfig:
    overrides = {}
    if args.methods:
        overrides['methods'] = args.methods
    if getattr(args, 'n_replicates', None) is not None:
        overrides['n_replicates'] = args.n_replicates
    if args.n_jobs is not None:
        overrides['n_jobs'] = args.n_jobs
    if args.results_dir is not None:
        overrides['results_dir'] = args.results_dir
    if args.alpha:
        overrides['alphas'] = args.alpha
    if args.overwrite:
        overrides['overwrite'] = True

    if args.benchmark_config:
        config = load_config(args.benchmark_config)
        if not isinstance(config, BenchmarkConfig):
            raise ValueError(f"{args.benchmark_config} is not a benchmark configuration")
        return BenchmarkConfig.from_dict({**config.to_dict(), **overrides})
    return create_config_from_preset(args.benchmark_preset, 'benchmark', **overrides)


def _print_summary(metrics, alpha: float) -> None:
    at_alpha = metrics[np.isclose(metrics['alpha'], alpha)]
    if at_alpha.empty:
        print(f"\nNo results at alpha={alpha}")
        return
    columns = [c for c in ('rejections', 'FDR', 'TPR', 'TNR') if c in at_alpha.columns]
    keys = [c for c in ('setting', 'dataset', 'covariate') if c in at_alpha.columns]
    summary = at_alpha.groupby(keys + ['method'], sort=False)[columns].mean()
    print(f"\nResults Summary (alpha={alpha}):")
    print(summary.to_string())


def cmd_methods(args) -> int:
    print(default_registry().describe().to_string(index=False))
    return 0


def cmd_simulate(args) -> int:
    bench_config = _benchmark_config(args)
    if args.config:
        sim_config = load_config(args.config)
        if not isinstance(sim_config, SimulationConfig):
            raise ValueError(f"{args.config} is not a simulation configuration")
    else:
        sim_config = SIMULATION_PRESETS[args.preset]

    metrics = run_simulation(sim_config, bench_config, show_progress=not args.quiet)
    _print_summary(metrics, args.report_alpha)
    return 0


def cmd_table(args) -> int:
    bench_config = _benchmark_config(args)
    columns = dict(item.split('=', 1) for item in args.rename or [])
    table = read_results_table(args.input, columns=columns)
    results = run_table_benchmark(
        table,
        bench_config,
        covariates=args.covariate or None,
        name=args.name
    )
    _print_summary(results['metrics'], args.report_alpha)
    return 0


def cmd_dataset(args) -> int:
    bench_config = _benchmark_config(args)
    dataset_config = load_config(args.config)
    if not isinstance(dataset_config, DatasetConfig):
        raise ValueError(f"{args.config} is not a dataset configuration")

    results = run_dataset_benchmark(dataset_config, bench_config)
    _print_summary(results['metrics'], args.report_alpha)
    return 0


def cmd_run(args) -> int:
    experiment = load_experiment(args.experiment)
    bench_config = experiment['benchmark']
    if args.overwrite:
        bench_config = BenchmarkConfig.from_dict({**bench_config.to_dict(), 'overwrite': True})

    if experiment['simulations']:
        metrics = run_simulation_grid(experiment['simulations'], bench_config, show_progress=not args.quiet)
        summary = summarize_metrics(metrics, by=['setting', 'method', 'alpha'])
        print(summary[summary['metric'].isin(['FDR', 'TPR'])].to_string(index=False))

    for dataset_config in experiment['datasets']:
        print(f"\n{'=' * 50}")
        print(f"Processing: {dataset_config.name}")
        print(f"{'=' * 50}")
        results = run_dataset_benchmark(dataset_config, bench_config)
        _print_summary(results['metrics'], args.report_alpha)
    return 0


def _add_benchmark_args(parser: argparse.ArgumentParser, replicates: bool = False) -> None:
    group = parser.add_argument_group('benchmark')
    group.add_argument('--benchmark-preset', default='default', choices=sorted(BENCHMARK_PRESETS),
                       help='Benchmark preset (default: %(default)s)')
    group.add_argument('--benchmark-config', help='Benchmark configuration file (YAML/JSON)')
    group.add_argument('--methods', nargs='+', help='Methods to run (see `fdr-benchmark methods`)')
    group.add_argument('--alpha', nargs='+', type=float, help='Significance thresholds')
    group.add_argument('--n-jobs', type=int, help='Worker processes')
    group.add_argument('--results-dir', help='Directory to save results')
    group.add_argument('--overwrite', action='store_true', help='Recompute existing results')
    group.add_argument('--report-alpha', type=float, default=0.1,
                       help='Threshold for the printed summary (default: %(default)s)')
    if replicates:
        group.add_argument('--n-replicates', type=int, help='Number of simulated replicates')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fdr-benchmark',
        description='Benchmark FDR correction methods on simulated and genomics results tables'
    )
    parser.add_argument('-v', '--verbose', action='count', default=0, help='More logging (-vv for debug)')
    parser.add_argument('-q', '--quiet', action='store_true', help='No progress bars')

    # -v/-q are also accepted after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-v', '--verbose', action='count', default=argparse.SUPPRESS,
                        help='More logging (-vv for debug)')
    common.add_argument('-q', '--quiet', action='store_true', default=argparse.SUPPRESS,
                        help='No progress bars')

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('methods', parents=[common], help='List the registered methods')
    p.set_defaults(func=cmd_methods)

    p = sub.add_parser('simulate', parents=[common], help='Run a simulation benchmark')
    p.add_argument('--preset', default='default', choices=sorted(SIMULATION_PRESETS),
                   help='Simulation preset (default: %(default)s)')
    p.add_argument('--config', help='Simulation configuration file (YAML/JSON)')
    _add_benchmark_args(p, replicates=True)
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser('table', parents=[common], help='Benchmark a precomputed results table')
    p.add_argument('input', help='CSV/TSV results table, first column = feature id')
    p.add_argument('--covariate', nargs='+', help='Covariate column(s) to compare')
    p.add_argument('--rename', nargs='+', metavar='OLD=NEW',
                   help="Column renames, e.g. P.Value=pvalue logFC=effect_size")
    p.add_argument('--name', default='table', help='Name for the output directory')
    _add_benchmark_args(p)
    p.set_defaults(func=cmd_table)

    p = sub.add_parser('dataset', parents=[common], help='Benchmark a case-study count dataset')
    p.add_argument('--config', required=True, help='Dataset configuration file (YAML/JSON)')
    _add_benchmark_args(p)
    p.set_defaults(func=cmd_dataset)

    p = sub.add_parser('run', parents=[common], help='Run a combined experiment file')
    p.add_argument('experiment', help='Experiment file with benchmark/simulations/datasets sections')
    p.add_argument('--overwrite', action='store_true', help='Recompute existing results')
    p.add_argument('--report-alpha', type=float, default=0.1)
    p.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        return args.func(args)
    except (ValueError, KeyError, FileNotFoundError, MethodUnavailableError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
