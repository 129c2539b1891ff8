"""
Tests for the fdr-benchmark command line.
"""

import pandas as pd
import pytest

from fdr_benchmark.cli import build_parser, main
from fdr_benchmark.data import simulate_results_table


class TestParser:

    def test_requires_subcommand(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_simulate_arguments(self):
        args = build_parser().parse_args(
            ['simulate', '--preset', 'step', '--methods', 'bh', 'bl', '--alpha', '0.05', '--n-replicates', '4']
        )
        assert args.preset == 'step'
        assert args.methods == ['bh', 'bl']
        assert args.alpha == [0.05]
        assert args.n_replicates == 4

    def test_verbosity_after_subcommand(self):
        args = build_parser().parse_args(['simulate', '-v', '-q', '--preset', 'step'])
        assert args.verbose == 1
        assert args.quiet is True

    def test_verbosity_before_subcommand(self):
        args = build_parser().parse_args(['-vv', 'methods'])
        assert args.verbose == 2
        assert args.quiet is False


class TestCommands:

    def test_methods(self, capsys):
        assert main(['methods']) == 0
        out = capsys.readouterr().out
        assert 'qvalue' in out
        assert 'adapt-glm' in out

    def test_simulate(self, tmp_path, capsys):
        code = main([
            '-q', 'simulate', '--preset', 'quick_test',
            '--methods', 'bh', 'qvalue', '--n-replicates', '2',
            '--results-dir', str(tmp_path),
        ])
        assert code == 0
        assert (tmp_path / 'quick_test_metrics.csv').exists()
        assert 'Results Summary (alpha=0.1)' in capsys.readouterr().out

    def test_table(self, tmp_path, capsys):
        table = simulate_results_table(n_tests=800, random_state=0)
        table = table.rename(columns={'pvalue': 'P.Value', 'ind_covariate': 'AveExpr'})
        path = tmp_path / 'results.csv'
        table.to_csv(path)

        code = main([
            'table', str(path), '--rename', 'P.Value=pvalue',
            '--covariate', 'AveExpr', '--methods', 'bh', 'bl',
            '--results-dir', str(tmp_path / 'out'), '--name', 'limma',
        ])
        assert code == 0
        metrics = pd.read_csv(tmp_path / 'out' / 'limma' / 'metrics.csv')
        assert set(metrics['method']) == {'bh', 'bl'}
        assert set(metrics['covariate']) == {'AveExpr'}

    def test_unknown_method_fails_cleanly(self, tmp_path):
        code = main(['-q', 'simulate', '--preset', 'quick_test', '--methods', 'nope',
                     '--results-dir', str(tmp_path)])
        assert code == 1

    def test_missing_config_fails_cleanly(self, tmp_path):
        assert main(['dataset', '--config', str(tmp_path / 'absent.yaml')]) == 1

    def test_quiet_after_subcommand(self, tmp_path):
        code = main([
            'simulate', '-q', '--preset', 'quick_test',
            '--methods', 'bh', '--n-replicates', '1',
            '--results-dir', str(tmp_path),
        ])
        assert code == 0
        assert (tmp_path / 'quick_test_metrics.csv').exists()

    def test_bad_config_field_fails_cleanly(self, tmp_path):
        path = tmp_path / 'sim.yaml'
        path.write_text('type: simulation\nn_test: 100\n')
        code = main(['-q', 'simulate', '--config', str(path), '--results-dir', str(tmp_path)])
        assert code == 1

    def test_run_experiment(self, tmp_path, capsys):
        path = tmp_path / 'experiment.yaml'
        path.write_text(
            "benchmark:\n"
            "  methods: [bh, qvalue]\n"
            "  n_replicates: 1\n"
            f"  results_dir: {tmp_path / 'results'}\n"
            "simulations:\n"
            "  small: {n_tests: 500}\n"
        )
        assert main(['-q', 'run', str(path)]) == 0
        assert (tmp_path / 'results' / 'small_metrics.csv').exists()
