"""
Unit tests for config/benchmark_config.py.
"""

import json

import pytest
import yaml

from fdr_benchmark.config import (
    BENCHMARK_PRESETS,
    DATASET_PRESETS,
    PYTHON_METHODS,
    SIMULATION_PRESETS,
    BenchmarkConfig,
    DatasetConfig,
    SimulationConfig,
    create_config_from_preset,
    load_config,
    load_experiment,
    save_config,
)


class TestBenchmarkConfig:

    def test_defaults(self):
        config = BenchmarkConfig()
        assert config.methods[:3] == ['unadjusted', 'bonf', 'bh']
        assert config.alphas[0] == 0.01
        assert config.alphas[-1] == 0.1
        assert len(config.alphas) == 10

    @pytest.mark.parametrize('kwargs', [
        {'methods': []},
        {'alphas': [0.0]},
        {'alphas': [0.05, 1.0]},
        {'n_replicates': 0},
        {'n_jobs': 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            BenchmarkConfig(**kwargs)

    def test_presets_are_valid(self):
        assert BENCHMARK_PRESETS['python_only'].methods == PYTHON_METHODS
        assert SIMULATION_PRESETS['quick_test'].n_tests == 2000
        assert DATASET_PRESETS['microbiome'].normalization == 'tss'


class TestConfigFiles:

    def test_yaml_round_trip(self, tmp_path):
        config = SimulationConfig(name='steps', pi0_shape='step', n_tests=5000)
        path = tmp_path / 'sim.yaml'
        save_config(config, path)

        with open(path) as f:
            assert yaml.safe_load(f)['type'] == 'simulation'
        assert load_config(path) == config

    def test_json_round_trip(self, tmp_path):
        config = BenchmarkConfig(methods=['bh', 'bl'], method_params={'bl': {'lambda_val': 0.7}})
        path = tmp_path / 'bench.json'
        save_config(config, path, format='json')

        with open(path) as f:
            assert json.load(f)['type'] == 'benchmark'
        assert load_config(path) == config

    def test_dataset_round_trip(self, tmp_path):
        config = DATASET_PRESETS['scrnaseq']
        path = tmp_path / 'nested' / 'dataset.yml'
        save_config(config, path)
        loaded = load_config(path)
        assert isinstance(loaded, DatasetConfig)
        assert loaded == config

    def test_missing_type_means_benchmark(self, tmp_path):
        path = tmp_path / 'bench.yaml'
        path.write_text('methods: [bh]\nn_replicates: 2\n')
        config = load_config(path)
        assert isinstance(config, BenchmarkConfig)
        assert config.n_replicates == 2

    def test_unknown_type_raises(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('type: plot\n')
        with pytest.raises(ValueError):
            load_config(path)

    def test_unknown_suffix_raises(self, tmp_path):
        path = tmp_path / 'config.toml'
        path.write_text('')
        with pytest.raises(ValueError):
            load_config(path)

    def test_unknown_save_format_raises(self, tmp_path):
        with pytest.raises(ValueError):
            save_config(BenchmarkConfig(), tmp_path / 'x.cfg', format='ini')

    def test_load_experiment(self, tmp_path):
        path = tmp_path / 'experiment.yaml'
        path.write_text(
            "benchmark:\n"
            "  methods: [bh, qvalue]\n"
            "  n_replicates: 2\n"
            "simulations:\n"
            "  cosine: {n_tests: 1000}\n"
            "  flat:\n"
            "    pi0_shape: constant\n"
            "datasets:\n"
            "  - name: toy\n"
            "    counts_path: counts.tsv\n"
            "    samples_path: samples.tsv\n"
        )
        experiment = load_experiment(path)

        assert experiment['benchmark'].methods == ['bh', 'qvalue']
        assert list(experiment['simulations']) == ['cosine', 'flat']
        assert experiment['simulations']['cosine'].name == 'cosine'
        assert experiment['simulations']['cosine'].n_tests == 1000
        assert experiment['simulations']['flat'].pi0_shape == 'constant'
        assert experiment['datasets'][0].name == 'toy'

    @pytest.mark.parametrize('suffix', ['yaml', 'json'])
    def test_unknown_field_raises(self, tmp_path, suffix):
        path = tmp_path / f'sim.{suffix}'
        data = {'type': 'simulation', 'n_test': 100}
        path.write_text(yaml.safe_dump(data) if suffix == 'yaml' else json.dumps(data))
        with pytest.raises(ValueError, match='n_test'):
            load_config(path)

    def test_experiment_unknown_field_raises(self, tmp_path):
        path = tmp_path / 'experiment.yaml'
        path.write_text(
            "benchmark:\n"
            "  methods: [bh]\n"
            "  replicates: 2\n"
        )
        with pytest.raises(ValueError, match='replicates'):
            load_experiment(path)


class TestPresets:

    def test_overrides(self):
        config = create_config_from_preset('quick_test', 'simulation', n_tests=300)
        assert config.n_tests == 300
        assert config.name == 'quick_test'
        assert SIMULATION_PRESETS['quick_test'].n_tests == 2000

    def test_benchmark_preset(self):
        config = create_config_from_preset('quick_test', 'benchmark', results_dir='out')
        assert config.results_dir == 'out'
        assert config.n_replicates == 3

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError):
            create_config_from_preset('default', 'simulation', n_test=10)

    def test_unknown_preset_raises(self):
        with pytest.raises(ValueError):
            create_config_from_preset('nope', 'dataset')
