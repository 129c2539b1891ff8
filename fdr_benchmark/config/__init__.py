"""
Configuration module for fdr_benchmark experiments.

This module provides configuration classes and presets for running
simulation and case-study benchmarks.
"""

from .benchmark_config import (
    BenchmarkConfig,
    DatasetConfig,
    SimulationConfig,
    load_config,
    load_experiment,
    save_config,
    create_config_from_preset,
    DEFAULT_METHODS,
    PYTHON_METHODS,
    BENCHMARK_PRESETS,
    DATASET_PRESETS,
    SIMULATION_PRESETS,
)

__all__ = [
    'BenchmarkConfig',
    'DatasetConfig',
    'SimulationConfig',
    'load_config',
    'load_experiment',
    'save_config',
    'create_config_from_preset',
    'DEFAULT_METHODS',
    'PYTHON_METHODS',
    'BENCHMARK_PRESETS',
    'DATASET_PRESETS',
    'SIMULATION_PRESETS',
]
