"""
Benchmark Configuration System for fdr_benchmark.

This module provides a unified configuration system for running
simulation and dataset benchmarks of FDR correction methods.

Usage:
    # Load from YAML
    sim_config = load_config('configs/simulation.yaml')

    # Use presets
    sim_config = SIMULATION_PRESETS['default']

    # Programmatic
    bench_config = BenchmarkConfig(
        methods=['bh', 'qvalue', 'bl'],
        n_replicates=20
    )
"""

import json
import yaml
from dataclasses import dataclass, field, asdict, fields
from typing import List, Dict, Optional, Union, Any
from pathlib import Path


DEFAULT_METHODS = [
    'unadjusted',
    'bonf',
    'bh',
    'tsbh',
    'qvalue',
    'bl',
    'lfdr',
    'ihw',
    'ashq',
    'fdrreg-t',
    'fdrreg-e',
    'adapt-glm',
]

# Methods that only need numpy/scipy/statsmodels/scikit-learn
PYTHON_METHODS = ['unadjusted', 'bonf', 'bh', 'tsbh', 'qvalue', 'bl', 'lfdr']


def _default_alphas() -> List[float]:
    return [round(0.01 * i, 2) for i in range(1, 11)]


def _check_fields(cls, d: dict) -> None:
    unknown = set(d) - {f.name for f in fields(cls)}
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} field(s): {sorted(unknown)}")


@dataclass
class SimulationConfig:
    """
    Configuration for one simulated results-table setting.

    Parameters
    ----------
    name : str
        Setting name, used in output file names
    n_tests : int
        Number of hypotheses per replicate
    pi0_shape : str
        'constant', 'step', 'cosine', 'sine' or 'cubic'
    pi0_min, pi0_max : float
        Range of the covariate-dependent null proportion
    effect_distribution : str
        'unimodal', 'bimodal' or 'spiky'
    effect_scale : float
        Location of the non-null effect distribution
    test_statistic : str
        'z', 't' or 'chisq'
    df : int
        Degrees of freedom for 't' and 'chisq'
    """
    name: str = 'simulation'
    n_tests: int = 20000
    pi0_shape: str = 'cosine'
    pi0_min: float = 0.5
    pi0_max: float = 0.95
    effect_distribution: str = 'unimodal'
    effect_scale: float = 2.5
    test_statistic: str = 'z'
    df: int = 5

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'SimulationConfig':
        _check_fields(cls, d)
        return cls(**d)


@dataclass
class DatasetConfig:
    """
    Configuration for a case-study dataset.

    Either local paths or download URLs (or both) are given for the count
    matrix and the sample table. Downloads are skipped when the file exists.
    """
    name: str = 'dataset'
    modality: str = 'rnaseq'  # 'rnaseq', 'scrnaseq', 'chipseq', 'microbiome'

    counts_path: str = ''
    counts_url: Optional[str] = None
    samples_path: str = ''
    samples_url: Optional[str] = None
    feature_metadata_path: Optional[str] = None

    group_col: str = 'group'
    groups: Optional[List[str]] = None  # [reference, treatment]

    # Differential testing
    test: str = 'welch'  # 'welch', 'wilcoxon', 'mast' or 'scdd' (R, via rpy2)
    normalization: str = 'cpm'
    min_count: float = 1.0
    min_samples: int = 2
    pseudocount: float = 1.0

    # Covariates to compare (first is the primary covariate)
    covariates: List[str] = field(default_factory=lambda: ['ind_covariate', 'uninf_covariate'])

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'DatasetConfig':
        _check_fields(cls, d)
        return cls(**d)


@dataclass
class BenchmarkConfig:
    """
    Configuration shared by simulation and dataset benchmarks.

    Parameters
    ----------
    methods : list of str
        Registry names of the methods to run
    method_params : dict
        Per-method parameter overrides, e.g. {'ihw': {'nbins': 10}}
    alphas : list of float
        Significance thresholds for the metrics grid
    covariate : str
        Default covariate column for covariate-aware methods

    Experiment
    ----------
    n_replicates : int
        Number of simulated replicates
    n_jobs : int
        Worker processes for the replicate loop (1 = sequential)
    random_state : int
    results_dir : str
    overwrite : bool
        Recompute even when result files already exist
    """
    methods: List[str] = field(default_factory=lambda: list(DEFAULT_METHODS))
    method_params: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    alphas: List[float] = field(default_factory=_default_alphas)
    covariate: str = 'ind_covariate'

    n_replicates: int = 20
    n_jobs: int = 1
    random_state: int = 42

    results_dir: str = 'results'
    overwrite: bool = False

    def __post_init__(self):
        if not self.methods:
            raise ValueError("At least one method is required")
        for a in self.alphas:
            if not 0 < a < 1:
                raise ValueError(f"alpha must lie in (0, 1), got {a}")
        if self.n_replicates < 1:
            raise ValueError("n_replicates must be >= 1")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be >= 1")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> 'BenchmarkConfig':
        _check_fields(cls, d)
        return cls(**d)


# =============================================================================
# PRESET CONFIGURATIONS
# =============================================================================

SIMULATION_PRESETS: Dict[str, SimulationConfig] = {
    'default': SimulationConfig(),

    'quick_test': SimulationConfig(
        name='quick_test',
        n_tests=2000
    ),

    'uninformative': SimulationConfig(
        name='uninformative',
        pi0_shape='constant',
        pi0_min=0.9,
        pi0_max=0.9
    ),

    'step': SimulationConfig(
        name='step',
        pi0_shape='step'
    ),

    'cubic': SimulationConfig(
        name='cubic',
        pi0_shape='cubic'
    ),

    'bimodal': SimulationConfig(
        name='bimodal',
        effect_distribution='bimodal'
    ),

    't_statistic': SimulationConfig(
        name='t_statistic',
        test_statistic='t',
        df=5
    ),

    'chisq_statistic': SimulationConfig(
        name='chisq_statistic',
        test_statistic='chisq',
        df=4,
        effect_scale=3.0
    ),
}

DATASET_PRESETS: Dict[str, DatasetConfig] = {
    'rnaseq': DatasetConfig(
        name='rnaseq',
        modality='rnaseq',
        test='welch',
        normalization='cpm',
        covariates=['ind_covariate', 'uninf_covariate']
    ),

    'scrnaseq': DatasetConfig(
        name='scrnaseq',
        modality='scrnaseq',
        test='wilcoxon',
        normalization='cpm',
        min_samples=10,
        covariates=['ind_covariate', 'mean_expression', 'uninf_covariate']
    ),

    'chipseq': DatasetConfig(
        name='chipseq',
        modality='chipseq',
        test='welch',
        normalization='cpm',
        covariates=['ind_covariate', 'uninf_covariate']
    ),

    'microbiome': DatasetConfig(
        name='microbiome',
        modality='microbiome',
        test='wilcoxon',
        normalization='tss',
        min_count=1.0,
        min_samples=1,
        pseudocount=1e-5,
        covariates=['ind_covariate', 'mean_nonzero', 'uninf_covariate']
    ),
}

BENCHMARK_PRESETS: Dict[str, BenchmarkConfig] = {
    'default': BenchmarkConfig(),

    'python_only': BenchmarkConfig(
        methods=list(PYTHON_METHODS)
    ),

    'quick_test': BenchmarkConfig(
        methods=list(PYTHON_METHODS),
        n_replicates=3
    ),

    'full_evaluation': BenchmarkConfig(
        n_replicates=100,
        n_jobs=4
    ),
}


# =============================================================================
# I/O FUNCTIONS
# =============================================================================

_CONFIG_TYPES = {
    'simulation': SimulationConfig,
    'dataset': DatasetConfig,
    'benchmark': BenchmarkConfig,
}


def load_config(path: Union[str, Path]) -> Union[SimulationConfig, DatasetConfig, BenchmarkConfig]:
    """
    Load configuration from YAML or JSON file.

    Parameters
    ----------
    path : str or Path
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    config : SimulationConfig, DatasetConfig or BenchmarkConfig
        Loaded configuration, chosen by the file's 'type' key
        (default 'benchmark')
    """
    path = Path(path)

    if path.suffix in ['.yaml', '.yml']:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    elif path.suffix == '.json':
        with open(path, 'r') as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unknown config format: {path.suffix}")

    data = dict(data or {})
    config_type = data.pop('type', 'benchmark')
    if config_type not in _CONFIG_TYPES:
        raise ValueError(f"Unknown config type: {config_type}")

    return _CONFIG_TYPES[config_type].from_dict(data)


def load_experiment(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a combined experiment file.

    The file holds a 'benchmark' section plus 'simulations' (a mapping of
    setting name to simulation parameters) and/or 'datasets' (a list of
    dataset configurations).
    """
    path = Path(path)
    if path.suffix in ['.yaml', '.yml']:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    elif path.suffix == '.json':
        with open(path, 'r') as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unknown config format: {path.suffix}")

    simulations = {}
    for name, params in (data.get('simulations') or {}).items():
        params = dict(params or {})
        params.setdefault('name', name)
        simulations[name] = SimulationConfig.from_dict(params)

    return {
        'benchmark': BenchmarkConfig.from_dict(data.get('benchmark') or {}),
        'simulations': simulations,
        'datasets': [DatasetConfig.from_dict(d) for d in data.get('datasets') or []],
    }


def save_config(
    config: Union[SimulationConfig, DatasetConfig, BenchmarkConfig],
    path: Union[str, Path],
    format: str = 'yaml'
) -> None:
    """
    Save configuration to file.

    Parameters
    ----------
    config : SimulationConfig, DatasetConfig or BenchmarkConfig
        Configuration to save
    path : str or Path
        Output path
    format : str
        'yaml' or 'json'
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()

    for type_name, config_class in _CONFIG_TYPES.items():
        if isinstance(config, config_class):
            data['type'] = type_name
            break

    if format == 'yaml':
        with open(path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    elif format == 'json':
        with open(path, 'w') as f:
            json.dump(data, f, indent=2)
    else:
        raise ValueError(f"Unknown format: {format}")


def create_config_from_preset(
    preset_name: str,
    config_type: str = 'simulation',
    **overrides
) -> Union[SimulationConfig, DatasetConfig, BenchmarkConfig]:
    """
    Create configuration from preset with optional overrides.

    Parameters
    ----------
    preset_name : str
        Preset name ('default', 'quick_test', 'scrnaseq', etc.)
    config_type : str
        'simulation', 'dataset' or 'benchmark'
    **overrides
        Override specific fields; unknown field names raise ValueError

    Returns
    -------
    config : SimulationConfig, DatasetConfig or BenchmarkConfig
    """
    presets = {
        'simulation': SIMULATION_PRESETS,
        'dataset': DATASET_PRESETS,
        'benchmark': BENCHMARK_PRESETS,
    }
    if config_type not in presets:
        raise ValueError(f"Unknown config type: {config_type}")
    if preset_name not in presets[config_type]:
        raise ValueError(f"Unknown preset: {preset_name}")

    config_class = _CONFIG_TYPES[config_type]
    config_dict = presets[config_type][preset_name].to_dict()

    known = {f.name for f in fields(config_class)}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown {config_type} field: {key}")
        config_dict[key] = value

    return config_class.from_dict(config_dict)
