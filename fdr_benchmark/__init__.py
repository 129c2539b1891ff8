"""
FDR Method Benchmarking Framework
=================================

A framework for benchmarking multiple-testing correction methods
(BH, q-value, IHW, ASH, local fdr, FDR regression, ...) on simulated and
genomics results tables, across significance thresholds, covariate
choices and simulated replicates.
"""

__version__ = "0.1.0"

from . import config
from . import data
from . import methods
from . import evaluation
from . import experiments

__all__ = [
    "config",
    "data",
    "methods",
    "evaluation",
    "experiments"
]
