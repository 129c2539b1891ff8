"""FDR control methods and the method registry."""

from .registry import (
    MethodSpec,
    MethodRegistry,
    MethodUnavailableError,
    apply_methods,
    build_registry,
    default_registry,
    prepare_table,
)
from .baseline import (
    benjamini_hochberg,
    bonferroni,
    estimate_pi0_storey,
    pvalue_to_zscore,
    reject,
    storey_qvalue,
)
from .covariate import (
    binned_lfdr,
    boca_leek,
    lfdr_to_qvalue,
    spline_basis,
)

__all__ = [
    'MethodSpec',
    'MethodRegistry',
    'MethodUnavailableError',
    'apply_methods',
    'build_registry',
    'default_registry',
    'prepare_table',
    'benjamini_hochberg',
    'bonferroni',
    'estimate_pi0_storey',
    'pvalue_to_zscore',
    'reject',
    'storey_qvalue',
    'binned_lfdr',
    'boca_leek',
    'lfdr_to_qvalue',
    'spline_basis',
]
