"""
Declarative registry of FDR correction methods.

Every method takes a results table (one row per feature, a 'pvalue'
column plus optional effect sizes and covariates) and returns one adjusted
value per feature. A feature is rejected at level alpha when its adjusted
value is <= alpha, whatever the method.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_COVARIATE = 'ind_covariate'


class MethodUnavailableError(RuntimeError):
    """Raised when a method's backend (e.g. rpy2 or an R package) is missing."""


@dataclass
class MethodSpec:
    """
    One correction method and its parameters.

    Parameters
    ----------
    name : str
        Registry key, also used as the output column name
    func : callable
        ``func(table, **params)`` or, when ``uses_covariate`` is set,
        ``func(table, covariate, **params)``. Returns adjusted values.
    params : dict
        Default keyword arguments passed to ``func``
    uses_covariate : bool
        Whether the method takes an independent covariate
    requires : tuple of str
        Columns the results table must provide
    backend : {'python', 'r'}
    description : str
    """
    name: str
    func: Callable[..., np.ndarray]
    params: Dict[str, Any] = field(default_factory=dict)
    uses_covariate: bool = False
    requires: Tuple[str, ...] = ('pvalue',)
    backend: str = 'python'
    description: str = ''

    def run(self, table: pd.DataFrame, covariate: Optional[np.ndarray] = None) -> np.ndarray:
        missing = [c for c in self.requires if c not in table.columns]
        if missing:
            raise ValueError(f"{self.name} requires columns {missing}")

        if self.uses_covariate:
            if covariate is None:
                raise ValueError(f"{self.name} requires a covariate")
            adjusted = self.func(table, covariate, **self.params)
        else:
            adjusted = self.func(table, **self.params)

        adjusted = np.asarray(adjusted, dtype=float)
        if adjusted.shape != (len(table),):
            raise ValueError(
                f"{self.name} returned {adjusted.shape[0] if adjusted.ndim else 0} "
                f"values for {len(table)} features"
            )
        return np.clip(adjusted, 0.0, 1.0)


class MethodRegistry:
    """Ordered collection of :class:`MethodSpec` keyed by name."""

    def __init__(self, specs: Optional[Iterable[MethodSpec]] = None):
        self._specs: Dict[str, MethodSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: MethodSpec) -> MethodSpec:
        if spec.name in self._specs:
            raise ValueError(f"Method already registered: {spec.name}")
        self._specs[spec.name] = spec
        return spec

    def get(self, name: str) -> MethodSpec:
        if name not in self._specs:
            raise KeyError(f"Unknown method '{name}'. Known methods: {', '.join(self._specs)}")
        return self._specs[name]

    def names(self) -> List[str]:
        return list(self._specs)

    def subset(self, names: Iterable[str]) -> 'MethodRegistry':
        """New registry holding only ``names``, in the order given."""
        return MethodRegistry(self.get(n) for n in names)

    def with_params(self, name: str, **params) -> 'MethodRegistry':
        """Copy of the registry with parameters of ``name`` overridden."""
        spec = self.get(name)
        unknown = set(params) - set(spec.params)
        if unknown:
            raise ValueError(
                f"Unknown parameters for {name}: {sorted(unknown)} "
                f"(accepted: {sorted(spec.params)})"
            )
        new_params = deepcopy(spec.params)
        new_params.update(params)

        registry = MethodRegistry()
        for existing in self:
            registry.register(replace(existing, params=new_params) if existing.name == name else existing)
        return registry

    def describe(self) -> pd.DataFrame:
        """One row per method: backend, covariate use, parameters."""
        return pd.DataFrame([
            {
                'method': s.name,
                'backend': s.backend,
                'uses_covariate': s.uses_covariate,
                'requires': ','.join(s.requires),
                'params': s.params,
                'description': s.description,
            }
            for s in self
        ])

    def __iter__(self):
        return iter(self._specs.values())

    def __len__(self):
        return len(self._specs)

    def __contains__(self, name):
        return name in self._specs


def prepare_table(table: pd.DataFrame) -> pd.DataFrame:
    """
    Validate a results table and drop features with a missing p-value.

    Raises
    ------
    ValueError
        If there is no 'pvalue' column or a p-value lies outside [0, 1]
    """
    if 'pvalue' not in table.columns:
        raise ValueError("Results table needs a 'pvalue' column")

    missing = table['pvalue'].isna()
    if missing.any():
        logger.warning("Dropping %d features with missing p-values", int(missing.sum()))
        table = table.loc[~missing]

    p = table['pvalue'].to_numpy(dtype=float)
    if len(p) and (p.min() < 0 or p.max() > 1):
        raise ValueError("p-values must lie in [0, 1]")

    return table


def get_covariate(table: pd.DataFrame, covariate: str) -> np.ndarray:
    """Covariate column as a float array; missing values are an error."""
    if covariate not in table.columns:
        raise ValueError(f"Covariate column '{covariate}' not in results table")
    values = table[covariate].to_numpy(dtype=float)
    if np.isnan(values).any():
        raise ValueError(f"Covariate column '{covariate}' has missing values")
    return values


def apply_methods(
    table: pd.DataFrame,
    registry: MethodRegistry,
    covariate: Optional[str] = None
) -> pd.DataFrame:
    """
    Apply every method in ``registry`` to the same results table.

    Parameters
    ----------
    table : pd.DataFrame
        Results table with at least a 'pvalue' column
    registry : MethodRegistry
        Methods to run
    covariate : str, optional
        Covariate column for covariate-aware methods
        (default 'ind_covariate')

    Returns
    -------
    adjusted : pd.DataFrame
        Index = features with a p-value, one column per successful method.
        ``adjusted.attrs['failed']`` maps failed or unavailable methods to
        the error message.
    """
    table = prepare_table(table)
    covariate = covariate or DEFAULT_COVARIATE

    cov_values = None
    cov_error = None
    if any(spec.uses_covariate for spec in registry):
        try:
            cov_values = get_covariate(table, covariate)
        except ValueError as e:
            cov_error = str(e)

    columns = {}
    failed = {}
    for spec in registry:
        if spec.uses_covariate and cov_error is not None:
            logger.warning("Skipping %s: %s", spec.name, cov_error)
            failed[spec.name] = cov_error
            continue
        try:
            columns[spec.name] = spec.run(table, cov_values)
        except MethodUnavailableError as e:
            logger.warning("Skipping %s: %s", spec.name, e)
            failed[spec.name] = str(e)
        except Exception as e:
            logger.warning("Error in %s: %s", spec.name, e)
            failed[spec.name] = f"{type(e).__name__}: {e}"
        else:
            logger.debug("%s: %d features adjusted", spec.name, len(table))

    adjusted = pd.DataFrame(columns, index=table.index)
    adjusted.attrs['failed'] = failed
    adjusted.attrs['covariate'] = covariate
    return adjusted


def default_registry() -> MethodRegistry:
    """
    The standard benchmarking panel.

    Python-backed methods come first; R-backed methods follow and are
    skipped by :func:`apply_methods` when rpy2 or the R package is missing.
    """
    from . import baseline, covariate, r_methods

    return MethodRegistry([
        MethodSpec(
            'unadjusted', baseline.unadjusted,
            description='Raw p-values'
        ),
        MethodSpec(
            'bonf', baseline.bonferroni,
            description='Bonferroni family-wise error control'
        ),
        MethodSpec(
            'bh', baseline.benjamini_hochberg,
            description='Benjamini-Hochberg step-up'
        ),
        MethodSpec(
            'tsbh', baseline.two_stage_bh, params={'alpha': 0.1},
            description='Two-stage adaptive Benjamini-Hochberg'
        ),
        MethodSpec(
            'qvalue', baseline.storey_qvalue, params={'lambda_val': 0.5},
            description="Storey's q-value"
        ),
        MethodSpec(
            'bl', covariate.boca_leek, params={'lambda_val': 0.8, 'n_knots': 4, 'degree': 3},
            uses_covariate=True,
            description='Boca-Leek covariate-adjusted pi0 times BH'
        ),
        MethodSpec(
            'lfdr', covariate.binned_lfdr,
            params={'n_bins': 20, 'min_bin_size': 200, 'null': 'theoretical', 'deg': 7, 'hist_bins': 30},
            uses_covariate=True,
            description='Local fdr within covariate bins'
        ),
        MethodSpec(
            'ihw', r_methods.ihw, params={'alpha': 0.1, 'nbins': 'auto'},
            uses_covariate=True, backend='r',
            description='Independent hypothesis weighting (R IHW)'
        ),
        MethodSpec(
            'ashq', r_methods.ashq, params={'mixcompdist': 'uniform'},
            requires=('pvalue', 'effect_size', 'se'), backend='r',
            description='Adaptive shrinkage q-values (R ashr)'
        ),
        MethodSpec(
            'fdrreg-t', r_methods.fdrreg, params={'nulltype': 'theoretical', 'n_knots': 4, 'degree': 3},
            uses_covariate=True, backend='r',
            description='FDR regression, theoretical null (R FDRreg)'
        ),
        MethodSpec(
            'fdrreg-e', r_methods.fdrreg, params={'nulltype': 'empirical', 'n_knots': 4, 'degree': 3},
            uses_covariate=True, backend='r',
            description='FDR regression, empirical null (R FDRreg)'
        ),
        MethodSpec(
            'adapt-glm', r_methods.adapt_glm, params={'dfs': [2, 3, 4]},
            uses_covariate=True, backend='r',
            description='AdaPT with spline GLMs (R adaptMT)'
        ),
    ])


def build_registry(
    methods: Iterable[str],
    method_params: Optional[Dict[str, Dict[str, Any]]] = None
) -> MethodRegistry:
    """Subset of the default panel with per-method parameter overrides."""
    registry = default_registry().subset(methods)
    for name, params in (method_params or {}).items():
        if name in registry:
            registry = registry.with_params(name, **params)
        else:
            logger.warning("Parameters given for method %s which is not selected", name)
    return registry
