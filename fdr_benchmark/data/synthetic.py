"""
Synthetic results tables for FDR benchmarking.

Each simulated feature has an informative covariate x ~ U(0, 1) that sets
its prior null probability π₀(x), an effect size (zero under the null) and
a test statistic with its p-value. An independent uniform covariate is
added as an uninformative control.
"""

import numpy as np
import pandas as pd
from scipy import stats
from typing import Callable, Literal, Optional

PI0_SHAPES = ('constant', 'step', 'cosine', 'sine', 'cubic')
EFFECT_DISTRIBUTIONS = ('unimodal', 'bimodal', 'spiky')
TEST_STATISTICS = ('z', 't', 'chisq', 'beta')


def pi0_function(
    shape: Literal['constant', 'step', 'cosine', 'sine', 'cubic'] = 'cosine',
    pi0_min: float = 0.5,
    pi0_max: float = 0.95
) -> Callable[[np.ndarray], np.ndarray]:
    """
    Prior null probability as a function of the covariate on [0, 1].

    Parameters
    ----------
    shape : str, default='cosine'
        - 'constant': π₀ = pi0_max everywhere (uninformative covariate)
        - 'step': four equal steps from pi0_max down to pi0_min
        - 'cosine': pi0_max at both ends, pi0_min at x = 0.5
        - 'sine': one period, pi0_min at x = 0.75
        - 'cubic': decreasing from pi0_max, slowly then sharply
    pi0_min, pi0_max : float
        Range of π₀

    Returns
    -------
    pi0 : callable
        Maps covariate values to π₀
    """
    if not 0 <= pi0_min <= pi0_max <= 1:
        raise ValueError(f"Need 0 <= pi0_min <= pi0_max <= 1, got {pi0_min}, {pi0_max}")

    span = pi0_max - pi0_min

    if shape == 'constant':
        return lambda x: np.full(np.shape(x), pi0_max, dtype=float)
    if shape == 'step':
        levels = np.linspace(pi0_max, pi0_min, 4)
        return lambda x: levels[np.minimum((np.asarray(x) * 4).astype(int), 3)]
    if shape == 'cosine':
        return lambda x: pi0_min + span * (1 + np.cos(2 * np.pi * np.asarray(x))) / 2
    if shape == 'sine':
        return lambda x: pi0_min + span * (1 + np.sin(2 * np.pi * np.asarray(x))) / 2
    if shape == 'cubic':
        return lambda x: pi0_max - span * np.asarray(x) ** 3

    raise ValueError(f"Unknown pi0 shape: {shape}")


def generate_effects(
    n: int,
    distribution: Literal['unimodal', 'bimodal', 'spiky'] = 'unimodal',
    scale: float = 2.5,
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Draw non-null effect sizes.

    - 'unimodal': N(scale, 1)
    - 'bimodal': ±N(scale, 0.5), random sign
    - 'spiky': N(0, sd) with sd drawn from {scale/4, scale/2, scale, 2 scale},
      mostly small effects with a heavy tail
    """
    rng = rng or np.random.default_rng()

    if distribution == 'unimodal':
        return rng.normal(scale, 1.0, size=n)
    if distribution == 'bimodal':
        signs = rng.choice([-1.0, 1.0], size=n)
        return signs * rng.normal(scale, 0.5, size=n)
    if distribution == 'spiky':
        sds = rng.choice([scale / 4, scale / 2, scale, 2 * scale], size=n)
        return rng.normal(0.0, sds)

    raise ValueError(f"Unknown effect distribution: {distribution}")


def generate_pvalues(
    is_null: np.ndarray,
    effect_strength: Literal['weak', 'medium', 'strong'] = 'medium',
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Generate p-values directly from null/alternative labels.

    For H0: p ~ Uniform(0,1)
    For H1: p ~ Beta(a, 1) with small a (concentrated near 0)

    Parameters
    ----------
    is_null : np.ndarray, dtype=bool
        Truth, True = H0
    effect_strength : {'weak', 'medium', 'strong'}, default='medium'
        Strength of alternative signal (how close to 0)
    rng : np.random.Generator, optional

    Returns
    -------
    p_values : np.ndarray
    """
    rng = rng or np.random.default_rng()
    is_null = np.asarray(is_null, dtype=bool)

    # Beta distribution parameters for different effect strengths
    effect_params = {
        'weak': 0.5,
        'medium': 0.1,
        'strong': 0.02
    }
    if effect_strength not in effect_params:
        raise ValueError(f"Unknown effect strength: {effect_strength}")

    p_values = np.empty(len(is_null))
    p_values[is_null] = rng.uniform(0, 1, size=is_null.sum())
    p_values[~is_null] = rng.beta(effect_params[effect_strength], 1, size=(~is_null).sum())

    return np.clip(p_values, 1e-300, 1.0)


def _effect_strength_from_scale(scale: float) -> str:
    if scale < 2:
        return 'weak'
    if scale < 3:
        return 'medium'
    return 'strong'


def simulate_results_table(
    n_tests: int = 20000,
    pi0_shape: str = 'cosine',
    pi0_min: float = 0.5,
    pi0_max: float = 0.95,
    effect_distribution: str = 'unimodal',
    effect_scale: float = 2.5,
    test_statistic: Literal['z', 't', 'chisq', 'beta'] = 'z',
    df: int = 5,
    random_state: Optional[int] = 42
) -> pd.DataFrame:
    """
    Simulate one results table with known truth.

    Parameters
    ----------
    n_tests : int, default=20000
        Number of hypotheses
    pi0_shape, pi0_min, pi0_max
        Covariate-dependent null proportion, see :func:`pi0_function`
    effect_distribution, effect_scale
        Non-null effects, see :func:`generate_effects`
    test_statistic : {'z', 't', 'chisq', 'beta'}, default='z'
        - 'z': statistic = effect + N(0, 1), two-sided p-value
        - 't': non-central t with ``df`` degrees of freedom, two-sided
        - 'chisq': non-central χ² with ``df`` degrees of freedom and
          non-centrality effect², upper-tail p-value; no effect size/SE
        - 'beta': p-values drawn directly (Beta alternative); no statistic
    df : int, default=5
        Degrees of freedom for 't' and 'chisq'
    random_state : int, optional
        Seed for numpy's Generator

    Returns
    -------
    table : pd.DataFrame
        Columns: pvalue, effect_size, se, test_statistic, ind_covariate,
        uninf_covariate, is_null, true_effect, true_pi0
    """
    if n_tests < 1:
        raise ValueError("n_tests must be >= 1")
    if test_statistic not in TEST_STATISTICS:
        raise ValueError(f"Unknown test statistic: {test_statistic}")
    if test_statistic in ('t', 'chisq') and df < 1:
        raise ValueError("df must be >= 1")

    rng = np.random.default_rng(random_state)

    covariate = rng.uniform(0, 1, size=n_tests)
    uninformative = rng.uniform(0, 1, size=n_tests)
    pi0 = pi0_function(pi0_shape, pi0_min, pi0_max)(covariate)
    is_null = rng.uniform(0, 1, size=n_tests) < pi0

    true_effect = np.zeros(n_tests)
    true_effect[~is_null] = generate_effects(
        int((~is_null).sum()), effect_distribution, effect_scale, rng
    )

    se = np.ones(n_tests)
    if test_statistic == 'z':
        statistic = true_effect + rng.standard_normal(n_tests)
        p_values = 2 * stats.norm.sf(np.abs(statistic))
        effect_size = statistic.copy()
    elif test_statistic == 't':
        z = true_effect + rng.standard_normal(n_tests)
        statistic = z / np.sqrt(rng.chisquare(df, size=n_tests) / df)
        p_values = 2 * stats.t.sf(np.abs(statistic), df)
        effect_size = statistic.copy()
    elif test_statistic == 'chisq':
        nonc = np.maximum(true_effect ** 2, 1e-12)
        statistic = np.where(
            is_null,
            rng.chisquare(df, size=n_tests),
            rng.noncentral_chisquare(df, nonc)
        )
        p_values = stats.chi2.sf(statistic, df)
        effect_size = np.full(n_tests, np.nan)
        se = np.full(n_tests, np.nan)
    else:
        p_values = generate_pvalues(is_null, _effect_strength_from_scale(effect_scale), rng)
        statistic = np.full(n_tests, np.nan)
        effect_size = np.full(n_tests, np.nan)
        se = np.full(n_tests, np.nan)

    width = len(str(n_tests - 1))
    index = pd.Index([f'h{i:0{width}d}' for i in range(n_tests)], name='feature')

    return pd.DataFrame({
        'pvalue': np.clip(p_values, 0.0, 1.0),
        'effect_size': effect_size,
        'se': se,
        'test_statistic': statistic,
        'ind_covariate': covariate,
        'uninf_covariate': uninformative,
        'is_null': is_null,
        'true_effect': true_effect,
        'true_pi0': pi0,
    }, index=index)
