"""
Unit tests for data/synthetic.py.
"""

import numpy as np
import pandas as pd
import pytest

from fdr_benchmark.data import (
    generate_effects,
    generate_pvalues,
    pi0_function,
    simulate_results_table,
)

EXPECTED_COLUMNS = [
    'pvalue', 'effect_size', 'se', 'test_statistic', 'ind_covariate',
    'uninf_covariate', 'is_null', 'true_effect', 'true_pi0',
]


class TestPi0Function:

    def test_cosine(self):
        pi0 = pi0_function('cosine', 0.5, 0.9)
        np.testing.assert_allclose(pi0(np.array([0.0, 0.5, 1.0])), [0.9, 0.5, 0.9])

    def test_step(self):
        pi0 = pi0_function('step', 0.5, 0.8)
        np.testing.assert_allclose(pi0(np.array([0.1, 0.3, 0.6, 0.9, 1.0])), [0.8, 0.7, 0.6, 0.5, 0.5])

    def test_cubic_decreasing(self):
        values = pi0_function('cubic', 0.5, 0.9)(np.linspace(0, 1, 11))
        assert values[0] == pytest.approx(0.9)
        assert values[-1] == pytest.approx(0.5)
        assert np.all(np.diff(values) <= 0)

    def test_constant(self):
        values = pi0_function('constant', 0.5, 0.9)(np.linspace(0, 1, 5))
        assert np.all(values == 0.9)

    def test_invalid_range(self):
        with pytest.raises(ValueError):
            pi0_function('cosine', 0.9, 0.5)

    def test_unknown_shape(self):
        with pytest.raises(ValueError):
            pi0_function('zigzag')


class TestEffectsAndPvalues:

    def test_bimodal_has_both_signs(self):
        effects = generate_effects(1000, 'bimodal', 2.5, np.random.default_rng(0))
        assert (effects > 0).sum() > 300
        assert (effects < 0).sum() > 300

    def test_unimodal_centre(self):
        effects = generate_effects(5000, 'unimodal', 2.5, np.random.default_rng(0))
        assert effects.mean() == pytest.approx(2.5, abs=0.1)

    def test_unknown_distribution(self):
        with pytest.raises(ValueError):
            generate_effects(10, 'flat')

    def test_pvalues_from_labels(self):
        is_null = np.zeros(2000, dtype=bool)
        is_null[:1000] = True
        p = generate_pvalues(is_null, 'strong', np.random.default_rng(0))
        assert np.median(p[~is_null]) < 0.01
        assert np.median(p[is_null]) == pytest.approx(0.5, abs=0.06)


class TestSimulateResultsTable:

    def test_columns_and_index(self):
        table = simulate_results_table(n_tests=1000, random_state=0)
        assert list(table.columns) == EXPECTED_COLUMNS
        assert table.index.name == 'feature'
        assert table.index[0] == 'h000'
        assert table.index.is_unique
        assert table['pvalue'].between(0, 1).all()
        assert (table.loc[table['is_null'], 'true_effect'] == 0).all()

    def test_reproducible(self):
        a = simulate_results_table(n_tests=500, random_state=7)
        b = simulate_results_table(n_tests=500, random_state=7)
        c = simulate_results_table(n_tests=500, random_state=8)
        pd.testing.assert_frame_equal(a, b)
        assert not np.allclose(a['pvalue'], c['pvalue'])

    def test_global_null_is_uniform(self):
        table = simulate_results_table(n_tests=20000, pi0_min=1.0, pi0_max=1.0, random_state=0)
        assert table['is_null'].all()
        assert table['pvalue'].mean() == pytest.approx(0.5, abs=0.02)

    def test_covariate_is_informative(self):
        table = simulate_results_table(n_tests=20000, pi0_shape='cosine', random_state=0)
        x = table['ind_covariate']
        middle = table.loc[(x > 0.4) & (x < 0.6), 'is_null'].mean()
        edges = table.loc[(x < 0.1) | (x > 0.9), 'is_null'].mean()
        assert middle < edges - 0.2

    def test_chisq_statistic_has_no_effect_size(self):
        table = simulate_results_table(n_tests=500, test_statistic='chisq', df=4, random_state=0)
        assert table['effect_size'].isna().all()
        assert table['se'].isna().all()
        assert (table['test_statistic'] >= 0).all()
        assert table['pvalue'].between(0, 1).all()

    def test_t_statistic(self):
        table = simulate_results_table(n_tests=500, test_statistic='t', df=5, random_state=0)
        assert table['pvalue'].between(0, 1).all()
        assert np.isfinite(table['test_statistic']).all()

    def test_beta_pvalues(self):
        table = simulate_results_table(n_tests=500, test_statistic='beta', random_state=0)
        assert table['test_statistic'].isna().all()
        assert table['pvalue'].between(0, 1).all()

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            simulate_results_table(n_tests=0)
        with pytest.raises(ValueError):
            simulate_results_table(n_tests=10, test_statistic='f')
