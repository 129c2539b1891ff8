"""
Unit tests for methods/r_methods.py: input checks and behaviour without rpy2.

The R packages themselves are not needed; every test here runs with
rpy2 hidden from the import system.
"""

import sys

import numpy as np
import pytest

from fdr_benchmark.config import PYTHON_METHODS
from fdr_benchmark.data import simulate_results_table
from fdr_benchmark.methods import MethodUnavailableError, apply_methods, default_registry, r_methods

R_METHODS = ['ihw', 'ashq', 'fdrreg-t', 'fdrreg-e', 'adapt-glm']


@pytest.fixture
def no_rpy2(monkeypatch):
    monkeypatch.setitem(sys.modules, 'rpy2', None)
    monkeypatch.setitem(sys.modules, 'rpy2.robjects', None)


def _table(n_tests=1000, seed=0):
    return simulate_results_table(n_tests=n_tests, random_state=seed)


class TestWithoutRpy2:

    def test_ihw_unavailable(self, no_rpy2):
        table = _table()
        with pytest.raises(MethodUnavailableError, match='rpy2'):
            r_methods.ihw(table, table['ind_covariate'].to_numpy())

    def test_ashq_unavailable(self, no_rpy2):
        with pytest.raises(MethodUnavailableError):
            r_methods.ashq(_table())

    def test_fdrreg_unavailable(self, no_rpy2):
        table = _table()
        with pytest.raises(MethodUnavailableError):
            r_methods.fdrreg(table, table['ind_covariate'].to_numpy())

    def test_adapt_glm_unavailable(self, no_rpy2):
        table = _table()
        with pytest.raises(MethodUnavailableError):
            r_methods.adapt_glm(table, table['ind_covariate'].to_numpy())

    def test_single_cell_tests_unavailable(self, no_rpy2):
        values = np.ones((5, 4))
        is_trt = np.array([False, False, True, True])
        with pytest.raises(MethodUnavailableError):
            r_methods.mast_test(values, is_trt)
        with pytest.raises(MethodUnavailableError):
            r_methods.scdd_test(values, is_trt)

    def test_default_panel_degrades_to_python(self, no_rpy2):
        table = _table(2000)
        adjusted = apply_methods(table, default_registry())

        assert list(adjusted.columns) == PYTHON_METHODS
        assert sorted(adjusted.attrs['failed']) == sorted(R_METHODS)
        assert 'rpy2' in adjusted.attrs['failed']['ihw']

    def test_ashq_missing_columns_reported(self, no_rpy2):
        table = _table().drop(columns=['effect_size', 'se'])
        adjusted = apply_methods(table, default_registry())

        assert 'bh' in adjusted.columns
        assert 'ashq' not in adjusted.columns
        assert 'effect_size' in adjusted.attrs['failed']['ashq']
        assert 'se' in adjusted.attrs['failed']['ashq']


class TestInputChecks:

    @pytest.mark.parametrize('bad', [0.0, -1.0, np.nan])
    def test_ashq_rejects_bad_standard_errors(self, bad):
        table = _table(100)
        table.iloc[3, table.columns.get_loc('se')] = bad
        with pytest.raises(ValueError, match='standard errors'):
            r_methods.ashq(table)

    def test_fdrreg_constant_covariate(self):
        table = _table(100)
        with pytest.raises(ValueError, match='non-constant'):
            r_methods.fdrreg(table, np.ones(len(table)))

    def test_fdrreg_unknown_null_type(self):
        table = _table(100)
        with pytest.raises(ValueError, match='null type'):
            r_methods.fdrreg(table, table['ind_covariate'].to_numpy(), nulltype='mixture')
