"""
Unit tests for methods/registry.py: the method panel and apply_methods.
"""

import sys

import numpy as np
import pandas as pd
import pytest

from fdr_benchmark.config import DEFAULT_METHODS, PYTHON_METHODS
from fdr_benchmark.data import simulate_results_table
from fdr_benchmark.methods import (
    MethodRegistry,
    MethodSpec,
    MethodUnavailableError,
    apply_methods,
    build_registry,
    default_registry,
    prepare_table,
)


def _table(n_tests=2000, seed=0):
    return simulate_results_table(n_tests=n_tests, random_state=seed)


def _unavailable(table):
    raise MethodUnavailableError("backend not installed")


def _broken(table):
    raise RuntimeError("boom")


def _constant(table, value=0.5):
    return np.full(len(table), value)


class TestMethodRegistry:

    def test_default_panel(self):
        registry = default_registry()
        assert registry.names() == DEFAULT_METHODS
        assert len(registry) == 12
        assert 'bl' in registry
        assert registry.get('bl').uses_covariate
        assert not registry.get('bh').uses_covariate
        assert registry.get('ihw').backend == 'r'

    def test_duplicate_registration_raises(self):
        registry = MethodRegistry([MethodSpec('const', _constant)])
        with pytest.raises(ValueError):
            registry.register(MethodSpec('const', _constant))

    def test_unknown_method_raises(self):
        with pytest.raises(KeyError):
            default_registry().get('not-a-method')

    def test_subset_keeps_order_given(self):
        registry = default_registry().subset(['qvalue', 'bh'])
        assert registry.names() == ['qvalue', 'bh']

    def test_with_params_returns_copy(self):
        registry = default_registry()
        updated = registry.with_params('tsbh', alpha=0.05)
        assert updated.get('tsbh').params['alpha'] == 0.05
        assert registry.get('tsbh').params['alpha'] == 0.1
        assert updated.names() == registry.names()

    def test_with_params_unknown_raises(self):
        with pytest.raises(ValueError):
            default_registry().with_params('bh', alpha=0.05)

    def test_build_registry(self):
        registry = build_registry(['bh', 'bl'], {'bl': {'lambda_val': 0.7}, 'ihw': {'nbins': 5}})
        assert registry.names() == ['bh', 'bl']
        assert registry.get('bl').params['lambda_val'] == 0.7

    def test_describe(self):
        described = default_registry().describe()
        assert list(described['method']) == DEFAULT_METHODS
        assert set(described['backend']) == {'python', 'r'}


class TestMethodSpec:

    def test_output_is_clipped(self):
        spec = MethodSpec('const', _constant, params={'value': 1.5})
        out = spec.run(_table(10))
        assert np.all(out == 1.0)

    def test_wrong_length_raises(self):
        spec = MethodSpec('short', lambda table: np.zeros(3))
        with pytest.raises(ValueError):
            spec.run(_table(10))

    def test_missing_required_column_raises(self):
        spec = MethodSpec('needs_se', _constant, requires=('pvalue', 'se'))
        with pytest.raises(ValueError):
            spec.run(_table(10).drop(columns='se'))


class TestPrepareTable:

    def test_requires_pvalue(self):
        with pytest.raises(ValueError):
            prepare_table(pd.DataFrame({'p': [0.1]}))

    def test_drops_missing_pvalues(self):
        table = _table(10)
        table.iloc[3, table.columns.get_loc('pvalue')] = np.nan
        prepared = prepare_table(table)
        assert len(prepared) == 9
        assert table.index[3] not in prepared.index

    def test_rejects_out_of_range(self):
        table = _table(10)
        table.iloc[0, table.columns.get_loc('pvalue')] = 1.5
        with pytest.raises(ValueError):
            prepare_table(table)


class TestApplyMethods:

    def test_python_panel(self):
        table = _table()
        adjusted = apply_methods(table, build_registry(PYTHON_METHODS))

        assert list(adjusted.columns) == PYTHON_METHODS
        assert adjusted.index.equals(table.index)
        assert adjusted.attrs['failed'] == {}
        assert adjusted.attrs['covariate'] == 'ind_covariate'
        assert ((adjusted >= 0) & (adjusted <= 1)).all().all()

    def test_missing_pvalues_are_dropped(self):
        table = _table(500)
        table.iloc[:5, table.columns.get_loc('pvalue')] = np.nan
        adjusted = apply_methods(table, build_registry(['bh', 'qvalue']))
        assert len(adjusted) == 495

    def test_missing_covariate_skips_covariate_methods(self):
        table = _table(500)
        adjusted = apply_methods(table, build_registry(['bh', 'bl']), covariate='no_such_column')
        assert list(adjusted.columns) == ['bh']
        assert 'bl' in adjusted.attrs['failed']

    def test_unavailable_and_failing_methods_are_recorded(self):
        registry = MethodRegistry([
            MethodSpec('const', _constant),
            MethodSpec('missing_backend', _unavailable, backend='r'),
            MethodSpec('broken', _broken),
        ])
        adjusted = apply_methods(_table(50), registry)

        assert list(adjusted.columns) == ['const']
        assert adjusted.attrs['failed']['missing_backend'] == 'backend not installed'
        assert 'RuntimeError' in adjusted.attrs['failed']['broken']

    def test_input_table_is_not_modified(self, monkeypatch):
        monkeypatch.setitem(sys.modules, 'rpy2', None)
        monkeypatch.setitem(sys.modules, 'rpy2.robjects', None)
        table = _table(1000)
        table.iloc[:5, table.columns.get_loc('pvalue')] = np.nan
        before = table.copy()

        adjusted = apply_methods(table, default_registry())
        assert len(adjusted) == 995
        pd.testing.assert_frame_equal(table, before)

    def test_covariate_free_methods_ignore_covariate(self):
        table = _table(1000)
        registry = build_registry(['bh', 'qvalue'])
        a = apply_methods(table, registry, covariate='ind_covariate')
        b = apply_methods(table, registry, covariate='uninf_covariate')
        np.testing.assert_array_equal(a.to_numpy(), b.to_numpy())
        assert b.attrs['covariate'] == 'uninf_covariate'
