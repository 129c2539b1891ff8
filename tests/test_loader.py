"""
Unit tests for data/loader.py.
"""

import pandas as pd
import pytest

from fdr_benchmark.data import (
    fetch_dataset,
    read_count_matrix,
    read_results_table,
    read_sample_table,
)
from fdr_benchmark.data import loader


class _FakeResponse:

    def __init__(self, chunks, status_error=None):
        self.chunks = chunks
        self.status_error = status_error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=1):
        return iter(self.chunks)


def _limma_table():
    return pd.DataFrame(
        {'logFC': [1.2, -0.3], 'AveExpr': [5.0, 7.5], 'P.Value': [0.001, 0.4]},
        index=pd.Index(['g1', 'g2'], name='gene'),
    )


class TestReadResultsTable:

    def test_csv_with_rename(self, tmp_path):
        path = tmp_path / 'results.csv'
        _limma_table().to_csv(path)
        table = read_results_table(path, columns={'P.Value': 'pvalue', 'logFC': 'effect_size'})
        assert list(table.columns) == ['effect_size', 'AveExpr', 'pvalue']
        assert table.index.tolist() == ['g1', 'g2']

    def test_compressed_tsv(self, tmp_path):
        path = tmp_path / 'results.tsv.gz'
        _limma_table().rename(columns={'P.Value': 'pvalue'}).to_csv(path, sep='\t')
        table = read_results_table(path)
        assert table.loc['g1', 'pvalue'] == pytest.approx(0.001)

    def test_missing_pvalue_raises(self, tmp_path):
        path = tmp_path / 'results.csv'
        _limma_table().to_csv(path)
        with pytest.raises(ValueError):
            read_results_table(path)

    def test_duplicate_ids_raise(self, tmp_path):
        path = tmp_path / 'results.csv'
        pd.DataFrame({'pvalue': [0.1, 0.2]}, index=['g1', 'g1']).to_csv(path)
        with pytest.raises(ValueError):
            read_results_table(path)

    def test_unknown_suffix_raises(self, tmp_path):
        path = tmp_path / 'results.xlsx'
        path.write_text('')
        with pytest.raises(ValueError):
            read_results_table(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_results_table(tmp_path / 'absent.csv')


class TestCountsAndSamples:

    def test_read_count_matrix(self, tmp_path):
        path = tmp_path / 'counts.tsv'
        pd.DataFrame({'s1': [0, 4], 's2': [3, 1]}, index=['g1', 'g2']).to_csv(path, sep='\t')
        counts = read_count_matrix(path)
        assert counts.shape == (2, 2)
        assert counts.loc['g1', 's2'] == 3

    def test_negative_counts_raise(self, tmp_path):
        path = tmp_path / 'counts.csv'
        pd.DataFrame({'s1': [0, -4]}, index=['g1', 'g2']).to_csv(path)
        with pytest.raises(ValueError):
            read_count_matrix(path)

    def test_non_numeric_counts_raise(self, tmp_path):
        path = tmp_path / 'counts.csv'
        pd.DataFrame({'s1': [0, 4], 'note': ['a', 'b']}, index=['g1', 'g2']).to_csv(path)
        with pytest.raises(ValueError):
            read_count_matrix(path)

    def test_read_sample_table(self, tmp_path):
        path = tmp_path / 'samples.txt'
        pd.DataFrame({'group': ['ctrl', 'trt']}, index=['s1', 's2']).to_csv(path, sep='\t')
        samples = read_sample_table(path)
        assert samples.loc['s2', 'group'] == 'trt'


class TestFetchDataset:

    def test_existing_file_is_not_downloaded(self, tmp_path, monkeypatch):
        dest = tmp_path / 'counts.tsv'
        dest.write_text('cached')

        def fail(*args, **kwargs):
            raise AssertionError("unexpected download")

        monkeypatch.setattr(loader.requests, 'get', fail)
        assert fetch_dataset('https://example.org/counts.tsv', dest) == dest
        assert dest.read_text() == 'cached'

    def test_download(self, tmp_path, monkeypatch):
        calls = []

        def fake_get(url, stream, timeout):
            calls.append(url)
            return _FakeResponse([b'gene\ts1\n', b'g1\t3\n'])

        monkeypatch.setattr(loader.requests, 'get', fake_get)
        dest = tmp_path / 'data' / 'counts.tsv'
        fetch_dataset('https://example.org/counts.tsv', dest)

        assert calls == ['https://example.org/counts.tsv']
        assert dest.read_bytes() == b'gene\ts1\ng1\t3\n'
        assert not (tmp_path / 'data' / 'counts.tsv.part').exists()

    def test_http_error_leaves_no_file(self, tmp_path, monkeypatch):
        def fake_get(url, stream, timeout):
            return _FakeResponse([], status_error=loader.requests.HTTPError("404"))

        monkeypatch.setattr(loader.requests, 'get', fake_get)
        dest = tmp_path / 'counts.tsv'
        with pytest.raises(loader.requests.HTTPError):
            fetch_dataset('https://example.org/missing.tsv', dest)
        assert not dest.exists()
