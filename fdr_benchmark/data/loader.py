"""
Data loading utilities for results tables and case-study count data.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
import requests

logger = logging.getLogger(__name__)


def _separator(path: Path) -> str:
    suffixes = [s for s in path.suffixes if s not in ('.gz', '.bz2', '.zip', '.xz')]
    if suffixes and suffixes[-1] == '.csv':
        return ','
    if suffixes and suffixes[-1] in ('.tsv', '.txt', '.tab'):
        return '\t'
    raise ValueError(f"Unknown table format: {path.name}")


def read_table(path: Union[str, Path], index_col: Optional[int] = 0) -> pd.DataFrame:
    """Read a CSV/TSV file (optionally compressed), separator chosen by suffix."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    return pd.read_csv(path, sep=_separator(path), index_col=index_col)


def read_results_table(
    path: Union[str, Path],
    columns: Optional[Dict[str, str]] = None
) -> pd.DataFrame:
    """
    Load a precomputed results table.

    Parameters
    ----------
    path : str or Path
        CSV/TSV file, first column = feature id
    columns : dict, optional
        Mapping of file column names to standard names, e.g.
        {'P.Value': 'pvalue', 'logFC': 'effect_size', 'AveExpr': 'ind_covariate'}

    Returns
    -------
    table : pd.DataFrame
        Results table with standardized column names
    """
    table = read_table(path)
    if columns:
        table = table.rename(columns=columns)
    if 'pvalue' not in table.columns:
        raise ValueError(f"{path}: no 'pvalue' column (columns: {list(table.columns)})")
    if not table.index.is_unique:
        raise ValueError(f"{path}: feature ids are not unique")
    return table


def read_count_matrix(path: Union[str, Path]) -> pd.DataFrame:
    """Load a features x samples count matrix (first column = feature id)."""
    counts = read_table(path)
    non_numeric = counts.select_dtypes(exclude='number').columns.tolist()
    if non_numeric:
        raise ValueError(f"{path}: non-numeric count columns {non_numeric}")
    if (counts < 0).any().any():
        raise ValueError(f"{path}: negative counts")
    return counts


def read_sample_table(path: Union[str, Path]) -> pd.DataFrame:
    """Load sample annotations (first column = sample id)."""
    return read_table(path)


def fetch_dataset(
    url: str,
    dest: Union[str, Path],
    overwrite: bool = False,
    timeout: float = 60.0,
    chunk_size: int = 1 << 20
) -> Path:
    """
    Download ``url`` to ``dest`` unless the file already exists.

    The download goes to a '.part' file that is renamed on success, so an
    interrupted transfer is never mistaken for a finished one.
    """
    dest = Path(dest)
    if dest.exists() and not overwrite:
        logger.info("%s exists, skipping download", dest)
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + '.part')

    logger.info("Downloading %s -> %s", url, dest)
    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        with open(partial, 'wb') as f:
            for chunk in response.iter_content(chunk_size=chunk_size):
                f.write(chunk)

    partial.replace(dest)
    return dest
