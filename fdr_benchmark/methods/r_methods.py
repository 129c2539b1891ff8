"""
R-backed FDR methods, called through rpy2.

IHW, ashr, FDRreg and adaptMT only exist as R packages, as do the MAST
and scDD single-cell differential tests. Each adapter pushes the inputs
into the R global environment, evaluates one call and pulls the results
back. rpy2 and the R packages are optional: without them the adapters
raise MethodUnavailableError and the harness skips the method.
"""

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

from .baseline import table_zscores
from .covariate import spline_basis
from .registry import MethodUnavailableError

logger = logging.getLogger(__name__)


def _robjects():
    try:
        import rpy2.robjects as ro
    except ImportError as e:
        raise MethodUnavailableError(
            "rpy2 is required for R-backed methods (pip install 'fdr-benchmark[r]')"
        ) from e
    return ro


def _require(package: str):
    """rpy2.robjects with ``package`` attached."""
    ro = _robjects()
    from rpy2.robjects.packages import isinstalled

    if not isinstalled(package):
        raise MethodUnavailableError(f"R package '{package}' is not installed")
    ro.r(f'suppressPackageStartupMessages(library({package}))')
    logger.debug("Attached R package %s", package)
    return ro


def _float_vector(ro, values: np.ndarray):
    return ro.FloatVector(np.asarray(values, dtype=float).tolist())


def _matrix(ro, values: np.ndarray):
    values = np.asarray(values, dtype=float)
    return ro.r.matrix(
        _float_vector(ro, values.ravel(order='F')),
        nrow=values.shape[0],
        ncol=values.shape[1]
    )


def _to_numpy(result) -> np.ndarray:
    return np.array(list(result), dtype=float)


def ihw(
    table: pd.DataFrame,
    covariate: np.ndarray,
    alpha: float = 0.1,
    nbins: Union[int, str] = 'auto'
) -> np.ndarray:
    """
    Independent hypothesis weighting (IHW).

    The weights are learned for the nominal level ``alpha``; adjusted
    p-values are calibrated for thresholds at or near it.
    """
    ro = _require('IHW')
    ro.globalenv['pvals'] = _float_vector(ro, table['pvalue'])
    ro.globalenv['covariate'] = _float_vector(ro, covariate)
    ro.globalenv['alpha'] = alpha
    ro.globalenv['nbins'] = ro.StrVector([nbins]) if isinstance(nbins, str) else ro.IntVector([nbins])

    result = ro.r('IHW::adj_pvalues(IHW::ihw(pvals, covariate, alpha = alpha, nbins = nbins))')
    return _to_numpy(result)


def ashq(table: pd.DataFrame, mixcompdist: str = 'uniform') -> np.ndarray:
    """Adaptive shrinkage (ASH) q-values from effect sizes and standard errors."""
    se = table['se'].to_numpy(dtype=float)
    if np.isnan(se).any() or (se <= 0).any():
        raise ValueError("ashq needs positive, non-missing standard errors")

    ro = _require('ashr')
    ro.globalenv['betahat'] = _float_vector(ro, table['effect_size'])
    ro.globalenv['sebetahat'] = _float_vector(ro, se)
    ro.globalenv['mixcompdist'] = mixcompdist

    result = ro.r('ashr::get_qvalue(ashr::ash(betahat, sebetahat, mixcompdist = mixcompdist))')
    return _to_numpy(result)


def fdrreg(
    table: pd.DataFrame,
    covariate: np.ndarray,
    nulltype: str = 'theoretical',
    n_knots: int = 4,
    degree: int = 3
) -> np.ndarray:
    """
    FDR regression (Scott et al.) on z-scores.

    The prior non-null probability depends on a spline basis of the
    covariate. Returns the global FDR values reported by FDRreg.
    """
    if nulltype not in ('theoretical', 'empirical'):
        raise ValueError(f"Unknown null type: {nulltype}")

    features = spline_basis(covariate, n_knots=n_knots, degree=degree)
    if features.shape[1] == 0:
        raise ValueError("fdrreg needs a non-constant covariate")

    ro = _require('FDRreg')
    ro.globalenv['z'] = _float_vector(ro, table_zscores(table))
    ro.globalenv['features'] = _matrix(ro, features)
    ro.globalenv['nulltype'] = nulltype

    result = ro.r(
        'FDRreg::FDRreg(z, features = features, nulltype = nulltype, '
        'control = list(lambda = 0.01))$FDR'
    )
    return _to_numpy(result)


def adapt_glm(
    table: pd.DataFrame,
    covariate: np.ndarray,
    dfs: Sequence[int] = (2, 3, 4)
) -> np.ndarray:
    """AdaPT q-values with natural-spline GLMs over ``dfs`` candidate models."""
    ro = _require('adaptMT')
    formulas = [f'splines::ns(x, df = {int(df)})' for df in dfs]

    ro.globalenv['pvals'] = _float_vector(ro, table['pvalue'])
    ro.globalenv['x'] = ro.DataFrame({'x': _float_vector(ro, covariate)})
    ro.globalenv['formulas'] = ro.StrVector(formulas)

    result = ro.r(
        'adaptMT::adapt_glm(x = x, pvals = pvals, pi_formulas = formulas, '
        'mu_formulas = formulas, verbose = list(print = FALSE, fit = FALSE, ms = FALSE))$qvals'
    )
    return _to_numpy(result)


def _expression_matrix(ro, values: np.ndarray, is_trt: np.ndarray) -> None:
    ro.globalenv['expr'] = _matrix(ro, values)
    ro.globalenv['is_trt'] = ro.BoolVector(np.asarray(is_trt, dtype=bool).tolist())
    ro.r(
        'rownames(expr) <- paste0("f", seq_len(nrow(expr))); '
        'colnames(expr) <- paste0("s", seq_len(ncol(expr)))'
    )


def mast_test(logged: np.ndarray, is_trt: np.ndarray):
    """
    MAST hurdle model likelihood-ratio test for the group effect.

    Parameters
    ----------
    logged : np.ndarray
        log2(normalized + 1) expression, features x samples
    is_trt : np.ndarray
        True for treatment samples

    Returns
    -------
    statistic, p_values : np.ndarray
        Hurdle LR statistic (chi-square, unsigned) and its p-value
    """
    ro = _require('MAST')
    _expression_matrix(ro, logged, is_trt)
    result = ro.r('''
        local({
            cdata <- data.frame(
                wellKey = colnames(expr),
                condition = factor(ifelse(is_trt, "treatment", "reference"),
                                   levels = c("reference", "treatment"))
            )
            sca <- MAST::FromMatrix(expr, cData = cdata,
                                    fData = data.frame(primerid = rownames(expr)),
                                    check_sanity = FALSE)
            lrt <- MAST::lrTest(MAST::zlm(~condition, sca), "condition")
            c(lrt[rownames(expr), "hurdle", "lambda"], lrt[rownames(expr), "hurdle", "Pr(>Chisq)"])
        })
    ''')
    statistic, p_values = _to_numpy(result).reshape(2, -1)
    return statistic, p_values


def scdd_test(normalized: np.ndarray, is_trt: np.ndarray) -> np.ndarray:
    """
    scDD test for differential distributions of the non-zero values.

    ``normalized`` is on the normalized (not log) scale, features x
    samples. Returns one p-value per feature.
    """
    ro = _require('scDD')
    _require('SingleCellExperiment')
    _expression_matrix(ro, normalized, is_trt)
    result = ro.r('''
        local({
            sce <- SingleCellExperiment::SingleCellExperiment(
                assays = list(normcounts = expr),
                colData = data.frame(condition = ifelse(is_trt, 2L, 1L), row.names = colnames(expr))
            )
            prior <- list(alpha = 0.01, mu0 = 0, s0 = 0.01, a0 = 0.01, b0 = 0.01)
            fit <- scDD::scDD(sce, prior_param = prior, testZeroes = FALSE,
                              categorize = FALSE, condition = "condition")
            res <- scDD::results(fit)
            res$nonzero.pvalue[match(rownames(expr), res$gene)]
        })
    ''')
    return _to_numpy(result)
