"""
Sequence weighting after Henikoff & Henikoff (1994).

The weight of sequence i is

    w_i = 1/L * sum_{x=1}^{L} 1 / (k_x * n_{x,i})

where L is the number of columns, k_x the number of distinct symbols in
column x (gaps included) and n_{x,i} the number of sequences sharing the
symbol of sequence i at column x. Sequences from over-represented clusters
are down-weighted; the weights of an alignment always sum to 1.
"""

import logging

import numpy as np

from ..logging import log_section
from .models import AlignmentModel

logger = logging.getLogger(__name__)


def henikoff_weights(model: AlignmentModel) -> np.ndarray:
    """Compute the weight of every sequence of the alignment.

    Args:
        model: Summarized alignment

    Returns:
        Array of ``nseq`` strictly positive weights, in row order
    """
    columns = np.arange(model.ncol)
    # shared[i, x] = number of rows carrying the symbol of row i at column x
    shared = model.counts[columns[np.newaxis, :], model.codes]
    k = model.type_counts[np.newaxis, :]
    weights = (1.0 / (k * shared)).mean(axis=1)

    if logger.isEnabledFor(logging.DEBUG):
        rows = (f"{weight:10.6g}  {name}" for name, weight in zip(model.names, weights))
        log_section(logger, "Seq weights", rows)

    return weights


def sequence_weight(model: AlignmentModel, i: int) -> float:
    """Weight of the single sequence at row ``i``."""
    columns = np.arange(model.ncol)
    shared = model.counts[columns, model.codes[i]]
    return float((1.0 / (model.type_counts * shared)).mean())


def weighted_probabilities(model: AlignmentModel, weights: np.ndarray) -> np.ndarray:
    """Weighted symbol probabilities per column.

    ``p[x, a]`` is the sum of the weights of the sequences carrying alphabet
    symbol ``a`` at column ``x``.

    Returns:
        ``ncol x len(alphabet)`` array
    """
    codes = model.codes
    proba = np.zeros((model.ncol, len(model.alphabet)))
    for a in range(len(model.alphabet)):
        proba[:, a] = (codes == a).T @ weights
    return proba
