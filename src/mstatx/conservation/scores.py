"""
Conservation statistics for MSA columns.

Every statistic turns an AlignmentModel into one score per column, higher
meaning more conserved for the entropy based scores:

- ``wentropy``: weighted Shannon entropy combined with the gap frequency
- ``trident``: Valdar (2002) composite of entropy, residue similarity
  (from a substitution matrix) and gap frequency
- ``jensen``: Jensen-Shannon divergence between the weighted column
  distribution and the alignment background distribution

All three share the Henikoff & Henikoff sequence weights.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .matrix import SubstitutionMatrix
from .models import GAP, AlignmentModel, StatisticType
from .weights import henikoff_weights, weighted_probabilities

logger = logging.getLogger(__name__)

PSEUDO_COUNT = 1e-6

# Jensen-Shannon mixing weight ceiling; at 1 the mixture equals the column
MAX_MIXING_WEIGHT = 0.5


def entropy_lambda(model: AlignmentModel) -> float:
    """Normalizer 1 / log(min(|alphabet|, nseq)), 0 when that minimum is below 2."""
    smallest = min(len(model.alphabet), model.nseq)
    if smallest < 2:
        return 0.0
    return 1.0 / math.log(smallest)


def weighted_entropy(model: AlignmentModel, weights: np.ndarray) -> np.ndarray:
    """Normalized weighted Shannon entropy of every column.

    H(x) = -lambda * sum_a p_a log(p_a), summed over non-zero p_a, with p_a
    the total weight of the sequences carrying symbol a at column x.
    """
    proba = weighted_probabilities(model, weights)
    plogp = np.zeros_like(proba)
    present = proba > 0.0
    plogp[present] = proba[present] * np.log(proba[present])
    return -entropy_lambda(model) * plogp.sum(axis=1)


def gap_frequency(model: AlignmentModel) -> np.ndarray:
    """Fraction of gaps in every column."""
    return model.gap_counts / float(model.nseq)


def relative_entropy(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Row-wise Kullback-Leibler divergence R(p, q) in bits.

    Terms where p is zero contribute nothing; q must be positive wherever p is.
    """
    terms = np.zeros_like(p)
    present = p > 0.0
    terms[present] = p[present] * np.log2(p[present] / q[present])
    return terms.sum(axis=1)


class ConservationStatistic(ABC):
    """Base class for per-column conservation statistics."""

    name: str = "base"
    description: str = ""

    @abstractmethod
    def score(self, model: AlignmentModel) -> np.ndarray:
        """Compute one conservation score per column.

        Args:
            model: Summarized alignment

        Returns:
            Array of ``model.ncol`` scores in column order
        """
        pass

    def log_description(self) -> None:
        for line in self.description.splitlines():
            logger.info(line)


class WeightedEntropyScore(ConservationStatistic):
    """(1 - weighted entropy) * (1 - gap frequency)."""

    name = StatisticType.WENTROPY.value
    description = (
        "Score is based on wentropy + gap counts\n"
        "S = (1 - wentropy) * (1 - gap_freq)"
    )

    def score(self, model: AlignmentModel) -> np.ndarray:
        weights = henikoff_weights(model)
        entropy = weighted_entropy(model, weights)
        return (1.0 - entropy) * (1.0 - gap_frequency(model))


class JensenShannonScore(ConservationStatistic):
    """1 - Jensen-Shannon divergence between column and background.

    The weighted column distribution p gets a pseudo-count for absent
    symbols, the background q is the symbol distribution of the whole
    alignment, and with lambda = min(1 / log(min(|alphabet|, nseq)), 0.5)
    and r = lambda * p + (1 - lambda) * q

        D = lambda * R(p, r) + (1 - lambda) * R(q, r)
    """

    name = StatisticType.JENSEN.value
    description = (
        "Score is based on Jensen-Shannon measure\n"
        "S = 1 - (λ R(p,r) + (1 - λ) R(q,r))"
    )

    def __init__(self, pseudo_count: float = PSEUDO_COUNT):
        self.pseudo_count = pseudo_count

    def column_probabilities(self, model: AlignmentModel, weights: np.ndarray) -> np.ndarray:
        """Weighted column distributions with pseudo-counts for absent symbols.

        Absent symbols receive ``pseudo_count`` and the observed ones give
        back the same total mass so every row still sums to 1.
        """
        proba = weighted_probabilities(model, weights)
        absent = proba == 0.0
        nb_abs = absent.sum(axis=1, keepdims=True)
        observed = len(model.alphabet) - nb_abs
        correction = nb_abs * self.pseudo_count / observed
        proba = np.where(absent, self.pseudo_count, proba - correction)
        # Rare symbols of heavily redundant sequences can not go below the floor
        proba = np.maximum(proba, self.pseudo_count)
        return proba / proba.sum(axis=1, keepdims=True)

    def divergence(self, model: AlignmentModel, weights: np.ndarray) -> np.ndarray:
        """Jensen-Shannon divergence of every column, in [0, 1]."""
        p = self.column_probabilities(model, weights)
        q = np.broadcast_to(model.background_distribution(), p.shape)
        mix = min(entropy_lambda(model), MAX_MIXING_WEIGHT)
        r = mix * p + (1.0 - mix) * q
        return mix * relative_entropy(p, r) + (1.0 - mix) * relative_entropy(q, r)

    def score(self, model: AlignmentModel) -> np.ndarray:
        weights = henikoff_weights(model)
        return 1.0 - self.divergence(model, weights)


class TridentScore(ConservationStatistic):
    """Valdar (2002) trident score S = (1 - t)^a * (1 - r)^b * (1 - g)^c.

    t is the weighted entropy, r the residue similarity dispersion measured
    with a substitution matrix and g the gap frequency. The model is fitted
    to the matrix alphabet before r and g are computed.
    """

    name = StatisticType.TRIDENT.value

    def __init__(
        self,
        matrix: SubstitutionMatrix,
        factor_a: float = 1.0,
        factor_b: float = 0.5,
        factor_c: float = 3.0,
    ):
        self.matrix = matrix
        self.factor_a = factor_a
        self.factor_b = factor_b
        self.factor_c = factor_c

    @property
    def description(self) -> str:
        return (
            "Score is based on trident score defined by Valdar (2002)\n"
            "S = (1 - t)^a * (1 - r)^b * (1 - g)^c\n"
            "t measures the entropy\n"
            "r measures the residue similarity (based on a normalized substitution matrix)\n"
            "g measures the gap frequencies\n"
            f"a = {self.factor_a}\n"
            f"b = {self.factor_b}\n"
            f"c = {self.factor_c}"
        )

    def residue_dispersion(self, model: AlignmentModel) -> np.ndarray:
        """r(x) for every column of a model fitted to the matrix alphabet.

        Columns without any residue get r = 1.0.
        """
        span = self.matrix.max - self.matrix.min
        lambda_r = math.sqrt(self.matrix.alphabet_size * span * span)

        dispersion = np.ones(model.ncol)
        for x in range(model.ncol):
            types = model.type_list(x).replace(GAP, "")
            if not types:
                continue
            if lambda_r == 0.0:
                # Flat matrix: every residue is equally similar
                dispersion[x] = 0.0
                continue
            vectors = np.array([self.matrix.score_vector(symbol) for symbol in types])
            mean = vectors.mean(axis=0)
            distances = np.linalg.norm(mean - vectors, axis=1)
            dispersion[x] = distances.mean() / lambda_r
        return dispersion

    def components(self, model: AlignmentModel) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return the (t, r, g) terms; fits ``model`` to the matrix alphabet."""
        weights = henikoff_weights(model)
        t = weighted_entropy(model, weights)

        if not model.is_subset_of(self.matrix.alphabet):
            logger.warning(
                f"Alignment alphabet {model.alphabet!r} is not covered by "
                f"substitution matrix {self.matrix.name!r}"
            )
        model.fit_to_alphabet(self.matrix.alphabet)

        r = self.residue_dispersion(model)
        g = gap_frequency(model)
        return t, r, g

    def score(self, model: AlignmentModel) -> np.ndarray:
        t, r, g = self.components(model)
        return (
            np.power(np.clip(1.0 - t, 0.0, None), self.factor_a)
            * np.power(np.clip(1.0 - r, 0.0, None), self.factor_b)
            * np.power(np.clip(1.0 - g, 0.0, None), self.factor_c)
        )


def get_statistic(
    name: str,
    matrix: Optional[SubstitutionMatrix] = None,
    factor_a: float = 1.0,
    factor_b: float = 0.5,
    factor_c: float = 3.0,
) -> ConservationStatistic:
    """Instantiate a statistic by name.

    Args:
        name: One of "jensen", "wentropy", "trident"
        matrix: Substitution matrix, required for "trident"
        factor_a: Trident exponent on the entropy term
        factor_b: Trident exponent on the residue similarity term
        factor_c: Trident exponent on the gap term

    Raises:
        ValueError: If the name is unknown or trident has no matrix
    """
    try:
        kind = StatisticType(name.lower())
    except ValueError:
        choices = ", ".join(s.value for s in StatisticType)
        raise ValueError(f"Unknown statistic '{name}'. Choose one of: {choices}")

    if kind is StatisticType.WENTROPY:
        return WeightedEntropyScore()
    if kind is StatisticType.JENSEN:
        return JensenShannonScore()

    if matrix is None:
        raise ValueError("The trident statistic needs a substitution matrix")
    return TridentScore(matrix, factor_a=factor_a, factor_b=factor_b, factor_c=factor_c)
