"""
Data models for MSA-based conservation scoring.

This module defines the alignment model shared by every conservation
statistic: the aligned sequences plus the per-column summaries derived from
them (alphabet, gap counts, symbol types, global frequencies and normalized
entropy).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Sequence

import numpy as np

logger = logging.getLogger(__name__)

GAP_SYMBOLS = "- "
GAP = "-"

# Reported instead of the entropy for columns with too many gaps
GAP_RICH_SENTINEL = -12.0

# Column entropy when fewer than two residue symbols exist
UNDEFINED_ENTROPY = float("nan")


class StatisticType(Enum):
    """Available conservation statistics."""
    JENSEN = "jensen"
    WENTROPY = "wentropy"
    TRIDENT = "trident"


class UnknownSymbolError(ValueError):
    """A symbol was looked up that is not part of the alignment alphabet."""


def is_gap(symbol: str) -> bool:
    """Return True for the gap symbols '-' and ' '."""
    return symbol in GAP_SYMBOLS


@dataclass
class MSASequence:
    """A single sequence in the multiple sequence alignment.

    Attributes:
        id: Sequence identifier (header text up to the first space)
        sequence: The aligned sequence string (including gaps)
    """
    id: str
    sequence: str

    def __len__(self) -> int:
        """Return the length of the aligned sequence (including gaps)."""
        return len(self.sequence)


class AlignmentModel:
    """A multiple sequence alignment with its per-column summaries.

    The summaries are derived once at construction time. The only mutation
    allowed afterwards is :meth:`fit_to_alphabet`, which rewrites symbols
    outside a target alphabet to gaps and derives everything again.

    Attributes:
        sequences: Aligned sequences, all of length ``ncol``
        gap_counts: Number of gap symbols per column
        column_entropy: Normalized Shannon entropy per column
    """

    def __init__(self, sequences: Sequence[MSASequence]):
        if not sequences:
            raise ValueError("Alignment contains no sequences")

        ncol = len(sequences[0])
        if ncol == 0:
            raise ValueError(f"Sequence '{sequences[0].id}' is empty")

        ragged = [(seq.id, len(seq)) for seq in sequences if len(seq) != ncol]
        if ragged:
            raise ValueError(
                f"Inconsistent sequence lengths: expected {ncol}, "
                f"found {ragged[:5]}{'...' if len(ragged) > 5 else ''}"
            )

        self.sequences: List[MSASequence] = [
            MSASequence(id=seq.id, sequence=seq.sequence.upper()) for seq in sequences
        ]
        self._analyse()

    def __len__(self) -> int:
        return self.ncol

    def __repr__(self) -> str:
        return f"AlignmentModel(nseq={self.nseq}, ncol={self.ncol}, alphabet={self.alphabet!r})"

    def _analyse(self) -> None:
        """Derive alphabet, symbol codes, counts, frequencies and entropies."""
        self._define_alphabet()

        self._residues = np.array([list(seq.sequence) for seq in self.sequences])
        # Alphabet index of every cell
        self._codes = np.vectorize(self._index.__getitem__, otypes=[np.intp])(self._residues)

        self._counts = np.zeros((self.ncol, len(self.alphabet)), dtype=np.int64)
        for a in range(len(self.alphabet)):
            self._counts[:, a] = (self._codes == a).sum(axis=0)

        self._gap_mask = np.array([is_gap(symbol) for symbol in self.alphabet])
        self.gap_counts = self._counts[:, self._gap_mask].sum(axis=1)

        self._count_types()
        self._count_frequencies()
        self._count_entropy()

    def _define_alphabet(self) -> None:
        symbols: Dict[str, None] = {}
        for col in range(self.ncol):
            for seq in self.sequences:
                symbols.setdefault(seq.sequence[col], None)
        self.alphabet = "".join(symbols)
        self._index = {symbol: pos for pos, symbol in enumerate(self.alphabet)}

    def _count_types(self) -> None:
        self._type_lists: List[str] = []
        for col in range(self.ncol):
            self._type_lists.append("".join(dict.fromkeys(self._residues[:, col])))

    def _count_frequencies(self) -> None:
        # Gaps count in the numerator but not in the denominator
        symbol_totals = self._counts.sum(axis=0).astype(float)
        total = symbol_totals[~self._gap_mask].sum()
        if total == 0:
            self._frequencies = np.zeros(len(self.alphabet))
        else:
            self._frequencies = symbol_totals / total

    def _count_entropy(self) -> None:
        residue_types = sum(1 for symbol in self.alphabet if not is_gap(symbol))
        if residue_types < 2:
            self.column_entropy = np.full(self.ncol, UNDEFINED_ENTROPY)
            return

        freqs = self._counts / float(self.nseq)
        plogp = np.zeros_like(freqs)
        present = freqs > 0.0
        plogp[present] = freqs[present] * np.log(freqs[present])
        self.column_entropy = -plogp.sum(axis=1) / math.log(residue_types)
        # A column holding a single symbol has no uncertainty at all
        self.column_entropy[(freqs == 1.0).any(axis=1)] = 0.0

    @property
    def nseq(self) -> int:
        """Number of sequences in the alignment."""
        return len(self.sequences)

    @property
    def ncol(self) -> int:
        """Number of alignment columns."""
        return len(self.sequences[0])

    @property
    def names(self) -> List[str]:
        """Sequence identifiers in file order."""
        return [seq.id for seq in self.sequences]

    @property
    def codes(self) -> np.ndarray:
        """``nseq x ncol`` matrix of alphabet indices (read-only view)."""
        view = self._codes.view()
        view.flags.writeable = False
        return view

    @property
    def counts(self) -> np.ndarray:
        """``ncol x len(alphabet)`` matrix of symbol counts (read-only view)."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    @property
    def type_counts(self) -> np.ndarray:
        """Number of distinct symbols (gap included) in each column."""
        return np.array([len(types) for types in self._type_lists], dtype=np.int64)

    def symbol_index(self, symbol: str) -> int:
        """Return the position of ``symbol`` in the alphabet.

        Raises:
            UnknownSymbolError: If the symbol was never observed
        """
        try:
            return self._index[symbol]
        except KeyError:
            raise UnknownSymbolError(f"Symbol {symbol!r} is not in the alphabet {self.alphabet!r}")

    def symbol_at(self, row: int, col: int) -> str:
        return self.sequences[row].sequence[col]

    def get_column(self, col: int) -> str:
        """Return the residues of column ``col`` from top to bottom."""
        return "".join(self._residues[:, col])

    def gap_count(self, col: int) -> int:
        return int(self.gap_counts[col])

    def type_list(self, col: int) -> str:
        """Distinct symbols of column ``col`` in first-seen order."""
        return self._type_lists[col]

    def distinct_type_count(self, col: int) -> int:
        return len(self._type_lists[col])

    def frequency_of(self, symbol: str) -> float:
        """Global frequency of ``symbol`` over the non-gap cells.

        Raises:
            UnknownSymbolError: If the symbol is not in the alphabet
        """
        return float(self._frequencies[self.symbol_index(symbol)])

    def frequencies(self) -> Dict[str, float]:
        """Global frequency of every alphabet symbol."""
        return {symbol: float(self._frequencies[i]) for symbol, i in self._index.items()}

    def background_distribution(self) -> np.ndarray:
        """Symbol distribution over every cell of the alignment, summing to 1."""
        totals = self._counts.sum(axis=0).astype(float)
        return totals / totals.sum()

    def is_subset_of(self, candidate: Iterable[str]) -> bool:
        """True if every non-gap symbol of the alphabet appears in ``candidate``."""
        allowed = set(candidate)
        return all(is_gap(symbol) or symbol in allowed for symbol in self.alphabet)

    def fit_to_alphabet(self, new_alphabet: Iterable[str]) -> "AlignmentModel":
        """Restrict the alignment to ``new_alphabet``.

        Symbols outside the target alphabet, and blank gaps, are rewritten as
        '-' and all summaries are derived again. Fitting twice to the same
        alphabet leaves the model unchanged.

        Returns:
            The model itself
        """
        allowed = set(new_alphabet) - set(GAP_SYMBOLS)
        masked = 0
        sequences = []
        for seq in self.sequences:
            residues = []
            for symbol in seq.sequence:
                if symbol in allowed or symbol == GAP:
                    residues.append(symbol)
                else:
                    if symbol != " ":
                        masked += 1
                    residues.append(GAP)
            sequences.append(MSASequence(id=seq.id, sequence="".join(residues)))

        if masked:
            logger.warning(f"{masked} residue(s) outside the matrix alphabet were treated as gaps")

        self.sequences = sequences
        self._analyse()
        return self
