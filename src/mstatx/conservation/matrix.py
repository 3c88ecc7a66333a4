"""
Substitution matrices for residue similarity scoring.

Matrices are read with Biopython's ``Bio.Align.substitution_matrices``,
either from an NCBI-format file or from the built-in collection, and
copied into a plain numpy table with a symbol index.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np
from Bio.Align import substitution_matrices

logger = logging.getLogger(__name__)


class SubstitutionMatrix:
    """A symmetric table of pairwise residue scores.

    Attributes:
        alphabet: Symbols covered by the matrix, in table order
        min: Smallest raw score in the table
        max: Largest raw score in the table
    """

    def __init__(self, alphabet: Sequence[str], scores, name: str = ""):
        self.alphabet = "".join(alphabet)
        self.name = name
        self._scores = np.array(scores, dtype=float)

        size = len(self.alphabet)
        if self._scores.shape != (size, size):
            raise ValueError(
                f"Score table shape {self._scores.shape} does not match "
                f"alphabet of {size} symbols"
            )
        if not np.allclose(self._scores, self._scores.T):
            raise ValueError(f"Substitution matrix {name!r} is not symmetric")

        self._index: Dict[str, int] = {symbol: i for i, symbol in enumerate(self.alphabet)}
        self.min = float(self._scores.min())
        self.max = float(self._scores.max())

        span = self.max - self.min
        if span == 0:
            self._normalized = np.zeros_like(self._scores)
        else:
            self._normalized = (self._scores - self.min) / span

    @classmethod
    def from_biopython(cls, array, name: str = "") -> "SubstitutionMatrix":
        """Wrap a two-dimensional ``Bio.Align.substitution_matrices.Array``."""
        return cls("".join(array.alphabet), np.asarray(array, dtype=float), name=name)

    @classmethod
    def read(cls, filepath: Union[str, Path]) -> "SubstitutionMatrix":
        """Read an NCBI-format matrix file.

        Raises:
            FileNotFoundError: If the file cannot be opened
        """
        path = Path(filepath)
        if not path.is_file():
            raise FileNotFoundError(f"Cannot open score matrix file: {filepath}")
        logger.info(f"Reading substitution matrix in {path}")
        return cls.from_biopython(substitution_matrices.read(str(path)), name=path.stem)

    @classmethod
    def load(cls, name: str = "BLOSUM62") -> "SubstitutionMatrix":
        """Load one of Biopython's bundled matrices by name."""
        try:
            array = substitution_matrices.load(name.upper())
        except FileNotFoundError:
            raise FileNotFoundError(
                f"Unknown substitution matrix '{name}'. "
                f"Available: {', '.join(substitution_matrices.load())}"
            )
        return cls.from_biopython(array, name=name.upper())

    def __len__(self) -> int:
        return len(self.alphabet)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._index

    def __repr__(self) -> str:
        return f"SubstitutionMatrix(name={self.name!r}, alphabet={self.alphabet!r})"

    @property
    def alphabet_size(self) -> int:
        return len(self.alphabet)

    def _position(self, symbol: str) -> int:
        try:
            return self._index[symbol]
        except KeyError:
            raise KeyError(f"Symbol {symbol!r} is not covered by matrix {self.name!r}")

    def score(self, a: str, b: str) -> float:
        """Raw score of the pair (a, b)."""
        return float(self._scores[self._position(a), self._position(b)])

    def norm_score(self, a: str, b: str) -> float:
        """Score of (a, b) rescaled to [0, 1] with the table's min and max."""
        return float(self._normalized[self._position(a), self._position(b)])

    def score_vector(self, symbol: str) -> np.ndarray:
        """Normalized scores of ``symbol`` against every matrix symbol, in alphabet order."""
        return self._normalized[:, self._position(symbol)].copy()


def load_substitution_matrix(
    score_matrix_path: Optional[Union[str, Path]] = None,
    matrix_name: str = "blosum62",
) -> SubstitutionMatrix:
    """Load ``<score_matrix_path>/<matrix_name>.mat``, or the built-in matrix.

    Args:
        score_matrix_path: Directory holding matrix files; None for built-ins
        matrix_name: Matrix file stem / built-in name

    Returns:
        The loaded SubstitutionMatrix

    Raises:
        FileNotFoundError: If the matrix file cannot be opened
    """
    if score_matrix_path is None:
        return SubstitutionMatrix.load(matrix_name)
    return SubstitutionMatrix.read(Path(score_matrix_path) / f"{matrix_name}.mat")
