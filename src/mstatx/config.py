"""
MstatX Configuration Module

Run configuration for a conservation scoring pass. A Config is built once
(usually by the CLI) and passed explicitly to whatever needs it; the scoring
statistics only receive the individual values they use.

Configuration Priority (highest to lowest):
1. Explicit constructor arguments
2. Environment variables
3. Defaults

Environment Variables:
    MSTATX_MATRIX_PATH  - Directory holding substitution matrix files (*.mat)
    MSTATX_MATRIX       - Matrix name, e.g. blosum62 (default: blosum62)
    MSTATX_OUTPUT       - Output file for the per-column scores
    MSTATX_VERBOSE      - Set to 1/true/yes to enable diagnostic output
    MSTATX_FACTOR_A     - Trident exponent on the entropy term
    MSTATX_FACTOR_B     - Trident exponent on the residue similarity term
    MSTATX_FACTOR_C     - Trident exponent on the gap term
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STATISTICS = ("jensen", "wentropy", "trident")

DEFAULT_STATISTIC = "wentropy"
DEFAULT_OUTPUT = "output.stat"
DEFAULT_MATRIX = "blosum62"

# Valdar (2002) recommended exponents
DEFAULT_FACTOR_A = 1.0
DEFAULT_FACTOR_B = 0.5
DEFAULT_FACTOR_C = 3.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """
    MstatX run configuration.

    Fields left as None are filled from the environment, then from defaults.

    Attributes:
        statistic: Name of the conservation statistic (jensen, wentropy, trident)
        output_name: Destination of the per-column scores
        score_matrix_path: Directory containing substitution matrix files
        matrix_name: Substitution matrix name (file stem, or Biopython built-in)
        verbose: Enable diagnostic output of intermediate values
        factor_a: Trident exponent on (1 - t)
        factor_b: Trident exponent on (1 - r)
        factor_c: Trident exponent on (1 - g)
        log_file: Optional log file path
    """

    statistic: str = DEFAULT_STATISTIC
    output_name: Optional[Path] = None
    score_matrix_path: Optional[Path] = None
    matrix_name: Optional[str] = None
    verbose: Optional[bool] = None

    factor_a: Optional[float] = None
    factor_b: Optional[float] = None
    factor_c: Optional[float] = None

    log_file: Optional[Path] = None

    _initialized: bool = field(default=False, repr=False)

    def __post_init__(self):
        """Fill unset fields from the environment and defaults."""
        if not self._initialized:
            self._load_from_environment()
            self._apply_defaults()
            self._initialized = True

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        if self.score_matrix_path is None and os.environ.get("MSTATX_MATRIX_PATH"):
            self.score_matrix_path = Path(os.environ["MSTATX_MATRIX_PATH"])

        if self.matrix_name is None and os.environ.get("MSTATX_MATRIX"):
            self.matrix_name = os.environ["MSTATX_MATRIX"]

        if self.output_name is None and os.environ.get("MSTATX_OUTPUT"):
            self.output_name = Path(os.environ["MSTATX_OUTPUT"])

        if self.verbose is None and os.environ.get("MSTATX_VERBOSE"):
            self.verbose = os.environ["MSTATX_VERBOSE"].strip().lower() in _TRUE_VALUES

        for attr, var in (
            ("factor_a", "MSTATX_FACTOR_A"),
            ("factor_b", "MSTATX_FACTOR_B"),
            ("factor_c", "MSTATX_FACTOR_C"),
        ):
            if getattr(self, attr) is None and os.environ.get(var):
                try:
                    setattr(self, attr, float(os.environ[var]))
                except ValueError:
                    logger.warning(f"Ignoring non-numeric {var}={os.environ[var]!r}")

    def _apply_defaults(self) -> None:
        """Fill whatever is still unset with built-in defaults."""
        if self.output_name is None:
            self.output_name = Path(DEFAULT_OUTPUT)
        else:
            self.output_name = Path(self.output_name)

        if self.score_matrix_path is not None:
            self.score_matrix_path = Path(self.score_matrix_path)

        if self.matrix_name is None:
            self.matrix_name = DEFAULT_MATRIX

        if self.verbose is None:
            self.verbose = False

        if self.factor_a is None:
            self.factor_a = DEFAULT_FACTOR_A
        if self.factor_b is None:
            self.factor_b = DEFAULT_FACTOR_B
        if self.factor_c is None:
            self.factor_c = DEFAULT_FACTOR_C

        self.statistic = self.statistic.lower()

    @property
    def matrix_file(self) -> Optional[Path]:
        """Matrix file path, or None when the Biopython built-in should be used."""
        if self.score_matrix_path is None:
            return None
        return self.score_matrix_path / f"{self.matrix_name}.mat"

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate configuration.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors = []

        if self.statistic not in STATISTICS:
            errors.append(
                f"Unknown statistic '{self.statistic}'. Choose one of: {', '.join(STATISTICS)}"
            )

        for name in ("factor_a", "factor_b", "factor_c"):
            value = getattr(self, name)
            if value <= 0:
                errors.append(f"{name} must be a positive number, got {value}")

        if self.statistic == "trident" and self.score_matrix_path is not None:
            if not self.score_matrix_path.is_dir():
                errors.append(f"Score matrix directory not found: {self.score_matrix_path}")
            elif not self.matrix_file.exists():
                errors.append(f"Score matrix file not found: {self.matrix_file}")

        return len(errors) == 0, errors

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary."""
        return {
            "statistic": self.statistic,
            "output_name": str(self.output_name),
            "score_matrix_path": str(self.score_matrix_path) if self.score_matrix_path else None,
            "matrix_name": self.matrix_name,
            "verbose": self.verbose,
            "factor_a": self.factor_a,
            "factor_b": self.factor_b,
            "factor_c": self.factor_c,
            "log_file": str(self.log_file) if self.log_file else None,
        }

    def print_status(self) -> None:
        """Print configuration status to stdout."""
        print("MstatX Configuration Status")
        print("=" * 50)
        print(f"Statistic:   {self.statistic}")
        print(f"Output:      {self.output_name}")
        if self.matrix_file is None:
            print(f"Matrix:      {self.matrix_name} (built-in)")
        elif self.matrix_file.exists():
            print(f"Matrix:      [✓] {self.matrix_file}")
        else:
            print(f"Matrix:      [✗] {self.matrix_file} (NOT FOUND)")
        print(f"Factors:     a={self.factor_a} b={self.factor_b} c={self.factor_c}")
        print(f"Verbose:     {self.verbose}")
        print("=" * 50)
