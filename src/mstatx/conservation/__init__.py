"""
MstatX Conservation Module: per-column conservation scores for MSAs.

Key Features:
- Parse FASTA-style alignments and summarize every column
  (alphabet, gap counts, symbol types, normalized entropy)
- Henikoff & Henikoff (1994) sequence weights
- Three statistics: weighted entropy, Jensen-Shannon divergence and the
  Valdar (2002) trident score

Example Usage:
    >>> from mstatx.config import Config
    >>> from mstatx.conservation import score_alignment_file
    >>> config = Config(statistic="trident", output_name="scores.txt")
    >>> scores = score_alignment_file("alignment.fasta", config)

    # Or for more control:
    >>> from mstatx.conservation import read_alignment, WeightedEntropyScore
    >>> model = read_alignment("alignment.fasta")
    >>> scores = WeightedEntropyScore().score(model)
"""

# Data models
from .models import (
    GAP_RICH_SENTINEL,
    UNDEFINED_ENTROPY,
    AlignmentModel,
    MSASequence,
    StatisticType,
    UnknownSymbolError,
)

# Parsing
from .msa_parser import (
    MAX_SEQUENCES,
    parse_alignment,
    parse_records,
    read_alignment,
)

# Substitution matrices
from .matrix import SubstitutionMatrix, load_substitution_matrix

# Sequence weights
from .weights import henikoff_weights, sequence_weight, weighted_probabilities

# Statistics
from .scores import (
    ConservationStatistic,
    JensenShannonScore,
    TridentScore,
    WeightedEntropyScore,
    get_statistic,
    weighted_entropy,
)

# Pipeline
from .scorer import (
    column_summary,
    get_conservation_summary,
    load_alignment,
    score_alignment,
    score_alignment_file,
    statistic_from_config,
    write_scores,
)


__all__ = [
    # Models
    "GAP_RICH_SENTINEL",
    "UNDEFINED_ENTROPY",
    "AlignmentModel",
    "MSASequence",
    "StatisticType",
    "UnknownSymbolError",
    # Parsing
    "MAX_SEQUENCES",
    "parse_alignment",
    "parse_records",
    "read_alignment",
    # Matrices
    "SubstitutionMatrix",
    "load_substitution_matrix",
    # Weights
    "henikoff_weights",
    "sequence_weight",
    "weighted_probabilities",
    # Statistics
    "ConservationStatistic",
    "JensenShannonScore",
    "TridentScore",
    "WeightedEntropyScore",
    "get_statistic",
    "weighted_entropy",
    # Pipeline
    "column_summary",
    "get_conservation_summary",
    "load_alignment",
    "score_alignment",
    "score_alignment_file",
    "statistic_from_config",
    "write_scores",
]
