"""
Alignment scoring pipeline.

This module provides the high-level interface: read an alignment, pick a
statistic from the run configuration, compute the per-column scores and
write them out, one value per line. A per-column pandas table can be
produced alongside for inspection.
"""

import logging
import math
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from ..config import Config
from ..logging import format_listing, log_section
from .matrix import load_substitution_matrix
from .models import GAP_RICH_SENTINEL, AlignmentModel, StatisticType
from .msa_parser import read_alignment
from .scores import ConservationStatistic, get_statistic

logger = logging.getLogger(__name__)


def displayed_entropy(model: AlignmentModel) -> np.ndarray:
    """Column entropies, with GAP_RICH_SENTINEL where gaps exceed nseq / 10."""
    gap_rich = model.gap_counts > model.nseq / 10.0
    return np.where(gap_rich, GAP_RICH_SENTINEL, model.column_entropy)


def log_alignment_diagnostics(model: AlignmentModel) -> None:
    """Report the alignment summaries at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return

    log_section(logger, "Alphabet", [format_listing(model.alphabet)])
    log_section(logger, "Multiple Alignment", (seq.sequence for seq in model.sequences))
    log_section(logger, "AA Frequencies", [format_listing(model.frequencies().values())])
    log_section(logger, "Gap counts", [format_listing(int(g) for g in model.gap_counts)])
    log_section(logger, "AA Entropy", [format_listing(float(e) for e in displayed_entropy(model))])
    log_section(logger, "AA Types", [format_listing(int(k) for k in model.type_counts)])


def load_alignment(msa_path: Union[str, Path], verbose: bool = False) -> AlignmentModel:
    """Read an alignment file and report its summaries.

    Args:
        msa_path: Path to the FASTA-style alignment
        verbose: If True, log the alignment diagnostics

    Returns:
        The summarized AlignmentModel

    Raises:
        FileNotFoundError: If the alignment file doesn't exist
        ValueError: If the alignment is empty or ragged
    """
    model = read_alignment(msa_path)
    if verbose:
        log_alignment_diagnostics(model)
    return model


def statistic_from_config(config: Config) -> ConservationStatistic:
    """Build the statistic named in ``config``, loading a matrix for trident.

    Raises:
        FileNotFoundError: If the substitution matrix cannot be opened
        ValueError: If the statistic name is unknown
    """
    matrix = None
    if config.statistic == StatisticType.TRIDENT.value:
        matrix = load_substitution_matrix(config.score_matrix_path, config.matrix_name)

    return get_statistic(
        config.statistic,
        matrix=matrix,
        factor_a=config.factor_a,
        factor_b=config.factor_b,
        factor_c=config.factor_c,
    )


def score_alignment(model: AlignmentModel, statistic: ConservationStatistic) -> np.ndarray:
    """Run ``statistic`` over ``model``.

    Returns:
        One score per column, in column order
    """
    statistic.log_description()
    scores = statistic.score(model)
    if len(scores) != model.ncol:
        raise ValueError(
            f"Statistic '{statistic.name}' produced {len(scores)} scores "
            f"for {model.ncol} columns"
        )
    return scores


def write_scores(scores, output_path: Union[str, Path]) -> Path:
    """Write one score per line.

    Raises:
        OSError: If the destination cannot be created
    """
    path = Path(output_path)
    with open(path, "w") as f:
        for value in scores:
            f.write(f"{float(value):g}\n")
    logger.info(f"Wrote {len(scores)} column scores to {path}")
    return path


def column_summary(model: AlignmentModel, scores: Optional[np.ndarray] = None) -> pd.DataFrame:
    """Per-column table of the alignment summaries.

    Columns: COLUMN (1-based), GAP_COUNT, GAP_FRACTION, TYPE_COUNT, TYPES,
    ENTROPY (GAP_RICH_SENTINEL for gap-rich columns) and SCORE when
    ``scores`` is given.
    """
    df = pd.DataFrame({
        "COLUMN": np.arange(1, model.ncol + 1),
        "GAP_COUNT": model.gap_counts,
        "GAP_FRACTION": model.gap_counts / float(model.nseq),
        "TYPE_COUNT": model.type_counts,
        "TYPES": [model.type_list(col) for col in range(model.ncol)],
        "ENTROPY": displayed_entropy(model),
    })
    if scores is not None:
        df["SCORE"] = scores
    return df


def get_conservation_summary(model: AlignmentModel, scores: np.ndarray) -> Dict:
    """Summary statistics of a scoring run."""
    finite = np.asarray(scores, dtype=float)
    finite = finite[np.isfinite(finite)]

    def stat(func) -> float:
        return float(func(finite)) if finite.size else math.nan

    return {
        "num_sequences": model.nseq,
        "num_columns": model.ncol,
        "alphabet_size": len(model.alphabet),
        "mean_score": stat(np.mean),
        "min_score": stat(np.min),
        "max_score": stat(np.max),
        "gap_rich_columns": int((model.gap_counts > model.nseq / 10.0).sum()),
    }


def score_alignment_file(
    msa_path: Union[str, Path],
    config: Config,
    table_path: Optional[Union[str, Path]] = None,
) -> np.ndarray:
    """Read, score and write an alignment as described by ``config``.

    Args:
        msa_path: Path to the FASTA-style alignment
        config: Run configuration (statistic, output, matrix, exponents)
        table_path: Optional TSV destination for the per-column table

    Returns:
        The per-column scores

    Raises:
        FileNotFoundError: If the alignment or matrix file cannot be opened
        ValueError: If the alignment or configuration is invalid
        OSError: If an output cannot be written
    """
    model = load_alignment(msa_path, verbose=config.verbose)
    statistic = statistic_from_config(config)

    scores = score_alignment(model, statistic)
    write_scores(scores, config.output_name)

    if table_path:
        column_summary(model, scores).to_csv(table_path, sep="\t", index=False)
        logger.info(f"Wrote column table to {table_path}")

    if config.verbose:
        summary = get_conservation_summary(model, scores)
        logger.debug(f"Mean conservation: {summary['mean_score']:.3f}")
        logger.debug(f"Gap-rich columns: {summary['gap_rich_columns']}")

    return scores
