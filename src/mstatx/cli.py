"""
MstatX Command-Line Interface

Entry point for the ``mstatx`` command: score every column of a
FASTA-style alignment and write one value per line.
"""

import argparse
import sys
from pathlib import Path

from mstatx import __version__
from mstatx.config import DEFAULT_OUTPUT, DEFAULT_STATISTIC, STATISTICS, Config
from mstatx.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mstatx",
        description="Per-column conservation statistics for multiple sequence alignments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Statistics:
  wentropy   S = (1 - weighted entropy) * (1 - gap frequency)
  jensen     S = 1 - Jensen-Shannon divergence from the alignment background
  trident    S = (1 - t)^a * (1 - r)^b * (1 - g)^c  (Valdar, 2002)

Examples:
  mstatx -i alignment.fasta -s wentropy -o scores.txt
  mstatx -i alignment.fasta -s trident -m ./matrices -a 1 -b 0.5 -c 3
  mstatx -i alignment.fasta --table columns.tsv -v
        """,
    )

    parser.add_argument(
        "-i", "--input",
        required=True,
        type=Path,
        help="Multiple alignment in FASTA format",
    )
    parser.add_argument(
        "-s", "--statistic",
        default=DEFAULT_STATISTIC,
        choices=STATISTICS,
        help=f"Conservation statistic (default: {DEFAULT_STATISTIC})",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help=f"Output file, one score per column (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "-m", "--matrix-dir",
        type=Path,
        default=None,
        help="Directory holding <matrix>.mat files (default: Biopython built-in matrices)",
    )
    parser.add_argument(
        "--matrix",
        default=None,
        help="Substitution matrix name used by trident (default: blosum62)",
    )
    parser.add_argument("-a", "--factor-a", type=float, default=None, help="Trident exponent on the entropy term")
    parser.add_argument("-b", "--factor-b", type=float, default=None, help="Trident exponent on the similarity term")
    parser.add_argument("-c", "--factor-c", type=float, default=None, help="Trident exponent on the gap term")
    parser.add_argument(
        "--table",
        type=Path,
        default=None,
        help="Also write a per-column TSV table (gaps, types, entropy, score)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write log messages to this file as well",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=None,
        help="Print alignment diagnostics and sequence weights",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None) -> int:
    """Entry point for the mstatx command."""
    args = build_parser().parse_args(argv)

    config = Config(
        statistic=args.statistic,
        output_name=args.output,
        score_matrix_path=args.matrix_dir,
        matrix_name=args.matrix,
        verbose=args.verbose,
        factor_a=args.factor_a,
        factor_b=args.factor_b,
        factor_c=args.factor_c,
        log_file=args.log_file,
    )

    logger = setup_logging("mstatx", log_file=config.log_file, verbose=config.verbose)

    is_valid, errors = config.validate()
    if not is_valid:
        for error in errors:
            logger.error(f"  ✗ {error}")
        return 1

    from mstatx.conservation import score_alignment_file

    try:
        score_alignment_file(args.input, config, table_path=args.table)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
