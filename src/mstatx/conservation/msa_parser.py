"""
Parsing of FASTA-style multiple sequence alignments.

A record starts with a header line beginning with '>'. The sequence name is
the header text up to the first space, and every following line up to the
next header is appended verbatim to the record's residues (only the line
terminator is removed, so blank gap symbols survive). Lines preceding the
first header are ignored.

At most MAX_SEQUENCES records are kept. Records past the limit are dropped
together with their names.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

from .models import AlignmentModel, MSASequence

logger = logging.getLogger(__name__)

MAX_SEQUENCES = 500


def parse_records(lines: Iterable[str], max_sequences: int = MAX_SEQUENCES) -> List[MSASequence]:
    """Split FASTA-style lines into named sequences.

    Args:
        lines: Lines of the alignment, with or without line terminators
        max_sequences: Number of records to keep

    Returns:
        List of MSASequence, at most ``max_sequences`` long
    """
    sequences: List[MSASequence] = []
    current_id = None
    current_seq_parts: List[str] = []
    dropped = 0

    for line in lines:
        line = line.rstrip("\n\r")

        if line.startswith(">"):
            if current_id is not None:
                sequences.append(MSASequence(id=current_id, sequence="".join(current_seq_parts)))

            if len(sequences) >= max_sequences:
                current_id = None
                dropped += 1
            else:
                current_id = line[1:].split(" ", 1)[0]
            current_seq_parts = []
        elif current_id is not None:
            current_seq_parts.append(line)

    if current_id is not None:
        sequences.append(MSASequence(id=current_id, sequence="".join(current_seq_parts)))

    if dropped:
        logger.warning(
            f"Alignment has more than {max_sequences} sequences; "
            f"ignoring the last {dropped}"
        )

    return sequences


def parse_alignment(text: str, max_sequences: int = MAX_SEQUENCES) -> AlignmentModel:
    """Build an AlignmentModel from FASTA-style alignment text.

    Args:
        text: Alignment text
        max_sequences: Number of records to keep

    Returns:
        Parsed and summarized AlignmentModel

    Raises:
        ValueError: If no sequence is found or the sequences differ in length
    """
    sequences = parse_records(text.splitlines(), max_sequences=max_sequences)
    if not sequences:
        raise ValueError("No sequences found in alignment")
    return AlignmentModel(sequences)


def read_alignment(filepath: Union[str, Path], max_sequences: int = MAX_SEQUENCES) -> AlignmentModel:
    """Read and summarize a FASTA-style alignment file.

    Args:
        filepath: Path to the alignment file
        max_sequences: Number of records to keep

    Returns:
        Parsed and summarized AlignmentModel

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file holds no sequence or the sequences are ragged
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Alignment file not found: {filepath}")

    logger.info(f"Reading multiple alignment in {path}")

    with open(path, "r") as f:
        sequences = parse_records(f, max_sequences=max_sequences)

    if not sequences:
        raise ValueError(f"No sequences found in alignment file: {filepath}")

    model = AlignmentModel(sequences)
    logger.info(f"nb seq = {model.nseq} -- nb col = {model.ncol}")
    return model
