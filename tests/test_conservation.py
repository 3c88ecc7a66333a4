"""
Tests for MstatX conservation scoring module.

Tests cover:
- Alignment parsing (FASTA-style records, sequence cap)
- Alignment summaries (alphabet, gaps, types, frequencies, entropy)
- Henikoff & Henikoff sequence weights
- Substitution matrices
- Weighted entropy, Jensen-Shannon and trident statistics
- Verbose alignment diagnostics
- Score and table output
"""

import logging
import math
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add src to path for mstatx imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mstatx.config import Config
from mstatx.conservation import (
    GAP_RICH_SENTINEL,
    MAX_SEQUENCES,
    AlignmentModel,
    JensenShannonScore,
    MSASequence,
    SubstitutionMatrix,
    TridentScore,
    UnknownSymbolError,
    WeightedEntropyScore,
    column_summary,
    get_conservation_summary,
    get_statistic,
    henikoff_weights,
    load_substitution_matrix,
    parse_alignment,
    parse_records,
    read_alignment,
    score_alignment,
    score_alignment_file,
    sequence_weight,
    weighted_entropy,
    write_scores,
)
from mstatx.conservation.scorer import log_alignment_diagnostics
from mstatx.logging import format_listing


def make_model(*rows):
    """Build a model from bare residue strings named s0, s1, ..."""
    return AlignmentModel([MSASequence(id=f"s{i}", sequence=row) for i, row in enumerate(rows)])


@pytest.fixture
def small_model():
    """Three sequences of length 4 with two fully conserved columns."""
    return make_model("AAAA", "AAAT", "AAGA")


@pytest.fixture
def blosum62():
    return SubstitutionMatrix.load("blosum62")


class TestAlignmentParsing:
    """Tests for FASTA-style alignment parsing."""

    def test_parse_basic(self):
        """Test names, concatenation and upper-casing."""
        text = """>seq1 first sequence
acde
FG
>seq2
ACDEFG
"""
        model = parse_alignment(text)

        assert model.nseq == 2
        assert model.ncol == 6
        assert model.names == ["seq1", "seq2"]
        assert model.sequences[0].sequence == "ACDEFG"

    def test_lines_before_first_header_ignored(self):
        """Test that text before the first header is not a sequence."""
        model = parse_alignment("junk line\n>a\nAC\n>b\nAG\n")
        assert model.names == ["a", "b"]
        assert model.get_column(1) == "CG"

    def test_blank_gap_preserved(self):
        """Test that internal spaces are kept as gap symbols."""
        model = parse_alignment(">a\nA C\n>b\nAAC\n")
        assert model.ncol == 3
        assert model.gap_count(1) == 1
        assert " " in model.alphabet

    def test_windows_line_endings(self):
        """Test that CRLF terminators are stripped."""
        model = parse_alignment(">a\r\nAC\r\n>b\r\nAG\r\n")
        assert model.ncol == 2

    def test_sequence_cap(self):
        """Test that only MAX_SEQUENCES records are kept."""
        text = "".join(f">s{i} extra\nACGT\n" for i in range(MAX_SEQUENCES + 2))
        model = parse_alignment(text)

        assert model.nseq == MAX_SEQUENCES
        assert len(model.names) == len(model.sequences)
        assert model.names[-1] == f"s{MAX_SEQUENCES - 1}"

    def test_parse_records_custom_cap(self):
        """Test that names and sequences are truncated together."""
        records = parse_records([">a", "AC", ">b", "AG", ">c", "AT"], max_sequences=2)
        assert [r.id for r in records] == ["a", "b"]
        assert [r.sequence for r in records] == ["AC", "AG"]

    def test_ragged_alignment_rejected(self):
        """Test that sequences of different length raise."""
        with pytest.raises(ValueError, match="Inconsistent"):
            parse_alignment(">a\nACDE\n>b\nACD\n")

    def test_empty_alignment_rejected(self):
        """Test that text without records raises."""
        with pytest.raises(ValueError, match="No sequences"):
            parse_alignment("no header here\n")

    def test_read_alignment_file(self, tmp_path):
        """Test reading from disk."""
        aln = tmp_path / "test.fasta"
        aln.write_text(">a\nAC-\n>b\nAGT\n")
        model = read_alignment(aln)
        assert model.nseq == 2
        assert model.gap_count(2) == 1

    def test_read_alignment_missing(self):
        """Test error handling for missing file."""
        with pytest.raises(FileNotFoundError):
            read_alignment("/nonexistent/alignment.fasta")


class TestAlignmentModel:
    """Tests for the per-column alignment summaries."""

    def test_basic_summaries(self, small_model):
        """Test alphabet, gaps and symbol types."""
        assert set(small_model.alphabet) == {"A", "T", "G"}
        assert small_model.alphabet == "AGT"  # first seen, column by column
        assert list(small_model.gap_counts) == [0, 0, 0, 0]
        assert small_model.type_list(2) == "AG"
        assert small_model.type_list(3) == "AT"
        assert [small_model.distinct_type_count(c) for c in range(4)] == [1, 1, 2, 2]
        assert small_model.symbol_at(2, 2) == "G"

    def test_gap_total_bounded(self):
        """Test that gap totals never exceed the number of cells."""
        model = make_model("A--C", "-A-C", "--- ")
        assert model.gap_counts.sum() <= model.nseq * model.ncol
        assert list(model.gap_counts) == [2, 2, 3, 1]

    def test_type_list_includes_gap(self):
        """Test that the gap counts as a symbol type."""
        model = make_model("A", "-", "C")
        assert model.type_list(0) == "A-C"

    def test_frequency(self, small_model):
        """Test global symbol frequency."""
        assert small_model.frequency_of("A") == pytest.approx(10 / 12)
        assert small_model.frequency_of("T") == pytest.approx(1 / 12)

    def test_frequency_counts_gaps_over_residues(self):
        """Gaps are counted in the numerator, not in the denominator."""
        model = make_model("A-", "AA")
        assert model.frequency_of("A") == pytest.approx(1.0)
        assert model.frequency_of("-") == pytest.approx(1 / 3)

    def test_frequency_unknown_symbol(self, small_model):
        """Test lookup of a symbol outside the alphabet."""
        with pytest.raises(UnknownSymbolError):
            small_model.frequency_of("W")
        with pytest.raises(ValueError):
            small_model.symbol_index("W")

    def test_entropy_conserved_column(self, small_model):
        """Test that a single-symbol column has zero entropy."""
        assert small_model.column_entropy[0] == 0.0
        assert small_model.column_entropy[1] == 0.0

    def test_entropy_uniform_column(self):
        """Test that a uniform column over the whole alphabet has entropy 1."""
        model = make_model("A", "C", "G", "T")
        assert model.column_entropy[0] == pytest.approx(1.0)

    def test_entropy_mixed_column(self, small_model):
        """Test normalized entropy of a two-symbol column."""
        expected = -(2 / 3 * math.log(2 / 3) + 1 / 3 * math.log(1 / 3)) / math.log(3)
        assert small_model.column_entropy[2] == pytest.approx(expected)

    def test_entropy_normalizer_excludes_gap(self):
        """Test that the gap symbol is not counted in the normalizer."""
        model = make_model("AC", "C-", "GA")
        f = 1 / 3
        assert model.column_entropy[0] == pytest.approx(-3 * f * math.log(f) / math.log(3))

    def test_entropy_undefined_with_one_residue_type(self):
        """Test that entropy is NaN without at least two residue types."""
        model = make_model("A-", "A-")
        assert np.isnan(model.column_entropy).all()

    def test_is_subset_of(self):
        """Test alphabet inclusion ignores gaps."""
        model = make_model("AC-", "CA ")
        assert model.is_subset_of("ACDE")
        assert not model.is_subset_of("A")

    def test_fit_to_alphabet(self):
        """Test that foreign symbols and blank gaps become '-'."""
        model = make_model("AJC", "A C", "AAC")
        model.fit_to_alphabet("AC")

        assert model.get_column(1) == "--A"
        assert list(model.gap_counts) == [0, 2, 0]
        assert model.type_list(1) == "-A"
        assert "J" not in model.alphabet

    def test_fit_to_alphabet_idempotent(self):
        """Test that fitting twice to the same alphabet changes nothing."""
        model = make_model("AJC-", "A CW", "AACW")
        model.fit_to_alphabet("ACW")
        types = [model.type_list(c) for c in range(model.ncol)]
        gaps = list(model.gap_counts)

        model.fit_to_alphabet("ACW")

        assert [model.type_list(c) for c in range(model.ncol)] == types
        assert list(model.gap_counts) == gaps

    def test_zero_length_rejected(self):
        """Test that empty sequences raise."""
        with pytest.raises(ValueError):
            make_model("", "")


class TestSequenceWeights:
    """Tests for Henikoff & Henikoff weights."""

    def test_known_weights(self, small_model):
        """Test weights against hand-computed values."""
        weights = henikoff_weights(small_model)
        assert weights == pytest.approx([7 / 24, 17 / 48, 17 / 48])

    def test_single_weight_matches_vector(self, small_model):
        """Test per-sequence weight agrees with the full vector."""
        weights = henikoff_weights(small_model)
        for i in range(small_model.nseq):
            assert sequence_weight(small_model, i) == pytest.approx(weights[i])

    def test_weights_positive_and_normalized(self):
        """Test weights are positive and sum to one."""
        model = make_model("ACDE-", "ACDEF", "AKDE-", "WCDQF", "ACDEF")
        weights = henikoff_weights(model)
        assert (weights > 0).all()
        assert weights.sum() == pytest.approx(1.0)

    def test_identical_sequences_share_weight(self):
        """Test that identical rows get identical weights."""
        weights = henikoff_weights(make_model("ACDE", "ACDE", "WKQE"))
        assert weights[0] == pytest.approx(weights[1])
        assert weights[2] > weights[0]

    def test_row_permutation(self):
        """Test that permuting rows permutes the weights the same way."""
        rows = ["ACDE-", "ACDEF", "AKDE-", "WCDQF"]
        order = [2, 0, 3, 1]
        weights = henikoff_weights(make_model(*rows))
        permuted = henikoff_weights(make_model(*[rows[i] for i in order]))
        assert permuted == pytest.approx(weights[order])


class TestSubstitutionMatrix:
    """Tests for substitution matrix loading."""

    def test_builtin_blosum62(self, blosum62):
        """Test the bundled BLOSUM62."""
        assert "W" in blosum62
        assert blosum62.score("W", "W") == 11
        assert blosum62.score("A", "R") == blosum62.score("R", "A")
        assert blosum62.max == 11
        assert blosum62.min == -4

    def test_norm_score_range(self, blosum62):
        """Test normalized scores span [0, 1]."""
        assert blosum62.norm_score("W", "W") == pytest.approx(1.0)
        for a in "ACDW":
            for b in "ACDW":
                assert 0.0 <= blosum62.norm_score(a, b) <= 1.0

    def test_read_matrix_file(self, tmp_path):
        """Test reading an NCBI-format matrix file."""
        mat = tmp_path / "tiny.mat"
        mat.write_text("# tiny matrix\n   A  C\nA  4  0\nC  0  9\n")

        matrix = SubstitutionMatrix.read(mat)

        assert matrix.alphabet == "AC"
        assert matrix.min == 0
        assert matrix.max == 9
        assert matrix.norm_score("A", "A") == pytest.approx(4 / 9)
        assert list(matrix.score_vector("C")) == pytest.approx([0.0, 1.0])

    def test_load_from_directory(self, tmp_path):
        """Test <dir>/<name>.mat resolution."""
        (tmp_path / "tiny.mat").write_text("   A  C\nA  1  0\nC  0  1\n")
        matrix = load_substitution_matrix(tmp_path, "tiny")
        assert matrix.alphabet_size == 2

    def test_missing_matrix_file(self, tmp_path):
        """Test error for a matrix file that cannot be opened."""
        with pytest.raises(FileNotFoundError):
            load_substitution_matrix(tmp_path, "blosum62")

    def test_asymmetric_matrix_rejected(self):
        """Test that non-symmetric tables raise."""
        with pytest.raises(ValueError, match="symmetric"):
            SubstitutionMatrix("AC", [[1, 2], [3, 1]])


class TestWeightedEntropyScore:
    """Tests for the wentropy statistic."""

    def test_end_to_end_example(self, small_model):
        """Test the 3 x 4 example alignment."""
        scores = WeightedEntropyScore().score(small_model)

        assert len(scores) == 4
        assert scores[0] == pytest.approx(1.0)
        assert scores[1] == pytest.approx(1.0)
        assert scores[0] > scores[2]

        p_a, p_g = 31 / 48, 17 / 48
        entropy = -(p_a * math.log(p_a) + p_g * math.log(p_g)) / math.log(3)
        assert scores[2] == pytest.approx(1.0 - entropy)

    def test_gap_penalty(self):
        """Test that gaps scale the score down."""
        model = make_model("AC", "A-", "AC", "A-")
        scores = WeightedEntropyScore().score(model)
        assert scores[0] == pytest.approx(1.0)
        assert scores[1] < scores[0]

    def test_scores_bounded(self):
        """Test that every score lies in [0, 1] for a realistic alignment."""
        model = make_model(
            "MKV-LAGE",
            "MKVALSGE",
            "MRV-IAGD",
            "MKIALAGE",
            "LKVAL-GE",
        )
        scores = WeightedEntropyScore().score(model)
        assert len(scores) == model.ncol
        assert ((scores >= -1e-9) & (scores <= 1.0 + 1e-9)).all()

    def test_single_sequence(self):
        """Test that a lone sequence is fully conserved."""
        scores = WeightedEntropyScore().score(make_model("ACDE"))
        assert scores == pytest.approx([1.0] * 4)


class TestJensenShannonScore:
    """Tests for the jensen statistic."""

    def test_pseudo_counts_keep_distribution(self):
        """Test that absent symbols get a pseudo-count and rows sum to 1."""
        model = make_model("AC", "AG", "AT")
        statistic = JensenShannonScore()
        proba = statistic.column_probabilities(model, henikoff_weights(model))

        assert (proba > 0).all()
        assert proba.sum(axis=1) == pytest.approx([1.0, 1.0])
        assert proba[0, model.symbol_index("C")] == pytest.approx(1e-6)

    def test_column_matching_background(self):
        """Test that a column distributed like the alignment scores 1."""
        model = make_model("AC", "CG", "GA")
        scores = JensenShannonScore().score(model)
        assert scores == pytest.approx([1.0, 1.0])

    def test_scores_bounded(self):
        """Test that divergent columns score below 1 and stay in [0, 1]."""
        model = make_model("AC", "AG", "AT")
        scores = JensenShannonScore().score(model)

        assert len(scores) == 2
        assert ((scores >= 0.0) & (scores < 1.0)).all()

    def test_floor_keeps_rows_normalized(self):
        """Test rows still sum to 1 when a tiny weight falls under the correction."""
        model = make_model("AC", "AD", "AE", "AF")
        weights = np.array([1.0 - 3e-7, 1e-7, 1e-7, 1e-7])
        proba = JensenShannonScore().column_probabilities(model, weights)

        assert proba.sum(axis=1) == pytest.approx([1.0, 1.0], abs=1e-12)
        assert (proba > 0).all()

    def test_two_sequences_distinguish_columns(self):
        """Test that a two-sequence alignment does not score every column alike."""
        model = make_model("AAD", "AAE")
        scores = JensenShannonScore().score(model)

        assert scores[0] != pytest.approx(scores[2])
        assert (scores < 1.0).all()

    def test_binary_alphabet_distinguish_columns(self):
        """Test that a two-symbol alphabet does not score every column alike."""
        model = make_model("AAAAC", "AAACA", "AACAA", "ACAAA", "AAAAA")
        scores = JensenShannonScore().score(model)

        assert scores[1] > scores[0]
        assert scores[1:] == pytest.approx([scores[1]] * 4)
        assert (scores < 1.0).all()


class TestTridentScore:
    """Tests for the trident statistic."""

    def test_conserved_column(self, small_model, blosum62):
        """Test that a conserved, gap-free column scores 1."""
        scores = TridentScore(blosum62).score(small_model)
        assert len(scores) == 4
        assert scores[0] == pytest.approx(1.0)
        assert scores[0] > scores[2]

    def test_no_residue_column(self, blosum62):
        """Test that a column without residues gets r = 1 and scores 0."""
        model = make_model("AJ", "CJ", "A-")
        statistic = TridentScore(blosum62)
        t, r, g = statistic.components(model)

        assert r[1] == 1.0
        assert statistic.score(make_model("AJ", "CJ", "A-"))[1] == 0.0

    def test_residue_dispersion(self, blosum62):
        """Test r for a two-residue column against a direct computation."""
        model = make_model("AW", "AY", "AW")
        statistic = TridentScore(blosum62)
        r = statistic.residue_dispersion(model)

        x_w = blosum62.score_vector("W")
        x_y = blosum62.score_vector("Y")
        mean = (x_w + x_y) / 2
        span = blosum62.max - blosum62.min
        expected = (np.linalg.norm(mean - x_w) + np.linalg.norm(mean - x_y)) / 2
        expected /= math.sqrt(blosum62.alphabet_size * span * span)

        assert r[0] == pytest.approx(0.0)
        assert r[1] == pytest.approx(expected)

    def test_model_fitted_to_matrix(self, blosum62):
        """Test that scoring restricts the model to the matrix alphabet."""
        model = make_model("AJ", "CA")
        TridentScore(blosum62).score(model)
        assert model.is_subset_of(blosum62.alphabet)
        assert model.gap_count(1) == 1

    def test_exponents(self, blosum62):
        """Test that a zero gap exponent removes the gap penalty."""
        model = make_model("AA", "A-", "AA")
        with_gaps = TridentScore(blosum62, factor_a=1, factor_b=1, factor_c=3).score(
            make_model("AA", "A-", "AA")
        )
        without = TridentScore(blosum62, factor_a=1, factor_b=1, factor_c=0).score(model)
        assert without[1] > with_gaps[1]


class TestStatisticFactory:
    """Tests for statistic selection."""

    def test_get_statistic(self, blosum62):
        assert isinstance(get_statistic("wentropy"), WeightedEntropyScore)
        assert isinstance(get_statistic("JENSEN"), JensenShannonScore)
        trident = get_statistic("trident", matrix=blosum62, factor_c=2.0)
        assert isinstance(trident, TridentScore)
        assert trident.factor_c == 2.0

    def test_unknown_statistic(self):
        with pytest.raises(ValueError, match="Unknown statistic"):
            get_statistic("bogus")

    def test_trident_requires_matrix(self):
        with pytest.raises(ValueError, match="substitution matrix"):
            get_statistic("trident")


class TestDiagnostics:
    """Tests for the verbose alignment report."""

    def test_format_listing(self):
        assert format_listing([0.5, 2, "A", -12.0]) == "0.5;2;A;-12;"

    def test_alignment_diagnostics(self, caplog):
        """Test the DEBUG report of a model with a gap-rich column."""
        caplog.set_level(logging.DEBUG, logger="mstatx")
        model = make_model("A-", "AC", "AG")
        log_alignment_diagnostics(model)

        messages = caplog.messages
        assert messages[messages.index("Alphabet :") + 1] == "A;-;C;G;"
        assert messages[messages.index("Multiple Alignment :") + 1] == "A-"
        assert messages[messages.index("AA Frequencies :") + 1] == "0.6;0.2;0.2;0.2;"
        assert messages[messages.index("Gap counts :") + 1] == "0;1;"
        assert messages[messages.index("AA Entropy :") + 1] == "0;-12;"
        assert messages[messages.index("AA Types :") + 1] == "1;3;"

    def test_diagnostics_silent_without_debug(self, caplog):
        caplog.set_level(logging.INFO, logger="mstatx")
        log_alignment_diagnostics(make_model("A-", "AC", "AG"))
        assert "Alphabet :" not in caplog.messages

    def test_sequence_weights_reported(self, caplog):
        """Test that the Henikoff weights are listed per sequence."""
        caplog.set_level(logging.DEBUG, logger="mstatx")
        model = make_model("A-", "AC", "AG")
        weights = henikoff_weights(model)

        messages = caplog.messages
        start = messages.index("Seq weights :")
        assert messages[start + 1:start + 4] == ["  0.333333  s0", "  0.333333  s1", "  0.333333  s2"]
        assert weights == pytest.approx([1 / 3] * 3)

    def test_debug_does_not_change_scores(self, caplog, small_model):
        """Test that the verbose report leaves the scores untouched."""
        caplog.set_level(logging.INFO, logger="mstatx")
        quiet = JensenShannonScore().score(small_model)
        caplog.set_level(logging.DEBUG, logger="mstatx")
        verbose = JensenShannonScore().score(small_model)

        assert "Seq weights :" in caplog.messages
        assert np.array_equal(quiet, verbose)


class TestOutput:
    """Tests for score files and column tables."""

    def test_write_scores(self, tmp_path, small_model):
        """Test one value per line in column order."""
        scores = score_alignment(small_model, WeightedEntropyScore())
        out = write_scores(scores, tmp_path / "scores.txt")

        lines = out.read_text().splitlines()
        assert len(lines) == 4
        assert float(lines[0]) == pytest.approx(1.0)
        assert float(lines[2]) == pytest.approx(scores[2], rel=1e-5)

    def test_write_scores_bad_destination(self, tmp_path):
        """Test error when the output cannot be created."""
        with pytest.raises(OSError):
            write_scores([1.0], tmp_path / "missing_dir" / "scores.txt")

    def test_column_summary_sentinel(self):
        """Test gap-rich columns show the sentinel entropy."""
        model = make_model("A-", "AC", "AG")
        df = column_summary(model, np.array([1.0, 0.5]))

        assert list(df["COLUMN"]) == [1, 2]
        assert df.loc[1, "ENTROPY"] == GAP_RICH_SENTINEL
        assert df.loc[0, "ENTROPY"] == 0.0
        assert df.loc[1, "TYPES"] == "-CG"
        assert list(df["SCORE"]) == [1.0, 0.5]

    def test_conservation_summary(self, small_model):
        summary = get_conservation_summary(small_model, np.array([1.0, 1.0, 0.5, 0.5]))
        assert summary["num_columns"] == 4
        assert summary["mean_score"] == pytest.approx(0.75)
        assert summary["gap_rich_columns"] == 0

    def test_score_alignment_file(self, tmp_path):
        """Test the whole pipeline with a column table."""
        aln = tmp_path / "aln.fasta"
        aln.write_text(">a\nAAAA\n>b\nAAAT\n>c\nAAGA\n")
        config = Config(statistic="trident", output_name=tmp_path / "out.stat")

        scores = score_alignment_file(aln, config, table_path=tmp_path / "cols.tsv")

        assert len(scores) == 4
        assert len((tmp_path / "out.stat").read_text().splitlines()) == 4
        table = pd.read_csv(tmp_path / "cols.tsv", sep="\t")
        assert list(table.columns) == [
            "COLUMN", "GAP_COUNT", "GAP_FRACTION", "TYPE_COUNT", "TYPES", "ENTROPY", "SCORE",
        ]
        assert len(table) == 4
