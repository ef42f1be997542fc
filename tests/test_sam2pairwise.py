"""
Tests for the sam2pairwise.py entry script.
"""
import pandas as pd
import pytest

import sam2pairwise


class TestCheckArgs:
    """Tests for argument validation."""

    @pytest.mark.parametrize("argv", [
        ["-l", ".."],
        ["-m", "CT"],
        ["-m", "C>TT"],
        ["-f", "-r"],
        ["-q", "-1"],
        ["-n", "-5"],
        ["-j", "0"],
    ])
    def test_invalid(self, argv, temp_file):
        """Unusable arguments raise ValueError before any output."""
        path = temp_file("in.sam", "")
        with pytest.raises(ValueError):
            sam2pairwise.main(["-i", str(path), "--quiet"] + argv)

    def test_mark_without_mutation_warns(self, temp_file):
        """A custom mark without a mutation is pointless."""
        path = temp_file("in.sam", "")
        with pytest.warns(UserWarning, match="--mark"):
            sam2pairwise.main(["-i", str(path), "--quiet", "-l", "*"])

    def test_highlight_config(self):
        """Arguments map onto a HighlightConfig."""
        args = sam2pairwise.build_parser().parse_args(["-m", "C>T", "-l", "*", "-q", "20"])
        highlight = sam2pairwise.make_highlight_config(args)
        assert highlight.known_mutation == ("C", "T")
        assert highlight.mark_char == "*"
        assert highlight.quality_cutoff == 20

    def test_zero_cutoff_disables(self):
        """-q 0 turns the quality styling off."""
        args = sam2pairwise.build_parser().parse_args([])
        assert sam2pairwise.make_highlight_config(args).quality_cutoff is None


class TestMain:
    """End-to-end runs through main()."""

    def test_plain_output(self, temp_file, sam_line, capsys):
        """Records are printed as four lines plus a separator."""
        path = temp_file("in.sam", "@HD\tVN:1.6\n" + sam_line(cigar="16M", seq="ACGTACGTACGTACGT", qual="I" * 16, tags=("MD:Z:5A10",)))
        assert sam2pairwise.main(["-i", str(path), "-o", "plain", "--quiet"]) == 0
        out = capsys.readouterr().out
        assert out.splitlines() == [
            "read1 0 chr1 100 16M 5A10",
            "ACGTACGTACGTACGT",
            "||||| ||||||||||",
            "ACGTAAGTACGTACGT",
            "",
        ]

    def test_gzipped_input_and_tags(self, temp_file, sam_line, capsys):
        """Gzipped SAM is read and -t picks the info-line tags."""
        path = temp_file("in.sam.gz", sam_line(tags=("MD:Z:4", "NM:i:0")))
        sam2pairwise.main(["-i", str(path), "-o", "plain", "--quiet", "-t", "NM", "-t", "MD"])
        assert capsys.readouterr().out.splitlines()[0] == "read1 0 chr1 100 4M 0|4"

    def test_known_mutation_mark(self, temp_file, sam_line, capsys):
        """The expected substitution is marked with -l."""
        path = temp_file("in.sam", sam_line(cigar="7M", seq="AAATAAA", qual="IIIIIII", tags=("MD:Z:3C3",)))
        sam2pairwise.main(["-i", str(path), "-o", "plain", "--quiet", "-m", "C>T", "-l", "."])
        assert capsys.readouterr().out.splitlines()[2] == "|||.|||"

    def test_forward_filter(self, temp_file, sam_line, capsys):
        """-f drops reverse reads."""
        path = temp_file("in.sam", sam_line(qname="fwd", flag="0") + sam_line(qname="rev", flag="16"))
        sam2pairwise.main(["-i", str(path), "-o", "plain", "--quiet", "-f"])
        out = capsys.readouterr().out
        assert "fwd" in out
        assert "rev" not in out

    def test_summary_file(self, temp_file, temp_dir, sam_line, capsys):
        """-s writes per-record counts and the run summary goes to stderr."""
        path = temp_file("in.sam", sam_line(qname="r1", tags=("MD:Z:1A2",)) + sam_line(qname="r2", cigar="9M"))
        summary_path = temp_dir / "counts.tsv"
        assert sam2pairwise.main(["-i", str(path), "-o", "plain", "-s", str(summary_path)]) == 0
        df = pd.read_csv(summary_path, sep="\t")
        assert list(df["qname"]) == ["r1"]
        assert df.loc[0, "mismatches"] == 1
        err = capsys.readouterr().err
        assert "1/2" in err

    def test_color_always(self, temp_file, sam_line, capsys):
        """--color always forces ANSI codes into piped output."""
        path = temp_file("in.sam", sam_line(tags=("MD:Z:1A2",)))
        sam2pairwise.main(["-i", str(path), "--quiet", "-c", "always"])
        assert "\x1b[" in capsys.readouterr().out
