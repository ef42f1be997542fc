"""
Pytest fixtures for sam2pairwise tests.

Provides temporary files, highlight configurations and a small builder for
tab-separated SAM lines.
"""
import gzip
import tempfile
from pathlib import Path

import pytest

from pairwise.PairwiseClasses import HighlightConfig


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_file(temp_dir):
    """Create a temporary text file, gzipped when the name ends in .gz."""
    def _create_file(name: str, content: str = "") -> Path:
        file_path = temp_dir / name
        if name.endswith(".gz"):
            with gzip.open(file_path, "wt") as handle:
                handle.write(content)
        else:
            file_path.write_text(content)
        return file_path
    return _create_file


@pytest.fixture
def plain_highlight():
    """No known mutation, no quality cutoff."""
    return HighlightConfig()


@pytest.fixture
def c_to_t_highlight():
    """Known C>T mutation marked with '.'."""
    return HighlightConfig(("C", "T"), mark_char=".")


@pytest.fixture
def sam_line():
    """Build a SAM line from the columns that matter here."""
    def _build(qname="read1", flag="0", cigar="4M", seq="ACGT", qual="IIII", tags=("MD:Z:4",), rname="chr1", pos="100"):
        fields = [qname, flag, rname, pos, "60", cigar, "*", "0", "0", seq, qual]
        fields.extend(tags)
        return "\t".join(fields) + "\n"
    return _build
