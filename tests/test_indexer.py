"""Unit tests for chunking and document extraction."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from pylogos.indexer import extract_text, is_supported, split_text_into_chunks


class TestChunking:
    """Tests for paragraph-aware chunking."""

    def test_small_paragraphs_are_packed(self):
        text = "First paragraph.\n\nSecond paragraph.\n\n\n   \nThird."
        assert split_text_into_chunks(text, chunk_size=500) == [
            "First paragraph.\n\nSecond paragraph.\n\nThird."
        ]

    def test_flush_before_overflow(self):
        text = "aaaa\n\nbbbb\n\ncccc"
        assert split_text_into_chunks(text, chunk_size=10) == ["aaaa\n\nbbbb", "cccc"]

    def test_oversize_paragraph_hard_split(self):
        text = "short\n\n" + "x" * 25 + "\n\ntail"
        chunks = split_text_into_chunks(text, chunk_size=10)

        assert chunks == ["short", "x" * 10, "x" * 10, "x" * 5, "tail"]

    def test_empty_text(self):
        assert split_text_into_chunks("") == []
        assert split_text_into_chunks(" \n\n \n") == []

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            split_text_into_chunks("text", chunk_size=0)

    @given(st.text(), st.integers(min_value=1, max_value=200))
    def test_chunks_never_exceed_size(self, text: str, chunk_size: int):
        """Property test: every chunk is non-empty and at most chunk_size long."""
        for chunk in split_text_into_chunks(text, chunk_size):
            assert 0 < len(chunk) <= chunk_size

    @given(st.lists(st.text(alphabet="abc ", min_size=1, max_size=30), min_size=1, max_size=10))
    def test_no_content_lost(self, paragraphs: list[str]):
        """Property test: non-whitespace characters survive chunking in order."""
        text = "\n\n".join(paragraphs)
        chunks = split_text_into_chunks(text, chunk_size=40)
        squash = lambda s: "".join(s.split())  # noqa: E731
        assert squash("".join(chunks)) == squash(text)


class TestDocuments:
    """Tests for document text extraction."""

    def test_extract_text_file(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Title\n\nBody", encoding="utf-8")
        assert extract_text(path) == "# Title\n\nBody"

    def test_extract_bytes_requires_filename(self):
        with pytest.raises(ValueError):
            extract_text(b"hello")

    def test_extract_bytes(self):
        assert extract_text("héllo".encode("utf-8"), "a.txt") == "héllo"

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported document type"):
            extract_text(b"\x00", "archive.zip")

    def test_is_supported(self):
        assert is_supported("report.PDF")
        assert is_supported("notes.txt")
        assert not is_supported("image.png")
