import string
import unittest

from project_vectordb.errors import MalformedInputError
from project_vectordb.ingestion.chunking import (
    ChunkingConfig,
    TextChunker,
    create_chunks,
    sanitize_content,
)
from project_vectordb.ingestion.identity import generate_chunk_id


def _text(length: int) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(alphabet[index % len(alphabet)] for index in range(length))


class CreateChunksTests(unittest.TestCase):
    def test_short_text_is_single_chunk(self) -> None:
        text = _text(800)
        self.assertEqual(create_chunks(text, 800, 200), [text])

    def test_empty_text_yields_one_empty_chunk(self) -> None:
        self.assertEqual(create_chunks("", 800, 200), [""])

    def test_thousand_characters_split_into_two_windows(self) -> None:
        text = _text(1000)
        chunks = create_chunks(text, 800, 200)
        self.assertEqual(len(chunks), 2)
        self.assertEqual(chunks[0], text[0:800])
        self.assertEqual(chunks[1], text[600:1000])

    def test_non_overlapping_segments_reconstruct_text(self) -> None:
        for length, size, overlap in [(1000, 800, 200), (2501, 300, 50), (97, 10, 9), (64, 8, 0)]:
            with self.subTest(length=length, size=size, overlap=overlap):
                text = _text(length)
                chunks = create_chunks(text, size, overlap)
                rebuilt = chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])
                self.assertEqual(rebuilt, text)
                self.assertTrue(all(len(chunk) <= size for chunk in chunks))

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunks = create_chunks(_text(2000), 500, 100)
        for previous, current in zip(chunks, chunks[1:]):
            self.assertEqual(previous[-100:], current[:100])

    def test_rejects_overlap_not_smaller_than_size(self) -> None:
        with self.assertRaises(MalformedInputError):
            create_chunks(_text(50), 10, 10)
        with self.assertRaises(MalformedInputError):
            create_chunks(_text(50), 10, 25)

    def test_rejects_non_positive_size_and_negative_overlap(self) -> None:
        with self.assertRaises(MalformedInputError):
            create_chunks("abc", 0, 0)
        with self.assertRaises(MalformedInputError):
            create_chunks("abc", 10, -1)

    def test_config_validates_on_creation(self) -> None:
        with self.assertRaises(MalformedInputError):
            ChunkingConfig(chunk_size=100, chunk_overlap=100)
        self.assertEqual(ChunkingConfig().step, 600)


class SanitizeContentTests(unittest.TestCase):
    def test_strips_control_characters_but_keeps_newlines(self) -> None:
        raw = "  # Title" + chr(0) + "\n\nBody" + chr(7) + "\ttext" + chr(0x7F) + "  "
        self.assertEqual(sanitize_content(raw), "# Title\n\nBody\ttext")

    def test_removes_replacement_characters_and_broken_escapes(self) -> None:
        raw = "value" + chr(0xFFFD) + " \\x4 and \\u12 end"
        self.assertEqual(sanitize_content(raw), "value  and  end")

    def test_keeps_complete_escape_sequences(self) -> None:
        self.assertEqual(sanitize_content("\\x41 \\u0041"), "\\x41 \\u0041")

    def test_none_and_empty(self) -> None:
        self.assertEqual(sanitize_content(None), "")
        self.assertEqual(sanitize_content(""), "")

    def test_chunker_sanitizes_before_windowing(self) -> None:
        chunker = TextChunker(ChunkingConfig(chunk_size=10, chunk_overlap=2))
        chunks = chunker.chunk(chr(1) + "abcdefghijklmno" + chr(2))
        self.assertEqual(chunks, ["abcdefghij", "ijklmno"])


class ChunkIdentityTests(unittest.TestCase):
    def test_same_input_same_id(self) -> None:
        first = generate_chunk_id("docs/architecture/overview.md", 3)
        second = generate_chunk_id("docs/architecture/overview.md", 3)
        self.assertEqual(first, second)
        self.assertEqual(len(first), 16)
        self.assertTrue(all(char in "0123456789abcdef" for char in first))

    def test_matches_sha256_prefix(self) -> None:
        # sha256("a.md-0")
        import hashlib

        expected = hashlib.sha256(b"a.md-0").hexdigest()[:16]
        self.assertEqual(generate_chunk_id("a.md", 0), expected)

    def test_different_indexes_give_different_ids(self) -> None:
        ids = {generate_chunk_id("docs/readme.md", index) for index in range(500)}
        self.assertEqual(len(ids), 500)

    def test_custom_length(self) -> None:
        self.assertEqual(len(generate_chunk_id("a.md", 1, length=32)), 32)
        with self.assertRaises(ValueError):
            generate_chunk_id("a.md", 1, length=0)


if __name__ == "__main__":
    unittest.main()
