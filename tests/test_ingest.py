import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from application.services.lore_repository import LoreRepository
from application.use_cases.ingest_lore import (
    MAX_TEXT_LENGTH,
    ingest_records,
    parse_record,
    read_records,
    split_records,
)
from domain.entities import Category
from domain.errors import MalformedRecordError, UpstreamUnavailableError
from infrastructure.embedding.mean_word_hash_embedder import MeanWordHashEmbedder
from infrastructure.storage.in_memory_vector_index import InMemoryVectorIndex

LONG_TEXT = "The Reikland is the heartland of the Empire, ruled from the city of Altdorf."


def make_record(index: int, **overrides) -> str:
    entry = {
        "id": f"entry-{index}",
        "title": f"Entry {index}",
        "type": "City",
        "content": {"summary": LONG_TEXT, "description": f"Record number {index}."},
    }
    entry.update(overrides)
    return json.dumps(entry)


class TestSplitRecords(unittest.TestCase):
    def test_dollar_separated_dump(self):
        payload = '{"id": "a"}\n$$$\n{"id": "b"}\n$$$\n\n'
        self.assertEqual(split_records(payload), ['{"id": "a"}', '{"id": "b"}'])

    def test_jsonl_with_separator_inside_text(self):
        lines = [make_record(0), make_record(1, content={"summary": "Costs $$$ to enter. " + LONG_TEXT}), make_record(2), make_record(3)]

        chunks = split_records("\n".join(lines) + "\n")

        self.assertEqual(chunks, lines)
        self.assertIn("$$$", parse_record(chunks[1]).text)

    def test_jsonl_dump(self):
        payload = '{"id": "a"}\n\n{"id": "b"}\n'
        self.assertEqual(split_records(payload), ['{"id": "a"}', '{"id": "b"}'])

    def test_read_records_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.jsonl"
            path.write_text(make_record(1) + "\n" + make_record(2) + "\n", encoding="utf-8")
            self.assertEqual(len(read_records(path)), 2)


class TestParseRecord(unittest.TestCase):
    def test_full_record(self):
        raw = json.dumps(
            {
                "id": "karl-franz",
                "title": "Karl Franz",
                "type": "Person",
                "aliases": ["The Emperor"],
                "tags": ["empire", "ruler"],
                "url": "https://example.org/karl-franz",
                "content": {
                    "summary": "Karl Franz is the Emperor of the Empire.",
                    "description": "He rides the griffon Deathclaw into battle.",
                    "text": "Elected Emperor after the death of Luitpold.",
                },
            }
        )

        document = parse_record(raw)

        self.assertEqual(document.id, "karl-franz")
        self.assertEqual(document.title, "Karl Franz")
        self.assertIs(document.category, Category.CHARACTER)
        self.assertEqual(document.aliases, ("The Emperor",))
        self.assertEqual(document.tags, ("empire", "ruler"))
        self.assertEqual(document.source_url, "https://example.org/karl-franz")
        self.assertEqual(
            document.text,
            "Karl Franz is the Emperor of the Empire.\n\n"
            "He rides the griffon Deathclaw into battle.\n\n"
            "Elected Emperor after the death of Luitpold.",
        )

    def test_missing_fields_get_defaults(self):
        document = parse_record({"content": {"text": LONG_TEXT}})

        self.assertTrue(document.id.startswith("entry_"))
        self.assertEqual(document.title, "Unknown")
        self.assertIs(document.category, Category.GENERAL)
        self.assertEqual(document.aliases, ())
        self.assertIsNone(document.source_url)

    def test_short_text_is_skipped(self):
        self.assertIsNone(parse_record({"title": "Stub", "content": {"summary": "Too short."}}))

    def test_title_alone_is_too_short(self):
        self.assertIsNone(parse_record({"title": "Nuln"}))

    def test_long_text_is_truncated(self):
        document = parse_record({"title": "Long", "content": {"text": "w" * (MAX_TEXT_LENGTH + 500)}})
        self.assertEqual(len(document.text), MAX_TEXT_LENGTH)

    def test_malformed_records_raise(self):
        bad_records = [
            "{not json",
            "[1, 2, 3]",
            json.dumps({"title": 5, "content": {"text": LONG_TEXT}}),
            json.dumps({"aliases": "one", "content": {"text": LONG_TEXT}}),
            json.dumps({"content": "plain string"}),
            json.dumps({"content": {"summary": 12}}),
        ]
        for raw in bad_records:
            with self.subTest(raw=raw):
                with self.assertRaises(MalformedRecordError):
                    parse_record(raw)


class TestIngestRecords(unittest.TestCase):
    def setUp(self):
        self.repository = LoreRepository(InMemoryVectorIndex(), MeanWordHashEmbedder(dimension=32))
        self.repository.initialize()

    def test_counts_indexed_skipped_and_errors(self):
        records = [make_record(i) for i in range(120)]
        records.append("{broken")
        records.append(json.dumps({"title": "Stub", "content": {"summary": "short"}}))

        with mock.patch.object(self.repository, "add_documents", wraps=self.repository.add_documents) as spy:
            report = ingest_records(records, repository=self.repository, batch_size=50)

        self.assertEqual(report.total, 122)
        self.assertEqual(report.indexed, 120)
        self.assertEqual(report.skipped, 1)
        self.assertEqual(len(report.errors), 1)
        self.assertEqual(report.errors[0].kind, "record")
        self.assertEqual(report.errors[0].position, 120)
        self.assertEqual([len(call.args[0]) for call in spy.call_args_list], [50, 50, 20])
        self.assertEqual(self.repository.document_count(), 120)

    def test_failed_batch_is_recorded_and_ingestion_continues(self):
        records = [make_record(i) for i in range(6)]
        failures = [2, UpstreamUnavailableError("index went away"), 2]

        with mock.patch.object(self.repository, "add_documents", side_effect=failures):
            report = ingest_records(records, repository=self.repository, batch_size=2)

        self.assertEqual(report.indexed, 4)
        self.assertEqual(len(report.errors), 1)
        self.assertEqual(report.errors[0].kind, "batch")
        self.assertEqual(report.errors[0].position, 2)
        self.assertIn("index went away", report.errors[0].reason)

    def test_duplicate_ids_in_a_batch_keep_the_last_record(self):
        records = [make_record(i) for i in range(5)]
        records.append(make_record(9, id="entry-0", title="Entry 0 revised"))

        report = ingest_records(records, repository=self.repository, batch_size=50)

        self.assertEqual(report.indexed, 5)
        self.assertEqual(report.errors, [])
        self.assertEqual(self.repository.document_count(), 5)
        self.assertIsNone(self.repository.get_by_title("Entry 0"))
        self.assertEqual(self.repository.get_by_title("Entry 0 revised").text, LONG_TEXT + "\n\nRecord number 9.")

    def test_rejects_non_positive_batch_size(self):
        with self.assertRaises(ValueError):
            ingest_records([], repository=self.repository, batch_size=0)


if __name__ == "__main__":
    unittest.main()
