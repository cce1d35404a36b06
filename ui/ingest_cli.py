"""Index a lore dump (``$$$``-separated JSON records or JSONL) into the vector index."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from application.use_cases.ingest_lore import DEFAULT_BATCH_SIZE, ingest_records, read_records
from domain.errors import LoreSearchError
from infrastructure.config import ContainerConfig, build_default_container
from ui.logging_utils import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", help="Path to the dataset file (e.g. data/lexicanum/data.jsonl)")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete and recreate the collection before indexing.",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Add to a collection that already has documents.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Documents per index write (default: {DEFAULT_BATCH_SIZE})",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()

    dataset = Path(args.path)
    if not dataset.is_file():
        print(f"Dataset not found at {dataset}.", file=sys.stderr)
        print("Download it first, for example:", file=sys.stderr)
        print(
            "  huggingface-cli download s1arsky/Warhammer_Fantasy_Lexicanum-RAG --local-dir data/lexicanum",
            file=sys.stderr,
        )
        return 1

    container = build_default_container(ContainerConfig.from_env())
    repository = container.repository
    try:
        repository.initialize()
    except LoreSearchError as exc:
        print(f"Failed to connect to the vector index: {exc}", file=sys.stderr)
        return 1

    if args.clear:
        repository.clear()
    existing = repository.document_count()
    if existing and not args.append:
        print(f"Database already has {existing} documents.", file=sys.stderr)
        print("Re-run with --clear to re-ingest or --append to add more documents.", file=sys.stderr)
        return 1

    records = read_records(dataset)
    print(f"Found {len(records)} entries in {dataset}")
    report = ingest_records(records, repository=repository, batch_size=args.batch_size)

    print("Ingestion complete!")
    print(f"  Total records processed: {report.total}")
    print(f"  Documents indexed: {report.indexed}")
    print(f"  Skipped (too short): {report.skipped}")
    print(f"  Errors: {len(report.errors)}")
    print(f"Database now has {repository.document_count()} documents.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
