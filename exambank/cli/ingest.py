"""Command line for the ExamBank ingestion pipeline.

Usage::

    python -m exambank.cli ingest --file provas_2023.zip
    python -m exambank.cli ingest --url "https://bucket/...signed..." --filename enare_2024.pdf
    python -m exambank.cli sync
    python -m exambank.cli stats
    python -m exambank.cli search "conduta na cetoacidose diabética" --top-k 5

Every command prints one JSON document to stdout with camelCase keys;
``ingest`` prints the same ``{success, results | error}`` payload the API
returns.  Log output goes to stderr (WARNING and up, INFO with
``--verbose``) so stdout stays parseable.  Provider and store imports are
deferred so ``--help`` stays fast.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from exambank.config.settings import Settings
from exambank.utils.errors import ExamBankError

_DEFAULT_MIN_SIMILARITY = 0.3


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _configure_cli_logging(verbose: bool) -> None:
    """Send all log output to stderr.

    Must run after ``exambank.main`` is imported: that module configures
    logging to stdout at import time.
    """
    from exambank.utils.logging import configure_logging

    configure_logging(log_level="INFO" if verbose else "WARNING", stream=sys.stderr)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, service) -> int:  # noqa: ANN001
    """Ingest a local file or a signed URL; exit code 1 when the batch aborted."""
    if args.file:
        path = Path(args.file)
        response = await service.ingest(
            path.read_bytes(),
            args.filename or path.name,
            public_url=args.public_url,
        )
    else:
        filename = args.filename or args.url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
        response = await service.ingest_from_url(args.url, filename, public_url=args.public_url)

    _emit(response.to_payload())
    return 0 if response.success else 1


async def _handle_sync(consistency_sync) -> int:  # noqa: ANN001
    """Run the sync on its own; it needs the store only, no model keys."""
    try:
        report = await consistency_sync.run()
    except ExamBankError as exc:
        _emit({"success": False, "error": f"Consistency sync failed: {exc}"})
        return 1
    _emit({"success": True, "dbSync": report.model_dump(mode="json", by_alias=True)})
    return 0


async def _handle_stats(store, usage_tracker) -> int:  # noqa: ANN001
    counts = await store.get_counts()
    usage = await usage_tracker.get_summary()
    _emit(
        {
            "documents": counts["documents"],
            "questions": counts["questions"],
            "embeddings": counts["embeddings"],
            "usage": {
                "calls": usage["calls"],
                "tokensInput": usage["tokens_input"],
                "tokensOutput": usage["tokens_output"],
                "costUsd": usage["cost_usd"],
            },
        }
    )
    return 0


async def _handle_search(args: argparse.Namespace, store, embedding_provider) -> int:  # noqa: ANN001
    vector = await embedding_provider.embed_single(args.query)
    hits = await store.search_chunks(vector, top_k=args.top_k, min_similarity=args.min_similarity)
    _emit(
        [
            {
                "chunkId": hit.chunk_id,
                "documentId": hit.document_id,
                "similarity": round(hit.similarity, 4),
                "sourceFilename": hit.metadata.get("source_filename"),
                "content": hit.content,
            }
            for hit in hits
        ]
    )
    return 0


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    """Build only what *args.command* needs, then dispatch."""
    import httpx

    from exambank.config.loader import PipelineConfig, load_config
    from exambank.main import _build_embedding_provider, _build_llm_provider, _build_notifier, build_ingestion_service
    from exambank.providers.store.sqlite_question_store import SQLiteQuestionStore
    from exambank.providers.usage.sqlite_usage_tracker import SQLiteUsageTracker
    from exambank.services.ingestion.consistency_sync import ConsistencySync

    _configure_cli_logging(getattr(args, "verbose", False))

    store = SQLiteQuestionStore(db_path=app_settings.database_path)
    usage_tracker = SQLiteUsageTracker(db_path=app_settings.database_path)
    await store.initialize()
    await usage_tracker.initialize()

    if args.command == "stats":
        return await _handle_stats(store, usage_tracker)
    if args.command == "sync":
        return await _handle_sync(ConsistencySync(store=store))

    embedding_provider = _build_embedding_provider(app_settings, usage_tracker=usage_tracker)
    if args.command == "search":
        return await _handle_search(args, store, embedding_provider)

    async with httpx.AsyncClient(timeout=60.0) as http_client:
        service = build_ingestion_service(
            PipelineConfig.from_config(load_config(app_settings.config_path, settings=app_settings)),
            store=store,
            llm_provider=_build_llm_provider(app_settings, usage_tracker=usage_tracker),
            embedding_provider=embedding_provider,
            http_client=http_client,
            notifier=_build_notifier(app_settings, http_client),
        )
        return await _handle_ingest(args, service)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ExamBank CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m exambank.cli",
        description="Ingest exam documents into the ExamBank chunk corpus and question bank.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log INFO events to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a document or .zip archive")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a local .pdf/.txt/.md/.zip file")
    source.add_argument("--url", help="Signed download URL of the upload")
    ingest_parser.add_argument("--filename", help="Upload name (defaults to the file or URL basename)")
    ingest_parser.add_argument("--public-url", dest="public_url", help="Public URL stored on new documents")

    # -- sync --
    subparsers.add_parser("sync", help="Reconcile store anomalies and print aggregate counts")

    # -- stats --
    subparsers.add_parser("stats", help="Show store counts and API usage")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Semantic search over the chunk corpus")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--top-k", dest="top_k", type=int, default=5, help="Maximum results (default: 5)")
    search_parser.add_argument(
        "--min-similarity",
        dest="min_similarity",
        type=float,
        default=_DEFAULT_MIN_SIMILARITY,
        help=f"Cosine similarity cutoff (default: {_DEFAULT_MIN_SIMILARITY})",
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run the command and exit with its status code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except ExamBankError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
