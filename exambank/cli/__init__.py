"""Command-line tools for ExamBank.

- ``python -m exambank.cli ingest`` ingests a local file or a signed URL.
- ``python -m exambank.cli sync`` runs the consistency sync.
- ``python -m exambank.cli stats`` prints store counts and API usage.
- ``python -m exambank.cli search`` queries the chunk corpus.

Heavy imports (providers, the FastAPI app) are deferred inside functions so
``--help`` stays fast.
"""
