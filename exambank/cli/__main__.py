"""Allow ``python -m exambank.cli`` execution."""

from exambank.cli.ingest import main

main()
