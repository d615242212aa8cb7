"""ExamBank FastAPI application entry point.

Wires together all providers, services and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

:func:`build_ingestion_service` is shared with the CLI so both entry points
assemble the pipeline the same way.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from exambank.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from exambank.api.routes import router as api_router
from exambank.config.loader import PipelineConfig, load_config
from exambank.config.settings import Settings
from exambank.interfaces.embedding_provider import IEmbeddingProvider
from exambank.interfaces.llm_provider import ILLMProvider
from exambank.interfaces.notification_provider import INotificationProvider
from exambank.interfaces.question_store import IQuestionStore
from exambank.interfaces.usage_tracker import IUsageTracker
from exambank.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from exambank.providers.llm.anthropic_provider import AnthropicLLMProvider
from exambank.providers.llm.openai_provider import OpenAILLMProvider
from exambank.providers.notification.webhook_notification_provider import WebhookNotificationProvider
from exambank.providers.storage.http_object_store import HTTPObjectStoreProvider
from exambank.providers.store.sqlite_question_store import SQLiteQuestionStore
from exambank.providers.usage.sqlite_usage_tracker import SQLiteUsageTracker
from exambank.services.ingestion import (
    ArchiveExpander,
    AutoFixer,
    ConsistencySync,
    DocumentRegistrar,
    EmbeddingIndexer,
    IngestionService,
    QualityValidator,
    QuestionExtractor,
    TextChunker,
    TextExtractor,
)
from exambank.utils.errors import ConfigurationError
from exambank.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings.config_path, settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings, usage_tracker: IUsageTracker | None = None) -> ILLMProvider:
    """Select the completion provider.

    ``LLM_PROVIDER`` may force ``openai`` or ``anthropic``; ``auto`` prefers
    OpenAI (its key is needed for embeddings anyway), then Anthropic.
    """
    choice = app_settings.llm_provider.lower()
    if choice not in ("auto", "openai", "anthropic"):
        raise ConfigurationError(message=f"Unknown LLM_PROVIDER {app_settings.llm_provider!r}")

    if choice in ("auto", "openai") and app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings, usage_tracker=usage_tracker)
    if choice in ("auto", "anthropic") and app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings, usage_tracker=usage_tracker)

    raise ConfigurationError(
        message=(
            "No completion provider configured: set OPENAI_API_KEY or ANTHROPIC_API_KEY "
            f"(LLM_PROVIDER={app_settings.llm_provider})"
        )
    )


def _build_embedding_provider(
    app_settings: Settings,
    usage_tracker: IUsageTracker | None = None,
) -> IEmbeddingProvider:
    """Return the OpenAI embedding provider; the corpus is 1536-dimensional."""
    if not app_settings.openai_api_key:
        raise ConfigurationError(
            message="No embedding provider configured: set OPENAI_API_KEY",
            provider_name="openai_embedding",
        )
    return OpenAIEmbeddingProvider(settings=app_settings, usage_tracker=usage_tracker)


def _build_notifier(app_settings: Settings, http_client: httpx.AsyncClient) -> INotificationProvider | None:
    if not app_settings.notification_webhook_url:
        return None
    return WebhookNotificationProvider(http_client=http_client, webhook_url=app_settings.notification_webhook_url)


# ---------------------------------------------------------------------------
# Pipeline assembly
# ---------------------------------------------------------------------------


def build_ingestion_service(
    pipeline_config: PipelineConfig,
    store: IQuestionStore,
    llm_provider: ILLMProvider,
    embedding_provider: IEmbeddingProvider,
    http_client: httpx.AsyncClient | None = None,
    notifier: INotificationProvider | None = None,
) -> IngestionService:
    """Wire the nine pipeline components into an :class:`IngestionService`.

    Parameters
    ----------
    pipeline_config:
        Tuning values from ``config/config.yaml``.
    store:
        Persistent store for documents, questions and chunks.
    llm_provider:
        Completion provider for extraction and repair prompts.
    embedding_provider:
        Embedding provider for the chunk corpus.
    http_client:
        Shared client for signed-URL downloads; URL ingestion is
        unavailable without one.
    notifier:
        Optional downstream notification sink.
    """
    object_store = HTTPObjectStoreProvider(http_client=http_client) if http_client is not None else None

    return IngestionService(
        store=store,
        expander=ArchiveExpander(),
        text_extractor=TextExtractor(),
        chunker=TextChunker(
            max_tokens=pipeline_config.chunk_max_tokens,
            overlap=pipeline_config.chunk_overlap_chars,
        ),
        registrar=DocumentRegistrar(
            store=store,
            organizations=pipeline_config.organizations,
            default_organization=pipeline_config.default_organization,
        ),
        indexer=EmbeddingIndexer(embedding_provider=embedding_provider, store=store),
        question_extractor=QuestionExtractor(
            llm_provider=llm_provider,
            char_budget=pipeline_config.extraction_char_budget,
            max_questions=pipeline_config.max_questions_per_file,
        ),
        validator=QualityValidator(),
        auto_fixer=AutoFixer(
            llm_provider=llm_provider,
            store=store,
            batch_size=pipeline_config.auto_fix_batch_size,
            context_chunks=pipeline_config.auto_fix_context_chunks,
            context_chars=pipeline_config.auto_fix_context_chars,
            max_passes=pipeline_config.auto_fix_max_passes,
        ),
        consistency_sync=ConsistencySync(store=store),
        object_store=object_store,
        notifier=notifier,
    )


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    http_client = httpx.AsyncClient(timeout=60.0)

    store = SQLiteQuestionStore(db_path=app_settings.database_path)
    usage_tracker = SQLiteUsageTracker(db_path=app_settings.database_path)
    llm_provider = _build_llm_provider(app_settings, usage_tracker=usage_tracker)
    embedding_provider = _build_embedding_provider(app_settings, usage_tracker=usage_tracker)
    notifier = _build_notifier(app_settings, http_client)

    ingestion_service = build_ingestion_service(
        PipelineConfig.from_config(app_config),
        store=store,
        llm_provider=llm_provider,
        embedding_provider=embedding_provider,
        http_client=http_client,
        notifier=notifier,
    )

    provider_registry: dict[str, Any] = {
        "llm": llm_provider.is_available(),
        "llm_provider": llm_provider.get_provider_name(),
        "embedding": embedding_provider.is_available(),
        "embedding_provider": embedding_provider.get_provider_name(),
        "notification": notifier is not None,
    }

    return {
        "http_client": http_client,
        "store": store,
        "usage_tracker": usage_tracker,
        "llm_provider": llm_provider,
        "embedding_provider": embedding_provider,
        "ingestion_service": ingestion_service,
        "provider_registry": provider_registry,
        "settings": app_settings,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise providers and schemas on startup, close the HTTP client on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["store"].initialize()
    await components["usage_tracker"].initialize()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        llm=components["provider_registry"]["llm_provider"],
        database=settings.database_path,
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="ExamBank API",
        version=_VERSION,
        description=(
            "Ingest exam documents and archives, build a semantic-search chunk "
            "corpus and a quality-controlled multiple-choice question bank."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "exambank.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
