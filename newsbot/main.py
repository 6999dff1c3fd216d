"""Quart application exposing the news chatbot API."""
import logging
from dataclasses import dataclass
from typing import Literal, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError
from quart import Quart, jsonify, request

from newsbot import __version__, config
from newsbot.errors import NewsbotError
from newsbot.llm_client import FALLBACK_RESPONSE, GeminiClient
from newsbot.memory import ConversationManager, ExpiringSessionStore
from newsbot.rag.chunker import Chunker
from newsbot.rag.embeddings import EmbeddingProvider
from newsbot.rag.gate import RetrievalGate
from newsbot.rag.ingest import IngestionPipeline
from newsbot.rag.query import QueryPipeline
from newsbot.rag.store_faiss import FAISSVectorIndex
from newsbot.sources.feeds import FeedFetcher
from newsbot.sources.models import ArticleRecord
from newsbot.sources.sample_data import sample_records

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=config.MAX_MESSAGE_LENGTH)
    session_id: Optional[str] = None


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=config.MAX_MESSAGE_LENGTH)
    limit: int = Field(default=config.RETRIEVAL_TOP_K, ge=1, le=50)


class DocumentRequest(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    url: str = ""
    publish_date: Optional[str] = None


class IngestRequest(BaseModel):
    source: Literal["feeds", "sample"] = "sample"
    rebuild: bool = False


@dataclass
class Services:
    """Collaborators shared by the request handlers."""

    index: FAISSVectorIndex
    embedder: EmbeddingProvider
    generator: GeminiClient
    query_pipeline: QueryPipeline
    ingestion_pipeline: IngestionPipeline
    conversations: ConversationManager
    feed_fetcher: FeedFetcher


def build_services() -> Services:
    """Wire the default services from configuration."""
    index = FAISSVectorIndex()
    embedder = EmbeddingProvider()
    generator = GeminiClient()

    return Services(
        index=index,
        embedder=embedder,
        generator=generator,
        query_pipeline=QueryPipeline(embedder, index, RetrievalGate(), generator),
        ingestion_pipeline=IngestionPipeline(Chunker(), embedder, index),
        conversations=ConversationManager(ExpiringSessionStore()),
        feed_fetcher=FeedFetcher(),
    )


async def check_upstreams(services: Services) -> dict:
    """Run one connection check against each remote API.

    A failed check degrades the service instead of stopping startup: embeddings
    fall back to local vectors and generation to the canned response.
    """
    embeddings_ok = await services.embedder.test_connection()

    try:
        reply = await services.generator.test_connection()
        generation_ok = reply != FALLBACK_RESPONSE
    except NewsbotError as e:
        logger.warning("generation_connection_check_failed", error=str(e))
        generation_ok = False

    logger.info("upstream_checks_done", embeddings=embeddings_ok, generation=generation_ok)
    return {"embeddings": embeddings_ok, "generation": generation_ok}


def _validation_error(e: ValidationError):
    messages = [
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in e.errors()
    ]
    return jsonify({"error": "Invalid request", "details": messages}), 400


async def _json_body() -> dict:
    return await request.get_json(silent=True) or {}


def create_app(services: Optional[Services] = None) -> Quart:
    """Build the Quart app around the given (or default) services."""
    services = services or build_services()
    app = Quart(__name__)
    app.config["SERVICES"] = services

    @app.before_serving
    async def open_index():
        await services.index.ensure_collection(services.embedder.dimension)
        stats = await services.index.stats()
        logger.info("index_ready", **stats)

        app.config["UPSTREAM_CHECKS"] = await check_upstreams(services)

        if config.SEED_ON_EMPTY_INDEX and stats["entry_count"] == 0:
            logger.info("seeding_empty_index_with_samples")
            await services.ingestion_pipeline.ingest_records(sample_records())

    @app.route("/")
    async def index():
        """Service information."""
        return jsonify({
            "success": True,
            "message": "News RAG API is running",
            "version": __version__,
            "endpoints": {
                "health": "/health/ready",
                "chat": "/api/chat",
                "sessions": "/api/sessions",
                "search": "/api/search",
                "topics": "/api/topics",
                "documents": "/api/documents",
                "ingest": "/api/ingest",
            },
        })

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a news question within a session.

        Expects JSON body:
        {
            "message": "user question",
            "session_id": "optional-session-id"  // created if missing
        }
        """
        try:
            body = ChatRequest.model_validate(await _json_body())
        except ValidationError as e:
            return _validation_error(e)

        message = body.message.strip()
        if not message:
            return jsonify({"error": "Message cannot be empty"}), 400

        try:
            conversations = services.conversations
            session_id = body.session_id or conversations.create_session()

            conversations.add_message(session_id, "user", message)

            outcome = await services.query_pipeline.query(message)
            result = outcome.to_dict()

            conversations.add_message(
                session_id, "assistant", outcome.answer, result["sources"]
            )
            conversations.extend_session(session_id)

            logger.info(
                "chat_response_sent",
                session_id=session_id,
                is_in_domain=outcome.is_in_domain,
                sources=len(outcome.sources),
            )

            return jsonify({
                "answer": result["answer"],
                "sources": result["sources"],
                "session_id": session_id,
                "is_in_domain": result["is_in_domain"],
                "retrieved_count": result["retrieved_count"],
                "suggestion": result["suggestion"],
            })

        except Exception as e:
            logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({
                "error": "An error occurred processing your request. Please try again."
            }), 500

    @app.route("/api/sessions", methods=["POST"])
    async def create_session():
        session_id = services.conversations.create_session()
        return jsonify(services.conversations.get_session(session_id)), 201

    @app.route("/api/sessions", methods=["GET"])
    async def list_sessions():
        return jsonify({"sessions": services.conversations.list_sessions()})

    @app.route("/api/sessions/<session_id>/history", methods=["GET"])
    async def session_history(session_id: str):
        """Recent messages of a session; ``?limit=N`` caps the count."""
        if services.conversations.get_session(session_id) is None:
            return jsonify({"error": "Session not found"}), 404

        limit = request.args.get("limit", default=20, type=int)
        messages = services.conversations.get_history(session_id, limit=limit)
        return jsonify({"session_id": session_id, "messages": messages})

    @app.route("/api/sessions/<session_id>", methods=["DELETE"])
    async def delete_session(session_id: str):
        if services.conversations.clear_session(session_id):
            return "", 204
        return jsonify({"error": "Session not found"}), 404

    @app.route("/api/search", methods=["POST"])
    async def search():
        """Raw similarity search, without gating or generation."""
        try:
            body = SearchRequest.model_validate(await _json_body())
        except ValidationError as e:
            return _validation_error(e)

        try:
            results = await services.query_pipeline.search(body.query, body.limit)
        except Exception as e:
            logger.error("search_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": "Search failed"}), 500

        return jsonify({
            "query": body.query,
            "results": [
                {"entry_id": r.entry_id, "score": r.score, "payload": r.payload}
                for r in results
            ],
        })

    @app.route("/api/topics", methods=["GET"])
    async def topics():
        return jsonify(await services.query_pipeline.available_topics())

    @app.route("/api/documents", methods=["POST"])
    async def add_document():
        """Ingest a single uploaded article."""
        try:
            body = DocumentRequest.model_validate(await _json_body())
        except ValidationError as e:
            return _validation_error(e)

        record = ArticleRecord(
            title=body.title,
            content=body.content,
            url=body.url,
            publish_date=body.publish_date,
            source="upload",
        )

        try:
            report = await services.ingestion_pipeline.ingest_records([record])
        except Exception as e:
            logger.error("document_ingest_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": "Failed to add document"}), 500

        if report.document_count == 0:
            return jsonify({"error": "Document content is too short to index"}), 400

        return jsonify({"success": True, **report.to_dict()}), 201

    @app.route("/api/ingest", methods=["POST"])
    async def ingest():
        """Run a full ingestion from the live feeds or the sample corpus."""
        try:
            body = IngestRequest.model_validate(await _json_body())
        except ValidationError as e:
            return _validation_error(e)

        pipeline = services.ingestion_pipeline
        try:
            if body.source == "feeds":
                documents = await services.feed_fetcher.fetch_documents()
                report = await pipeline.ingest(documents, rebuild=body.rebuild)
            else:
                report = await pipeline.ingest_records(sample_records(), rebuild=body.rebuild)
        except Exception as e:
            logger.error("ingest_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": "Ingestion failed"}), 500

        return jsonify({"success": True, "source": body.source, **report.to_dict()})

    @app.route("/health/ready")
    async def health_ready():
        """Readiness check - the index is open and answers stats."""
        try:
            stats = await services.index.stats()
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            return jsonify({"status": "unhealthy", "error": str(e)}), 503

        healthy = bool(stats.get("initialized"))
        checks = {
            "status": "healthy" if healthy else "unhealthy",
            "index": stats,
            "embeddings_remote": services.embedder.remote_enabled,
            "upstream": app.config.get("UPSTREAM_CHECKS"),
        }
        return jsonify(checks), 200 if healthy else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness check - the app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
