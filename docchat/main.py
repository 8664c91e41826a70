"""Quart application exposing document upload, listing and chat."""
import asyncio
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from quart import Quart, jsonify, request

from docchat import config
from docchat.documents import DocumentStore
from docchat.errors import (
    DocumentParseError,
    EmbeddingServiceError,
    GenerationServiceError,
    IndexCorruptError,
    InvalidConfigurationError,
    UnsupportedFileTypeError,
)
from docchat.logging_setup import configure_logging
from docchat.rag.extract import is_supported, supported_extensions
from docchat.rag.pipeline import RagPipeline, get_pipeline

logger = structlog.get_logger()


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(min_length=1, max_length=4000)
    top_k: Optional[int] = Field(default=None, ge=1, le=50)


def create_app(
    pipeline: Optional[RagPipeline] = None,
    documents: Optional[DocumentStore] = None,
) -> Quart:
    """Build the application.

    Args:
        pipeline: RAG pipeline (defaults to the process-wide instance)
        documents: Upload storage (defaults to config.SHARED_FOLDER)
    """
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES

    pipeline = pipeline or get_pipeline()
    documents = documents or DocumentStore()

    @app.route("/api/upload", methods=["POST"])
    async def upload():
        """Store an uploaded file and index its text.

        Expects multipart form data with a ``file`` field.

        Returns JSON:
        {
            "success": true,
            "name": "original filename",
            "chunks": 3
        }
        """
        files = await request.files
        file = files.get("file")

        if file is None or not file.filename:
            return jsonify({"error": "Missing 'file' in form data"}), 400

        if not is_supported(file.filename):
            return jsonify({
                "error": f"Unsupported file type: {file.filename}",
                "supported": supported_extensions(),
            }), 415

        try:
            dest = await asyncio.to_thread(documents.save, file.filename, file.read())
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        # Only indexed documents stay listed
        try:
            result = await pipeline.ingest_file(dest)
        except Exception:
            await asyncio.to_thread(dest.unlink, missing_ok=True)
            logger.warning("upload_discarded", name=dest.name)
            raise

        logger.info(
            "upload_ingested",
            name=dest.name,
            chunks=result.chunks_created,
        )

        return jsonify({
            "success": True,
            "name": dest.name,
            "chunks": result.chunks_created,
        })

    @app.route("/api/documents", methods=["GET"])
    async def list_documents():
        return jsonify([doc.to_dict() for doc in documents.list_documents()])

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a question from the indexed documents.

        Expects JSON body:
        {
            "prompt": "user question",
            "top_k": 4  // optional
        }

        Returns JSON:
        {
            "answer": "model answer citing [1], [2]...",
            "contexts": [{"text": "...", "source": "file.txt"}, ...]
        }
        """
        data = await request.get_json(silent=True)

        try:
            body = ChatRequest.model_validate(data or {})
        except ValidationError as e:
            logger.warning("invalid_chat_request", errors=e.error_count())
            return jsonify({
                "error": "Invalid request body",
                "details": e.errors(include_url=False, include_context=False),
            }), 400

        logger.info("chat_request_received", prompt_length=len(body.prompt))

        result = await pipeline.query(body.prompt, k=body.top_k)
        return jsonify(result.to_dict())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - report whether the index can be read."""
        stats = await pipeline.get_stats()
        healthy = stats["status"] != "corrupt"
        stats["status_ok"] = healthy
        return jsonify(stats), 200 if healthy else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(UnsupportedFileTypeError)
    async def unsupported_file(error):
        return jsonify({"error": str(error)}), 415

    @app.errorhandler(DocumentParseError)
    async def unparseable_document(error):
        logger.warning("document_parse_failed", error=str(error))
        return jsonify({"error": str(error)}), 422

    @app.errorhandler(EmbeddingServiceError)
    @app.errorhandler(GenerationServiceError)
    async def upstream_error(error):
        logger.error(
            "upstream_service_error",
            error=str(error),
            error_type=type(error).__name__,
        )
        return jsonify({"error": str(error)}), 502

    @app.errorhandler(IndexCorruptError)
    @app.errorhandler(InvalidConfigurationError)
    async def server_error(error):
        logger.error(
            "pipeline_error",
            error=str(error),
            error_type=type(error).__name__,
        )
        return jsonify({"error": str(error)}), 500

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    return app


if __name__ == "__main__":
    configure_logging()
    # For development - use hypercorn in production
    create_app().run(host="0.0.0.0", port=5000, debug=True)
