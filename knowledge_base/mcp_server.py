"""MCP server exposing remember/recall tools using fastmcp"""

import asyncio
import logging

from fastmcp import FastMCP
from starlette.responses import JSONResponse

from knowledge_base.config import config
from knowledge_base.errors import KnowledgeBaseError, ValidationError
from knowledge_base.models.search_result import RecallOutput, RememberResult
from knowledge_base.services.embedder import Embedder
from knowledge_base.services.embedding_provider import create_embedding_provider
from knowledge_base.services.knowledge_base import GENERIC_FAILURE_MESSAGE, KnowledgeBase
from knowledge_base.services.telemetry import get_telemetry_service
from knowledge_base.services.vector_store import VectorStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

NO_INFORMATION_MESSAGE = "No relevant information found in the knowledge base."
RECALL_FAILURE_MESSAGE = "Could not search the knowledge base, please try again."

mcp = FastMCP(name="personal-knowledge-base", version="1.0.0")

# Initialized on first tool call
_knowledge_base: KnowledgeBase | None = None
_init_lock = asyncio.Lock()


async def _get_knowledge_base() -> KnowledgeBase:
    """Get or initialize the knowledge base and its store and embedder"""
    global _knowledge_base

    async with _init_lock:
        if _knowledge_base is None:
            vector_store = VectorStore(config.db_path)
            await vector_store.initialize()

            embedder = Embedder(create_embedding_provider())
            _knowledge_base = KnowledgeBase(vector_store, embedder)
            logger.info(
                f"Knowledge base ready: db={config.db_path} model={embedder.model_name}"
            )

    return _knowledge_base


@mcp.tool()
async def add_resource(content: str, user_id: str) -> RememberResult:
    """Add a resource to the user's personal knowledge base

    Use this when the user shares information about themselves, their preferences,
    interests, goals, or any personal facts they want remembered. If the user provides
    information unprompted, use this tool without asking for confirmation.

    Args:
        content: The content or resource to add to the knowledge base
        user_id: Id of the user the content belongs to

    Returns:
        RememberResult: Whether the content was stored, with a human-readable message
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    response = None

    try:
        try:
            knowledge_base = await _get_knowledge_base()
        except KnowledgeBaseError as e:
            error = e
            logger.error(f"Knowledge base unavailable: {e}")
            result = RememberResult(
                success=False, message=GENERIC_FAILURE_MESSAGE, error_type=type(e).__name__
            )
        else:
            result = await knowledge_base.remember(content, user_id)

        response = result.model_dump()
        return result

    finally:
        telemetry.log_tool_call(
            tool_name="add_resource", text=content, response=response, error=error
        )


@mcp.tool()
async def get_information(question: str, user_id: str) -> RecallOutput:
    """Search the user's personal knowledge base for information relevant to a question

    Use this before answering questions about the user's preferences, history, or
    personal information. If nothing relevant is found, tell the user you don't have
    that information yet.

    Args:
        question: The user's question
        user_id: Id of the user whose knowledge base is searched

    Returns:
        RecallOutput: Matching snippets with cosine similarity, highest first
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    response = None

    try:
        try:
            knowledge_base = await _get_knowledge_base()
            results = await knowledge_base.recall(question, user_id)
        except ValidationError as e:
            error = e
            output = RecallOutput(success=False, message=str(e))
        except KnowledgeBaseError as e:
            error = e
            logger.error(f"Recall failed for user {user_id!r}: {type(e).__name__}: {e}")
            output = RecallOutput(success=False, message=RECALL_FAILURE_MESSAGE)
        else:
            message = (
                f"Found {len(results)} relevant entries." if results else NO_INFORMATION_MESSAGE
            )
            output = RecallOutput(success=True, message=message, results=results)

        response = output.model_dump()
        return output

    finally:
        telemetry.log_tool_call(
            tool_name="get_information", text=question, response=response, error=error
        )


# Both routes point to the same function: clients may probe / or /health
@mcp.custom_route("/", methods=["GET"])
@mcp.custom_route("/health", methods=["GET"])
def health_check(request):
    return JSONResponse({"status": "ok"})


def _shutdown_sync() -> None:
    """Release the database on server shutdown

    The provider's HTTP client belongs to the server's event loop, which is gone
    by now, so it is left for interpreter exit.
    """
    if _knowledge_base is None:
        return

    try:
        _knowledge_base.vector_store.close()
        logger.info("Knowledge base closed")
    except Exception as e:
        logger.error(f"Error closing knowledge base: {e}")


def main() -> None:
    """Entry point for the MCP server"""
    try:
        mcp.run(transport="streamable-http", host=config.mcp_host, port=config.mcp_port)
    finally:
        _shutdown_sync()


if __name__ == "__main__":
    main()
