## src/service/service.py

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from auth.middleware import AuthMiddleware
from core import LoggingMiddleware, settings
from insight import (
    ConfigurationError,
    InsightContext,
    InsightError,
    RateLimitError,
    SessionExpiredError,
)
from schema import (
    ChatHistory,
    ChatMessage,
    CredentialInput,
    GroundingMetadata,
    ServiceInfo,
    StreamInput,
)
from service.dependencies import get_context
from service.files_router import router as files_router
from service.stores_router import router as stores_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the per-process context: one credential, one store, one chat session."""
    app.state.insight = InsightContext.from_settings(settings)
    if not app.state.insight.credentials.is_set:
        logger.warning("GEMINI_API_KEY is not set; uploads and chat fail until a key is provided")
    try:
        yield
    finally:
        app.state.insight = None


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(AuthMiddleware, settings=settings)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(InsightError)
async def insight_error_handler(request: Request, exc: InsightError) -> JSONResponse:
    if isinstance(exc, RateLimitError):
        code = status.HTTP_429_TOO_MANY_REQUESTS
    elif isinstance(exc, SessionExpiredError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return JSONResponse({"detail": str(exc)}, status_code=code)


router = APIRouter()


@router.get("/info")
async def info(context: InsightContext = Depends(get_context)) -> ServiceInfo:
    current = context.stores.current
    return ServiceInfo(
        model=settings.DEFAULT_MODEL,
        active_store=current.name if current else None,
        session_state=str(context.sessions.state),
        file_count=len(context.files.files),
        active_count=context.files.active_count,
        has_credential=context.credentials.is_set,
    )


@router.put("/credentials", status_code=204)
async def set_credentials(payload: CredentialInput, context: InsightContext = Depends(get_context)):
    """
    Replace the Gemini API key.

    Stores, files and the chat session created with the previous key are
    forgotten; nothing is reused across keys.
    """
    context.set_credential(payload.api_key)
    return


@router.delete("/credentials", status_code=204)
async def clear_credentials(context: InsightContext = Depends(get_context)):
    context.reset()
    return


def _grounding_payload(grounding: GroundingMetadata | None) -> dict[str, Any] | None:
    if not grounding:
        return None
    return grounding.model_dump()


async def message_generator(user_input: StreamInput, context: InsightContext) -> AsyncGenerator[str, None]:
    """
    Relay one answer as server-sent events.

    Token events carry the text delta and, when present, the grounding of that
    chunk. The final message event carries the complete answer.
    """
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def on_chunk(text: str, grounding: GroundingMetadata | None) -> None:
        queue.put_nowait({"type": "token", "content": text, "grounding": _grounding_payload(grounding)})

    task = asyncio.create_task(context.conversation.send(user_input.message, on_chunk=on_chunk))
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            yield f"data: {json.dumps(getter.result())}\n\n"
        while not queue.empty():
            yield f"data: {json.dumps(queue.get_nowait())}\n\n"
    finally:
        if not task.done():
            task.cancel()

    try:
        reply: ChatMessage = task.result()
    except (SessionExpiredError, RateLimitError, ConfigurationError) as e:
        logger.warning("Chat turn failed", extra={"error": str(e)})
        yield f"data: {json.dumps({'type': 'error', 'content': str(e)})}\n\n"
    except Exception as e:
        logger.error(f"Error in message generator: {e}")
        yield f"data: {json.dumps({'type': 'error', 'content': 'Internal server error'})}\n\n"
    else:
        yield f"data: {json.dumps({'type': 'message', 'content': reply.model_dump(mode='json')})}\n\n"
    yield "data: [DONE]\n\n"


def _sse_response_example() -> dict[int | str, Any]:
    return {
        status.HTTP_200_OK: {
            "description": "Server Sent Event Response",
            "content": {
                "text/event-stream": {
                    "example": "data: {'type': 'token', 'content': 'Hello', 'grounding': null}\n\ndata: {'type': 'token', 'content': ' World', 'grounding': null}\n\ndata: [DONE]\n\n",
                    "schema": {"type": "string"},
                }
            },
        }
    }


@router.post("/chat/stream", response_class=StreamingResponse, responses=_sse_response_example())
async def stream(user_input: StreamInput, context: InsightContext = Depends(get_context)) -> StreamingResponse:
    """
    Stream the answer to a question about the indexed files.

    Failures are reported in-band as ``{"type": "error"}`` events; the stream
    always ends with ``[DONE]``.
    """
    if not user_input.message.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")
    return StreamingResponse(
        message_generator(user_input, context),
        media_type="text/event-stream",
    )


@router.get("/chat/history")
def history(context: InsightContext = Depends(get_context)) -> ChatHistory:
    """
    Get chat history.
    """
    return ChatHistory(messages=list(context.conversation.messages))


@router.post("/chat/reset", status_code=204)
async def reset_chat(context: InsightContext = Depends(get_context)):
    context.conversation.clear()
    context.sessions.invalidate()
    return


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(router)
app.include_router(files_router, prefix="/files")
app.include_router(stores_router, prefix="/stores")
