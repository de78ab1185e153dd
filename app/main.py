from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
import logging
from pydantic import BaseModel, Field

from agent.cache import ResponseCache, build_store
from agent.core.turns import Turn
from agent.errors import ChatError
from agent.gateway import GenerationGateway
from agent.pipeline import ChatPipeline
from agent.tools import TrendingService
from config.settings import get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("drona")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await drain_pending_writes()


app = FastAPI(title="Drona AI Mentor", version="1.0.0", lifespan=lifespan)

# CORS: allow local frontend during development
settings = get_settings()
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class ChatRequest(BaseModel):
    contents: List[Turn] = Field(default_factory=list, description="Full ordered conversation")
    queryType: Optional[str] = Field(default=None, description="Client persona hint")


@lru_cache(maxsize=1)
def get_gateway() -> GenerationGateway:
    return GenerationGateway(settings=get_settings())


@lru_cache(maxsize=1)
def get_pipeline() -> ChatPipeline:
    settings = get_settings()
    cache = ResponseCache(
        build_store(settings),
        namespace=settings.chat_cache_namespace,
        ttl_ms=settings.cache_ttl_ms,
    )
    return ChatPipeline(get_gateway(), cache, settings)


@lru_cache(maxsize=1)
def get_trending() -> TrendingService:
    settings = get_settings()
    return TrendingService(get_gateway(), build_store(settings), settings)


async def drain_pending_writes() -> None:
    # Only drain a pipeline that was actually built.
    if get_pipeline.cache_info().currsize:
        await get_pipeline().cache.drain()


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Chat request failed: %s", exc.public_message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request: %s", exc.errors()[:3])
    return JSONResponse(status_code=400, content={"error": "Malformed request"})


@app.post("/chat")
async def chat(req: ChatRequest, pipeline: ChatPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    logger.info(
        "Incoming chat: turns=%s query_type=%s key_set=%s cache=%s",
        len(req.contents),
        req.queryType,
        pipeline.gateway.configured,
        pipeline.cache.enabled,
    )
    try:
        reply = await pipeline.respond(req.contents, req.queryType)
    except ChatError:
        raise
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    logger.info("Responded with %s chars (from_cache=%s)", len(reply.text), reply.from_cache)
    return reply.to_payload()


@app.get("/trending")
async def trending(service: TrendingService = Depends(get_trending)) -> Dict[str, Any]:
    return {"topics": await service.topics()}


@app.get("/health")
def health():
    return {"status": "ok"}


static_root = Path(settings.static_dir)
if static_root.is_dir():
    app.mount("/static", StaticFiles(directory=static_root), name="static")


@app.get("/{path:path}", include_in_schema=False)
def document_fallback(path: str):
    candidate = (static_root / path).resolve()
    if path and candidate.is_file() and static_root.resolve() in candidate.parents:
        return FileResponse(candidate)
    index = static_root / "index.html"
    if index.is_file():
        return FileResponse(index)
    return JSONResponse(status_code=404, content={"error": "Not Found"})


def main() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
