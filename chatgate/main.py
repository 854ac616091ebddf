"""Chat Gateway: FastAPI application entry point.

Backend for a web chat widget. Forwards a visitor's message to a
text-generation provider, rate-limiting and caching per client, records
the exchange, and returns the generated text.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from chatgate.chat.errors import GENERIC_MESSAGE, ChatError, ErrorKind
from chatgate.chat.orchestrator import ChatOrchestrator, build_orchestrator
from chatgate.config.settings import Settings, get_settings
from chatgate.gating.ratelimit import RateLimitResult
from chatgate.logging.audit import (
    client_id_var,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)
from chatgate.providers.registry import close_all_providers
from chatgate.web.cors import cors_headers

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    settings = get_settings()
    app.state.orchestrator = build_orchestrator(settings)
    get_audit_logger().info(
        "Chat gateway started",
        extra={"audit_data": {
            "provider": settings.provider,
            "kv_backend": settings.kv_backend,
            "rate_limit_policy": settings.rate_limit_policy,
        }},
    )
    yield
    await app.state.orchestrator.aclose()
    app.state.orchestrator = None
    await close_all_providers()
    get_audit_logger().info("Chat gateway stopped")


app = FastAPI(
    title="Chat Gateway",
    description="Rate-limited, cached backend for an AI chat widget",
    version=VERSION,
    lifespan=lifespan,
)


def get_orchestrator(request: Request) -> ChatOrchestrator:
    """FastAPI dependency returning the process-wide orchestrator.

    Built lazily when the lifespan did not run (Lambda runs with
    lifespan="off").
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = build_orchestrator(get_settings())
        request.app.state.orchestrator = orchestrator
    return orchestrator


@app.get("/health")
async def health(orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    recorder = orchestrator.recorder
    if not recorder.enabled:
        persistence = "disabled"
    else:
        persistence = "connected" if await recorder.ping() else "unavailable"
    return {"status": "healthy", "version": VERSION, "persistence": persistence}


@app.options("/api/chat")
async def chat_preflight(request: Request):
    origin = request.headers.get("origin", "")
    return Response(status_code=204, headers=cors_headers(origin, get_settings()))


@app.post("/api/chat")
async def chat(request: Request, orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
    """Answer one widget message.

    Pipeline: Validate -> Rate Limit -> Cache -> Complete -> Cache Fill -> Persist
    """
    settings = get_settings()
    logger = get_audit_logger()

    rid = generate_request_id()
    request_id_var.set(rid)
    client_id = _client_identity(request)
    client_id_var.set(client_id)

    origin = request.headers.get("origin", "")
    headers = cors_headers(origin, settings)
    headers["X-Request-Id"] = rid

    try:
        body = await request.json()
    except ValueError:
        body = None
    message = body.get("message") if isinstance(body, dict) else None

    metadata = {
        "origin": origin,
        "userAgent": request.headers.get("user-agent", ""),
    }

    try:
        reply = await orchestrator.handle(message, client_id=client_id, metadata=metadata)
    except ChatError as e:
        return _error_response(e, headers, settings)
    except Exception as e:
        logger.error(
            "Unhandled error processing chat message",
            extra={"audit_data": {"error": str(e)}},
            exc_info=e,
        )
        content = {"error": GENERIC_MESSAGE}
        if settings.is_development:
            content["details"] = str(e)
        return JSONResponse(status_code=500, content=content, headers=headers)

    headers.update(_rate_limit_headers(reply.rate_limit))
    headers["X-Cache"] = "HIT" if reply.cached else "MISS"
    return JSONResponse(content={"response": reply.response}, headers=headers)


def _error_response(error: ChatError, headers: dict, settings: Settings) -> JSONResponse:
    content = {"error": error.user_message}
    if settings.is_development and error.detail:
        content["details"] = error.detail

    if error.kind is ErrorKind.RATE_LIMITED and error.rate_limit is not None:
        headers.update(_rate_limit_headers(error.rate_limit))
        headers["Retry-After"] = str(max(1, int(error.rate_limit.reset_seconds + 0.999)))

    return JSONResponse(status_code=error.status_code, content=content, headers=headers)


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_seconds)),
    }


def _client_identity(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
