"""
FastAPI server for the Autocaller voice turn handler.

Endpoints:
- GET /health: Health check
- GET /metrics: JSON turn counters
- POST /twilio-webhook: Twilio voice callback, returns TwiML
  (also mounted at /api/twilio-webhook-elevenlabs for existing call setups)
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
import structlog
import uvicorn

from src.autocaller import prompts
from src.autocaller.call_event import CallEvent
from src.autocaller.config import get_config, init_config
from src.autocaller.metrics import TurnMetrics
from src.autocaller.turn import TurnOrchestrator, build_orchestrator
from src.autocaller.twiml import build_apology

WEBHOOK_PATHS = ("/twilio-webhook", "/api/twilio-webhook-elevenlabs")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


# Initialize structured logging
def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_level != "DEBUG" else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set log level
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


logger = structlog.get_logger(__name__)

# Global metrics
metrics = TurnMetrics()

_orchestrator: Optional[TurnOrchestrator] = None
_orchestrator_injected = False


def get_orchestrator() -> TurnOrchestrator:
    """Get or create the orchestrator, rebuilding it when the config is reloaded."""
    global _orchestrator

    config = get_config()
    if _orchestrator is None or (not _orchestrator_injected and _orchestrator.config is not config):
        _orchestrator = build_orchestrator(config, metrics=metrics)

    return _orchestrator


def set_orchestrator(orchestrator: Optional[TurnOrchestrator]) -> None:
    """Pin an orchestrator (tests inject doubles here); None restores the default wiring."""
    global _orchestrator, _orchestrator_injected
    _orchestrator = orchestrator
    _orchestrator_injected = orchestrator is not None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    config = init_config()
    configure_logging(config.log_level)

    logger.info(
        "Server ready",
        port=config.port,
        webhook_url=config.webhook_url,
        voice_mode=config.voice_mode,
        config_ready=config.is_ready,
    )

    yield

    # Shutdown
    logger.info("Shutting down server...")


# Create FastAPI app
app = FastAPI(
    title="Autocaller Voice Agent",
    description="Conversational turn handler for Twilio voice calls",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={
            "status": "healthy",
            "timestamp": time.time(),
            "config_ready": get_config().is_ready,
        }
    )


@app.get("/metrics")
async def get_metrics() -> JSONResponse:
    """Metrics endpoint."""
    return JSONResponse(content=metrics.to_dict())


async def _read_payload(request: Request) -> Dict[str, Any]:
    """Twilio posts form data; JSON is accepted for manual testing and other callers."""
    content_type = request.headers.get("content-type", "").lower()

    try:
        if "application/json" in content_type:
            data = await request.json()
            return data if isinstance(data, dict) else {}
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    except Exception as e:
        logger.warning("Unreadable webhook body", content_type=content_type, error=str(e))
        return {}


def _twiml_response(body: str, media_type: str) -> Response:
    return Response(content=body, media_type=media_type, headers=CORS_HEADERS, status_code=200)


async def twilio_webhook(request: Request) -> Response:
    """
    Twilio voice callback.

    OPTIONS gets a CORS preflight reply and other non-POST methods a 405;
    every POST is answered with HTTP 200, whatever happens downstream.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    if request.method != "POST":
        return Response(
            content="Method not allowed",
            media_type="text/plain",
            headers=CORS_HEADERS,
            status_code=405,
        )

    payload = await _read_payload(request)
    event = CallEvent.from_payload(payload)
    logger.info("Twilio webhook received", path=request.url.path, **event.log_fields())

    try:
        turn = await get_orchestrator().handle(event)
    except Exception as e:
        # The orchestrator already degrades every adapter failure; this only
        # covers wiring errors so Twilio still hears something.
        logger.exception("Webhook handler error", call_id=event.call_id, error=str(e))
        metrics.record_error()
        turn = build_apology(prompts.APOLOGY_UNEXPECTED, voice=get_config().twilio_voice, kind="error")

    return _twiml_response(turn.body, turn.media_type)


for _path in WEBHOOK_PATHS:
    app.add_api_route(
        _path,
        twilio_webhook,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        include_in_schema=_path == WEBHOOK_PATHS[0],
    )


def main() -> None:
    """Run the server."""
    config = get_config()

    configure_logging(config.log_level)

    logger.info(
        "Starting server",
        port=config.port,
    )

    uvicorn.run(
        "server.app:app",
        host="0.0.0.0",
        port=config.port,
        log_level=config.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
