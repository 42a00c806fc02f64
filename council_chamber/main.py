"""FastAPI service exposing the council control and observability surfaces."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from . import __version__, config
from .config import (
    MAX_COUNCIL_SIZE,
    MIN_COUNCIL_SIZE,
    reload_config,
    update_council_config,
)
from .controller import DeliberationController
from .deliberation import SessionStateError
from .export import export_to_json, export_to_markdown
from .gemini import close_shared_client
from .logging_config import setup_logging
from .models import get_probe_results, is_known_model, list_models, probe_models
from .suggestions import fetch_suggestions
from .telemetry import instrument_fastapi, instrument_httpx, setup_telemetry

logger = logging.getLogger(__name__)

controller = DeliberationController.from_config()

# Strong references to running deliberations and probes
_background_tasks: set[asyncio.Task] = set()


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def _require_known_models(models: List[str]) -> None:
    unknown = [m for m in models if not is_known_model(m)]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown model: {', '.join(unknown)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.PROBE_ON_STARTUP:
        _spawn(probe_models())
    yield
    await close_shared_client()


app = FastAPI(title="Council Chamber API", version=__version__, lifespan=lifespan)

# Enable CORS for local development (when running the frontend separately)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionStateError)
async def session_state_error_handler(request: Request, exc: SessionStateError):
    logger.warning("Rejected session operation. Path: %s, Error: %s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


class StartRequest(BaseModel):
    """Request to start a deliberation."""
    topic: str


class CouncilSizeRequest(BaseModel):
    """Request to change the council size."""
    size: int = Field(
        ...,
        ge=MIN_COUNCIL_SIZE,
        le=MAX_COUNCIL_SIZE,
        description=f"Number of agents ({MIN_COUNCIL_SIZE}-{MAX_COUNCIL_SIZE})",
    )


class ModelRequest(BaseModel):
    """Request to assign a model."""
    model: str = Field(..., min_length=1)


class SynthesisPriorityRequest(BaseModel):
    """Request to replace the synthesis priority list."""
    models: List[str] = Field(default_factory=list)


class ProbeRequest(BaseModel):
    """Request to probe model availability."""
    models: Optional[List[str]] = None


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "Council Chamber API", "version": __version__}


@app.get("/api/config")
async def get_config():
    """Get API configuration and current council settings."""
    return {
        "gemini_configured": bool(config.GEMINI_API_KEY),
        "council_size": controller.council_size,
        "min_council_size": MIN_COUNCIL_SIZE,
        "max_council_size": MAX_COUNCIL_SIZE,
        "synthesis_model": controller.synthesis_model,
        "synthesis_priority": controller.synthesis_priority,
        "fallback_model": config.FALLBACK_MODEL,
        "roster": [agent.to_dict() for agent in controller.roster],
    }


@app.post("/api/config/reload")
async def reload_config_endpoint():
    """Reload the API key and settings from .env and the user config file."""
    return reload_config()


@app.get("/api/models")
async def get_models():
    """Model catalog with the last known availability of each model."""
    return {"models": list_models()}


@app.post("/api/models/probe")
async def probe_models_endpoint(request: ProbeRequest):
    """Check which models currently answer."""
    results = await probe_models(request.models)
    return {"results": results, "all": get_probe_results()}


@app.get("/api/suggestions")
async def get_suggestions():
    """Starter topics (static fallbacks when the model is unavailable)."""
    suggestions = await fetch_suggestions()
    return {"suggestions": [s.model_dump() for s in suggestions]}


@app.get("/api/session")
async def get_session():
    """Current phase, active agent, transcript and verdict."""
    return controller.snapshot()


@app.post("/api/session/start", status_code=202)
async def start_session(request: StartRequest):
    """Start a deliberation in the background."""
    if not request.topic.strip():
        raise HTTPException(status_code=400, detail="Topic must not be empty")
    session = controller.begin(request.topic)
    if session is None:
        raise HTTPException(status_code=409, detail="A deliberation is already running")

    _spawn(controller.run(session))
    return {"status": "started", "phase": controller.phase.value, "session_id": session.session_id}


@app.post("/api/session/reset")
async def reset_session():
    """Discard the current session."""
    controller.reset()
    return controller.snapshot()


@app.put("/api/council/size")
async def set_council_size(request: CouncilSizeRequest):
    """Change the council size for the next deliberation."""
    try:
        controller.set_council_size(request.size)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    update_council_config(council_size=request.size)
    return {"status": "ok", "council_size": controller.council_size}


@app.put("/api/council/agents/{agent_id}/model")
async def set_agent_model(agent_id: str, request: ModelRequest):
    """Assign a model to one agent."""
    _require_known_models([request.model])
    try:
        agent = controller.set_agent_model(agent_id, request.model)
    except KeyError:
        raise HTTPException(status_code=404, detail="Agent not found")
    update_council_config(agent_models={agent_id: request.model})
    return {"status": "ok", "agent": agent.to_dict()}


@app.put("/api/council/synthesis-model")
async def set_synthesis_model(request: ModelRequest):
    """Set the single synthesis model."""
    _require_known_models([request.model])
    controller.set_synthesis_model(request.model)
    update_council_config(synthesis_model=request.model)
    return {"status": "ok", "synthesis_model": controller.synthesis_model}


@app.put("/api/council/synthesis-priority")
async def set_synthesis_priority(request: SynthesisPriorityRequest):
    """Replace the ordered synthesis candidates (empty clears the list)."""
    _require_known_models(request.models)
    controller.set_synthesis_priority(request.models)
    update_council_config(synthesis_priority=request.models)
    return {"status": "ok", "synthesis_priority": controller.synthesis_priority}


@app.get("/api/session/events")
async def stream_session_events(request: Request):
    """Stream controller events as Server-Sent Events.

    The first event is a full snapshot; later events are incremental.
    """
    queue = controller.subscribe()

    async def event_generator():
        try:
            yield f"data: {json.dumps({'type': 'snapshot', 'data': controller.snapshot()})}\n\n"
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            controller.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )


@app.get("/api/session/export/markdown")
async def export_session_markdown():
    """Export the current session as Markdown."""
    if controller.session is None:
        raise HTTPException(status_code=404, detail="No deliberation to export")

    markdown_content = export_to_markdown(controller.snapshot())
    return StreamingResponse(
        iter([markdown_content]),
        media_type="text/markdown",
        headers={"Content-Disposition": 'attachment; filename="deliberation.md"'},
    )


@app.get("/api/session/export/json")
async def export_session_json():
    """Export the current session as JSON."""
    if controller.session is None:
        raise HTTPException(status_code=404, detail="No deliberation to export")

    json_content = export_to_json(controller.snapshot())
    return StreamingResponse(
        iter([json.dumps(json_content, indent=2)]),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="deliberation.json"'},
    )


def run() -> None:
    """Configure logging and telemetry, then serve the API."""
    import uvicorn

    setup_logging()
    if setup_telemetry():
        instrument_fastapi(app)
        instrument_httpx()
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
