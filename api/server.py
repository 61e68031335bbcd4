"""FastAPI server for the try-on workflow.

The UI drives one workflow per user:
- register the user's original avatar image
- start a run with a garment description and style
- confirm / reject the garment preview, or restart at any time
- reset the avatar back to the original once it has drifted
"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fitchecked.config import load_config
from fitchecked.errors import ValidationError, WorkflowStateError
from fitchecked.models import WorkflowSnapshot
from fitchecked.pipeline import TryOnEngine


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="FitChecked Try-On API",
    description="Garment generation and avatar try-on workflow",
    version="1.0.0",
)

# Enable CORS for the app's web client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Malformed user ids and other input the routes do not map themselves."""
    return JSONResponse(status_code=422, content={"detail": str(exc)})


class AvatarRequest(BaseModel):
    """Original avatar image, URL or base64 data URL."""
    image_url: str


class StartRequest(BaseModel):
    """Request body for starting a run."""
    description: str
    style: str = "casual"


# Initialize engine (will be done on first request)
_engine: TryOnEngine | None = None


def get_engine() -> TryOnEngine:
    """Get or create the engine instance."""
    global _engine
    if _engine is None:
        _engine = TryOnEngine(load_config())  # Loads from .env automatically via pydantic-settings
    return _engine


@app.on_event("shutdown")
async def shutdown():
    if _engine is not None:
        await _engine.close()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "FitChecked Try-On API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Configured providers."""
    engine = get_engine()
    return {
        "status": "ok",
        "synthesis": engine.synthesis_client.endpoint.url,
        "compositing_primary": engine.primary_client.endpoint.url,
        "compositing_fallback": engine.fallback_client.endpoint.url,
        "prompt_enrichment": engine.config.text_generation.backend,
    }


@app.post("/api/avatars/{user_id}")
async def register_avatar(user_id: str, request: AvatarRequest):
    try:
        avatar = await get_engine().register_avatar(user_id, request.image_url)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return avatar.model_dump()


@app.get("/api/avatars/{user_id}")
async def get_avatar(user_id: str):
    status = await get_engine().avatar_status(user_id)
    if status is None:
        raise HTTPException(status_code=404, detail="No avatar registered")
    return status


@app.post("/api/avatars/{user_id}/reset")
async def reset_avatar(user_id: str):
    try:
        avatar = await get_engine().reset_avatar(user_id)
    except ValidationError as e:
        raise HTTPException(status_code=422 if e.role == "user" else 404, detail=str(e))
    return avatar.model_dump()


@app.get("/api/sessions/{user_id}", response_model=WorkflowSnapshot)
async def get_session(user_id: str):
    return get_engine().controller_for(user_id).snapshot()


@app.post("/api/sessions/{user_id}/start", response_model=WorkflowSnapshot)
async def start_session(user_id: str, request: StartRequest):
    """Generate a garment preview.

    Returns the snapshot after generation: ``preview`` on success, ``error``
    with ``error_kind`` telling "try again" from "change your description".
    """
    controller = get_engine().controller_for(user_id)
    try:
        return await controller.start(request.description, request.style)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/api/sessions/{user_id}/confirm", response_model=WorkflowSnapshot)
async def confirm_session(user_id: str):
    try:
        return await get_engine().controller_for(user_id).confirm()
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/api/sessions/{user_id}/reject", response_model=WorkflowSnapshot)
async def reject_session(user_id: str):
    try:
        return get_engine().controller_for(user_id).reject()
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.post("/api/sessions/{user_id}/restart", response_model=WorkflowSnapshot)
async def restart_session(user_id: str):
    return get_engine().controller_for(user_id).restart()


@app.delete("/api/sessions/{user_id}")
async def end_session(user_id: str):
    """Forget the session of a user who left; their avatar stays stored."""
    try:
        ended = get_engine().end_session(user_id)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ended": ended}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
