"""
LanCards API Server — HTTP and WebSocket Access to the Pipeline
================================================================
FastAPI application over a ContentStore and a GenerationOrchestrator.

Launch:
    python -m lancards.server       # Direct
    python -m lancards.cli serve    # Via CLI

Endpoints:
    GET    /api/destinations                        → All destinations with their cards
    POST   /api/destinations                        → Add a destination
    DELETE /api/destinations/{id}                   → Remove a destination
    POST   /api/destinations/{id}/cards             → Generate a card for a question and save it
    DELETE /api/destinations/{id}/cards/{card_id}   → Remove a card
    GET    /api/providers                           → Registered providers and the active chain
    GET    /api/validate                            → Duplicate-id report
    WS     /ws/generate                             → Stream generation progress, then the card
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from lancards import __version__
from lancards.errors import (
    GenerationCancelled, GenerationFailed, PersistenceFailure, ValidationError,
)
from lancards.models import Destination
from lancards.orchestrator import GenerationOrchestrator, GenerationProgress
from lancards.providers.registry import list_providers
from lancards.store import ContentStore

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
#  Request Models
# ─────────────────────────────────────────────────────────────

class DestinationRequest(BaseModel):
    name: str
    flag: str = ""
    country: Optional[str] = None


class CardRequest(BaseModel):
    question: str


# ─────────────────────────────────────────────────────────────
#  App Factory
# ─────────────────────────────────────────────────────────────

def create_app(store: ContentStore, orchestrator: GenerationOrchestrator) -> FastAPI:
    app = FastAPI(title="LanCards", version=__version__)

    def _destination_or_404(destination_id: str) -> Destination:
        destination = store.get_destination(destination_id)
        if destination is None:
            raise HTTPException(status_code=404, detail=f"Unknown destination: {destination_id}")
        return destination

    # ── Routes: Destinations ────────────────────────────────

    @app.get("/api/destinations")
    async def api_destinations():
        return JSONResponse([d.to_dict() for d in store.destinations])

    @app.post("/api/destinations", status_code=201)
    async def api_add_destination(req: DestinationRequest):
        if not req.name.strip():
            raise HTTPException(status_code=400, detail="Destination name is required")
        destination = Destination(name=req.name.strip(), flag=req.flag,
                                  country=(req.country or "").strip())
        try:
            store.add_destination(destination)
        except PersistenceFailure as e:
            raise HTTPException(status_code=500, detail=str(e))
        return destination.to_dict()

    @app.delete("/api/destinations/{destination_id}")
    async def api_remove_destination(destination_id: str):
        _destination_or_404(destination_id)
        try:
            store.remove_destination(destination_id)
        except PersistenceFailure as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"removed": destination_id}

    # ── Routes: Cards ───────────────────────────────────────

    @app.post("/api/destinations/{destination_id}/cards", status_code=201)
    async def api_generate_card(destination_id: str, req: CardRequest):
        destination = _destination_or_404(destination_id)
        try:
            card = await asyncio.to_thread(orchestrator.generate, destination, req.question)
            await asyncio.to_thread(store.add_card, destination_id, card)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except GenerationFailed as e:
            raise HTTPException(status_code=502, detail=str(e))
        except PersistenceFailure as e:
            raise HTTPException(status_code=500, detail=str(e))
        return card.to_dict()

    @app.delete("/api/destinations/{destination_id}/cards/{card_id}")
    async def api_remove_card(destination_id: str, card_id: str):
        destination = _destination_or_404(destination_id)
        if destination.get_card(card_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown card: {card_id}")
        try:
            store.remove_card(destination_id, card_id)
        except PersistenceFailure as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"removed": card_id}

    # ── Routes: Diagnostics ─────────────────────────────────

    @app.get("/api/providers")
    async def api_providers():
        return JSONResponse({
            "providers": list_providers(),
            "chain": [p.name for p in orchestrator.providers],
        })

    @app.get("/api/validate")
    async def api_validate():
        report = store.validate()
        return JSONResponse({"ok": report.ok, "problems": report.problems})

    # ── Routes: WebSocket (Generation Streaming) ────────────

    @app.websocket("/ws/generate")
    async def ws_generate(websocket: WebSocket):
        """Stream generation progress via WebSocket.

        Client sends:
            {"destination_id": "...", "question": "How do I greet?", "save": true}
            or {"destination": "Japan", "question": "..."}

        Server streams:
            {"type": "progress", "phase": "Analyzing your question...", "provider": null}
            {"type": "card", "card": {...}, "saved": true}
            {"type": "done"}
            {"type": "error", "message": "..."}
        """
        await websocket.accept()
        loop = asyncio.get_running_loop()

        try:
            while True:
                data = await websocket.receive_json()
                question = data.get("question", "")
                destination_id = data.get("destination_id")
                save = bool(data.get("save", True))

                queue: asyncio.Queue = asyncio.Queue()

                def on_progress(progress: GenerationProgress):
                    loop.call_soon_threadsafe(queue.put_nowait, progress)

                try:
                    if destination_id:
                        destination = store.get_destination(destination_id)
                        if destination is None:
                            raise ValidationError(f"Unknown destination: {destination_id}")
                    else:
                        destination = data.get("destination", "")
                        save = False

                    job = asyncio.ensure_future(
                        asyncio.to_thread(orchestrator.generate, destination, question,
                                          None, on_progress))
                    while not job.done() or not queue.empty():
                        try:
                            progress = await asyncio.wait_for(queue.get(), timeout=0.1)
                        except asyncio.TimeoutError:
                            continue
                        if progress.phase:
                            await websocket.send_json({
                                "type": "progress",
                                "phase": progress.phase,
                                "provider": progress.provider,
                            })
                    card = job.result()

                    if save:
                        await asyncio.to_thread(store.add_card, destination.id, card)
                    await websocket.send_json({"type": "card", "card": card.to_dict(), "saved": save})
                    await websocket.send_json({"type": "done"})

                except (ValidationError, GenerationFailed, GenerationCancelled,
                        PersistenceFailure) as e:
                    await websocket.send_json({"type": "error", "message": str(e)})

        except WebSocketDisconnect:
            pass

    return app


# ─────────────────────────────────────────────────────────────
#  Startup
# ─────────────────────────────────────────────────────────────

def run_server(port: int = 8000, host: str = "127.0.0.1", config=None):
    """Launch the API server with the pipeline built from the environment."""
    import uvicorn

    from lancards.config import PipelineConfig
    from lancards.pipeline import build_orchestrator, build_store

    config = config or PipelineConfig.from_env()
    app = create_app(build_store(config), build_orchestrator(config))

    print(f"\n◬ ─── LanCards API ───")
    print(f"  http://{host}:{port}")
    print(f"  Press Ctrl+C to stop\n")

    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    run_server()
