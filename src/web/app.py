"""
FastAPI application factory for the drone detection service.

Routes:
- /api/health -> liveness summary
- /api/feeds -> feeds with detector status
- /api/feeds/{id}/detector[/activate|/deactivate|/reset] -> activation contract
- /api/feeds/{id}/detections -> current DetectionSet
- /api/feeds/{id}/snapshot.jpg, /api/feeds/{id}/stream.mjpg -> annotated video
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from runtime.context import RuntimeContext
from .routes import api


def create_app(ctx: RuntimeContext) -> FastAPI:
    """Create the FastAPI app bound to a runtime context."""
    app = FastAPI(
        title="Drone Feed Detector",
        version="0.1.0",
        description="Live object detection overlays for drone video feeds",
    )
    app.state.ctx = ctx

    # CORS for the dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    return app
