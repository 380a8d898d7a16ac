"""
FastAPI application factory for the face demographics status API.

Routes:
- /api/status       -> health of the detection loop
- /api/demographics -> latest DemographicCounts snapshot
- /api/detections   -> latest per-person DetectionResults
- /api/debug        -> latest per-cycle DebugInfo
- /api/labels       -> ground-truth corrections (GET, POST, DELETE; CSV export)
- /api/evaluation   -> accuracy metrics over collected labels
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api
from .state import PublishedState


def create_app(published: Optional[PublishedState] = None) -> FastAPI:
    """Create the FastAPI app bound to one PublishedState."""
    app = FastAPI(
        title="Face Demographics",
        version="0.1.0",
        description="Live audience demographics for ad scheduling",
    )

    # CORS for development (frontend dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.published = published or PublishedState()
    app.include_router(api.router, prefix="/api")
    return app
