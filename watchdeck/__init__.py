"""Top-level package exposing the WatchDeck FastAPI app."""

from __future__ import annotations

from app.main import app, create_app

__version__ = "1.0.0"

__all__ = ["app", "create_app", "__version__"]
