"""HTTP surface: FastAPI app factory and routers."""

from src.api.server import create_app

__all__ = ["create_app"]
