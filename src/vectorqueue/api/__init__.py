"""VectorQueue REST API."""

from vectorqueue.api.router import router

__all__ = ["router"]
