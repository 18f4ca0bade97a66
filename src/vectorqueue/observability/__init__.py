"""Observability helpers for VectorQueue."""

from vectorqueue.observability.metrics import metrics

__all__ = ["metrics"]
