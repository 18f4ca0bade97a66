"""VectorQueue - durable training queue turning pushed records into embeddings."""

__version__ = "0.1.0"
