"""SQLAlchemy table definitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vectorqueue.db.base import Base
from vectorqueue.db.types import UTCDateTime
from vectorqueue.models.enums import TrainingMode


class DatasetTable(Base):
    """Datasets - owner of the embedding model choice."""

    __tablename__ = "datasets"

    dataset_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    team_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tmb_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    vector_model: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    collections: Mapped[list["CollectionTable"]] = relationship(
        "CollectionTable", back_populates="dataset"
    )


class CollectionTable(Base):
    """Dataset collections - target of pushed data."""

    __tablename__ = "dataset_collections"

    collection_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    dataset_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("datasets.dataset_id"), nullable=False, index=True
    )
    team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tmb_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    dataset: Mapped[DatasetTable] = relationship("DatasetTable", back_populates="collections")


class TrainingTaskTable(Base):
    """Training queue - one row per record awaiting its embedding."""

    __tablename__ = "training_tasks"

    task_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)

    # Ownership
    team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tmb_id: Mapped[str] = mapped_column(String(64), nullable=False)
    dataset_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    collection_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)

    # Payload
    mode: Mapped[TrainingMode] = mapped_column(
        Enum(TrainingMode, native_enum=False, length=16), nullable=False
    )
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    q: Mapped[str] = mapped_column(Text, nullable=False)
    a: Mapped[str] = mapped_column(Text, nullable=False, default="")
    indexes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Lease marker (also poison/suspend sentinel) and CAS counter
    lease_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    bill_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        # Index for claim queries
        Index("idx_training_claimable", "mode", "lease_until"),
        # Index for team-wide suspend/resume
        Index("idx_training_team", "team_id", "lease_until"),
    )


class DatasetDataTable(Base):
    """Retrieval index rows produced by completed tasks."""

    __tablename__ = "dataset_data"

    data_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tmb_id: Mapped[str] = mapped_column(String(64), nullable=False)
    dataset_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    collection_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    q: Mapped[str] = mapped_column(Text, nullable=False)
    a: Mapped[str] = mapped_column(Text, nullable=False, default="")
    indexes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    vector: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("idx_dataset_data_collection", "dataset_id", "collection_id"),
    )
