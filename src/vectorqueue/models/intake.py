"""Intake models - pushed records and the per-batch classification."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PushDataItem(BaseModel):
    """One submitted record."""

    model_config = ConfigDict(extra="ignore")

    q: str = ""
    a: str = ""
    indexes: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("q", "a", mode="before")
    @classmethod
    def text_or_empty(cls, v: Any) -> str:
        # Missing or non-text values are judged by the batch filter, not here
        return v if isinstance(v, str) else ""

    @field_validator("indexes", mode="before")
    @classmethod
    def indexes_or_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class PushDataResult(BaseModel):
    """Outcome buckets of a push. Accepted records are not echoed back."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    inserted_count: int = 0
    over_token: list[PushDataItem] = Field(default_factory=list)
    repeat: list[PushDataItem] = Field(default_factory=list)
    error: list[PushDataItem] = Field(default_factory=list)

    @property
    def rejected_count(self) -> int:
        return len(self.over_token) + len(self.repeat) + len(self.error)


class BatchFilterResult(BaseModel):
    """Classification of a batch before anything is persisted."""

    success: list[PushDataItem] = Field(default_factory=list)
    over_token: list[PushDataItem] = Field(default_factory=list)
    repeat: list[PushDataItem] = Field(default_factory=list)
    error: list[PushDataItem] = Field(default_factory=list)


class CollectionInfo(BaseModel):
    """Collection resolved together with its dataset."""

    collection_id: UUID
    dataset_id: UUID
    team_id: str
    name: str
    vector_model: str
