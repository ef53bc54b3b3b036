"""Pattern schemas — the typed record the engine reads from and writes to the store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; every timestamp here is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RatioSample(BaseModel):
    """One observation: ``profile_qty`` pieces cut for an order of ``order_qty``."""

    order_qty: float
    profile_qty: float
    ratio: float


class PatternMetadata(BaseModel):
    """Free-form bag with a few well-known keys.

    ``original_index`` is the position the profile held inside its parent item
    the first time it was seen; it drives the display order of smart apply.
    """

    model_config = ConfigDict(extra="allow")

    original_index: Optional[int] = None
    total_quantity: Optional[float] = None
    total_order_quantity: Optional[float] = None
    average_order_quantity: Optional[float] = None
    variation_count: Optional[int] = None


class PatternBase(BaseModel):
    context_key: str
    pattern_key: str

    product_name: str
    size: str
    profile: str
    measurement: str

    # First observation (immutable once stored)
    quantity: Optional[int] = None
    order_quantity: Optional[int] = None
    ratio: Optional[float] = None

    frequency: int = 1
    confidence: float = 0.0  # 0–100
    last_used: datetime

    average_quantity: float = 0.0
    average_ratio: Optional[float] = None

    contexts: List[str] = Field(default_factory=list)
    variations: List[str] = Field(default_factory=list)
    ratio_history: List[RatioSample] = Field(default_factory=list)
    metadata: PatternMetadata = Field(default_factory=PatternMetadata)

    @field_validator("last_used")
    @classmethod
    def _last_used_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @field_validator("contexts", "variations", "ratio_history", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v):
        return [] if v is None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_as_empty_metadata(cls, v):
        return {} if v is None else v


class PatternCreate(PatternBase):
    """Payload for ``PatternRepository.create``."""


class Pattern(PatternBase):
    """A stored pattern, validated at the store boundary."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @property
    def effective_ratio(self) -> Optional[float]:
        """Best single ratio for this pattern: running average, else first-observation ratio."""
        if self.average_ratio is not None and self.average_ratio > 0:
            return self.average_ratio
        if self.ratio is not None and self.ratio > 0:
            return self.ratio
        return None


class PatternUpdate(BaseModel):
    """Partial update; ``None`` fields are left untouched by the store."""

    frequency: Optional[int] = None
    last_used: Optional[datetime] = None
    average_ratio: Optional[float] = None
    ratio_history: Optional[List[RatioSample]] = None
    confidence: Optional[float] = None


class PatternObservation(BaseModel):
    """A single profile-cutting decision to learn from.

    No constraints here: blank fields and non-positive quantities are rejected
    (logged, dropped) by the learning service rather than raised.
    """

    product_name: str = Field("", validation_alias=AliasChoices("product_name", "productName"))
    size: str = ""
    profile: str = ""
    measurement: str = ""
    quantity: int = 0
    order_quantity: int = Field(0, validation_alias=AliasChoices("order_quantity", "orderQuantity"))
    last_used: Optional[datetime] = Field(None, validation_alias=AliasChoices("last_used", "lastUsed"))
    original_index: Optional[int] = Field(None, validation_alias=AliasChoices("original_index", "originalIndex"))

    @field_validator("product_name", "size", "profile", "measurement", mode="before")
    @classmethod
    def _none_as_blank(cls, v):
        return "" if v is None else str(v)

    @field_validator("last_used")
    @classmethod
    def _last_used_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class PatternStatistics(BaseModel):
    """Store-level counts by confidence band."""

    total_patterns: int
    high_confidence: int  # >= 70
    medium_confidence: int  # 40 .. < 70
    low_confidence: int  # < 40
    average_confidence: float
    most_frequent: List[Pattern] = Field(default_factory=list)
