"""Cutting-list payload schemas (the shape the order-entry side hands over).

Keys are accepted in snake_case or in the camelCase used by exported JSON
(``productName``, ``orderQuantity``, ``workOrderId`` ...).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ProfileEntry(_CamelModel):
    profile: Optional[str] = None
    measurement: str = ""
    quantity: int = 0

    @field_validator("measurement", mode="before")
    @classmethod
    def _measurement_as_text(cls, v):
        return "" if v is None else str(v)


class CuttingListEntry(_CamelModel):
    """One order line: an order quantity of a size, cut into several profiles."""

    work_order_id: Optional[str] = None
    size: str = ""
    order_quantity: int = 0
    color: Optional[str] = None
    version: Optional[str] = None
    note: Optional[str] = None
    profiles: List[ProfileEntry] = Field(default_factory=list)


class ProductSection(_CamelModel):
    product_name: str = ""
    items: List[CuttingListEntry] = Field(default_factory=list)


class CuttingListPayload(_CamelModel):
    title: Optional[str] = None
    week_number: Optional[int] = None
    sections: List[ProductSection] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
