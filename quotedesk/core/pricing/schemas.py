"""Line-item models shared by options, the pricing engine and email rendering."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from quotedesk.core.pricing.engine import parse_currency, parse_quantity


class HeaderLine(BaseModel):
    """A section label inside an option's pricing table."""

    type: Literal["header"] = "header"
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class ItemLine(BaseModel):
    """A priced row. Malformed numbers fall back to qty 1 / $0."""

    type: Literal["item"] = "item"
    description: str = ""
    qty: int = 1
    mrc: Decimal = Decimal("0")
    nrc: Decimal = Decimal("0")

    @field_validator("description", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("qty", mode="before")
    @classmethod
    def _qty(cls, v: Any) -> int:
        return parse_quantity(v)

    @field_validator("mrc", "nrc", mode="before")
    @classmethod
    def _money(cls, v: Any) -> Decimal:
        return parse_currency(v)


LineItem = Annotated[Union[HeaderLine, ItemLine], Field(discriminator="type")]

_line_item_adapter: TypeAdapter[HeaderLine | ItemLine] = TypeAdapter(LineItem)


def parse_line_item(raw: Any) -> HeaderLine | ItemLine:
    if isinstance(raw, (HeaderLine, ItemLine)):
        return raw
    return _line_item_adapter.validate_python(raw)


def has_priced_items(line_items: list[HeaderLine | ItemLine]) -> bool:
    return any(isinstance(item, ItemLine) for item in line_items)
