"""
Types du panier: variante, ligne, clé d'unicité et totaux.
"""
from decimal import Decimal
from typing import Any, Dict, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def normalize_variant_value(value: Optional[str]) -> Optional[str]:
    """None, "" et "  " sont équivalents: pas de variante."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class LineKey(NamedTuple):
    product_id: str
    size: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def of(cls, product_id: str, size: Optional[str] = None, color: Optional[str] = None) -> "LineKey":
        return cls(str(product_id), normalize_variant_value(size), normalize_variant_value(color))

    def as_string(self) -> str:
        return f"{self.product_id}-{self.size or ''}-{self.color or ''}"


class Variant(BaseModel):
    model_config = ConfigDict(frozen=True)

    size: Optional[str] = None
    color: Optional[str] = None

    @field_validator("size", "color", mode="before")
    @classmethod
    def _normalize(cls, v):
        return normalize_variant_value(v)


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int
    variant: Variant = Variant()
    # Prix d'affichage issu du catalogue; jamais utilisé pour facturer
    unit_price: Optional[Decimal] = None
    name: Optional[str] = None

    @property
    def key(self) -> LineKey:
        return LineKey(self.product_id, self.variant.size, self.variant.color)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "size": self.variant.size,
            "color": self.variant.color,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLine":
        price = data.get("unit_price")
        return cls(
            product_id=str(data.get("product_id") or data.get("id") or ""),
            quantity=int(data.get("quantity") or 0),
            variant=Variant(
                size=data.get("size", data.get("selected_size")),
                color=data.get("color", data.get("selected_color")),
            ),
            unit_price=Decimal(str(price)) if price not in (None, "") else None,
            name=data.get("name"),
        )


class CartTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_count: int
    subtotal: Decimal
