"""
Commande matérialisée et ses lignes (tables 'orders' / 'order_items').
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from hoopshop.infra.relations import has_many


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int
    unit_price_at_purchase: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OrderLine":
        return cls(
            product_id=str(row.get("product_id")),
            quantity=int(row.get("quantity") or 0),
            unit_price_at_purchase=Decimal(str(row.get("price_at_purchase") or 0)),
            size=row.get("selected_size"),
            color=row.get("selected_color"),
        )


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    correlation_id: str
    user_id: Optional[str] = None
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: Optional[Dict[str, Any]] = None
    payment_method: Optional[str] = None
    created_at: Optional[str] = None
    lines: Tuple[OrderLine, ...] = ()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        """Ligne 'orders' (+ jointure order_items) -> Order."""
        return cls(
            id=str(row.get("id")),
            correlation_id=str(row.get("payment_intent_id")),
            user_id=row.get("user_id"),
            total_amount=Decimal(str(row.get("total_amount") or 0)),
            status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
            shipping_address=row.get("shipping_address"),
            payment_method=row.get("payment_method"),
            created_at=row.get("created_at"),
            lines=tuple(OrderLine.from_row(i) for i in has_many(row, "order_items")),
        )

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "correlation_id": self.correlation_id,
            "status": self.status.value,
            "total_amount": str(self.total_amount),
            "payment_method": self.payment_method,
            "shipping_address": self.shipping_address,
            "created_at": self.created_at,
            "items": [
                {
                    "product_id": l.product_id,
                    "quantity": l.quantity,
                    "unit_price": str(l.unit_price_at_purchase),
                    "size": l.size,
                    "color": l.color,
                }
                for l in self.lines
            ],
        }

    def to_summary(self) -> Dict[str, Any]:
        """Vue réduite pour un lecteur qui n'est pas le titulaire (ni adresse ni lignes)."""
        return {
            "correlation_id": self.correlation_id,
            "status": self.status.value,
            "total_amount": str(self.total_amount),
            "created_at": self.created_at,
        }
