"""
Modèles du checkout: acheteur, adresse, lignes figées et intent immuable.
"""
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hoopshop.config import DEFAULT_SHIPPING_COUNTRY


class Buyer(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=40)
    user_id: Optional[str] = None


class ShippingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    line1: str = Field(min_length=1, max_length=200)
    line2: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(default=DEFAULT_SHIPPING_COUNTRY, min_length=2, max_length=2)


class IntentLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    size: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "size": self.size,
            "color": self.color,
        }


class CheckoutIntent(BaseModel):
    """Instantané immuable d'un panier prêt à payer; seul `status` évolue en base."""
    model_config = ConfigDict(frozen=True)

    correlation_id: str
    lines: Tuple[IntentLine, ...]
    buyer: Buyer
    shipping: Optional[ShippingAddress] = None
    currency: str
    amount: Decimal
    client_secret: Optional[str] = None
    is_free: bool = False
    status: str = "requires_payment"

    @property
    def amount_cents(self) -> int:
        return int((self.amount * 100).to_integral_value())


FREE_PREFIX = "free_"


def is_free_correlation_id(correlation_id: str) -> bool:
    return str(correlation_id or "").startswith(FREE_PREFIX)
