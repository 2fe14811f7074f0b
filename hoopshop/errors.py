"""
Taxonomie d'erreurs de la boutique.

Chaque erreur porte un `kind` stable (renvoyé au client dans `code`) et le
statut HTTP utilisé par les gestionnaires d'exceptions de l'application.
"""
from typing import Iterable, Optional


class ShopError(Exception):
    kind = "ShopError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidQuantity(ShopError):
    kind = "InvalidQuantity"
    status_code = 422


class EmptyCart(ShopError):
    kind = "EmptyCart"
    status_code = 400

    def __init__(self, message: str = "Le panier est vide"):
        super().__init__(message)


class ProductUnavailable(ShopError):
    kind = "ProductUnavailable"
    status_code = 409

    def __init__(self, product_ids: Iterable[str]):
        self.product_ids = sorted(str(p) for p in product_ids)
        super().__init__(f"Produits indisponibles: {', '.join(self.product_ids)}")


class PaymentNotCompleted(ShopError):
    kind = "PaymentNotCompleted"
    status_code = 409

    def __init__(self, correlation_id: str, status: Optional[str]):
        self.correlation_id = correlation_id
        self.status = status
        super().__init__(f"Paiement non confirmé pour {correlation_id} (status={status})")


class PaymentFailed(ShopError):
    kind = "PaymentFailed"
    status_code = 402

    def __init__(self, correlation_id: str, status: Optional[str] = None):
        self.correlation_id = correlation_id
        self.status = status
        super().__init__("payment failed, no order placed")


class DurableStoreUnavailable(ShopError):
    kind = "DurableStoreUnavailable"
    status_code = 503


class SignatureInvalid(ShopError):
    kind = "SignatureInvalid"
    status_code = 400


class OrderConflict(ShopError):
    """Violation d'unicité sur orders.payment_intent_id (course perdue)."""
    kind = "OrderConflict"
    status_code = 409


class OrderNotFound(ShopError):
    kind = "OrderNotFound"
    status_code = 404


class PaymentProviderUnavailable(ShopError):
    kind = "PaymentProviderUnavailable"
    status_code = 502


class IntentMetadataInvalid(ShopError):
    """Paiement confirmé mais metadata inexploitables (aucune ligne, pas d'email)."""
    kind = "IntentMetadataInvalid"
    status_code = 422


# Marqueur de log du court-circuit idempotent; jamais levé
DUPLICATE_IGNORED = "DuplicateIgnored"
