"""
Panier en mémoire (pas de DB, pas de session).
Invariants: une seule ligne par clé (produit, taille, couleur), quantités > 0.
"""
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from hoopshop.errors import InvalidQuantity
from .models import CartLine, CartTotals, LineKey, Variant


def _check_quantity(quantity) -> int:
    # bool est un int en Python: on le refuse explicitement
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(f"Quantité invalide: {quantity!r} (entier attendu)")
    if quantity <= 0:
        raise InvalidQuantity(f"Quantité invalide: {quantity} (doit être > 0)")
    return quantity


class Cart:
    def __init__(self, lines: Optional[Iterable[CartLine]] = None):
        self._lines: List[CartLine] = []
        for line in lines or []:
            self._merge_in(line)

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> "Cart":
        """Reconstruit un panier; les doublons de clé sont additionnés, les lignes <= 0 ignorées."""
        return cls(lines)

    def _merge_in(self, line: CartLine) -> None:
        if line.quantity <= 0:
            return
        index = self._index_of(line.key)
        if index is None:
            self._lines.append(line)
        else:
            current = self._lines[index]
            self._lines[index] = current.model_copy(update={"quantity": current.quantity + line.quantity})

    def _index_of(self, key: LineKey) -> Optional[int]:
        for i, line in enumerate(self._lines):
            if line.key == key:
                return i
        return None

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    def get(self, key: LineKey) -> Optional[CartLine]:
        index = self._index_of(key)
        return self._lines[index] if index is not None else None

    def is_empty(self) -> bool:
        return not self._lines

    def add_line(
        self,
        product_id: str,
        quantity: int,
        variant: Optional[Variant] = None,
        *,
        unit_price: Optional[Decimal] = None,
        name: Optional[str] = None,
    ) -> CartLine:
        """
        Ajoute une ligne ou incrémente la ligne de même clé.
        - Soulève InvalidQuantity si quantity n'est pas un entier > 0.
        - Le prix/nom d'affichage le plus récent remplace l'ancien s'il est fourni.
        """
        _check_quantity(quantity)
        variant = variant or Variant()
        key = LineKey(str(product_id), variant.size, variant.color)
        index = self._index_of(key)
        if index is None:
            line = CartLine(
                product_id=str(product_id),
                quantity=quantity,
                variant=variant,
                unit_price=unit_price,
                name=name,
            )
            self._lines.append(line)
            return line

        current = self._lines[index]
        update = {"quantity": current.quantity + quantity}
        if unit_price is not None:
            update["unit_price"] = unit_price
        if name:
            update["name"] = name
        line = current.model_copy(update=update)
        self._lines[index] = line
        return line

    def set_quantity(self, key: LineKey, quantity: int) -> bool:
        """
        quantity <= 0 supprime la ligne (chemin de suppression, pas une erreur).
        Retourne True si le panier a changé.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantity(f"Quantité invalide: {quantity!r} (entier attendu)")
        if quantity <= 0:
            return self.remove_line(key)
        index = self._index_of(key)
        if index is None:
            return False
        self._lines[index] = self._lines[index].model_copy(update={"quantity": quantity})
        return True

    def remove_line(self, key: LineKey) -> bool:
        index = self._index_of(key)
        if index is None:
            return False
        del self._lines[index]
        return True

    def clear(self) -> None:
        self._lines = []

    def totals(self) -> CartTotals:
        # Recalculé à chaque lecture, jamais mis en cache
        item_count = sum(line.quantity for line in self._lines)
        subtotal = sum(
            ((line.unit_price or Decimal("0")) * line.quantity for line in self._lines),
            Decimal("0.00"),
        )
        return CartTotals(item_count=item_count, subtotal=subtotal.quantize(Decimal("0.01")))

    def to_list(self) -> List[dict]:
        return [line.to_dict() for line in self._lines]

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return f"Cart({[(l.key.as_string(), l.quantity) for l in self._lines]})"
