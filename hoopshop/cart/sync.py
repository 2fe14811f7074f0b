"""
Adaptateur de persistance du panier.

- Invité: panier de session uniquement.
- Connecté: panier durable (user_carts) source de vérité; à la connexion,
  le panier de session est fusionné (politique max) puis vidé.
- Chaque mutation s'applique d'abord en mémoire, puis est répliquée en base.
  Si la base échoue, la session passe en mode local (drapeau en session)
  jusqu'à la prochaine resynchronisation réussie.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, MutableMapping, NamedTuple, Optional, Tuple
import logging

from hoopshop.errors import DurableStoreUnavailable
from hoopshop.utils import observability
from hoopshop.utils.security import Identity
from . import local_storage
from . import repository
from .models import CartLine, CartTotals, LineKey, Variant
from .store import Cart

logger = logging.getLogger(__name__)


class MergeResult(NamedTuple):
    cart: Cart
    # Écritures à appliquer au panier durable: (clé, quantité finale)
    writes: List[Tuple[LineKey, int]]


def fold_max(lines: Iterable[CartLine]) -> List[CartLine]:
    """Réduit les lignes de même clé en gardant la plus grande quantité (ordre de 1re apparition)."""
    folded: Dict[LineKey, CartLine] = {}
    for line in lines:
        if line.quantity <= 0:
            continue
        current = folded.get(line.key)
        if current is None:
            folded[line.key] = line
        elif line.quantity > current.quantity:
            folded[line.key] = current.model_copy(update={"quantity": line.quantity})
    return list(folded.values())


def merge_carts(local: Cart, durable: Cart) -> MergeResult:
    """
    Fusion panier local -> panier durable.
    - Clé présente des deux côtés: max(local, durable); réappliquer la même
      fusion ne change plus rien.
    - Clé locale seule: insérée telle quelle. Clé durable seule: conservée.
    """
    merged: List[CartLine] = []
    writes: List[Tuple[LineKey, int]] = []
    local_by_key = {line.key: line for line in local.lines}

    for d_line in durable.lines:
        l_line = local_by_key.pop(d_line.key, None)
        if l_line is None or l_line.quantity <= d_line.quantity:
            merged.append(d_line)
            continue
        merged.append(d_line.model_copy(update={"quantity": l_line.quantity}))
        writes.append((d_line.key, l_line.quantity))

    for l_line in local_by_key.values():
        merged.append(l_line)
        writes.append((l_line.key, l_line.quantity))

    return MergeResult(Cart.from_lines(merged), writes)


class CartSync:
    """
    Panier d'une requête: valeur explicite + session + identité injectées.
    Le panier n'est jamais un état global du module.
    """

    def __init__(self, session: MutableMapping[str, Any], identity: Identity):
        self.session = session
        self.identity = identity
        self.cart = Cart()

    @property
    def local_only(self) -> bool:
        return self.identity.is_anonymous or local_storage.is_local_only(self.session)

    @property
    def synced(self) -> bool:
        return not self.local_only

    def totals(self) -> CartTotals:
        return self.cart.totals()

    def snapshot(self) -> Dict[str, Any]:
        totals = self.cart.totals()
        return {
            "items": self.cart.to_list(),
            "totals": {"item_count": totals.item_count, "subtotal": str(totals.subtotal)},
            "synced": self.synced,
        }

    async def load_for_session(self) -> Cart:
        """
        Charge le panier de la session courante.
        - Invité: session uniquement.
        - Connecté en mode dégradé: panier de session, tentative de resynchronisation.
        - Connecté: panier durable, fusion du panier de session s'il a des lignes.
        """
        local = local_storage.load_local_cart(self.session)
        if self.identity.is_anonymous:
            self.cart = local
            return self.cart

        if local_storage.is_local_only(self.session):
            self.cart = local
            await self._resync()
            return self.cart

        try:
            rows = await repository.fetch_cart_rows(self.identity.user_id)
        except DurableStoreUnavailable as e:
            self.cart = local
            self._degrade(e, action="load")
            return self.cart

        durable = Cart.from_lines(fold_max(repository.row_to_line(r) for r in rows))
        if local.is_empty():
            self.cart = durable
            return self.cart

        result = merge_carts(local, durable)
        self.cart = result.cart
        try:
            for key, quantity in result.writes:
                await repository.set_line_quantity(self.identity.user_id, key, quantity)
        except DurableStoreUnavailable as e:
            self._degrade(e, action="merge")
            return self.cart
        local_storage.clear_local_cart(self.session)
        logger.info(
            "cart.sync merged user_id=%s local_lines=%s writes=%s",
            self.identity.user_id, len(local), len(result.writes),
        )
        return self.cart

    async def add(
        self,
        product_id: str,
        quantity: int,
        variant: Optional[Variant] = None,
        *,
        unit_price: Optional[Decimal] = None,
        name: Optional[str] = None,
    ) -> CartLine:
        line = self.cart.add_line(product_id, quantity, variant, unit_price=unit_price, name=name)
        await self._mirror(lambda uid: repository.set_line_quantity(uid, line.key, line.quantity), action="add")
        return line

    async def set_quantity(self, key: LineKey, quantity: int) -> bool:
        changed = self.cart.set_quantity(key, quantity)
        if quantity <= 0:
            await self._mirror(lambda uid: repository.delete_line(uid, key), action="remove")
        elif changed:
            await self._mirror(lambda uid: repository.set_line_quantity(uid, key, quantity), action="set")
        return changed

    async def remove(self, key: LineKey) -> bool:
        removed = self.cart.remove_line(key)
        # Supprimé aussi en base même absent en mémoire (idempotent)
        await self._mirror(lambda uid: repository.delete_line(uid, key), action="remove")
        return removed

    async def clear(self) -> None:
        self.cart.clear()
        await self._mirror(lambda uid: repository.clear_cart(uid), action="clear")

    async def _mirror(self, write, action: str) -> None:
        if self.identity.is_anonymous:
            local_storage.save_local_cart(self.session, self.cart)
            return
        if local_storage.is_local_only(self.session):
            local_storage.save_local_cart(self.session, self.cart)
            await self._resync()
            return
        try:
            await write(self.identity.user_id)
        except DurableStoreUnavailable as e:
            self._degrade(e, action=action)

    async def _resync(self) -> bool:
        """
        Rejoue l'état local complet sur le panier durable (le local fait foi:
        il contient les actions faites pendant l'indisponibilité).
        """
        uid = self.identity.user_id
        try:
            rows = await repository.fetch_cart_rows(uid)
            wanted = {line.key: line.quantity for line in self.cart.lines}
            for row in rows:
                key = repository.row_to_line(row).key
                if key not in wanted:
                    await repository.delete_line(uid, key)
            for key, quantity in wanted.items():
                await repository.set_line_quantity(uid, key, quantity)
        except DurableStoreUnavailable as e:
            logger.warning("cart.sync resync failed user_id=%s: %s", uid, e)
            return False
        local_storage.set_local_only(self.session, False)
        local_storage.clear_local_cart(self.session)
        observability.report("cart.sync.restored", level=logging.INFO, user_id=uid, lines=len(self.cart))
        return True

    def _degrade(self, error: Exception, action: str) -> None:
        local_storage.save_local_cart(self.session, self.cart)
        local_storage.set_local_only(self.session, True)
        observability.report(
            "cart.sync.degraded",
            user_id=self.identity.user_id,
            action=action,
            error=str(error),
        )


async def cleanup_duplicates(user_id: str) -> Dict[str, int]:
    """
    Consolide les lignes durables en double (même clé): garde la première
    ligne avec la plus grande quantité, supprime les autres.
    """
    rows = await repository.fetch_cart_rows(user_id)
    groups: Dict[LineKey, List[Dict[str, Any]]] = {}
    for row in rows:
        groups.setdefault(repository.row_to_line(row).key, []).append(row)

    consolidated = 0
    to_delete: List[Any] = []
    for key, group in groups.items():
        if len(group) < 2:
            continue
        keep = group[0]
        best = max(int(r.get("quantity") or 0) for r in group)
        if best != int(keep.get("quantity") or 0):
            await repository.update_row_quantity(keep["id"], best)
        to_delete.extend(r["id"] for r in group[1:])
        consolidated += 1

    await repository.delete_rows(to_delete)
    logger.info("cart.sync cleanup user_id=%s consolidated=%s deleted=%s", user_id, consolidated, len(to_delete))
    return {"consolidated_items": consolidated, "deleted_duplicates": len(to_delete)}
