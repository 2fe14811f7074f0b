"""
Puits d'observabilité: événements métier notables (mode dégradé du panier,
paiements échoués, doublons ignorés) écrits sur un logger dédié, avec un
tag `event` exploitable par l'agrégateur de logs.
"""
import logging
from typing import Any

logger = logging.getLogger("hoopshop.observability")

def report(event: str, level: int = logging.WARNING, **fields: Any) -> None:
    details = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
    logger.log(level, "%s %s", event, details, extra={"event": event, "fields": fields})
