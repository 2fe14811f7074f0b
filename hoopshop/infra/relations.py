"""
Normalisation des jointures PostgREST.

Selon la cardinalité détectée par PostgREST, une relation embarquée
(`products(...)`, `order_items(...)`) arrive tantôt comme objet, tantôt comme
liste. On tranche une seule fois ici, au bord du repository.
"""
from typing import Any, Dict, List, Optional


def has_one(row: Dict[str, Any], relation: str) -> Optional[Dict[str, Any]]:
    """Relation vers un seul enregistrement: dict ou None."""
    value = (row or {}).get(relation)
    if isinstance(value, list):
        return value[0] if value else None
    return value or None


def has_many(row: Dict[str, Any], relation: str) -> List[Dict[str, Any]]:
    """Relation vers plusieurs enregistrements: toujours une liste."""
    value = (row or {}).get(relation)
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return list(value)
