"""
Inventory oracle: which pharmacies can fill a set of medications.

Routing uses the *full stock* rule: a pharmacy qualifies only when it holds
at least one unit of every requested medication.  Stock levels are read,
never written; decrementing stock on dispense belongs to the pharmacy
inventory system.
"""
from __future__ import annotations

from typing import Iterable, List

from django.db.models import Count, Sum

from careflow.models import PharmacyStock, Role


def _stock_for(medication_ids: Iterable[int]):
    ids = sorted(set(medication_ids))
    qs = (
        PharmacyStock.objects.filter(
            medication_id__in=ids,
            quantity__gte=1,
            pharmacy__role=Role.PHARMACY,
            pharmacy__is_active=True,
        )
        .values('pharmacy_id')
        .annotate(held=Count('medication_id', distinct=True), units=Sum('quantity'))
        .filter(held=len(ids))
    )
    return ids, qs


def agents_holding_stock(medication_ids: Iterable[int]) -> List[int]:
    """Return ids of pharmacies holding >=1 unit of every medication.

    Ordered by units on hand across the requested medications (most first),
    then by id.  An empty request yields an empty list.
    """
    ids, qs = _stock_for(medication_ids)
    if not ids:
        return []
    return [row['pharmacy_id'] for row in qs.order_by('-units', 'pharmacy_id')]


def agent_holds_stock(agent_id: int, medication_ids: Iterable[int]) -> bool:
    ids, qs = _stock_for(medication_ids)
    if not ids:
        return False
    return qs.filter(pharmacy_id=agent_id).exists()


def stock_levels(agent_id: int, medication_ids: Iterable[int]) -> dict:
    """Return ``{medication_id: quantity}`` for one pharmacy (missing -> 0)."""
    ids = set(medication_ids)
    levels = {med_id: 0 for med_id in ids}
    rows = PharmacyStock.objects.filter(pharmacy_id=agent_id, medication_id__in=ids)
    for medication_id, quantity in rows.values_list('medication_id', 'quantity'):
        levels[medication_id] = quantity
    return levels
