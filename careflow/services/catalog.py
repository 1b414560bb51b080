"""
Read-only lookups into the catalogs the workflow depends on.

Departments, doctors' consultation modes and medication prices are owned
elsewhere; the state machines only ever read them through this module.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, NamedTuple, Optional

from careflow.errors import InvalidLineItem, NotFound
from careflow.models import Department, Medication, Modality, ProviderProfile, Role, User


class ConsultationModes(NamedTuple):
    remote: bool
    in_person: bool

    def allows(self, modality: str) -> bool:
        if modality == Modality.REMOTE:
            return self.remote
        if modality == Modality.IN_PERSON:
            return self.in_person
        return False


def get_provider(provider_id) -> User:
    provider = User.objects.filter(id=provider_id, role=Role.DOCTOR, is_active=True).first()
    if provider is None:
        raise NotFound('The selected doctor does not exist.')
    return provider


def provider_consultation_modes(provider_id) -> ConsultationModes:
    profile = ProviderProfile.objects.filter(user_id=provider_id).first()
    if profile is None:
        # A doctor without a profile has declared nothing yet.
        return ConsultationModes(remote=False, in_person=False)
    return ConsultationModes(remote=profile.offers_remote, in_person=profile.offers_in_person)


def get_department(department_id) -> Optional[Department]:
    if department_id in (None, ''):
        return None
    department = Department.objects.filter(id=department_id).first()
    if department is None:
        raise NotFound('The selected department does not exist.')
    return department


def default_department_for(provider_id) -> Optional[Department]:
    profile = ProviderProfile.objects.select_related('department').filter(user_id=provider_id).first()
    return profile.department if profile else None


def medication_unit_prices(medication_ids: Iterable[int]) -> Dict[int, Decimal]:
    """Return ``{medication_id: unit_price}`` for active catalog entries.

    Raises :class:`InvalidLineItem` naming the first id that is unknown or
    withdrawn from the catalog.
    """
    wanted = list(dict.fromkeys(medication_ids))
    prices = dict(
        Medication.objects.filter(id__in=wanted, is_active=True).values_list('id', 'unit_price')
    )
    for med_id in wanted:
        if med_id not in prices:
            raise InvalidLineItem(f'Medication {med_id} is not available for prescribing.', medicationId=med_id)
    return prices


def get_pharmacy(agent_id) -> User:
    agent = User.objects.filter(id=agent_id, role=Role.PHARMACY, is_active=True).first()
    if agent is None:
        raise NotFound('The selected pharmacy does not exist.')
    return agent
