"""
Prescription issuance, routing and dispensing.

    issued --route--> routed --dispense--> dispensed

``expired`` is derived from ``valid_until`` and never written.  An
appointment carries at most one *active* prescription (not dispensed, not
expired); issuance serialises on the appointment row so two doctors' tabs
cannot both pass that check.  Routing and dispensing are conditional
updates keyed on the expected status, as in the appointment machine.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

import bleach
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from careflow.errors import (
    DuplicatePrescription,
    Expired,
    Forbidden,
    InsufficientStock,
    InvalidLineItem,
    InvalidTransition,
    NotFound,
    WorkflowError,
)
from careflow.models import (
    Appointment,
    AppointmentStatus,
    Prescription,
    PrescriptionItem,
    PrescriptionStatus,
    Role,
    User,
)
from careflow.services import catalog, inventory
from careflow.services.audit import log_transition

logger = logging.getLogger(__name__)

P = PrescriptionStatus

ISSUABLE_APPOINTMENT_STATUSES = (AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value)
NUMBER_ATTEMPTS = 5


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def generate_number(now: Optional[datetime] = None) -> str:
    """Human-readable number: issue time to the second plus four random digits."""
    now = timezone.localtime(now or timezone.now())
    return f"{now:%Y%m%d-%H%M%S}-{secrets.randbelow(10000):04d}"


def active_for_appointment(appointment_id, now: Optional[datetime] = None):
    now = now or timezone.now()
    return Prescription.objects.filter(
        appointment_id=appointment_id,
        status__in=[P.ISSUED.value, P.ROUTED.value],
        valid_until__gte=now,
    )


def get_prescription(prescription_id) -> Prescription:
    rx = (
        Prescription.objects.select_related('patient', 'provider', 'pharmacy', 'appointment__department')
        .prefetch_related('items__medication')
        .filter(id=prescription_id)
        .first()
    )
    if rx is None:
        raise NotFound('Prescription not found.')
    return rx


def can_view(actor: User, rx: Prescription) -> bool:
    if actor.role == Role.ADMIN:
        return True
    return actor.id in (rx.patient_id, rx.provider_id) or (
        rx.pharmacy_id is not None and actor.id == rx.pharmacy_id
    )


def get_for_actor(actor: User, prescription_id) -> Prescription:
    rx = get_prescription(prescription_id)
    if not can_view(actor, rx):
        raise NotFound('Prescription not found.')
    return rx


def medication_ids(rx: Prescription) -> List[int]:
    return sorted({item.medication_id for item in rx.items.all()})


# ---------------------------------------------------------------------------
# Error wording
# ---------------------------------------------------------------------------

def _forbidden(actor: User, action: str) -> Forbidden:
    if actor.role == Role.PATIENT:
        return Forbidden(f'This prescription is not yours to {action}.')
    if actor.role == Role.PHARMACY:
        return Forbidden('This prescription was sent to a different pharmacy.')
    if actor.role == Role.DOCTOR:
        return Forbidden(f'Only the attending doctor can {action} this prescription.')
    return Forbidden(f'Your account cannot {action} prescriptions.')


def _invalid(current: str, target: str) -> InvalidTransition:
    current = str(current)
    if current == P.DISPENSED:
        msg = 'This prescription has already been dispensed.'
    elif current == P.ROUTED and target == P.ROUTED:
        msg = 'This prescription has already been sent to a pharmacy.'
    elif current == P.ISSUED and target == P.DISPENSED:
        msg = 'This prescription has not been sent to a pharmacy yet.'
    else:
        msg = f'A {current} prescription cannot be {target}.'
    return InvalidTransition(msg, current=current, requested=str(target))


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------

def _normalize_items(items: Iterable[dict]) -> List[dict]:
    lines = []
    for index, raw in enumerate(items or []):
        med_id = raw.get('medication_id')
        quantity = raw.get('quantity')
        if med_id in (None, ''):
            raise InvalidLineItem(f'Line {index + 1} has no medication.', line=index + 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidLineItem(
                f'Line {index + 1} must have a quantity of at least 1.', line=index + 1
            )
        lines.append({
            'medication_id': int(med_id),
            'quantity': quantity,
            'dosage': _clean(raw.get('dosage'))[:100],
            'frequency': _clean(raw.get('frequency'))[:100],
            'duration': _clean(raw.get('duration'))[:100],
            'substitute_allowed': bool(raw.get('substitute_allowed', False)),
        })
    if not lines:
        raise InvalidLineItem('A prescription needs at least one medication.')
    return lines


def _create_numbered(now: datetime, **fields) -> Prescription:
    last_error: Optional[IntegrityError] = None
    for _ in range(NUMBER_ATTEMPTS):
        number = generate_number(now)
        try:
            with transaction.atomic():
                return Prescription.objects.create(number=number, **fields)
        except IntegrityError as exc:
            if not Prescription.objects.filter(number=number).exists():
                raise
            logger.debug('prescription number %s taken, drawing another', number)
            last_error = exc
    raise last_error  # type: ignore[misc]


def issue(provider: User, *, appointment_id, diagnosis: str, items: Iterable[dict],
          validity_days: Optional[int] = None, notes: str = '') -> Prescription:
    """Issue a prescription against a confirmed or completed appointment."""
    if validity_days is None:
        validity_days = settings.PRESCRIPTION_VALIDITY_DAYS
    if not 1 <= validity_days <= settings.PRESCRIPTION_MAX_VALIDITY_DAYS:
        raise WorkflowError(
            f'Validity must be between 1 and {settings.PRESCRIPTION_MAX_VALIDITY_DAYS} days.'
        )
    diagnosis = _clean(diagnosis)
    if not diagnosis:
        raise WorkflowError('A diagnosis is required.')

    with transaction.atomic():
        # Row lock serialises concurrent issuance for the same appointment.
        appt = Appointment.objects.select_for_update().filter(id=appointment_id).first()
        if appt is None:
            raise NotFound('Appointment not found.')
        if appt.provider_id != provider.id:
            raise Forbidden('Only the attending doctor can issue a prescription for this appointment.')
        if appt.status not in ISSUABLE_APPOINTMENT_STATUSES:
            raise InvalidTransition(
                f'Prescriptions can only be issued for confirmed or completed appointments; '
                f'this one is {appt.status}.',
                current=appt.status, requested=P.ISSUED.value,
            )

        now = timezone.now()
        existing = active_for_appointment(appt.id, now).first()
        if existing is not None:
            raise DuplicatePrescription(
                f'Prescription {existing.number} is still active for this appointment.',
                prescriptionId=str(existing.id),
            )

        lines = _normalize_items(items)
        prices = catalog.medication_unit_prices(line['medication_id'] for line in lines)
        total = sum((prices[line['medication_id']] * line['quantity'] for line in lines), Decimal('0'))

        rx = _create_numbered(
            now,
            patient_id=appt.patient_id,
            provider_id=provider.id,
            appointment_id=appt.id,
            diagnosis=diagnosis,
            notes=_clean(notes),
            total_price=total,
            status=P.ISSUED.value,
            issued_at=now,
            valid_until=now + timedelta(days=validity_days),
        )
        PrescriptionItem.objects.bulk_create([
            PrescriptionItem(prescription=rx, unit_price=prices[line['medication_id']], **line)
            for line in lines
        ])
        log_transition(
            user=provider, object_type='prescription', object_id=rx.id,
            action='prescription_issued', from_status='', to_status=P.ISSUED.value,
            number=rx.number, total=str(total),
        )

    logger.info('prescription %s (%s) issued by doctor %s for appointment %s', rx.id, rx.number,
                provider.id, appt.id)
    return get_prescription(rx.id)


# ---------------------------------------------------------------------------
# Candidates, route, dispense
# ---------------------------------------------------------------------------

def candidate_agents(actor: User, prescription_id) -> List[dict]:
    """Pharmacies able to fill the whole prescription, best stocked first.

    Empty once the prescription has been routed, dispensed or has expired.
    """
    rx = get_for_actor(actor, prescription_id)
    if rx.status != P.ISSUED or not rx.is_active():
        return []
    med_ids = medication_ids(rx)
    agent_ids = inventory.agents_holding_stock(med_ids)
    agents = User.objects.in_bulk(agent_ids)
    return [
        {
            'id': agent_id,
            'name': agents[agent_id].display_name,
            'phone': agents[agent_id].phone,
            'stock': {str(k): v for k, v in inventory.stock_levels(agent_id, med_ids).items()},
        }
        for agent_id in agent_ids
    ]


def route_to_agent(patient: User, prescription_id, agent_id) -> Prescription:
    rx = get_prescription(prescription_id)
    if rx.patient_id != patient.id:
        raise _forbidden(patient, 'send')
    if rx.status != P.ISSUED:
        raise _invalid(rx.status, P.ROUTED.value)
    now = timezone.now()
    if rx.is_expired(now):
        raise Expired(rx.valid_until)

    agent = catalog.get_pharmacy(agent_id)
    med_ids = medication_ids(rx)
    if not inventory.agent_holds_stock(agent.id, med_ids):
        levels = inventory.stock_levels(agent.id, med_ids)
        missing = [med_id for med_id, qty in sorted(levels.items()) if qty < 1]
        raise InsufficientStock(
            f'{agent.display_name} does not have every prescribed medication in stock.',
            missingMedicationIds=missing,
        )

    with transaction.atomic():
        changed = Prescription.objects.filter(
            Q(valid_until__gte=now), id=rx.id, status=P.ISSUED.value, pharmacy__isnull=True,
        ).update(status=P.ROUTED.value, pharmacy_id=agent.id, routed_at=now, updated_at=now)
        if not changed:
            latest = Prescription.objects.filter(id=rx.id).first()
            if latest is None:
                raise NotFound('Prescription not found.')
            if latest.status == P.ISSUED and latest.is_expired(now):
                raise Expired(latest.valid_until)
            raise _invalid(latest.status, P.ROUTED.value)
        log_transition(
            user=patient, object_type='prescription', object_id=rx.id,
            action='prescription_routed', from_status=P.ISSUED.value, to_status=P.ROUTED.value,
            pharmacyId=agent.id,
        )

    logger.info('prescription %s routed by patient %s to pharmacy %s', rx.id, patient.id, agent.id)
    return get_prescription(rx.id)


def dispense(agent: User, prescription_id) -> Prescription:
    rx = get_prescription(prescription_id)
    if rx.pharmacy_id is None or rx.pharmacy_id != agent.id:
        raise _forbidden(agent, 'dispense')
    if rx.status != P.ROUTED:
        raise _invalid(rx.status, P.DISPENSED.value)
    now = timezone.now()
    if rx.is_expired(now):
        raise Expired(rx.valid_until)

    with transaction.atomic():
        changed = Prescription.objects.filter(
            id=rx.id, status=P.ROUTED.value, pharmacy_id=agent.id, valid_until__gte=now,
        ).update(status=P.DISPENSED.value, dispensed_at=now, updated_at=now)
        if not changed:
            latest = Prescription.objects.filter(id=rx.id).first()
            if latest is None:
                raise NotFound('Prescription not found.')
            if latest.status == P.ROUTED and latest.is_expired(now):
                raise Expired(latest.valid_until)
            raise _invalid(latest.status, P.DISPENSED.value)
        log_transition(
            user=agent, object_type='prescription', object_id=rx.id,
            action='prescription_dispensed', from_status=P.ROUTED.value, to_status=P.DISPENSED.value,
        )

    logger.info('prescription %s dispensed by pharmacy %s', rx.id, agent.id)
    return get_prescription(rx.id)
