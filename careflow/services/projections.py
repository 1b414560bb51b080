"""
Read projections: role-filtered lists and detail views as plain dicts.

Patients see their own records, doctors the ones they attend or issued,
pharmacies the prescriptions routed to them, admins everything.  Lists
return ``(data, total)`` for paging.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from django.db.models import Q, QuerySet
from django.utils import timezone

from careflow.models import Appointment, Prescription, PrescriptionStatus, Role, User

MAX_PAGE_SIZE = 100


def _page(qs: QuerySet, page: int, page_size: int) -> Tuple[QuerySet, int]:
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or 20), 1), MAX_PAGE_SIZE)
    total = qs.count()
    start = (page - 1) * page_size
    return qs[start:start + page_size], total


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _person(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {'id': user.id, 'name': user.display_name, 'phone': user.phone}


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

def appointment_to_dict(appt: Appointment) -> dict:
    return {
        'id': str(appt.id),
        'status': appt.status,
        'scheduledAt': _iso(appt.scheduled_at),
        'modality': appt.modality,
        'remoteChannel': appt.remote_channel or None,
        'symptoms': appt.symptoms,
        'notes': appt.notes,
        'patient': _person(appt.patient),
        'provider': _person(appt.provider),
        'department': (
            {'id': appt.department_id, 'name': appt.department.name} if appt.department_id else None
        ),
        'cancelledBy': appt.cancelled_by_id,
        'confirmedAt': _iso(appt.confirmed_at),
        'cancelledAt': _iso(appt.cancelled_at),
        'completedAt': _iso(appt.completed_at),
        'createdAt': _iso(appt.created_at),
    }


def appointments_visible_to(actor: User) -> QuerySet:
    qs = Appointment.objects.select_related('patient', 'provider', 'department')
    if actor.role == Role.ADMIN:
        return qs
    if actor.role == Role.PATIENT:
        return qs.filter(patient_id=actor.id)
    if actor.role == Role.DOCTOR:
        return qs.filter(provider_id=actor.id)
    return qs.none()


def list_appointments(actor: User, *, status=None, modality=None, upcoming=False,
                      page=1, page_size=20) -> Tuple[List[dict], int]:
    qs = appointments_visible_to(actor)
    if status:
        qs = qs.filter(status=status)
    if modality:
        qs = qs.filter(modality=modality)
    if upcoming:
        qs = qs.filter(scheduled_at__gte=timezone.now())
    qs = qs.order_by('-scheduled_at', '-created_at')
    rows, total = _page(qs, page, page_size)
    return [appointment_to_dict(a) for a in rows], total


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------

def prescription_to_dict(rx: Prescription, *, now=None, with_items: bool = True) -> dict:
    now = now or timezone.now()
    data = {
        'id': str(rx.id),
        'number': rx.number,
        'status': rx.effective_status(now),
        'appointmentId': str(rx.appointment_id),
        'patient': _person(rx.patient),
        'provider': _person(rx.provider),
        'pharmacy': _person(rx.pharmacy),
        'diagnosis': rx.diagnosis,
        'notes': rx.notes,
        'totalPrice': str(rx.total_price),
        'issuedAt': _iso(rx.issued_at),
        'validUntil': _iso(rx.valid_until),
        'routedAt': _iso(rx.routed_at),
        'dispensedAt': _iso(rx.dispensed_at),
    }
    if with_items:
        data['items'] = [
            {
                'medicationId': item.medication_id,
                'medicationName': item.medication.name,
                'dosage': item.dosage,
                'frequency': item.frequency,
                'duration': item.duration,
                'quantity': item.quantity,
                'unitPrice': str(item.unit_price),
                'lineTotal': str(item.line_total),
                'substituteAllowed': item.substitute_allowed,
            }
            for item in rx.items.all()
        ]
    return data


def prescriptions_visible_to(actor: User) -> QuerySet:
    qs = Prescription.objects.select_related('patient', 'provider', 'pharmacy').prefetch_related(
        'items__medication'
    )
    if actor.role == Role.ADMIN:
        return qs
    if actor.role == Role.PATIENT:
        return qs.filter(patient_id=actor.id)
    if actor.role == Role.DOCTOR:
        return qs.filter(provider_id=actor.id)
    if actor.role == Role.PHARMACY:
        return qs.filter(pharmacy_id=actor.id)
    return qs.none()


def _filter_status(qs: QuerySet, status: str, now) -> QuerySet:
    # Expiry is derived, so the stored status alone cannot answer the filter.
    live = Q(status=PrescriptionStatus.DISPENSED) | Q(valid_until__gte=now)
    if status == PrescriptionStatus.EXPIRED:
        return qs.exclude(live)
    if status == PrescriptionStatus.DISPENSED:
        return qs.filter(status=status)
    return qs.filter(live, status=status)


def list_prescriptions(actor: User, *, status=None, page=1, page_size=20) -> Tuple[List[dict], int]:
    now = timezone.now()
    qs = prescriptions_visible_to(actor)
    if status:
        qs = _filter_status(qs, status, now)
    qs = qs.order_by('-issued_at', '-number')
    rows, total = _page(qs, page, page_size)
    return [prescription_to_dict(rx, now=now) for rx in rows], total
