"""
Workflow orchestrator: the entry point request handlers call.

Each operation checks the actor's role, runs one state-machine transition
in its own durable transaction, and only then writes the notification.
A failed notification is parked for retry and never turns a committed
transition into an error for the caller.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction

from careflow.errors import Forbidden, SideEffectDeferred
from careflow.models import Appointment, NotificationCategory, Prescription, Role, User
from careflow.services import appointments, notifications, prescriptions

logger = logging.getLogger(__name__)

C = NotificationCategory


def _require_role(actor: User, roles: Iterable[str], message: str) -> None:
    if actor.role not in {str(r) for r in roles}:
        raise Forbidden(message)


def _notify(**payload) -> None:
    """Write one notification after the transition has committed."""
    try:
        with transaction.atomic():
            notifications.push(**payload)
    except Exception as exc:
        failure = SideEffectDeferred(payload, exc)
        logger.warning('notification %s for user %s deferred: %r',
                       payload['category'], payload['recipient_id'], exc)
        try:
            with transaction.atomic():
                notifications.defer(failure)
        except Exception:
            logger.exception('could not queue deferred notification %s for user %s',
                             payload['category'], payload['recipient_id'])


def _when(appt: Appointment) -> str:
    return appointments._fmt(appt.scheduled_at)


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

def request_appointment(actor: User, *, provider_id, scheduled_at, modality, department_id=None,
                        remote_channel: str = '', symptoms: str = '') -> Appointment:
    _require_role(actor, [Role.PATIENT], 'Only patients can book appointments.')
    with transaction.atomic(durable=True):
        appt = appointments.request(
            actor, provider_id=provider_id, scheduled_at=scheduled_at, modality=modality,
            department_id=department_id, remote_channel=remote_channel, symptoms=symptoms,
        )
    if settings.NOTIFY_PROVIDER_ON_REQUEST:
        _notify(
            recipient_id=appt.provider_id,
            category=C.NEW_APPOINTMENT.value,
            title='New appointment request',
            body=f'{actor.display_name} requested a {appt.modality} appointment on {_when(appt)}.',
            subject_type='appointment', subject_id=appt.id,
        )
    return appt


def confirm_appointment(actor: User, appointment_id, note: Optional[str] = None) -> Appointment:
    _require_role(actor, [Role.DOCTOR], 'Only the attending doctor can confirm an appointment.')
    with transaction.atomic(durable=True):
        appt = appointments.confirm(actor, appointment_id, note=note)
    _notify(
        recipient_id=appt.patient_id,
        category=C.APPOINTMENT_CONFIRMED.value,
        title='Appointment confirmed',
        body=f'{actor.display_name} confirmed your appointment on {_when(appt)}.',
        subject_type='appointment', subject_id=appt.id,
    )
    return appt


def cancel_appointment(actor: User, appointment_id, reason: Optional[str] = None) -> Appointment:
    _require_role(actor, [Role.PATIENT, Role.DOCTOR], 'Your account cannot cancel appointments.')
    with transaction.atomic(durable=True):
        appt = appointments.cancel(actor, appointment_id, reason=reason)
    body = f'{actor.display_name} cancelled the appointment on {_when(appt)}.'
    if reason:
        body = f'{body} Reason: {reason}'
    _notify(
        recipient_id=appointments.counterpart_of(actor, appt),
        category=C.APPOINTMENT_CANCELLED.value,
        title='Appointment cancelled',
        body=body,
        subject_type='appointment', subject_id=appt.id,
    )
    return appt


def complete_appointment(actor: User, appointment_id) -> Appointment:
    _require_role(actor, [Role.DOCTOR], 'Only the attending doctor can complete an appointment.')
    with transaction.atomic(durable=True):
        return appointments.complete(actor, appointment_id)


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------

def issue_prescription(actor: User, *, appointment_id, diagnosis, items, validity_days=None,
                       notes: str = '') -> Prescription:
    _require_role(actor, [Role.DOCTOR], 'Only doctors can issue prescriptions.')
    with transaction.atomic(durable=True):
        return prescriptions.issue(
            actor, appointment_id=appointment_id, diagnosis=diagnosis, items=items,
            validity_days=validity_days, notes=notes,
        )


def route_prescription(actor: User, prescription_id, agent_id) -> Prescription:
    _require_role(actor, [Role.PATIENT], 'Only the patient can choose a pharmacy for a prescription.')
    with transaction.atomic(durable=True):
        rx = prescriptions.route_to_agent(actor, prescription_id, agent_id)
    _notify(
        recipient_id=rx.pharmacy_id,
        category=C.NEW_PRESCRIPTION.value,
        title='New prescription',
        body=f'Prescription {rx.number} from {actor.display_name} is ready to be filled.',
        subject_type='prescription', subject_id=rx.id,
    )
    return rx


def dispense_prescription(actor: User, prescription_id) -> Prescription:
    _require_role(actor, [Role.PHARMACY], 'Only a pharmacy can dispense prescriptions.')
    with transaction.atomic(durable=True):
        rx = prescriptions.dispense(actor, prescription_id)
    if settings.NOTIFY_PATIENT_ON_DISPENSE:
        _notify(
            recipient_id=rx.patient_id,
            category=C.PRESCRIPTION_DISPENSED.value,
            title='Prescription dispensed',
            body=f'{actor.display_name} has dispensed prescription {rx.number}.',
            subject_type='prescription', subject_id=rx.id,
        )
    return rx
