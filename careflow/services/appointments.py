"""
Appointment state machine.

    requested --confirm--> confirmed --complete--> completed
        |                      |
        +------cancel----------+----> cancelled

Every status change is a single conditional UPDATE keyed on the id *and*
the status that the precondition checks ran against.  If another request
moved the row first, zero rows match and the caller gets
:class:`InvalidTransition`; nothing is retried here.

A visit that has a prescription can no longer be cancelled.

These functions check ownership and status only.  Role gating and
notifications are the orchestrator's job (:mod:`careflow.services.workflow`).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import bleach
from django.db import IntegrityError, transaction
from django.db.models import Case, F, TextField, Value, When
from django.db.models.functions import Concat
from django.utils import timezone

from careflow.errors import Forbidden, InvalidSlot, InvalidTransition, NotFound, ProviderUnavailable, TooEarly
from careflow.models import Appointment, AppointmentStatus, Modality, Prescription, Role, User
from careflow.services import catalog
from careflow.services.audit import log_transition

logger = logging.getLogger(__name__)

S = AppointmentStatus

# Legal edges; anything not listed is rejected.
TRANSITIONS = {
    S.REQUESTED.value: (S.CONFIRMED.value, S.CANCELLED.value),
    S.CONFIRMED.value: (S.COMPLETED.value, S.CANCELLED.value),
    S.COMPLETED.value: (),
    S.CANCELLED.value: (),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, ())


def _fmt(dt: datetime) -> str:
    return timezone.localtime(dt).strftime('%Y-%m-%d %H:%M')


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def get_appointment(appointment_id) -> Appointment:
    appt = (
        Appointment.objects.select_related('patient', 'provider', 'department')
        .filter(id=appointment_id)
        .first()
    )
    if appt is None:
        raise NotFound('Appointment not found.')
    return appt


def is_participant(actor: User, appt: Appointment) -> bool:
    return actor.id in (appt.patient_id, appt.provider_id)


def get_for_actor(actor: User, appointment_id) -> Appointment:
    """Fetch an appointment the actor takes part in (admins see all)."""
    appt = get_appointment(appointment_id)
    if actor.role != Role.ADMIN and not is_participant(actor, appt):
        raise NotFound('Appointment not found.')
    return appt


# ---------------------------------------------------------------------------
# Error wording
# ---------------------------------------------------------------------------

def _forbidden(actor: User, action: str) -> Forbidden:
    if actor.role == Role.PATIENT:
        if action == 'cancel':
            return Forbidden('You can only cancel your own appointments.')
        return Forbidden(f'Only your doctor can {action} an appointment.')
    if actor.role == Role.DOCTOR:
        return Forbidden(f'Only the attending doctor can {action} this appointment.')
    return Forbidden(f'Your account cannot {action} appointments.')


def _invalid(current: str, target: str) -> InvalidTransition:
    verb = str(target)
    if current in Appointment.TERMINAL_STATUSES:
        msg = f'This appointment is already {current} and can no longer be {verb}.'
    else:
        msg = f'A {current} appointment cannot be {verb}.'
    return InvalidTransition(msg, current=current, requested=target)


def _annotation(actor: User, verb: str, text: str, at: datetime) -> str:
    line = f'[{verb} by {actor.display_name} at {_fmt(at)}]'
    return f'{line} {text}' if text else line


def _append_note(annotation: str):
    """SQL expression appending ``annotation`` to ``notes`` without touching prior text."""
    return Case(
        When(notes='', then=Value(annotation)),
        default=Concat(F('notes'), Value('\n' + annotation), output_field=TextField()),
        output_field=TextField(),
    )


# ---------------------------------------------------------------------------
# Conditional write
# ---------------------------------------------------------------------------

def _transition(appt: Appointment, *, actor: User, target: str, annotation: Optional[str] = None,
                **fields) -> Appointment:
    """Move ``appt`` from the status it was read with to ``target``.

    ``appt.status`` is the expected previous status; the UPDATE only matches
    if the row still has it.  Returns the reloaded appointment.
    """
    expected = str(appt.status)
    target = str(target)
    if not can_transition(expected, target):
        raise _invalid(expected, target)

    now = timezone.now()
    values = dict(fields, status=target, updated_at=now)
    if annotation:
        values['notes'] = _append_note(annotation)

    with transaction.atomic():
        changed = Appointment.objects.filter(id=appt.id, status=expected).update(**values)
        if not changed:
            latest = Appointment.objects.filter(id=appt.id).values_list('status', flat=True).first()
            if latest is None:
                raise NotFound('Appointment not found.')
            logger.info('appointment %s: lost race %s -> %s (now %s)', appt.id, expected, target, latest)
            raise _invalid(latest, target)
        log_transition(
            user=actor, object_type='appointment', object_id=appt.id,
            action=f'appointment_{target}', from_status=expected, to_status=target,
        )

    logger.info('appointment %s: %s -> %s by user %s', appt.id, expected, target, actor.id)
    return get_appointment(appt.id)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def request(patient: User, *, provider_id, scheduled_at: datetime, modality: str,
            department_id=None, remote_channel: str = '', symptoms: str = '') -> Appointment:
    """Create a ``requested`` appointment for ``patient`` with the given doctor."""
    if scheduled_at <= timezone.now():
        raise InvalidSlot('Appointments can only be booked for a future time.')

    provider = catalog.get_provider(provider_id)
    if provider.id == patient.id:
        raise InvalidSlot('You cannot book an appointment with yourself.')
    if not catalog.provider_consultation_modes(provider.id).allows(modality):
        label = 'remote' if modality == Modality.REMOTE else 'in-person'
        raise ProviderUnavailable(f'{provider.display_name} does not offer {label} consultations.')
    if modality != Modality.REMOTE:
        remote_channel = ''

    department = catalog.get_department(department_id) or catalog.default_department_for(provider.id)

    try:
        with transaction.atomic():
            appt = Appointment.objects.create(
                patient=patient,
                provider=provider,
                department=department,
                scheduled_at=scheduled_at,
                modality=modality,
                remote_channel=remote_channel or '',
                symptoms=_clean(symptoms),
                status=S.REQUESTED,
            )
            log_transition(
                user=patient, object_type='appointment', object_id=appt.id,
                action='appointment_requested', from_status='', to_status=S.REQUESTED.value,
            )
    except IntegrityError as exc:
        raise InvalidSlot(f'{provider.display_name} is already booked at {_fmt(scheduled_at)}.') from exc

    logger.info('appointment %s requested by patient %s with doctor %s', appt.id, patient.id, provider.id)
    return get_appointment(appt.id)


def confirm(actor: User, appointment_id, note: Optional[str] = None) -> Appointment:
    appt = get_appointment(appointment_id)
    if actor.id != appt.provider_id:
        raise _forbidden(actor, 'confirm')
    note = _clean(note)
    now = timezone.now()
    return _transition(
        appt, actor=actor, target=S.CONFIRMED,
        annotation=_annotation(actor, 'confirmed', note, now) if note else None,
        confirmed_at=now,
    )


def cancel(actor: User, appointment_id, reason: Optional[str] = None) -> Appointment:
    appt = get_appointment(appointment_id)
    if not is_participant(actor, appt):
        raise _forbidden(actor, 'cancel')
    if appt.is_terminal:
        raise _invalid(appt.status, S.CANCELLED)
    now = timezone.now()
    with transaction.atomic():
        # Issuance takes this row lock too; once a prescription exists the
        # visit stands, whatever later happens to the prescription.
        Appointment.objects.select_for_update().filter(id=appt.id).first()
        if Prescription.objects.filter(appointment_id=appt.id).exists():
            raise InvalidTransition(
                'A prescription has already been issued for this appointment, so it can no longer be cancelled.',
                current=str(appt.status), requested=S.CANCELLED.value,
            )
        return _transition(
            appt, actor=actor, target=S.CANCELLED,
            annotation=_annotation(actor, 'cancelled', _clean(reason), now),
            cancelled_at=now, cancelled_by_id=actor.id,
        )


def complete(actor: User, appointment_id) -> Appointment:
    appt = get_appointment(appointment_id)
    if actor.id != appt.provider_id:
        raise _forbidden(actor, 'complete')
    if appt.status != S.CONFIRMED:
        raise _invalid(appt.status, S.COMPLETED)
    now = timezone.now()
    if now < appt.scheduled_at:
        raise TooEarly(
            f'This appointment starts at {_fmt(appt.scheduled_at)}; it cannot be completed before then.',
            scheduledAt=appt.scheduled_at.isoformat(),
        )
    return _transition(appt, actor=actor, target=S.COMPLETED, completed_at=now)


def counterpart_of(actor: User, appt: Appointment) -> int:
    """Return the id of the participant who did *not* act."""
    return appt.provider_id if actor.id == appt.patient_id else appt.patient_id
