"""
Test-data builders.  They write rows directly, bypassing the state
machines, so a test can start from any status or point in time.
"""
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from careflow.models import (
    Appointment,
    AppointmentStatus,
    Department,
    Medication,
    Modality,
    PharmacyStock,
    Prescription,
    PrescriptionItem,
    PrescriptionStatus,
    ProviderProfile,
    Role,
    User,
)

_seq = {'n': 0}


def _next() -> int:
    _seq['n'] += 1
    return _seq['n']


def make_user(role=Role.PATIENT, username=None, **extra) -> User:
    username = username or f"{role}{_next()}"
    return User.objects.create_user(username=username, password='P@ssw0rd1', role=role, **extra)


def make_doctor(*, department=None, remote=True, in_person=True, **extra) -> User:
    doctor = make_user(Role.DOCTOR, **extra)
    ProviderProfile.objects.create(
        user=doctor, department=department, offers_remote=remote, offers_in_person=in_person,
    )
    return doctor


def make_department(name=None) -> Department:
    return Department.objects.create(name=name or f"Dept {_next()}")


def make_medication(name=None, price='1000') -> Medication:
    return Medication.objects.create(name=name or f"Med {_next()}", unit_price=Decimal(price))


def stock(pharmacy: User, medication: Medication, quantity: int) -> PharmacyStock:
    return PharmacyStock.objects.create(pharmacy=pharmacy, medication=medication, quantity=quantity)


def make_appointment(patient, provider, *, status=AppointmentStatus.REQUESTED, scheduled_at=None,
                     modality=Modality.IN_PERSON, **extra) -> Appointment:
    if scheduled_at is None:
        scheduled_at = timezone.now() + timedelta(days=1, minutes=_next())
    return Appointment.objects.create(
        patient=patient, provider=provider, status=status, scheduled_at=scheduled_at,
        modality=modality, **extra,
    )


def make_prescription(appointment, items, *, status=PrescriptionStatus.ISSUED, pharmacy=None,
                      valid_until=None, issued_at=None) -> Prescription:
    """``items`` is a list of ``(medication, quantity)`` pairs."""
    issued_at = issued_at or timezone.now()
    total = sum((m.unit_price * q for m, q in items), Decimal('0'))
    rx = Prescription.objects.create(
        number=f"T{_next():08d}",
        patient_id=appointment.patient_id,
        provider_id=appointment.provider_id,
        appointment=appointment,
        pharmacy=pharmacy,
        diagnosis='test diagnosis',
        total_price=total,
        status=status,
        issued_at=issued_at,
        valid_until=valid_until or issued_at + timedelta(days=7),
    )
    for medication, quantity in items:
        PrescriptionItem.objects.create(
            prescription=rx, medication=medication, quantity=quantity, unit_price=medication.unit_price,
        )
    return rx
