"""
Database models for the care workflow.

The workflow owns three entities: appointments, prescriptions (with their
line items) and the per-user notification log.  Departments, provider
consultation modes, the medication catalog and pharmacy stock are read-only
collaborators from the workflow's point of view; they live here so the
project is self-contained, but nothing in the state machines writes them.

Status columns are only ever changed through conditional updates in
``careflow.services.appointments`` and ``careflow.services.prescriptions``.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django.utils import timezone


# ---------------------------------------------------------------------------
# Closed value sets
# ---------------------------------------------------------------------------

# Legacy spellings seen at the edges (old clients, imported rows).
_CHOICE_ALIASES = {
    'online': 'remote',
    'offline': 'in-person',
    'inperson': 'in-person',
    'pending': 'requested',
    'canceled': 'cancelled',
}


def normalize_choice(value) -> str:
    """Return the canonical spelling of an enumerated value.

    ``'DOCTOR'``, ``' doctor '`` and ``'Doctor'`` all become ``'doctor'``;
    ``'IN_PERSON'`` becomes ``'in-person'``.  Call this at system boundaries
    only (authentication, request parsing); business logic compares the
    canonical values directly.
    """
    text = str(value or '').strip().lower().replace('_', '-')
    return _CHOICE_ALIASES.get(text, text)


class Role(models.TextChoices):
    PATIENT = 'patient', 'Patient'
    DOCTOR = 'doctor', 'Doctor'
    PHARMACY = 'pharmacy', 'Pharmacy'
    ADMIN = 'admin', 'Administrator'


class Modality(models.TextChoices):
    IN_PERSON = 'in-person', 'In person'
    REMOTE = 'remote', 'Remote'


class RemoteChannel(models.TextChoices):
    VIDEO = 'video', 'Video call'
    PHONE = 'phone', 'Phone call'


class AppointmentStatus(models.TextChoices):
    REQUESTED = 'requested', 'Requested'
    CONFIRMED = 'confirmed', 'Confirmed'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class PrescriptionStatus(models.TextChoices):
    ISSUED = 'issued', 'Issued'
    ROUTED = 'routed', 'Routed'
    DISPENSED = 'dispensed', 'Dispensed'
    # Never stored: derived once the validity deadline has passed.
    EXPIRED = 'expired', 'Expired'


class NotificationCategory(models.TextChoices):
    NEW_APPOINTMENT = 'new-appointment', 'New appointment'
    APPOINTMENT_CONFIRMED = 'appointment-confirmed', 'Appointment confirmed'
    APPOINTMENT_CANCELLED = 'appointment-cancelled', 'Appointment cancelled'
    NEW_PRESCRIPTION = 'new-prescription', 'New prescription'
    PRESCRIPTION_DISPENSED = 'prescription-dispensed', 'Prescription dispensed'


STORED_PRESCRIPTION_STATUSES = [
    (PrescriptionStatus.ISSUED.value, PrescriptionStatus.ISSUED.label),
    (PrescriptionStatus.ROUTED.value, PrescriptionStatus.ROUTED.label),
    (PrescriptionStatus.DISPENSED.value, PrescriptionStatus.DISPENSED.label),
]


# ---------------------------------------------------------------------------
# Accounts & catalogs (read-only collaborators)
# ---------------------------------------------------------------------------

class User(AbstractUser):
    """Account for every actor of the workflow.

    The ``role`` decides which transitions an account may drive: patients
    book, route and cancel; doctors confirm, complete, cancel and issue;
    pharmacies dispense what was routed to them.
    """
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.PATIENT, db_index=True)
    phone = models.CharField(max_length=20, blank=True)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Department(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class ProviderProfile(models.Model):
    """Doctor-specific data, including the declared consultation modes."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='provider_profile')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='providers'
    )
    specialization = models.CharField(max_length=255, blank=True)
    offers_remote = models.BooleanField(default=True)
    offers_in_person = models.BooleanField(default=True)

    def __str__(self) -> str:
        return f"{self.user.display_name} ({self.specialization or 'general'})"


class Medication(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    is_active = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.name


class PharmacyStock(models.Model):
    """Units of one medication currently on hand at one pharmacy."""
    pharmacy = models.ForeignKey(User, on_delete=models.CASCADE, related_name='stock_entries')
    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name='stock_entries')
    quantity = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('pharmacy', 'medication')]
        indexes = [models.Index(fields=['medication', 'quantity'], name='careflow_ph_medicat_2d8e41_idx')]

    def __str__(self) -> str:
        return f"{self.medication_id}@{self.pharmacy_id}: {self.quantity}"


# ---------------------------------------------------------------------------
# Workflow entities
# ---------------------------------------------------------------------------

class Appointment(models.Model):
    """A scheduled encounter between one patient and one doctor."""
    TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(User, on_delete=models.PROTECT, related_name='patient_appointments')
    provider = models.ForeignKey(User, on_delete=models.PROTECT, related_name='provider_appointments')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    scheduled_at = models.DateTimeField(db_index=True)
    modality = models.CharField(max_length=16, choices=Modality.choices)
    remote_channel = models.CharField(max_length=8, choices=RemoteChannel.choices, blank=True, default='')
    symptoms = models.TextField(blank=True)
    # Append-only: transitions add annotations, nothing rewrites earlier text.
    notes = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.REQUESTED, db_index=True
    )
    cancelled_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'scheduled_at'], name='careflow_ap_patient_8c2f1e_idx'),
            models.Index(fields=['provider', 'scheduled_at'], name='careflow_ap_provide_4b7d0a_idx'),
        ]
        constraints = [
            # One live booking per doctor and slot.
            models.UniqueConstraint(
                fields=['provider', 'scheduled_at'],
                condition=~Q(status='cancelled'),
                name='appointment_unique_provider_slot',
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self) -> str:
        return f"appointment {self.id} p={self.patient_id} d={self.provider_id} [{self.status}]"


class Prescription(models.Model):
    """A prescription issued against one appointment.

    ``expired`` is never stored: :meth:`effective_status` derives it from
    ``valid_until`` for prescriptions that have not been dispensed.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    number = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey(User, on_delete=models.PROTECT, related_name='patient_prescriptions')
    provider = models.ForeignKey(User, on_delete=models.PROTECT, related_name='issued_prescriptions')
    appointment = models.ForeignKey(Appointment, on_delete=models.PROTECT, related_name='prescriptions')
    pharmacy = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.PROTECT, related_name='routed_prescriptions'
    )
    diagnosis = models.TextField()
    notes = models.TextField(blank=True, default='')
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=16, choices=STORED_PRESCRIPTION_STATUSES, default=PrescriptionStatus.ISSUED, db_index=True
    )
    issued_at = models.DateTimeField(default=timezone.now)
    valid_until = models.DateTimeField(db_index=True)
    routed_at = models.DateTimeField(null=True, blank=True)
    dispensed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['appointment', 'status'], name='careflow_pr_appoint_7b15cd_idx'),
            models.Index(fields=['pharmacy', 'status'], name='careflow_pr_pharmac_e0a6b8_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status='issued', pharmacy__isnull=True)
                    | Q(status__in=['routed', 'dispensed'], pharmacy__isnull=False)
                ),
                name='prescription_pharmacy_matches_status',
            ),
        ]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.status == PrescriptionStatus.DISPENSED:
            return False
        return (now or timezone.now()) > self.valid_until

    def effective_status(self, now: Optional[datetime] = None) -> str:
        if self.is_expired(now):
            return PrescriptionStatus.EXPIRED.value
        return self.status

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status != PrescriptionStatus.DISPENSED and not self.is_expired(now)

    def __str__(self) -> str:
        return f"Rx {self.number} [{self.status}]"


class PrescriptionItem(models.Model):
    """One medication line.  Owned by exactly one prescription."""
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey(Medication, on_delete=models.PROTECT, related_name='+')
    dosage = models.CharField(max_length=100, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    duration = models.CharField(max_length=100, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    substitute_allowed = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name='prescription_item_quantity_positive'),
        ]

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def __str__(self) -> str:
        return f"{self.medication_id} x{self.quantity} on {self.prescription_id}"


class Notification(models.Model):
    """Append-only message log entry; only ``read`` ever changes."""
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    category = models.CharField(max_length=32, choices=NotificationCategory.choices)
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    read = models.BooleanField(default=False)
    subject_type = models.CharField(max_length=32, blank=True, default='')
    subject_id = models.CharField(max_length=64, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['recipient', 'read'], name='careflow_no_recipie_1f6b2d_idx'),
            models.Index(fields=['recipient', 'created_at'], name='careflow_no_recipie_9a04e7_idx'),
        ]

    def __str__(self) -> str:
        return f"notif {self.id} -> {self.recipient_id} [{self.category}]"


class DeferredNotification(models.Model):
    """A notification whose write failed after its transition committed."""
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='deferred_notifications')
    category = models.CharField(max_length=32, choices=NotificationCategory.choices)
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    subject_type = models.CharField(max_length=32, blank=True, default='')
    subject_id = models.CharField(max_length=64, blank=True, default='')
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    delivered = models.ForeignKey(
        Notification, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['delivered_at', 'created_at'], name='careflow_de_deliver_6c3a90_idx')]

    def payload(self) -> dict:
        return {
            'recipient_id': self.recipient_id,
            'category': self.category,
            'title': self.title,
            'body': self.body,
            'subject_type': self.subject_type,
            'subject_id': self.subject_id,
        }

    def __str__(self) -> str:
        return f"deferred {self.id} -> {self.recipient_id} ({self.attempts} attempts)"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='careflow_au_action_5e91c3_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='careflow_au_object__a3d7f2_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.object_type}/{self.object_id}"
