from datetime import timedelta
from decimal import Decimal

import pytest
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
    AppointmentStatus,
    Notification,
    NotificationCategory,
    Prescription,
    PrescriptionStatus,
    Role,
)
from careflow.services import prescriptions, projections, workflow
from careflow.tests import builders

pytestmark = pytest.mark.django_db


@pytest.fixture
def meds(db):
    return builders.make_medication('Amoxicillin', '5000'), builders.make_medication('Ibuprofen', '3000')


@pytest.fixture
def visit(patient, doctor):
    return builders.make_appointment(
        patient, doctor, status=AppointmentStatus.COMPLETED, scheduled_at=timezone.now() - timedelta(hours=1),
    )


@pytest.fixture
def full_pharmacy(pharmacy, meds):
    builders.stock(pharmacy, meds[0], 10)
    builders.stock(pharmacy, meds[1], 4)
    return pharmacy


@pytest.fixture
def partial_pharmacy(meds):
    agent = builders.make_user(Role.PHARMACY)
    builders.stock(agent, meds[0], 50)
    builders.stock(agent, meds[1], 0)
    return agent


def _issue(doctor, visit, meds, **extra):
    return workflow.issue_prescription(
        doctor,
        appointment_id=visit.id,
        diagnosis='acute bronchitis',
        items=[
            {'medication_id': meds[0].id, 'quantity': 2, 'dosage': '1 tab', 'substitute_allowed': True},
            {'medication_id': meds[1].id, 'quantity': 1},
        ],
        **extra,
    )


def test_issue_totals_snapshot_prices(doctor, visit, meds):
    rx = _issue(doctor, visit, meds)
    assert rx.status == PrescriptionStatus.ISSUED
    assert rx.total_price == Decimal('13000')
    assert rx.pharmacy_id is None
    assert rx.patient_id == visit.patient_id
    assert rx.items.count() == 2
    assert rx.valid_until - rx.issued_at == timedelta(days=7)

    # Later catalog price changes do not touch the issued prescription.
    meds[0].unit_price = Decimal('9999')
    meds[0].save()
    rx.refresh_from_db()
    assert rx.total_price == Decimal('13000')
    assert rx.items.get(medication=meds[0]).unit_price == Decimal('5000')


def test_issue_number_format(doctor, visit, meds):
    rx = _issue(doctor, visit, meds)
    date, time, rand = rx.number.split('-')
    assert len(date) == 8 and len(time) == 6 and len(rand) == 4


def test_issue_custom_validity(doctor, visit, meds):
    rx = _issue(doctor, visit, meds, validity_days=30)
    assert rx.valid_until - rx.issued_at == timedelta(days=30)


def test_issue_against_confirmed_appointment(patient, doctor, meds):
    appt = builders.make_appointment(patient, doctor, status=AppointmentStatus.CONFIRMED)
    assert _issue(doctor, appt, meds).status == PrescriptionStatus.ISSUED


@pytest.mark.parametrize('status', [AppointmentStatus.REQUESTED, AppointmentStatus.CANCELLED])
def test_issue_requires_confirmed_or_completed(patient, doctor, meds, status):
    appt = builders.make_appointment(patient, doctor, status=status)
    with pytest.raises(InvalidTransition):
        _issue(doctor, appt, meds)
    assert not Prescription.objects.exists()


def test_issue_by_other_doctor_is_forbidden(visit, meds):
    with pytest.raises(Forbidden):
        _issue(builders.make_doctor(), visit, meds)


def test_only_doctors_issue(patient, visit, meds):
    with pytest.raises(Forbidden):
        _issue(patient, visit, meds)


def test_second_active_prescription_is_duplicate(doctor, visit, meds):
    _issue(doctor, visit, meds)
    with pytest.raises(DuplicatePrescription):
        _issue(doctor, visit, meds)
    assert Prescription.objects.count() == 1


def test_new_prescription_allowed_once_previous_expired(doctor, visit, meds):
    past = timezone.now() - timedelta(days=10)
    builders.make_prescription(visit, [(meds[0], 1)], issued_at=past, valid_until=past + timedelta(days=7))
    assert _issue(doctor, visit, meds).status == PrescriptionStatus.ISSUED


def test_new_prescription_allowed_once_previous_dispensed(doctor, visit, meds, pharmacy):
    builders.make_prescription(visit, [(meds[0], 1)], status=PrescriptionStatus.DISPENSED, pharmacy=pharmacy)
    assert _issue(doctor, visit, meds).status == PrescriptionStatus.ISSUED


@pytest.mark.parametrize('items', [
    [],
    [{'medication_id': None, 'quantity': 1}],
    [{'medication_id': 1, 'quantity': 0}],
    [{'medication_id': 1, 'quantity': -3}],
])
def test_invalid_line_items(doctor, visit, items):
    with pytest.raises(InvalidLineItem):
        workflow.issue_prescription(doctor, appointment_id=visit.id, diagnosis='x', items=items)


def test_unknown_medication_is_invalid_line_item(doctor, visit, meds):
    with pytest.raises(InvalidLineItem) as exc:
        workflow.issue_prescription(
            doctor, appointment_id=visit.id, diagnosis='x',
            items=[{'medication_id': meds[0].id + 1000, 'quantity': 1}],
        )
    assert exc.value.context['medicationId'] == meds[0].id + 1000


def test_candidates_follow_full_stock_rule(doctor, visit, meds, full_pharmacy, partial_pharmacy):
    rx = _issue(doctor, visit, meds)
    candidates = prescriptions.candidate_agents(visit.patient, rx.id)
    assert [c['id'] for c in candidates] == [full_pharmacy.id]
    assert candidates[0]['stock'] == {str(meds[0].id): 10, str(meds[1].id): 4}


def test_route_to_partial_stock_agent_is_rejected(doctor, visit, meds, full_pharmacy, partial_pharmacy):
    rx = _issue(doctor, visit, meds)
    with pytest.raises(InsufficientStock) as exc:
        workflow.route_prescription(visit.patient, rx.id, partial_pharmacy.id)
    assert exc.value.context['missingMedicationIds'] == [meds[1].id]
    rx.refresh_from_db()
    assert rx.status == PrescriptionStatus.ISSUED
    assert not Notification.objects.filter(recipient=partial_pharmacy).exists()


def test_route_notifies_agent_once(doctor, visit, meds, full_pharmacy):
    rx = _issue(doctor, visit, meds)
    rx = workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    assert rx.status == PrescriptionStatus.ROUTED
    assert rx.pharmacy_id == full_pharmacy.id
    assert rx.routed_at is not None
    sent = Notification.objects.filter(recipient=full_pharmacy)
    assert sent.count() == 1
    assert sent.get().category == NotificationCategory.NEW_PRESCRIPTION


def test_route_twice_is_invalid_transition(doctor, visit, meds, full_pharmacy):
    other = builders.make_user(Role.PHARMACY)
    builders.stock(other, meds[0], 1)
    builders.stock(other, meds[1], 1)
    rx = _issue(doctor, visit, meds)
    workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    with pytest.raises(InvalidTransition):
        workflow.route_prescription(visit.patient, rx.id, other.id)
    rx.refresh_from_db()
    assert rx.pharmacy_id == full_pharmacy.id


def test_route_by_someone_else_is_forbidden(doctor, visit, meds, full_pharmacy):
    rx = _issue(doctor, visit, meds)
    with pytest.raises(Forbidden) as exc:
        workflow.route_prescription(builders.make_user(Role.PATIENT), rx.id, full_pharmacy.id)
    assert 'not yours' in exc.value.message


def test_route_after_deadline_is_expired(visit, meds, full_pharmacy):
    past = timezone.now() - timedelta(days=8)
    rx = builders.make_prescription(visit, [(meds[0], 1)], issued_at=past, valid_until=past + timedelta(days=7))
    with pytest.raises(Expired) as exc:
        workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    local = timezone.localtime(rx.valid_until).strftime('%Y-%m-%d %H:%M')
    assert local in exc.value.message
    assert exc.value.context['deadline'] == rx.valid_until.isoformat()


def test_route_to_non_pharmacy_is_not_found(doctor, visit, meds):
    rx = _issue(doctor, visit, meds)
    with pytest.raises(NotFound):
        workflow.route_prescription(visit.patient, rx.id, doctor.id)


def test_dispense_by_wrong_agent_is_forbidden(doctor, visit, meds, full_pharmacy):
    rx = _issue(doctor, visit, meds)
    workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    with pytest.raises(Forbidden) as exc:
        workflow.dispense_prescription(builders.make_user(Role.PHARMACY), rx.id)
    assert exc.value.message == 'This prescription was sent to a different pharmacy.'


def test_dispense_completes_and_notifies_patient(doctor, visit, meds, full_pharmacy):
    rx = _issue(doctor, visit, meds)
    workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    rx = workflow.dispense_prescription(full_pharmacy, rx.id)
    assert rx.status == PrescriptionStatus.DISPENSED
    assert rx.dispensed_at is not None
    n = Notification.objects.get(recipient=visit.patient)
    assert n.category == NotificationCategory.PRESCRIPTION_DISPENSED

    with pytest.raises(InvalidTransition):
        workflow.dispense_prescription(full_pharmacy, rx.id)


def test_dispense_of_expired_routed_prescription(visit, meds, pharmacy):
    past = timezone.now() - timedelta(days=8)
    rx = builders.make_prescription(
        visit, [(meds[0], 1)], status=PrescriptionStatus.ROUTED, pharmacy=pharmacy,
        issued_at=past, valid_until=past + timedelta(days=7),
    )
    with pytest.raises(Expired):
        workflow.dispense_prescription(pharmacy, rx.id)


def test_expiry_is_derived_in_projections(visit, meds, pharmacy):
    past = timezone.now() - timedelta(days=8)
    expired = builders.make_prescription(visit, [(meds[0], 1)], issued_at=past, valid_until=past + timedelta(days=7))
    dispensed = builders.make_prescription(
        visit, [(meds[0], 1)], status=PrescriptionStatus.DISPENSED, pharmacy=pharmacy,
        issued_at=past, valid_until=past + timedelta(days=7),
    )
    live = builders.make_prescription(visit, [(meds[1], 2)])

    data, total = projections.list_prescriptions(visit.patient)
    assert total == 3
    by_id = {row['id']: row['status'] for row in data}
    assert by_id == {str(expired.id): 'expired', str(dispensed.id): 'dispensed', str(live.id): 'issued'}

    data, total = projections.list_prescriptions(visit.patient, status='expired')
    assert [row['id'] for row in data] == [str(expired.id)]
    data, total = projections.list_prescriptions(visit.patient, status='issued')
    assert [row['id'] for row in data] == [str(live.id)]


def test_pharmacy_sees_only_prescriptions_routed_to_it(visit, meds, pharmacy):
    mine = builders.make_prescription(visit, [(meds[0], 1)], status=PrescriptionStatus.ROUTED, pharmacy=pharmacy)
    builders.make_prescription(
        visit, [(meds[0], 1)], status=PrescriptionStatus.ROUTED, pharmacy=builders.make_user(Role.PHARMACY),
    )
    data, total = projections.list_prescriptions(pharmacy)
    assert total == 1 and data[0]['id'] == str(mine.id)
    with pytest.raises(NotFound):
        prescriptions.get_for_actor(builders.make_user(Role.PHARMACY), mine.id)


def test_explicit_zero_validity_is_rejected(doctor, visit, meds):
    with pytest.raises(WorkflowError):
        _issue(doctor, visit, meds, validity_days=0)
    assert not Prescription.objects.exists()


def test_no_candidates_once_routed(doctor, visit, meds, full_pharmacy):
    rx = _issue(doctor, visit, meds)
    workflow.route_prescription(visit.patient, rx.id, full_pharmacy.id)
    assert prescriptions.candidate_agents(visit.patient, rx.id) == []


def test_no_candidates_once_expired(visit, meds, full_pharmacy):
    past = timezone.now() - timedelta(days=8)
    rx = builders.make_prescription(visit, [(meds[0], 1)], issued_at=past, valid_until=past + timedelta(days=7))
    assert prescriptions.candidate_agents(visit.patient, rx.id) == []


def test_refused_cancel_leaves_prescription_on_course(patient, doctor, meds, full_pharmacy):
    appt = builders.make_appointment(patient, doctor, status=AppointmentStatus.CONFIRMED)
    rx = _issue(doctor, appt, meds)
    with pytest.raises(InvalidTransition):
        workflow.cancel_appointment(patient, appt.id)

    # The visit stands, so the prescription follows its normal course.
    workflow.route_prescription(patient, rx.id, full_pharmacy.id)
    rx = workflow.dispense_prescription(full_pharmacy, rx.id)
    assert rx.status == PrescriptionStatus.DISPENSED
    assert rx.appointment.status == AppointmentStatus.CONFIRMED
    assert prescriptions.candidate_agents(patient, rx.id) == []
