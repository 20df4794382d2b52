"""
Service-level tests for the allocation engine and the occupancy ledger.

After every sequence of operations a bed is ``occupied`` exactly when an
active occupancy references it, and no bed or patient has more than one
active occupancy.
"""
import threading
from datetime import date

import pytest
from django.db import IntegrityError, OperationalError, connection, transaction
from django.utils import timezone
from rest_framework.exceptions import NotAuthenticated, NotFound, PermissionDenied, ValidationError

from inpatient.exceptions import Conflict
from inpatient.models import AuditEvent, BedOccupancy, BedSpace
from inpatient.services import allocation, catalog, ledger
from inpatient.services.reporting import find_inconsistencies

pytestmark = pytest.mark.django_db


def assert_consistent():
    assert find_inconsistencies() == []
    for bed in BedSpace.objects.all():
        assert bed.occupancies.filter(status='active').count() <= 1


def test_allocate_then_discharge_round_trip(staff_user, patient):
    bed = catalog.create_bed(staff_user, room_number='101', bed_number='A', type='standard')
    assert bed.status == 'available'

    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='Observation')
    bed.refresh_from_db()
    assert bed.status == 'occupied'
    assert occ.status == 'active'
    assert occ.priority == 'normal'
    assert occ.admission_date is not None
    assert_consistent()

    allocation.discharge(staff_user, occ.id, 'Stable, sent home')
    bed.refresh_from_db()
    occ.refresh_from_db()
    assert bed.status == 'available'
    assert occ.status == 'discharged'
    assert occ.actual_discharge_date is not None
    assert occ.notes.endswith('\n\nDischarge Notes: Stable, sent home')
    assert_consistent()


def test_allocate_keeps_optional_fields(doctor_user, patient, bed):
    occ = allocation.allocate(
        doctor_user, bed_id=bed.id, patient_id=patient.id, admission_reason='Pneumonia',
        doctor_id=doctor_user.id, diagnosis='CAP', expected_discharge_date=date(2030, 1, 5),
        priority='urgent', notes='NPO',
    )
    occ.refresh_from_db()
    assert occ.doctor_id == doctor_user.id
    assert occ.diagnosis == 'CAP'
    assert occ.expected_discharge_date == date(2030, 1, 5)
    assert occ.priority == 'urgent'
    assert occ.notes == 'NPO'


def test_allocate_twice_on_same_bed_is_rejected(staff_user, patient, make_patient, bed):
    allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    other = make_patient('patient2')
    with pytest.raises(Conflict) as excinfo:
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=other.id, admission_reason='B')
    assert str(excinfo.value.detail) == 'Bed space is not available for allocation'
    assert BedOccupancy.objects.filter(bed=bed, status='active').count() == 1
    assert not BedOccupancy.objects.filter(patient=other).exists()


def test_patient_cannot_hold_two_beds(staff_user, patient, bed, other_bed):
    allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    with pytest.raises(Conflict) as excinfo:
        allocation.allocate(staff_user, bed_id=other_bed.id, patient_id=patient.id, admission_reason='B')
    assert str(excinfo.value.detail) == 'Patient is already allocated to another bed'
    other_bed.refresh_from_db()
    assert other_bed.status == 'available'
    assert_consistent()


@pytest.mark.parametrize('status', ['maintenance', 'reserved'])
def test_allocate_requires_available_bed(staff_user, patient, make_bed, status):
    bed = make_bed('201', 'B', status=status)
    with pytest.raises(Conflict):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    assert not BedOccupancy.objects.exists()


def test_allocate_rejects_inactive_bed(staff_user, patient, make_bed):
    bed = make_bed('201', 'B', is_active=False)
    with pytest.raises(Conflict):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')


def test_allocate_not_found_and_validation(staff_user, patient, bed):
    with pytest.raises(NotFound):
        allocation.allocate(staff_user, bed_id=999999, patient_id=patient.id, admission_reason='A')
    with pytest.raises(NotFound):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=999999, admission_reason='A')
    with pytest.raises(ValidationError):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='   ')
    with pytest.raises(ValidationError):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A', priority='asap')
    bed.refresh_from_db()
    assert bed.status == 'available'


def test_allocate_rejects_non_doctor_as_attending(staff_user, patient, bed):
    with pytest.raises(ValidationError):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A',
                            doctor_id=staff_user.id)
    with pytest.raises(NotFound):
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A',
                            doctor_id=999999)


def test_constraint_violation_surfaces_as_retryable_conflict(staff_user, patient, make_patient, bed):
    # a concurrent writer got in first but the bed row still says available
    squatter = make_patient('patient2')
    BedOccupancy.objects.create(bed=bed, patient=squatter, admission_date=timezone.now(), admission_reason='race')

    with pytest.raises(Conflict) as excinfo:
        allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    assert str(excinfo.value.detail) == allocation.RACE_MESSAGE
    assert not BedOccupancy.objects.filter(patient=patient).exists()
    bed.refresh_from_db()
    assert bed.status == 'available'


def test_lock_timeout_surfaces_as_retryable_conflict(staff_user, patient, bed, monkeypatch):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')

    def locked(*ids):
        raise OperationalError('database is locked')

    monkeypatch.setattr(allocation, '_lock_beds', locked)
    for call in (
        lambda: allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='B'),
        lambda: allocation.transfer(staff_user, occ.id, new_bed_id=bed.id),
        lambda: allocation.discharge(staff_user, occ.id),
    ):
        with pytest.raises(Conflict) as excinfo:
            call()
        assert str(excinfo.value.detail) == allocation.RACE_MESSAGE

    occ.refresh_from_db()
    assert occ.status == 'active'


@pytest.mark.django_db(transaction=True)
def test_concurrent_allocations_of_one_bed_admit_exactly_one(staff_user, patient, make_patient, bed):
    patients = [patient, make_patient('patient2')]
    gate = threading.Barrier(len(patients))
    outcomes = []

    def admit(profile):
        try:
            gate.wait(timeout=5)
            allocation.allocate(staff_user, bed_id=bed.id, patient_id=profile.id, admission_reason='A')
            outcomes.append('ok')
        except Conflict:
            outcomes.append('conflict')
        finally:
            connection.close()

    threads = [threading.Thread(target=admit, args=(p,)) for p in patients]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ['conflict', 'ok']
    assert BedOccupancy.objects.filter(bed=bed, status=BedOccupancy.STATUS_ACTIVE).count() == 1
    bed.refresh_from_db()
    assert bed.status == 'occupied'
    assert find_inconsistencies() == []


def test_database_enforces_single_active_occupancy(patient, make_patient, bed, other_bed):
    now = timezone.now()
    BedOccupancy.objects.create(bed=bed, patient=patient, admission_date=now, admission_reason='A')
    with pytest.raises(IntegrityError), transaction.atomic():
        BedOccupancy.objects.create(bed=bed, patient=make_patient('p2'), admission_date=now, admission_reason='B')
    with pytest.raises(IntegrityError), transaction.atomic():
        BedOccupancy.objects.create(bed=other_bed, patient=patient, admission_date=now, admission_reason='C')
    # closed rows do not count
    BedOccupancy.objects.create(bed=bed, patient=make_patient('p3'), admission_date=now,
                                admission_reason='D', status='discharged')


def test_discharge_closed_or_missing_occupancy(staff_user, patient, bed):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    allocation.discharge(staff_user, occ.id)
    occ.refresh_from_db()
    assert occ.notes == ''
    with pytest.raises(Conflict) as excinfo:
        allocation.discharge(staff_user, occ.id, 'again')
    assert str(excinfo.value.detail) == 'Patient is not currently admitted to this bed'
    with pytest.raises(NotFound):
        allocation.discharge(staff_user, 999999)


def test_transfer_links_chain_and_moves_status(doctor_user, patient, bed, other_bed):
    o1 = allocation.allocate(doctor_user, bed_id=bed.id, patient_id=patient.id, admission_reason='Sepsis',
                             doctor_id=doctor_user.id, diagnosis='Sepsis', priority='high', notes='start')
    o2 = allocation.transfer(doctor_user, o1.id, other_bed.id, 'Needs isolation')

    o1.refresh_from_db()
    o2.refresh_from_db()
    bed.refresh_from_db()
    other_bed.refresh_from_db()
    assert o1.status == 'transferred'
    assert o1.actual_discharge_date is not None
    assert o1.transferred_to_id == o2.id
    assert o1.notes == 'start\n\nTransfer Reason: Needs isolation'
    assert o2.status == 'active'
    assert o2.transferred_from_id == o1.id
    assert o2.bed_id == other_bed.id
    assert o2.admission_reason == 'Transferred from Room 101 Bed A'
    assert (o2.doctor_id, o2.diagnosis, o2.priority) == (doctor_user.id, 'Sepsis', 'high')
    assert o2.notes == 'Needs isolation'
    assert bed.status == 'available'
    assert other_bed.status == 'occupied'

    active = ledger.active_occupancy_for_patient(patient.id)
    assert active.id == o2.id
    assert BedOccupancy.objects.filter(patient=patient).count() == 2
    assert_consistent()


def test_transfer_chain_can_continue(staff_user, patient, bed, other_bed, make_bed):
    third = make_bed('103', 'A')
    o1 = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    o2 = allocation.transfer(staff_user, o1.id, other_bed.id)
    o3 = allocation.transfer(staff_user, o2.id, third.id)
    o2.refresh_from_db()
    assert (o2.transferred_from_id, o2.transferred_to_id) == (o1.id, o3.id)
    assert o3.transferred_to_id is None
    with pytest.raises(Conflict):
        allocation.transfer(staff_user, o1.id, bed.id)
    assert_consistent()


def test_transfer_to_unavailable_bed_leaves_everything_untouched(staff_user, patient, bed, make_bed):
    busy = make_bed('301', 'A', status='maintenance')
    o1 = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')

    with pytest.raises(Conflict) as excinfo:
        allocation.transfer(staff_user, o1.id, busy.id)
    assert str(excinfo.value.detail) == 'New bed space is not available'
    with pytest.raises(Conflict):
        allocation.transfer(staff_user, o1.id, bed.id)
    with pytest.raises(NotFound) as excinfo:
        allocation.transfer(staff_user, o1.id, 999999)
    assert str(excinfo.value.detail) == 'New bed space not found'

    o1.refresh_from_db()
    bed.refresh_from_db()
    assert o1.status == 'active'
    assert bed.status == 'occupied'
    assert BedOccupancy.objects.count() == 1


def test_update_occupancy_patches_open_record_only(staff_user, doctor_user, patient, bed):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    ledger.update_occupancy(staff_user, occ.id, diagnosis='Flu', priority='high', doctor_id=doctor_user.id)
    occ.refresh_from_db()
    assert (occ.diagnosis, occ.priority, occ.doctor_id, occ.status) == ('Flu', 'high', doctor_user.id, 'active')

    with pytest.raises(ValidationError):
        ledger.update_occupancy(staff_user, occ.id, status='discharged')

    allocation.discharge(staff_user, occ.id)
    with pytest.raises(Conflict) as excinfo:
        ledger.update_occupancy(staff_user, occ.id, notes='late edit')
    assert str(excinfo.value.detail) == 'Cannot update discharged or transferred occupancy records'


def test_update_occupancy_and_bed_reject_invalid_values(staff_user, patient, bed):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    with pytest.raises(ValidationError) as excinfo:
        ledger.update_occupancy(staff_user, occ.id, priority='whenever')
    assert 'priority' in excinfo.value.detail
    for blank in ('', '   ', None):
        with pytest.raises(ValidationError) as excinfo:
            ledger.update_occupancy(staff_user, occ.id, admission_reason=blank)
        assert 'admissionReason' in excinfo.value.detail
    occ.refresh_from_db()
    assert (occ.priority, occ.admission_reason) == ('normal', 'A')

    with pytest.raises(ValidationError) as excinfo:
        catalog.update_bed(staff_user, bed.id, type='hammock')
    assert 'type' in excinfo.value.detail
    catalog.update_bed(staff_user, bed.id, type='icu')
    bed.refresh_from_db()
    assert bed.type == 'icu'


def test_delete_guard_until_discharge(staff_user, patient, bed):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    with pytest.raises(Conflict) as excinfo:
        catalog.delete_bed(staff_user, bed.id)
    assert 'discharge the patient first' in str(excinfo.value.detail)

    allocation.discharge(staff_user, occ.id)
    catalog.delete_bed(staff_user, bed.id)
    bed.refresh_from_db()
    assert bed.is_active is False
    # history survives the soft delete
    assert BedOccupancy.objects.filter(bed=bed).count() == 1


def test_operations_require_bed_manager(patient_user, patient, bed):
    with pytest.raises(PermissionDenied):
        allocation.allocate(patient_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    with pytest.raises(NotAuthenticated):
        allocation.allocate(None, bed_id=bed.id, patient_id=patient.id, admission_reason='A')


def test_writes_are_audited(staff_user, patient, bed, other_bed):
    occ = allocation.allocate(staff_user, bed_id=bed.id, patient_id=patient.id, admission_reason='A')
    successor = allocation.transfer(staff_user, occ.id, other_bed.id)
    allocation.discharge(staff_user, successor.id)
    actions = list(AuditEvent.objects.order_by('id').values_list('action', flat=True))
    assert actions == ['bed_allocate', 'patient_transfer', 'patient_discharge']
    assert AuditEvent.objects.filter(user=staff_user).count() == 3
