"""
Allocation engine: admit, discharge and transfer.

Each operation runs in a single transaction.  The rows it depends on
are locked with ``SELECT ... FOR UPDATE`` before any precondition is
evaluated, so two callers racing for the same bed or patient are
serialised and the loser sees the winner's committed state.  SQLite takes
the database write lock at ``BEGIN IMMEDIATE`` instead, which gives the
same ordering.  A write rejected by the partial unique constraints on
:class:`BedOccupancy` (``IntegrityError``), or a lock wait that times
out or deadlocks (``OperationalError``), rolls the whole operation back
and surfaces as a retryable ``Conflict``.
"""
import logging
from datetime import date
from typing import Optional

from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from inpatient.exceptions import Conflict, RACE_MESSAGE
from inpatient.models import BedSpace, BedOccupancy, PatientProfile
from inpatient.services.access import require_bed_manager
from inpatient.services.audit import log_action
from inpatient.services.broadcast import publish_on_commit
from inpatient.services.ledger import resolve_doctor

logger = logging.getLogger(__name__)
NOT_ADMITTED_MESSAGE = 'Patient is not currently admitted to this bed'


def _append_note(notes: str, label: str, text: Optional[str]) -> str:
    if not text:
        return notes
    return f"{notes or ''}\n\n{label}: {text}"


def _lock_beds(*bed_ids: int) -> dict:
    """Lock bed rows in ascending id order and return them by id."""
    beds = BedSpace.objects.select_for_update().filter(id__in=bed_ids).order_by('id')
    return {b.id: b for b in beds}


def _set_bed_status(bed: BedSpace, status: str) -> None:
    bed.status = status
    bed.save(update_fields=['status', 'updated_at'])


def _lock_occupancy(occupancy_id: int) -> BedOccupancy:
    occ = BedOccupancy.objects.select_for_update().filter(id=occupancy_id).first()
    if not occ:
        raise NotFound('Bed occupancy record not found')
    if occ.status != BedOccupancy.STATUS_ACTIVE:
        raise Conflict(NOT_ADMITTED_MESSAGE)
    return occ


def allocate(actor, *, bed_id: int, patient_id: int, admission_reason: str, doctor_id: Optional[int] = None,
             diagnosis: str = '', expected_discharge_date: Optional[date] = None,
             priority: Optional[str] = None, notes: str = '') -> BedOccupancy:
    """Admit a patient to an available bed and mark the bed occupied."""
    require_bed_manager(actor)
    if not (admission_reason or '').strip():
        raise ValidationError({'admissionReason': 'Admission reason is required'})
    priority = priority or 'normal'
    if priority not in dict(BedOccupancy.PRIORITY_CHOICES):
        raise ValidationError({'priority': f'Unknown priority: {priority}'})
    doctor = resolve_doctor(doctor_id)

    try:
        with transaction.atomic():
            bed = _lock_beds(bed_id).get(bed_id)
            if not bed:
                raise NotFound('Bed space not found')
            if not bed.is_active or bed.status != BedSpace.STATUS_AVAILABLE:
                raise Conflict('Bed space is not available for allocation')
            patient = PatientProfile.objects.select_for_update().filter(id=patient_id).first()
            if not patient:
                raise NotFound('Patient not found')
            if BedOccupancy.objects.filter(patient_id=patient.id, status=BedOccupancy.STATUS_ACTIVE).exists():
                raise Conflict('Patient is already allocated to another bed')

            occ = BedOccupancy.objects.create(
                bed=bed,
                patient=patient,
                doctor=doctor,
                admission_date=timezone.now(),
                expected_discharge_date=expected_discharge_date,
                admission_reason=admission_reason,
                diagnosis=diagnosis or '',
                notes=notes or '',
                priority=priority,
                status=BedOccupancy.STATUS_ACTIVE,
            )
            _set_bed_status(bed, BedSpace.STATUS_OCCUPIED)
            log_action(user=actor, action='bed_allocate', object_type='occupancy', object_id=occ.id,
                       detail={'bedId': bed.id, 'patientId': patient.id})
            publish_on_commit('bed_allocated', occupancyId=occ.id, bedId=bed.id, patientId=patient.id)
    except (IntegrityError, OperationalError):
        logger.warning("allocate rejected by constraint or lock timeout (bed=%s patient=%s)",
                       bed_id, patient_id, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    logger.info("patient %s allocated to bed %s (occupancy %s)", patient_id, bed_id, occ.id)
    return occ


def discharge(actor, occupancy_id: int, discharge_notes: Optional[str] = None) -> BedOccupancy:
    """Close an open admission and free its bed."""
    require_bed_manager(actor)
    try:
        with transaction.atomic():
            occ = _lock_occupancy(occupancy_id)
            bed = _lock_beds(occ.bed_id)[occ.bed_id]
            occ.status = BedOccupancy.STATUS_DISCHARGED
            occ.actual_discharge_date = timezone.now()
            occ.notes = _append_note(occ.notes, 'Discharge Notes', discharge_notes)
            occ.save(update_fields=['status', 'actual_discharge_date', 'notes', 'updated_at'])
            _set_bed_status(bed, BedSpace.STATUS_AVAILABLE)
            log_action(user=actor, action='patient_discharge', object_type='occupancy', object_id=occ.id,
                       detail={'bedId': bed.id, 'patientId': occ.patient_id})
            publish_on_commit('patient_discharged', occupancyId=occ.id, bedId=bed.id, patientId=occ.patient_id)
    except OperationalError:
        logger.warning("discharge of occupancy %s hit a lock timeout", occupancy_id, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    logger.info("occupancy %s discharged, bed %s available", occ.id, occ.bed_id)
    return occ


def transfer(actor, occupancy_id: int, new_bed_id: int, transfer_reason: Optional[str] = None) -> BedOccupancy:
    """Move a patient to another bed.

    The open admission is closed as ``transferred`` and a successor
    admission is opened on ``new_bed_id``; the two rows point at each
    other through ``transferred_to`` / ``transferred_from``.  Returns the
    successor.
    """
    require_bed_manager(actor)
    try:
        with transaction.atomic():
            source = _lock_occupancy(occupancy_id)
            beds = _lock_beds(source.bed_id, new_bed_id)
            old_bed = beds[source.bed_id]
            new_bed = beds.get(new_bed_id)
            if not new_bed:
                raise NotFound('New bed space not found')
            if new_bed.id == old_bed.id or not new_bed.is_active or new_bed.status != BedSpace.STATUS_AVAILABLE:
                raise Conflict('New bed space is not available')

            now = timezone.now()
            source.status = BedOccupancy.STATUS_TRANSFERRED
            source.actual_discharge_date = now
            source.notes = _append_note(source.notes, 'Transfer Reason', transfer_reason)
            source.save(update_fields=['status', 'actual_discharge_date', 'notes', 'updated_at'])
            _set_bed_status(old_bed, BedSpace.STATUS_AVAILABLE)

            successor = BedOccupancy.objects.create(
                bed=new_bed,
                patient_id=source.patient_id,
                doctor_id=source.doctor_id,
                admission_date=now,
                expected_discharge_date=source.expected_discharge_date,
                admission_reason=f"Transferred from Room {old_bed.room_number} Bed {old_bed.bed_number}",
                diagnosis=source.diagnosis,
                notes=transfer_reason or '',
                priority=source.priority,
                status=BedOccupancy.STATUS_ACTIVE,
                transferred_from=source,
            )
            _set_bed_status(new_bed, BedSpace.STATUS_OCCUPIED)

            source.transferred_to = successor
            source.save(update_fields=['transferred_to', 'updated_at'])
            log_action(user=actor, action='patient_transfer', object_type='occupancy', object_id=successor.id,
                       detail={'from': source.id, 'fromBedId': old_bed.id, 'toBedId': new_bed.id})
            publish_on_commit('patient_transferred', occupancyId=successor.id, fromOccupancyId=source.id,
                              bedId=new_bed.id, fromBedId=old_bed.id, patientId=source.patient_id)
    except (IntegrityError, OperationalError):
        logger.warning("transfer of occupancy %s to bed %s rejected by constraint or lock timeout",
                       occupancy_id, new_bed_id, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    logger.info("occupancy %s transferred to bed %s as occupancy %s", occupancy_id, new_bed_id, successor.id)
    return successor
