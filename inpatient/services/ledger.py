"""
Occupancy ledger: lookups over admission episodes and the field patch
allowed on an open admission.
"""
import logging
from typing import Optional

from django.db import OperationalError, transaction
from rest_framework.exceptions import NotFound, ValidationError

from inpatient.exceptions import Conflict, RACE_MESSAGE
from inpatient.models import BedOccupancy, User
from inpatient.services.access import require_bed_manager
from inpatient.services.audit import log_action
from inpatient.services.broadcast import publish_on_commit
from inpatient.services.paging import page_bounds

logger = logging.getLogger(__name__)

CLOSED_UPDATE_MESSAGE = 'Cannot update discharged or transferred occupancy records'

PATCHABLE_FIELDS = (
    'doctor_id', 'admission_reason', 'diagnosis',
    'expected_discharge_date', 'priority', 'notes',
)


def _name(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    return user.get_full_name() or user.username


def serialize_occupancy(occ: BedOccupancy) -> dict:
    return {
        'id': occ.id,
        'bedId': occ.bed_id,
        'roomNumber': occ.bed.room_number,
        'bedNumber': occ.bed.bed_number,
        'patientId': occ.patient_id,
        'patientName': _name(occ.patient.user),
        'doctorId': occ.doctor_id,
        'doctorName': _name(occ.doctor),
        'admissionDate': occ.admission_date.isoformat(),
        'expectedDischargeDate': occ.expected_discharge_date.isoformat() if occ.expected_discharge_date else None,
        'actualDischargeDate': occ.actual_discharge_date.isoformat() if occ.actual_discharge_date else None,
        'admissionReason': occ.admission_reason,
        'diagnosis': occ.diagnosis,
        'priority': occ.priority,
        'notes': occ.notes,
        'status': occ.status,
        'transferredFrom': occ.transferred_from_id,
        'transferredTo': occ.transferred_to_id,
    }


def _with_relations(qs):
    return qs.select_related('bed', 'patient__user', 'doctor')


def active_occupancy_for_bed(bed_id: int) -> Optional[BedOccupancy]:
    return _with_relations(BedOccupancy.objects.filter(bed_id=bed_id, status=BedOccupancy.STATUS_ACTIVE)).first()


def active_occupancy_for_patient(patient_id: int) -> Optional[BedOccupancy]:
    return _with_relations(BedOccupancy.objects.filter(patient_id=patient_id, status=BedOccupancy.STATUS_ACTIVE)).first()


def resolve_doctor(doctor_id: Optional[int]) -> Optional[User]:
    if not doctor_id:
        return None
    doctor = User.objects.filter(id=doctor_id).first()
    if not doctor:
        raise NotFound('Doctor not found')
    if doctor.role != User.ROLE_DOCTOR:
        raise ValidationError({'doctorId': 'Referenced user is not a doctor'})
    return doctor


def occupancy_history(actor, *, patient_id: Optional[int] = None, bed_id: Optional[int] = None,
                      page: int = 1, page_size: int = 10):
    """Admission episodes, newest admission first."""
    require_bed_manager(actor)
    qs = BedOccupancy.objects.all()
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if bed_id:
        qs = qs.filter(bed_id=bed_id)
    total = qs.count()
    page, page_size, start = page_bounds(page, page_size)
    items = _with_relations(qs).order_by('-admission_date', '-id')[start:start + page_size]
    return [serialize_occupancy(o) for o in items], total


def update_occupancy(actor, occupancy_id: int, **fields) -> BedOccupancy:
    """Patch the descriptive fields of an open admission.

    Status and the bed/transfer references are never touched here.
    """
    require_bed_manager(actor)
    unknown = set(fields) - set(PATCHABLE_FIELDS)
    if unknown:
        raise ValidationError({'detail': f"Unknown occupancy fields: {', '.join(sorted(unknown))}"})
    if 'doctor_id' in fields:
        resolve_doctor(fields['doctor_id'])
    if 'priority' in fields and fields['priority'] not in dict(BedOccupancy.PRIORITY_CHOICES):
        raise ValidationError({'priority': f"Unknown priority: {fields['priority']}"})
    if 'admission_reason' in fields and not (fields['admission_reason'] or '').strip():
        raise ValidationError({'admissionReason': 'Admission reason cannot be blank'})

    try:
        with transaction.atomic():
            occ = BedOccupancy.objects.select_for_update().filter(id=occupancy_id).first()
            if not occ:
                raise NotFound('Bed occupancy record not found')
            if occ.status != BedOccupancy.STATUS_ACTIVE:
                raise Conflict(CLOSED_UPDATE_MESSAGE)
            changed = []
            for name in PATCHABLE_FIELDS:
                if name in fields:
                    value = fields[name]
                    if name in ('diagnosis', 'notes'):
                        value = value or ''
                    setattr(occ, name, value)
                    changed.append(name)
            if changed:
                occ.save(update_fields=changed + ['updated_at'])
                log_action(user=actor, action='occupancy_update', object_type='occupancy', object_id=occ.id,
                           detail={'fields': changed})
                publish_on_commit('occupancy_updated', occupancyId=occ.id, bedId=occ.bed_id)
    except OperationalError:
        logger.warning("update of occupancy %s hit a lock timeout", occupancy_id, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    return occ
