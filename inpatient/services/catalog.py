"""
Bed catalog: creation, listing, editing and soft deletion of beds.

Status transitions into and out of ``occupied`` belong to the
allocation services; catalog edits may only move a bed between the
administrator states and only while no admission is open on it.
"""
import logging
from typing import Optional

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound, ValidationError

from inpatient.exceptions import Conflict, RACE_MESSAGE
from inpatient.models import BedSpace, BedOccupancy, Department
from inpatient.services.access import require_bed_manager
from inpatient.services.audit import log_action
from inpatient.services.broadcast import publish_on_commit
from inpatient.services.ledger import active_occupancy_for_bed, serialize_occupancy
from inpatient.services.paging import page_bounds

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = 'Bed with this room and bed number already exists'
OCCUPIED_DELETE_MESSAGE = 'Cannot delete occupied bed space. Please discharge the patient first.'
ADMIN_STATUSES = {BedSpace.STATUS_AVAILABLE, BedSpace.STATUS_MAINTENANCE, BedSpace.STATUS_RESERVED}

EDITABLE_FIELDS = (
    'room_number', 'bed_number', 'department_id', 'ward', 'floor',
    'type', 'status', 'description', 'equipment', 'is_active',
)


def serialize_bed(bed: BedSpace) -> dict:
    return {
        'id': bed.id,
        'roomNumber': bed.room_number,
        'bedNumber': bed.bed_number,
        'departmentId': bed.department_id,
        'departmentName': bed.department.name if bed.department_id else None,
        'ward': bed.ward,
        'floor': bed.floor,
        'type': bed.type,
        'status': bed.status,
        'description': bed.description,
        'equipment': list(bed.equipment or []),
        'isActive': bed.is_active,
        'createdAt': bed.created_at.isoformat() if bed.created_at else None,
        'updatedAt': bed.updated_at.isoformat() if bed.updated_at else None,
    }


def _get_bed(bed_id: int, *, lock: bool = False) -> BedSpace:
    qs = BedSpace.objects.select_related('department')
    if lock:
        qs = BedSpace.objects.select_for_update()
    bed = qs.filter(id=bed_id).first()
    if not bed:
        raise NotFound('Bed space not found')
    return bed


def _check_department(department_id: Optional[int]) -> None:
    if department_id and not Department.objects.filter(id=department_id).exists():
        raise NotFound('Department not found')


def _duplicate_exists(room_number: str, bed_number: str, *, exclude_id: Optional[int] = None) -> bool:
    qs = BedSpace.objects.filter(room_number=room_number, bed_number=bed_number, is_active=True)
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def create_bed(actor, *, room_number: str, bed_number: str, type: str, department_id: Optional[int] = None,
               ward: Optional[str] = None, floor: Optional[int] = None, description: str = '',
               equipment: Optional[list] = None) -> BedSpace:
    require_bed_manager(actor)
    if type not in dict(BedSpace.TYPE_CHOICES):
        raise ValidationError({'type': f'Unknown bed type: {type}'})
    _check_department(department_id)
    if _duplicate_exists(room_number, bed_number):
        raise Conflict(DUPLICATE_MESSAGE)
    try:
        with transaction.atomic():
            bed = BedSpace.objects.create(
                room_number=room_number,
                bed_number=bed_number,
                department_id=department_id or None,
                ward=ward or None,
                floor=floor,
                type=type,
                description=description or '',
                equipment=list(equipment or []),
            )
            log_action(user=actor, action='bed_create', object_type='bed', object_id=bed.id,
                       detail={'room': room_number, 'bed': bed_number})
            publish_on_commit('bed_created', bedId=bed.id)
    except IntegrityError:
        # lost a race against a concurrent create of the same pair
        raise Conflict(DUPLICATE_MESSAGE)
    except OperationalError:
        logger.warning("create of bed %s/%s hit a lock timeout", room_number, bed_number, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    logger.info("bed %s created (room=%s bed=%s)", bed.id, room_number, bed_number)
    return bed


def list_beds(actor, *, search: Optional[str] = None, department_id: Optional[int] = None,
              type: Optional[str] = None, status: Optional[str] = None, ward: Optional[str] = None,
              page: int = 1, page_size: int = 10):
    require_bed_manager(actor)
    qs = BedSpace.objects.filter(is_active=True)
    if search:
        qs = qs.filter(Q(room_number__icontains=search) | Q(bed_number__icontains=search) | Q(ward__icontains=search))
    if department_id:
        qs = qs.filter(department_id=department_id)
    if type:
        qs = qs.filter(type=type)
    if status:
        qs = qs.filter(status=status)
    if ward:
        qs = qs.filter(ward=ward)

    total = qs.count()
    page, page_size, start = page_bounds(page, page_size)
    items = qs.select_related('department').order_by('created_at', 'id')[start:start + page_size]
    return [serialize_bed(b) for b in items], total


def get_bed_details(actor, bed_id: int) -> dict:
    require_bed_manager(actor)
    bed = _get_bed(bed_id)
    current = active_occupancy_for_bed(bed.id)
    return {
        **serialize_bed(bed),
        'currentOccupancy': serialize_occupancy(current) if current else None,
    }


def update_bed(actor, bed_id: int, **fields) -> BedSpace:
    """Patch a bed.  Only keys present in ``fields`` are written."""
    require_bed_manager(actor)
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({'detail': f"Unknown bed fields: {', '.join(sorted(unknown))}"})
    new_status = fields.get('status')
    if new_status is not None and new_status not in ADMIN_STATUSES:
        raise ValidationError({'status': 'Occupied status is set by allocation, not by editing the bed'})
    if 'type' in fields and fields['type'] not in dict(BedSpace.TYPE_CHOICES):
        raise ValidationError({'type': f"Unknown bed type: {fields['type']}"})
    if 'department_id' in fields:
        _check_department(fields['department_id'])

    try:
        with transaction.atomic():
            bed = _get_bed(bed_id, lock=True)
            room_number = fields.get('room_number') or bed.room_number
            bed_number = fields.get('bed_number') or bed.bed_number
            reactivating = fields.get('is_active') is True and not bed.is_active
            renaming = (room_number, bed_number) != (bed.room_number, bed.bed_number)
            if (renaming and bed.is_active) or reactivating:
                if _duplicate_exists(room_number, bed_number, exclude_id=bed.id):
                    raise Conflict(DUPLICATE_MESSAGE)

            status_changing = new_status is not None and new_status != bed.status
            deactivating = fields.get('is_active') is False and bed.is_active
            if (status_changing or deactivating) and active_occupancy_for_bed(bed.id):
                if deactivating:
                    raise Conflict(OCCUPIED_DELETE_MESSAGE)
                raise Conflict('Cannot change the status of a bed with an active occupancy')

            changed = []
            for name in EDITABLE_FIELDS:
                if name not in fields:
                    continue
                value = fields[name]
                if name == 'room_number':
                    value = room_number
                elif name == 'bed_number':
                    value = bed_number
                elif name == 'equipment':
                    value = list(value or [])
                elif name in ('ward', 'department_id'):
                    value = value or None
                setattr(bed, name, value)
                changed.append(name)
            if changed:
                bed.save(update_fields=changed + ['updated_at'])
                log_action(user=actor, action='bed_update', object_type='bed', object_id=bed.id,
                           detail={'fields': changed})
                publish_on_commit('bed_updated', bedId=bed.id)
    except IntegrityError:
        raise Conflict(DUPLICATE_MESSAGE)
    except OperationalError:
        logger.warning("update of bed %s hit a lock timeout", bed_id, exc_info=True)
        raise Conflict(RACE_MESSAGE)
    return bed


def delete_bed(actor, bed_id: int) -> None:
    """Soft-delete a bed that has no open admission."""
    require_bed_manager(actor)
    with transaction.atomic():
        bed = _get_bed(bed_id, lock=True)
        if BedOccupancy.objects.filter(bed_id=bed.id, status=BedOccupancy.STATUS_ACTIVE).exists():
            raise Conflict(OCCUPIED_DELETE_MESSAGE)
        if not bed.is_active:
            return
        bed.is_active = False
        bed.save(update_fields=['is_active', 'updated_at'])
        log_action(user=actor, action='bed_delete', object_type='bed', object_id=bed.id)
        publish_on_commit('bed_deleted', bedId=bed.id)
    logger.info("bed %s soft-deleted", bed_id)
