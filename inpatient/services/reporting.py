"""
Read-only aggregations over the bed catalog and the occupancy ledger.

Nothing here takes row locks; readers may observe a state that a
concurrent writer is about to replace.
"""
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Exists, OuterRef, Q

from inpatient.models import BedSpace, BedOccupancy, Department
from inpatient.services.access import require_bed_manager
from inpatient.services.broadcast import stats_cache_key
from inpatient.services.catalog import serialize_bed


def available_beds(actor, *, department_id: Optional[int] = None, type: Optional[str] = None,
                   ward: Optional[str] = None) -> list[dict]:
    require_bed_manager(actor)
    qs = BedSpace.objects.filter(is_active=True, status=BedSpace.STATUS_AVAILABLE)
    if department_id:
        qs = qs.filter(department_id=department_id)
    if type:
        qs = qs.filter(type=type)
    if ward:
        qs = qs.filter(ward=ward)
    return [serialize_bed(b) for b in qs.select_related('department').order_by('room_number', 'bed_number')]


def compute_occupancy_stats() -> dict:
    beds = BedSpace.objects.filter(is_active=True).aggregate(
        totalBeds=Count('id'),
        availableBeds=Count('id', filter=Q(status=BedSpace.STATUS_AVAILABLE)),
        occupiedBeds=Count('id', filter=Q(status=BedSpace.STATUS_OCCUPIED)),
        maintenanceBeds=Count('id', filter=Q(status=BedSpace.STATUS_MAINTENANCE)),
        reservedBeds=Count('id', filter=Q(status=BedSpace.STATUS_RESERVED)),
    )
    admissions = BedOccupancy.objects.aggregate(
        totalPatients=Count('patient', distinct=True),
        currentAdmissions=Count('id', filter=Q(status=BedOccupancy.STATUS_ACTIVE)),
    )
    total = beds['totalBeds']
    rate = round(beds['occupiedBeds'] * 100 / total) if total else 0
    return {**beds, **admissions, 'occupancyRate': rate}


def occupancy_stats(actor) -> dict:
    """Bed counts by status and admission counts, cached between writes."""
    require_bed_manager(actor)
    key = stats_cache_key()
    cached = cache.get(key)
    if cached is not None:
        return cached
    stats = compute_occupancy_stats()
    cache.set(key, stats, settings.BED_STATS_CACHE_SECONDS)
    return stats


def list_wards(actor) -> list[str]:
    require_bed_manager(actor)
    wards = (
        BedSpace.objects.exclude(ward__isnull=True).exclude(ward='')
        .values_list('ward', flat=True).distinct().order_by('ward')
    )
    return list(wards)


def list_departments(actor) -> list[dict]:
    require_bed_manager(actor)
    return [{'id': d.id, 'name': d.name} for d in Department.objects.order_by('name')]


def find_inconsistencies() -> list[dict]:
    """Beds whose ``occupied`` status disagrees with the ledger."""
    active = BedOccupancy.objects.filter(bed_id=OuterRef('pk'), status=BedOccupancy.STATUS_ACTIVE)
    qs = BedSpace.objects.annotate(has_active=Exists(active)).filter(
        Q(status=BedSpace.STATUS_OCCUPIED, has_active=False)
        | (~Q(status=BedSpace.STATUS_OCCUPIED) & Q(has_active=True))
    ).order_by('id')
    return [
        {'bedId': b.id, 'roomNumber': b.room_number, 'bedNumber': b.bed_number,
         'status': b.status, 'hasActiveOccupancy': b.has_active}
        for b in qs
    ]
