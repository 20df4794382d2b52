"""
Admission endpoints: allocate, discharge, transfer, edit, history and
statistics.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from inpatient.permissions import IsBedManager
from inpatient.serializers.occupancy import (
    AllocateSerializer,
    DischargeSerializer,
    TransferSerializer,
    OccupancyUpdateSerializer,
    HistoryQuerySerializer,
    to_occupancy_fields,
)
from inpatient.services import allocation, ledger, reporting
from inpatient.services.paging import page_bounds, pagination_meta


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBedManager])
def allocate_bed(request):
    s = AllocateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    occ = allocation.allocate(request.user, **to_occupancy_fields(s.validated_data))
    return Response({'ok': True, 'occupancyId': occ.id}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBedManager])
def discharge_patient(request, pk: int):
    s = DischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    allocation.discharge(request.user, pk, s.validated_data.get('dischargeNotes'))
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBedManager])
def transfer_patient(request, pk: int):
    s = TransferSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    successor = allocation.transfer(
        request.user, pk, s.validated_data['newBedId'], s.validated_data.get('transferReason')
    )
    return Response({'ok': True, 'occupancyId': successor.id})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsBedManager])
def occupancy_detail(request, pk: int):
    s = OccupancyUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    ledger.update_occupancy(request.user, pk, **to_occupancy_fields(s.validated_data))
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsBedManager])
def occupancy_history(request):
    q = HistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    page, page_size, _ = page_bounds(vd.get('page'), vd.get('pageSize'))
    rows, total = ledger.occupancy_history(
        request.user,
        patient_id=vd.get('patientId'),
        bed_id=vd.get('bedId'),
        page=page,
        page_size=page_size,
    )
    return Response({'ok': True, 'data': rows, 'pagination': pagination_meta(page, page_size, total)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsBedManager])
def occupancy_stats(request):
    return Response({'ok': True, 'data': reporting.occupancy_stats(request.user)})
