"""
Bed catalog endpoints.

Admin, doctor and staff users may list, create, inspect, edit and
soft-delete beds.  Failures are raised by the catalog services and
rendered by the project exception handler.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from inpatient.permissions import IsBedManager
from inpatient.serializers.beds import (
    BedCreateSerializer,
    BedUpdateSerializer,
    BedListQuerySerializer,
    AvailableBedQuerySerializer,
    to_bed_fields,
)
from inpatient.services import catalog, reporting
from inpatient.services.paging import page_bounds, pagination_meta


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsBedManager])
def beds(request):
    """``GET`` lists active beds with filters; ``POST`` creates a bed."""
    if request.method == 'GET':
        q = BedListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        page, page_size, _ = page_bounds(vd.get('page'), vd.get('pageSize'))
        rows, total = catalog.list_beds(
            request.user,
            search=vd.get('search'),
            department_id=vd.get('departmentId'),
            type=vd.get('type'),
            status=vd.get('status'),
            ward=vd.get('ward'),
            page=page,
            page_size=page_size,
        )
        return Response({'ok': True, 'data': rows, 'pagination': pagination_meta(page, page_size, total)})

    s = BedCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bed = catalog.create_bed(request.user, **to_bed_fields(s.validated_data))
    return Response({'ok': True, 'bedId': bed.id}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsBedManager])
def bed_detail(request, pk: int):
    if request.method == 'GET':
        return Response({'ok': True, 'data': catalog.get_bed_details(request.user, pk)})
    if request.method == 'PATCH':
        s = BedUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        catalog.update_bed(request.user, pk, **to_bed_fields(s.validated_data))
        return Response({'ok': True})
    catalog.delete_bed(request.user, pk)
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsBedManager])
def available_beds(request):
    q = AvailableBedQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    data = reporting.available_beds(
        request.user,
        department_id=vd.get('departmentId'),
        type=vd.get('type'),
        ward=vd.get('ward'),
    )
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsBedManager])
def wards(request):
    return Response({'ok': True, 'data': reporting.list_wards(request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsBedManager])
def departments(request):
    return Response({'ok': True, 'data': reporting.list_departments(request.user)})
