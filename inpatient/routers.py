"""
URL mappings for the bed management API.

Trailing slashes are deliberately omitted (``APPEND_SLASH = False``).
"""
from django.urls import path

from .auth_views import login_view, jwt_refresh_view, logout_view
from .views.beds import beds, bed_detail, available_beds, wards, departments
from .views.occupancy import (
    allocate_bed,
    discharge_patient,
    transfer_patient,
    occupancy_detail,
    occupancy_history,
    occupancy_stats,
)

urlpatterns = [
    # Auth
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/jwt/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', logout_view, name='logout_view'),

    # Bed catalog
    path('api/beds', beds, name='beds'),
    path('api/beds/available', available_beds, name='available_beds'),
    path('api/beds/wards', wards, name='bed_wards'),
    path('api/beds/departments', departments, name='bed_departments'),
    path('api/beds/<int:pk>', bed_detail, name='bed_detail'),

    # Occupancy
    path('api/occupancy/allocate', allocate_bed, name='allocate_bed'),
    path('api/occupancy/history', occupancy_history, name='occupancy_history'),
    path('api/occupancy/stats', occupancy_stats, name='occupancy_stats'),
    path('api/occupancy/<int:pk>', occupancy_detail, name='occupancy_detail'),
    path('api/occupancy/<int:pk>/discharge', discharge_patient, name='discharge_patient'),
    path('api/occupancy/<int:pk>/transfer', transfer_patient, name='transfer_patient'),
]
