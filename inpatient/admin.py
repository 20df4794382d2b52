"""
Django admin registrations for the inpatient models.

Occupancy rows are read-only here: admissions, discharges and transfers
must go through the allocation services so that bed status and the
ledger stay in step.
"""

from django.contrib import admin

from .models import (
    Department,
    User,
    PatientProfile,
    BedSpace,
    BedOccupancy,
    AuditEvent,
)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'department', 'is_staff', 'is_superuser')
    list_filter = ('role', 'department')
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'sex', 'date_of_birth', 'phone')
    search_fields = ('user__username', 'user__first_name', 'user__last_name', 'phone')


@admin.register(BedSpace)
class BedSpaceAdmin(admin.ModelAdmin):
    list_display = ('id', 'room_number', 'bed_number', 'ward', 'type', 'status', 'department', 'is_active')
    list_filter = ('status', 'type', 'is_active', 'department')
    search_fields = ('room_number', 'bed_number', 'ward')
    # status follows the ledger; deactivation goes through the delete guard
    readonly_fields = ('status', 'is_active')


@admin.register(BedOccupancy)
class BedOccupancyAdmin(admin.ModelAdmin):
    list_display = ('id', 'bed', 'patient', 'doctor', 'status', 'priority', 'admission_date', 'actual_discharge_date')
    list_filter = ('status', 'priority')
    search_fields = ('id', 'patient__user__username', 'bed__room_number')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')
