"""
Database models for the inpatient bed backend.

Two tables carry the real invariants of the system: :class:`BedSpace`
(the physical bed inventory) and :class:`BedOccupancy` (one admission
episode of a patient on a bed).  The remaining models are the records
owned by collaborating subsystems (users, departments, patients) and
exist so that foreign keys and role checks can resolve.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class Department(models.Model):
    """A hospital department that beds may belong to."""
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Custom user model carrying the application role.

    Only ``admin``, ``doctor`` and ``staff`` users may manage beds and
    admissions; ``patient`` users own a :class:`PatientProfile`.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_STAFF = 'staff'
    ROLE_PATIENT = 'patient'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_PATIENT, 'Patient'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='users'
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class PatientProfile(models.Model):
    """Patient record owned by the patient registry."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    sex = models.CharField(max_length=10, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.user.username} (patient #{self.pk})"

    @property
    def display_name(self) -> str:
        return self.user.get_full_name() or self.user.username


class BedSpace(models.Model):
    """A physical, addressable bed.

    ``status`` is ``occupied`` exactly when an active :class:`BedOccupancy`
    references the bed; the allocation services are the only writers of
    that transition.  ``maintenance`` and ``reserved`` are administrator
    states that must be cleared before the bed can be allocated again.
    """
    TYPE_CHOICES = [
        ('general', 'General'),
        ('standard', 'Standard'),
        ('icu', 'ICU'),
        ('ccu', 'CCU'),
        ('emergency', 'Emergency'),
        ('maternity', 'Maternity'),
        ('pediatric', 'Pediatric'),
        ('surgical', 'Surgical'),
        ('private', 'Private'),
    ]

    STATUS_AVAILABLE = 'available'
    STATUS_OCCUPIED = 'occupied'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_RESERVED = 'reserved'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_OCCUPIED, 'Occupied'),
        (STATUS_MAINTENANCE, 'Maintenance'),
        (STATUS_RESERVED, 'Reserved'),
    ]

    room_number = models.CharField(max_length=20)
    bed_number = models.CharField(max_length=20)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='beds'
    )
    ward = models.CharField(max_length=100, null=True, blank=True)
    floor = models.IntegerField(null=True, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='general')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE, db_index=True)
    description = models.TextField(blank=True)
    equipment = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['room_number', 'bed_number'],
                condition=models.Q(is_active=True),
                name='uniq_active_room_bed',
            ),
        ]
        indexes = [
            models.Index(fields=['is_active', 'status']),
            models.Index(fields=['ward']),
        ]

    def __str__(self) -> str:
        return f"Room {self.room_number} Bed {self.bed_number}"


class BedOccupancy(models.Model):
    """One admission episode of a patient on a bed.

    Closed rows (``discharged`` or ``transferred``) form the audit trail
    and are never deleted.  A transfer links the closed row to its
    successor through ``transferred_to`` and back through
    ``transferred_from``.
    """
    STATUS_ACTIVE = 'active'
    STATUS_DISCHARGED = 'discharged'
    STATUS_TRANSFERRED = 'transferred'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_DISCHARGED, 'Discharged'),
        (STATUS_TRANSFERRED, 'Transferred'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    bed = models.ForeignKey(BedSpace, on_delete=models.PROTECT, related_name='occupancies')
    patient = models.ForeignKey(PatientProfile, on_delete=models.PROTECT, related_name='occupancies')
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='attended_occupancies'
    )
    admission_date = models.DateTimeField()
    expected_discharge_date = models.DateField(null=True, blank=True)
    actual_discharge_date = models.DateTimeField(null=True, blank=True)
    admission_reason = models.TextField()
    diagnosis = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    transferred_from = models.OneToOneField(
        'self', null=True, blank=True, on_delete=models.PROTECT, related_name='+'
    )
    transferred_to = models.OneToOneField(
        'self', null=True, blank=True, on_delete=models.PROTECT, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'bed occupancies'
        constraints = [
            # at most one open admission per bed and per patient
            models.UniqueConstraint(
                fields=['bed'],
                condition=models.Q(status='active'),
                name='uniq_active_occupancy_per_bed',
            ),
            models.UniqueConstraint(
                fields=['patient'],
                condition=models.Q(status='active'),
                name='uniq_active_occupancy_per_patient',
            ),
        ]
        indexes = [
            models.Index(fields=['patient', 'admission_date']),
            models.Index(fields=['bed', 'admission_date']),
        ]

    def __str__(self) -> str:
        return f"occupancy {self.pk} bed={self.bed_id} patient={self.patient_id} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}#{self.object_id}"
