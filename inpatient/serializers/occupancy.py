import bleach
from rest_framework import serializers

from inpatient.models import BedOccupancy

PRIORITIES = [code for code, _ in BedOccupancy.PRIORITY_CHOICES]


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class _FreeTextMixin:
    def validate_diagnosis(self, v):
        return _clean(v)

    def validate_notes(self, v):
        return _clean(v)


class AllocateSerializer(_FreeTextMixin, serializers.Serializer):
    bedId = serializers.IntegerField(min_value=1)
    patientId = serializers.IntegerField(min_value=1)
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    admissionReason = serializers.CharField(max_length=2000)
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    expectedDischargeDate = serializers.DateField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_admissionReason(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Admission reason is required')
        return v


class DischargeSerializer(serializers.Serializer):
    dischargeNotes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_dischargeNotes(self, v):
        return _clean(v) or None


class TransferSerializer(serializers.Serializer):
    newBedId = serializers.IntegerField(min_value=1)
    transferReason = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_transferReason(self, v):
        return _clean(v) or None


class OccupancyUpdateSerializer(_FreeTextMixin, serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    admissionReason = serializers.CharField(max_length=2000, required=False)
    diagnosis = serializers.CharField(required=False, allow_blank=True)
    expectedDischargeDate = serializers.DateField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_admissionReason(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Admission reason cannot be blank')
        return v


class HistoryQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    bedId = serializers.IntegerField(min_value=1, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, required=False)


OCCUPANCY_FIELD_MAP = {
    'bedId': 'bed_id',
    'patientId': 'patient_id',
    'doctorId': 'doctor_id',
    'admissionReason': 'admission_reason',
    'diagnosis': 'diagnosis',
    'expectedDischargeDate': 'expected_discharge_date',
    'priority': 'priority',
    'notes': 'notes',
}


def to_occupancy_fields(validated_data: dict) -> dict:
    return {OCCUPANCY_FIELD_MAP[k]: v for k, v in validated_data.items() if k in OCCUPANCY_FIELD_MAP}
