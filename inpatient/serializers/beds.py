import bleach
from rest_framework import serializers

from inpatient.models import BedSpace

BED_TYPES = [code for code, _ in BedSpace.TYPE_CHOICES]
BED_STATUSES = [code for code, _ in BedSpace.STATUS_CHOICES]


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class BedCreateSerializer(serializers.Serializer):
    roomNumber = serializers.CharField(max_length=20)
    bedNumber = serializers.CharField(max_length=20)
    type = serializers.ChoiceField(choices=BED_TYPES)
    departmentId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    ward = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    floor = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
    equipment = serializers.ListField(child=serializers.CharField(max_length=100), required=False)

    def validate_roomNumber(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Room number is required')
        return v

    def validate_bedNumber(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Bed number is required')
        return v

    def validate_ward(self, v):
        return _clean(v) or None

    def validate_description(self, v):
        return _clean(v)

    def validate_equipment(self, v):
        return [item for item in (_clean(x) for x in v) if item]


class BedUpdateSerializer(BedCreateSerializer):
    """All fields optional; ``status`` and ``isActive`` may also be patched."""
    roomNumber = serializers.CharField(max_length=20, required=False)
    bedNumber = serializers.CharField(max_length=20, required=False)
    type = serializers.ChoiceField(choices=BED_TYPES, required=False)
    status = serializers.ChoiceField(choices=BED_STATUSES, required=False)
    isActive = serializers.BooleanField(required=False)


class BedListQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=64, required=False, allow_blank=True)
    departmentId = serializers.IntegerField(min_value=1, required=False)
    type = serializers.ChoiceField(choices=BED_TYPES, required=False)
    status = serializers.ChoiceField(choices=BED_STATUSES, required=False)
    ward = serializers.CharField(max_length=100, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, required=False)


class AvailableBedQuerySerializer(serializers.Serializer):
    departmentId = serializers.IntegerField(min_value=1, required=False)
    type = serializers.ChoiceField(choices=BED_TYPES, required=False)
    ward = serializers.CharField(max_length=100, required=False)


# request field -> BedSpace/service keyword
BED_FIELD_MAP = {
    'roomNumber': 'room_number',
    'bedNumber': 'bed_number',
    'type': 'type',
    'departmentId': 'department_id',
    'ward': 'ward',
    'floor': 'floor',
    'description': 'description',
    'equipment': 'equipment',
    'status': 'status',
    'isActive': 'is_active',
}


def to_bed_fields(validated_data: dict) -> dict:
    return {BED_FIELD_MAP[k]: v for k, v in validated_data.items() if k in BED_FIELD_MAP}
