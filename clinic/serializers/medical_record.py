from django.utils import timezone
from rest_framework import serializers

from clinic.models import MedicalRecord

from .doctor import DoctorSummarySerializer
from .patient import PatientSummarySerializer


class MedicalRecordSerializer(serializers.ModelSerializer):
    patient = PatientSummarySerializer(read_only=True)
    doctor = DoctorSummarySerializer(read_only=True)
    appointment_id = serializers.UUIDField(read_only=True)
    bmi = serializers.SerializerMethodField()
    is_signed = serializers.SerializerMethodField()
    has_prescription = serializers.SerializerMethodField()
    has_tests_requested = serializers.SerializerMethodField()
    days_since_consultation = serializers.SerializerMethodField()

    class Meta:
        model = MedicalRecord
        fields = '__all__'
        read_only_fields = [
            'id', 'appointment', 'record_status', 'completed_at', 'reviewed_by', 'reviewed_at',
            'digital_signature', 'signature_timestamp', 'attachments', 'created_by', 'updated_by',
            'created_at', 'updated_at',
        ]

    def get_bmi(self, obj):
        return obj.bmi()

    def get_is_signed(self, obj):
        return bool(obj.signature_timestamp)

    def get_has_prescription(self, obj):
        return obj.has_prescription()

    def get_has_tests_requested(self, obj):
        return obj.has_tests_requested()

    def get_days_since_consultation(self, obj):
        return obj.days_since_consultation()

    def validate_consultation_date(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Consultation date cannot be in the future.')
        return v

    def validate_follow_up_date(self, v):
        if v and v < timezone.localdate():
            raise serializers.ValidationError('Follow-up date cannot be in the past.')
        return v

    def validate_vital_signs(self, v):
        if not isinstance(v, dict):
            raise serializers.ValidationError('Vital signs must be an object.')
        return v

    def validate_icd10_codes(self, v):
        if not isinstance(v, list):
            raise serializers.ValidationError('Expected a list of ICD-10 codes.')
        return [str(c).strip().upper() for c in v]


class MedicalRecordCreateSerializer(MedicalRecordSerializer):
    appointment_id = serializers.UUIDField()

    class Meta(MedicalRecordSerializer.Meta):
        pass


class SignRecordSerializer(serializers.Serializer):
    signature = serializers.CharField(max_length=10000, required=False, allow_blank=True)


class AttachmentSerializer(serializers.Serializer):
    filename = serializers.CharField(max_length=255)
    url = serializers.URLField(max_length=500)
    type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    size = serializers.IntegerField(min_value=0, required=False)


class MedicalRecordListQuerySerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(required=False)
    doctor_id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=[s for s, _ in MedicalRecord.STATUS_CHOICES], required=False)
    diagnosis = serializers.CharField(max_length=255, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
