from rest_framework import serializers

from clinic.models import Appointment
from clinic.validators import clean_text

from .doctor import DoctorSummarySerializer
from .patient import PatientSummarySerializer


class AppointmentSerializer(serializers.ModelSerializer):
    patient = PatientSummarySerializer(read_only=True)
    doctor = DoctorSummarySerializer(read_only=True)
    patient_id = serializers.UUIDField(read_only=True)
    doctor_id = serializers.UUIDField(read_only=True)
    can_be_cancelled = serializers.SerializerMethodField()
    has_medical_record = serializers.SerializerMethodField()

    class Meta:
        model = Appointment
        fields = '__all__'
        read_only_fields = [f.name for f in Appointment._meta.fields]

    def get_can_be_cancelled(self, obj):
        return obj.can_be_cancelled()

    def get_has_medical_record(self, obj):
        return hasattr(obj, 'medical_record')


class AppointmentWriteSerializer(serializers.Serializer):
    """Input for booking and rescheduling; business checks run in the service."""
    patient_id = serializers.UUIDField()
    doctor_id = serializers.UUIDField()
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField(input_formats=['%H:%M', '%H:%M:%S'])
    duration = serializers.IntegerField(min_value=5, max_value=480, required=False)
    appointment_type = serializers.ChoiceField(choices=[t for t, _ in Appointment.TYPE_CHOICES], required=False)
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    payment_method = serializers.ChoiceField(
        choices=[m for m, _ in Appointment.PAYMENT_METHOD_CHOICES], required=False, allow_blank=True
    )
    health_insurance_authorization = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_reason(self, v):
        return clean_text(v)

    def validate_appointment_time(self, v):
        # slots are whole minutes
        return v.replace(second=0, microsecond=0)


class CancelAppointmentSerializer(serializers.Serializer):
    cancellation_reason = serializers.CharField(max_length=2000)

    def validate_cancellation_reason(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('A cancellation reason is required.')
        return v


class AppointmentListQuerySerializer(serializers.Serializer):
    doctor_id = serializers.UUIDField(required=False)
    patient_id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=[s for s, _ in Appointment.STATUS_CHOICES], required=False)
    payment_status = serializers.ChoiceField(
        choices=[s for s, _ in Appointment.PAYMENT_STATUS_CHOICES], required=False
    )
    date = serializers.DateField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        if attrs.get('date_from') and attrs.get('date_to') and attrs['date_to'] < attrs['date_from']:
            raise serializers.ValidationError({'date_to': 'date_to must not precede date_from.'})
        return attrs


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
