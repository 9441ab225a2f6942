from rest_framework import serializers

from clinic.models import Doctor, User
from clinic.validators import clean_text, format_cpf, validate_cpf, validate_working_hours


class DoctorSerializer(serializers.ModelSerializer):
    """Doctor read/write serializer.

    CRM+state, CPF and e-mail clashes are detected by the doctor service
    (409), so the model level unique validators are switched off here.
    """
    cpf = serializers.CharField(max_length=14)
    email = serializers.EmailField()
    user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role=User.ROLE_DOCTOR), required=False, allow_null=True
    )
    age = serializers.SerializerMethodField()
    active_days = serializers.SerializerMethodField()

    class Meta:
        model = Doctor
        fields = '__all__'
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']
        validators = []

    def get_age(self, obj):
        return obj.age

    def get_active_days(self, obj):
        return obj.active_days()

    def validate_name(self, v):
        v = clean_text(v)
        if len(v) < 3:
            raise serializers.ValidationError('Name must have at least 3 characters.')
        return v

    def validate_cpf(self, v):
        v = format_cpf(v.strip())
        validate_cpf(v)
        return v

    def validate_email(self, v):
        return v.strip().lower()

    def validate_crm(self, v):
        return v.strip()

    def validate_crm_state(self, v):
        return v.upper()

    def validate_sub_specialties(self, v):
        if not isinstance(v, list):
            raise serializers.ValidationError('Expected a list of specialties.')
        return v

    def validate_health_insurances(self, v):
        if not isinstance(v, list):
            raise serializers.ValidationError('Expected a list of plan names.')
        return v


class DoctorSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = ['id', 'name', 'crm', 'crm_state', 'specialty', 'consultation_price', 'consultation_duration']
        read_only_fields = fields


class WorkingHoursSerializer(serializers.Serializer):
    working_hours = serializers.JSONField(validators=[validate_working_hours])


class DoctorListQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=100, required=False)
    specialty = serializers.CharField(max_length=100, required=False)
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)


class ScheduleQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=90, required=False, default=7)
