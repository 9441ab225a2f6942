from django.utils import timezone
from rest_framework import serializers

from clinic.models import Patient
from clinic.validators import clean_text, format_cpf, validate_cpf


class PatientSerializer(serializers.ModelSerializer):
    """Patient read/write serializer.

    Uniqueness of CPF and e-mail is checked by the patient service so a
    clash answers 409 rather than a field error.
    """
    cpf = serializers.CharField(max_length=14)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    age = serializers.SerializerMethodField()
    is_minor = serializers.SerializerMethodField()
    bmi = serializers.SerializerMethodField()
    bmi_classification = serializers.SerializerMethodField()
    has_active_insurance = serializers.SerializerMethodField()
    has_allergies = serializers.SerializerMethodField()
    has_chronic_diseases = serializers.SerializerMethodField()
    formatted_address = serializers.SerializerMethodField()

    class Meta:
        model = Patient
        fields = '__all__'
        read_only_fields = [
            'id', 'documents', 'is_active', 'total_appointments', 'last_appointment_date',
            'created_at', 'updated_at',
        ]

    def get_age(self, obj):
        return obj.age

    def get_is_minor(self, obj):
        return obj.is_minor()

    def get_bmi(self, obj):
        return obj.bmi()

    def get_bmi_classification(self, obj):
        return obj.bmi_classification()

    def get_has_active_insurance(self, obj):
        return obj.has_active_insurance()

    def get_has_allergies(self, obj):
        return obj.has_allergies()

    def get_has_chronic_diseases(self, obj):
        return obj.has_chronic_diseases()

    def get_formatted_address(self, obj):
        return obj.formatted_address()

    def validate_name(self, v):
        v = clean_text(v)
        if len(v) < 3:
            raise serializers.ValidationError('Name must have at least 3 characters.')
        return v

    def validate_cpf(self, v):
        v = format_cpf(v.strip())
        validate_cpf(v)
        return v

    def validate_guardian_cpf(self, v):
        if not v:
            return v
        v = format_cpf(v.strip())
        validate_cpf(v)
        return v

    def validate_email(self, v):
        return (v or '').strip().lower() or None

    def validate_birth_date(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Birth date cannot be in the future.')
        return v

    def validate_address_state(self, v):
        return (v or '').upper()


class PatientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = ['id', 'name', 'cpf', 'phone', 'email', 'health_insurance', 'birth_date']
        read_only_fields = fields


class PatientListQuerySerializer(serializers.Serializer):
    SORT_FIELDS = ['name', 'created_at', 'birth_date', 'registration_date']

    search = serializers.CharField(max_length=100, required=False)
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    health_insurance = serializers.CharField(max_length=100, required=False)
    gender = serializers.ChoiceField(choices=[g for g, _ in Patient.GENDER_CHOICES], required=False)
    sort_by = serializers.ChoiceField(choices=SORT_FIELDS, required=False, default='name')
    sort_order = serializers.ChoiceField(choices=['asc', 'desc'], required=False, default='asc')


class PatientDocumentSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=50)
    filename = serializers.CharField(max_length=255)
    url = serializers.URLField(max_length=500)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_filename(self, v):
        return clean_text(v)
