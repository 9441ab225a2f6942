from rest_framework import serializers

from clinic.models import HealthInsurance
from clinic.validators import clean_text


class HealthInsuranceSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=100)
    code = serializers.CharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    is_valid = serializers.SerializerMethodField()

    class Meta:
        model = HealthInsurance
        fields = '__all__'
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']

    def get_is_valid(self, obj):
        return obj.is_valid()

    def validate_name(self, v):
        return clean_text(v)

    def validate_code(self, v):
        return (v or '').strip() or None

    def validate(self, attrs):
        start = attrs.get('contract_start_date', getattr(self.instance, 'contract_start_date', None))
        end = attrs.get('contract_end_date', getattr(self.instance, 'contract_end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'contract_end_date': 'Contract end must not precede its start.'})
        return attrs


class InsuranceListQuerySerializer(serializers.Serializer):
    search = serializers.CharField(max_length=100, required=False)
    type = serializers.ChoiceField(choices=[t for t, _ in HealthInsurance.TYPE_CHOICES], required=False)
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)


class ConsultationValueSerializer(serializers.Serializer):
    base_value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    service_type = serializers.ChoiceField(choices=['consultation', 'emergency', 'telemedicine'], required=False)
    # date the patient joined the plan, for the waiting-period check
    start_date = serializers.DateField(required=False)
