from decimal import Decimal

from rest_framework import serializers

from clinic.models import Payment

from .patient import PatientSummarySerializer


class PaymentSerializer(serializers.ModelSerializer):
    patient = PatientSummarySerializer(read_only=True)
    patient_id = serializers.UUIDField(read_only=True)
    appointment_id = serializers.UUIDField(read_only=True)
    health_insurance_id = serializers.UUIDField(read_only=True)
    remaining_balance = serializers.SerializerMethodField()
    is_paid = serializers.SerializerMethodField()
    is_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        exclude = ['appointment', 'health_insurance']
        read_only_fields = [f.name for f in Payment._meta.fields]

    def get_remaining_balance(self, obj):
        return obj.remaining_balance()

    def get_is_paid(self, obj):
        return obj.is_paid()

    def get_is_overdue(self, obj):
        return obj.is_overdue()

    def get_days_until_due(self, obj):
        return obj.days_until_due()


class PaymentWriteSerializer(serializers.Serializer):
    appointment_id = serializers.UUIDField()
    patient_id = serializers.UUIDField(required=False)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    discount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    discount_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100,
                                                   required=False)
    payment_method = serializers.ChoiceField(choices=[m for m, _ in Payment.METHOD_CHOICES])
    installments = serializers.IntegerField(min_value=1, max_value=48, required=False, default=1)
    due_date = serializers.DateField(required=False, allow_null=True)
    card_last_digits = serializers.RegexField(r'^\d{4}$', required=False, allow_blank=True)
    card_brand = serializers.CharField(max_length=20, required=False, allow_blank=True)
    authorization_code = serializers.CharField(max_length=50, required=False, allow_blank=True)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    health_insurance_id = serializers.UUIDField(required=False, allow_null=True)
    health_insurance_authorization = serializers.CharField(max_length=100, required=False, allow_blank=True)
    insurance_coverage_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0,
                                                         required=False, allow_null=True)
    patient_copayment = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0,
                                                 required=False, allow_null=True)
    invoice_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    notes = serializers.CharField(max_length=5000, required=False, allow_blank=True)

    def validate(self, attrs):
        amount = attrs.get('amount')
        discount = attrs.get('discount')
        if amount is not None and discount is not None and discount > amount:
            raise serializers.ValidationError({'discount': 'Discount cannot exceed the amount.'})
        return attrs


class ProcessPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=[m for m, _ in Payment.METHOD_CHOICES], required=False)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    authorization_code = serializers.CharField(max_length=50, required=False, allow_blank=True)


class CancelPaymentSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000)


class RefundPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    reason = serializers.CharField(max_length=2000)


class PaymentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s for s, _ in Payment.STATUS_CHOICES], required=False)
    method = serializers.ChoiceField(choices=[m for m, _ in Payment.METHOD_CHOICES], required=False)
    patient_id = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    overdue_only = serializers.BooleanField(required=False, allow_null=True, default=None)


class DateRangeSerializer(serializers.Serializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()

    def validate(self, attrs):
        if attrs['date_to'] < attrs['date_from']:
            raise serializers.ValidationError({'date_to': 'date_to must not precede date_from.'})
        return attrs
