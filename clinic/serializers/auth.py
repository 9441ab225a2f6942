from rest_framework import serializers

from clinic.validators import clean_text, validate_phone


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_email(self, v):
        return v.strip().lower()


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=3, max_length=100, required=False)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, validators=[validate_phone])
    avatar = serializers.URLField(max_length=500, required=False, allow_blank=True)

    def validate_name(self, v):
        v = clean_text(v)
        if len(v) < 3:
            raise serializers.ValidationError('Name must have at least 3 characters.')
        return v


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(min_length=6, trim_whitespace=False)

    def validate(self, attrs):
        if attrs['current_password'] == attrs['new_password']:
            raise serializers.ValidationError({'new_password': 'New password must differ from the current one.'})
        return attrs


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=6, trim_whitespace=False)
    password_confirm = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({'password_confirm': 'Passwords do not match.'})
        return attrs
