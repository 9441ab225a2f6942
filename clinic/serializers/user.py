from rest_framework import serializers

from clinic.models import User
from clinic.validators import clean_text, validate_phone


class UserSerializer(serializers.ModelSerializer):
    created_at = serializers.DateTimeField(source='date_joined', read_only=True)
    is_locked = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'role', 'phone', 'avatar', 'is_active',
            'last_login', 'last_login_ip', 'preferences', 'is_locked',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_is_locked(self, obj) -> bool:
        return obj.is_locked()


class UserWriteSerializer(serializers.Serializer):
    """Admin side create/update of staff accounts."""
    name = serializers.CharField(min_length=3, max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=[r for r, _ in User.ROLE_CHOICES], default=User.ROLE_RECEPTIONIST)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, validators=[validate_phone])
    avatar = serializers.URLField(max_length=500, required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)
    preferences = serializers.JSONField(required=False)

    def validate_name(self, v):
        return clean_text(v)

    def validate_email(self, v):
        return v.strip().lower()


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[r for r, _ in User.ROLE_CHOICES], required=False)
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(max_length=100, required=False)
