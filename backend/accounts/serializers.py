from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()

DUPLICATE_EMAIL = "A user with this email already exists."


def _normalize_email(value: str, *, exclude=None) -> str:
    email = value.strip().lower()
    taken = User.objects.filter(email__iexact=email)
    if exclude is not None:
        taken = taken.exclude(pk=exclude.pk)
    if taken.exists():
        raise serializers.ValidationError(DUPLICATE_EMAIL)
    return email


def _fill_display_name(user) -> None:
    if not user.display_name:
        user.display_name = f"{user.first_name} {user.last_name}".strip() or user.email
        user.save(update_fields=["display_name"])


class UserSerializer(serializers.ModelSerializer):
    """Profile payload; trainers also see how many classes they have listed."""

    is_trainer = serializers.BooleanField(read_only=True)
    active_class_count = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "display_name",
            "user_type",
            "is_trainer",
            "active_class_count",
        ]
        read_only_fields = ["id", "username", "user_type"]

    def get_active_class_count(self, obj):
        if not obj.is_trainer:
            return None
        return obj.fitness_classes.filter(is_active=True).count()


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "display_name", "email"]


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    user_type = serializers.ChoiceField(choices=User.USER_TYPES)

    class Meta:
        model = User
        fields = ["email", "password", "first_name", "last_name", "display_name", "user_type"]

    def validate_email(self, value: str) -> str:
        return _normalize_email(value)

    def create(self, validated_data):
        email = validated_data.pop("email")
        user = User.objects.create_user(username=email, email=email, **validated_data)
        _fill_display_name(user)
        return user


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Log in with email and password; the access token carries the user's role."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Accounts use the email address as their username.
        self.fields.pop(self.username_field)
        self.fields["email"] = serializers.EmailField()

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["user_type"] = user.user_type
        return token

    def validate(self, attrs):
        attrs[self.username_field] = attrs.pop("email").lower()
        data = super().validate(attrs)
        data["user"] = UserSerializer(self.user).data
        return data


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Editable profile fields. The role is fixed at registration."""

    class Meta:
        model = User
        fields = ["email", "first_name", "last_name", "display_name"]

    def validate_email(self, value: str) -> str:
        return _normalize_email(value, exclude=self.instance)

    def update(self, instance, validated_data):
        if "email" in validated_data:
            validated_data["username"] = validated_data["email"]
        user = super().update(instance, validated_data)
        _fill_display_name(user)
        return user


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)

    def validate(self, attrs):
        user = self.context["request"].user
        if not user.check_password(attrs["current_password"]):
            raise serializers.ValidationError({"current_password": "Current password is incorrect."})
        if attrs["new_password"] == attrs["current_password"]:
            raise serializers.ValidationError(
                {"new_password": "New password must differ from the current password."}
            )
        return attrs

    def save(self, **kwargs):
        user = self.context["request"].user
        user.set_password(self.validated_data["new_password"])
        user.save(update_fields=["password"])
        return user


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value: str) -> str:
        return value.lower()


class PasswordResetSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, min_length=8)
