from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.exceptions import UserBlocked


def _add_claims(token, user):
    token['role'] = user.role
    token['username'] = user.username
    token['full_name'] = getattr(user, 'full_name', '') or ''
    token['referral_code'] = user.referral_code
    # Admin flag for guarding Admin UI routes
    token['is_admin'] = bool(user.is_platform_admin)
    return token


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        initial = getattr(self, "initial_data", {}) or {}
        username = (initial.get("username") or attrs.get("username") or "").strip()
        if not username:
            raise serializers.ValidationError({"detail": "Username is required."})
        attrs["username"] = username

        # Blocked users are inactive, so the default backend would only say
        # "no active account"; report the block once the password checks out.
        UserModel = get_user_model()
        candidate = UserModel.objects.filter(username=username).first()
        if candidate is not None and candidate.is_blocked and candidate.check_password(attrs.get("password") or ""):
            raise UserBlocked()

        return super().validate(attrs)

    @classmethod
    def get_token(cls, user):
        return _add_claims(super().get_token(user), user)


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """
    Refreshed access tokens keep the custom claims. A token whose user was
    deleted or blocked in the meantime is refused instead of raising a 500.
    """
    def validate(self, attrs):
        UserModel = get_user_model()
        try:
            data = super().validate(attrs)
        except UserModel.DoesNotExist:
            raise serializers.ValidationError({"detail": "User for this token no longer exists."})

        refresh = RefreshToken(attrs.get("refresh"))
        user_id = refresh.get(api_settings.USER_ID_CLAIM, None)
        user = UserModel.objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first() if user_id is not None else None
        if user is not None:
            if user.is_blocked:
                raise UserBlocked()
            data["access"] = str(_add_claims(refresh.access_token, user))
        return data


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer
