from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from django.db import transaction

from .models import CustomUser, DepositRequest, Wallet, WalletTransaction, WithdrawalRequest
from .services import requests as request_service
from .services.referral_graph import validate_sponsor
from core.exceptions import InvalidReferralCode


class RegisterSerializer(serializers.ModelSerializer):
    # Inputs
    password = serializers.CharField(write_only=True, required=True, validators=[validate_password])
    full_name = serializers.CharField(required=False, allow_blank=True)
    mobile = serializers.CharField(required=False, allow_blank=True)
    whatsapp = serializers.CharField(required=False, allow_blank=True)
    referral_code = serializers.CharField(required=False, allow_blank=True, write_only=True)

    # Outputs
    my_referral_code = serializers.CharField(source='referral_code', read_only=True)
    sponsor_username = serializers.CharField(source='sponsor.username', read_only=True, default=None)

    class Meta:
        model = CustomUser
        fields = (
            'id', 'username', 'email', 'password', 'full_name', 'mobile', 'whatsapp',
            'referral_code', 'my_referral_code', 'sponsor_username',
        )

    def validate_username(self, value):
        value = (value or '').strip()
        if CustomUser.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError('Username already exists.')
        return value

    def validate_email(self, value):
        value = (value or '').strip().lower() or None
        if value and CustomUser.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Email already registered.')
        return value

    def validate_mobile(self, value):
        value = (value or '').strip()
        if value:
            digits = ''.join(c for c in value if c.isdigit())
            if len(digits) < 7 or len(digits) > 15:
                raise serializers.ValidationError('Enter a valid mobile number.')
        return value

    def validate(self, attrs):
        code = (attrs.pop('referral_code', '') or '').strip()
        sponsor = None
        if code:
            sponsor = CustomUser.objects.filter(referral_code__iexact=code).first()
            if sponsor is None:
                raise InvalidReferralCode(referral_code=code)
        attrs['sponsor'] = sponsor
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        password = validated_data.pop('password')
        user = CustomUser(**validated_data)
        validate_sponsor(user, validated_data.get('sponsor'))
        user.set_password(password)
        user.save()
        return user


class UserSerializer(serializers.ModelSerializer):
    sponsor_username = serializers.CharField(source='sponsor.username', read_only=True, default=None)

    class Meta:
        model = CustomUser
        fields = [
            'id', 'username', 'email', 'full_name', 'mobile', 'whatsapp',
            'role', 'status', 'referral_code', 'sponsor', 'sponsor_username', 'date_joined',
        ]
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomUser
        fields = ['id', 'username', 'email', 'full_name', 'mobile', 'whatsapp', 'referral_code']
        read_only_fields = ['id', 'username', 'email', 'referral_code']


class PasswordChangeSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, validators=[validate_password])

    def validate_old_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def save(self, **kwargs):
        user = self.context['request'].user
        user.set_password(self.validated_data['new_password'])
        user.save(update_fields=['password'])
        return user


class WalletSerializer(serializers.ModelSerializer):
    total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Wallet
        fields = ['available', 'pending', 'held', 'total', 'updated_at']
        read_only_fields = fields


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = ['id', 'type', 'amount', 'status', 'description', 'created_at']
        read_only_fields = fields


class DepositRequestSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        model = DepositRequest
        fields = [
            'id', 'amount', 'method', 'reference_id', 'note',
            'status', 'decision_note', 'requested_at', 'decided_at',
        ]
        read_only_fields = ['status', 'decision_note', 'requested_at', 'decided_at']

    def create(self, validated_data):
        user = self.context['request'].user
        return request_service.create_deposit(
            user.pk,
            validated_data['amount'],
            validated_data.get('method'),
            reference_id=validated_data.get('reference_id', ''),
            note=validated_data.get('note', ''),
        )


class WithdrawalRequestSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    account_details = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)

    class Meta:
        model = WithdrawalRequest
        fields = [
            'id', 'amount', 'method', 'account_details', 'note',
            'status', 'decision_note', 'requested_at', 'decided_at', 'payout_ref',
        ]
        read_only_fields = ['status', 'decision_note', 'requested_at', 'decided_at', 'payout_ref']

    def create(self, validated_data):
        user = self.context['request'].user
        return request_service.create_withdrawal(
            user.pk,
            validated_data['amount'],
            validated_data.get('method'),
            account_details=validated_data.get('account_details') or {},
            note=validated_data.get('note', ''),
        )
