from rest_framework import serializers

from accounts.models import CustomUser, DepositRequest, WalletTransaction, WithdrawalRequest


class AdminUserSerializer(serializers.ModelSerializer):
    sponsor_username = serializers.CharField(source='sponsor.username', read_only=True, default=None)
    available = serializers.DecimalField(source='wallet.available', max_digits=12, decimal_places=2, read_only=True, default=None)
    pending = serializers.DecimalField(source='wallet.pending', max_digits=12, decimal_places=2, read_only=True, default=None)
    held = serializers.DecimalField(source='wallet.held', max_digits=12, decimal_places=2, read_only=True, default=None)
    direct_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = CustomUser
        fields = [
            'id', 'username', 'full_name', 'email', 'mobile', 'whatsapp',
            'role', 'status', 'referral_code', 'sponsor', 'sponsor_username',
            'available', 'pending', 'held', 'direct_count', 'date_joined',
        ]
        read_only_fields = fields


class AdminUserStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CustomUser.Status.choices)


class AdminSponsorSerializer(serializers.Serializer):
    sponsor_id = serializers.IntegerField(allow_null=True)


class AdminWalletAdjustSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=[('credit', 'credit'), ('debit', 'debit')])
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    note = serializers.CharField(required=False, allow_blank=True, max_length=200)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than 0.')
        return value


class AdminTransactionSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = WalletTransaction
        fields = ['id', 'user', 'username', 'type', 'amount', 'status', 'description', 'created_at']
        read_only_fields = fields


class _AdminRequestSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    decided_by_username = serializers.CharField(source='decided_by.username', read_only=True, default=None)


class AdminDepositSerializer(_AdminRequestSerializer):
    class Meta:
        model = DepositRequest
        fields = [
            'id', 'user', 'username', 'amount', 'method', 'reference_id', 'note', 'decision_note', 'status',
            'requested_at', 'decided_at', 'decided_by_username', 'transaction',
        ]
        read_only_fields = fields


class AdminWithdrawalSerializer(_AdminRequestSerializer):
    class Meta:
        model = WithdrawalRequest
        fields = [
            'id', 'user', 'username', 'amount', 'method', 'account_details', 'note', 'decision_note', 'status',
            'requested_at', 'decided_at', 'decided_by_username', 'payout_ref', 'transaction',
        ]
        read_only_fields = fields


class AdminRequestActionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)
    payout_ref = serializers.CharField(required=False, allow_blank=True, max_length=100)


class AdminBulkReleaseSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False, max_length=500)
    action = serializers.ChoiceField(choices=[('approve', 'approve'), ('reject', 'reject')])
