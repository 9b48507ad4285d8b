from rest_framework import serializers

from .models import Commission, Plan, UserPlan


class PlanSerializer(serializers.ModelSerializer):
    levels = serializers.SerializerMethodField()

    class Meta:
        model = Plan
        fields = [
            'id', 'title', 'description', 'price', 'duration_days',
            'commission_structure', 'levels', 'status', 'created_at',
        ]
        read_only_fields = ['id', 'created_at', 'levels']

    def get_levels(self, obj):
        return len(obj.commission_structure or {})


class PlanWriteSerializer(serializers.Serializer):
    """
    Shape-only validation for admin plan create/update; business rules
    (percent ranges, frozen fields) live in business.services.plans.
    """
    title = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    duration_days = serializers.IntegerField(required=False)
    commission_structure = serializers.JSONField(required=False)
    status = serializers.ChoiceField(choices=Plan.Status.choices, required=False)


class UserPlanSerializer(serializers.ModelSerializer):
    plan_title = serializers.CharField(source='plan.title', read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = UserPlan
        fields = ['id', 'plan', 'plan_title', 'price_paid', 'purchased_at', 'expires_at', 'is_active']
        read_only_fields = fields


class CommissionSerializer(serializers.ModelSerializer):
    from_username = serializers.CharField(source='from_user.username', read_only=True)
    plan_title = serializers.CharField(source='plan.title', read_only=True)

    class Meta:
        model = Commission
        fields = [
            'id', 'level', 'percentage', 'amount', 'status',
            'from_user', 'from_username', 'plan', 'plan_title', 'user_plan',
            'created_at', 'decided_at',
        ]
        read_only_fields = fields


class AdminCommissionSerializer(CommissionSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta(CommissionSerializer.Meta):
        fields = ['user', 'username'] + CommissionSerializer.Meta.fields
        read_only_fields = fields


class BuyPlanSerializer(serializers.Serializer):
    plan_id = serializers.IntegerField(min_value=1)
