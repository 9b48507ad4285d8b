from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class Plan(models.Model):
    """
    Purchasable plan. `commission_structure` maps a level ("1".."20") to the
    percentage of the plan price paid to the ancestor at that level.
    """
    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        INACTIVE = 'INACTIVE', 'Inactive'

    title = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    duration_days = models.PositiveIntegerField()
    commission_structure = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Frozen once any purchase references the plan
    LOCKED_FIELDS = ('price', 'duration_days', 'commission_structure')

    class Meta:
        ordering = ['price', 'id']
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gt=0), name='plan_price_positive'),
            models.CheckConstraint(condition=models.Q(duration_days__gt=0), name='plan_duration_positive'),
        ]

    def __str__(self):
        return f"{self.title} ({self.price})"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    @staticmethod
    def normalize_structure(raw) -> dict:
        """
        Validate and normalize a level -> percentage mapping into
        {"1": "10.00", ...}. Zero percentages are dropped.
        """
        max_levels = int(getattr(settings, 'REFERRAL_MAX_DEPTH', 20) or 20)
        if raw in (None, ''):
            return {}
        if isinstance(raw, (list, tuple)):
            # [10, 5, 2] means level 1 = 10%, level 2 = 5%, ...
            raw = {str(i + 1): v for i, v in enumerate(raw)}
        if not isinstance(raw, dict):
            raise ValidationError({'commission_structure': 'Must be an object mapping level to percentage.'})
        out = {}
        for k, v in raw.items():
            try:
                level = int(str(k).strip())
            except (TypeError, ValueError):
                raise ValidationError({'commission_structure': f'Invalid level {k!r}.'})
            if level < 1 or level > max_levels:
                raise ValidationError({'commission_structure': f'Level must be between 1 and {max_levels}.'})
            try:
                pct = Decimal(str(v))
            except (InvalidOperation, TypeError, ValueError):
                raise ValidationError({'commission_structure': f'Invalid percentage for level {level}.'})
            if pct < 0 or pct > 100:
                raise ValidationError({'commission_structure': f'Percentage for level {level} must be within 0-100.'})
            if pct == 0:
                continue
            out[str(level)] = str(pct.quantize(Decimal('0.01')))
        return out

    def percentage_for(self, level: int):
        """Decimal percentage configured for `level`, or None."""
        raw = (self.commission_structure or {}).get(str(level))
        if raw in (None, ''):
            return None
        pct = Decimal(str(raw))
        return pct if pct > 0 else None

    @property
    def has_purchases(self) -> bool:
        return self.pk is not None and self.purchases.exists()


class UserPlanQuerySet(models.QuerySet):
    def active(self, at=None):
        return self.filter(expires_at__gt=at or timezone.now())

    def expired(self, at=None):
        return self.filter(expires_at__lte=at or timezone.now())


class UserPlan(models.Model):
    """
    One purchase. Never mutated after creation; activity is derived from
    `expires_at`.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='user_plans')
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name='purchases')
    price_paid = models.DecimalField(max_digits=12, decimal_places=2)
    purchased_at = models.DateTimeField(default=timezone.now, db_index=True)
    expires_at = models.DateTimeField(db_index=True)

    objects = UserPlanQuerySet.as_manager()

    class Meta:
        ordering = ['-purchased_at', '-id']
        indexes = [models.Index(fields=['user', 'expires_at'], name='business_up_user_id_4e1f2b_idx')]

    def __str__(self):
        return f"{self.user_id} -> {self.plan.title} until {self.expires_at:%Y-%m-%d}"

    @property
    def is_active(self) -> bool:
        return self.expires_at > timezone.now()

    @staticmethod
    def expiry_for(plan: Plan, purchased_at=None):
        return (purchased_at or timezone.now()) + timedelta(days=int(plan.duration_days))


class Commission(models.Model):
    class Status(models.TextChoices):
        HELD = 'HELD', 'Held'
        APPROVED = 'APPROVED', 'Approved'
        PAID = 'PAID', 'Paid'
        REJECTED = 'REJECTED', 'Rejected'

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='commissions')
    from_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='commissions_generated'
    )
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name='commissions')
    user_plan = models.ForeignKey(UserPlan, on_delete=models.CASCADE, related_name='commissions')
    level = models.PositiveSmallIntegerField()
    percentage = models.DecimalField(max_digits=5, decimal_places=2)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.HELD, db_index=True)
    transaction = models.OneToOneField(
        'accounts.WalletTransaction', null=True, blank=True, on_delete=models.PROTECT, related_name='commission'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='commissions_decided'
    )

    class Meta:
        ordering = ['-created_at', 'level', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'user_plan', 'level'], name='uniq_commission_per_purchase_level'),
            models.CheckConstraint(condition=models.Q(amount__gt=0), name='commission_amount_positive'),
        ]
        indexes = [
            models.Index(fields=['user', 'status'], name='business_co_user_id_7a3c9d_idx'),
            models.Index(fields=['from_user'], name='business_co_from_us_2b8e6f_idx'),
        ]

    def __str__(self):
        return f"L{self.level} {self.amount} to {self.user_id} from {self.from_user_id} [{self.status}]"
