import random
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models.signals import post_save
from django.dispatch import receiver


class CustomUser(AbstractUser):
    class Role(models.TextChoices):
        USER = 'USER', 'User'
        ADMIN = 'ADMIN', 'Admin'

    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        BLOCKED = 'BLOCKED', 'Blocked'

    username = models.CharField(max_length=150, unique=True, db_index=True)
    email = models.EmailField(unique=True, null=True, blank=True)

    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER, db_index=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    # Registration profile fields
    full_name = models.CharField(max_length=150, blank=True)
    mobile = models.CharField(max_length=20, blank=True)
    whatsapp = models.CharField(max_length=20, blank=True)

    # Sponsor chain: each user points at most at one sponsor (a forest, never a cycle)
    sponsor = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.PROTECT, related_name='referrals'
    )
    referral_code = models.CharField(max_length=32, unique=True, editable=False)

    class Meta(AbstractUser.Meta):
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(sponsor=models.F('id')),
                name='user_not_own_sponsor',
            ),
        ]
        indexes = [
            models.Index(fields=['sponsor'], name='accounts_cu_sponsor_7c1e2a_idx'),
            models.Index(fields=['date_joined'], name='accounts_cu_date_jo_3b9d41_idx'),
            models.Index(fields=['role', 'status'], name='accounts_cu_role_5f0a8c_idx'),
        ]

    def __str__(self):
        return f"{self.username} ({self.role} / {self.status})"

    @property
    def is_platform_admin(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_staff or self.is_superuser

    @property
    def is_blocked(self) -> bool:
        return self.status == self.Status.BLOCKED

    @classmethod
    def generate_referral_code(cls, username: str) -> str:
        """
        USERNAME followed by 4 digits, unique across users.
        """
        base = ''.join(ch for ch in (username or '').upper() if ch.isalnum())[:24] or 'USER'
        while True:
            candidate = f"{base}{random.randint(0, 9999):04d}"
            if not cls.objects.filter(referral_code=candidate).exists():
                return candidate

    def save(self, *args, **kwargs):
        if not self.referral_code:
            self.referral_code = self.generate_referral_code(self.username)
        # Blank emails are stored as NULL so the unique constraint ignores them
        if not self.email:
            self.email = None
        # Blocked accounts cannot authenticate
        self.is_active = self.status == self.Status.ACTIVE
        # staff access follows the role; superusers keep theirs
        if self.role == self.Role.ADMIN:
            self.is_staff = True
        elif not self.is_superuser:
            self.is_staff = False
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            extra = set()
            if 'status' in update_fields:
                extra.add('is_active')
            if 'role' in update_fields:
                extra.add('is_staff')
            if extra:
                kwargs['update_fields'] = set(update_fields) | extra
        super().save(*args, **kwargs)


# ======================
# Wallet & Ledger Models
# ======================

class Bucket(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    PENDING = 'pending', 'Pending'
    HELD = 'held', 'Held'


class Wallet(models.Model):
    """
    Three-bucket balance owned 1:1 by a user. Rows are only mutated through
    accounts.services.ledger, which takes a row lock first.
    """
    user = models.OneToOneField(CustomUser, on_delete=models.CASCADE, related_name='wallet')
    available = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    pending = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    held = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=models.Q(available__gte=0), name='wallet_available_non_negative'),
            models.CheckConstraint(condition=models.Q(pending__gte=0), name='wallet_pending_non_negative'),
            models.CheckConstraint(condition=models.Q(held__gte=0), name='wallet_held_non_negative'),
        ]

    def __str__(self) -> str:
        return f"Wallet<{self.user.username}> A={self.available} P={self.pending} H={self.held}"

    @property
    def total(self) -> Decimal:
        return (self.available or 0) + (self.pending or 0) + (self.held or 0)

    def balance_of(self, bucket: str) -> Decimal:
        return getattr(self, Bucket(bucket).value)

    @classmethod
    def get_or_create_for_user(cls, user: CustomUser) -> "Wallet":
        w, _ = cls.objects.get_or_create(user=user)
        return w


class TransactionType(models.TextChoices):
    DEPOSIT = 'DEPOSIT', 'Deposit'
    WITHDRAWAL = 'WITHDRAWAL', 'Withdrawal'
    COMMISSION = 'COMMISSION', 'Commission'
    PLAN_PURCHASE = 'PLAN_PURCHASE', 'Plan Purchase'
    ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'


class TransactionStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    HELD = 'HELD', 'Held'


class WalletTransaction(models.Model):
    """
    Append-only audit entry. The only allowed mutation is a status transition
    out of PENDING or HELD (see `transition`).
    """
    OPEN_STATUSES = (TransactionStatus.PENDING, TransactionStatus.HELD)

    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='wallet_transactions', db_index=True)
    type = models.CharField(max_length=16, choices=TransactionType.choices, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=TransactionStatus.choices, default=TransactionStatus.PENDING, db_index=True)
    description = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'type'], name='accounts_wa_user_id_8e5d0b_idx'),
            models.Index(fields=['created_at'], name='accounts_wa_created_4a7c19_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.user.username} {self.type} {self.amount} [{self.status}]"

    def transition(self, new_status: str):
        from core.exceptions import RequestAlreadyProcessed

        if self.status not in self.OPEN_STATUSES:
            raise RequestAlreadyProcessed(f"Transaction {self.pk} is already {self.status}.")
        if new_status not in (TransactionStatus.APPROVED, TransactionStatus.REJECTED):
            raise ValueError(f"Invalid transaction status transition to {new_status}.")
        self.status = new_status
        self.save(update_fields=['status', 'updated_at'])

    @classmethod
    def fit_description(cls, text: str) -> str:
        limit = cls._meta.get_field('description').max_length
        return (text or '')[:limit]

    def save(self, *args, **kwargs):
        self.description = self.fit_description(self.description)
        super().save(*args, **kwargs)


class RequestStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'


class MoneyRequest(models.Model):
    """
    Shared shape of deposit and withdrawal requests: created PENDING by the
    user, decided once by an admin.
    """
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=50)
    status = models.CharField(max_length=10, choices=RequestStatus.choices, default=RequestStatus.PENDING, db_index=True)
    note = models.TextField(blank=True)
    # admin reason for the decision; `note` stays as the member wrote it
    decision_note = models.TextField(blank=True)
    requested_at = models.DateTimeField(auto_now_add=True, db_index=True)
    decided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ['-requested_at', '-id']

    @property
    def is_terminal(self) -> bool:
        return self.status != RequestStatus.PENDING


class DepositRequest(MoneyRequest):
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='deposit_requests', db_index=True)
    reference_id = models.CharField(max_length=120, blank=True)
    transaction = models.OneToOneField(
        WalletTransaction, null=True, blank=True, on_delete=models.PROTECT, related_name='deposit_request'
    )
    decided_by = models.ForeignKey(
        CustomUser, null=True, blank=True, on_delete=models.SET_NULL, related_name='deposits_decided'
    )

    class Meta(MoneyRequest.Meta):
        indexes = [
            models.Index(fields=['user', 'status'], name='accounts_de_user_id_2d6f3e_idx'),
            models.Index(fields=['status', 'requested_at'], name='accounts_de_status_9a1b7c_idx'),
        ]

    def __str__(self) -> str:
        return f"DEP<{self.user.username}> {self.amount} [{self.status}]"


class WithdrawalRequest(MoneyRequest):
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='withdrawal_requests', db_index=True)
    account_details = models.JSONField(default=dict, blank=True)
    transaction = models.OneToOneField(
        WalletTransaction, null=True, blank=True, on_delete=models.PROTECT, related_name='withdrawal_request'
    )
    decided_by = models.ForeignKey(
        CustomUser, null=True, blank=True, on_delete=models.SET_NULL, related_name='withdrawals_decided'
    )
    payout_ref = models.CharField(max_length=100, blank=True)  # external txn id if any

    class Meta(MoneyRequest.Meta):
        indexes = [
            models.Index(fields=['user', 'status'], name='accounts_wi_user_id_6b2e9f_idx'),
            models.Index(fields=['status', 'requested_at'], name='accounts_wi_status_1c8d5a_idx'),
        ]

    def __str__(self) -> str:
        return f"WDR<{self.user.username}> {self.amount} [{self.status}]"


@receiver(post_save, sender=CustomUser)
def create_wallet_for_new_user(sender, instance: CustomUser, created: bool, **kwargs):
    if created:
        Wallet.objects.get_or_create(user=instance)
