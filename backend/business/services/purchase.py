import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from accounts.models import Bucket, TransactionStatus, TransactionType, WalletTransaction
from accounts.services import ledger
from accounts.services.referral_graph import ancestors_of
from business.models import Plan, UserPlan
from business.services.commission import distribute
from core.exceptions import (
    InsufficientFunds,
    PlanInactive,
    PlanNotFound,
    UserBlocked,
    UserNotFound,
)

logger = logging.getLogger(__name__)


@transaction.atomic
def buy_plan(user_id, plan_id) -> UserPlan:
    """
    Debit the buyer, record the purchase and pay the upline, all or nothing.

    The plan row is locked first, then every wallet the purchase can touch
    (buyer plus ancestors) in ascending user-id order, so overlapping purchases
    in one sponsor chain serialize without deadlocking.
    """
    try:
        plan = Plan.objects.select_for_update().get(pk=plan_id)
    except (Plan.DoesNotExist, ValueError, TypeError):
        raise PlanNotFound(plan_id=plan_id)
    if not plan.is_active:
        raise PlanInactive(plan_id=plan.pk)

    User = get_user_model()
    try:
        buyer = User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise UserNotFound(user_id=user_id)
    if buyer.is_blocked:
        raise UserBlocked(user_id=buyer.pk)

    # one walk of the sponsor chain feeds both the locks and the payout
    chain = list(ancestors_of(buyer))
    wallets = ledger.lock_wallets([buyer.pk, *(a.pk for a, _ in chain)])
    if wallets[buyer.pk].available < plan.price:
        raise InsufficientFunds(
            "Insufficient available balance for this plan.",
            balance=wallets[buyer.pk].available,
            price=plan.price,
        )

    ledger.debit(buyer.pk, Bucket.AVAILABLE, plan.price)
    WalletTransaction.objects.create(
        user=buyer,
        type=TransactionType.PLAN_PURCHASE,
        amount=-plan.price,
        status=TransactionStatus.APPROVED,
        description=f"Purchased plan {plan.title}",
    )
    now = timezone.now()
    user_plan = UserPlan.objects.create(
        user=buyer,
        plan=plan,
        price_paid=plan.price,
        purchased_at=now,
        expires_at=UserPlan.expiry_for(plan, now),
    )
    commissions = distribute(buyer, plan, user_plan, chain=chain)
    logger.info(
        "User %s bought plan %s for %s (%s commission(s))",
        buyer.pk, plan.pk, plan.price, len(commissions),
    )
    return user_plan
