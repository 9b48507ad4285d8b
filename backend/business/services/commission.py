from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction

from accounts.models import Bucket, CustomUser, TransactionStatus, TransactionType, WalletTransaction
from accounts.services import ledger
from accounts.services.referral_graph import ancestors_of
from business.models import Commission, Plan, UserPlan

logger = logging.getLogger(__name__)


def commission_amount(price, percentage) -> Decimal:
    """price * percentage / 100, rounded half up to cents."""
    return ledger.q2(Decimal(str(price)) * Decimal(str(percentage)) / Decimal("100"))


def auto_release_enabled() -> bool:
    return bool(getattr(settings, "COMMISSION_AUTO_RELEASE", False))


def compute_distribution(
    buyer: CustomUser, plan: Plan, chain: Optional[List[Tuple[CustomUser, int]]] = None
) -> List[Dict[str, Any]]:
    """
    Pure calculator: one line per qualifying ancestor. Does NOT mutate any
    state, so the API can use it for previews.

    `chain` is an already walked list of (ancestor, level) pairs; without it
    the sponsor chain is walked here.

    Levels without a percentage and blocked ancestors are skipped, but the
    walk continues upward until the root or the depth ceiling.
    """
    lines: List[Dict[str, Any]] = []
    if chain is None:
        chain = ancestors_of(buyer)
    for ancestor, level in chain:
        pct = plan.percentage_for(level)
        if pct is None:
            continue
        if ancestor.status != CustomUser.Status.ACTIVE:
            logger.debug("Skipping blocked ancestor user=%s at level %s", ancestor.pk, level)
            continue
        amount = commission_amount(plan.price, pct)
        if amount <= 0:
            continue
        lines.append({"user": ancestor, "level": level, "percentage": pct, "amount": amount})
    return lines


def preview_distribution(buyer: CustomUser, plan: Plan) -> Dict[str, Any]:
    lines = compute_distribution(buyer, plan)
    total = sum((ln["amount"] for ln in lines), Decimal("0.00"))
    return {
        "plan": {"id": plan.pk, "title": plan.title, "price": str(plan.price)},
        "buyer": {"id": buyer.pk, "username": buyer.username},
        "lines": [
            {
                "level": ln["level"],
                "percentage": str(ln["percentage"]),
                "amount": str(ln["amount"]),
                "recipient": {"id": ln["user"].pk, "username": ln["user"].username},
            }
            for ln in lines
        ],
        "total": str(ledger.q2(total)),
        "auto_release": auto_release_enabled(),
    }


def apply_distribution(
    buyer: CustomUser,
    plan: Plan,
    user_plan: UserPlan,
    lines: List[Dict[str, Any]],
    auto_release: bool | None = None,
) -> List[Commission]:
    if auto_release is None:
        auto_release = auto_release_enabled()
    bucket = Bucket.AVAILABLE if auto_release else Bucket.HELD
    tx_status = TransactionStatus.APPROVED if auto_release else TransactionStatus.HELD
    c_status = Commission.Status.PAID if auto_release else Commission.Status.HELD

    created: List[Commission] = []
    for ln in lines:
        beneficiary = ln["user"]
        ledger.credit(beneficiary.pk, bucket, ln["amount"])
        tx = WalletTransaction.objects.create(
            user=beneficiary,
            type=TransactionType.COMMISSION,
            amount=ln["amount"],
            status=tx_status,
            description=f"Level {ln['level']} commission from {buyer.username} on {plan.title}",
        )
        created.append(
            Commission.objects.create(
                user=beneficiary,
                from_user=buyer,
                plan=plan,
                user_plan=user_plan,
                level=ln["level"],
                percentage=ln["percentage"],
                amount=ln["amount"],
                status=c_status,
                transaction=tx,
            )
        )
    return created


@transaction.atomic
def distribute(
    buyer: CustomUser,
    plan: Plan,
    user_plan: UserPlan,
    chain: Optional[List[Tuple[CustomUser, int]]] = None,
) -> List[Commission]:
    """
    Pay every qualifying ancestor of `buyer` for one purchase. Runs inside the
    caller's atomic block; any failure rolls back every level.

    Pass the `chain` whose wallets the caller already locked so no other
    wallet is touched.
    """
    lines = compute_distribution(buyer, plan, chain)
    created = apply_distribution(buyer, plan, user_plan, lines)
    if created:
        logger.info(
            "Distributed %s commission(s) totalling %s for purchase %s",
            len(created), sum((c.amount for c in created), Decimal("0.00")), user_plan.pk,
        )
    return created
