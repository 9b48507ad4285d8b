"""
Wallet ledger: the only code path allowed to change wallet buckets.

Every operation runs inside `transaction.atomic()` and takes a row lock on the
wallet (`select_for_update`) before reading it, so concurrent operations on the
same wallet serialize. Callers that touch several wallets in one unit of work
(plan purchases) call `lock_wallets` first so locks are always acquired in
ascending user-id order.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from django.contrib.auth import get_user_model
from django.db import transaction

from accounts.models import Bucket, TransactionStatus, TransactionType, Wallet, WalletTransaction
from core.exceptions import InsufficientFunds, InvalidAmount, UserNotFound

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def q2(x) -> Decimal:
    """Quantize to cents, half up."""
    try:
        return Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Invalid amount: {x!r}")


def validate_amount(amount) -> Decimal:
    amt = q2(amount)
    if amt <= 0:
        raise InvalidAmount(amount=amt)
    return amt


def _bucket(bucket) -> str:
    try:
        return Bucket(bucket).value
    except ValueError:
        raise ValueError(f"Unknown wallet bucket: {bucket!r}")


def _locked_wallet(user_id) -> Wallet:
    try:
        return Wallet.objects.select_for_update().get(user_id=user_id)
    except Wallet.DoesNotExist:
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            raise UserNotFound(user_id=user_id)
        # users created before the wallet signal was connected
        Wallet.objects.get_or_create(user=user)
        return Wallet.objects.select_for_update().get(user_id=user_id)


def lock_wallets(user_ids: Iterable[int]) -> dict[int, Wallet]:
    """
    Lock every listed wallet in ascending user-id order and return them keyed
    by user id. Must be called inside an atomic block.
    """
    ids = sorted({int(u) for u in user_ids if u is not None})
    if not ids:
        return {}
    wallets = {w.user_id: w for w in Wallet.objects.select_for_update().filter(user_id__in=ids).order_by("user_id")}
    for uid in ids:
        if uid not in wallets:
            wallets[uid] = _locked_wallet(uid)
    return wallets


def _save(w: Wallet):
    w.save(update_fields=["available", "pending", "held", "updated_at"])


@transaction.atomic
def credit(user_id, bucket, amount) -> Wallet:
    b = _bucket(bucket)
    amt = validate_amount(amount)
    w = _locked_wallet(user_id)
    setattr(w, b, q2(getattr(w, b) + amt))
    _save(w)
    logger.debug("credit user=%s %s +%s -> %s", user_id, b, amt, getattr(w, b))
    return w


@transaction.atomic
def debit(user_id, bucket, amount) -> Wallet:
    b = _bucket(bucket)
    amt = validate_amount(amount)
    w = _locked_wallet(user_id)
    current = getattr(w, b)
    if current < amt:
        logger.warning("debit refused user=%s %s balance=%s amount=%s", user_id, b, current, amt)
        raise InsufficientFunds(
            f"Insufficient {b} balance.", bucket=b, balance=current, amount=amt
        )
    setattr(w, b, q2(current - amt))
    _save(w)
    logger.debug("debit user=%s %s -%s -> %s", user_id, b, amt, getattr(w, b))
    return w


@transaction.atomic
def move(user_id, from_bucket, to_bucket, amount) -> Wallet:
    src, dst = _bucket(from_bucket), _bucket(to_bucket)
    if src == dst:
        raise ValueError("Source and destination buckets must differ.")
    amt = validate_amount(amount)
    w = _locked_wallet(user_id)
    current = getattr(w, src)
    if current < amt:
        logger.warning("move refused user=%s %s->%s balance=%s amount=%s", user_id, src, dst, current, amt)
        raise InsufficientFunds(
            f"Insufficient {src} balance.", bucket=src, balance=current, amount=amt
        )
    setattr(w, src, q2(current - amt))
    setattr(w, dst, q2(getattr(w, dst) + amt))
    _save(w)
    logger.debug("move user=%s %s->%s %s", user_id, src, dst, amt)
    return w


@transaction.atomic
def adjust(user_id, amount, actor=None, note: str = ""):
    """
    Admin correction on the available bucket. Positive amounts credit,
    negative amounts debit; either way an APPROVED ADJUSTMENT entry is written.
    """
    signed = q2(amount)
    if signed == 0:
        raise InvalidAmount(amount=signed)
    if signed > 0:
        w = credit(user_id, Bucket.AVAILABLE, signed)
    else:
        w = debit(user_id, Bucket.AVAILABLE, -signed)
    who = getattr(actor, "username", None) or "system"
    # the actor suffix survives truncation of long notes
    suffix = f" [by {who}]"
    room = WalletTransaction._meta.get_field("description").max_length - len(suffix)
    tx = WalletTransaction.objects.create(
        user_id=user_id,
        type=TransactionType.ADJUSTMENT,
        amount=signed,
        status=TransactionStatus.APPROVED,
        description=(note or "Manual adjustment")[:max(room, 0)] + suffix,
    )
    logger.info("Adjustment user=%s amount=%s by=%s", user_id, signed, who)
    return w, tx
