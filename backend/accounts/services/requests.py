"""
Deposit and withdrawal request lifecycle.

PENDING -> APPROVED | REJECTED, exactly once. Each transition moves money
between wallet buckets through the ledger and flips the request's mirrored
WalletTransaction in the same atomic block.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from accounts.models import (
    Bucket,
    DepositRequest,
    RequestStatus,
    TransactionStatus,
    TransactionType,
    WalletTransaction,
    WithdrawalRequest,
)
from accounts.services import ledger
from core.exceptions import (
    InvalidAmount,
    InvalidRequest,
    RequestAlreadyProcessed,
    RequestNotFound,
    UserBlocked,
    UserNotFound,
)

logger = logging.getLogger(__name__)

KIND_DEPOSIT = "deposit"
KIND_WITHDRAWAL = "withdrawal"

REQUEST_MODELS = {
    KIND_DEPOSIT: DepositRequest,
    KIND_WITHDRAWAL: WithdrawalRequest,
}


def _active_user(user_id):
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise UserNotFound(user_id=user_id)
    if user.is_blocked:
        raise UserBlocked(user_id=user_id)
    return user


def _check_minimum(amount, minimum, label):
    amt = ledger.validate_amount(amount)
    if minimum and amt < minimum:
        raise InvalidAmount(f"Minimum {label} amount is {minimum}.", amount=amt)
    return amt


@transaction.atomic
def create_deposit(user_id, amount, method, reference_id="", note="") -> DepositRequest:
    user = _active_user(user_id)
    amt = _check_minimum(amount, getattr(settings, "MIN_DEPOSIT_AMOUNT", None), "deposit")
    method = (method or "").strip()
    if not method:
        raise InvalidRequest("Deposit method is required.")

    ledger.credit(user.pk, Bucket.PENDING, amt)
    tx = WalletTransaction.objects.create(
        user=user,
        type=TransactionType.DEPOSIT,
        amount=amt,
        status=TransactionStatus.PENDING,
        description=f"Deposit via {method}" + (f" (ref {reference_id})" if reference_id else ""),
    )
    req = DepositRequest.objects.create(
        user=user,
        amount=amt,
        method=method,
        reference_id=reference_id or "",
        note=note or "",
        transaction=tx,
    )
    logger.info("Deposit request %s created user=%s amount=%s", req.pk, user.pk, amt)
    return req


@transaction.atomic
def create_withdrawal(user_id, amount, method, account_details=None, note="") -> WithdrawalRequest:
    user = _active_user(user_id)
    amt = _check_minimum(amount, getattr(settings, "MIN_WITHDRAWAL_AMOUNT", None), "withdrawal")
    method = (method or "").strip()
    if not method:
        raise InvalidRequest("Withdrawal method is required.")

    # raises InsufficientFunds when available < amount
    ledger.move(user.pk, Bucket.AVAILABLE, Bucket.PENDING, amt)
    tx = WalletTransaction.objects.create(
        user=user,
        type=TransactionType.WITHDRAWAL,
        amount=-amt,
        status=TransactionStatus.PENDING,
        description=f"Withdrawal via {method}",
    )
    req = WithdrawalRequest.objects.create(
        user=user,
        amount=amt,
        method=method,
        account_details=account_details or {},
        note=note or "",
        transaction=tx,
    )
    logger.info("Withdrawal request %s created user=%s amount=%s", req.pk, user.pk, amt)
    return req


def _model_for(kind):
    try:
        return REQUEST_MODELS[str(kind).lower()]
    except KeyError:
        raise RequestNotFound(f"Unknown request type: {kind}.")


def _lock_pending(kind, request_id):
    model = _model_for(kind)
    try:
        req = model.objects.select_for_update().get(pk=request_id)
    except (model.DoesNotExist, ValueError, TypeError):
        raise RequestNotFound(kind=kind, id=request_id)
    if req.status != RequestStatus.PENDING:
        raise RequestAlreadyProcessed(
            f"Only pending {kind} requests can be processed.", id=req.pk, status=req.status
        )
    return req


def _finish(req, status, actor, note=None):
    req.status = status
    req.decided_by = actor if getattr(actor, "pk", None) else None
    req.decided_at = timezone.now()
    fields = ["status", "decided_by", "decided_at"]
    if note:
        req.decision_note = note
        fields.append("decision_note")
    req.save(update_fields=fields)
    if req.transaction_id:
        req.transaction.transition(
            TransactionStatus.APPROVED if status == RequestStatus.APPROVED else TransactionStatus.REJECTED
        )


@transaction.atomic
def approve_request(kind, request_id, actor=None, payout_ref=""):
    """
    Deposit: pending -> available. Withdrawal: pending leaves the system.
    """
    req = _lock_pending(kind, request_id)
    if isinstance(req, DepositRequest):
        ledger.move(req.user_id, Bucket.PENDING, Bucket.AVAILABLE, req.amount)
    else:
        ledger.debit(req.user_id, Bucket.PENDING, req.amount)
        if payout_ref:
            req.payout_ref = payout_ref
            req.save(update_fields=["payout_ref"])
    _finish(req, RequestStatus.APPROVED, actor)
    logger.info(
        "%s request %s approved by %s amount=%s",
        kind, req.pk, getattr(actor, "username", None), req.amount,
    )
    return req


@transaction.atomic
def reject_request(kind, request_id, actor=None, reason=""):
    """
    Deposit: pending is dropped. Withdrawal: pending is refunded to available.
    """
    req = _lock_pending(kind, request_id)
    if isinstance(req, DepositRequest):
        ledger.debit(req.user_id, Bucket.PENDING, req.amount)
    else:
        ledger.move(req.user_id, Bucket.PENDING, Bucket.AVAILABLE, req.amount)
    _finish(req, RequestStatus.REJECTED, actor, note=reason)
    logger.info(
        "%s request %s rejected by %s amount=%s reason=%s",
        kind, req.pk, getattr(actor, "username", None), req.amount, reason or "-",
    )
    return req
