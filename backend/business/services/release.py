"""
Admin release of held commissions: HELD -> APPROVED (held moves to
available) or HELD -> REJECTED (held is forfeited; the buyer is not refunded).
"""
import logging
from typing import Iterable, List

from django.db import transaction
from django.utils import timezone

from accounts.models import Bucket, TransactionStatus
from accounts.services import ledger
from business.models import Commission
from core.exceptions import CommissionNotFound, CommissionNotHeld

logger = logging.getLogger(__name__)


def _apply(c: Commission, approve: bool, actor=None) -> Commission:
    if c.status != Commission.Status.HELD:
        raise CommissionNotHeld(id=c.pk, status=c.status)
    if approve:
        ledger.move(c.user_id, Bucket.HELD, Bucket.AVAILABLE, c.amount)
        c.status = Commission.Status.APPROVED
    else:
        ledger.debit(c.user_id, Bucket.HELD, c.amount)
        c.status = Commission.Status.REJECTED
    c.decided_at = timezone.now()
    c.decided_by = actor if getattr(actor, "pk", None) else None
    c.save(update_fields=["status", "decided_at", "decided_by"])
    if c.transaction_id:
        c.transaction.transition(TransactionStatus.APPROVED if approve else TransactionStatus.REJECTED)
    logger.info(
        "Commission %s %s by %s (user=%s amount=%s)",
        c.pk, c.status, getattr(actor, "username", None), c.user_id, c.amount,
    )
    return c


@transaction.atomic
def release_commission(commission_id, approve: bool = True, actor=None) -> Commission:
    try:
        c = Commission.objects.select_for_update().get(pk=commission_id)
    except (Commission.DoesNotExist, ValueError, TypeError):
        raise CommissionNotFound(id=commission_id)
    return _apply(c, approve, actor)


@transaction.atomic
def release_commissions_bulk(commission_ids: Iterable, approve: bool = True, actor=None) -> List[Commission]:
    """
    Release a batch in one atomic unit. Any missing or non-held record aborts
    the whole batch.
    """
    ids = sorted({int(i) for i in commission_ids})
    rows = list(Commission.objects.select_for_update().filter(pk__in=ids).order_by("id"))
    found = {c.pk for c in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise CommissionNotFound(ids=",".join(str(i) for i in missing))
    ledger.lock_wallets([c.user_id for c in rows])
    return [_apply(c, approve, actor) for c in rows]
