import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from business.models import Plan
from core.exceptions import InvalidAmount, InvalidRequest, PlanLocked, PlanNotFound

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'status') + Plan.LOCKED_FIELDS


def clean_changes(changes: dict) -> dict:
    data = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    if 'price' in data:
        try:
            data['price'] = Decimal(str(data['price'])).quantize(Decimal('0.01'))
        except (InvalidOperation, ValueError):
            raise InvalidAmount('Invalid plan price.')
        if data['price'] <= 0:
            raise InvalidAmount('Plan price must be greater than 0.')
    if 'duration_days' in data:
        try:
            data['duration_days'] = int(data['duration_days'])
        except (TypeError, ValueError):
            raise InvalidRequest('Invalid plan duration.')
        if data['duration_days'] <= 0:
            raise InvalidRequest('Plan duration must be at least one day.')
    if 'commission_structure' in data:
        try:
            data['commission_structure'] = Plan.normalize_structure(data['commission_structure'])
        except DjangoValidationError as e:
            raise InvalidRequest('; '.join(e.messages))
    if 'status' in data and data['status'] not in Plan.Status.values:
        raise InvalidRequest(f"Invalid plan status {data['status']!r}.")
    if 'title' in data:
        data['title'] = (data['title'] or '').strip()
        if not data['title']:
            raise InvalidRequest('Plan title is required.')
    return data


def check_frozen(plan: Plan, data: dict):
    frozen = [f for f in Plan.LOCKED_FIELDS if f in data and data[f] != getattr(plan, f)]
    if frozen and plan.has_purchases:
        raise PlanLocked(plan_id=plan.pk, fields=",".join(frozen))


@transaction.atomic
def create_plan(**fields) -> Plan:
    data = clean_changes(fields)
    for required in ('title', 'price', 'duration_days'):
        if required not in data:
            raise InvalidRequest(f'{required} is required.')
    plan = Plan.objects.create(**data)
    logger.info("Plan %s created: %s price=%s", plan.pk, plan.title, plan.price)
    return plan


@transaction.atomic
def update_plan(plan_id, **changes) -> Plan:
    """
    Apply partial changes. Price, duration and commission structure are
    frozen once any purchase references the plan.
    """
    try:
        plan = Plan.objects.select_for_update().get(pk=plan_id)
    except (Plan.DoesNotExist, ValueError, TypeError):
        raise PlanNotFound(plan_id=plan_id)
    data = clean_changes(changes)
    check_frozen(plan, data)
    for k, v in data.items():
        setattr(plan, k, v)
    if data:
        plan.save()
        logger.info("Plan %s updated: %s", plan.pk, ", ".join(sorted(data)))
    return plan
