from decimal import Decimal

from accounts.models import Bucket, CustomUser, Wallet
from accounts.services import ledger
from business.models import Plan

PASSWORD = "pass1234"


def make_user(username, sponsor=None, **extra):
    extra.setdefault("email", f"{username}@example.com")
    return CustomUser.objects.create_user(username=username, password=PASSWORD, sponsor=sponsor, **extra)


def make_chain(*usernames):
    """
    make_chain("s2", "s1", "buyer") -> [s2, s1, buyer] where each user is
    sponsored by the one before it.
    """
    users = []
    sponsor = None
    for name in usernames:
        sponsor = make_user(name, sponsor=sponsor)
        users.append(sponsor)
    return users


def fund(user, amount, bucket=Bucket.AVAILABLE):
    return ledger.credit(user.pk, bucket, Decimal(str(amount)))


def wallet(user) -> Wallet:
    return Wallet.objects.get(user=user)


def make_plan(price="100.00", structure=None, duration_days=30, **extra):
    extra.setdefault("title", f"Plan {price}")
    return Plan.objects.create(
        price=Decimal(price),
        duration_days=duration_days,
        commission_structure=structure if structure is not None else {"1": "10", "2": "5"},
        **extra,
    )
