import os
from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import CustomUser
from accounts.services import ledger
from business.models import Plan


DEFAULT_STRUCTURE = {"1": "10", "2": "5", "3": "3", "4": "2", "5": "1"}


class Command(BaseCommand):
    help = (
        "Seed a demo referral network: a root member with `--width` direct referrals per member, "
        "`--depth` levels deep, each funded with `--balance`, plus a demo plan. "
        "Also writes loadtest/members.csv for Locust."
    )

    def add_arguments(self, parser):
        parser.add_argument("--width", type=int, default=3)
        parser.add_argument("--depth", type=int, default=4)
        parser.add_argument("--balance", type=str, default="1000.00")
        parser.add_argument("--password", type=str, default="pass1234")
        parser.add_argument("--prefix", type=str, default="demo")
        parser.add_argument("--plan_price", type=str, default="100.00")
        parser.add_argument("--csv", type=str, default="")

    def _ensure_member(self, username: str, sponsor, password: str) -> CustomUser:
        u, created = CustomUser.objects.get_or_create(
            username=username,
            defaults={
                "email": f"{username.lower()}@example.com",
                "full_name": username.replace("_", " ").title(),
                "sponsor": sponsor,
            },
        )
        if created:
            u.set_password(password)
            u.save()
        elif u.sponsor_id != getattr(sponsor, "pk", None):
            u.sponsor = sponsor
            u.save(update_fields=["sponsor"])
        return u

    def _fund(self, user: CustomUser, target: Decimal):
        have = user.wallet.available if hasattr(user, "wallet") else Decimal("0.00")
        if have < target:
            ledger.adjust(user.pk, target - have, note="Demo seed funding")

    @transaction.atomic
    def handle(self, *args, **opts):
        width = max(1, int(opts["width"]))
        depth = max(1, min(int(opts["depth"]), int(settings.REFERRAL_MAX_DEPTH)))
        balance = ledger.q2(opts["balance"])
        password = opts["password"]
        prefix = opts["prefix"]

        plan, created = Plan.objects.get_or_create(
            title="Demo Plan",
            defaults={
                "description": "Seeded for demos and load tests",
                "price": ledger.q2(opts["plan_price"]),
                "duration_days": 30,
                "commission_structure": Plan.normalize_structure(DEFAULT_STRUCTURE),
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Plan {'created' if created else 'exists'}: {plan} (id={plan.pk})"))

        self.stdout.write(self.style.NOTICE(f"Ensuring network width={width} depth={depth}..."))
        root = self._ensure_member(f"{prefix}_root", None, password)
        members = [root]
        frontier = [root]
        for level in range(1, depth + 1):
            nxt = []
            for parent in frontier:
                for i in range(1, width + 1):
                    uname = f"{parent.username}_{i}" if level > 1 else f"{prefix}_{i}"
                    nxt.append(self._ensure_member(uname, parent, password))
            members.extend(nxt)
            frontier = nxt
            self.stdout.write(f"  level {level}: {len(nxt)} member(s)")

        for m in members:
            self._fund(m, balance)
        self.stdout.write(self.style.SUCCESS(f"Members ready: {len(members)}, each with available >= {balance}"))

        out_path = opts["csv"] or os.path.join(settings.BASE_DIR.parent, "loadtest", "members.csv")
        try:
            os.makedirs(os.path.dirname(out_path), exist_ok=True)
            with open(out_path, "w", encoding="utf-8") as f:
                f.write("username,password\n")
                for m in members:
                    f.write(f"{m.username},{password}\n")
        except OSError as e:
            self.stdout.write(self.style.WARNING(f"Failed to write members.csv: {e}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Wrote member credentials to {out_path}"))
        self.stdout.write(self.style.SUCCESS("Seed complete."))
