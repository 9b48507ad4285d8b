from decimal import Decimal

from django.test import TestCase, override_settings

from accounts.models import CustomUser
from accounts.tests.factories import fund, make_chain, make_plan, wallet
from business.models import Commission
from business.services.commission import commission_amount, compute_distribution, preview_distribution
from business.services.purchase import buy_plan


class CommissionAmountTest(TestCase):
    def test_rounds_half_up_to_cents(self):
        self.assertEqual(commission_amount(Decimal("33.33"), Decimal("7.5")), Decimal("2.50"))
        self.assertEqual(commission_amount(Decimal("10.05"), Decimal("5")), Decimal("0.50"))
        self.assertEqual(commission_amount(Decimal("0.10"), Decimal("5")), Decimal("0.01"))
        self.assertEqual(commission_amount("100", "12.34"), Decimal("12.34"))


class DistributionTest(TestCase):
    def setUp(self):
        # a4 <- a3 <- a2 <- a1 <- buyer
        self.a4, self.a3, self.a2, self.a1, self.buyer = make_chain("a4", "a3", "a2", "a1", "buyer")
        fund(self.buyer, "500.00")

    def lines(self, plan):
        return [(ln["user"].username, ln["level"], ln["amount"]) for ln in compute_distribution(self.buyer, plan)]

    def test_sparse_levels_are_skipped_not_terminal(self):
        plan = make_plan("200.00", {"1": "10", "3": "2.5"})
        self.assertEqual(self.lines(plan), [("a1", 1, Decimal("20.00")), ("a3", 3, Decimal("5.00"))])

    def test_levels_beyond_the_chain_are_ignored(self):
        plan = make_plan("100.00", {str(i): "1" for i in range(1, 11)})
        self.assertEqual(len(self.lines(plan)), 4)

    def test_blocked_ancestor_earns_nothing(self):
        self.a1.status = CustomUser.Status.BLOCKED
        self.a1.save()
        plan = make_plan("100.00", {"1": "10", "2": "5"})
        self.assertEqual(self.lines(plan), [("a2", 2, Decimal("5.00"))])

        buy_plan(self.buyer.pk, plan.pk)
        self.assertEqual(wallet(self.a1).held, Decimal("0.00"))
        self.assertEqual(wallet(self.a2).held, Decimal("5.00"))

    def test_sub_cent_commission_is_dropped(self):
        plan = make_plan("0.10", {"1": "1", "2": "5"})
        self.assertEqual(self.lines(plan), [("a2", 2, Decimal("0.01"))])

    @override_settings(REFERRAL_MAX_DEPTH=2)
    def test_depth_ceiling(self):
        plan = make_plan("100.00", {"1": "10", "2": "5", "3": "3", "4": "2"})
        self.assertEqual([lvl for _, lvl, _ in self.lines(plan)], [1, 2])

    def test_compute_does_not_touch_wallets(self):
        plan = make_plan("100.00")
        compute_distribution(self.buyer, plan)
        self.assertEqual(wallet(self.a1).held, Decimal("0.00"))
        self.assertFalse(Commission.objects.exists())

    def test_preview(self):
        plan = make_plan("100.00", {"1": "10", "2": "5"})
        data = preview_distribution(self.buyer, plan)
        self.assertEqual(data["total"], "15.00")
        self.assertEqual([ln["recipient"]["username"] for ln in data["lines"]], ["a1", "a2"])
        self.assertFalse(data["auto_release"])
        self.assertEqual(wallet(self.buyer).available, Decimal("500.00"))

    def test_each_level_rounds_independently(self):
        plan = make_plan("99.99", {"1": "33.33", "2": "33.33", "3": "33.34"})
        buy_plan(self.buyer.pk, plan.pk)
        amounts = list(Commission.objects.order_by("level").values_list("amount", flat=True))
        self.assertEqual(amounts, [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")])
