from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from accounts.tests.factories import fund, make_user
from business.models import Plan
from business.services import plans
from business.services.purchase import buy_plan
from core.exceptions import InvalidAmount, InvalidRequest, PlanLocked, PlanNotFound


class NormalizeStructureTest(TestCase):
    def test_dict_and_list_forms(self):
        self.assertEqual(Plan.normalize_structure({1: 10, "2": "5.5"}), {"1": "10.00", "2": "5.50"})
        self.assertEqual(Plan.normalize_structure([10, 0, 2]), {"1": "10.00", "3": "2.00"})
        self.assertEqual(Plan.normalize_structure(None), {})

    def test_rejects_out_of_range(self):
        for bad in ({"0": 5}, {"21": 5}, {"1": 101}, {"1": -1}, {"x": 1}, {"1": "ten"}, "10%"):
            with self.assertRaises(ValidationError):
                Plan.normalize_structure(bad)


class PlanServiceTest(TestCase):
    def setUp(self):
        self.plan = plans.create_plan(
            title="Starter", price="100", duration_days=30, commission_structure={"1": 10, "2": 5}
        )

    def test_create_normalizes(self):
        self.assertEqual(self.plan.price, Decimal("100.00"))
        self.assertEqual(self.plan.commission_structure, {"1": "10.00", "2": "5.00"})
        self.assertEqual(self.plan.percentage_for(1), Decimal("10.00"))
        self.assertIsNone(self.plan.percentage_for(3))

    def test_create_requires_core_fields(self):
        with self.assertRaises(InvalidRequest):
            plans.create_plan(title="No price", duration_days=10)
        with self.assertRaises(InvalidAmount):
            plans.create_plan(title="Free", price="0", duration_days=10)
        with self.assertRaises(InvalidRequest):
            plans.create_plan(title="Bad", price="10", duration_days=10, commission_structure={"1": 150})

    def test_edit_before_any_purchase(self):
        plans.update_plan(self.plan.pk, price="120", commission_structure={"1": 12})
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.price, Decimal("120.00"))
        self.assertEqual(self.plan.commission_structure, {"1": "12.00"})

    def test_pricing_frozen_after_purchase(self):
        buyer = make_user("buyer")
        fund(buyer, "100.00")
        buy_plan(buyer.pk, self.plan.pk)

        with self.assertRaises(PlanLocked):
            plans.update_plan(self.plan.pk, price="150")
        with self.assertRaises(PlanLocked):
            plans.update_plan(self.plan.pk, commission_structure={"1": 20})

        # unchanged values and descriptive fields remain editable
        plans.update_plan(self.plan.pk, price="100.00", title="Starter Plus", status=Plan.Status.INACTIVE)
        self.plan.refresh_from_db()
        self.assertEqual(self.plan.title, "Starter Plus")
        self.assertEqual(self.plan.status, Plan.Status.INACTIVE)
        self.assertEqual(self.plan.price, Decimal("100.00"))

    def test_unknown_plan(self):
        with self.assertRaises(PlanNotFound):
            plans.update_plan(999999, title="x")
