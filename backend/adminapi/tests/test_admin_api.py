from decimal import Decimal

from django.core.cache import cache
from rest_framework.test import APITestCase

from accounts.models import CustomUser, TransactionType
from accounts.services import requests as money_requests
from accounts.tests.factories import fund, make_chain, make_plan, make_user, wallet
from business.models import Commission, Plan
from business.services.purchase import buy_plan


class AdminApiTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user("ops", role=CustomUser.Role.ADMIN)
        self.client.force_authenticate(user=self.admin)


class AdminPermissionTest(AdminApiTestCase):
    def test_member_is_forbidden(self):
        member = make_user("member")
        self.client.force_authenticate(user=member)
        for url in ("/api/admin/users/", "/api/admin/metrics/", "/api/admin/commissions/"):
            self.assertEqual(self.client.get(url).status_code, 403, url)

    def test_blocked_admin_is_forbidden(self):
        self.admin.status = CustomUser.Status.BLOCKED
        self.admin.save()
        self.assertEqual(self.client.get("/api/admin/users/").status_code, 403)

    def test_demoted_admin_loses_access(self):
        self.admin.role = CustomUser.Role.USER
        self.admin.save()
        self.admin.refresh_from_db()
        self.assertFalse(self.admin.is_staff)
        self.assertFalse(self.admin.is_platform_admin)
        self.assertEqual(self.client.get("/api/admin/users/").status_code, 403)

    def test_superuser_keeps_staff_without_admin_role(self):
        su = CustomUser.objects.create_superuser(username="boss", email="boss@example.com", password="x-pass-123")
        su.role = CustomUser.Role.USER
        su.save(update_fields=["role"])
        su.refresh_from_db()
        self.assertTrue(su.is_staff)

    def test_anonymous_is_unauthorized(self):
        self.client.force_authenticate(user=None)
        self.assertEqual(self.client.get("/api/admin/users/").status_code, 401)


class AdminUserManagementTest(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.root, self.mid, self.leaf = make_chain("root", "mid", "leaf")

    def test_users_list_and_search(self):
        resp = self.client.get("/api/admin/users/?search=mid")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([u["username"] for u in resp.data["results"]], ["mid"])
        self.assertEqual(resp.data["results"][0]["direct_count"], 1)
        self.assertEqual(resp.data["results"][0]["sponsor_username"], "root")

    def test_users_csv_export(self):
        resp = self.client.get("/api/admin/users/?export=csv")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Content-Type"], "text/csv")
        body = resp.content.decode()
        self.assertTrue(body.startswith("id,username,full_name"))
        self.assertIn("leaf", body)

    def test_block_and_unblock(self):
        resp = self.client.patch(f"/api/admin/users/{self.leaf.pk}/status/", {"status": "BLOCKED"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.leaf.refresh_from_db()
        self.assertTrue(self.leaf.is_blocked)
        self.assertFalse(self.leaf.is_active)

        self.client.patch(f"/api/admin/users/{self.leaf.pk}/status/", {"status": "ACTIVE"}, format="json")
        self.leaf.refresh_from_db()
        self.assertTrue(self.leaf.is_active)

    def test_admin_cannot_block_self(self):
        resp = self.client.patch(f"/api/admin/users/{self.admin.pk}/status/", {"status": "BLOCKED"}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_sponsor_reassignment(self):
        other = make_user("other")
        resp = self.client.patch(f"/api/admin/users/{self.mid.pk}/sponsor/", {"sponsor_id": other.pk}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.mid.refresh_from_db()
        self.assertEqual(self.mid.sponsor, other)

    def test_sponsor_cycle_refused(self):
        resp = self.client.patch(f"/api/admin/users/{self.root.pk}/sponsor/", {"sponsor_id": self.leaf.pk}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "cyclic_sponsor")
        resp = self.client.patch(f"/api/admin/users/{self.root.pk}/sponsor/", {"sponsor_id": self.root.pk}, format="json")
        self.assertEqual(resp.data["code"], "self_referral")

    def test_wallet_adjustment(self):
        resp = self.client.post(
            f"/api/admin/users/{self.leaf.pk}/wallet/adjust/",
            {"action": "credit", "amount": "75.00", "note": "Promo"},
            format="json",
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["wallet"]["available"], "75.00")
        self.assertEqual(resp.data["transaction"]["type"], TransactionType.ADJUSTMENT)

        resp = self.client.post(
            f"/api/admin/users/{self.leaf.pk}/wallet/adjust/",
            {"action": "debit", "amount": "100.00"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "insufficient_funds")
        self.assertEqual(wallet(self.leaf).available, Decimal("75.00"))

    def test_user_tree(self):
        resp = self.client.get(f"/api/admin/users/{self.root.pk}/tree/?max_depth=1")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["children"][0]["user"]["username"], "mid")
        self.assertEqual(resp.data["children"][0]["children"], [])

    def test_unknown_user(self):
        resp = self.client.get("/api/admin/users/999999/tree/")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data["code"], "user_not_found")


class AdminRequestActionTest(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user("henry")
        fund(self.user, "50.00")

    def test_approve_deposit(self):
        req = money_requests.create_deposit(self.user.pk, "20.00", "UPI")
        resp = self.client.post(f"/api/admin/requests/deposit/{req.pk}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["status"], "APPROVED")
        self.assertEqual(resp.data["decided_by_username"], "ops")
        self.assertEqual(wallet(self.user).available, Decimal("70.00"))

        resp = self.client.post(f"/api/admin/requests/deposit/{req.pk}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], "request_already_processed")
        self.assertEqual(wallet(self.user).available, Decimal("70.00"))

    def test_reject_withdrawal_refunds(self):
        req = money_requests.create_withdrawal(self.user.pk, "30.00", "Bank", note="SBI savings")
        resp = self.client.post(
            f"/api/admin/requests/withdrawal/{req.pk}/reject/", {"reason": "Wrong account"}, format="json"
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["note"], "SBI savings")
        self.assertEqual(resp.data["decision_note"], "Wrong account")
        w = wallet(self.user)
        self.assertEqual(w.available, Decimal("50.00"))
        self.assertEqual(w.pending, Decimal("0.00"))

    def test_unknown_request(self):
        resp = self.client.post("/api/admin/requests/withdrawal/999999/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 404)

    def test_pending_queue_filter(self):
        money_requests.create_deposit(self.user.pk, "20.00", "UPI")
        done = money_requests.create_deposit(self.user.pk, "10.00", "UPI")
        money_requests.approve_request("deposit", done.pk)
        resp = self.client.get("/api/admin/deposits/?status=pending")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["results"][0]["amount"], "20.00")


class AdminCommissionTest(AdminApiTestCase):
    def setUp(self):
        super().setUp()
        self.s2, self.s1, self.buyer = make_chain("s2", "s1", "buyer")
        fund(self.buyer, "100.00")
        self.plan = make_plan("100.00", {"1": "10", "2": "5"})
        buy_plan(self.buyer.pk, self.plan.pk)
        self.c1 = Commission.objects.get(user=self.s1)
        self.c2 = Commission.objects.get(user=self.s2)

    def test_list_held(self):
        resp = self.client.get("/api/admin/commissions/?status=held&level=1")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)

    def test_release_one(self):
        resp = self.client.post(f"/api/admin/commissions/{self.c1.pk}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(wallet(self.s1).available, Decimal("10.00"))
        resp = self.client.post(f"/api/admin/commissions/{self.c1.pk}/reject/", {}, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], "commission_not_held")

    def test_bulk_release(self):
        resp = self.client.post(
            "/api/admin/commissions/release/", {"ids": [self.c1.pk, self.c2.pk], "action": "reject"}, format="json"
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["released"], 2)
        self.assertEqual(wallet(self.s1).held, Decimal("0.00"))
        self.assertEqual(wallet(self.s2).held, Decimal("0.00"))
        self.assertFalse(Commission.objects.filter(status=Commission.Status.HELD).exists())

    def test_transactions_csv_export(self):
        resp = self.client.get("/api/admin/transactions/?type=COMMISSION&export=csv")
        self.assertEqual(resp.status_code, 200)
        lines = resp.content.decode().strip().splitlines()
        self.assertEqual(lines[0], "id,username,type,amount,status,description,created_at")
        self.assertEqual(len(lines), 3)

    def test_metrics(self):
        resp = self.client.get("/api/admin/metrics/?refresh=1")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["commissions"]["heldCount"], 2)
        self.assertEqual(resp.data["commissions"]["heldAmount"], "15.00")
        self.assertEqual(resp.data["plans"]["sold"], 1)
        self.assertEqual(resp.data["plans"]["revenue"], "100.00")


class AdminPlanTest(AdminApiTestCase):
    def test_create_and_lock(self):
        resp = self.client.post("/api/admin/plans/", {
            "title": "Gold", "price": "250.00", "duration_days": 90,
            "commission_structure": {"1": 8, "2": 4},
        }, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        plan = Plan.objects.get(pk=resp.data["id"])
        self.assertEqual(plan.commission_structure, {"1": "8.00", "2": "4.00"})

        buyer = make_user("buyer")
        fund(buyer, "250.00")
        buy_plan(buyer.pk, plan.pk)

        resp = self.client.patch(f"/api/admin/plans/{plan.pk}/", {"price": "300.00"}, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], "plan_locked")

        resp = self.client.patch(f"/api/admin/plans/{plan.pk}/", {"status": "INACTIVE"}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)

    def test_invalid_structure(self):
        resp = self.client.post("/api/admin/plans/", {
            "title": "Broken", "price": "10.00", "duration_days": 30, "commission_structure": {"1": 120},
        }, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_inactive_plans_hidden_from_members(self):
        make_plan("10.00", status=Plan.Status.INACTIVE)
        active = make_plan("20.00")
        self.client.force_authenticate(user=make_user("member"))
        resp = self.client.get("/api/business/plans/")
        self.assertEqual(resp.status_code, 200)
        rows = resp.data["results"] if isinstance(resp.data, dict) else resp.data
        self.assertEqual([p["id"] for p in rows], [active.pk])
