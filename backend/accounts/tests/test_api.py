from decimal import Decimal

from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import CustomUser, DepositRequest, TransactionType
from accounts.tests.factories import PASSWORD, fund, make_chain, make_plan, make_user, wallet


class RegistrationApiTest(APITestCase):
    url = "/api/accounts/register/"

    def setUp(self):
        self.sponsor = make_user("sponsor")

    def test_register_with_referral_code(self):
        resp = self.client.post(self.url, {
            "username": "newbie",
            "email": "newbie@example.com",
            "password": "s3cret-pass",
            "full_name": "New Bie",
            "referral_code": self.sponsor.referral_code.lower(),
        }, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["sponsor_username"], "sponsor")
        self.assertTrue(resp.data["my_referral_code"].startswith("NEWBIE"))

        user = CustomUser.objects.get(username="newbie")
        self.assertEqual(user.sponsor, self.sponsor)
        self.assertEqual(wallet(user).available, Decimal("0.00"))
        self.assertTrue(user.check_password("s3cret-pass"))

    def test_register_without_referral_code_creates_root(self):
        resp = self.client.post(self.url, {"username": "rooty", "password": "s3cret-pass"}, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertIsNone(CustomUser.objects.get(username="rooty").sponsor)

    def test_unknown_referral_code(self):
        resp = self.client.post(self.url, {
            "username": "lost", "password": "s3cret-pass", "referral_code": "NOPE0000",
        }, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "invalid_referral_code")
        self.assertFalse(CustomUser.objects.filter(username="lost").exists())

    def test_duplicate_username_is_case_insensitive(self):
        resp = self.client.post(self.url, {"username": "SPONSOR", "password": "s3cret-pass"}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("username", resp.data)


class LoginApiTest(APITestCase):
    url = "/api/accounts/login/"

    def setUp(self):
        self.user = make_user("frank", full_name="Frank")

    def test_login_returns_tokens_with_claims(self):
        resp = self.client.post(self.url, {"username": "frank", "password": PASSWORD}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        token = AccessToken(resp.data["access"])
        self.assertEqual(token["username"], "frank")
        self.assertEqual(token["role"], CustomUser.Role.USER)
        self.assertEqual(token["referral_code"], self.user.referral_code)
        self.assertFalse(token["is_admin"])

    def test_blocked_user_is_told_so(self):
        self.user.status = CustomUser.Status.BLOCKED
        self.user.save()
        resp = self.client.post(self.url, {"username": "frank", "password": PASSWORD}, format="json")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["code"], "user_blocked")

    def test_wrong_password(self):
        resp = self.client.post(self.url, {"username": "frank", "password": "nope"}, format="json")
        self.assertEqual(resp.status_code, 401)

    def test_refresh_keeps_claims(self):
        resp = self.client.post(self.url, {"username": "frank", "password": PASSWORD}, format="json")
        resp = self.client.post("/api/accounts/token/refresh/", {"refresh": resp.data["refresh"]}, format="json")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(AccessToken(resp.data["access"])["username"], "frank")

    def test_logout_revokes_refresh_token(self):
        refresh = self.client.post(self.url, {"username": "frank", "password": PASSWORD}, format="json").data["refresh"]
        resp = self.client.post("/api/accounts/logout/", {"refresh": refresh}, format="json")
        self.assertEqual(resp.status_code, 200)
        resp = self.client.post("/api/accounts/token/refresh/", {"refresh": refresh}, format="json")
        self.assertEqual(resp.status_code, 401)


class MemberApiTest(APITestCase):
    def setUp(self):
        self.s2, self.s1, self.user = make_chain("s2", "s1", "gina")
        fund(self.user, "150.00")
        self.plan = make_plan("100.00", {"1": "10", "2": "5"})
        self.client.force_authenticate(user=self.user)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get("/api/accounts/wallet/")
        self.assertEqual(resp.status_code, 401)

    def test_wallet(self):
        resp = self.client.get("/api/accounts/wallet/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["available"], "150.00")
        self.assertEqual(resp.data["total"], "150.00")

    def test_buy_plan(self):
        resp = self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["commissions_created"], 2)
        self.assertEqual(wallet(self.user).available, Decimal("50.00"))
        self.assertEqual(wallet(self.s1).held, Decimal("10.00"))

    def test_buy_plan_via_v1_alias(self):
        resp = self.client.post("/api/v1/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)

    def test_buy_plan_without_funds(self):
        self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        resp = self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "insufficient_funds")
        self.assertEqual(wallet(self.user).available, Decimal("50.00"))

    def test_buy_unknown_plan(self):
        resp = self.client.post("/api/business/plans/buy/", {"plan_id": 999999}, format="json")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data["code"], "plan_not_found")

    def test_preview_does_not_spend(self):
        resp = self.client.get(f"/api/business/plans/{self.plan.pk}/preview/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], "15.00")
        self.assertEqual(wallet(self.user).available, Decimal("150.00"))

    def test_dashboard(self):
        self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        resp = self.client.get("/api/accounts/dashboard/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.data), {"user", "wallet", "active_plans", "commissions", "transactions"})
        self.assertEqual(len(resp.data["active_plans"]), 1)
        self.assertEqual(resp.data["transactions"][0]["type"], TransactionType.PLAN_PURCHASE)

    def test_sponsor_sees_commissions(self):
        self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        self.client.force_authenticate(user=self.s1)
        resp = self.client.get("/api/business/commissions/?status=HELD")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["results"][0]["amount"], "10.00")

    def test_transactions_filter(self):
        self.client.post("/api/business/plans/buy/", {"plan_id": self.plan.pk}, format="json")
        resp = self.client.get("/api/accounts/transactions/?type=PLAN_PURCHASE")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)
        resp = self.client.get("/api/accounts/transactions/?page=99")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["results"], [])

    def test_genealogy(self):
        self.client.force_authenticate(user=self.s2)
        resp = self.client.get("/api/accounts/genealogy/?max_depth=5")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["user"]["username"], "s2")
        self.assertEqual(resp.data["children"][0]["children"][0]["user"]["username"], "gina")

        resp = self.client.get("/api/accounts/team/summary/")
        self.assertEqual(resp.data, {
            "direct": 1, "total": 2, "levels": [{"level": 1, "count": 1}, {"level": 2, "count": 1}],
        })

    def test_deposit_request(self):
        resp = self.client.post("/api/accounts/deposits/", {
            "amount": "25.00", "method": "UPI", "reference_id": "UTR-1",
        }, format="json")
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["status"], "PENDING")
        self.assertEqual(wallet(self.user).pending, Decimal("25.00"))
        self.assertEqual(DepositRequest.objects.filter(user=self.user).count(), 1)

    def test_withdrawal_over_balance(self):
        resp = self.client.post("/api/accounts/withdrawals/", {"amount": "500.00", "method": "Bank"}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "insufficient_funds")

    def test_profile_update_ignores_read_only_fields(self):
        resp = self.client.patch("/api/accounts/profile/", {"full_name": "Gina G", "username": "hacked"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.full_name, "Gina G")
        self.assertEqual(self.user.username, "gina")

    def test_password_change(self):
        resp = self.client.post("/api/accounts/password/", {
            "old_password": PASSWORD, "new_password": "brand-new-1",
        }, format="json")
        self.assertEqual(resp.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("brand-new-1"))


class HealthApiTest(APITestCase):
    def test_health_is_public(self):
        resp = self.client.get("/api/health/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["status"], "ok")
