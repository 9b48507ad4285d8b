from decimal import Decimal

from django.test import TestCase, override_settings

from accounts.models import (
    CustomUser,
    DepositRequest,
    RequestStatus,
    TransactionStatus,
    TransactionType,
    WalletTransaction,
    WithdrawalRequest,
)
from accounts.services import requests as money_requests
from accounts.tests.factories import fund, make_user, wallet
from core.exceptions import (
    InsufficientFunds,
    InvalidAmount,
    InvalidRequest,
    RequestAlreadyProcessed,
    RequestNotFound,
    UserBlocked,
)


class DepositFlowTest(TestCase):
    def setUp(self):
        self.admin = make_user("ops", role="ADMIN")
        self.user = make_user("dave")

    def test_create_puts_amount_in_pending(self):
        req = money_requests.create_deposit(self.user.pk, "100.00", "UPI", reference_id="UTR123")
        w = wallet(self.user)
        self.assertEqual(w.pending, Decimal("100.00"))
        self.assertEqual(w.available, Decimal("0.00"))
        self.assertEqual(req.status, RequestStatus.PENDING)
        self.assertEqual(req.transaction.type, TransactionType.DEPOSIT)
        self.assertEqual(req.transaction.status, TransactionStatus.PENDING)
        self.assertIn("UTR123", req.transaction.description)

    def test_approve_moves_pending_to_available(self):
        req = money_requests.create_deposit(self.user.pk, "100.00", "UPI")
        money_requests.approve_request("deposit", req.pk, actor=self.admin)
        w = wallet(self.user)
        self.assertEqual(w.pending, Decimal("0.00"))
        self.assertEqual(w.available, Decimal("100.00"))
        req.refresh_from_db()
        self.assertEqual(req.status, RequestStatus.APPROVED)
        self.assertEqual(req.decided_by, self.admin)
        self.assertIsNotNone(req.decided_at)
        approved = WalletTransaction.objects.filter(user=self.user, status=TransactionStatus.APPROVED)
        self.assertEqual(approved.count(), 1)

    def test_reject_drops_pending(self):
        req = money_requests.create_deposit(self.user.pk, "40.00", "Bank", note="paid from HDFC acct 1234")
        money_requests.reject_request("deposit", req.pk, actor=self.admin, reason="No payment received")
        w = wallet(self.user)
        self.assertEqual(w.pending, Decimal("0.00"))
        self.assertEqual(w.available, Decimal("0.00"))
        req.refresh_from_db()
        self.assertEqual(req.status, RequestStatus.REJECTED)
        self.assertEqual(req.note, "paid from HDFC acct 1234")
        self.assertEqual(req.decision_note, "No payment received")
        self.assertEqual(req.transaction.status, TransactionStatus.REJECTED)

    def test_second_decision_is_refused(self):
        req = money_requests.create_deposit(self.user.pk, "100.00", "UPI")
        money_requests.approve_request("deposit", req.pk)
        with self.assertRaises(RequestAlreadyProcessed):
            money_requests.approve_request("deposit", req.pk)
        with self.assertRaises(RequestAlreadyProcessed):
            money_requests.reject_request("deposit", req.pk)
        w = wallet(self.user)
        self.assertEqual(w.available, Decimal("100.00"))
        self.assertEqual(w.pending, Decimal("0.00"))

    def test_method_required(self):
        with self.assertRaises(InvalidRequest):
            money_requests.create_deposit(self.user.pk, "10.00", "  ")
        self.assertFalse(DepositRequest.objects.exists())

    @override_settings(MIN_DEPOSIT_AMOUNT=Decimal("10.00"))
    def test_minimum_amount(self):
        with self.assertRaises(InvalidAmount):
            money_requests.create_deposit(self.user.pk, "9.99", "UPI")
        self.assertEqual(wallet(self.user).pending, Decimal("0.00"))

    def test_blocked_user_cannot_deposit(self):
        self.user.status = CustomUser.Status.BLOCKED
        self.user.save()
        with self.assertRaises(UserBlocked):
            money_requests.create_deposit(self.user.pk, "10.00", "UPI")

    def test_unknown_request(self):
        with self.assertRaises(RequestNotFound):
            money_requests.approve_request("deposit", 999999)
        with self.assertRaises(RequestNotFound):
            money_requests.approve_request("refund", 1)


class WithdrawalFlowTest(TestCase):
    def setUp(self):
        self.user = make_user("erin")
        fund(self.user, "50.00")

    def test_create_reserves_funds(self):
        req = money_requests.create_withdrawal(self.user.pk, "30.00", "Bank", account_details={"ifsc": "X0001"})
        w = wallet(self.user)
        self.assertEqual(w.available, Decimal("20.00"))
        self.assertEqual(w.pending, Decimal("30.00"))
        self.assertEqual(req.transaction.amount, Decimal("-30.00"))
        self.assertEqual(req.account_details, {"ifsc": "X0001"})

    def test_approve_pays_out(self):
        req = money_requests.create_withdrawal(self.user.pk, "30.00", "Bank")
        money_requests.approve_request("withdrawal", req.pk, payout_ref="PAY-9")
        w = wallet(self.user)
        self.assertEqual(w.available, Decimal("20.00"))
        self.assertEqual(w.pending, Decimal("0.00"))
        req.refresh_from_db()
        self.assertEqual(req.payout_ref, "PAY-9")
        self.assertEqual(req.transaction.status, TransactionStatus.APPROVED)

    def test_reject_refunds(self):
        req = money_requests.create_withdrawal(self.user.pk, "30.00", "Bank")
        money_requests.reject_request("withdrawal", req.pk)
        w = wallet(self.user)
        self.assertEqual(w.available, Decimal("50.00"))
        self.assertEqual(w.pending, Decimal("0.00"))

    def test_cannot_withdraw_more_than_available(self):
        with self.assertRaises(InsufficientFunds):
            money_requests.create_withdrawal(self.user.pk, "50.01", "Bank")
        self.assertFalse(WithdrawalRequest.objects.exists())
        self.assertEqual(wallet(self.user).available, Decimal("50.00"))

    def test_pending_deposit_cannot_be_withdrawn(self):
        money_requests.create_deposit(self.user.pk, "100.00", "UPI")
        with self.assertRaises(InsufficientFunds):
            money_requests.create_withdrawal(self.user.pk, "60.00", "Bank")

    def test_rejected_twice(self):
        req = money_requests.create_withdrawal(self.user.pk, "30.00", "Bank")
        money_requests.reject_request("withdrawal", req.pk)
        with self.assertRaises(RequestAlreadyProcessed):
            money_requests.reject_request("withdrawal", req.pk)
        self.assertEqual(wallet(self.user).available, Decimal("50.00"))
