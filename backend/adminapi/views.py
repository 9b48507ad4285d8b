import logging
from decimal import Decimal

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import (
    CustomUser,
    DepositRequest,
    RequestStatus,
    Wallet,
    WalletTransaction,
    WithdrawalRequest,
)
from accounts.serializers import WalletSerializer
from accounts.services import ledger
from accounts.services import requests as request_service
from accounts.services.referral_graph import genealogy, max_depth_ceiling, set_sponsor
from accounts.views import LenientPagination
from business.models import Commission, Plan, UserPlan
from business.serializers import AdminCommissionSerializer, PlanSerializer, PlanWriteSerializer
from business.services import plans as plan_service
from business.services.release import release_commission, release_commissions_bulk
from core.csv_export import (
    COMMISSION_HEADER,
    TRANSACTION_HEADER,
    USER_HEADER,
    commission_rows,
    csv_response,
    transaction_rows,
    user_rows,
)
from core.exceptions import PlanNotFound, UserNotFound
from .permissions import IsPlatformAdmin
from .serializers import (
    AdminBulkReleaseSerializer,
    AdminDepositSerializer,
    AdminRequestActionSerializer,
    AdminSponsorSerializer,
    AdminTransactionSerializer,
    AdminUserSerializer,
    AdminUserStatusSerializer,
    AdminWalletAdjustSerializer,
    AdminWithdrawalSerializer,
)

logger = logging.getLogger(__name__)

METRICS_CACHE_KEY = "admin_metrics_v1"


def _apply_common_filters(request, qs, date_field):
    """
    status, user (id or username contains), date_from/date_to on `date_field`.
    """
    params = request.query_params
    status_in = (params.get("status") or "").strip().upper()
    user_q = (params.get("user") or "").strip()
    date_from = (params.get("date_from") or "").strip()
    date_to = (params.get("date_to") or "").strip()

    if status_in:
        qs = qs.filter(status=status_in)
    if user_q:
        if user_q.isdigit():
            qs = qs.filter(Q(user_id=int(user_q)) | Q(user__username__icontains=user_q))
        else:
            qs = qs.filter(Q(user__username__icontains=user_q) | Q(user__full_name__icontains=user_q))
    if date_from:
        qs = qs.filter(**{f"{date_field}__date__gte": date_from})
    if date_to:
        qs = qs.filter(**{f"{date_field}__date__lte": date_to})
    return qs


class CsvExportMixin:
    """
    `?export=csv` on a list view downloads the filtered queryset instead of a
    JSON page.
    """
    csv_prefix = "export"
    csv_header = ()
    csv_rows = None

    def list(self, request, *args, **kwargs):
        if (request.query_params.get("export") or "").lower() == "csv":
            qs = self.filter_queryset(self.get_queryset())
            return csv_response(self.csv_prefix, self.csv_header, self.csv_rows(qs))
        return super().list(request, *args, **kwargs)


class AdminMetricsView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        refresh = str(request.query_params.get("refresh") or "").lower()
        if refresh not in ("1", "true", "yes"):
            cached = cache.get(METRICS_CACHE_KEY)
            if cached is not None:
                return Response(cached, status=status.HTTP_200_OK)

        today = timezone.now().date()
        zero = Decimal("0.00")
        users_agg = CustomUser.objects.aggregate(
            total=Count("id"),
            blocked=Count("id", filter=Q(status=CustomUser.Status.BLOCKED)),
            todayNew=Count("id", filter=Q(date_joined__date=today)),
        )
        wallet_agg = Wallet.objects.aggregate(a=Sum("available"), p=Sum("pending"), h=Sum("held"))
        dep_agg = DepositRequest.objects.filter(status=RequestStatus.PENDING).aggregate(c=Count("id"), s=Sum("amount"))
        wdr_agg = WithdrawalRequest.objects.filter(status=RequestStatus.PENDING).aggregate(c=Count("id"), s=Sum("amount"))
        com_agg = Commission.objects.aggregate(
            heldCount=Count("id", filter=Q(status=Commission.Status.HELD)),
            heldAmount=Sum("amount", filter=Q(status=Commission.Status.HELD)),
            paidAmount=Sum("amount", filter=Q(status__in=[Commission.Status.APPROVED, Commission.Status.PAID])),
        )
        sales_agg = UserPlan.objects.aggregate(c=Count("id"), s=Sum("price_paid"))

        payload = {
            "users": {
                "total": users_agg.get("total") or 0,
                "blocked": users_agg.get("blocked") or 0,
                "active": (users_agg.get("total") or 0) - (users_agg.get("blocked") or 0),
                "todayNew": users_agg.get("todayNew") or 0,
            },
            "wallets": {
                "available": str(wallet_agg.get("a") or zero),
                "pending": str(wallet_agg.get("p") or zero),
                "held": str(wallet_agg.get("h") or zero),
                "transactionsToday": WalletTransaction.objects.filter(created_at__date=today).count(),
            },
            "deposits": {"pendingCount": dep_agg.get("c") or 0, "pendingAmount": str(dep_agg.get("s") or zero)},
            "withdrawals": {"pendingCount": wdr_agg.get("c") or 0, "pendingAmount": str(wdr_agg.get("s") or zero)},
            "commissions": {
                "heldCount": com_agg.get("heldCount") or 0,
                "heldAmount": str(com_agg.get("heldAmount") or zero),
                "releasedAmount": str(com_agg.get("paidAmount") or zero),
            },
            "plans": {
                "active": Plan.objects.filter(status=Plan.Status.ACTIVE).count(),
                "sold": sales_agg.get("c") or 0,
                "revenue": str(sales_agg.get("s") or zero),
                "activeSubscriptions": UserPlan.objects.active().count(),
            },
        }
        # Short cache to avoid repeated aggregation under load
        cache.set(METRICS_CACHE_KEY, payload, timeout=20)
        return Response(payload, status=status.HTTP_200_OK)


class AdminUsersList(CsvExportMixin, ListAPIView):
    """
    Filters: role, status, search (username/full_name/email/mobile/referral code),
    sponsor (id). `?export=csv` downloads the filtered list.
    """
    permission_classes = [IsPlatformAdmin]
    serializer_class = AdminUserSerializer
    pagination_class = LenientPagination
    csv_prefix = "users"
    csv_header = USER_HEADER
    csv_rows = staticmethod(user_rows)

    def get_queryset(self):
        qs = (
            CustomUser.objects.select_related("sponsor", "wallet")
            .annotate(direct_count=Count("referrals", distinct=True))
            .order_by("-date_joined", "-id")
        )
        params = self.request.query_params
        role = (params.get("role") or "").strip().upper()
        status_in = (params.get("status") or "").strip().upper()
        search = (params.get("search") or "").strip()
        sponsor = (params.get("sponsor") or "").strip()
        if role:
            qs = qs.filter(role=role)
        if status_in:
            qs = qs.filter(status=status_in)
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(full_name__icontains=search)
                | Q(email__icontains=search)
                | Q(mobile__icontains=search)
                | Q(referral_code__iexact=search)
            )
        if sponsor.isdigit():
            qs = qs.filter(sponsor_id=int(sponsor))
        return qs


def _get_user(pk):
    user = CustomUser.objects.filter(pk=pk).first()
    if user is None:
        raise UserNotFound(user_id=pk)
    return user


class AdminUserStatusView(APIView):
    """
    PATCH { "status": "ACTIVE" | "BLOCKED" }
    """
    permission_classes = [IsPlatformAdmin]

    def patch(self, request, pk: int):
        user = _get_user(pk)
        ser = AdminUserStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        new_status = ser.validated_data["status"]
        if user.pk == request.user.pk and new_status == CustomUser.Status.BLOCKED:
            return Response({"detail": "You cannot block your own account."}, status=status.HTTP_400_BAD_REQUEST)
        if user.status != new_status:
            user.status = new_status
            user.save(update_fields=["status"])
            logger.info("User %s set to %s by %s", user.pk, new_status, request.user.username)
        return Response(AdminUserSerializer(user).data, status=status.HTTP_200_OK)


class AdminUserSponsorView(APIView):
    """
    PATCH { "sponsor_id": 12 | null }
    Rejects self-sponsorship and any reassignment that would close a cycle.
    """
    permission_classes = [IsPlatformAdmin]

    def patch(self, request, pk: int):
        ser = AdminSponsorSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = set_sponsor(pk, ser.validated_data["sponsor_id"])
        return Response(AdminUserSerializer(user).data, status=status.HTTP_200_OK)


class AdminUserWalletAdjustView(APIView):
    """
    Admin-only: adjust a user's available balance.
    Body: { "action": "credit" | "debit", "amount": number, "note": "optional" }
    Writes an APPROVED ADJUSTMENT transaction.
    """
    permission_classes = [IsPlatformAdmin]

    def post(self, request, pk: int):
        user = _get_user(pk)
        ser = AdminWalletAdjustSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        amount = ser.validated_data["amount"]
        signed = amount if ser.validated_data["action"] == "credit" else -amount
        w, tx = ledger.adjust(user.pk, signed, actor=request.user, note=ser.validated_data.get("note") or "")
        return Response(
            {"wallet": WalletSerializer(w).data, "transaction": AdminTransactionSerializer(tx).data},
            status=status.HTTP_200_OK,
        )


class AdminUserTree(APIView):
    """
    Genealogy of any user, `max_depth` capped at REFERRAL_MAX_DEPTH.
    """
    permission_classes = [IsPlatformAdmin]

    def get(self, request, pk: int):
        user = _get_user(pk)
        try:
            depth = int(request.query_params.get("max_depth") or settings.GENEALOGY_DEFAULT_DEPTH)
        except (TypeError, ValueError):
            depth = settings.GENEALOGY_DEFAULT_DEPTH
        depth = max(1, min(depth, max_depth_ceiling()))
        return Response(genealogy(user, depth), status=status.HTTP_200_OK)


class AdminPlanListCreate(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        qs = Plan.objects.all().order_by("price", "id")
        status_in = (request.query_params.get("status") or "").strip().upper()
        if status_in:
            qs = qs.filter(status=status_in)
        return Response(PlanSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        ser = PlanWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        plan = plan_service.create_plan(**ser.validated_data)
        return Response(PlanSerializer(plan).data, status=status.HTTP_201_CREATED)


class AdminPlanDetail(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request, pk: int):
        plan = Plan.objects.filter(pk=pk).first()
        if plan is None:
            raise PlanNotFound(plan_id=pk)
        return Response(PlanSerializer(plan).data, status=status.HTTP_200_OK)

    def patch(self, request, pk: int):
        ser = PlanWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        plan = plan_service.update_plan(pk, **ser.validated_data)
        return Response(PlanSerializer(plan).data, status=status.HTTP_200_OK)


class AdminDepositList(ListAPIView):
    """
    Filters: status=PENDING|APPROVED|REJECTED, user, date_from, date_to.
    """
    permission_classes = [IsPlatformAdmin]
    serializer_class = AdminDepositSerializer
    pagination_class = LenientPagination

    def get_queryset(self):
        qs = DepositRequest.objects.select_related("user", "decided_by").order_by("-requested_at", "-id")
        return _apply_common_filters(self.request, qs, "requested_at")


class AdminWithdrawalList(ListAPIView):
    """
    Filters: status=PENDING|APPROVED|REJECTED, user, date_from, date_to.
    """
    permission_classes = [IsPlatformAdmin]
    serializer_class = AdminWithdrawalSerializer
    pagination_class = LenientPagination

    def get_queryset(self):
        qs = WithdrawalRequest.objects.select_related("user", "decided_by").order_by("-requested_at", "-id")
        return _apply_common_filters(self.request, qs, "requested_at")


class AdminRequestActionView(APIView):
    """
    POST /api/admin/requests/<kind>/<pk>/<approve|reject>/
    Body (optional): { "reason": "...", "payout_ref": "..." }
    """
    permission_classes = [IsPlatformAdmin]
    SERIALIZERS = {
        request_service.KIND_DEPOSIT: AdminDepositSerializer,
        request_service.KIND_WITHDRAWAL: AdminWithdrawalSerializer,
    }

    def post(self, request, kind: str, pk: int, action: str):
        ser = AdminRequestActionSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        if action == "approve":
            obj = request_service.approve_request(
                kind, pk, actor=request.user, payout_ref=ser.validated_data.get("payout_ref") or ""
            )
        else:
            obj = request_service.reject_request(
                kind, pk, actor=request.user, reason=ser.validated_data.get("reason") or ""
            )
        return Response(self.SERIALIZERS[kind](obj).data, status=status.HTTP_200_OK)


class AdminTransactionList(CsvExportMixin, ListAPIView):
    """
    Filters: type, status, user, date_from, date_to. `?export=csv` supported.
    """
    permission_classes = [IsPlatformAdmin]
    serializer_class = AdminTransactionSerializer
    pagination_class = LenientPagination
    csv_prefix = "transactions"
    csv_header = TRANSACTION_HEADER
    csv_rows = staticmethod(transaction_rows)

    def get_queryset(self):
        qs = WalletTransaction.objects.select_related("user").order_by("-created_at", "-id")
        t = (self.request.query_params.get("type") or "").strip().upper()
        if t:
            qs = qs.filter(type=t)
        return _apply_common_filters(self.request, qs, "created_at")


class AdminCommissionList(CsvExportMixin, ListAPIView):
    """
    Filters: status, user, level, plan, date_from, date_to. `?export=csv` supported.
    """
    permission_classes = [IsPlatformAdmin]
    serializer_class = AdminCommissionSerializer
    pagination_class = LenientPagination
    csv_prefix = "commissions"
    csv_header = COMMISSION_HEADER
    csv_rows = staticmethod(commission_rows)

    def get_queryset(self):
        qs = Commission.objects.select_related("user", "from_user", "plan").order_by("-created_at", "-id")
        level = (self.request.query_params.get("level") or "").strip()
        plan = (self.request.query_params.get("plan") or "").strip()
        if level.isdigit():
            qs = qs.filter(level=int(level))
        if plan.isdigit():
            qs = qs.filter(plan_id=int(plan))
        return _apply_common_filters(self.request, qs, "created_at")


class AdminCommissionReleaseView(APIView):
    """
    POST /api/admin/commissions/<pk>/<approve|reject>/
    """
    permission_classes = [IsPlatformAdmin]

    def post(self, request, pk: int, action: str):
        c = release_commission(pk, approve=(action == "approve"), actor=request.user)
        return Response(AdminCommissionSerializer(c).data, status=status.HTTP_200_OK)


class AdminCommissionBulkReleaseView(APIView):
    """
    POST { "ids": [1, 2, 3], "action": "approve" | "reject" }
    All or nothing: one non-held record aborts the batch.
    """
    permission_classes = [IsPlatformAdmin]

    def post(self, request):
        ser = AdminBulkReleaseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        rows = release_commissions_bulk(
            ser.validated_data["ids"],
            approve=ser.validated_data["action"] == "approve",
            actor=request.user,
        )
        return Response(
            {"released": len(rows), "results": AdminCommissionSerializer(rows, many=True).data},
            status=status.HTTP_200_OK,
        )
