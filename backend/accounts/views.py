from django.conf import settings
from rest_framework import generics, status
from rest_framework.exceptions import NotFound
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import CustomUser, DepositRequest, Wallet, WalletTransaction, WithdrawalRequest
from .serializers import (
    DepositRequestSerializer,
    PasswordChangeSerializer,
    ProfileSerializer,
    RegisterSerializer,
    UserSerializer,
    WalletSerializer,
    WalletTransactionSerializer,
    WithdrawalRequestSerializer,
)
from .services.referral_graph import downline_counts, genealogy, max_depth_ceiling


class LenientPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "page_size"
    max_page_size = 100

    def paginate_queryset(self, queryset, request, view=None):
        try:
            return super().paginate_queryset(queryset, request, view)
        except NotFound:
            # Out-of-range pages come back empty instead of 404
            self.request = request
            self.count = queryset.count()
            self.page = None
            return []

    def get_paginated_response(self, data):
        if getattr(self, "page", None) is None:
            return Response({
                "count": int(getattr(self, "count", 0) or 0),
                "next": None,
                "previous": None,
                "results": data,
            })
        return super().get_paginated_response(data)


class RegisterView(generics.CreateAPIView):
    queryset = CustomUser.objects.all()
    serializer_class = RegisterSerializer
    permission_classes = [AllowAny]
    authentication_classes = []


class MeView(generics.RetrieveAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserSerializer

    def get_object(self):
        return self.request.user


class ProfileView(generics.RetrieveUpdateAPIView):
    """
    GET/PATCH /api/accounts/profile/
    Only full_name, mobile and whatsapp are writable.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = ProfileSerializer
    http_method_names = ["get", "patch", "put", "head", "options"]

    def get_object(self):
        return self.request.user


class PasswordChangeView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = PasswordChangeSerializer(data=request.data, context={"request": request})
        ser.is_valid(raise_exception=True)
        ser.save()
        return Response({"detail": "Password updated."}, status=status.HTTP_200_OK)


class WalletMe(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        w = Wallet.get_or_create_for_user(request.user)
        return Response(WalletSerializer(w).data, status=status.HTTP_200_OK)


class WalletTransactionsList(generics.ListAPIView):
    """
    GET /api/accounts/transactions/?type=COMMISSION&status=HELD
    Optional date_from / date_to (YYYY-MM-DD) on created_at.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = WalletTransactionSerializer
    pagination_class = LenientPagination
    filterset_fields = ["type", "status"]

    def get_queryset(self):
        qs = WalletTransaction.objects.filter(user=self.request.user).order_by("-created_at", "-id")
        date_from = (self.request.query_params.get("date_from") or "").strip()
        date_to = (self.request.query_params.get("date_to") or "").strip()
        if date_from:
            qs = qs.filter(created_at__date__gte=date_from)
        if date_to:
            qs = qs.filter(created_at__date__lte=date_to)
        return qs


class DashboardView(APIView):
    """
    Wallet and history in one call: user, wallet, active plans, recent
    commissions and recent transactions.
    """
    permission_classes = [IsAuthenticated]
    RECENT = 20

    def get(self, request):
        from business.models import Commission, UserPlan
        from business.serializers import CommissionSerializer, UserPlanSerializer

        user = request.user
        wallet = Wallet.get_or_create_for_user(user)
        active_plans = UserPlan.objects.active().filter(user=user).select_related("plan")
        commissions = Commission.objects.filter(user=user).select_related("from_user", "plan")[: self.RECENT]
        txns = WalletTransaction.objects.filter(user=user)[: self.RECENT]
        return Response({
            "user": UserSerializer(user).data,
            "wallet": WalletSerializer(wallet).data,
            "active_plans": UserPlanSerializer(active_plans, many=True).data,
            "commissions": CommissionSerializer(commissions, many=True).data,
            "transactions": WalletTransactionSerializer(txns, many=True).data,
        }, status=status.HTTP_200_OK)


def _depth_param(request, default):
    try:
        depth = int(request.query_params.get("max_depth") or default)
    except (TypeError, ValueError):
        depth = default
    return max(1, min(depth, max_depth_ceiling()))


class MySponsorTree(APIView):
    """
    Returns the authenticated user's genealogy tree.
    Query params:
      - max_depth: optional (default GENEALOGY_DEFAULT_DEPTH, capped at REFERRAL_MAX_DEPTH)
    Response:
      { user: {id, username, full_name, status, created_at}, level: 0, children: [...] }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        depth = _depth_param(request, getattr(settings, "GENEALOGY_DEFAULT_DEPTH", 6))
        return Response(genealogy(request.user, depth), status=status.HTTP_200_OK)


class TeamSummaryView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        depth = _depth_param(request, max_depth_ceiling())
        return Response(downline_counts(request.user, depth), status=status.HTTP_200_OK)


class DepositListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = DepositRequestSerializer
    pagination_class = LenientPagination
    filterset_fields = ["status"]

    def get_queryset(self):
        return DepositRequest.objects.filter(user=self.request.user).order_by("-requested_at", "-id")


class WithdrawalListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = WithdrawalRequestSerializer
    pagination_class = LenientPagination
    filterset_fields = ["status"]

    def get_queryset(self):
        return WithdrawalRequest.objects.filter(user=self.request.user).order_by("-requested_at", "-id")
