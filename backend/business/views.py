from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.views import LenientPagination
from core.exceptions import PlanNotFound
from .models import Commission, Plan, UserPlan
from .serializers import BuyPlanSerializer, CommissionSerializer, PlanSerializer, UserPlanSerializer
from .services.commission import preview_distribution
from .services.purchase import buy_plan


class PlanListView(generics.ListAPIView):
    """
    GET /api/business/plans/
    Active plans only; admins see every plan through /api/admin/plans/.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = PlanSerializer

    def get_queryset(self):
        return Plan.objects.filter(status=Plan.Status.ACTIVE).order_by('price', 'id')


class BuyPlanView(APIView):
    """
    POST /api/business/plans/buy/  {"plan_id": 3}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = BuyPlanSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user_plan = buy_plan(request.user.pk, ser.validated_data['plan_id'])
        commissions = user_plan.commissions.all()
        return Response({
            'user_plan': UserPlanSerializer(user_plan).data,
            'commissions_created': commissions.count(),
        }, status=status.HTTP_201_CREATED)


class PlanCommissionPreview(APIView):
    """
    GET /api/business/plans/<pk>/preview/
    What buying this plan would pay up the caller's chain. Read-only.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        plan = Plan.objects.filter(pk=pk).first()
        if plan is None:
            raise PlanNotFound(plan_id=pk)
        return Response(preview_distribution(request.user, plan), status=status.HTTP_200_OK)


class MyPlansList(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = UserPlanSerializer
    pagination_class = LenientPagination

    def get_queryset(self):
        qs = UserPlan.objects.filter(user=self.request.user).select_related('plan')
        if (self.request.query_params.get('active') or '').lower() in ('1', 'true', 'yes'):
            qs = qs.active()
        return qs


class MyCommissionsList(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CommissionSerializer
    pagination_class = LenientPagination
    filterset_fields = ['status', 'level', 'plan']

    def get_queryset(self):
        return Commission.objects.filter(user=self.request.user).select_related('from_user', 'plan')
