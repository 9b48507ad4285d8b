from django.conf import settings
from django.db import DatabaseError, connection
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status


class HealthView(APIView):
    """
    GET /api/health/
    Liveness probe plus the platform knobs the frontend needs to render forms.
    """
    authentication_classes = []  # public
    permission_classes = []

    def get(self, request):
        try:
            with connection.cursor() as cur:
                cur.execute("SELECT 1")
            db_ok = True
        except DatabaseError:
            db_ok = False
        data = {
            "status": "ok" if db_ok else "degraded",
            "database": db_ok,
            "min_deposit": str(settings.MIN_DEPOSIT_AMOUNT),
            "min_withdrawal": str(settings.MIN_WITHDRAWAL_AMOUNT),
            "max_commission_levels": settings.REFERRAL_MAX_DEPTH,
        }
        return Response(data, status=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE)
