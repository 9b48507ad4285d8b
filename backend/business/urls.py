from django.urls import path
from .views import (
    PlanListView,
    BuyPlanView,
    PlanCommissionPreview,
    MyPlansList,
    MyCommissionsList,
)

urlpatterns = [
    path('plans/', PlanListView.as_view(), name='plans'),
    path('plans/buy/', BuyPlanView.as_view(), name='plans-buy'),
    path('plans/<int:pk>/preview/', PlanCommissionPreview.as_view(), name='plans-preview'),
    path('my-plans/', MyPlansList.as_view(), name='my-plans'),
    path('commissions/', MyCommissionsList.as_view(), name='my-commissions'),
]
