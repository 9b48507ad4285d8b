from django.urls import path, re_path

from .views import (
    AdminMetricsView,
    AdminUsersList,
    AdminUserStatusView,
    AdminUserSponsorView,
    AdminUserWalletAdjustView,
    AdminUserTree,
    AdminPlanListCreate,
    AdminPlanDetail,
    AdminDepositList,
    AdminWithdrawalList,
    AdminRequestActionView,
    AdminTransactionList,
    AdminCommissionList,
    AdminCommissionReleaseView,
    AdminCommissionBulkReleaseView,
)

urlpatterns = [
    path('metrics/', AdminMetricsView.as_view(), name='admin-metrics'),
    path('users/', AdminUsersList.as_view(), name='admin-users'),
    path('users/<int:pk>/status/', AdminUserStatusView.as_view(), name='admin-user-status'),
    path('users/<int:pk>/sponsor/', AdminUserSponsorView.as_view(), name='admin-user-sponsor'),
    path('users/<int:pk>/wallet/adjust/', AdminUserWalletAdjustView.as_view(), name='admin-user-wallet-adjust'),
    path('users/<int:pk>/tree/', AdminUserTree.as_view(), name='admin-user-tree'),
    path('plans/', AdminPlanListCreate.as_view(), name='admin-plans'),
    path('plans/<int:pk>/', AdminPlanDetail.as_view(), name='admin-plan-detail'),
    path('deposits/', AdminDepositList.as_view(), name='admin-deposits'),
    path('withdrawals/', AdminWithdrawalList.as_view(), name='admin-withdrawals'),
    re_path(
        r'^requests/(?P<kind>deposit|withdrawal)/(?P<pk>\d+)/(?P<action>approve|reject)/$',
        AdminRequestActionView.as_view(),
        name='admin-request-action',
    ),
    path('transactions/', AdminTransactionList.as_view(), name='admin-transactions'),
    path('commissions/', AdminCommissionList.as_view(), name='admin-commissions'),
    path('commissions/release/', AdminCommissionBulkReleaseView.as_view(), name='admin-commissions-bulk-release'),
    re_path(
        r'^commissions/(?P<pk>\d+)/(?P<action>approve|reject)/$',
        AdminCommissionReleaseView.as_view(),
        name='admin-commission-release',
    ),
]
