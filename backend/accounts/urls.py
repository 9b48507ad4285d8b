from django.urls import path
from .views import (
    RegisterView,
    MeView,
    ProfileView,
    PasswordChangeView,
    DashboardView,
    WalletMe,
    WalletTransactionsList,
    MySponsorTree,
    TeamSummaryView,
    DepositListCreateView,
    WithdrawalListCreateView,
)
from rest_framework_simplejwt.views import TokenBlacklistView

from .token_serializers import CustomTokenObtainPairView, CustomTokenRefreshView

urlpatterns = [
    path('register/', RegisterView.as_view(), name='register'),
    path('login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('logout/', TokenBlacklistView.as_view(), name='logout'),
    path('me/', MeView.as_view(), name='me'),
    path('profile/', ProfileView.as_view(), name='profile'),
    path('password/', PasswordChangeView.as_view(), name='password-change'),
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
    path('wallet/', WalletMe.as_view(), name='wallet-me'),
    path('transactions/', WalletTransactionsList.as_view(), name='wallet-transactions'),
    path('genealogy/', MySponsorTree.as_view(), name='genealogy'),
    path('team/summary/', TeamSummaryView.as_view(), name='team-summary'),
    path('deposits/', DepositListCreateView.as_view(), name='deposits'),
    path('withdrawals/', WithdrawalListCreateView.as_view(), name='withdrawals'),
]
