from django.contrib import admin
admin.site.site_header = "Earnings Platform Administration"
admin.site.site_title = "Earnings Platform Admin"
admin.site.index_title = "Wallets, plans and commissions"
from django.urls import path, include
from core.views import HealthView
from accounts.views import WalletMe, WalletTransactionsList
from business.views import BuyPlanView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/accounts/', include('accounts.urls')),
    path('api/business/', include('business.urls')),
    path('api/admin/', include('adminapi.urls')),
    path('api/health/', HealthView.as_view()),
    # v1 aliases
    path('api/v1/wallet/', WalletMe.as_view()),
    path('api/v1/wallet/transactions/', WalletTransactionsList.as_view()),
    path('api/v1/plans/buy/', BuyPlanView.as_view()),
]
