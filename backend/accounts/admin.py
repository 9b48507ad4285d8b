from django import forms
from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm

from core.csv_export import (
    TRANSACTION_HEADER,
    USER_HEADER,
    csv_response,
    transaction_rows,
    user_rows,
)
from core.exceptions import PlatformError
from .models import CustomUser, DepositRequest, Wallet, WalletTransaction, WithdrawalRequest
from .services import requests as request_service
from .services.referral_graph import validate_sponsor


class CustomUserCreationForm(UserCreationForm):
    class Meta(UserCreationForm.Meta):
        model = CustomUser
        fields = ('username', 'email', 'role', 'full_name', 'mobile', 'whatsapp', 'sponsor')


class CustomUserChangeForm(UserChangeForm):
    class Meta(UserChangeForm.Meta):
        model = CustomUser
        fields = '__all__'

    def clean_sponsor(self):
        sponsor = self.cleaned_data.get('sponsor')
        try:
            validate_sponsor(self.instance, sponsor)
        except PlatformError as e:
            raise forms.ValidationError(e.message)
        return sponsor


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    form = CustomUserChangeForm
    add_form = CustomUserCreationForm
    list_display = (
        'username', 'email', 'full_name', 'mobile', 'role', 'status',
        'referral_code', 'sponsor', 'is_staff', 'date_joined',
    )
    list_filter = ('role', 'status', 'is_staff', 'date_joined')
    fieldsets = (
        (None, {'fields': ('username', 'email', 'password', 'role', 'status', 'sponsor', 'referral_code')}),
        ('Profile', {'fields': ('full_name', 'mobile', 'whatsapp')}),
        ('Permissions', {'fields': ('is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': (
            'username', 'email', 'password1', 'password2', 'role', 'full_name',
            'mobile', 'whatsapp', 'sponsor',
        )}),
    )
    search_fields = ('username', 'email', 'full_name', 'mobile', 'referral_code')
    list_select_related = ('sponsor',)
    raw_id_fields = ('sponsor',)
    ordering = ('username',)
    # referral_code is non-editable on the model; expose it as read-only in admin
    readonly_fields = ('referral_code',)
    actions = ['block_users', 'unblock_users', 'export_as_csv']

    def _set_status(self, request, queryset, status):
        n = 0
        for u in queryset.exclude(status=status):
            u.status = status
            u.save(update_fields=['status'])
            n += 1
        self.message_user(request, f"{n} user(s) set to {status}.")

    @admin.action(description="Block selected users")
    def block_users(self, request, queryset):
        self._set_status(request, queryset.exclude(pk=request.user.pk), CustomUser.Status.BLOCKED)

    @admin.action(description="Unblock selected users")
    def unblock_users(self, request, queryset):
        self._set_status(request, queryset, CustomUser.Status.ACTIVE)

    @admin.action(description="Download selected as CSV")
    def export_as_csv(self, request, queryset):
        return csv_response('users', USER_HEADER, user_rows(queryset))


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    """
    Read-only: balances change only through the ledger (deposits, purchases,
    releases, adjustments through the admin API).
    """
    list_display = ('user', 'available', 'pending', 'held', 'updated_at')
    search_fields = ('user__username', 'user__email')
    list_select_related = ('user',)
    readonly_fields = ('user', 'available', 'pending', 'held', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'amount', 'status', 'description', 'created_at')
    list_filter = ('type', 'status', 'created_at')
    search_fields = ('user__username', 'description')
    list_select_related = ('user',)
    date_hierarchy = 'created_at'
    actions = ['export_as_csv']

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Download selected as CSV")
    def export_as_csv(self, request, queryset):
        return csv_response('transactions', TRANSACTION_HEADER, transaction_rows(queryset))


class MoneyRequestAdmin(admin.ModelAdmin):
    kind = None
    list_filter = ('status', 'method', 'requested_at')
    search_fields = ('user__username', 'note', 'decision_note')
    list_select_related = ('user', 'decided_by')
    raw_id_fields = ('user', 'decided_by', 'transaction')
    actions = ['approve_selected', 'reject_selected']

    def has_add_permission(self, request):
        return False

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields if f.name != 'decision_note']

    def _process(self, request, queryset, approve):
        done, failed = 0, 0
        for req in queryset.order_by('id'):
            try:
                if approve:
                    request_service.approve_request(self.kind, req.pk, actor=request.user)
                else:
                    request_service.reject_request(self.kind, req.pk, actor=request.user, reason="Rejected from admin")
                done += 1
            except PlatformError as e:
                failed += 1
                self.message_user(request, f"#{req.pk}: {e.message}", level=messages.WARNING)
        self.message_user(request, f"{done} processed, {failed} skipped.")

    @admin.action(description="Approve selected requests")
    def approve_selected(self, request, queryset):
        self._process(request, queryset, approve=True)

    @admin.action(description="Reject selected requests")
    def reject_selected(self, request, queryset):
        self._process(request, queryset, approve=False)


@admin.register(DepositRequest)
class DepositRequestAdmin(MoneyRequestAdmin):
    kind = request_service.KIND_DEPOSIT
    list_display = ('id', 'user', 'amount', 'method', 'reference_id', 'status', 'requested_at', 'decided_by', 'decided_at')
    search_fields = ('user__username', 'reference_id', 'note', 'decision_note')


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(MoneyRequestAdmin):
    kind = request_service.KIND_WITHDRAWAL
    list_display = ('id', 'user', 'amount', 'method', 'status', 'requested_at', 'decided_by', 'decided_at', 'payout_ref')
