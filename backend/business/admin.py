from django import forms
from django.contrib import admin, messages

from core.csv_export import COMMISSION_HEADER, commission_rows, csv_response
from core.exceptions import PlatformError
from .models import Commission, Plan, UserPlan
from .services import plans as plan_service
from .services.release import release_commission


class PlanAdminForm(forms.ModelForm):
    class Meta:
        model = Plan
        fields = '__all__'

    def clean(self):
        cleaned = super().clean()
        changes = {k: v for k, v in cleaned.items() if k in plan_service.EDITABLE_FIELDS}
        try:
            data = plan_service.clean_changes(changes)
            cleaned.update(data)
            if self.instance.pk:
                original = Plan.objects.get(pk=self.instance.pk)
                plan_service.check_frozen(original, data)
        except PlatformError as e:
            raise forms.ValidationError(e.message)
        return cleaned


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    form = PlanAdminForm
    list_display = ('id', 'title', 'price', 'duration_days', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('title',)
    ordering = ('price',)

    def get_readonly_fields(self, request, obj=None):
        # Frozen once purchased
        if obj is not None and obj.has_purchases:
            return Plan.LOCKED_FIELDS
        return ()


@admin.register(UserPlan)
class UserPlanAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'plan', 'price_paid', 'purchased_at', 'expires_at')
    list_filter = ('plan', 'purchased_at')
    search_fields = ('user__username', 'plan__title')
    list_select_related = ('user', 'plan')

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'from_user', 'plan', 'level', 'percentage', 'amount', 'status', 'created_at')
    list_filter = ('status', 'level', 'plan', 'created_at')
    search_fields = ('user__username', 'from_user__username')
    list_select_related = ('user', 'from_user', 'plan')
    actions = ['approve_selected', 'reject_selected', 'export_as_csv']

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def _release(self, request, queryset, approve):
        done, failed = 0, 0
        for c in queryset.order_by('id'):
            try:
                release_commission(c.pk, approve=approve, actor=request.user)
                done += 1
            except PlatformError as e:
                failed += 1
                self.message_user(request, f"#{c.pk}: {e.message}", level=messages.WARNING)
        self.message_user(request, f"{done} released, {failed} skipped.")

    @admin.action(description="Approve (release) selected held commissions")
    def approve_selected(self, request, queryset):
        self._release(request, queryset, approve=True)

    @admin.action(description="Reject selected held commissions")
    def reject_selected(self, request, queryset):
        self._release(request, queryset, approve=False)

    @admin.action(description="Download selected as CSV")
    def export_as_csv(self, request, queryset):
        return csv_response('commissions', COMMISSION_HEADER, commission_rows(queryset))
