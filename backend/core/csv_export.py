import csv

from django.http import HttpResponse
from django.utils import timezone


def csv_response(prefix: str, header, rows) -> HttpResponse:
    """
    Stream `rows` (iterables matching `header`) into a CSV attachment named
    `<prefix>_<timestamp>.csv`.
    """
    response = HttpResponse(content_type='text/csv')
    filename = f"{prefix}_{timezone.now().strftime('%Y%m%d_%H%M%S')}.csv"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return response


TRANSACTION_HEADER = ['id', 'username', 'type', 'amount', 'status', 'description', 'created_at']
COMMISSION_HEADER = ['id', 'beneficiary', 'from_user', 'plan', 'level', 'percentage', 'amount', 'status', 'created_at', 'decided_at']
USER_HEADER = ['id', 'username', 'full_name', 'email', 'mobile', 'role', 'status', 'referral_code', 'sponsor', 'available', 'pending', 'held', 'date_joined']


def transaction_rows(queryset):
    for t in queryset.select_related('user'):
        yield [t.id, t.user.username, t.type, t.amount, t.status, t.description, t.created_at.isoformat()]


def commission_rows(queryset):
    for c in queryset.select_related('user', 'from_user', 'plan'):
        yield [
            c.id, c.user.username, c.from_user.username, c.plan.title, c.level, c.percentage,
            c.amount, c.status, c.created_at.isoformat(), c.decided_at.isoformat() if c.decided_at else '',
        ]


def user_rows(queryset):
    for u in queryset.select_related('sponsor', 'wallet'):
        w = getattr(u, 'wallet', None)
        yield [
            u.id, u.username, u.full_name, u.email or '', u.mobile, u.role, u.status, u.referral_code,
            getattr(u.sponsor, 'username', ''),
            getattr(w, 'available', ''), getattr(w, 'pending', ''), getattr(w, 'held', ''),
            u.date_joined.isoformat(),
        ]
