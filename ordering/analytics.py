"""
Back-office analytics over a date range: revenue, orders, customers, menu,
offers and tables.
"""
import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .models import Bill, GuestUser, Offer, OfferUsage, Order, OrderItem, TableSession

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

PERIOD_DAYS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
    'all': None,
}


def _parse_bound(value, end=False):
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        day = parse_date(value)
        if day is None:
            raise ValueError(f'Invalid date: {value}')
        parsed = datetime.combine(day, time.max if end else time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def resolve_period(period='30d', start=None, end=None, now=None):
    """
    Date range for a report. Explicit start/end win over `period`;
    `all` means no bounds. Unknown periods fall back to 30 days.
    """
    if start and end:
        return _parse_bound(start), _parse_bound(end, end=True)
    now = now or timezone.now()
    days = PERIOD_DAYS.get(period, 30)
    if days is None:
        return None, None
    return now - timedelta(days=days), now


def _in_range(queryset, field, start, end):
    if start is not None:
        queryset = queryset.filter(**{f'{field}__gte': start})
    if end is not None:
        queryset = queryset.filter(**{f'{field}__lte': end})
    return queryset


def _daily(queryset, field, value_name, aggregate):
    rows = (
        queryset.annotate(day=TruncDate(field))
        .values('day')
        .annotate(**{value_name: aggregate})
        .order_by('day')
    )
    return [{'date': row['day'].isoformat(), value_name: row[value_name]} for row in rows]


# ============================================================================
# METRIC BUILDERS
# ============================================================================

def revenue_metrics(start, end):
    bills = _in_range(Bill.objects.filter(payment_status='paid'), 'paid_at', start, end)
    totals = bills.aggregate(total=Sum('final_amount'), count=Count('id'))
    by_method = {
        row['payment_method'] or 'unknown': row['amount']
        for row in bills.values('payment_method').annotate(amount=Sum('final_amount'))
    }
    return {
        'total': totals['total'] or ZERO,
        'by_payment_method': by_method,
        'trend': _daily(bills, 'paid_at', 'amount', Sum('final_amount')),
        'count': totals['count'],
    }


def order_metrics(start, end):
    orders = _in_range(Order.objects.all(), 'created_at', start, end)
    by_status = {
        row['status']: row['count']
        for row in orders.values('status').annotate(count=Count('id'))
    }
    by_type = {
        row['order_type']: row['count']
        for row in orders.values('order_type').annotate(count=Count('id'))
    }
    return {
        'total': orders.count(),
        'by_status': by_status,
        'by_type': by_type,
        'trend': _daily(orders, 'created_at', 'count', Count('id')),
        'completed': by_status.get('paid', 0),
        'cancelled': by_status.get('cancelled', 0),
    }


def customer_metrics(start, end):
    customers = _in_range(GuestUser.objects.all(), 'created_at', start, end)
    totals = customers.aggregate(
        total=Count('id'),
        new=Count('id', filter=Q(visit_count__lte=1)),
        returning=Count('id', filter=Q(visit_count__gt=1)),
        spent=Sum('total_spent'),
    )
    top_customers = [
        {
            'phone': guest.phone,
            'name': guest.name,
            'total_spent': guest.total_spent,
            'total_orders': guest.total_orders,
            'visit_count': guest.visit_count,
        }
        for guest in GuestUser.objects.order_by('-total_spent')[:10]
    ]
    total = totals['total']
    return {
        'total': total,
        'new': totals['new'],
        'returning': totals['returning'],
        'top_customers': top_customers,
        'trend': _daily(customers, 'first_visit_at', 'count', Count('id')),
        'average_spend': (totals['spent'] or ZERO) / total if total else ZERO,
    }


def menu_metrics(start, end):
    items = _in_range(
        OrderItem.objects.exclude(status='cancelled').exclude(order__status='cancelled'),
        'created_at', start, end
    )
    top_items = list(
        items.values('menu_item_id', 'menu_item__name', 'menu_item__category__name', 'menu_item__is_veg')
        .annotate(quantity=Sum('quantity'), revenue=Sum('total_price'))
        .order_by('-quantity')[:10]
    )
    by_category = {
        (row['menu_item__category__name'] or 'Uncategorized'): {
            'quantity': row['quantity'], 'revenue': row['revenue'],
        }
        for row in items.values('menu_item__category__name').annotate(
            quantity=Sum('quantity'), revenue=Sum('total_price')
        )
    }
    veg = items.aggregate(
        veg_quantity=Sum('quantity', filter=Q(menu_item__is_veg=True)),
        veg_revenue=Sum('total_price', filter=Q(menu_item__is_veg=True)),
        non_veg_quantity=Sum('quantity', filter=Q(menu_item__is_veg=False)),
        non_veg_revenue=Sum('total_price', filter=Q(menu_item__is_veg=False)),
        items_sold=Sum('quantity'),
        revenue=Sum('total_price'),
    )
    return {
        'top_items': [
            {
                'id': row['menu_item_id'],
                'name': row['menu_item__name'],
                'category': row['menu_item__category__name'] or 'Uncategorized',
                'is_veg': row['menu_item__is_veg'],
                'quantity': row['quantity'],
                'revenue': row['revenue'],
            }
            for row in top_items
        ],
        'by_category': by_category,
        'veg_non_veg': {
            'veg': {'quantity': veg['veg_quantity'] or 0, 'revenue': veg['veg_revenue'] or ZERO},
            'non_veg': {'quantity': veg['non_veg_quantity'] or 0, 'revenue': veg['non_veg_revenue'] or ZERO},
        },
        'total_items_sold': veg['items_sold'] or 0,
        'total_revenue': veg['revenue'] or ZERO,
    }


def offer_metrics(start, end):
    usages = _in_range(OfferUsage.objects.all(), 'used_at', start, end)
    per_offer = {
        row['offer_id']: row
        for row in usages.values('offer_id').annotate(uses=Count('id'), discount=Sum('discount_amount'))
    }
    offers = Offer.objects.all()
    by_offer = sorted(
        [
            {
                'id': offer.id,
                'name': offer.name,
                'type': offer.offer_type,
                'usage_count': per_offer.get(offer.id, {}).get('uses', 0),
                'total_discount': per_offer.get(offer.id, {}).get('discount') or ZERO,
                'is_active': offer.is_active,
            }
            for offer in offers
        ],
        key=lambda row: -row['usage_count']
    )[:10]
    return {
        'total_offers': offers.count(),
        'active_offers': offers.filter(is_active=True).count(),
        'total_usage': usages.count(),
        'total_discount': usages.aggregate(total=Sum('discount_amount'))['total'] or ZERO,
        'by_offer': by_offer,
    }


def table_metrics(start, end):
    sessions = _in_range(TableSession.objects.select_related('table'), 'created_at', start, end)

    per_table = {}
    durations = []
    for session in sessions:
        table = session.table
        row = per_table.setdefault(table.table_number, {
            'table_number': table.table_number,
            'table_code': table.table_code,
            'sessions': 0,
            'revenue': ZERO,
            'minutes': [],
        })
        row['sessions'] += 1
        row['revenue'] += session.total_amount
        if session.status == 'completed' and session.session_ended_at:
            minutes = session.duration_minutes()
            row['minutes'].append(minutes)
            durations.append(minutes)

    by_table = sorted(
        [
            {
                'table_number': row['table_number'],
                'table_code': row['table_code'],
                'sessions': row['sessions'],
                'revenue': row['revenue'],
                'average_session_minutes': _average(row['minutes']),
            }
            for row in per_table.values()
        ],
        key=lambda row: -row['revenue']
    )
    return {
        'total_sessions': sum(row['sessions'] for row in by_table),
        'active_sessions': sessions.filter(status='active').count(),
        'completed_sessions': len(durations),
        'top_tables': by_table[:10],
        'by_table': by_table,
        'average_session_minutes': _average(durations),
        'total_revenue': sum((row['revenue'] for row in by_table), ZERO),
    }


def _average(values):
    return round(sum(values) / len(values)) if values else 0



# ============================================================================
# REPORTS
# ============================================================================

def build_dashboard(period='30d', start=None, end=None):
    """Full analytics payload for the back office."""
    start, end = resolve_period(period, start, end)
    revenue = revenue_metrics(start, end)
    orders = order_metrics(start, end)
    customers = customer_metrics(start, end)
    return {
        'period': period,
        'start_date': start.isoformat() if start else None,
        'end_date': end.isoformat() if end else None,
        'overview': {
            'total_revenue': revenue['total'],
            'total_orders': orders['total'],
            'total_customers': customers['total'],
            'average_order_value': revenue['total'] / orders['total'] if orders['total'] else ZERO,
        },
        'revenue': revenue,
        'orders': orders,
        'customers': customers,
        'menu': menu_metrics(start, end),
        'offers': offer_metrics(start, end),
        'tables': table_metrics(start, end),
    }


def day_bounds(day):
    start = timezone.make_aware(datetime.combine(day, time.min))
    end = timezone.make_aware(datetime.combine(day, time.max))
    return start, end


def daily_sales_report(day=None):
    """Paid bills, orders and tables used for one day."""
    day = day or timezone.localdate()
    start, end = day_bounds(day)
    bills = Bill.objects.filter(paid_at__range=[start, end], payment_status='paid').select_related('session')
    totals = bills.aggregate(revenue=Sum('final_amount'), count=Count('id'), discount=Sum('discount_amount'))
    total_bills = totals['count']
    total_revenue = totals['revenue'] or ZERO

    return {
        'date': day,
        'bills': bills,
        'total_revenue': total_revenue,
        'total_discount': totals['discount'] or ZERO,
        'total_bills': total_bills,
        'total_orders': Order.objects.filter(created_at__range=[start, end]).exclude(status='cancelled').count(),
        'total_tables_used': bills.filter(session__isnull=False).values('session__table').distinct().count(),
        'takeaway_bills': bills.filter(session__isnull=True).count(),
        'average_bill_value': (total_revenue / total_bills).quantize(Decimal('0.01')) if total_bills else ZERO,
    }


def daily_sales_summary(day=None):
    """JSON-safe version of daily_sales_report for task results and logs."""
    report = daily_sales_report(day)
    return {
        'date': report['date'].isoformat(),
        'total_revenue': str(report['total_revenue']),
        'total_discount': str(report['total_discount']),
        'total_bills': report['total_bills'],
        'total_orders': report['total_orders'],
        'total_tables_used': report['total_tables_used'],
        'takeaway_bills': report['takeaway_bills'],
        'average_bill_value': str(report['average_bill_value']),
    }
