"""Tests for analytics and the daily sales report."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from ordering import analytics, services
from ordering.models import Bill, GuestUser, Offer


def line(item, quantity=1):
    return {'menu_item': item.id, 'quantity': quantity}


@pytest.fixture
def trading_day(menu, table, takeaway_point, taxes):
    """One paid table visit with an offer and one paid takeaway order."""
    offer = Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
    services.get_or_create_guest('9876543210', 'Asha')
    dine_in = services.place_order(
        [line(menu['paneer'], 2), line(menu['chicken'])],
        table=table, customer_phone='9876543210', offer_id=offer.id,
    )
    bill = services.generate_bill(session=dine_in.session)
    services.settle_bill(bill, 'upi')

    takeaway = services.place_order([line(menu['biryani'])], takeaway_point=takeaway_point)
    services.settle_bill(services.generate_bill(order=takeaway), 'cash')
    return offer


class TestResolvePeriod:

    def test_named_period(self):
        now = timezone.make_aware(datetime(2024, 6, 15, 12, 0))
        start, end = analytics.resolve_period('7d', now=now)
        assert end == now
        assert start == now - timedelta(days=7)

    def test_all_time(self):
        assert analytics.resolve_period('all') == (None, None)

    def test_unknown_period_defaults_to_thirty_days(self):
        now = timezone.now()
        start, _ = analytics.resolve_period('fortnight', now=now)
        assert start == now - timedelta(days=30)

    def test_explicit_dates_cover_whole_days(self):
        start, end = analytics.resolve_period('7d', '2024-06-01', '2024-06-30')
        assert timezone.localtime(start).date().isoformat() == '2024-06-01'
        assert timezone.localtime(end).hour == 23

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            analytics.resolve_period('7d', 'yesterday', '2024-06-30')


@pytest.mark.django_db
class TestDashboard:
    """Tests for the analytics payload."""

    def test_revenue_and_orders(self, trading_day):
        data = analytics.build_dashboard('30d')
        # Dine-in: 609 taxed, 8.62% off is 52.50 -> 53, pays 556; takeaway 210
        assert data['revenue']['total'] == Decimal('766.00')
        assert data['revenue']['by_payment_method'] == {'upi': Decimal('556.00'), 'cash': Decimal('210.00')}
        assert data['orders']['total'] == 2
        assert data['orders']['by_type'] == {'dine-in': 1, 'takeaway': 1}
        assert data['orders']['completed'] == 2

    def test_menu_and_offers(self, trading_day):
        data = analytics.build_dashboard('30d')
        top = data['menu']['top_items'][0]
        assert top['name'] == 'Paneer Tikka'
        assert top['quantity'] == 2
        assert data['menu']['veg_non_veg']['non_veg']['quantity'] == 1
        assert data['offers']['total_usage'] == 1
        assert data['offers']['by_offer'][0]['name'] == 'Flat 50'

    def test_customers_and_tables(self, trading_day):
        data = analytics.build_dashboard('30d')
        assert data['customers']['total'] == 1
        assert data['customers']['top_customers'][0]['visit_count'] == 1
        assert data['tables']['total_sessions'] == 1
        assert data['tables']['completed_sessions'] == 1
        assert data['tables']['top_tables'][0]['table_code'] == 'T01'

    def test_new_and_returning_cover_every_guest(self, trading_day):
        services.get_or_create_guest('9000000001', 'Ravi')
        regular = services.get_or_create_guest('9000000002', 'Meena')
        GuestUser.objects.filter(id=regular.id).update(visit_count=3)

        customers = analytics.build_dashboard('30d')['customers']
        assert customers['total'] == 3
        assert customers['new'] == 2
        assert customers['returning'] == 1
        assert customers['new'] + customers['returning'] == customers['total']

    def test_revenue_counted_on_payment_day(self, trading_day):
        Bill.objects.update(created_at=timezone.now() - timedelta(days=10))
        data = analytics.build_dashboard('7d')
        assert data['revenue']['total'] == Decimal('766.00')

    def test_endpoint_requires_manager(self, cashier_client, manager_client, trading_day):
        assert cashier_client.get('/api/analytics/').status_code == 403
        response = manager_client.get('/api/analytics/', {'period': '7d'})
        assert response.status_code == 200
        assert response.data['period'] == '7d'
        assert response.data['overview']['total_orders'] == 2

    def test_endpoint_rejects_bad_dates(self, manager_client):
        response = manager_client.get('/api/analytics/', {'start_date': 'soon', 'end_date': 'later'})
        assert response.status_code == 400


@pytest.mark.django_db
class TestDailySales:

    def test_report(self, trading_day):
        report = analytics.daily_sales_report()
        assert report['total_bills'] == 2
        assert report['total_revenue'] == Decimal('766.00')
        assert report['total_tables_used'] == 1
        assert report['takeaway_bills'] == 1
        assert report['average_bill_value'] == Decimal('383.00')

    def test_summary_is_json_safe(self, trading_day):
        summary = analytics.daily_sales_summary()
        assert summary['total_revenue'] == '766.00'
        assert summary['date'] == timezone.localdate().isoformat()

    def test_endpoint(self, manager_client, trading_day):
        response = manager_client.get('/api/reports/daily-sales/')
        assert response.status_code == 200
        assert len(response.data['bills']) == 2

    def test_empty_day(self, manager_client):
        response = manager_client.get('/api/reports/daily-sales/', {'date': '2020-01-01'})
        assert response.data['total_bills'] == 0
        assert response.data['bills'] == []
