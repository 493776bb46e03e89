"""Tests for staff order, session and kitchen endpoints."""

from decimal import Decimal

import pytest

from ordering import services
from ordering.models import Offer, Order, OrderItem, TableSession


def line(item, quantity=1, **extra):
    return {'menu_item': item.id, 'quantity': quantity, **extra}


@pytest.mark.django_db
class TestPlaceOrder:
    """Tests for POST /api/orders/."""

    def test_waiter_places_dine_in_order(self, waiter_client, menu, table):
        response = waiter_client.post('/api/orders/', {
            'table': table.id,
            'items': [line(menu['samosa'], 2, special_notes='Extra chutney'), line(menu['chai'])],
            'customer_phone': '+91 98765 43210',
        }, format='json')

        assert response.status_code == 201
        assert response.data['order_type'] == 'dine-in'
        assert response.data['created_by_type'] == 'staff'
        assert response.data['customer_phone'] == '9876543210'
        assert Decimal(response.data['total_amount']) == Decimal('190.00')
        assert len(response.data['items']) == 2

        table.refresh_from_db()
        assert table.status == 'occupied'
        session = TableSession.objects.get(table=table, status='active')
        assert session.total_orders == 1
        assert session.total_amount == Decimal('190.00')

    def test_manager_orders_are_marked_admin(self, manager_client, menu, table):
        response = manager_client.post(
            '/api/orders/', {'table': table.id, 'items': [line(menu['naan'])]}, format='json'
        )
        assert response.data['created_by_type'] == 'admin'

    def test_second_order_joins_the_session(self, waiter_client, menu, table):
        waiter_client.post('/api/orders/', {'table': table.id, 'items': [line(menu['naan'])]}, format='json')
        waiter_client.post('/api/orders/', {'table': table.id, 'items': [line(menu['chai'])]}, format='json')

        assert TableSession.objects.filter(table=table).count() == 1
        session = TableSession.objects.get(table=table)
        assert session.total_orders == 2
        assert session.total_amount == Decimal('80.00')
        kot_numbers = set(OrderItem.objects.values_list('kot_number', flat=True))
        assert len(kot_numbers) == 2

    def test_takeaway_order(self, waiter_client, menu, takeaway_point):
        response = waiter_client.post('/api/orders/', {
            'takeaway_point': takeaway_point.id,
            'items': [line(menu['biryani'])],
            'customer_name': 'Ravi',
        }, format='json')
        assert response.status_code == 201
        assert response.data['order_type'] == 'takeaway'
        assert response.data['session'] is None

    def test_table_or_takeaway_point_required(self, waiter_client, menu):
        response = waiter_client.post('/api/orders/', {'items': [line(menu['naan'])]}, format='json')
        assert response.status_code == 400
        assert 'error' in response.data

    def test_veg_only_table_rejects_non_veg(self, waiter_client, menu, veg_table):
        response = waiter_client.post(
            '/api/orders/', {'table': veg_table.id, 'items': [line(menu['chicken'])]}, format='json'
        )
        assert response.status_code == 400
        assert 'Butter Chicken' in response.data['error']
        assert not Order.objects.exists()

    def test_unavailable_item(self, waiter_client, menu, table):
        menu['lassi'].is_available = False
        menu['lassi'].save()
        response = waiter_client.post(
            '/api/orders/', {'table': table.id, 'items': [line(menu['lassi'])]}, format='json'
        )
        assert response.status_code == 400
        assert response.data['error'] == '"Mango Lassi" is not available.'

    def test_inactive_table(self, waiter_client, menu, table):
        table.is_active = False
        table.save()
        response = waiter_client.post(
            '/api/orders/', {'table': table.id, 'items': [line(menu['naan'])]}, format='json'
        )
        assert response.status_code == 404

    def test_requires_authentication(self, api_client, menu, table):
        response = api_client.post(
            '/api/orders/', {'table': table.id, 'items': [line(menu['naan'])]}, format='json'
        )
        assert response.status_code == 401


@pytest.mark.django_db
class TestOrderOffers:
    """Tests for applying and locking offers on orders."""

    def test_offer_discount_is_applied(self, waiter_client, menu, table):
        offer = Offer.objects.create(
            name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50}
        )
        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['chicken'])], 'offer': offer.id,
        }, format='json')

        assert response.status_code == 201
        assert Decimal(response.data['discount_amount']) == Decimal('50.00')
        assert Decimal(response.data['total_amount']) == Decimal('230.00')
        offer.refresh_from_db()
        assert offer.usage_count == 1
        session = TableSession.objects.get(table=table)
        assert session.locked_offer == offer
        assert session.locked_offer_data['name'] == 'Flat 50'

    def test_other_offer_rejected_once_locked(self, waiter_client, menu, table):
        first = Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        second = Offer.objects.create(name='Ten', offer_type='cart_percentage', benefits={'discount_percentage': 10})
        waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['chicken'])], 'offer': first.id,
        }, format='json')

        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['paneer'])], 'offer': second.id,
        }, format='json')
        assert response.status_code == 409
        assert 'Flat 50' in response.data['error']

        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['paneer'])], 'offer': first.id,
        }, format='json')
        assert response.status_code == 201

    def test_ineligible_offer(self, waiter_client, menu, table):
        offer = Offer.objects.create(
            name='Big spender', offer_type='cart_flat_amount',
            benefits={'discount_amount': 100}, conditions={'min_amount': 1000},
        )
        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['chicken'])], 'offer': offer.id,
        }, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Add ₹720 more to unlock'

    def test_free_item_offer_adds_zero_priced_line(self, waiter_client, menu, table):
        offer = Offer.objects.create(
            name='Free chai', offer_type='cart_threshold_item',
            benefits={'free_item_id': menu['chai'].id}, conditions={'threshold_amount': 200},
        )
        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['chicken'])], 'offer': offer.id,
        }, format='json')

        assert response.status_code == 201
        assert Decimal(response.data['discount_amount']) == Decimal('0.00')
        assert Decimal(response.data['total_amount']) == Decimal('280.00')
        free = [item for item in response.data['items'] if item['is_free']]
        assert len(free) == 1
        assert Decimal(free[0]['total_price']) == Decimal('0.00')
        assert offer.usages.get().discount_amount == Decimal('30.00')

    def test_invalid_promo_code(self, waiter_client, menu, table):
        response = waiter_client.post('/api/orders/', {
            'table': table.id, 'items': [line(menu['chicken'])], 'promo_code': 'NOPE',
        }, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Invalid promo code'


@pytest.mark.django_db
class TestCancelOrder:

    def test_cancel_updates_session_totals(self, waiter_client, menu, table):
        keep = services.place_order([line(menu['naan'])], table=table)
        drop = services.place_order([line(menu['chicken'])], table=table)

        response = waiter_client.post(f'/api/orders/{drop.id}/cancel/', {'reason': 'Changed mind'}, format='json')
        assert response.status_code == 200
        assert response.data['order']['status'] == 'cancelled'

        drop.refresh_from_db()
        assert drop.cancelled_reason == 'Changed mind'
        assert set(drop.items.values_list('status', flat=True)) == {'cancelled'}
        session = keep.session
        session.refresh_from_db()
        assert session.total_orders == 1
        assert session.total_amount == Decimal('50.00')

    def test_cancelling_only_offer_order_releases_offer(self, menu, table):
        flat = Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        ten = Offer.objects.create(name='Ten', offer_type='cart_percentage', benefits={'discount_percentage': 10})
        keep = services.place_order([line(menu['naan'])], table=table)
        drop = services.place_order([line(menu['chicken'])], table=table, offer_id=flat.id)

        services.cancel_order(drop, 'Wrong table')

        flat.refresh_from_db()
        assert flat.usage_count == 0
        assert not flat.usages.exists()
        session = TableSession.objects.get(id=keep.session_id)
        assert session.locked_offer is None

        order = services.place_order([line(menu['paneer'], 2)], table=table, offer_id=ten.id)
        assert order.applied_offer == ten

    def test_usage_moves_to_remaining_order(self, menu, table):
        flat = Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        first = services.place_order([line(menu['chicken'])], table=table, offer_id=flat.id)
        second = services.place_order([line(menu['paneer'])], table=table)

        services.cancel_order(first)

        flat.refresh_from_db()
        assert flat.usage_count == 1
        assert flat.usages.get().order_id == second.id
        assert TableSession.objects.get(id=first.session_id).locked_offer == flat

    def test_cannot_cancel_twice(self, waiter_client, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)
        waiter_client.post(f'/api/orders/{order.id}/cancel/', {}, format='json')
        response = waiter_client.post(f'/api/orders/{order.id}/cancel/', {}, format='json')
        assert response.status_code == 400


@pytest.mark.django_db
class TestOrderQueries:

    def test_filter_by_phone_and_status(self, waiter_client, menu, table, takeaway_point):
        services.place_order([line(menu['naan'])], table=table, customer_phone='9876543210')
        services.place_order([line(menu['chai'])], takeaway_point=takeaway_point, customer_phone='9000000000')

        response = waiter_client.get('/api/orders/', {'customer_phone': '919876543210'})
        assert response.status_code == 200
        assert response.data['count'] == 1

        response = waiter_client.get('/api/orders/', {'order_type': 'takeaway'})
        assert [order['customer_phone'] for order in response.data['results']] == ['9000000000']


@pytest.mark.django_db
class TestSessions:

    def test_active_sessions_listed(self, waiter_client, menu, table):
        services.place_order([line(menu['naan'])], table=table)
        response = waiter_client.get('/api/sessions/')
        assert response.data['count'] == 1
        session_id = response.data['results'][0]['id']

        detail = waiter_client.get(f'/api/sessions/{session_id}/')
        assert len(detail.data['orders']) == 1

    def test_manager_closes_session(self, manager_client, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)

        response = manager_client.post(f'/api/sessions/{order.session_id}/close/', {}, format='json')
        assert response.status_code == 400

        response = manager_client.post(f'/api/sessions/{order.session_id}/close/', {'force': True}, format='json')
        assert response.status_code == 200
        assert response.data['status'] == 'cancelled'
        table.refresh_from_db()
        assert table.status == 'available'
        order.refresh_from_db()
        assert order.status == 'cancelled'

    def test_waiter_cannot_close_session(self, waiter_client, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)
        response = waiter_client.post(f'/api/sessions/{order.session_id}/close/', {'force': True}, format='json')
        assert response.status_code == 403


@pytest.mark.django_db
class TestKitchenDisplay:

    def test_list_and_update_tickets(self, kitchen_client, menu, table):
        order = services.place_order([line(menu['samosa'], 2)], table=table)

        response = kitchen_client.get('/api/kots/')
        assert response.status_code == 200
        assert len(response.data) == 1
        ticket = response.data[0]
        assert ticket['status'] == 'placed'
        assert ticket['table_number'] == 1
        assert ticket['urgency'] == 'normal'

        response = kitchen_client.post(
            f"/api/kots/{ticket['batch_id']}/update_status/", {'status': 'preparing'}, format='json'
        )
        assert response.status_code == 200
        assert response.data['status'] == 'preparing'

        response = kitchen_client.get('/api/kots/', {'status': 'placed'})
        assert response.data == []
        order.refresh_from_db()
        assert order.status == 'preparing'

    def test_backward_move_rejected(self, kitchen_client, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        batch_id = order.items.first().kot_batch_id
        kitchen_client.post(f'/api/kots/{batch_id}/update_status/', {'status': 'ready'}, format='json')
        response = kitchen_client.post(f'/api/kots/{batch_id}/update_status/', {'status': 'preparing'}, format='json')
        assert response.status_code == 400

    def test_printable_ticket(self, kitchen_client, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        batch_id = order.items.first().kot_batch_id

        response = kitchen_client.get(f'/api/kots/{batch_id}/ticket/')
        assert response.status_code == 200
        assert response['Content-Type'].startswith('text/plain')
        assert 'Samosa' in response.content.decode()

    def test_malformed_ticket_id_is_not_found(self, kitchen_client, menu, table):
        services.place_order([line(menu['samosa'])], table=table)
        response = kitchen_client.post('/api/kots/not-a-uuid/update_status/', {'status': 'ready'}, format='json')
        assert response.status_code == 404
        assert kitchen_client.get('/api/kots/not-a-uuid/ticket/').status_code == 404

    def test_waiter_reads_but_cannot_move_tickets(self, waiter_client, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        batch_id = order.items.first().kot_batch_id

        assert waiter_client.get('/api/kots/').status_code == 200
        response = waiter_client.post(f'/api/kots/{batch_id}/update_status/', {'status': 'ready'}, format='json')
        assert response.status_code == 403
        assert order.items.first().status == 'placed'


@pytest.mark.django_db
class TestTablesAndMenu:

    def test_manager_creates_menu_item(self, manager_client, categories):
        response = manager_client.post('/api/menu-items/', {
            'name': 'Gulab Jamun', 'category': categories['starters'].id, 'price': '100.00',
        }, format='json')
        assert response.status_code == 201

    def test_waiter_cannot_edit_menu(self, waiter_client, categories):
        response = waiter_client.post('/api/menu-items/', {
            'name': 'Gulab Jamun', 'category': categories['starters'].id, 'price': '100.00',
        }, format='json')
        assert response.status_code == 403

    def test_price_must_be_positive(self, manager_client, categories):
        response = manager_client.post('/api/menu-items/', {
            'name': 'Free lunch', 'category': categories['starters'].id, 'price': '0',
        }, format='json')
        assert response.status_code == 400

    def test_toggle_availability(self, manager_client, menu):
        response = manager_client.post(f"/api/menu-items/{menu['naan'].id}/toggle_availability/")
        assert response.data['is_available'] is False

    def test_dashboard_shows_live_session(self, waiter_client, menu, table):
        services.place_order([line(menu['naan'])], table=table)
        response = waiter_client.get('/api/tables/dashboard/')
        row = next(row for row in response.data if row['id'] == table.id)
        assert row['status'] == 'occupied'
        assert row['session']['total_orders'] == 1
        assert row['bill_status'] is None

    def test_cannot_delete_table_in_use(self, manager_client, menu, table):
        services.place_order([line(menu['naan'])], table=table)
        response = manager_client.delete(f'/api/tables/{table.id}/')
        assert response.status_code == 400

    def test_request_bill(self, waiter_client, menu, table):
        response = waiter_client.post(f'/api/tables/{table.id}/request_bill/')
        assert response.status_code == 400

        services.place_order([line(menu['naan'])], table=table)
        response = waiter_client.post(f'/api/tables/{table.id}/request_bill/')
        assert response.status_code == 200
        table.refresh_from_db()
        assert table.status == 'bill_requested'
