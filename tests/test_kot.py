"""Tests for kitchen order tickets."""

from datetime import timedelta

import pytest
from django.utils import timezone

from ordering import services
from ordering.exceptions import InvalidStatusTransition
from ordering.kot import (
    active_kots, calculate_kot_status, kot_age_minutes, kot_urgency, render_kot_ticket,
    update_kot_status,
)
from ordering.models import Notification, OrderItem


def line(item, quantity=1, **extra):
    return {'menu_item': item.id, 'quantity': quantity, **extra}


class TestKotStatus:
    """Tests for the derived ticket status."""

    def test_least_advanced_status_wins(self):
        assert calculate_kot_status(['ready', 'preparing', 'served']) == 'preparing'
        assert calculate_kot_status(['ready', 'served']) == 'ready'
        assert calculate_kot_status(['served', 'served']) == 'served'

    def test_cancelled_items_ignored(self):
        assert calculate_kot_status(['cancelled', 'ready']) == 'ready'
        assert calculate_kot_status(['cancelled']) == 'placed'

    def test_urgency(self):
        assert kot_urgency('placed', 10) == 'normal'
        assert kot_urgency('preparing', 16) == 'warning'
        assert kot_urgency('placed', 31) == 'critical'
        assert kot_urgency('ready', 45) == 'ready'

    def test_age_minutes(self):
        now = timezone.now()
        assert kot_age_minutes(now - timedelta(minutes=12, seconds=30), now=now) == 12
        assert kot_age_minutes(now + timedelta(minutes=1), now=now) == 0


@pytest.mark.django_db
class TestKotUpdates:
    """Tests for moving tickets through the kitchen."""

    def test_each_order_is_one_ticket(self, menu, table):
        first = services.place_order([line(menu['samosa'], 2), line(menu['chai'])], table=table)
        second = services.place_order([line(menu['naan'], 3)], table=table)

        tickets = active_kots()
        assert [ticket.order.id for ticket in tickets] == [first.id, second.id]
        assert tickets[1].kot_number == tickets[0].kot_number + 1
        assert len(tickets[0].items) == 2

    def test_status_moves_forward(self, menu, table):
        order = services.place_order([line(menu['samosa']), line(menu['chai'])], table=table)
        batch_id = order.items.first().kot_batch_id

        ticket = update_kot_status(batch_id, 'preparing')
        assert ticket.status == 'preparing'
        order.refresh_from_db()
        assert order.status == 'preparing'

        update_kot_status(batch_id, 'ready')
        with pytest.raises(InvalidStatusTransition):
            update_kot_status(batch_id, 'preparing')

    def test_unknown_status_rejected(self, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        with pytest.raises(InvalidStatusTransition):
            update_kot_status(order.items.first().kot_batch_id, 'eaten')

    def test_ready_notifies_waiters(self, waiter, menu, table, django_capture_on_commit_callbacks):
        order = services.place_order([line(menu['samosa'])], table=table)
        with django_capture_on_commit_callbacks(execute=True):
            update_kot_status(order.items.first().kot_batch_id, 'ready')

        notification = Notification.objects.get(user=waiter, notification_type='kot_ready')
        assert notification.order_id == order.id

    def test_filter_by_status(self, menu, table):
        first = services.place_order([line(menu['samosa'])], table=table)
        services.place_order([line(menu['naan'])], table=table)
        update_kot_status(first.items.first().kot_batch_id, 'preparing')

        tickets = active_kots(statuses=['preparing'])
        assert [ticket.order.id for ticket in tickets] == [first.id]

    def test_cancelled_orders_leave_the_display(self, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        services.cancel_order(order, 'Guest left')
        assert active_kots() == []


@pytest.mark.django_db
def test_render_ticket(menu, table):
    order = services.place_order(
        [line(menu['paneer'], 2, special_notes='Less spicy'), line(menu['chai'])],
        table=table,
        notes='Birthday table',
    )
    ticket = active_kots()[0]
    text = render_kot_ticket(ticket)

    assert f"KOT #{ticket.kot_number}" in text
    assert 'TABLE 1' in text
    assert 'Paneer Tikka' in text and 'x2' in text
    assert '* Less spicy' in text
    assert 'Note: Birthday table' in text
    assert f"Order #{order.id}" in text
    assert OrderItem.objects.filter(order=order).count() == 2
