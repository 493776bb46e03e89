"""Tests for Celery tasks: notifications, OTP delivery and housekeeping."""

from datetime import timedelta

import pytest
from celery.schedules import crontab
from django.core import mail
from django.utils import timezone

from ordering import services
from ordering.models import Bill, GuestOTP, Notification, TableSession
from ordering.tasks import (
    check_pending_bills, check_stale_sessions, cleanup_old_notifications, generate_daily_report,
    notify_kitchen_order_task, send_guest_otp_task,
)


def line(item, quantity=1):
    return {'menu_item': item.id, 'quantity': quantity}


@pytest.mark.django_db
class TestOrderNotifications:

    def test_new_order_reaches_kitchen_and_manager(
        self, kitchen, manager, waiter, menu, table, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            order = services.place_order([line(menu['samosa'], 2)], table=table)

        notified = Notification.objects.filter(notification_type='order_placed', order_id=order.id)
        assert set(notified.values_list('user__username', flat=True)) == {'kitchen1', 'manager1'}
        assert notified.first().title == f"New Order #{order.id} - Table 1"

    def test_cancel_notifies_kitchen(self, kitchen, menu, table):
        order = services.place_order([line(menu['samosa'])], table=table)
        services.cancel_order(order, 'Guest left')

        notification = Notification.objects.get(user=kitchen, notification_type='order_cancelled')
        assert notification.message == 'Guest left'

    def test_missing_order(self, db):
        assert notify_kitchen_order_task(999) == 'Order 999 not found'

    def test_inactive_staff_skipped(self, kitchen, menu, table):
        kitchen.is_active = False
        kitchen.save()
        order = services.place_order([line(menu['samosa'])], table=table)
        notify_kitchen_order_task(order.id)
        assert not Notification.objects.filter(user=kitchen).exists()


@pytest.mark.django_db
class TestOTPDelivery:

    def test_phone_otp_is_logged(self, db):
        otp = GuestOTP.objects.create(
            destination='9876543210', channel='phone', code='123456',
            expires_at=timezone.now() + timedelta(minutes=10),
        )
        assert send_guest_otp_task(otp.id) == 'OTP logged for 9876543210'
        assert mail.outbox == []

    def test_email_otp(self, db):
        otp = GuestOTP.objects.create(
            destination='guest@example.com', channel='email', code='654321',
            expires_at=timezone.now() + timedelta(minutes=10),
        )
        send_guest_otp_task(otp.id)
        assert len(mail.outbox) == 1
        assert '654321' in mail.outbox[0].body
        assert 'verification code' in mail.outbox[0].subject


@pytest.mark.django_db
class TestPendingBills:
    """Tests for the unpaid-bill alert."""

    def test_old_pending_bill_alerts_manager_once(self, manager, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)
        bill = services.generate_bill(session=order.session)
        Bill.objects.filter(id=bill.id).update(generated_at=timezone.now() - timedelta(hours=3))

        assert check_pending_bills() == 'Alerted on 1 pending bills'
        assert check_pending_bills() == 'Alerted on 0 pending bills'
        notification = Notification.objects.get(user=manager, notification_type='bill_pending')
        assert notification.bill_id == bill.id

    def test_recent_bill_ignored(self, manager, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)
        services.generate_bill(session=order.session)
        assert check_pending_bills() == 'Alerted on 0 pending bills'


@pytest.mark.django_db
class TestStaleSessions:
    """Tests for auto-closing abandoned tables."""

    def test_empty_session_closed(self, manager, table):
        session = services.open_session(table)
        TableSession.objects.filter(id=session.id).update(
            session_started_at=timezone.now() - timedelta(hours=5)
        )

        assert check_stale_sessions() == 'Auto-closed 1 stale sessions'
        session.refresh_from_db()
        assert session.status == 'cancelled'
        table.refresh_from_db()
        assert table.status == 'available'
        assert Notification.objects.filter(user=manager, notification_type='session_closed').exists()

    def test_session_with_orders_kept(self, menu, table):
        order = services.place_order([line(menu['naan'])], table=table)
        TableSession.objects.filter(id=order.session_id).update(
            session_started_at=timezone.now() - timedelta(hours=5)
        )
        assert check_stale_sessions() == 'Auto-closed 0 stale sessions'

    def test_one_failure_does_not_stop_the_sweep(self, monkeypatch, table, veg_table):
        broken = services.open_session(table)
        healthy = services.open_session(veg_table)
        TableSession.objects.update(session_started_at=timezone.now() - timedelta(hours=5))

        close_session = services.close_session

        def flaky_close(session, *args, **kwargs):
            if session.id == broken.id:
                raise RuntimeError('database hiccup')
            return close_session(session, *args, **kwargs)

        monkeypatch.setattr(services, 'close_session', flaky_close)

        assert check_stale_sessions() == 'Auto-closed 1 stale sessions'
        assert TableSession.objects.get(id=healthy.id).status == 'cancelled'
        assert TableSession.objects.get(id=broken.id).status == 'active'

    def test_fresh_session_kept(self, table):
        services.open_session(table)
        assert check_stale_sessions() == 'Auto-closed 0 stale sessions'


@pytest.mark.django_db
class TestHousekeeping:

    def test_cleanup_old_read_notifications(self, manager):
        old = timezone.now() - timedelta(days=31)
        Notification.objects.create(
            user=manager, notification_type='order_placed', title='Old', message='',
            is_read=True, read_at=old,
        )
        Notification.objects.create(
            user=manager, notification_type='order_placed', title='Unread', message='',
        )
        Notification.objects.create(
            user=manager, notification_type='order_placed', title='Recent', message='',
            is_read=True, read_at=timezone.now(),
        )

        assert cleanup_old_notifications() == 'Cleaned up 1 old notifications'
        assert set(Notification.objects.values_list('title', flat=True)) == {'Unread', 'Recent'}

    def test_daily_report(self, menu, table, taxes):
        order = services.place_order([line(menu['naan'], 2)], table=table)
        services.settle_bill(services.generate_bill(session=order.session), 'cash')

        report = generate_daily_report()
        assert report['total_bills'] == 1
        assert report['total_revenue'] == '105.00'
        assert report['date'] == timezone.localdate().isoformat()


@pytest.mark.django_db
class TestNotificationEndpoints:

    def test_unread_and_mark_read(self, manager_client, manager):
        first = Notification.objects.create(user=manager, notification_type='kot_ready', title='A', message='')
        Notification.objects.create(user=manager, notification_type='kot_ready', title='B', message='')

        response = manager_client.get('/api/notifications/unread/')
        assert response.data['count'] == 2

        manager_client.post(f'/api/notifications/{first.id}/mark_read/')
        assert manager_client.get('/api/notifications/unread/').data['count'] == 1

        response = manager_client.post('/api/notifications/mark_all_read/')
        assert response.data['message'] == '1 notifications marked as read.'

    def test_only_own_notifications(self, waiter_client, manager):
        Notification.objects.create(user=manager, notification_type='kot_ready', title='A', message='')
        assert waiter_client.get('/api/notifications/').data['count'] == 0


def test_nightly_jobs_run_on_a_clock(settings):
    schedule = settings.CELERY_BEAT_SCHEDULE
    assert isinstance(schedule['generate-daily-report']['schedule'], crontab)
    assert isinstance(schedule['cleanup-old-notifications']['schedule'], crontab)
