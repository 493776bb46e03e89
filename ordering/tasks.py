"""
Celery tasks for background operations.
Handles staff notifications, OTP delivery and periodic housekeeping.
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

logger = logging.getLogger(__name__)

# ============================================================================
# ORDER NOTIFICATION TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def notify_kitchen_order_task(self, order_id):
    """Notify the kitchen of a new order. Queued when the order commits."""
    from ordering.models import Order
    from ordering.notifications import notify_kitchen_new_order

    try:
        order = Order.objects.get(id=order_id)
        notify_kitchen_new_order(order)
        return f"Kitchen notified of order #{order_id}"
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return f"Order {order_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying kitchen: {exc}")
        raise self.retry(exc=exc, countdown=60)


@shared_task(bind=True, max_retries=3)
def notify_kot_ready_task(self, order_id, kot_number):
    """Notify waiters when a KOT is ready to serve."""
    from ordering.models import Order
    from ordering.notifications import notify_kot_ready

    try:
        order = Order.objects.get(id=order_id)
        notify_kot_ready(order, kot_number)
        return f"Waiters notified that KOT #{kot_number} is ready"
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found")
        return f"Order {order_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying KOT ready: {exc}")
        raise self.retry(exc=exc, countdown=60)


# ============================================================================
# PAYMENT NOTIFICATION TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def notify_payment_received_task(self, bill_id):
    from ordering.models import Bill
    from ordering.notifications import notify_payment_received

    try:
        bill = Bill.objects.get(id=bill_id)
        notify_payment_received(bill)
        return f"Payment notification sent for bill #{bill_id}"
    except Bill.DoesNotExist:
        logger.error(f"Bill {bill_id} not found")
        return f"Bill {bill_id} not found"
    except Exception as exc:
        logger.error(f"Error notifying payment: {exc}")
        raise self.retry(exc=exc, countdown=60)


# ============================================================================
# GUEST OTP DELIVERY
# ============================================================================

@shared_task(bind=True, max_retries=3)
def send_guest_otp_task(self, otp_id):
    """
    Deliver a guest OTP. Email goes through Django mail; phone numbers are
    only logged since no SMS gateway is configured.
    """
    from ordering.models import GuestOTP

    try:
        otp = GuestOTP.objects.get(id=otp_id)
    except GuestOTP.DoesNotExist:
        logger.error(f"OTP {otp_id} not found")
        return f"OTP {otp_id} not found"

    restaurant = settings.QRDINE['RESTAURANT_NAME']
    if otp.channel == 'email':
        try:
            send_mail(
                subject=f"Your {restaurant} verification code",
                message=(
                    f"Your verification code is {otp.code}. "
                    f"It expires in {settings.QRDINE['OTP_TTL_MINUTES']} minutes."
                ),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[otp.destination],
            )
        except Exception as exc:
            logger.error(f"Error sending OTP email to {otp.destination}: {exc}")
            raise self.retry(exc=exc, countdown=60)
        logger.info(f"OTP emailed to {otp.destination}")
        return f"OTP emailed to {otp.destination}"

    logger.info(f"OTP issued for phone {otp.destination} (SMS delivery not configured)")
    logger.debug(f"OTP for {otp.destination}: {otp.code}")
    return f"OTP logged for {otp.destination}"


# ============================================================================
# BILL & SESSION MONITORING TASKS
# ============================================================================

@shared_task
def check_pending_bills():
    """
    Alert managers about bills still unpaid after PENDING_BILL_ALERT_HOURS.
    Each bill is reported once.
    """
    from ordering.models import Bill, Notification
    from ordering.notifications import notify_manager_pending_bill

    hours = settings.QRDINE['PENDING_BILL_ALERT_HOURS']
    threshold = timezone.now() - timedelta(hours=hours)
    already_notified = Notification.objects.filter(
        notification_type='bill_pending', bill_id__isnull=False
    ).values_list('bill_id', flat=True)
    pending_bills = Bill.objects.filter(
        payment_status='pending',
        generated_at__lte=threshold,
    ).exclude(id__in=already_notified).select_related('session__table')

    alerted = 0
    for bill in pending_bills:
        notify_manager_pending_bill(bill, hours_pending=hours)
        alerted += 1

    logger.info(f"Alerted on {alerted} pending bills")
    return f"Alerted on {alerted} pending bills"


@shared_task
def check_stale_sessions():
    """
    Close table sessions left open for STALE_SESSION_HOURS without any
    order, freeing the table.
    """
    from ordering.models import TableSession
    from ordering.notifications import notify_session_closed
    from ordering.services import close_session

    hours = settings.QRDINE['STALE_SESSION_HOURS']
    threshold = timezone.now() - timedelta(hours=hours)
    stale = TableSession.objects.filter(
        status='active', session_started_at__lte=threshold
    ).select_related('table')

    closed = 0
    for session in stale:
        if session.orders.exclude(status='cancelled').exists():
            continue
        if session.bills.filter(payment_status='pending').exists():
            continue
        try:
            close_session(session)
        except Exception as exc:
            logger.error(f"Error auto-closing session {session.id}: {str(exc)}")
            continue
        notify_session_closed(session, hours)
        closed += 1

    logger.info(f"Auto-closed {closed} stale sessions")
    return f"Auto-closed {closed} stale sessions"


# ============================================================================
# PERIODIC CLEANUP TASKS
# ============================================================================

@shared_task
def cleanup_old_notifications():
    """Delete read notifications older than NOTIFICATION_RETENTION_DAYS."""
    from ordering.models import Notification

    cutoff_date = timezone.now() - timedelta(days=settings.QRDINE['NOTIFICATION_RETENTION_DAYS'])
    deleted_count, _ = Notification.objects.filter(
        is_read=True,
        read_at__lt=cutoff_date
    ).delete()

    logger.info(f"Cleaned up {deleted_count} old notifications")
    return f"Cleaned up {deleted_count} old notifications"


@shared_task
def generate_daily_report():
    """Log the day's sales summary."""
    from ordering.analytics import daily_sales_summary

    report = daily_sales_summary(timezone.localdate())
    logger.info(f"Daily report generated: {report}")
    return report
