"""
In-app notifications for restaurant staff.
Each helper fans one event out to every user in the relevant groups.
"""
import logging

from django.contrib.auth.models import User

from .models import Notification

logger = logging.getLogger(__name__)


def _where(order):
    if order.table_id:
        return f"Table {order.table.table_number}"
    return f"Takeaway ({order.customer_name or order.customer_phone or 'walk-in'})"


def _bill_where(bill):
    if bill.session_id:
        return f"Table {bill.session.table.table_number}"
    return 'Takeaway'


def notify_groups(groups, notification_type, title, message, table_id=None, order_id=None, bill_id=None):
    """Create one notification per active user in `groups`."""
    recipients = User.objects.filter(groups__name__in=groups, is_active=True).distinct()
    notifications = Notification.objects.bulk_create([
        Notification(
            user=user,
            notification_type=notification_type,
            title=title,
            message=message,
            table_id=table_id,
            order_id=order_id,
            bill_id=bill_id,
        )
        for user in recipients
    ])
    return len(notifications)


# ============================================================================
# NOTIFICATION HELPER FUNCTIONS
# ============================================================================

def notify_kitchen_new_order(order):
    """Tell the kitchen about a new KOT."""
    items = order.items.exclude(status='cancelled')
    count = notify_groups(
        ['Kitchen', 'Manager'],
        'order_placed',
        f"New Order #{order.id} - {_where(order)}",
        f"Order placed for {_where(order)} with {items.count()} items",
        table_id=order.table_id,
        order_id=order.id,
    )
    logger.info(f"Kitchen notified of new order #{order.id} ({count} users)")
    return count


def notify_kot_ready(order, kot_number):
    """Waiters pick up ready tickets."""
    count = notify_groups(
        ['Waiter', 'Manager'],
        'kot_ready',
        f"KOT #{kot_number} Ready - {_where(order)}",
        f"KOT #{kot_number} for {_where(order)} is ready to be served",
        table_id=order.table_id,
        order_id=order.id,
    )
    logger.info(f"Waiters notified that KOT #{kot_number} is ready")
    return count


def notify_order_cancelled(order):
    count = notify_groups(
        ['Kitchen', 'Manager'],
        'order_cancelled',
        f"Order #{order.id} Cancelled - {_where(order)}",
        order.cancelled_reason or f"Order #{order.id} was cancelled",
        table_id=order.table_id,
        order_id=order.id,
    )
    logger.info(f"Staff notified that order #{order.id} was cancelled")
    return count


def notify_manager_pending_bill(bill, hours_pending):
    """Bill left unpaid for too long."""
    count = notify_groups(
        ['Manager'],
        'bill_pending',
        f"Bill {bill.bill_number} Pending Payment - {_bill_where(bill)}",
        f"Bill for {_bill_where(bill)} (₹{bill.final_amount}) has been pending for {hours_pending} hours",
        table_id=bill.session.table_id if bill.session_id else None,
        bill_id=bill.id,
    )
    logger.info(f"Manager notified about pending bill {bill.bill_number}")
    return count


def notify_payment_received(bill):
    count = notify_groups(
        ['Cashier', 'Manager'],
        'payment_received',
        f"Payment Received - {_bill_where(bill)}",
        f"Bill {bill.bill_number} (₹{bill.final_amount}) paid by {bill.get_payment_method_display()}",
        table_id=bill.session.table_id if bill.session_id else None,
        bill_id=bill.id,
    )
    logger.info(f"Staff notified about payment for bill {bill.bill_number}")
    return count


def notify_session_closed(session, hours_open):
    count = notify_groups(
        ['Manager'],
        'session_closed',
        f"Table {session.table.table_number} Auto-Closed",
        f"Table {session.table.table_number} was open for {hours_open}+ hours without orders and has been closed",
        table_id=session.table_id,
    )
    logger.info(f"Manager notified that session #{session.id} was auto-closed")
    return count
