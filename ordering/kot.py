import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .exceptions import InvalidStatusTransition
from .models import Order, OrderItem

logger = logging.getLogger(__name__)

KOT_FLOW = ['placed', 'preparing', 'ready', 'served']


@dataclass
class KitchenTicket:
    batch_id: object
    kot_number: int
    order: Order
    items: list = field(default_factory=list)

    @property
    def created_at(self):
        return min(item.created_at for item in self.items)

    @property
    def status(self):
        return calculate_kot_status([item.status for item in self.items])


# ============================================================================
# STATUS RULES
# ============================================================================

def calculate_kot_status(statuses):
    """The least advanced status among non-cancelled items."""
    statuses = [s for s in statuses if s != 'cancelled']
    if not statuses:
        return 'placed'
    for status in ('placed', 'preparing', 'ready'):
        if status in statuses:
            return status
    return 'served'


def kot_age_minutes(created_at, now=None):
    now = now or timezone.now()
    return max(0, int((now - created_at).total_seconds() // 60))


def kot_urgency(status, age_minutes):
    if status == 'ready':
        return 'ready'
    if age_minutes > settings.QRDINE['KOT_CRITICAL_MINUTES']:
        return 'critical'
    if age_minutes > settings.QRDINE['KOT_WARNING_MINUTES']:
        return 'warning'
    return 'normal'


def next_kot_number():
    """Next ticket number. Call inside the transaction that saves the items."""
    last = (
        OrderItem.objects.select_for_update()
        .filter(kot_number__isnull=False)
        .order_by('-kot_number')
        .first()
    )
    return (last.kot_number if last else 0) + 1


# ============================================================================
# GROUPING
# ============================================================================

def group_items_into_kots(items):
    """Group order items by KOT batch, oldest ticket first."""
    tickets = {}
    for item in items:
        if item.kot_batch_id is None:
            continue
        ticket = tickets.get(item.kot_batch_id)
        if ticket is None:
            ticket = KitchenTicket(batch_id=item.kot_batch_id, kot_number=item.kot_number, order=item.order)
            tickets[item.kot_batch_id] = ticket
        ticket.items.append(item)
    return sorted(tickets.values(), key=lambda ticket: ticket.kot_number or 0)


def active_kots(statuses=None, since=None):
    """Tickets for the kitchen display, optionally filtered by status or update time."""
    items = OrderItem.objects.select_related(
        'order', 'order__table', 'order__takeaway_point', 'menu_item'
    ).exclude(status='cancelled').exclude(order__status='cancelled')
    if since is not None:
        touched = items.filter(updated_at__gte=since).values_list('kot_batch_id', flat=True)
        items = items.filter(kot_batch_id__in=list(touched))
    tickets = group_items_into_kots(items)
    if statuses:
        tickets = [ticket for ticket in tickets if ticket.status in statuses]
    return tickets


# ============================================================================
# STATUS UPDATES
# ============================================================================

def update_kot_status(batch_id, new_status):
    """
    Move every item of a ticket to `new_status`. Tickets only move forward:
    placed -> preparing -> ready -> served.
    """
    if new_status not in KOT_FLOW:
        raise InvalidStatusTransition(f'Unknown KOT status "{new_status}".')

    with transaction.atomic():
        items = list(
            OrderItem.objects.select_for_update()
            .filter(kot_batch_id=batch_id)
            .exclude(status='cancelled')
        )
        if not items:
            raise InvalidStatusTransition('KOT not found.')

        current = calculate_kot_status([item.status for item in items])
        if KOT_FLOW.index(new_status) < KOT_FLOW.index(current):
            raise InvalidStatusTransition(
                f'KOT is already {current}; it cannot go back to {new_status}.'
            )

        OrderItem.objects.filter(id__in=[item.id for item in items]).update(
            status=new_status, updated_at=timezone.now()
        )
        order = items[0].order
        order.refresh_status_from_items()

    logger.info(f"KOT #{items[0].kot_number} (order #{order.id}) moved {current} -> {new_status}")

    if new_status == 'ready' and current != 'ready':
        from .tasks import notify_kot_ready_task
        transaction.on_commit(lambda: notify_kot_ready_task.delay(order.id, items[0].kot_number))

    ticket = KitchenTicket(batch_id=batch_id, kot_number=items[0].kot_number, order=order)
    ticket.items = list(OrderItem.objects.filter(kot_batch_id=batch_id).select_related('menu_item'))
    return ticket


# ============================================================================
# PRINTING
# ============================================================================

def render_kot_ticket(ticket, width=32):
    """Plain-text ticket for thermal kitchen printers."""
    order = ticket.order
    if order.table_id:
        where = f"TABLE {order.table.table_number}"
    else:
        where = 'TAKEAWAY'
        if order.customer_name:
            where += f" - {order.customer_name}"

    rule = '-' * width
    lines = [
        f"KOT #{ticket.kot_number}".center(width),
        where.center(width),
        timezone.localtime(ticket.created_at).strftime('%d-%m-%Y %H:%M').center(width),
        rule,
    ]
    for item in ticket.items:
        if item.status == 'cancelled':
            continue
        qty = f"x{item.quantity}"
        name = item.menu_item.name
        if item.is_free:
            name += ' (FREE)'
        name = name[:width - len(qty) - 1]
        lines.append(f"{name.ljust(width - len(qty))}{qty}")
        if item.special_notes:
            lines.append(f"  * {item.special_notes}"[:width])
    lines.append(rule)
    if order.notes:
        lines.append(f"Note: {order.notes}"[:width])
    lines.append(f"Order #{order.id}".center(width))
    return '\n'.join(lines) + '\n'
