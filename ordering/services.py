import logging
import re
import secrets
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .billing import BillLine, calculate_bill, effective_discount_percentage, next_bill_number
from .exceptions import (
    BillAlreadyExists, BillAlreadyPaid, EmptyOrder, InvalidStatusTransition,
    MenuItemUnavailable, OfferLocked, OfferNotEligible, OrderingError, OTPError,
    TableUnavailable,
)
from .kot import next_kot_number
from .models import (
    Bill, BillItem, GuestOTP, GuestUser, MenuItem, Offer, OfferUsage, Order, OrderItem,
    RestaurantSetting, TableSession, TaxSetting, new_batch_id,
)
from .offers import (
    FREE_ITEM_TYPES, CartLine, apply_free_addon, build_cart, cart_total, check_offer_eligibility,
    record_offer_usage, validate_promo_code,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

# ============================================================================
# GUESTS & OTP
# ============================================================================

def normalize_phone(phone):
    """Digits only, without the 91 country code on 12-digit numbers."""
    digits = re.sub(r'\D', '', phone or '')
    if len(digits) == 12 and digits.startswith('91'):
        digits = digits[2:]
    return digits


def get_or_create_guest(phone, name='', email=''):
    """Upsert a guest by phone and stamp the login time."""
    phone = normalize_phone(phone)
    guest, created = GuestUser.objects.get_or_create(phone=phone)
    if name:
        guest.name = name
    if email:
        guest.email = email
    guest.last_login_at = timezone.now()
    guest.save()
    if created:
        logger.info(f"New guest registered: {phone}")
    return guest


def issue_otp(destination, channel='phone'):
    """Create a fresh OTP for a phone or email, retiring older ones."""
    config = settings.QRDINE
    if channel == 'phone':
        destination = normalize_phone(destination)
        if len(destination) != 10:
            raise OTPError('Enter a valid 10-digit phone number.')
    else:
        destination = destination.strip().lower()
        if '@' not in destination:
            raise OTPError('Enter a valid email address.')

    GuestOTP.objects.filter(destination=destination, is_consumed=False).update(is_consumed=True)
    code = ''.join(secrets.choice('0123456789') for _ in range(config['OTP_LENGTH']))
    otp = GuestOTP.objects.create(
        destination=destination,
        channel=channel,
        code=code,
        expires_at=timezone.now() + timedelta(minutes=config['OTP_TTL_MINUTES']),
    )

    from .tasks import send_guest_otp_task
    transaction.on_commit(lambda: send_guest_otp_task.delay(otp.id))
    return otp


def verify_otp(destination, code, channel='phone'):
    """Check a code against the latest OTP; returns the normalized destination."""
    if channel == 'phone':
        destination = normalize_phone(destination)
    else:
        destination = destination.strip().lower()

    otp = GuestOTP.objects.filter(destination=destination, is_consumed=False).first()
    if otp is None or otp.is_expired():
        raise OTPError('OTP expired. Please request a new one.')
    if otp.attempts >= settings.QRDINE['OTP_MAX_ATTEMPTS']:
        raise OTPError('Too many attempts. Please request a new OTP.')

    if not secrets.compare_digest(otp.code, str(code).strip()):
        otp.attempts = F('attempts') + 1
        otp.save(update_fields=['attempts'])
        raise OTPError('Invalid OTP')

    otp.is_consumed = True
    otp.save(update_fields=['is_consumed'])
    return destination


# ============================================================================
# SESSIONS
# ============================================================================

def open_session(table, phone='', email=''):
    """Return the table's active session, creating one if needed."""
    if not table.is_active:
        raise TableUnavailable(f'Table {table.table_number} is not active.')

    session = table.active_session()
    if session is not None:
        return session

    try:
        with transaction.atomic():
            session = TableSession.objects.create(
                table=table, customer_phone=phone, customer_email=email
            )
    except IntegrityError:
        # Another request opened it first
        return TableSession.objects.get(table=table, status='active')

    table.mark_occupied()
    logger.info(f"Session #{session.id} opened for table {table.table_number}")
    return session


def close_session(session, user=None, force=False):
    """
    Cancel an abandoned session and free its table. Sessions with live
    orders need `force`, which cancels those orders too.
    """
    if session.status != 'active':
        raise InvalidStatusTransition(f'Session is already {session.get_status_display().lower()}.')
    if session.bills.filter(payment_status='pending').exists():
        raise InvalidStatusTransition('Session has a pending bill. Settle it first.')

    open_orders = session.orders.exclude(status__in=['cancelled', 'paid'])
    if open_orders.exists() and not force:
        raise InvalidStatusTransition('Session has open orders. Generate a bill or force close.')

    with transaction.atomic():
        for order in open_orders:
            _cancel_items(order, 'Session closed', user)
        session.status = 'cancelled'
        session.session_ended_at = timezone.now()
        session.save(update_fields=['status', 'session_ended_at', 'updated_at'])
        session.table.reset_to_available()

    logger.info(f"Session #{session.id} closed for table {session.table.table_number}")
    return session


# ============================================================================
# ORDERS
# ============================================================================

def _resolve_offer(session, cart, total, customer_phone, offer_id, promo_code, free_addon_id):
    """
    Pick and check the offer for an order, honouring the session's locked offer.

    Returns (offer, eligibility). Orders joining a session whose offer is
    already locked get (locked offer, None): the offer is valued once for
    the whole visit when the bill is generated.
    """
    locked_id = session.locked_offer_id if session is not None else None
    offer = None
    eligibility = None

    if promo_code:
        offer, eligibility = validate_promo_code(promo_code, cart, customer_phone)
    elif offer_id:
        offer = Offer.objects.filter(id=offer_id).first()
        if offer is None or (not offer.is_active and offer.id != locked_id):
            raise OfferNotEligible('Offer not found.')
        if offer.id != locked_id:
            eligibility = check_offer_eligibility(offer, cart, total, customer_phone)

    if locked_id:
        if offer is not None and offer.id != locked_id:
            raise OfferLocked(
                f'This table already uses "{session.locked_offer_data["name"]}". '
                'Only that offer can be applied for the rest of the visit.'
            )
        return session.locked_offer, None

    if offer is None:
        return None, None

    if not eligibility.is_eligible:
        raise OfferNotEligible(eligibility.reason)
    if eligibility.requires_user_action:
        if not free_addon_id:
            raise OfferNotEligible('Select a free add-on to apply this offer.')
        eligibility = apply_free_addon(offer, eligibility, free_addon_id)
    return offer, eligibility


def place_order(items, table=None, takeaway_point=None, customer_phone='',
                customer_name='', customer_email='', offer_id=None, promo_code=None,
                free_addon_id=None, notes='', created_by=None, created_by_type='guest'):
    """
    Place a dine-in order (by table) or a takeaway order (by takeaway point).
    All order items form one KOT.
    """
    if (table is None) == (takeaway_point is None):
        raise OrderingError('Order needs either a table or a takeaway point.')
    if table is not None and not table.is_active:
        raise TableUnavailable(f'Table {table.table_number} is not active.')
    if takeaway_point is not None and not takeaway_point.is_active:
        raise TableUnavailable('Takeaway counter is not active.')

    customer_phone = normalize_phone(customer_phone)
    cart, item_notes = build_cart(items)
    veg_only = table.veg_only if table is not None else takeaway_point.is_veg_only
    if veg_only:
        non_veg = MenuItem.objects.filter(id__in=[line.menu_item_id for line in cart], is_veg=False)
        if non_veg.exists():
            raise MenuItemUnavailable(f'"{non_veg.first().name}" is not served here (vegetarian only).')

    guest = None
    if customer_phone:
        guest = GuestUser.objects.filter(phone=customer_phone).first()
        if guest is None and created_by_type != 'guest':
            guest = get_or_create_guest(customer_phone, customer_name, customer_email)

    subtotal = cart_total(cart)

    with transaction.atomic():
        session = None
        if table is not None:
            session = open_session(table, customer_phone, customer_email)
            session = TableSession.objects.select_for_update().get(pk=session.pk)
            if session.bills.filter(payment_status='pending').exists():
                raise BillAlreadyExists('Bill already generated for this table. Please ask staff to add items.')

        offer, eligibility = _resolve_offer(
            session, cart, subtotal, customer_phone, offer_id, promo_code, free_addon_id
        )
        free_lines = eligibility.free_items if eligibility else []
        if free_lines:
            # Free lines are stored at zero; their value is only tracked on the usage
            discount = ZERO
            tracked_discount = eligibility.discount
        else:
            discount = min(eligibility.discount, subtotal) if eligibility else ZERO
            tracked_discount = discount

        order = Order.objects.create(
            order_type='dine-in' if table is not None else 'takeaway',
            table=table,
            session=session,
            takeaway_point=takeaway_point,
            guest=guest,
            customer_name=customer_name or (guest.name if guest else ''),
            customer_phone=customer_phone,
            customer_email=customer_email,
            subtotal=subtotal,
            discount_amount=discount,
            total_amount=subtotal - discount,
            applied_offer=offer,
            notes=notes,
            created_by_type=created_by_type,
            created_by=created_by,
        )

        kot_number = next_kot_number()
        batch_id = new_batch_id()
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                menu_item_id=line.menu_item_id,
                quantity=line.quantity,
                unit_price=line.price,
                total_price=ZERO if line.is_free else line.line_total,
                kot_number=kot_number,
                kot_batch_id=batch_id,
                is_free=line.is_free,
                linked_offer_id=line.linked_offer_id,
                special_notes=item_notes.get(line.menu_item_id, '') if not line.is_free else '',
            )
            for line in cart + free_lines
        ])

        if eligibility is not None:
            record_offer_usage(offer, order, tracked_discount, free_lines, session)

        if session is not None:
            session.total_orders = F('total_orders') + 1
            session.total_amount = F('total_amount') + order.total_amount
            update_fields = ['total_orders', 'total_amount', 'updated_at']
            if offer is not None and not session.locked_offer_id:
                session.locked_offer = offer
                session.locked_offer_data = offer.snapshot()
                update_fields += ['locked_offer', 'locked_offer_data']
            if customer_phone and not session.customer_phone:
                session.customer_phone = customer_phone
                update_fields.append('customer_phone')
            session.save(update_fields=update_fields)
            session.refresh_from_db(fields=['total_orders', 'total_amount'])

        if guest is not None:
            guest_updates = {'total_orders': F('total_orders') + 1}
            if table is not None:
                guest_updates['last_table_code'] = table.table_code
            GuestUser.objects.filter(id=guest.id).update(**guest_updates)

        from .tasks import notify_kitchen_order_task
        transaction.on_commit(lambda: notify_kitchen_order_task.delay(order.id))

    logger.info(
        f"Order #{order.id} placed ({order.order_type}, KOT #{kot_number}, "
        f"total ₹{order.total_amount}, offer={offer.id if offer else None})"
    )
    return order


def _cancel_items(order, reason, user):
    order.items.exclude(status='cancelled').update(status='cancelled', updated_at=timezone.now())
    order.status = 'cancelled'
    order.cancelled_at = timezone.now()
    order.cancelled_reason = reason
    order.cancelled_by = user if user is not None and user.is_authenticated else None
    order.save()
    if order.session_id:
        TableSession.objects.filter(id=order.session_id).update(
            total_orders=F('total_orders') - 1,
            total_amount=F('total_amount') - order.total_amount,
        )


def _release_offer(order):
    """
    Give the offer back when the last live order using it is cancelled:
    drop its usage and unlock the session. Otherwise the usage moves to the
    earliest remaining order.
    """
    offer_id = order.applied_offer_id
    remaining = Order.objects.none()
    if order.session_id:
        remaining = (
            Order.objects.filter(session_id=order.session_id, applied_offer_id=offer_id)
            .exclude(status='cancelled')
            .order_by('created_at')
        )

    usages = OfferUsage.objects.filter(offer_id=offer_id, order=order)
    heir = remaining.first()
    if heir is not None:
        usages.update(order=heir)
        return

    released = usages.delete()[0]
    if released:
        Offer.objects.filter(id=offer_id).update(usage_count=F('usage_count') - released)
    if order.session_id:
        TableSession.objects.filter(id=order.session_id, locked_offer_id=offer_id).update(
            locked_offer=None, locked_offer_data=None
        )
    logger.info(f"Offer {offer_id} released after order #{order.id} was cancelled")


def cancel_order(order, reason='', user=None):
    """Cancel an order that has not been served or paid yet."""
    if order.status in ('served', 'paid', 'cancelled'):
        raise InvalidStatusTransition(f'Order is already {order.get_status_display().lower()}.')
    if order.session_id and order.session.bills.filter(payment_status='pending').exists():
        raise InvalidStatusTransition('Bill already generated for this table.')

    with transaction.atomic():
        _cancel_items(order, reason, user)
        if order.applied_offer_id:
            _release_offer(order)

    logger.info(f"Order #{order.id} cancelled: {reason or 'no reason given'}")
    from .notifications import notify_order_cancelled
    notify_order_cancelled(order)
    return order


# ============================================================================
# BILLING
# ============================================================================

def _bill_lines(order_items, manual_items):
    lines = []
    for item in order_items:
        name = item.menu_item.name
        if item.is_free:
            name += ' (Free)'
        lines.append(BillLine(
            name=name,
            quantity=item.quantity,
            unit_price=ZERO if item.is_free else item.unit_price,
            total_price=item.total_price,
            order_item_id=item.id,
        ))

    for manual in manual_items or []:
        try:
            quantity = int(manual.get('quantity', 1))
            unit_price = Decimal(str(manual['unit_price']))
            name = manual['name'].strip()
        except (KeyError, TypeError, ValueError, ArithmeticError, AttributeError):
            raise OrderingError('Manual items need a name, quantity and unit_price.')
        if quantity < 1 or unit_price < 0 or not name:
            raise OrderingError('Manual items need a name, a positive quantity and a price.')
        lines.append(BillLine(
            name=name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=unit_price * quantity,
            is_manual=True,
        ))
    return lines


def _session_offer_discount(session, offer, orders, order_items):
    """
    Value the session's locked offer once, over every paid-for line of the
    visit. Free-item offers are already settled as zero-priced lines.
    """
    if offer is None or offer.offer_type in FREE_ITEM_TYPES:
        return ZERO
    offer_orders = [o for o in orders if o.applied_offer_id == offer.id]
    if not offer_orders:
        return ZERO
    locking_order = min(offer_orders, key=lambda o: o.created_at)

    cart = [
        CartLine(
            menu_item_id=item.menu_item_id,
            name=item.menu_item.name,
            price=item.unit_price,
            quantity=item.quantity,
            category_id=item.menu_item.category_id,
        )
        for item in order_items if not item.is_free
    ]
    if not cart:
        return ZERO

    total = cart_total(cart)
    eligibility = check_offer_eligibility(
        offer, cart, total,
        customer_phone=locking_order.customer_phone or session.customer_phone,
        now=locking_order.created_at,
        check_usage_limit=False,
    )
    if not eligibility.is_eligible:
        logger.info(f"Offer {offer.id} no longer applies to session {session.id}: {eligibility.reason}")
        return ZERO

    discount = min(eligibility.discount, total)
    OfferUsage.objects.filter(offer=offer, session=session).update(discount_amount=discount)
    return discount


def generate_bill(session=None, order=None, user=None, discount_percentage=None, manual_items=None):
    """
    Bill a table session (dine-in) or a single takeaway order. Only one
    pending bill may exist per session.
    """
    if (session is None) == (order is None):
        raise OrderingError('Bill needs either a session or a takeaway order.')

    if session is not None:
        if session.status != 'active':
            raise InvalidStatusTransition('Session is not active.')
        if session.bills.filter(payment_status='pending').exists():
            raise BillAlreadyExists()
        orders = list(session.orders.exclude(status='cancelled'))
        applied_offer = session.locked_offer
    else:
        if order.order_type != 'takeaway':
            raise OrderingError('Dine-in orders are billed through their table session.')
        if order.status in ('paid', 'cancelled'):
            raise InvalidStatusTransition(f'Order is already {order.get_status_display().lower()}.')
        if order.bills.filter(payment_status='pending').exists():
            raise BillAlreadyExists('Bill already exists for this order')
        orders = [order]
        applied_offer = order.applied_offer

    order_items = (
        OrderItem.objects.filter(order__in=orders)
        .exclude(status='cancelled')
        .select_related('menu_item')
        .order_by('kot_number', 'id')
    )
    lines = _bill_lines(order_items, manual_items)
    if not lines:
        raise EmptyOrder('Cannot generate a bill without items.')

    items_total = sum((line.total_price for line in lines), ZERO)
    if session is not None:
        offer_discount = _session_offer_discount(session, applied_offer, orders, order_items)
    else:
        offer_discount = order.discount_amount
    percentage = effective_discount_percentage(items_total, offer_discount, discount_percentage)
    if discount_percentage:
        applied_offer = None
    tax_inclusive = RestaurantSetting.is_tax_inclusive()
    calculation = calculate_bill(
        lines, percentage, TaxSetting.objects.filter(is_active=True), tax_inclusive
    )

    try:
        with transaction.atomic():
            bill = Bill.objects.create(
                bill_number=next_bill_number(),
                session=session,
                order=order,
                applied_offer=applied_offer,
                subtotal=calculation.subtotal,
                discount_percentage=percentage.quantize(Decimal('0.01')),
                discount_amount=calculation.discount_amount,
                tax_breakdown=calculation.tax_breakdown,
                total_tax_amount=calculation.total_gst,
                subtotal_with_tax=calculation.subtotal_with_tax,
                final_amount=calculation.final_amount,
                tax_inclusive=tax_inclusive,
                generated_by=user if user is not None and user.is_authenticated else None,
            )
            BillItem.objects.bulk_create([
                BillItem(
                    bill=bill,
                    order_item_id=line.order_item_id,
                    item_name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                    is_manual=line.is_manual,
                )
                for line in lines
            ])
            if session is not None:
                session.table.request_bill()
    except IntegrityError:
        raise BillAlreadyExists()

    logger.info(f"Bill {bill.bill_number} generated: ₹{bill.final_amount}")
    return bill


def settle_bill(bill, payment_method, user=None):
    """
    Record payment, complete the visit and free the table.
    The bill row is locked so a payment is only ever recorded once.
    """
    if payment_method not in dict(Bill.PAYMENT_METHOD_CHOICES):
        raise OrderingError('Payment method must be cash, upi or card.')

    now = timezone.now()
    receiver = user if user is not None and user.is_authenticated else None

    with transaction.atomic():
        bill = Bill.objects.select_for_update().get(pk=bill.pk)
        if bill.payment_status == 'paid':
            raise BillAlreadyPaid()
        if bill.payment_status == 'cancelled':
            raise InvalidStatusTransition('Bill is cancelled.')

        bill.payment_status = 'paid'
        bill.payment_method = payment_method
        bill.paid_at = now
        bill.payment_received_by = receiver
        bill.save()

        session = bill.session
        if session is not None:
            session.orders.exclude(status='cancelled').update(status='paid', updated_at=now)
            session.status = 'completed'
            session.session_ended_at = now
            session.payment_method = payment_method
            session.paid_at = now
            session.payment_received_by = receiver
            session.save()
            session.table.reset_to_available()
            phone = session.customer_phone
        else:
            Order.objects.filter(id=bill.order_id).update(status='paid', updated_at=now)
            phone = bill.order.customer_phone

        if phone:
            GuestUser.objects.filter(phone=phone).update(
                visit_count=F('visit_count') + 1,
                total_spent=F('total_spent') + bill.final_amount,
            )

        from .tasks import notify_payment_received_task
        transaction.on_commit(lambda: notify_payment_received_task.delay(bill.id))

    logger.info(f"Bill {bill.bill_number} paid by {payment_method}: ₹{bill.final_amount}")
    return bill
