import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from .exceptions import EmptyOrder, InvalidPromoCode, MenuItemUnavailable, OfferNotEligible
from .models import ComboMeal, GuestUser, MenuItem, Offer, OfferUsage

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

ITEM_BASED_TYPES = [
    'item_buy_get_free',
    'cart_threshold_item',
    'item_free_addon',
    'item_percentage',
    'combo_meal',
]

# Offers paid out as zero-priced order lines rather than a bill discount
FREE_ITEM_TYPES = [
    'item_buy_get_free',
    'cart_threshold_item',
    'item_free_addon',
]

# ============================================================================
# CART & RESULT TYPES
# ============================================================================

@dataclass
class CartLine:
    menu_item_id: int
    name: str
    price: Decimal
    quantity: int
    category_id: int = None
    is_free: bool = False
    linked_offer_id: int = None

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'menu_item': self.menu_item_id,
            'name': self.name,
            'price': str(self.price),
            'quantity': self.quantity,
            'category': self.category_id,
            'is_free': self.is_free,
            'linked_offer': self.linked_offer_id,
        }


@dataclass
class OfferEligibility:
    is_eligible: bool
    discount: Decimal = ZERO
    reason: str = ''
    free_items: list = field(default_factory=list)
    requires_user_action: bool = False
    available_free_items: list = field(default_factory=list)

    def to_dict(self):
        data = {
            'is_eligible': self.is_eligible,
            'discount': str(self.discount),
            'reason': self.reason,
            'free_items': [line.to_dict() for line in self.free_items],
            'requires_user_action': self.requires_user_action,
        }
        if self.requires_user_action:
            data['action_type'] = 'select_free_item'
            data['available_free_items'] = self.available_free_items
        return data


def not_eligible(reason):
    return OfferEligibility(is_eligible=False, reason=reason)


def build_cart(raw_items):
    """
    Turn request lines [{"menu_item": 1, "quantity": 2}, ...] into CartLines
    priced from the menu.
    """
    if not raw_items:
        raise EmptyOrder()

    quantities = {}
    notes = {}
    for raw in raw_items:
        try:
            menu_item_id = int(raw.get('menu_item'))
            quantity = int(raw.get('quantity', 1))
        except (TypeError, ValueError, AttributeError):
            raise MenuItemUnavailable('Each item needs a menu_item id and a quantity.')
        if quantity < 1:
            raise MenuItemUnavailable('Quantity must be a positive integer.')
        quantities[menu_item_id] = quantities.get(menu_item_id, 0) + quantity
        if raw.get('special_notes'):
            notes[menu_item_id] = raw['special_notes']

    menu_items = MenuItem.objects.in_bulk(list(quantities))
    cart = []
    for menu_item_id, quantity in quantities.items():
        menu_item = menu_items.get(menu_item_id)
        if menu_item is None:
            raise MenuItemUnavailable(f'Menu item {menu_item_id} not found.')
        if not menu_item.is_available:
            raise MenuItemUnavailable(f'"{menu_item.name}" is not available.')
        cart.append(CartLine(
            menu_item_id=menu_item.id,
            name=menu_item.name,
            price=menu_item.price,
            quantity=quantity,
            category_id=menu_item.category_id,
        ))
    return cart, notes


def cart_total(cart):
    return sum((line.line_total for line in cart if not line.is_free), ZERO)


# ============================================================================
# HELPERS
# ============================================================================

def to_decimal(value):
    if value in (None, ''):
        return ZERO
    return Decimal(str(value))


def round_rupees(value):
    return to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def format_amount(value):
    """150.00 -> '150', 99.50 -> '99.5'"""
    value = to_decimal(value)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal('1')))
    return format(value.normalize(), 'f')


def format_time_12h(value):
    hour = value.hour
    ampm = 'PM' if hour >= 12 else 'AM'
    display_hour = hour - 12 if hour > 12 else (12 if hour == 0 else hour)
    return f"{display_hour}:{value.minute:02d} {ampm}"


def within_hours(current, start, end):
    """Inclusive window check; a window with start after end runs past midnight."""
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def percentage_or_amount(benefits, base):
    """Percentage of `base` (capped by max_discount_amount) or a flat amount."""
    percentage = to_decimal(benefits.get('discount_percentage'))
    if percentage:
        discount = base * percentage / 100
        max_discount = to_decimal(benefits.get('max_discount_amount'))
        if max_discount:
            discount = min(discount, max_discount)
        return discount
    return to_decimal(benefits.get('discount_amount'))


def matches(line, item_ids, category_ids):
    return line.menu_item_id in item_ids or (
        line.category_id is not None and line.category_id in category_ids
    )


def split_targets(offer_items):
    item_ids = {oi.menu_item_id for oi in offer_items if oi.menu_item_id}
    category_ids = {oi.menu_category_id for oi in offer_items if oi.menu_category_id}
    return item_ids, category_ids


def customer_visits(customer_phone):
    guest = GuestUser.objects.filter(phone=customer_phone).only('visit_count').first()
    return guest.visit_count if guest else 0


# ============================================================================
# ELIGIBILITY
# ============================================================================

def check_offer_eligibility(offer, cart, total=None, customer_phone=None, now=None, check_usage_limit=True):
    """
    Decide whether `offer` applies to `cart` and how much it is worth.
    Common checks run first, then the rule for the offer type.

    Pass check_usage_limit=False to re-value an offer whose usage has
    already been counted (a table visit at bill time).
    """
    now = timezone.localtime(now or timezone.now())
    total = cart_total(cart) if total is None else to_decimal(total)
    benefits = offer.benefits or {}
    conditions = offer.conditions or {}

    if offer.start_date and offer.start_date > now:
        return not_eligible('Offer not started yet')
    if offer.end_date and offer.end_date < now:
        return not_eligible('Offer has expired')

    if offer.valid_hours_start and offer.valid_hours_end:
        current = now.time().replace(second=0, microsecond=0)
        if not within_hours(current, offer.valid_hours_start, offer.valid_hours_end):
            return not_eligible(
                f"Available {format_time_12h(offer.valid_hours_start)} - "
                f"{format_time_12h(offer.valid_hours_end)}"
            )

    if offer.valid_days:
        current_day = now.strftime('%A').lower()
        valid_days = [day.lower() for day in offer.valid_days]
        if current_day not in valid_days:
            days = ', '.join(day.capitalize() for day in valid_days)
            return not_eligible(f"Valid only on {days}")

    min_amount = to_decimal(conditions.get('min_amount'))
    if min_amount and total < min_amount:
        return not_eligible(f"Add ₹{format_amount(min_amount - total)} more to unlock")

    if offer.target_customer_type != 'all':
        if not customer_phone:
            return not_eligible('Sign in to check eligibility')
        visits = customer_visits(customer_phone)
        if offer.target_customer_type == 'first_time' and visits > 0:
            return not_eligible('Only for first-time customers')
        if offer.target_customer_type == 'returning' and visits == 0:
            return not_eligible('Only for returning customers')
        if offer.target_customer_type == 'loyalty':
            min_orders = int(
                conditions.get('min_orders_count') or offer.min_orders_count
                or settings.QRDINE['LOYALTY_MIN_VISITS']
            )
            if visits < min_orders:
                return not_eligible(f"Requires {min_orders}+ previous orders")

    if check_usage_limit and offer.usage_limit and offer.usage_count >= offer.usage_limit:
        return not_eligible('Usage limit reached')

    checker = TYPE_CHECKERS.get(offer.offer_type)
    if checker is None:
        return not_eligible('Unknown offer type')
    return checker(offer, cart, total, benefits, conditions)


def check_discount_on_cart(offer, cart, total, benefits, conditions):
    """cart_percentage, time_based, customer_based and promo_code."""
    return OfferEligibility(
        is_eligible=True,
        discount=round_rupees(percentage_or_amount(benefits, total)),
    )


def check_cart_flat_amount(offer, cart, total, benefits, conditions):
    discount = min(to_decimal(benefits.get('discount_amount')), total)
    return OfferEligibility(is_eligible=True, discount=round_rupees(discount))


def check_min_order_discount(offer, cart, total, benefits, conditions):
    threshold = to_decimal(conditions.get('threshold_amount'))
    if total < threshold:
        return not_eligible(
            f"Spend ₹{format_amount(threshold)} to unlock "
            f"(₹{format_amount(threshold - total)} more needed)"
        )
    return OfferEligibility(
        is_eligible=True,
        discount=round_rupees(percentage_or_amount(benefits, total)),
    )


def check_cart_threshold_item(offer, cart, total, benefits, conditions):
    threshold = to_decimal(conditions.get('threshold_amount'))
    if total < threshold:
        return not_eligible(
            f"Spend ₹{format_amount(threshold)} to unlock "
            f"(₹{format_amount(threshold - total)} more)"
        )

    free_item_id = benefits.get('free_item_id')
    if not free_item_id:
        return not_eligible('Free item not configured')
    menu_item = MenuItem.objects.filter(id=free_item_id).first()
    if menu_item is None or not menu_item.is_available:
        return not_eligible('Free item not available')

    free_line = CartLine(
        menu_item_id=menu_item.id,
        name=menu_item.name,
        price=menu_item.price,
        quantity=1,
        category_id=menu_item.category_id,
        is_free=True,
        linked_offer_id=offer.id,
    )
    return OfferEligibility(
        is_eligible=True,
        discount=round_rupees(menu_item.price),
        free_items=[free_line],
    )


def check_item_buy_get_free(offer, cart, total, benefits, conditions):
    offer_items = list(offer.offer_items.all())
    if not offer_items:
        return not_eligible('Qualifying items not configured')

    buy_quantity = int(benefits.get('buy_quantity') or 2)
    get_quantity = int(benefits.get('get_quantity') or 1)
    buy_items = [oi for oi in offer_items if oi.item_type == 'buy']
    get_items = [oi for oi in offer_items if oi.item_type == 'get_free']
    if not buy_items:
        return not_eligible('Buy items not configured')
    if not get_items and not benefits.get('get_same_item'):
        return not_eligible('Free items not configured')

    item_ids, category_ids = split_targets(buy_items)
    matching = [line for line in cart if not line.is_free and matches(line, item_ids, category_ids)]
    qualifying_qty = sum(line.quantity for line in matching)
    if qualifying_qty < buy_quantity:
        return not_eligible(
            f"Buy {buy_quantity} to get {get_quantity} free "
            f"({buy_quantity - qualifying_qty} more needed)"
        )

    free_quantity = (qualifying_qty // buy_quantity) * get_quantity

    if benefits.get('get_same_item'):
        cheapest = min(matching, key=lambda line: line.price)
        free_source = (cheapest.menu_item_id, cheapest.name, cheapest.price, cheapest.category_id)
    else:
        get_item_ids, get_category_ids = split_targets(get_items)
        candidates = MenuItem.objects.filter(is_available=True).filter(
            id__in=get_item_ids
        ) | MenuItem.objects.filter(is_available=True, category_id__in=get_category_ids)
        free_menu_item = candidates.order_by('price', 'id').first()
        if free_menu_item is None:
            return not_eligible('Free item not found')
        free_source = (
            free_menu_item.id, free_menu_item.name,
            free_menu_item.price, free_menu_item.category_id,
        )

    menu_item_id, name, price, category_id = free_source
    free_line = CartLine(
        menu_item_id=menu_item_id,
        name=name,
        price=price,
        quantity=free_quantity,
        category_id=category_id,
        is_free=True,
        linked_offer_id=offer.id,
    )
    return OfferEligibility(
        is_eligible=True,
        discount=round_rupees(price * free_quantity),
        free_items=[free_line],
    )


def check_item_free_addon(offer, cart, total, benefits, conditions):
    offer_items = list(offer.offer_items.select_related('menu_item', 'menu_category'))
    qualifying = [oi for oi in offer_items if oi.item_type != 'free_addon']
    if not qualifying:
        return not_eligible('Qualifying items not configured')

    item_ids, category_ids = split_targets(qualifying)
    if not any(matches(line, item_ids, category_ids) for line in cart if not line.is_free):
        first = qualifying[0]
        if first.menu_item_id:
            label = first.menu_item.name
        else:
            label = first.menu_category.name
        return not_eligible(f"Add {label} to unlock")

    max_price = to_decimal(benefits.get('max_price'))
    addon_item_ids = set()
    addon_category_ids = set()
    for oi in offer_items:
        if oi.item_type != 'free_addon':
            continue
        if oi.menu_item_id:
            addon_item_ids.add(oi.menu_item_id)
        else:
            addon_category_ids.add(oi.menu_category_id)
    for addon in benefits.get('free_addon_items') or []:
        if addon.get('type') == 'category':
            addon_category_ids.add(int(addon['id']))
        else:
            addon_item_ids.add(int(addon['id']))

    if not addon_item_ids and not addon_category_ids and not max_price:
        return not_eligible('Free add-on items not configured')

    candidates = (
        MenuItem.objects.filter(is_available=True, id__in=addon_item_ids)
        | MenuItem.objects.filter(is_available=True, category_id__in=addon_category_ids)
    ).order_by('price', 'name')
    available = []
    for menu_item in candidates:
        if max_price and menu_item.price > max_price:
            continue
        available.append({
            'id': menu_item.id,
            'name': menu_item.name,
            'price': str(menu_item.price),
            'type': 'item',
        })

    return OfferEligibility(
        is_eligible=True,
        discount=ZERO,
        requires_user_action=True,
        available_free_items=available,
    )


def check_item_percentage(offer, cart, total, benefits, conditions):
    offer_items = [oi for oi in offer.offer_items.all() if oi.item_type != 'free_addon']
    if not offer_items:
        return not_eligible('Qualifying items not configured')

    item_ids, category_ids = split_targets(offer_items)
    matching = [line for line in cart if not line.is_free and matches(line, item_ids, category_ids)]
    if not matching:
        return not_eligible('Add qualifying items to unlock')

    matching_total = sum((line.line_total for line in matching), ZERO)
    percentage = to_decimal(benefits.get('discount_percentage'))
    return OfferEligibility(
        is_eligible=True,
        discount=round_rupees(matching_total * percentage / 100),
    )


def check_combo_meal(offer, cart, total, benefits, conditions):
    try:
        combo = offer.combo
    except ComboMeal.DoesNotExist:
        return not_eligible('Combo not configured')

    components = list(combo.items.select_related('menu_item'))
    if not components:
        return not_eligible('Combo items not found')

    required = [component for component in components if component.is_required]
    in_cart = {}
    for line in cart:
        if not line.is_free:
            in_cart[line.menu_item_id] = in_cart.get(line.menu_item_id, 0) + line.quantity

    missing = [
        component.menu_item.name
        for component in required
        if in_cart.get(component.menu_item_id, 0) < component.quantity
    ]
    if missing:
        return not_eligible(f"Add {', '.join(missing)} to complete combo")

    regular_total = sum(
        (component.menu_item.price * component.quantity for component in required),
        ZERO
    )
    discount = max(ZERO, round_rupees(regular_total - combo.combo_price))
    return OfferEligibility(is_eligible=True, discount=discount)


TYPE_CHECKERS = {
    'cart_percentage': check_discount_on_cart,
    'cart_flat_amount': check_cart_flat_amount,
    'min_order_discount': check_min_order_discount,
    'cart_threshold_item': check_cart_threshold_item,
    'item_buy_get_free': check_item_buy_get_free,
    'item_free_addon': check_item_free_addon,
    'item_percentage': check_item_percentage,
    'time_based': check_discount_on_cart,
    'customer_based': check_discount_on_cart,
    'combo_meal': check_combo_meal,
    'promo_code': check_discount_on_cart,
}


# ============================================================================
# OFFER SELECTION
# ============================================================================

def evaluate_offers(cart, customer_phone=None, promo_code=None, now=None):
    """
    All active offers, highest priority first, each paired with its eligibility.
    Promo-code offers only appear when their code is supplied; an unknown
    code raises InvalidPromoCode.
    """
    total = cart_total(cart)
    offers = Offer.objects.filter(is_active=True).exclude(offer_type='promo_code')
    results = [
        (offer, check_offer_eligibility(offer, cart, total, customer_phone, now))
        for offer in offers.prefetch_related('offer_items')
    ]
    if promo_code:
        results.append(validate_promo_code(promo_code, cart, customer_phone, now))
    results.sort(key=lambda pair: -pair[0].priority)
    return results


def best_offer(cart, customer_phone=None, promo_code=None, now=None):
    """The eligible offer worth the most, or (None, None)."""
    best = (None, None)
    for offer, eligibility in evaluate_offers(cart, customer_phone, promo_code, now):
        if not eligibility.is_eligible or eligibility.requires_user_action:
            continue
        if best[1] is None or eligibility.discount > best[1].discount:
            best = (offer, eligibility)
    return best


def validate_promo_code(code, cart, customer_phone=None, now=None):
    """Look a promo code up case-insensitively and check it against the cart."""
    code = (code or '').strip().upper()
    offer = Offer.objects.filter(
        offer_type='promo_code', is_active=True, promo_code__iexact=code
    ).first() if code else None
    if offer is None:
        raise InvalidPromoCode()
    return offer, check_offer_eligibility(offer, cart, None, customer_phone, now)


def apply_free_addon(offer, eligibility, menu_item_id):
    """Turn the guest's chosen add-on into a free line."""
    try:
        menu_item_id = int(menu_item_id)
    except (TypeError, ValueError):
        raise OfferNotEligible('Select a free add-on to apply this offer.')

    choice = next(
        (item for item in eligibility.available_free_items if item['id'] == menu_item_id),
        None
    )
    if choice is None:
        raise OfferNotEligible('Selected add-on is not part of this offer.')

    menu_item = MenuItem.objects.get(id=menu_item_id)
    eligibility.free_items = [CartLine(
        menu_item_id=menu_item.id,
        name=menu_item.name,
        price=menu_item.price,
        quantity=1,
        category_id=menu_item.category_id,
        is_free=True,
        linked_offer_id=offer.id,
    )]
    eligibility.discount = round_rupees(menu_item.price)
    eligibility.requires_user_action = False
    return eligibility


# ============================================================================
# ADMINISTRATION
# ============================================================================

def validate_offer_definition(offer_type, data, items, free_addon_items):
    """
    Check an offer form before saving. `data` is the flat benefits/conditions
    payload, `items` the qualifying/buy/get selections. Returns an error
    message or None.
    """
    if offer_type in ITEM_BASED_TYPES and offer_type != 'cart_threshold_item' and not items:
        return 'Please select at least one menu item or category for this offer type'

    if offer_type == 'item_free_addon' and not free_addon_items:
        return 'Please select free add-on items (items that customer can choose for free)'

    if offer_type == 'item_buy_get_free':
        has_buy = any(item.get('item_type') == 'buy' for item in items)
        has_get = any(item.get('item_type') == 'get_free' for item in items)
        if not has_buy or not has_get:
            return 'BOGO offers must have at least one "Buy" item and one "Get Free" item'

    if offer_type in ('promo_code', 'min_order_discount'):
        if not data.get('discount_percentage') and not data.get('discount_amount'):
            return 'This offer type must have either a discount percentage or flat discount amount'

    if offer_type == 'promo_code' and not data.get('promo_code'):
        return 'Please specify the promo code'

    if offer_type == 'cart_threshold_item':
        if not data.get('threshold_amount'):
            return 'Please specify the cart threshold amount'
        if not data.get('free_item_id'):
            return 'Please select the free item'

    if offer_type == 'combo_meal' and not data.get('combo_price'):
        return 'Please specify the combo price'

    return None


def record_offer_usage(offer, order, discount, free_items=None, session=None):
    """Log an offer application and bump its usage counter."""
    usage = OfferUsage.objects.create(
        offer=offer,
        order=order,
        session=session or order.session,
        customer_phone=order.customer_phone,
        customer_email=order.customer_email,
        discount_amount=discount,
        free_items=[line.to_dict() for line in free_items or []],
    )
    Offer.objects.filter(id=offer.id).update(usage_count=F('usage_count') + 1)
    logger.info(f"Offer {offer.id} ({offer.name}) used on order #{order.id}, discount ₹{discount}")
    return usage
