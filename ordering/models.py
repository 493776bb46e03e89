import uuid
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

ZERO = Decimal('0.00')

# ============================================================================
# MENU
# ============================================================================

class MenuCategory(models.Model):
    """Menu section shown as a tab on the guest menu."""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    display_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'name']
        verbose_name_plural = 'Menu categories'

    def __str__(self):
        return self.name


class MenuItem(models.Model):
    """Menu items available in the restaurant."""
    category = models.ForeignKey(
        MenuCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='items'
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    is_veg = models.BooleanField(default=True)
    is_available = models.BooleanField(default=True)
    display_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['category__display_order', 'display_order', 'name']

    def __str__(self):
        return f"{self.name} - ₹{self.price}"


# ============================================================================
# TABLES & TAKEAWAY POINTS
# ============================================================================

class RestaurantTable(models.Model):
    """
    Dine-in table reachable through its QR code.
    Status flow: Available -> Occupied -> Bill Requested -> Available
    """
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('occupied', 'Occupied'),
        ('bill_requested', 'Bill Requested'),
    ]

    table_number = models.IntegerField(unique=True)
    table_code = models.CharField(max_length=32, unique=True)
    seating_capacity = models.IntegerField(default=4, validators=[MinValueValidator(1)])
    veg_only = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='available'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['table_number']

    def __str__(self):
        return f"Table {self.table_number} ({self.get_status_display()})"

    def mark_occupied(self):
        """Mark table as occupied when a session starts."""
        if self.status == 'available':
            self.status = 'occupied'
            self.save(update_fields=['status', 'updated_at'])

    def request_bill(self):
        self.status = 'bill_requested'
        self.save(update_fields=['status', 'updated_at'])

    def reset_to_available(self):
        """Reset table to available after payment."""
        self.status = 'available'
        self.save(update_fields=['status', 'updated_at'])

    def active_session(self):
        return self.sessions.filter(status='active').first()


class TakeawayPoint(models.Model):
    """Counter QR code used for takeaway ordering."""
    qr_code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=100)
    is_veg_only = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"Takeaway {self.name}"


# ============================================================================
# GUESTS
# ============================================================================

class GuestUser(models.Model):
    """Guest identified by a verified phone number."""
    phone = models.CharField(max_length=15, unique=True)
    name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    visit_count = models.IntegerField(default=0)
    total_orders = models.IntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    is_active = models.BooleanField(default=True)
    last_table_code = models.CharField(max_length=32, blank=True)
    first_visit_at = models.DateTimeField(default=timezone.now)
    last_login_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-last_login_at']

    def __str__(self):
        return self.name or self.phone


class GuestOTP(models.Model):
    """One-time password sent to a guest phone or email."""
    CHANNEL_CHOICES = [
        ('phone', 'Phone'),
        ('email', 'Email'),
    ]

    destination = models.CharField(max_length=254, db_index=True)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)
    code = models.CharField(max_length=10)
    attempts = models.IntegerField(default=0)
    is_consumed = models.BooleanField(default=False)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"OTP for {self.destination}"

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at


# ============================================================================
# OFFERS
# ============================================================================

class Offer(models.Model):
    """
    Promotional offer. What the guest gets lives in `benefits`,
    what the cart must satisfy lives in `conditions`.
    """
    OFFER_TYPE_CHOICES = [
        ('cart_percentage', 'Cart Percentage Discount'),
        ('cart_flat_amount', 'Cart Flat Discount'),
        ('min_order_discount', 'Minimum Order Discount'),
        ('cart_threshold_item', 'Free Item Above Threshold'),
        ('item_buy_get_free', 'Buy X Get Y Free'),
        ('item_free_addon', 'Free Add-on'),
        ('item_percentage', 'Item Percentage Discount'),
        ('time_based', 'Happy Hour'),
        ('customer_based', 'Customer Discount'),
        ('combo_meal', 'Combo Meal'),
        ('promo_code', 'Promo Code'),
    ]
    CUSTOMER_TYPE_CHOICES = [
        ('all', 'All Customers'),
        ('first_time', 'First-time Customers'),
        ('returning', 'Returning Customers'),
        ('loyalty', 'Loyal Customers'),
    ]

    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    offer_type = models.CharField(max_length=30, choices=OFFER_TYPE_CHOICES)
    benefits = models.JSONField(default=dict, blank=True)
    conditions = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    priority = models.IntegerField(default=0)
    promo_code = models.CharField(max_length=40, unique=True, null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    valid_hours_start = models.TimeField(null=True, blank=True)
    valid_hours_end = models.TimeField(null=True, blank=True)
    valid_days = models.JSONField(default=list, blank=True)
    target_customer_type = models.CharField(
        max_length=20,
        choices=CUSTOMER_TYPE_CHOICES,
        default='all'
    )
    usage_limit = models.IntegerField(null=True, blank=True)
    usage_count = models.IntegerField(default=0)
    min_orders_count = models.IntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-priority', 'name']

    def __str__(self):
        return f"{self.name} ({self.get_offer_type_display()})"

    def save(self, *args, **kwargs):
        if self.promo_code:
            self.promo_code = self.promo_code.strip().upper()
        else:
            self.promo_code = None
        super().save(*args, **kwargs)

    def snapshot(self):
        """Frozen copy stored on a session when the offer gets locked."""
        return {
            'offer_id': self.id,
            'name': self.name,
            'offer_type': self.offer_type,
            'benefits': self.benefits,
            'conditions': self.conditions,
        }


class OfferItem(models.Model):
    """Menu item or whole category an offer refers to."""
    ITEM_TYPE_CHOICES = [
        ('buy', 'Buy'),
        ('get_free', 'Get Free'),
        ('qualifying', 'Qualifying'),
        ('free_addon', 'Free Add-on'),
    ]

    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name='offer_items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, null=True, blank=True)
    menu_category = models.ForeignKey(MenuCategory, on_delete=models.CASCADE, null=True, blank=True)
    item_type = models.CharField(max_length=20, choices=ITEM_TYPE_CHOICES, default='qualifying')
    quantity = models.IntegerField(default=1, validators=[MinValueValidator(1)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(menu_item__isnull=False) | Q(menu_category__isnull=False),
                name='offer_item_targets_item_or_category',
            ),
        ]

    def __str__(self):
        target = self.menu_item or self.menu_category
        return f"{self.get_item_type_display()}: {target}"


class ComboMeal(models.Model):
    offer = models.OneToOneField(Offer, on_delete=models.CASCADE, related_name='combo')
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)
    combo_price = models.DecimalField(max_digits=8, decimal_places=2)
    is_customizable = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.name} - ₹{self.combo_price}"


class ComboMealItem(models.Model):
    combo = models.ForeignKey(ComboMeal, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE)
    quantity = models.IntegerField(default=1, validators=[MinValueValidator(1)])
    is_required = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.menu_item.name} x{self.quantity}"


# ============================================================================
# SESSIONS & ORDERS
# ============================================================================

class TableSession(models.Model):
    """
    A seating at a table, from the first order until payment.
    Only one active session may exist per table.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    table = models.ForeignKey(RestaurantTable, on_delete=models.CASCADE, related_name='sessions')
    customer_phone = models.CharField(max_length=15, blank=True)
    customer_email = models.EmailField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    session_started_at = models.DateTimeField(default=timezone.now)
    session_ended_at = models.DateTimeField(null=True, blank=True)
    total_orders = models.IntegerField(default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    locked_offer = models.ForeignKey(
        Offer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='locked_sessions'
    )
    locked_offer_data = models.JSONField(null=True, blank=True)
    payment_method = models.CharField(max_length=10, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_received_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_sessions'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-session_started_at']
        constraints = [
            models.UniqueConstraint(
                fields=['table'],
                condition=Q(status='active'),
                name='one_active_session_per_table',
            ),
        ]

    def __str__(self):
        return f"Session #{self.id} - Table {self.table.table_number}"

    def duration_minutes(self, now=None):
        end = self.session_ended_at or now or timezone.now()
        return int((end - self.session_started_at).total_seconds() // 60)


class Order(models.Model):
    """Order placed by a guest or created by staff."""
    ORDER_TYPE_CHOICES = [
        ('dine-in', 'Dine In'),
        ('takeaway', 'Takeaway'),
    ]
    STATUS_CHOICES = [
        ('placed', 'Placed'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
        ('served', 'Served'),
        ('paid', 'Paid'),
        ('cancelled', 'Cancelled'),
    ]
    CREATED_BY_CHOICES = [
        ('guest', 'Guest'),
        ('staff', 'Staff'),
        ('admin', 'Admin'),
    ]

    order_type = models.CharField(max_length=10, choices=ORDER_TYPE_CHOICES, default='dine-in')
    table = models.ForeignKey(
        RestaurantTable,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    session = models.ForeignKey(
        TableSession,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    takeaway_point = models.ForeignKey(
        TakeawayPoint,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    guest = models.ForeignKey(
        GuestUser,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    customer_name = models.CharField(max_length=100, blank=True)
    customer_phone = models.CharField(max_length=15, blank=True)
    customer_email = models.EmailField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='placed')
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    applied_offer = models.ForeignKey(
        Offer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    notes = models.TextField(blank=True)
    created_by_type = models.CharField(max_length=10, choices=CREATED_BY_CHOICES, default='guest')
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_orders'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_orders'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        if self.table_id:
            return f"Order #{self.id} - Table {self.table.table_number}"
        return f"Order #{self.id} - Takeaway"

    def refresh_status_from_items(self):
        """Order status follows the least advanced of its kitchen tickets."""
        from .kot import calculate_kot_status

        if self.status in ('paid', 'cancelled'):
            return self.status
        statuses = list(self.items.exclude(status='cancelled').values_list('status', flat=True))
        self.status = calculate_kot_status(statuses)
        self.save(update_fields=['status', 'updated_at'])
        return self.status


class OrderItem(models.Model):
    """Individual item in an order, tracked through the kitchen by KOT."""
    STATUS_CHOICES = [
        ('placed', 'Placed'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
        ('served', 'Served'),
        ('cancelled', 'Cancelled'),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=8, decimal_places=2)
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='placed')
    kot_number = models.IntegerField(null=True, blank=True, db_index=True)
    kot_batch_id = models.UUIDField(null=True, blank=True, db_index=True)
    is_free = models.BooleanField(default=False)
    linked_offer = models.ForeignKey(Offer, on_delete=models.SET_NULL, null=True, blank=True)
    special_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['kot_number', 'id']

    def __str__(self):
        suffix = ' (free)' if self.is_free else ''
        return f"{self.menu_item.name} x{self.quantity}{suffix}"


class OfferUsage(models.Model):
    """One application of an offer to an order."""
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name='usages')
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='offer_usages')
    session = models.ForeignKey(
        TableSession,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='offer_usages'
    )
    customer_phone = models.CharField(max_length=15, blank=True)
    customer_email = models.EmailField(blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    free_items = models.JSONField(default=list, blank=True)
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-used_at']

    def __str__(self):
        return f"{self.offer.name} on order #{self.order_id}"


# ============================================================================
# TAXES & SETTINGS
# ============================================================================

class TaxSetting(models.Model):
    """Tax line applied to every bill (CGST, SGST, service charge...)."""
    name = models.CharField(max_length=50)
    rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(ZERO), MaxValueValidator(Decimal('100'))]
    )
    is_active = models.BooleanField(default=True)
    display_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'name']

    def __str__(self):
        return f"{self.name} @ {self.rate}%"


class RestaurantSetting(models.Model):
    """Key/value settings editable from the back office."""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key, default=None):
        setting = cls.objects.filter(key=key).first()
        return setting.value if setting else default

    @classmethod
    def is_tax_inclusive(cls):
        return cls.get_value('tax_inclusive', 'false').strip().lower() == 'true'


# ============================================================================
# BILLING MANAGEMENT
# ============================================================================

class Bill(models.Model):
    """Bill for a table session (dine-in) or a single takeaway order."""
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending Payment'),
        ('paid', 'Paid'),
        ('cancelled', 'Cancelled'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('card', 'Card'),
    ]

    bill_number = models.CharField(max_length=30, unique=True)
    session = models.ForeignKey(
        TableSession,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bills'
    )
    order = models.ForeignKey(
        Order,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bills'
    )
    applied_offer = models.ForeignKey(
        Offer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bills'
    )

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount_percentage = models.DecimalField(max_digits=6, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax_breakdown = models.JSONField(default=list, blank=True)
    total_tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    subtotal_with_tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax_inclusive = models.BooleanField(default=False)

    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, blank=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default='pending'
    )
    generated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='generated_bills'
    )
    payment_received_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_bills'
    )
    generated_at = models.DateTimeField(default=timezone.now)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['session'],
                condition=Q(payment_status='pending'),
                name='one_pending_bill_per_session',
            ),
        ]

    def __str__(self):
        return f"{self.bill_number} - ₹{self.final_amount}"

    @property
    def table(self):
        if self.session_id:
            return self.session.table
        return None

    @property
    def is_takeaway(self):
        return self.session_id is None


class BillItem(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='items')
    order_item = models.ForeignKey(OrderItem, on_delete=models.SET_NULL, null=True, blank=True)
    item_name = models.CharField(max_length=150)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=8, decimal_places=2)
    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    is_manual = models.BooleanField(default=False)
    is_cancelled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.item_name} x{self.quantity}"


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class Notification(models.Model):
    """In-app notifications for staff users."""
    NOTIFICATION_TYPES = [
        ('order_placed', 'Order Placed'),
        ('kot_ready', 'KOT Ready'),
        ('bill_pending', 'Bill Pending'),
        ('session_closed', 'Session Auto-Closed'),
        ('order_cancelled', 'Order Cancelled'),
        ('payment_received', 'Payment Received'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    notification_type = models.CharField(max_length=50, choices=NOTIFICATION_TYPES)
    title = models.CharField(max_length=200)
    message = models.TextField()

    # Related objects
    table_id = models.IntegerField(null=True, blank=True)
    order_id = models.IntegerField(null=True, blank=True)
    bill_id = models.IntegerField(null=True, blank=True)

    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} - {self.user.username}"

    def mark_as_read(self):
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=['is_read', 'read_at'])


# ============================================================================
# USER ROLES (using Django Groups)
# ============================================================================

STAFF_ROLES = ['Waiter', 'Cashier', 'Kitchen', 'Manager']

ROLE_PERMISSIONS = {
    'Waiter': [
        'add_order', 'change_order', 'view_order',
        'add_orderitem', 'change_orderitem', 'view_orderitem',
        'view_restauranttable', 'view_tablesession', 'view_menuitem', 'view_bill',
    ],
    'Cashier': [
        'add_bill', 'change_bill', 'view_bill',
        'view_order', 'view_orderitem', 'view_tablesession',
        'view_restauranttable', 'view_menuitem',
    ],
    'Kitchen': [
        'view_order', 'view_orderitem', 'change_orderitem', 'view_menuitem',
    ],
}


def create_user_roles():
    """Create default staff groups and attach their model permissions."""
    from django.contrib.auth.models import Group, Permission

    for role_name in STAFF_ROLES:
        group, _ = Group.objects.get_or_create(name=role_name)
        if role_name == 'Manager':
            perms = Permission.objects.filter(content_type__app_label__in=['ordering', 'auth'])
        else:
            perms = Permission.objects.filter(
                content_type__app_label='ordering',
                codename__in=ROLE_PERMISSIONS[role_name]
            )
        group.permissions.set(perms)


def user_role(user):
    """Role name for a staff user; superusers act as super admins."""
    if user.is_superuser:
        return 'super_admin'
    group = user.groups.filter(name__in=STAFF_ROLES).first()
    return group.name if group else None


def new_batch_id():
    return uuid.uuid4()
