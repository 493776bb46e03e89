from django.contrib.auth.models import Group, User
from django.db import transaction
from rest_framework import serializers

from .kot import kot_age_minutes, kot_urgency
from .models import (
    STAFF_ROLES, Bill, BillItem, ComboMeal, ComboMealItem, MenuCategory, MenuItem,
    Notification, Offer, OfferItem, Order, OrderItem, RestaurantSetting,
    RestaurantTable, TableSession, TakeawayPoint, TaxSetting, user_role,
)
from .offers import validate_offer_definition


# ============================================================================
# USER SERIALIZERS
# ============================================================================

class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""
    groups = serializers.StringRelatedField(many=True, read_only=True)
    role = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name',
            'groups', 'role', 'is_active', 'last_login'
        ]
        read_only_fields = ['id', 'last_login']

    def get_role(self, obj):
        return user_role(obj)


class StaffSerializer(serializers.ModelSerializer):
    """Create and edit staff accounts; the role maps to a Django group."""
    role = serializers.ChoiceField(choices=STAFF_ROLES, write_only=True)
    password = serializers.CharField(write_only=True, required=False, min_length=8)
    current_role = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name',
            'role', 'current_role', 'password', 'is_active', 'last_login'
        ]
        read_only_fields = ['id', 'last_login']

    def get_current_role(self, obj):
        return user_role(obj)

    def validate(self, data):
        if self.instance is None and not data.get('password'):
            raise serializers.ValidationError({'password': 'Password is required for new staff.'})
        return data

    def _set_role(self, user, role):
        user.groups.remove(*Group.objects.filter(name__in=STAFF_ROLES))
        user.groups.add(Group.objects.get_or_create(name=role)[0])

    @transaction.atomic
    def create(self, validated_data):
        role = validated_data.pop('role')
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        self._set_role(user, role)
        return user

    @transaction.atomic
    def update(self, instance, validated_data):
        role = validated_data.pop('role', None)
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        if role:
            self._set_role(instance, role)
        return instance


# ============================================================================
# MENU SERIALIZERS
# ============================================================================

class MenuCategorySerializer(serializers.ModelSerializer):
    items_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = MenuCategory
        fields = ['id', 'name', 'description', 'display_order', 'is_active', 'items_count']
        read_only_fields = ['id']


class MenuItemSerializer(serializers.ModelSerializer):
    """Serializer for MenuItem model."""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = MenuItem
        fields = [
            'id', 'name', 'category', 'category_name', 'price', 'description',
            'is_veg', 'is_available', 'display_order', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Price must be greater than 0.")
        return value


# ============================================================================
# TABLE SERIALIZERS
# ============================================================================

class RestaurantTableSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = RestaurantTable
        fields = [
            'id', 'table_number', 'table_code', 'seating_capacity', 'veg_only',
            'is_active', 'status', 'status_display', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'status', 'created_at', 'updated_at']

    def validate_seating_capacity(self, value):
        if value < 1:
            raise serializers.ValidationError("Seating capacity must be at least 1.")
        return value


class TakeawayPointSerializer(serializers.ModelSerializer):
    class Meta:
        model = TakeawayPoint
        fields = ['id', 'qr_code', 'name', 'is_veg_only', 'is_active', 'created_at']
        read_only_fields = ['id', 'created_at']


# ============================================================================
# ORDER SERIALIZERS
# ============================================================================

class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'order', 'menu_item', 'menu_item_name', 'quantity', 'unit_price',
            'total_price', 'status', 'status_display', 'kot_number', 'kot_batch_id',
            'is_free', 'linked_offer', 'special_notes', 'created_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Simplified serializer for Order list view."""
    table_number = serializers.IntegerField(source='table.table_number', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items_count = serializers.SerializerMethodField(read_only=True)
    offer_name = serializers.CharField(source='applied_offer.name', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'order_type', 'table', 'table_number', 'session', 'takeaway_point',
            'customer_name', 'customer_phone', 'status', 'status_display', 'items_count',
            'subtotal', 'discount_amount', 'total_amount', 'applied_offer', 'offer_name',
            'created_by_type', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_items_count(self, obj):
        return obj.items.exclude(status='cancelled').count()


class OrderDetailSerializer(OrderListSerializer):
    """Detailed serializer for Order with items."""
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta(OrderListSerializer.Meta):
        fields = OrderListSerializer.Meta.fields + [
            'items', 'notes', 'customer_email', 'created_by',
            'cancelled_at', 'cancelled_reason', 'cancelled_by'
        ]
        read_only_fields = fields


class OrderLineSerializer(serializers.Serializer):
    menu_item = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    special_notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class OrderCreateSerializer(serializers.Serializer):
    """Payload for placing an order, by guests or staff."""
    items = OrderLineSerializer(many=True, allow_empty=False)
    table = serializers.PrimaryKeyRelatedField(queryset=RestaurantTable.objects.all(), required=False)
    takeaway_point = serializers.PrimaryKeyRelatedField(queryset=TakeawayPoint.objects.all(), required=False)
    customer_name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    offer = serializers.IntegerField(required=False, allow_null=True)
    promo_code = serializers.CharField(required=False, allow_blank=True, max_length=40)
    free_addon_item = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


# ============================================================================
# SESSION SERIALIZERS
# ============================================================================

class TableSessionSerializer(serializers.ModelSerializer):
    table_number = serializers.IntegerField(source='table.table_number', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    locked_offer_name = serializers.CharField(source='locked_offer.name', read_only=True, default=None)
    duration_minutes = serializers.SerializerMethodField(read_only=True)
    guest = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = TableSession
        fields = [
            'id', 'table', 'table_number', 'customer_phone', 'customer_email', 'guest',
            'status', 'status_display', 'session_started_at', 'session_ended_at',
            'duration_minutes', 'total_orders', 'total_amount', 'locked_offer',
            'locked_offer_name', 'payment_method', 'paid_at'
        ]
        read_only_fields = fields

    def get_duration_minutes(self, obj):
        return obj.duration_minutes()

    def get_guest(self, obj):
        from .models import GuestUser

        if not obj.customer_phone:
            return None
        guest = GuestUser.objects.filter(phone=obj.customer_phone).first()
        if guest is None:
            return None
        return {'name': guest.name, 'visit_count': guest.visit_count, 'total_orders': guest.total_orders}


class TableSessionDetailSerializer(TableSessionSerializer):
    orders = OrderDetailSerializer(many=True, read_only=True)
    locked_offer_data = serializers.JSONField(read_only=True)

    class Meta(TableSessionSerializer.Meta):
        fields = TableSessionSerializer.Meta.fields + ['orders', 'locked_offer_data']
        read_only_fields = fields


class CloseSessionSerializer(serializers.Serializer):
    force = serializers.BooleanField(required=False, default=False)


# ============================================================================
# KOT SERIALIZERS
# ============================================================================

class KitchenTicketSerializer(serializers.Serializer):
    batch_id = serializers.UUIDField()
    kot_number = serializers.IntegerField()
    order = serializers.IntegerField(source='order.id')
    order_type = serializers.CharField(source='order.order_type')
    table_number = serializers.SerializerMethodField()
    customer_name = serializers.CharField(source='order.customer_name')
    status = serializers.CharField()
    created_at = serializers.DateTimeField()
    age_minutes = serializers.SerializerMethodField()
    urgency = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True)

    def get_table_number(self, obj):
        return obj.order.table.table_number if obj.order.table_id else None

    def get_age_minutes(self, obj):
        return kot_age_minutes(obj.created_at)

    def get_urgency(self, obj):
        return kot_urgency(obj.status, kot_age_minutes(obj.created_at))


class KotStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['preparing', 'ready', 'served'])


# ============================================================================
# OFFER SERIALIZERS
# ============================================================================

class OfferItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True, default=None)
    menu_category_name = serializers.CharField(source='menu_category.name', read_only=True, default=None)

    class Meta:
        model = OfferItem
        fields = [
            'id', 'menu_item', 'menu_item_name', 'menu_category',
            'menu_category_name', 'item_type', 'quantity'
        ]
        read_only_fields = ['id']

    def validate(self, data):
        if not data.get('menu_item') and not data.get('menu_category'):
            raise serializers.ValidationError('Select a menu item or a category.')
        return data


class ComboMealItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source='menu_item.name', read_only=True)

    class Meta:
        model = ComboMealItem
        fields = ['id', 'menu_item', 'menu_item_name', 'quantity', 'is_required']
        read_only_fields = ['id']


class ComboMealSerializer(serializers.ModelSerializer):
    items = ComboMealItemSerializer(many=True)

    class Meta:
        model = ComboMeal
        fields = ['id', 'name', 'description', 'combo_price', 'is_customizable', 'items']
        read_only_fields = ['id']


class OfferSerializer(serializers.ModelSerializer):
    """Offer with its items and combo, written in one request."""
    offer_type_display = serializers.CharField(source='get_offer_type_display', read_only=True)
    offer_items = OfferItemSerializer(many=True, required=False)
    combo = ComboMealSerializer(required=False, allow_null=True)

    class Meta:
        model = Offer
        fields = [
            'id', 'name', 'description', 'offer_type', 'offer_type_display',
            'benefits', 'conditions', 'is_active', 'priority', 'promo_code',
            'start_date', 'end_date', 'valid_hours_start', 'valid_hours_end',
            'valid_days', 'target_customer_type', 'usage_limit', 'usage_count',
            'min_orders_count', 'offer_items', 'combo', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'usage_count', 'created_at', 'updated_at']

    def validate_valid_days(self, value):
        days = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']
        value = [str(day).lower() for day in value or []]
        unknown = [day for day in value if day not in days]
        if unknown:
            raise serializers.ValidationError(f"Unknown days: {', '.join(unknown)}")
        return value

    def validate_promo_code(self, value):
        if not value:
            return None
        value = value.strip().upper()
        existing = Offer.objects.filter(promo_code__iexact=value)
        if self.instance is not None:
            existing = existing.exclude(id=self.instance.id)
        if existing.exists():
            raise serializers.ValidationError('This promo code is already in use.')
        return value

    def validate(self, data):
        def current(name, default=None):
            if name in data:
                return data[name]
            return getattr(self.instance, name, default) if self.instance else default

        offer_type = current('offer_type')
        start, end = current('start_date'), current('end_date')
        if start and end and start > end:
            raise serializers.ValidationError({'end_date': 'End date must be after start date.'})

        if 'offer_items' in data:
            items = [dict(item) for item in data['offer_items']]
        elif self.instance is not None:
            items = list(self.instance.offer_items.values('item_type', 'menu_item', 'menu_category'))
        else:
            items = []
        main_items = [item for item in items if item.get('item_type') != 'free_addon']
        addon_items = [item for item in items if item.get('item_type') == 'free_addon']
        benefits = current('benefits', {}) or {}
        addon_items += benefits.get('free_addon_items') or []

        combo = data.get('combo') if 'combo' in data else getattr(self.instance, 'combo', None)
        combo_price = combo.get('combo_price') if isinstance(combo, dict) else getattr(combo, 'combo_price', None)
        if offer_type == 'combo_meal' and combo is not None:
            combo_items = combo.get('items') if isinstance(combo, dict) else list(combo.items.values())
            main_items = main_items or combo_items

        flat = {}
        flat.update(current('conditions', {}) or {})
        flat.update(benefits)
        flat['promo_code'] = current('promo_code')
        flat['combo_price'] = combo_price
        error = validate_offer_definition(offer_type, flat, main_items, addon_items)
        if error:
            raise serializers.ValidationError(error)
        return data

    def _save_children(self, offer, offer_items, combo):
        if offer_items is not None:
            offer.offer_items.all().delete()
            OfferItem.objects.bulk_create([OfferItem(offer=offer, **item) for item in offer_items])
        if combo is not None:
            ComboMeal.objects.filter(offer=offer).delete()
            combo_items = combo.pop('items', [])
            combo_meal = ComboMeal.objects.create(offer=offer, **combo)
            ComboMealItem.objects.bulk_create([
                ComboMealItem(combo=combo_meal, **item) for item in combo_items
            ])

    @transaction.atomic
    def create(self, validated_data):
        offer_items = validated_data.pop('offer_items', [])
        combo = validated_data.pop('combo', None)
        offer = Offer.objects.create(**validated_data)
        self._save_children(offer, offer_items, combo)
        return offer

    @transaction.atomic
    def update(self, instance, validated_data):
        offer_items = validated_data.pop('offer_items', None)
        combo = validated_data.pop('combo', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        self._save_children(instance, offer_items, combo)
        return instance


class GuestOfferSerializer(serializers.ModelSerializer):
    """What guests see about an offer; promo codes stay hidden."""
    offer_type_display = serializers.CharField(source='get_offer_type_display', read_only=True)

    class Meta:
        model = Offer
        fields = [
            'id', 'name', 'description', 'offer_type', 'offer_type_display',
            'benefits', 'conditions', 'valid_hours_start', 'valid_hours_end',
            'valid_days', 'target_customer_type', 'end_date'
        ]
        read_only_fields = fields


class CartSerializer(serializers.Serializer):
    """Cart sent to preview offers."""
    items = OrderLineSerializer(many=True, allow_empty=False)
    customer_phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    promo_code = serializers.CharField(required=False, allow_blank=True, max_length=40)


# ============================================================================
# TAX & SETTINGS SERIALIZERS
# ============================================================================

class TaxSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaxSetting
        fields = ['id', 'name', 'rate', 'is_active', 'display_order', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_rate(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Rate must be between 0 and 100.")
        return value


class RestaurantSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = RestaurantSetting
        fields = ['id', 'key', 'value', 'updated_at']
        read_only_fields = ['id', 'updated_at']


# ============================================================================
# BILL SERIALIZERS
# ============================================================================

class BillItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = BillItem
        fields = [
            'id', 'order_item', 'item_name', 'quantity', 'unit_price',
            'total_price', 'is_manual', 'is_cancelled'
        ]
        read_only_fields = fields


class BillSerializer(serializers.ModelSerializer):
    """Serializer for Bill model."""
    table_number = serializers.SerializerMethodField(read_only=True)
    payment_status_display = serializers.CharField(source='get_payment_status_display', read_only=True)
    offer_name = serializers.CharField(source='applied_offer.name', read_only=True, default=None)
    is_takeaway = serializers.BooleanField(read_only=True)

    class Meta:
        model = Bill
        fields = [
            'id', 'bill_number', 'session', 'order', 'table_number', 'is_takeaway',
            'subtotal', 'discount_percentage', 'discount_amount', 'total_tax_amount',
            'subtotal_with_tax', 'final_amount', 'tax_inclusive', 'applied_offer',
            'offer_name', 'payment_method', 'payment_status', 'payment_status_display',
            'generated_at', 'paid_at', 'created_at'
        ]
        read_only_fields = fields

    def get_table_number(self, obj):
        table = obj.table
        return table.table_number if table else None


class BillDetailSerializer(BillSerializer):
    """Detailed serializer for Bill with its lines and tax breakdown."""
    items = BillItemSerializer(many=True, read_only=True)
    tax_breakdown = serializers.JSONField(read_only=True)
    generated_by = UserSerializer(read_only=True)
    payment_received_by = UserSerializer(read_only=True)

    class Meta(BillSerializer.Meta):
        fields = BillSerializer.Meta.fields + [
            'items', 'tax_breakdown', 'generated_by', 'payment_received_by'
        ]
        read_only_fields = fields


class ManualBillItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0)


class BillGenerateSerializer(serializers.Serializer):
    session = serializers.PrimaryKeyRelatedField(queryset=TableSession.objects.all(), required=False)
    order = serializers.PrimaryKeyRelatedField(queryset=Order.objects.all(), required=False)
    discount_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, allow_null=True
    )
    manual_items = ManualBillItemSerializer(many=True, required=False)

    def validate(self, data):
        if bool(data.get('session')) == bool(data.get('order')):
            raise serializers.ValidationError('Provide either a session or a takeaway order.')
        return data


class PaymentSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=Bill.PAYMENT_METHOD_CHOICES)


# ============================================================================
# DASHBOARD SERIALIZERS
# ============================================================================

class DashboardTableSerializer(serializers.ModelSerializer):
    """Tables with their live session and bill state."""
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    session = serializers.SerializerMethodField(read_only=True)
    bill_status = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = RestaurantTable
        fields = [
            'id', 'table_number', 'table_code', 'seating_capacity', 'veg_only',
            'status', 'status_display', 'session', 'bill_status', 'updated_at'
        ]

    def get_session(self, obj):
        session = obj.active_session()
        if session is None:
            return None
        return TableSessionSerializer(session).data

    def get_bill_status(self, obj):
        bill = Bill.objects.filter(session__table=obj, payment_status='pending').first()
        if bill is None:
            return None
        return {
            'id': bill.id,
            'bill_number': bill.bill_number,
            'status': bill.payment_status,
            'final_amount': str(bill.final_amount),
        }


# ============================================================================
# NOTIFICATION SERIALIZERS
# ============================================================================

class NotificationSerializer(serializers.ModelSerializer):
    notification_type_display = serializers.CharField(source='get_notification_type_display', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'notification_type_display', 'title', 'message',
            'table_id', 'order_id', 'bill_id', 'is_read', 'created_at', 'read_at'
        ]
        read_only_fields = fields


# ============================================================================
# GUEST SERIALIZERS
# ============================================================================

class OTPSendSerializer(serializers.Serializer):
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    email = serializers.EmailField(required=False, allow_blank=True)

    def validate(self, data):
        if not data.get('phone') and not data.get('email'):
            raise serializers.ValidationError('Phone number or email is required.')
        return data


class OTPVerifySerializer(OTPSendSerializer):
    otp = serializers.CharField(max_length=10)
    name = serializers.CharField(required=False, allow_blank=True, max_length=100)


class GuestMenuCategorySerializer(serializers.ModelSerializer):
    items = serializers.SerializerMethodField()

    class Meta:
        model = MenuCategory
        fields = ['id', 'name', 'description', 'items']

    def get_items(self, obj):
        items = obj.items.filter(is_available=True)
        if self.context.get('veg_only'):
            items = items.filter(is_veg=True)
        return MenuItemSerializer(items, many=True).data
