from django.contrib import admin
from .models import (
    Bill, BillItem, ComboMeal, ComboMealItem, GuestUser, MenuCategory, MenuItem,
    Notification, Offer, OfferItem, OfferUsage, Order, OrderItem, RestaurantSetting,
    RestaurantTable, TableSession, TakeawayPoint, TaxSetting,
)


@admin.register(MenuCategory)
class MenuCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name']


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'is_veg', 'is_available', 'updated_at']
    list_filter = ['category', 'is_veg', 'is_available']
    search_fields = ['name', 'description']
    readonly_fields = ['created_at', 'updated_at']
    fieldsets = (
        ('Menu Item Details', {
            'fields': ('name', 'category', 'price', 'description', 'is_veg', 'is_available', 'display_order')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(RestaurantTable)
class RestaurantTableAdmin(admin.ModelAdmin):
    list_display = ['table_number', 'table_code', 'seating_capacity', 'veg_only', 'status', 'is_active']
    list_filter = ['status', 'veg_only', 'is_active']
    search_fields = ['table_number', 'table_code']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(TakeawayPoint)
class TakeawayPointAdmin(admin.ModelAdmin):
    list_display = ['name', 'qr_code', 'is_veg_only', 'is_active']


@admin.register(GuestUser)
class GuestUserAdmin(admin.ModelAdmin):
    list_display = ['phone', 'name', 'visit_count', 'total_orders', 'total_spent', 'last_login_at']
    search_fields = ['phone', 'name', 'email']
    readonly_fields = ['created_at', 'updated_at', 'first_visit_at', 'last_login_at']


class OfferItemInline(admin.TabularInline):
    model = OfferItem
    extra = 0


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ['name', 'offer_type', 'promo_code', 'priority', 'usage_count', 'is_active']
    list_filter = ['offer_type', 'is_active', 'target_customer_type']
    search_fields = ['name', 'promo_code']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']
    inlines = [OfferItemInline]
    fieldsets = (
        ('Offer', {
            'fields': ('name', 'description', 'offer_type', 'promo_code', 'priority', 'is_active')
        }),
        ('Rules', {
            'fields': ('benefits', 'conditions', 'target_customer_type', 'min_orders_count')
        }),
        ('Validity', {
            'fields': ('start_date', 'end_date', 'valid_hours_start', 'valid_hours_end', 'valid_days')
        }),
        ('Usage', {
            'fields': ('usage_limit', 'usage_count', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


class ComboMealItemInline(admin.TabularInline):
    model = ComboMealItem
    extra = 0


@admin.register(ComboMeal)
class ComboMealAdmin(admin.ModelAdmin):
    list_display = ['name', 'offer', 'combo_price']
    inlines = [ComboMealItemInline]


@admin.register(OfferUsage)
class OfferUsageAdmin(admin.ModelAdmin):
    list_display = ['offer', 'order', 'customer_phone', 'discount_amount', 'used_at']
    list_filter = ['offer']
    readonly_fields = ['used_at']


@admin.register(TableSession)
class TableSessionAdmin(admin.ModelAdmin):
    list_display = ['id', 'table', 'status', 'customer_phone', 'total_orders', 'total_amount', 'session_started_at']
    list_filter = ['status', 'session_started_at']
    search_fields = ['table__table_number', 'customer_phone']
    readonly_fields = ['created_at', 'updated_at', 'locked_offer_data']


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['kot_number', 'kot_batch_id', 'created_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'order_type', 'table', 'status', 'total_amount', 'created_by_type', 'created_at', 'items_count']
    list_filter = ['status', 'order_type', 'created_at']
    search_fields = ['table__table_number', 'customer_phone', 'customer_name', 'notes']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [OrderItemInline]

    def items_count(self, obj):
        return obj.items.count()
    items_count.short_description = 'Items'


@admin.register(TaxSetting)
class TaxSettingAdmin(admin.ModelAdmin):
    list_display = ['name', 'rate', 'is_active', 'display_order']


@admin.register(RestaurantSetting)
class RestaurantSettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'updated_at']
    search_fields = ['key']


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ['bill_number', 'table', 'subtotal', 'total_tax_amount', 'final_amount', 'payment_status', 'generated_at']
    list_filter = ['payment_status', 'payment_method', 'generated_at', 'paid_at']
    search_fields = ['bill_number', 'session__table__table_number']
    readonly_fields = ['created_at', 'updated_at', 'paid_at', 'tax_breakdown']
    inlines = [BillItemInline]
    fieldsets = (
        ('Bill Details', {
            'fields': ('bill_number', 'session', 'order', 'applied_offer', 'payment_status', 'payment_method')
        }),
        ('Amount Calculation', {
            'fields': (
                'subtotal', 'discount_percentage', 'discount_amount', 'tax_breakdown',
                'total_tax_amount', 'subtotal_with_tax', 'final_amount', 'tax_inclusive'
            )
        }),
        ('Timestamps', {
            'fields': ('generated_at', 'created_at', 'updated_at', 'paid_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'notification_type', 'is_read', 'created_at']
    list_filter = ['notification_type', 'is_read']
