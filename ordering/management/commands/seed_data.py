from datetime import time
from decimal import Decimal

from django.contrib.auth.models import User, Group
from django.core.management.base import BaseCommand
from django.db import transaction

from ordering import services
from ordering.models import (
    ComboMeal, ComboMealItem, MenuCategory, MenuItem, Offer, OfferItem,
    RestaurantSetting, RestaurantTable, TakeawayPoint, TaxSetting, create_user_roles,
)


class Command(BaseCommand):
    help = 'Seed database with demo staff, menu, tables, taxes and offers'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-orders',
            action='store_true',
            help='Also place a few sample orders and bills',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('Starting data seed...'))

        # Create user groups/roles
        self.stdout.write(self.style.HTTP_INFO('Creating user roles...'))
        create_user_roles()

        # Create test users
        self.stdout.write(self.style.HTTP_INFO('Creating test users...'))
        self._create_user('waiter1', 'waiter@restaurant.com', 'waiter123', 'Waiter')
        cashier = self._create_user('cashier1', 'cashier@restaurant.com', 'cashier123', 'Cashier')
        self._create_user('kitchen1', 'kitchen@restaurant.com', 'kitchen123', 'Kitchen')
        self._create_user('manager1', 'manager@restaurant.com', 'manager123', 'Manager')
        self.stdout.write(self.style.SUCCESS('✓ Created users: waiter1, cashier1, kitchen1, manager1'))

        # Create tables
        self.stdout.write(self.style.HTTP_INFO('Creating restaurant tables...'))
        tables_data = [
            (1, 2, False), (2, 2, False), (3, 4, False), (4, 4, False), (5, 6, False),
            (6, 6, False), (7, 8, False), (8, 8, True), (9, 4, True), (10, 2, False)
        ]
        tables = []
        for table_number, capacity, veg_only in tables_data:
            table, created = RestaurantTable.objects.get_or_create(
                table_number=table_number,
                defaults={
                    'table_code': f'T{table_number:02d}',
                    'seating_capacity': capacity,
                    'veg_only': veg_only,
                }
            )
            tables.append(table)
        TakeawayPoint.objects.get_or_create(qr_code='COUNTER1', defaults={'name': 'Main Counter'})
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(tables)} tables and 1 takeaway point'))

        # Create menu
        self.stdout.write(self.style.HTTP_INFO('Creating menu...'))
        menu = self._create_menu()
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(menu)} menu items'))

        # Taxes
        self.stdout.write(self.style.HTTP_INFO('Creating tax settings...'))
        TaxSetting.objects.get_or_create(name='CGST', defaults={'rate': Decimal('2.50'), 'display_order': 1})
        TaxSetting.objects.get_or_create(name='SGST', defaults={'rate': Decimal('2.50'), 'display_order': 2})
        RestaurantSetting.objects.get_or_create(key='tax_inclusive', defaults={'value': 'false'})
        self.stdout.write(self.style.SUCCESS('✓ Created CGST 2.5% and SGST 2.5%'))

        # Offers
        self.stdout.write(self.style.HTTP_INFO('Creating offers...'))
        offers = self._create_offers(menu)
        self.stdout.write(self.style.SUCCESS(f'✓ Created {len(offers)} offers'))

        if options['with_orders']:
            self.stdout.write(self.style.HTTP_INFO('Creating sample orders...'))
            self._create_sample_orders(tables, menu, cashier)
            self.stdout.write(self.style.SUCCESS('✓ Created sample orders and bills'))

        self.stdout.write(self.style.SUCCESS('\n=== SEED DATA COMPLETE ==='))
        self.stdout.write(self.style.SUCCESS('\nTest Users Created:'))
        self.stdout.write('  Waiter:  username=waiter1, password=waiter123')
        self.stdout.write('  Cashier: username=cashier1, password=cashier123')
        self.stdout.write('  Kitchen: username=kitchen1, password=kitchen123')
        self.stdout.write('  Manager: username=manager1, password=manager123')
        self.stdout.write(self.style.SUCCESS('\nGuest pages: /api/guest/t/T01/ and /api/guest/takeaway/COUNTER1/'))

    def _create_user(self, username, email, password, role):
        """Create a user and add to the role group."""
        user, created = User.objects.get_or_create(
            username=username,
            defaults={
                'email': email,
                'is_staff': False,
                'is_active': True,
            }
        )
        if created:
            user.set_password(password)
            user.save()
        user.groups.add(Group.objects.get(name=role))
        return user

    def _create_menu(self):
        menu_data = [
            ('Starters', [
                ('Samosa', 80, True, 'Crispy fried pastry with spiced filling'),
                ('Paneer Tikka', 150, True, 'Marinated cottage cheese cubes'),
                ('Chicken 65', 180, False, 'Spicy deep-fried chicken'),
            ]),
            ('Main Course', [
                ('Butter Chicken', 280, False, 'Creamy tomato-based chicken curry'),
                ('Paneer Tikka Masala', 250, True, 'Cottage cheese in creamy tomato sauce'),
                ('Veg Biryani', 220, True, 'Fragrant rice with vegetables'),
                ('Dal Makhani', 180, True, 'Creamy lentil curry'),
            ]),
            ('Breads', [
                ('Naan', 50, True, 'Traditional Indian bread'),
                ('Butter Roti', 30, True, 'Whole wheat bread with butter'),
            ]),
            ('Drinks', [
                ('Masala Chai', 30, True, 'Spiced milk tea'),
                ('Mango Lassi', 80, True, 'Sweet yogurt drink with mango'),
                ('Fresh Lime Soda', 60, True, 'Sweet or salted'),
                ('Water', 20, True, 'Bottled water'),
            ]),
            ('Desserts', [
                ('Gulab Jamun', 100, True, 'Milk solids in sugar syrup'),
                ('Ice Cream', 80, True, 'Vanilla ice cream'),
            ]),
        ]

        menu = {}
        for order, (category_name, items) in enumerate(menu_data):
            category, _ = MenuCategory.objects.get_or_create(
                name=category_name, defaults={'display_order': order}
            )
            for name, price, is_veg, description in items:
                item, _ = MenuItem.objects.get_or_create(
                    name=name,
                    defaults={
                        'category': category,
                        'price': Decimal(price),
                        'is_veg': is_veg,
                        'description': description,
                    }
                )
                menu[name] = item
        return menu

    def _offer(self, name, offer_type, **fields):
        offer, created = Offer.objects.get_or_create(
            name=name, defaults={'offer_type': offer_type, **fields}
        )
        return offer, created

    def _create_offers(self, menu):
        drinks = MenuCategory.objects.get(name='Drinks')
        offers = []

        offers.append(self._offer(
            'Weekend 10% Off', 'cart_percentage',
            benefits={'discount_percentage': 10, 'max_discount_amount': 150},
            valid_days=['saturday', 'sunday'],
        )[0])
        offers.append(self._offer(
            'Flat ₹50 Off', 'cart_flat_amount',
            benefits={'discount_amount': 50},
            conditions={'min_amount': 400},
        )[0])
        offers.append(self._offer(
            'Spend ₹1000 Save 15%', 'min_order_discount',
            benefits={'discount_percentage': 15},
            conditions={'threshold_amount': 1000},
            priority=5,
        )[0])
        offers.append(self._offer(
            'Free Dessert over ₹800', 'cart_threshold_item',
            benefits={'free_item_id': menu['Gulab Jamun'].id},
            conditions={'threshold_amount': 800},
        )[0])

        bogo, created = self._offer(
            'Buy 2 Naan Get 1 Free', 'item_buy_get_free',
            benefits={'buy_quantity': 2, 'get_quantity': 1, 'get_same_item': True},
        )
        if created:
            OfferItem.objects.create(offer=bogo, menu_item=menu['Naan'], item_type='buy')
            OfferItem.objects.create(offer=bogo, menu_item=menu['Naan'], item_type='get_free')
        offers.append(bogo)

        addon, created = self._offer(
            'Free Drink with Biryani', 'item_free_addon',
            benefits={'max_price': 60},
        )
        if created:
            OfferItem.objects.create(offer=addon, menu_item=menu['Veg Biryani'], item_type='qualifying')
            OfferItem.objects.create(offer=addon, menu_category=drinks, item_type='free_addon')
        offers.append(addon)

        starters, created = self._offer(
            '20% Off Starters', 'item_percentage',
            benefits={'discount_percentage': 20},
        )
        if created:
            OfferItem.objects.create(
                offer=starters, menu_category=MenuCategory.objects.get(name='Starters'), item_type='qualifying'
            )
        offers.append(starters)

        offers.append(self._offer(
            'Happy Hour 15%', 'time_based',
            benefits={'discount_percentage': 15},
            valid_hours_start=time(15, 0),
            valid_hours_end=time(18, 0),
        )[0])
        offers.append(self._offer(
            'Welcome 20% Off', 'customer_based',
            benefits={'discount_percentage': 20, 'max_discount_amount': 200},
            target_customer_type='first_time',
            priority=10,
        )[0])
        offers.append(self._offer(
            'Loyal Guest ₹100 Off', 'customer_based',
            benefits={'discount_amount': 100},
            target_customer_type='loyalty',
            min_orders_count=5,
        )[0])

        combo_offer, created = self._offer(
            'Paneer Combo', 'combo_meal',
            benefits={'combo_price': 299},
        )
        if created:
            combo = ComboMeal.objects.create(
                offer=combo_offer, name='Paneer Combo', combo_price=Decimal('299.00')
            )
            ComboMealItem.objects.create(combo=combo, menu_item=menu['Paneer Tikka Masala'])
            ComboMealItem.objects.create(combo=combo, menu_item=menu['Naan'], quantity=2)
            ComboMealItem.objects.create(combo=combo, menu_item=menu['Masala Chai'])
        offers.append(combo_offer)

        offers.append(self._offer(
            'Promo WELCOME50', 'promo_code',
            promo_code='WELCOME50',
            benefits={'discount_amount': 50},
            conditions={'min_amount': 300},
            usage_limit=500,
        )[0])
        return offers

    @transaction.atomic
    def _create_sample_orders(self, tables, menu, cashier):
        """Place orders through the ordering services so totals stay consistent."""
        services.get_or_create_guest('9876543210', 'Asha')

        order = services.place_order(
            items=[
                {'menu_item': menu['Samosa'].id, 'quantity': 2, 'special_notes': 'Extra crispy'},
                {'menu_item': menu['Mango Lassi'].id, 'quantity': 2},
            ],
            table=tables[0],
            customer_phone='9876543210',
            notes='No spices on samosa',
        )
        services.place_order(
            items=[
                {'menu_item': menu['Butter Chicken'].id, 'quantity': 1},
                {'menu_item': menu['Naan'].id, 'quantity': 3},
            ],
            table=tables[1],
            created_by=cashier,
            created_by_type='staff',
        )
        bill = services.generate_bill(session=order.session, user=cashier)
        services.settle_bill(bill, 'upi', cashier)

        services.place_order(
            items=[{'menu_item': menu['Veg Biryani'].id, 'quantity': 1}],
            takeaway_point=TakeawayPoint.objects.get(qr_code='COUNTER1'),
            customer_name='Walk-in',
            created_by=cashier,
            created_by_type='staff',
        )
