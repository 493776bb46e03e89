"""Shared fixtures: staff users per role, a small menu, tables and taxes."""

from decimal import Decimal

import pytest
from django.contrib.auth.models import Group, User
from rest_framework.test import APIClient

from ordering.models import (
    MenuCategory, MenuItem, RestaurantTable, TakeawayPoint, TaxSetting, create_user_roles,
)
from qrdine.celery import app as celery_app


@pytest.fixture(autouse=True)
def eager_celery():
    """Run queued tasks in-process."""
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True
    celery_app.conf.CELERY_TASK_EAGER_PROPAGATES = True
    yield
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = False
    celery_app.conf.CELERY_TASK_EAGER_PROPAGATES = False


@pytest.fixture
def roles(db):
    create_user_roles()


def make_staff(username, role):
    user = User.objects.create_user(username=username, password='password123')
    user.groups.add(Group.objects.get(name=role))
    return user


@pytest.fixture
def manager(roles):
    return make_staff('manager1', 'Manager')


@pytest.fixture
def cashier(roles):
    return make_staff('cashier1', 'Cashier')


@pytest.fixture
def waiter(roles):
    return make_staff('waiter1', 'Waiter')


@pytest.fixture
def kitchen(roles):
    return make_staff('kitchen1', 'Kitchen')


@pytest.fixture
def api_client():
    return APIClient()


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def manager_client(manager):
    return client_for(manager)


@pytest.fixture
def cashier_client(cashier):
    return client_for(cashier)


@pytest.fixture
def waiter_client(waiter):
    return client_for(waiter)


@pytest.fixture
def kitchen_client(kitchen):
    return client_for(kitchen)


@pytest.fixture
def categories(db):
    return {
        'starters': MenuCategory.objects.create(name='Starters', display_order=1),
        'mains': MenuCategory.objects.create(name='Main Course', display_order=2),
        'drinks': MenuCategory.objects.create(name='Drinks', display_order=3),
    }


@pytest.fixture
def menu(categories):
    """Prices chosen to keep the arithmetic readable."""
    data = [
        ('samosa', 'Samosa', 'starters', '80.00', True),
        ('paneer', 'Paneer Tikka', 'starters', '150.00', True),
        ('chicken', 'Butter Chicken', 'mains', '280.00', False),
        ('biryani', 'Veg Biryani', 'mains', '200.00', True),
        ('naan', 'Naan', 'mains', '50.00', True),
        ('chai', 'Masala Chai', 'drinks', '30.00', True),
        ('lassi', 'Mango Lassi', 'drinks', '80.00', True),
    ]
    return {
        key: MenuItem.objects.create(
            name=name, category=categories[category], price=Decimal(price), is_veg=is_veg
        )
        for key, name, category, price, is_veg in data
    }


@pytest.fixture
def table(db):
    return RestaurantTable.objects.create(table_number=1, table_code='T01', seating_capacity=4)


@pytest.fixture
def veg_table(db):
    return RestaurantTable.objects.create(table_number=2, table_code='T02', veg_only=True)


@pytest.fixture
def takeaway_point(db):
    return TakeawayPoint.objects.create(qr_code='COUNTER1', name='Main Counter')


@pytest.fixture
def taxes(db):
    return [
        TaxSetting.objects.create(name='CGST', rate=Decimal('2.50'), display_order=1),
        TaxSetting.objects.create(name='SGST', rate=Decimal('2.50'), display_order=2),
    ]
