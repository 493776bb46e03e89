"""Tests for the guest QR ordering flow."""

from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone
from rest_framework.test import APIClient

from ordering.models import GuestOTP, GuestUser, Offer, Order


def line(item, quantity=1):
    return {'menu_item': item.id, 'quantity': quantity}


def wrong(code):
    return ('2' if code[0] == '1' else '1') + code[1:]


def login(client, phone='9876543210', name='Asha'):
    client.post('/api/guest/otp/send/', {'phone': phone}, format='json')
    otp = GuestOTP.objects.filter(destination=phone, is_consumed=False).first()
    return client.post('/api/guest/otp/verify/', {'phone': phone, 'otp': otp.code, 'name': name}, format='json')


@pytest.mark.django_db
class TestOTP:
    """Tests for OTP login."""

    def test_send_otp(self, api_client):
        response = api_client.post('/api/guest/otp/send/', {'phone': '+91 98765-43210'}, format='json')
        assert response.status_code == 200
        assert response.data['channel'] == 'phone'
        assert response.data['destination'] == '9876543210'
        otp = GuestOTP.objects.get(destination='9876543210')
        assert len(otp.code) == 6

    def test_phone_or_email_required(self, api_client):
        response = api_client.post('/api/guest/otp/send/', {}, format='json')
        assert response.status_code == 400

    def test_short_phone_rejected(self, api_client):
        response = api_client.post('/api/guest/otp/send/', {'phone': '12345'}, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Enter a valid 10-digit phone number.'

    def test_verify_creates_guest(self, api_client):
        response = login(api_client)
        assert response.status_code == 200
        assert response.data['guest'] == {'phone': '9876543210', 'email': '', 'name': 'Asha'}
        assert response.data['visit_count'] == 0
        guest = GuestUser.objects.get(phone='9876543210')
        assert guest.name == 'Asha'
        assert guest.last_login_at is not None

    def test_wrong_code(self, api_client):
        api_client.post('/api/guest/otp/send/', {'phone': '9876543210'}, format='json')
        otp = GuestOTP.objects.get(destination='9876543210')
        response = api_client.post(
            '/api/guest/otp/verify/', {'phone': '9876543210', 'otp': wrong(otp.code)}, format='json'
        )
        assert response.status_code == 400
        assert response.data['error'] == 'Invalid OTP'
        otp.refresh_from_db()
        assert otp.attempts == 1

    def test_attempts_are_capped(self, api_client):
        api_client.post('/api/guest/otp/send/', {'phone': '9876543210'}, format='json')
        otp = GuestOTP.objects.get(destination='9876543210')
        for _ in range(5):
            api_client.post('/api/guest/otp/verify/', {'phone': '9876543210', 'otp': wrong(otp.code)}, format='json')

        response = api_client.post('/api/guest/otp/verify/', {'phone': '9876543210', 'otp': otp.code}, format='json')
        assert response.status_code == 400
        assert response.data['error'] == 'Too many attempts. Please request a new OTP.'

    def test_expired_code(self, api_client):
        api_client.post('/api/guest/otp/send/', {'phone': '9876543210'}, format='json')
        otp = GuestOTP.objects.get(destination='9876543210')
        GuestOTP.objects.filter(id=otp.id).update(expires_at=timezone.now() - timedelta(minutes=1))

        response = api_client.post('/api/guest/otp/verify/', {'phone': '9876543210', 'otp': otp.code}, format='json')
        assert response.data['error'] == 'OTP expired. Please request a new one.'

    def test_resend_retires_old_code(self, api_client):
        api_client.post('/api/guest/otp/send/', {'phone': '9876543210'}, format='json')
        old = GuestOTP.objects.get(destination='9876543210')
        api_client.post('/api/guest/otp/resend/', {'phone': '9876543210'}, format='json')

        old.refresh_from_db()
        assert old.is_consumed
        assert GuestOTP.objects.filter(destination='9876543210', is_consumed=False).count() == 1

    def test_code_works_once(self, api_client):
        api_client.post('/api/guest/otp/send/', {'phone': '9876543210'}, format='json')
        otp = GuestOTP.objects.get(destination='9876543210')
        payload = {'phone': '9876543210', 'otp': otp.code}
        assert api_client.post('/api/guest/otp/verify/', payload, format='json').status_code == 200
        assert api_client.post('/api/guest/otp/verify/', payload, format='json').status_code == 400

    def test_email_otp_is_mailed(self, api_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.post('/api/guest/otp/send/', {'email': 'Guest@Example.com'}, format='json')
        assert response.data['channel'] == 'email'

        otp = GuestOTP.objects.get(destination='guest@example.com')
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['guest@example.com']
        assert otp.code in mail.outbox[0].body

        response = api_client.post(
            '/api/guest/otp/verify/', {'email': 'guest@example.com', 'otp': otp.code}, format='json'
        )
        assert response.status_code == 200
        assert response.data['guest']['email'] == 'guest@example.com'
        assert response.data['visit_count'] is None


@pytest.mark.django_db
class TestTableOrdering:
    """Tests for ordering from a table QR code."""

    def test_table_page(self, api_client, menu, table):
        Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        Offer.objects.create(
            name='Secret', offer_type='promo_code', promo_code='SECRET', benefits={'discount_amount': 50}
        )

        response = api_client.get('/api/guest/t/T01/')
        assert response.status_code == 200
        assert response.data['table']['table_number'] == 1
        assert response.data['guest'] is None
        assert [offer['name'] for offer in response.data['offers']] == ['Flat 50']
        assert 'promo_code' not in response.data['offers'][0]

    def test_veg_table_menu(self, api_client, menu, veg_table):
        response = api_client.get('/api/guest/t/T02/')
        names = [item['name'] for category in response.data['menu'] for item in category['items']]
        assert 'Butter Chicken' not in names
        assert 'Veg Biryani' in names

    def test_unknown_table(self, api_client, db):
        assert api_client.get('/api/guest/t/NOPE/').status_code == 404

    def test_order_requires_verification(self, api_client, menu, table):
        response = api_client.post('/api/guest/t/T01/orders/', {'items': [line(menu['naan'])]}, format='json')
        assert response.status_code == 403
        assert response.data['error'] == 'Please verify your phone number to continue.'

    def test_verified_guest_orders(self, api_client, menu, table):
        login(api_client)
        response = api_client.post('/api/guest/t/T01/orders/', {
            'items': [line(menu['samosa'], 2)], 'notes': 'Window seat',
        }, format='json')

        assert response.status_code == 201
        assert response.data['created_by_type'] == 'guest'
        assert response.data['customer_phone'] == '9876543210'
        assert response.data['customer_name'] == 'Asha'

        guest = GuestUser.objects.get(phone='9876543210')
        assert guest.total_orders == 1
        assert guest.last_table_code == 'T01'

        response = api_client.get('/api/guest/t/T01/orders/')
        assert response.status_code == 200
        assert len(response.data['orders']) == 1
        assert response.data['locked_offer'] is None

    def test_guest_sees_only_own_orders(self, api_client, menu, table):
        login(api_client)
        api_client.post('/api/guest/t/T01/orders/', {'items': [line(menu['naan'])]}, format='json')

        other = APIClient()
        login(other, phone='9000000001', name='Ravi')
        other.post('/api/guest/t/T01/orders/', {'items': [line(menu['chai'])]}, format='json')

        response = other.get('/api/guest/t/T01/orders/')
        assert len(response.data['orders']) == 1
        assert Order.objects.filter(session=response.data['session']).count() == 2

    def test_locked_offer_shown_to_guests(self, api_client, menu, table):
        flat = Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        Offer.objects.create(name='Ten', offer_type='cart_percentage', benefits={'discount_percentage': 10})
        login(api_client)
        api_client.post('/api/guest/t/T01/orders/', {
            'items': [line(menu['chicken'])], 'offer': flat.id,
        }, format='json')

        response = api_client.post('/api/guest/t/T01/offers/', {'items': [line(menu['paneer'])]}, format='json')
        results = {row['offer']['name']: row['eligibility'] for row in response.data['offers']}
        assert results['Flat 50']['is_eligible'] is True
        assert results['Ten']['is_eligible'] is False
        assert results['Ten']['reason'] == 'Another offer is already applied for this table.'

        page = api_client.get('/api/guest/t/T01/')
        assert page.data['locked_offer']['name'] == 'Flat 50'

    def test_first_time_offer_uses_verified_phone(self, api_client, menu, table):
        Offer.objects.create(
            name='Welcome', offer_type='customer_based',
            benefits={'discount_percentage': 20}, target_customer_type='first_time',
        )
        response = api_client.post('/api/guest/t/T01/offers/', {'items': [line(menu['chicken'])]}, format='json')
        assert response.data['offers'][0]['eligibility']['reason'] == 'Sign in to check eligibility'

        login(api_client)
        response = api_client.post('/api/guest/t/T01/offers/', {'items': [line(menu['chicken'])]}, format='json')
        assert response.data['offers'][0]['eligibility']['is_eligible'] is True


@pytest.mark.django_db
class TestTakeawayOrdering:

    def test_takeaway_flow(self, api_client, menu, takeaway_point):
        page = api_client.get('/api/guest/takeaway/COUNTER1/')
        assert page.status_code == 200
        assert page.data['takeaway_point']['name'] == 'Main Counter'

        login(api_client)
        response = api_client.post('/api/guest/takeaway/COUNTER1/orders/', {
            'items': [line(menu['biryani'])],
        }, format='json')
        assert response.status_code == 201
        assert response.data['order_type'] == 'takeaway'

        response = api_client.get('/api/guest/takeaway/COUNTER1/orders/')
        assert len(response.data['orders']) == 1

    def test_takeaway_offers(self, api_client, menu, takeaway_point):
        Offer.objects.create(name='Flat 50', offer_type='cart_flat_amount', benefits={'discount_amount': 50})
        response = api_client.post(
            '/api/guest/takeaway/COUNTER1/offers/', {'items': [line(menu['biryani'])]}, format='json'
        )
        assert response.data['cart_total'] == '200.00'
        assert response.data['offers'][0]['eligibility']['discount'] == '50'

    def test_inactive_counter(self, api_client, takeaway_point):
        takeaway_point.is_active = False
        takeaway_point.save()
        assert api_client.get('/api/guest/takeaway/COUNTER1/').status_code == 404
