"""
Guest-facing API used from the table and takeaway QR pages.
Guests prove a phone number or email with an OTP; the verified identity is
kept in the Django session.
"""
import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import services
from .exceptions import GuestNotVerified, OrderingError
from .models import MenuCategory, Offer, Order, RestaurantTable, TakeawayPoint
from .offers import build_cart, cart_total, evaluate_offers
from .serializers import (
    CartSerializer, GuestMenuCategorySerializer, GuestOfferSerializer,
    OrderCreateSerializer, OrderDetailSerializer, OTPSendSerializer,
    OTPVerifySerializer, RestaurantTableSerializer, TakeawayPointSerializer,
)

logger = logging.getLogger(__name__)

SESSION_PHONE = 'guest_phone'
SESSION_EMAIL = 'guest_email'


def error_response(exc):
    return Response({'error': exc.message}, status=exc.status_code)


def guest_identity(request):
    """(phone, email) verified for this browser session."""
    return request.session.get(SESSION_PHONE, ''), request.session.get(SESSION_EMAIL, '')


def require_guest(request):
    phone, email = guest_identity(request)
    if not phone and not email:
        raise GuestNotVerified()
    return phone, email


def _guest_payload(request):
    phone, email = guest_identity(request)
    if not phone and not email:
        return None
    name = request.session.get('guest_name', '')
    return {'phone': phone, 'email': email, 'name': name}


def _visible_offers():
    return Offer.objects.filter(is_active=True).exclude(offer_type='promo_code')


def _menu(veg_only):
    categories = MenuCategory.objects.filter(is_active=True).prefetch_related('items')
    return GuestMenuCategorySerializer(categories, many=True, context={'veg_only': veg_only}).data


def _get_table(table_code):
    return get_object_or_404(RestaurantTable, table_code=table_code, is_active=True)


def _get_point(qr_code):
    return get_object_or_404(TakeawayPoint, qr_code=qr_code, is_active=True)


# ============================================================================
# OTP LOGIN
# ============================================================================

def _send(request):
    serializer = OTPSendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    channel = 'phone' if data.get('phone') else 'email'
    try:
        otp = services.issue_otp(data.get('phone') or data['email'], channel)
    except OrderingError as exc:
        return error_response(exc)
    return Response({
        'message': 'OTP sent.',
        'channel': channel,
        'expires_in_minutes': settings.QRDINE['OTP_TTL_MINUTES'],
        'destination': otp.destination,
    })


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def send_otp(request):
    """
    POST /api/guest/otp/send/
    {"phone": "9876543210"}  or  {"email": "guest@example.com"}
    """
    return _send(request)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def resend_otp(request):
    """Issues a new code; the previous one stops working."""
    return _send(request)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def verify_otp(request):
    """
    POST /api/guest/otp/verify/
    {"phone": "9876543210", "otp": "123456", "name": "Asha"}
    """
    serializer = OTPVerifySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    channel = 'phone' if data.get('phone') else 'email'

    try:
        destination = services.verify_otp(data.get('phone') or data['email'], data['otp'], channel)
    except OrderingError as exc:
        return error_response(exc)

    guest = None
    if channel == 'phone':
        guest = services.get_or_create_guest(destination, data.get('name', ''))
        request.session[SESSION_PHONE] = destination
        request.session['guest_name'] = guest.name
    else:
        request.session[SESSION_EMAIL] = destination
        request.session['guest_name'] = data.get('name', '')
    request.session.set_expiry(settings.QRDINE['GUEST_SESSION_HOURS'] * 3600)

    logger.info(f"Guest verified via {channel}: {destination}")
    return Response({
        'message': 'Verified.',
        'guest': _guest_payload(request),
        'visit_count': guest.visit_count if guest else None,
    })


# ============================================================================
# TABLE ORDERING
# ============================================================================

@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def table_page(request, table_code):
    """Table, menu and offers for the QR landing page."""
    table = _get_table(table_code)
    session = table.active_session()
    return Response({
        'table': RestaurantTableSerializer(table).data,
        'menu': _menu(table.veg_only),
        'offers': GuestOfferSerializer(_visible_offers(), many=True).data,
        'locked_offer': session.locked_offer_data if session and session.locked_offer_id else None,
        'guest': _guest_payload(request),
    })


def _evaluate(request, locked_offer_id=None):
    serializer = CartSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    phone, _ = guest_identity(request)

    try:
        cart, _ = build_cart(data['items'])
        results = evaluate_offers(cart, phone or None, data.get('promo_code'))
    except OrderingError as exc:
        return error_response(exc)

    offers = []
    for offer, eligibility in results:
        result = eligibility.to_dict()
        if locked_offer_id and offer.id != locked_offer_id:
            result['is_eligible'] = False
            result['reason'] = 'Another offer is already applied for this table.'
        offers.append({'offer': GuestOfferSerializer(offer).data, 'eligibility': result})

    return Response({'cart_total': str(cart_total(cart)), 'offers': offers})


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def table_offers(request, table_code):
    """
    Offer eligibility for the guest's cart.
    POST /api/guest/t/<table_code>/offers/
    {"items": [{"menu_item": 1, "quantity": 2}], "promo_code": "WELCOME10"}
    """
    table = _get_table(table_code)
    session = table.active_session()
    return _evaluate(request, session.locked_offer_id if session else None)


def _place(request, table=None, takeaway_point=None):
    try:
        phone, email = require_guest(request)
    except OrderingError as exc:
        return error_response(exc)

    serializer = OrderCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        order = services.place_order(
            items=data['items'],
            table=table,
            takeaway_point=takeaway_point,
            customer_phone=phone,
            customer_name=data.get('customer_name') or request.session.get('guest_name', ''),
            customer_email=email or data.get('customer_email', ''),
            offer_id=data.get('offer'),
            promo_code=data.get('promo_code'),
            free_addon_id=data.get('free_addon_item'),
            notes=data.get('notes', ''),
            created_by_type='guest',
        )
    except OrderingError as exc:
        return error_response(exc)

    return Response(OrderDetailSerializer(order).data, status=status.HTTP_201_CREATED)


def _guest_orders(request, orders):
    phone, email = guest_identity(request)
    if phone:
        return orders.filter(customer_phone=phone)
    return orders.filter(customer_email=email)


@api_view(['GET', 'POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def table_orders(request, table_code):
    """
    GET: this guest's orders in the table's current visit.
    POST: place an order at the table.
    """
    table = _get_table(table_code)
    if request.method == 'POST':
        return _place(request, table=table)

    try:
        require_guest(request)
    except OrderingError as exc:
        return error_response(exc)

    session = table.active_session()
    if session is None:
        return Response({'session': None, 'locked_offer': None, 'orders': []})
    orders = _guest_orders(request, session.orders.prefetch_related('items'))
    return Response({
        'session': session.id,
        'locked_offer': session.locked_offer_data if session.locked_offer_id else None,
        'orders': OrderDetailSerializer(orders, many=True).data,
    })


# ============================================================================
# TAKEAWAY ORDERING
# ============================================================================

@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def takeaway_page(request, qr_code):
    point = _get_point(qr_code)
    return Response({
        'takeaway_point': TakeawayPointSerializer(point).data,
        'menu': _menu(point.is_veg_only),
        'offers': GuestOfferSerializer(_visible_offers(), many=True).data,
        'guest': _guest_payload(request),
    })


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def takeaway_offers(request, qr_code):
    _get_point(qr_code)
    return _evaluate(request)


@api_view(['GET', 'POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def takeaway_orders(request, qr_code):
    """
    GET: this guest's open takeaway orders at the counter.
    POST: place a takeaway order.
    """
    point = _get_point(qr_code)
    if request.method == 'POST':
        return _place(request, takeaway_point=point)

    try:
        require_guest(request)
    except OrderingError as exc:
        return error_response(exc)

    orders = _guest_orders(
        request,
        Order.objects.filter(takeaway_point=point).exclude(status__in=['paid', 'cancelled'])
    ).prefetch_related('items')
    return Response({'orders': OrderDetailSerializer(orders, many=True).data})
