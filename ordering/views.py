import logging

from django.contrib.auth.models import User
from django.http import FileResponse, HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from . import analytics, kot, services
from .billing import render_bill_pdf
from .exceptions import OrderingError
from .models import (
    STAFF_ROLES, Bill, MenuCategory, MenuItem, Notification, Offer, Order,
    OrderItem, RestaurantSetting, RestaurantTable, TableSession, TakeawayPoint,
    TaxSetting,
)
from .offers import build_cart, cart_total, evaluate_offers
from .serializers import (
    BillDetailSerializer, BillGenerateSerializer, BillSerializer, CancelOrderSerializer,
    CartSerializer, CloseSessionSerializer, DashboardTableSerializer, KitchenTicketSerializer,
    KotStatusSerializer, MenuCategorySerializer, MenuItemSerializer, NotificationSerializer,
    OfferSerializer, OrderCreateSerializer, OrderDetailSerializer, OrderListSerializer,
    PaymentSerializer, RestaurantSettingSerializer, RestaurantTableSerializer, StaffSerializer,
    TableSessionDetailSerializer, TableSessionSerializer, TakeawayPointSerializer,
    TaxSettingSerializer, UserSerializer,
)

logger = logging.getLogger(__name__)


def error_response(exc):
    return Response({'error': exc.message}, status=exc.status_code)


# ============================================================================
# CUSTOM PERMISSIONS
# ============================================================================

def in_groups(user, *names):
    if not (user and user.is_authenticated):
        return False
    return user.is_superuser or user.groups.filter(name__in=names).exists()


class IsManager(permissions.BasePermission):
    """Permission for Manager role (superusers included)."""
    def has_permission(self, request, view):
        return in_groups(request.user, 'Manager')


class IsCashier(permissions.BasePermission):
    """Cashiers and managers handle bills."""
    def has_permission(self, request, view):
        return in_groups(request.user, 'Cashier', 'Manager')


class IsManagerOrReadOnly(permissions.BasePermission):
    """Manager can edit, others can only read."""
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return request.user and request.user.is_authenticated
        return in_groups(request.user, 'Manager')


class IsKitchenOrReadOnly(permissions.BasePermission):
    """Kitchen staff and managers move tickets, others can only read."""
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return request.user and request.user.is_authenticated
        return in_groups(request.user, 'Kitchen', 'Manager')


# ============================================================================
# AUTHENTICATION VIEWS
# ============================================================================

@api_view(['POST'])
@permission_classes([AllowAny])
def obtain_token(request):
    """
    Get authentication token for a staff user.
    POST /api/auth/login/
    {
        "username": "waiter1",
        "password": "password123"
    }
    """
    username = request.data.get('username')
    password = request.data.get('password')

    if not username or not password:
        return Response(
            {'error': 'Username and password are required.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    user = User.objects.filter(username=username).first()
    if user is None or not user.check_password(password):
        return Response(
            {'error': 'Invalid credentials.'},
            status=status.HTTP_401_UNAUTHORIZED
        )
    if not user.is_active:
        return Response(
            {'error': 'Account is deactivated.'},
            status=status.HTTP_403_FORBIDDEN
        )

    token, created = Token.objects.get_or_create(user=user)
    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    logger.info(f"Staff login: {user.username}")
    return Response({
        'token': token.key,
        'user': UserSerializer(user).data
    })


@api_view(['POST'])
@permission_classes([AllowAny])
def logout(request):
    """Logout and delete token."""
    if request.user.is_authenticated:
        Token.objects.filter(user=request.user).delete()
    return Response({'message': 'Logged out successfully.'})


# ============================================================================
# USER MANAGEMENT VIEWS
# ============================================================================

class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for User listing.
    Only Manager can view users; everyone can read their own profile.
    """
    queryset = User.objects.all().order_by('username')
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, IsManager]

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def me(self, request):
        """Get current user info."""
        serializer = UserSerializer(request.user)
        return Response(serializer.data)


class StaffViewSet(viewsets.ModelViewSet):
    """
    Staff accounts with a role. Deleting a staff member deactivates the
    account and revokes its token.
    """
    serializer_class = StaffSerializer
    permission_classes = [IsAuthenticated, IsManager]
    filterset_fields = ['is_active']

    def get_queryset(self):
        return User.objects.filter(groups__name__in=STAFF_ROLES).distinct().order_by('username')

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user == request.user:
            return Response(
                {'error': 'You cannot deactivate your own account.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        user.is_active = False
        user.save(update_fields=['is_active'])
        Token.objects.filter(user=user).delete()
        logger.info(f"Staff {user.username} deactivated by {request.user.username}")
        return Response({'message': f'{user.username} deactivated.'})


# ============================================================================
# MENU VIEWS
# ============================================================================

class MenuCategoryViewSet(viewsets.ModelViewSet):
    queryset = MenuCategory.objects.all()
    serializer_class = MenuCategorySerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['is_active']


class MenuItemViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Menu Item management.
    Only Manager can create/edit/delete. Others can view.
    """
    queryset = MenuItem.objects.select_related('category')
    serializer_class = MenuItemSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['category', 'is_available', 'is_veg']

    @action(detail=True, methods=['post'])
    def toggle_availability(self, request, pk=None):
        """Mark an item sold out or back on the menu."""
        item = self.get_object()
        item.is_available = not item.is_available
        item.save(update_fields=['is_available', 'updated_at'])
        return Response(MenuItemSerializer(item).data)


# ============================================================================
# TABLE VIEWS
# ============================================================================

class TableViewSet(viewsets.ModelViewSet):
    """
    ViewSet for Table management.
    Only Manager can create/edit/delete. Waiters can view and request bills.
    """
    queryset = RestaurantTable.objects.all()
    serializer_class = RestaurantTableSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['status', 'is_active', 'veg_only']

    def destroy(self, request, *args, **kwargs):
        table = self.get_object()
        if table.active_session() is not None:
            return Response(
                {'error': 'Table has an active session.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().destroy(request, *args, **kwargs)

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated])
    def request_bill(self, request, pk=None):
        """Waiter flags a table as waiting for its bill."""
        table = self.get_object()

        if table.status == 'available':
            return Response(
                {'error': 'Cannot request bill for an available table.'},
                status=status.HTTP_400_BAD_REQUEST
            )

        table.request_bill()
        return Response(
            {'message': 'Bill requested.', 'status': table.get_status_display()}
        )

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def dashboard(self, request):
        """Get live dashboard of all tables."""
        tables = self.get_queryset().filter(is_active=True)
        serializer = DashboardTableSerializer(tables, many=True)
        return Response(serializer.data)


class TakeawayPointViewSet(viewsets.ModelViewSet):
    queryset = TakeawayPoint.objects.all()
    serializer_class = TakeawayPointSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['is_active']


# ============================================================================
# SESSION VIEWS
# ============================================================================

class TableSessionViewSet(viewsets.ReadOnlyModelViewSet):
    """Table visits. Lists active sessions unless ?status= is given."""
    permission_classes = [IsAuthenticated]
    filterset_fields = ['table', 'customer_phone']

    def get_queryset(self):
        queryset = TableSession.objects.select_related('table', 'locked_offer')
        session_status = self.request.query_params.get('status', 'active')
        if session_status != 'all':
            queryset = queryset.filter(status=session_status)
        return queryset

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return TableSessionDetailSerializer
        return TableSessionSerializer

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsManager])
    def close(self, request, pk=None):
        """Close an abandoned session and free the table."""
        session = self.get_object()
        serializer = CloseSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            services.close_session(session, request.user, force=serializer.validated_data['force'])
        except OrderingError as exc:
            return error_response(exc)
        return Response(TableSessionSerializer(session).data)


# ============================================================================
# ORDER VIEWS
# ============================================================================

class OrderViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    Orders from guests and staff.
    Staff create orders here on behalf of walk-in customers.
    """
    queryset = Order.objects.select_related('table', 'applied_offer').prefetch_related('items')
    permission_classes = [IsAuthenticated]
    filterset_fields = ['status', 'order_type', 'table', 'session', 'takeaway_point', 'created_by_type']

    def get_serializer_class(self):
        """Use different serializers for list and detail views."""
        if self.action == 'retrieve':
            return OrderDetailSerializer
        if self.action == 'create':
            return OrderCreateSerializer
        return OrderListSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        phone = self.request.query_params.get('customer_phone')
        if phone:
            queryset = queryset.filter(customer_phone=services.normalize_phone(phone))
        day = parse_date(self.request.query_params.get('date', '') or '')
        if day:
            queryset = queryset.filter(created_at__date=day)
        return queryset

    def create(self, request, *args, **kwargs):
        """
        Place an order as staff.
        POST /api/orders/
        {
            "table": 1,
            "items": [{"menu_item": 3, "quantity": 2, "special_notes": "No onions"}],
            "offer": 5
        }
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = services.place_order(
                items=data['items'],
                table=data.get('table'),
                takeaway_point=data.get('takeaway_point'),
                customer_phone=data.get('customer_phone', ''),
                customer_name=data.get('customer_name', ''),
                customer_email=data.get('customer_email', ''),
                offer_id=data.get('offer'),
                promo_code=data.get('promo_code'),
                free_addon_id=data.get('free_addon_item'),
                notes=data.get('notes', ''),
                created_by=request.user,
                created_by_type='admin' if in_groups(request.user, 'Manager') else 'staff',
            )
        except OrderingError as exc:
            return error_response(exc)

        return Response(
            OrderDetailSerializer(order).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated])
    def cancel(self, request, pk=None):
        """Cancel an order that has not been served yet."""
        order = self.get_object()
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            services.cancel_order(order, serializer.validated_data.get('reason', ''), request.user)
        except OrderingError as exc:
            return error_response(exc)

        return Response(
            {'message': 'Order cancelled.', 'order': OrderDetailSerializer(order).data}
        )


# ============================================================================
# KITCHEN ORDER TICKET VIEWS
# ============================================================================

class KotViewSet(viewsets.ViewSet):
    """
    Kitchen display. Tickets are identified by their batch id.
    GET /api/kots/?status=placed,preparing&since=2024-01-01T10:00:00
    """
    permission_classes = [IsAuthenticated, IsKitchenOrReadOnly]
    lookup_value_regex = '[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'

    def list(self, request):
        statuses = [s for s in request.query_params.get('status', '').split(',') if s]
        since = request.query_params.get('since')
        since = parse_datetime(since) if since else None
        tickets = kot.active_kots(statuses=statuses or None, since=since)
        return Response(KitchenTicketSerializer(tickets, many=True).data)

    @action(detail=True, methods=['post'])
    def update_status(self, request, pk=None):
        serializer = KotStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            ticket = kot.update_kot_status(pk, serializer.validated_data['status'])
        except OrderingError as exc:
            return error_response(exc)
        return Response(KitchenTicketSerializer(ticket).data)

    @action(detail=True, methods=['get'])
    def ticket(self, request, pk=None):
        """Printable plain-text ticket."""
        tickets = kot.group_items_into_kots(
            OrderItem.objects.filter(kot_batch_id=pk).select_related('order', 'order__table', 'menu_item')
        )
        if not tickets:
            return Response({'error': 'KOT not found.'}, status=status.HTTP_404_NOT_FOUND)
        return HttpResponse(kot.render_kot_ticket(tickets[0]), content_type='text/plain; charset=utf-8')


# ============================================================================
# OFFER VIEWS
# ============================================================================

class OfferViewSet(viewsets.ModelViewSet):
    """
    Offer administration. Managers write, staff read and preview.
    """
    queryset = Offer.objects.prefetch_related('offer_items').select_related('combo')
    serializer_class = OfferSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['offer_type', 'is_active', 'target_customer_type']

    @action(detail=True, methods=['post'])
    def toggle_active(self, request, pk=None):
        offer = self.get_object()
        offer.is_active = not offer.is_active
        offer.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Offer {offer.id} {'activated' if offer.is_active else 'deactivated'}")
        return Response(OfferSerializer(offer).data)

    @action(detail=False, methods=['post'], permission_classes=[IsAuthenticated])
    def evaluate(self, request):
        """
        Preview every offer against a cart.
        POST /api/offers/evaluate/
        {"items": [{"menu_item": 1, "quantity": 2}], "customer_phone": "9876543210"}
        """
        serializer = CartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            cart, _ = build_cart(data['items'])
            results = evaluate_offers(
                cart,
                services.normalize_phone(data.get('customer_phone', '')),
                data.get('promo_code'),
            )
        except OrderingError as exc:
            return error_response(exc)
        return Response({
            'cart_total': str(cart_total(cart)),
            'offers': [
                {'offer': OfferSerializer(offer).data, 'eligibility': eligibility.to_dict()}
                for offer, eligibility in results
            ],
        })


# ============================================================================
# SETTINGS VIEWS
# ============================================================================

class TaxSettingViewSet(viewsets.ModelViewSet):
    queryset = TaxSetting.objects.all()
    serializer_class = TaxSettingSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    filterset_fields = ['is_active']


class RestaurantSettingViewSet(viewsets.ModelViewSet):
    """Key/value settings such as tax_inclusive, looked up by key."""
    queryset = RestaurantSetting.objects.all().order_by('key')
    serializer_class = RestaurantSettingSerializer
    permission_classes = [IsAuthenticated, IsManagerOrReadOnly]
    lookup_field = 'key'


# ============================================================================
# BILL VIEWS
# ============================================================================

class BillViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for Bill management.
    Cashiers generate bills and take payment.
    """
    queryset = Bill.objects.select_related('session__table', 'order', 'applied_offer')
    permission_classes = [IsAuthenticated]
    filterset_fields = ['payment_status', 'payment_method', 'session', 'order']

    def get_serializer_class(self):
        """Use different serializers for list and detail views."""
        if self.action == 'retrieve':
            return BillDetailSerializer
        return BillSerializer

    @action(detail=False, methods=['post'], permission_classes=[IsAuthenticated, IsCashier])
    def generate(self, request):
        """
        Generate a bill for a table session or a takeaway order.
        POST /api/bills/generate/
        {
            "session": 4,
            "discount_percentage": null,
            "manual_items": [{"name": "Water bottle", "quantity": 1, "unit_price": "20.00"}]
        }
        """
        serializer = BillGenerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            bill = services.generate_bill(
                session=data.get('session'),
                order=data.get('order'),
                user=request.user,
                discount_percentage=data.get('discount_percentage'),
                manual_items=data.get('manual_items'),
            )
        except OrderingError as exc:
            return error_response(exc)

        return Response(
            BillDetailSerializer(bill).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsCashier])
    def mark_as_paid(self, request, pk=None):
        """
        Record payment and free the table.
        POST /api/bills/{id}/mark_as_paid/
        {"payment_method": "upi"}
        """
        bill = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            bill = services.settle_bill(bill, serializer.validated_data['payment_method'], request.user)
        except OrderingError as exc:
            return error_response(exc)

        return Response(
            {
                'message': 'Bill marked as paid.',
                'bill': BillDetailSerializer(bill).data
            },
            status=status.HTTP_200_OK
        )

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated])
    def pending(self, request):
        """Pending bills split into dine-in and takeaway."""
        bills = self.get_queryset().filter(payment_status='pending')
        return Response({
            'dine_in': BillSerializer(bills.filter(session__isnull=False), many=True).data,
            'takeaway': BillSerializer(bills.filter(session__isnull=True), many=True).data,
        })

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsCashier])
    def history(self, request):
        """
        Paid bills, newest first.
        GET /api/bills/history/?from=2024-01-01&to=2024-01-31&payment_method=cash
        """
        bills = self.get_queryset().filter(payment_status='paid').order_by('-paid_at')
        start = parse_date(request.query_params.get('from', '') or '')
        end = parse_date(request.query_params.get('to', '') or '')
        if start:
            bills = bills.filter(paid_at__date__gte=start)
        if end:
            bills = bills.filter(paid_at__date__lte=end)
        method = request.query_params.get('payment_method')
        if method:
            bills = bills.filter(payment_method=method)

        page = self.paginate_queryset(bills)
        if page is not None:
            return self.get_paginated_response(BillSerializer(page, many=True).data)
        return Response(BillSerializer(bills, many=True).data)

    @action(detail=True, methods=['get'], permission_classes=[IsAuthenticated])
    def export_pdf(self, request, pk=None):
        """
        Export bill as PDF in A4 format.
        GET /api/bills/{id}/export_pdf/
        """
        bill = self.get_object()
        return FileResponse(
            render_bill_pdf(bill),
            as_attachment=True,
            filename=f'{bill.bill_number}.pdf',
            content_type='application/pdf'
        )


# ============================================================================
# NOTIFICATION VIEWS
# ============================================================================

class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """The signed-in user's notifications."""
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ['is_read', 'notification_type']

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    @action(detail=False, methods=['get'])
    def unread(self, request):
        """Polled by the back office for new alerts."""
        notifications = self.get_queryset().filter(is_read=False)
        return Response({
            'count': notifications.count(),
            'results': NotificationSerializer(notifications[:50], many=True).data,
        })

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True, read_at=timezone.now())
        return Response({'message': f'{updated} notifications marked as read.'})


# ============================================================================
# REPORT VIEWS
# ============================================================================

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def daily_sales_report(request):
    """
    Get daily sales and table usage report.
    GET /api/reports/daily-sales/?date=2024-01-31
    """
    day = parse_date(request.query_params.get('date', '') or '') or timezone.localdate()
    report = analytics.daily_sales_report(day)
    report['bills'] = BillSerializer(report['bills'], many=True).data
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsManager])
def analytics_dashboard(request):
    """
    Back-office analytics.
    GET /api/analytics/?period=30d  or  ?start_date=2024-01-01&end_date=2024-01-31
    """
    try:
        data = analytics.build_dashboard(
            period=request.query_params.get('period', '30d'),
            start=request.query_params.get('start_date'),
            end=request.query_params.get('end_date'),
        )
    except ValueError as exc:
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(data)
