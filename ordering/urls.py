from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views, views_guest

router = DefaultRouter()
router.register(r'users', views.UserViewSet, basename='user')
router.register(r'staff', views.StaffViewSet, basename='staff')
router.register(r'menu-categories', views.MenuCategoryViewSet, basename='menucategory')
router.register(r'menu-items', views.MenuItemViewSet, basename='menuitem')
router.register(r'tables', views.TableViewSet, basename='table')
router.register(r'takeaway-points', views.TakeawayPointViewSet, basename='takeawaypoint')
router.register(r'sessions', views.TableSessionViewSet, basename='session')
router.register(r'orders', views.OrderViewSet, basename='order')
router.register(r'kots', views.KotViewSet, basename='kot')
router.register(r'offers', views.OfferViewSet, basename='offer')
router.register(r'tax-settings', views.TaxSettingViewSet, basename='taxsetting')
router.register(r'settings', views.RestaurantSettingViewSet, basename='restaurantsetting')
router.register(r'bills', views.BillViewSet, basename='bill')
router.register(r'notifications', views.NotificationViewSet, basename='notification')

guest_patterns = [
    path('otp/send/', views_guest.send_otp, name='guest_otp_send'),
    path('otp/verify/', views_guest.verify_otp, name='guest_otp_verify'),
    path('otp/resend/', views_guest.resend_otp, name='guest_otp_resend'),

    # Dine-in QR
    path('t/<str:table_code>/', views_guest.table_page, name='guest_table'),
    path('t/<str:table_code>/offers/', views_guest.table_offers, name='guest_table_offers'),
    path('t/<str:table_code>/orders/', views_guest.table_orders, name='guest_table_orders'),

    # Takeaway QR
    path('takeaway/<str:qr_code>/', views_guest.takeaway_page, name='guest_takeaway'),
    path('takeaway/<str:qr_code>/offers/', views_guest.takeaway_offers, name='guest_takeaway_offers'),
    path('takeaway/<str:qr_code>/orders/', views_guest.takeaway_orders, name='guest_takeaway_orders'),
]

urlpatterns = [
    # Auth endpoints
    path('auth/login/', views.obtain_token, name='auth_login'),
    path('auth/logout/', views.logout, name='auth_logout'),

    # Reports
    path('reports/daily-sales/', views.daily_sales_report, name='daily_sales_report'),
    path('analytics/', views.analytics_dashboard, name='analytics_dashboard'),

    # Guest ordering
    path('guest/', include(guest_patterns)),

    # Router endpoints
    path('', include(router.urls)),
]
