from rest_framework import status


class OrderingError(Exception):
    """Base error for ordering rules. Views turn it into {'error': message}."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TableUnavailable(OrderingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Table not found or inactive.'


class EmptyOrder(OrderingError):
    default_message = 'Order must contain at least one item.'


class MenuItemUnavailable(OrderingError):
    default_message = 'Menu item is not available.'


class OfferNotEligible(OrderingError):
    default_message = 'Offer is not applicable to this order.'


class OfferLocked(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'A different offer is already locked for this session.'


class InvalidPromoCode(OrderingError):
    default_message = 'Invalid promo code'


class BillAlreadyExists(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Bill already exists for this table'


class BillAlreadyPaid(OrderingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Bill is already paid.'


class InvalidStatusTransition(OrderingError):
    default_message = 'Status change is not allowed.'


class GuestNotVerified(OrderingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Please verify your phone number to continue.'


class OTPError(OrderingError):
    default_message = 'Invalid or expired OTP.'
