# app/services/notification_service.py
import logging
import smtplib

from app.core.config import Settings, get_settings
from app.core.email_client import send_email
from app.models.booking import Booking
from app.models.order import Order
from app.models.user import User

logger = logging.getLogger(__name__)

ORDER_STATUS_MESSAGES: dict[str, str] = {
    "pending": "We received your order.",
    "confirmed": "Your order has been confirmed.",
    "processing": "Your order is being prepared.",
    "shipped": "Your order is on its way.",
    "delivered": "Your order has been delivered.",
    "cancelled": "Your order has been cancelled.",
    "refunded": "Your order has been refunded.",
}

BOOKING_STATUS_MESSAGES: dict[str, str] = {
    "pending": "Your booking request was sent to the provider.",
    "confirmed": "Your booking has been confirmed.",
    "in_progress": "Your service is in progress.",
    "completed": "Your service is complete. Leave a review!",
    "cancelled": "Your booking has been cancelled.",
    "rejected": "The provider could not take your booking.",
}


class NotificationService:
    """
    Fire-and-forget customer emails for order and booking events.

    Sending never raises: a failed email is logged and the lifecycle
    operation that triggered it stays successful.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def enabled(self) -> bool:
        return self.settings.NOTIFICATIONS_ENABLED

    def _send(self, to_email: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.debug("Notifications disabled, skipping '%s' to %s", subject, to_email)
            return False
        try:
            send_email(
                to_email=to_email,
                subject=subject,
                text_body=body,
                settings=self.settings,
            )
        except (RuntimeError, OSError, smtplib.SMTPException):
            logger.warning("Failed to send '%s' to %s", subject, to_email, exc_info=True)
            return False
        return True

    def order_status_changed(self, customer: User | None, order: Order) -> bool:
        if customer is None:
            return False
        message = ORDER_STATUS_MESSAGES.get(order.status, f"Status: {order.status}")
        body = (
            f"Hi {customer.name},\n\n"
            f"{message}\n\n"
            f"Order: {order.order_number}\n"
            f"Total: {order.total:.2f} {order.currency}\n"
        )
        tracking = (order.shipping or {}).get("tracking_number")
        if order.status == "shipped" and tracking:
            body += f"Tracking number: {tracking}\n"
        return self._send(
            customer.email,
            f"[{self.settings.PROJECT_NAME}] Order {order.order_number}: {order.status}",
            body,
        )

    def booking_status_changed(self, customer: User | None, booking: Booking) -> bool:
        if customer is None:
            return False
        message = BOOKING_STATUS_MESSAGES.get(booking.status, f"Status: {booking.status}")
        body = (
            f"Hi {customer.name},\n\n"
            f"{message}\n\n"
            f"Booking: {booking.booking_number}\n"
            f"Scheduled: {booking.scheduled_date.isoformat()} "
            f"{booking.scheduled_time.strftime('%H:%M')}\n"
            f"Total: {booking.total_amount:.2f} {booking.currency}\n"
        )
        if booking.cancellation_reason:
            body += f"Reason: {booking.cancellation_reason}\n"
        return self._send(
            customer.email,
            f"[{self.settings.PROJECT_NAME}] Booking {booking.booking_number}: {booking.status}",
            body,
        )
