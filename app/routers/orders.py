# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import get_principal, require_admin
from app.database import get_session
from app.repositories.booking_repo import BookingRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.stats_repo import StatsRepository
from app.repositories.user_repo import UserRepository
from app.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from app.schemas.user import Principal
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.stats_service import StatsAggregator

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
product_repo = ProductRepository()
user_repo = UserRepository()
stats = StatsAggregator(
    StatsRepository(), order_repo, BookingRepository(), product_repo, user_repo
)
service = OrderService(
    order_repo,
    product_repo,
    user_repo,
    SequenceRepository(),
    InventoryLedger(product_repo),
    stats,
    NotificationService(),
)


# -------- Customer endpoints --------


@router.post(
    "",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Place an order.

    Stock is reserved for every line in one transaction; client pricing
    must match the server computation.

    Auth:
      - customer (or admin)
    """
    return service.create_order(session, actor, payload)


@router.get("/me", response_model=list[OrderRead])
def list_my_orders(
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated user's orders (without items).
    """
    return service.list_my_orders(session, actor, skip, limit)


@router.get("/vendor", response_model=list[OrderRead])
def list_vendor_orders(
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
    skip: int = 0,
    limit: int = 50,
):
    """
    Orders containing at least one of the vendor's products.
    """
    return service.list_vendor_orders(session, actor, skip, limit)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    order_status: OrderStatus | None = None,
):
    """
    List all orders (admin only), optionally filtered by status.
    """
    return service.list_all_orders(session, skip, limit, order_status)


# -------- Single order --------


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Get one order with items and timeline.

    Visible to its customer, vendors with items in it, and admins.
    """
    return service.get_order(session, actor, order_id)


@router.patch("/{order_id}/status", response_model=OrderWithItemsRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Move an order along its lifecycle:

      pending    -> confirmed, cancelled

      confirmed  -> processing, cancelled

      processing -> shipped, cancelled

      shipped    -> delivered

      delivered  -> refunded (admin only)
    """
    return service.transition(
        session,
        order_id,
        payload.status,
        actor,
        note=payload.note,
        tracking_number=payload.tracking_number,
    )


@router.post("/{order_id}/cancel", response_model=OrderWithItemsRead)
def cancel_order(
    order_id: uuid.UUID,
    payload: OrderCancel,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Cancel an order before shipment; stock is returned.
    """
    return service.cancel(session, order_id, actor, payload.reason)


@router.post(
    "/{order_id}/refund",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def refund_order(
    order_id: uuid.UUID,
    payload: OrderCancel,
    session: Session = Depends(get_session),
    actor: Principal = Depends(get_principal),
):
    """
    Refund a delivered order (admin only); vendor stats are reversed.
    """
    return service.refund(session, order_id, actor, payload.reason)
