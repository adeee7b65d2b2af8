# app/services/order_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.database import unit_of_work
from app.models.order import Order, OrderItem, OrderTimelineEntry
from app.models.product import Product
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.sequence_repo import SequenceRepository
from app.repositories.user_repo import UserRepository
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderWithItemsRead,
    TimelineEntryRead,
)
from app.schemas.user import Principal
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.pricing import amounts_match, compute_order_pricing, verify_order_pricing
from app.services.stats_service import StatsAggregator

logger = logging.getLogger(__name__)

settings = get_settings()

# Legal status edges. Anything not listed is rejected.
ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}

# Statuses a vendor may move an order into (refund is admin-only)
VENDOR_TARGET_STATUSES = {"confirmed", "processing", "shipped", "delivered", "cancelled"}

FULFILLMENT_BY_STATUS: dict[str, str] = {
    "processing": "processing",
    "shipped": "shipped",
    "delivered": "delivered",
}

PAYMENT_BY_STATUS: dict[str, str] = {
    "delivered": "paid",
    "refunded": "refunded",
}

DEFAULT_TIMELINE_NOTES: dict[str, str] = {
    "confirmed": "Order confirmed",
    "processing": "Order is being prepared",
    "shipped": "Order shipped",
    "delivered": "Order delivered",
    "cancelled": "Order cancelled",
    "refunded": "Order refunded to customer",
}


def reservation_key(order_id: uuid.UUID, item_id: uuid.UUID) -> str:
    return f"{order_id}:{item_id}"


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from line items (validate products, reserve stock,
        snapshot items, verify client pricing)
      - Enforce the status state machine with role rules
      - Restock on cancel/refund, update vendor stats on delivery/refund
      - Notify the customer after each committed change
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        user_repo: UserRepository,
        sequence_repo: SequenceRepository,
        ledger: InventoryLedger,
        stats: StatsAggregator,
        notifier: NotificationService,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.user_repo = user_repo
        self.sequence_repo = sequence_repo
        self.ledger = ledger
        self.stats = stats
        self.notifier = notifier

    # -------- Create --------

    def create_order(
        self,
        session: Session,
        actor: Principal,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Place an order for the calling customer.

        Steps (one transaction):
          1. Batch-load products; missing → 404, inactive → 400.
          2. Recompute pricing from catalog prices and compare with the
             submitted pricing; shipping cost must match too.
          3. Insert the Order with a fresh PO number.
          4. Reserve stock per line (keyed by order + item id). The first
             failure aborts everything, including earlier reservations.
          5. Insert item snapshots and the first timeline entry.
        """
        if actor.role not in ("customer", "admin"):
            raise ForbiddenError("Only customers can place orders")

        with unit_of_work(session):
            product_ids = list(dict.fromkeys(line.product_id for line in payload.items))
            products = self.product_repo.get_many(session, product_ids)
            for product_id in product_ids:
                product = products.get(product_id)
                if product is None:
                    raise NotFoundError("Product", product_id)
                if not product.is_active:
                    raise ValidationError(f"Product is not available: {product.name}")

            pricing = compute_order_pricing(
                [(line.quantity, products[line.product_id].price) for line in payload.items],
                shipping=payload.pricing.shipping,
                tax=payload.pricing.tax,
                discount=payload.pricing.discount,
            )
            verify_order_pricing(payload.pricing.subtotal, payload.pricing.total, pricing)
            if not amounts_match(payload.shipping.cost, pricing.shipping):
                raise ValidationError(
                    f"Shipping cost {payload.shipping.cost:.2f} does not match "
                    f"pricing shipping {pricing.shipping:.2f}"
                )

            now = datetime.now(timezone.utc)
            shipping = payload.shipping.model_dump()
            shipping["tracking_number"] = None

            order = Order(
                order_number=self.sequence_repo.next_document_number(
                    session, settings.ORDER_NUMBER_PREFIX, now.year
                ),
                customer_id=actor.id,
                subtotal=pricing.subtotal,
                shipping_cost=pricing.shipping,
                tax=pricing.tax,
                discount=pricing.discount,
                total=pricing.total,
                currency=payload.pricing.currency or settings.DEFAULT_CURRENCY,
                shipping=shipping,
                billing=payload.billing.model_dump(),
                discounts=[d.model_dump() for d in payload.discounts],
                notes=payload.notes,
                customer_notes=payload.customer_notes,
            )
            order = self.order_repo.create_order(session, order)

            items: list[OrderItem] = []
            for line in payload.items:
                product = products[line.product_id]
                item = self._snapshot_item(order.id, product, line.quantity)
                self.ledger.reserve(
                    session,
                    product.id,
                    line.quantity,
                    key=reservation_key(order.id, item.id),
                    order_id=order.id,
                )
                items.append(item)
            self.order_repo.create_items(session, items)

            self.order_repo.append_timeline(
                session,
                OrderTimelineEntry(
                    order_id=order.id,
                    status="pending",
                    note="Order created",
                    updated_by=actor.id,
                ),
            )
            order_id = order.id

        logger.info("Order %s created by %s", order.order_number, actor.id)
        self._notify(session, order)
        return self._build_order_dto(session, self._get_order(session, order_id))

    @staticmethod
    def _snapshot_item(order_id: uuid.UUID, product: Product, quantity: int) -> OrderItem:
        """Copy the product as it is right now; later catalog edits don't matter."""
        return OrderItem(
            id=uuid.uuid4(),
            order_id=order_id,
            product_id=product.id,
            vendor_id=product.vendor_id,
            product_name=product.name,
            product_type=product.product_type,
            sku=product.sku,
            quantity=quantity,
            unit_price=product.price,
            compare_at_price=product.compare_at_price,
            total_price=round(quantity * product.price, 2),
            snapshot={
                "image_url": product.image_url,
                "plant_details": product.plant_details,
                "accessory_details": product.accessory_details,
            },
        )

    # -------- Transitions --------

    def transition(
        self,
        session: Session,
        order_id: uuid.UUID,
        new_status: str,
        actor: Principal,
        note: str | None = None,
        tracking_number: str | None = None,
    ) -> OrderWithItemsRead:
        """
        Move an order along its lifecycle.

        Raises:
            NotFoundError, ForbiddenError,
            ConflictError (cancel after shipment),
            InvalidTransitionError, ConcurrentModificationError
        """
        with unit_of_work(session):
            order = self._get_order(session, order_id)
            items = self.order_repo.list_items_for_order(session, order.id)
            self._authorize_transition(actor, order, items, new_status)

            current = order.status
            if new_status == "cancelled" and current in ("shipped", "delivered"):
                raise ConflictError("Order cannot be cancelled after shipment")
            if new_status not in ORDER_TRANSITIONS.get(current, set()):
                raise InvalidTransitionError(current, new_status)

            if not self.order_repo.claim_version(session, order):
                raise ConcurrentModificationError("Order", order.id)

            order.status = new_status
            if new_status in FULFILLMENT_BY_STATUS:
                order.fulfillment_status = FULFILLMENT_BY_STATUS[new_status]
            if new_status in PAYMENT_BY_STATUS:
                order.payment_status = PAYMENT_BY_STATUS[new_status]
            if new_status == "shipped" and tracking_number:
                # Reassign so the JSON column is flagged dirty
                order.shipping = {**(order.shipping or {}), "tracking_number": tracking_number}
            self.order_repo.update_order(session, order)

            self.order_repo.append_timeline(
                session,
                OrderTimelineEntry(
                    order_id=order.id,
                    status=new_status,
                    note=note or DEFAULT_TIMELINE_NOTES.get(new_status),
                    tracking_number=tracking_number if new_status == "shipped" else None,
                    updated_by=actor.id,
                ),
            )

            if new_status in ("cancelled", "refunded"):
                self.ledger.release_order(session, order.id)

        logger.info("Order %s: %s -> %s by %s", order_id, current, new_status, actor.id)

        if new_status == "delivered":
            self.stats.dispatch(session, self.stats.on_order_delivered, order_id)
        elif new_status == "refunded":
            self.stats.dispatch(session, self.stats.on_order_refunded, order_id)

        order = self._get_order(session, order_id)
        self._notify(session, order)
        return self._build_order_dto(session, order)

    def cancel(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Principal,
        reason: str | None = None,
    ) -> OrderWithItemsRead:
        return self.transition(session, order_id, "cancelled", actor, note=reason)

    def refund(
        self,
        session: Session,
        order_id: uuid.UUID,
        actor: Principal,
        note: str | None = None,
    ) -> OrderWithItemsRead:
        return self.transition(session, order_id, "refunded", actor, note=note)

    def _authorize_transition(
        self,
        actor: Principal,
        order: Order,
        items: list[OrderItem],
        new_status: str,
    ) -> None:
        """
        Role rules:
          - admin: anything
          - customer: only cancel, only own orders
          - vendor: fulfillment steps and cancel, only orders with their items
        """
        if actor.is_admin:
            return

        if actor.role == "customer":
            if order.customer_id != actor.id:
                raise ForbiddenError("You can only modify your own orders")
            if new_status != "cancelled":
                raise ForbiddenError("Customers can only cancel orders")
            return

        if actor.role == "vendor":
            if not any(item.vendor_id == actor.id for item in items):
                raise ForbiddenError("Order contains none of your products")
            if new_status not in VENDOR_TARGET_STATUSES:
                raise ForbiddenError(f"Vendors cannot set status '{new_status}'")
            return

        raise ForbiddenError("Not allowed to change order status")

    # -------- Queries --------

    def list_my_orders(
        self,
        session: Session,
        actor: Principal,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_for_user(session, actor.id, skip, limit)
        return [OrderRead.model_validate(o) for o in orders]

    def list_vendor_orders(
        self,
        session: Session,
        actor: Principal,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        if actor.role not in ("vendor", "admin"):
            raise ForbiddenError("Vendor access required")
        orders = self.order_repo.list_for_vendor(session, actor.id, skip, limit)
        return [OrderRead.model_validate(o) for o in orders]

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        status: str | None = None,
    ) -> list[OrderRead]:
        """
        List all orders (admin only; enforced by the router).
        """
        orders = self.order_repo.list_all(session, skip, limit, status)
        return [OrderRead.model_validate(o) for o in orders]

    def get_order(
        self,
        session: Session,
        actor: Principal,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order with items and timeline.

        - admin sees everything
        - customer sees own orders
        - vendor sees orders that contain their products
        Anything else is reported as 404 so order ids don't leak.
        """
        order = self._get_order(session, order_id)
        if not actor.is_admin and order.customer_id != actor.id:
            items = self.order_repo.list_items_for_order(session, order.id)
            is_vendor = actor.role == "vendor" and any(i.vendor_id == actor.id for i in items)
            if not is_vendor:
                raise NotFoundError("Order", order_id)
        return self._build_order_dto(session, order)

    # -------- Helpers --------

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def _notify(self, session: Session, order: Order) -> None:
        customer = self.user_repo.get_by_id(session, order.customer_id)
        self.notifier.order_status_changed(customer, order)

    def _build_order_dto(self, session: Session, order: Order) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM rows.
        """
        items = self.order_repo.list_items_for_order(session, order.id)
        timeline = self.order_repo.list_timeline(session, order.id)
        return OrderWithItemsRead.model_validate(
            order,
            update={
                "items": [OrderItemRead.model_validate(it) for it in items],
                "timeline": [TimelineEntryRead.model_validate(t) for t in timeline],
            },
        )
